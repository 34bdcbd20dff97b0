"""Input normalization used before validation.

Defeats the usual evasion tricks: zero-width characters, control
characters, full-width digits and separator insertion.  Normalized text
is only ever used to *decide*; masks are applied to the original text.
"""

from __future__ import annotations
import unicodedata

ZERO_WIDTH_CHARS = frozenset({
    "\u200b",   # zero-width space
    "\u200c",   # zero-width non-joiner
    "\u200d",   # zero-width joiner
    "\ufeff",   # byte-order mark
    "\u2060",   # word joiner
})

SEPARATORS = " -."

_FULLWIDTH_DIGITS = str.maketrans("０１２３４５６７８９", "0123456789")


def is_invisible_char(ch: str) -> bool:
    """Zero-width character or any Unicode control code point."""
    return ch in ZERO_WIDTH_CHARS or unicodedata.category(ch) == "Cc"


def is_fullwidth_digit(ch: str) -> bool:
    return "０" <= ch <= "９"


def is_digit(ch: str) -> bool:
    """ASCII or full-width decimal digit."""
    return "0" <= ch <= "9" or is_fullwidth_digit(ch)


def strip_invisible(text: str) -> str:
    return "".join(ch for ch in text if not is_invisible_char(ch))


def fold_fullwidth_digits(text: str) -> str:
    return text.translate(_FULLWIDTH_DIGITS)


def collapse_separators(text: str, *, whitespace: bool = False) -> str:
    """Drop space, hyphen and dot (or any whitespace when asked)."""
    if whitespace:
        return "".join(ch for ch in text if ch not in "-." and not ch.isspace())
    return "".join(ch for ch in text if ch not in SEPARATORS)


def normalize(text: str, *, max_length: int | None = None, collapse: bool = True) -> str:
    """Truncate, strip invisibles, fold full-width digits, optionally collapse separators."""
    if max_length is not None and len(text) > max_length:
        text = text[:max_length]
    text = fold_fullwidth_digits(strip_invisible(text))
    return collapse_separators(text) if collapse else text


def ascii_digits(text: str) -> str:
    """Only the ASCII digits of ``text``, in order."""
    return "".join(ch for ch in text if "0" <= ch <= "9")


def mask_digit_positions(text: str, first: int, last: int, *,
                         count_fullwidth: bool = True,
                         extra: str = "",
                         drop_invisible: bool = False) -> str:
    """Replace the ``first``..``last`` (1-based, inclusive) digits with ``*``.

    Non-digit characters keep their position, so separators survive.
    ``extra`` lists additional characters that count as digits (e.g. "Xx").
    """
    out: list[str] = []
    count = 0
    for ch in text:
        counted = ("0" <= ch <= "9") or (count_fullwidth and is_fullwidth_digit(ch)) or ch in extra
        if counted:
            count += 1
            out.append("*" if first <= count <= last else ch)
        elif drop_invisible and is_invisible_char(ch):
            continue
        else:
            out.append(ch)
    return "".join(out)
