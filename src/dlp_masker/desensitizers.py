"""Concrete desensitizers: phone, e-mail, bank card, ID card, Chinese name.

Every one follows the same shape: a list of patterns tried in order
against the *original* text, a normalized copy of each match used only
to decide (validate), and a positional mask that leaves separators where
they were.  Phone and bank card also run a residue check over the
normalized text and fall back to an aggressive mask when something
valid-looking survived the primary pass.
"""

from __future__ import annotations
import re

from . import normalize as nz
from . import strategies as st
from .base import BaseDesensitizer, TypeAware
from .validators import clean_id_card, is_valid_bank_card, is_valid_id_card, is_valid_phone


class _TypedDesensitizer(BaseDesensitizer, TypeAware):
    """Fixed kind list plus one whole-input validation pattern."""

    TYPES: tuple[str, ...] = ()
    VALIDATE_PATTERN = ""

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self._validate_re = re.compile(self.VALIDATE_PATTERN, re.ASCII)

    def supports(self, kind: str) -> bool:
        return kind in self.TYPES

    def supported_types(self) -> list[str]:
        return list(self.TYPES)

    def type_pattern(self, kind: str) -> str:
        return self.VALIDATE_PATTERN if self.supports(kind) else ""

    def validate_type(self, text: str, kind: str) -> bool:
        if not self.supports(kind):
            return False
        return self._validate_re.fullmatch(text.strip()) is not None


# ── Phone ────────────────────────────────────────────────────────────

_PHONE_PATTERNS = [
    re.compile(p, re.ASCII) for p in (
        r"(?<![0-9])1[3-9]\d{9}(?![0-9])",
        r"(?<![0-9])1[3-9]\d\s*\d{4}\s*\d{4}(?![0-9])",
        r"(?<![0-9])1[3-9]\d[\s\-.]*\d{4}[\s\-.]*\d{4}(?![0-9])",
        r"１[３-９][０-９]{9}",
        r"1[３-９][０-９\d\s\-.]{8,12}",
    )
]
_ELEVEN_DIGITS = re.compile(r"\d{11}", re.ASCII)
_DIGIT_RUN = re.compile(r"[0-9]+")


class PhoneDesensitizer(_TypedDesensitizer):
    """Mainland mobile numbers; keeps the first 3 and last 4 digits."""

    TYPES = ("phone", "mobile", "mobile_phone")
    VALIDATE_PATTERN = r"1[3-9]\d{9}"
    MAX_NORMALIZE_LENGTH = 50

    def __init__(self) -> None:
        super().__init__("phone")

    def _normalize(self, text: str) -> str:
        return nz.normalize(text, max_length=self.MAX_NORMALIZE_LENGTH)

    @staticmethod
    def mask_phone(phone: str) -> str:
        """Star the 4th..7th digits (ASCII or full-width), keeping other characters."""
        return nz.mask_digit_positions(phone, 4, 7)

    def _mask_if_valid(self, m: re.Match) -> str:
        match = m.group()
        if is_valid_phone(self._normalize(match)):
            return self.mask_phone(match)
        return match

    def contains_suspicious_phone(self, normalized: str) -> bool:
        return any(is_valid_phone(run) for run in _DIGIT_RUN.findall(normalized))

    @staticmethod
    def aggressive_mask(text: str) -> str:
        def repl(m: re.Match) -> str:
            s = m.group()
            return s[:3] + "****" + s[7:] if is_valid_phone(s) else s
        return _ELEVEN_DIGITS.sub(repl, text)

    def _process(self, text: str) -> str:
        normalized = self._normalize(text)
        result = text
        for pattern in _PHONE_PATTERNS:
            result = pattern.sub(self._mask_if_valid, result)
        if self.contains_suspicious_phone(normalized):
            return self.aggressive_mask(result)
        return result


# ── E-mail ───────────────────────────────────────────────────────────


class EmailDesensitizer(_TypedDesensitizer):
    """Masks the local part, keeps the domain.

    ``ab@x.io -> *@x.io``, ``test@x.io -> t**@x.io``,
    ``longemail@x.io -> lo******@x.io``.
    """

    TYPES = ("email", "mail", "email_address")
    VALIDATE_PATTERN = st.EMAIL_PATTERN

    def __init__(self) -> None:
        super().__init__("email")

    def _process(self, text: str) -> str:
        return st.email(text)


# ── Bank card ────────────────────────────────────────────────────────

_CARD_PATTERNS = [
    re.compile(p, re.ASCII) for p in (
        r"\b\d{13,19}\b",
        r"\b\d{4}\s+\d{4}\s+\d{4}\s+\d{1,7}\b",
        r"\b\d{4}[\-.]\d{4}[\-.]\d{4}[\-.]\d{1,7}\b",
        r"[０-９]{13,19}",
        r"[\d０-９\s\-.]{15,25}",
    )
]
_CARD_RUN = re.compile(r"\d{13,19}", re.ASCII)


class BankCardDesensitizer(_TypedDesensitizer):
    """13-19 digit cards passing Luhn; keeps the first and last 4 digits."""

    TYPES = ("bank_card", "credit_card", "debit_card", "card_number")
    VALIDATE_PATTERN = r"\d{13,19}|\d{4}[\s\-]\d{4}[\s\-]\d{4}[\s\-]\d{1,7}"
    MAX_NORMALIZE_LENGTH = 30

    def __init__(self) -> None:
        super().__init__("bank_card")

    def _normalize(self, text: str) -> str:
        if len(text) > self.MAX_NORMALIZE_LENGTH:
            text = text[:self.MAX_NORMALIZE_LENGTH]
        return nz.collapse_separators(
            nz.fold_fullwidth_digits(nz.strip_invisible(text)), whitespace=True
        )

    @staticmethod
    def mask_card(card: str) -> str:
        """Star every digit except the first 4 and last 4; fewer than 8 digits is left alone."""
        chars = list(card)
        positions = [i for i, ch in enumerate(chars) if nz.is_digit(ch)]
        if len(positions) < 8:
            return card
        for pos in positions[4:-4]:
            chars[pos] = "*"
        return "".join(chars)

    def _mask_if_valid(self, m: re.Match) -> str:
        match = m.group()
        if is_valid_bank_card(self._normalize(match)):
            return self.mask_card(match)
        return match

    def contains_suspicious_card(self, normalized: str) -> bool:
        return any(is_valid_bank_card(run) for run in _CARD_RUN.findall(normalized))

    @staticmethod
    def aggressive_mask(text: str) -> str:
        def repl(m: re.Match) -> str:
            s = m.group()
            return s[:4] + "*" * (len(s) - 8) + s[-4:]
        return _CARD_RUN.sub(repl, text)

    def _process(self, text: str) -> str:
        result = text
        for pattern in _CARD_PATTERNS:
            result = pattern.sub(self._mask_if_valid, result)
        if self.contains_suspicious_card(self._normalize(result)):
            return self.aggressive_mask(result)
        return result


# ── ID card ──────────────────────────────────────────────────────────

_ID_PATTERNS = [
    re.compile(p, re.ASCII) for p in (
        r"(?<![0-9])\d{17}[\dXx](?![0-9])",
        r"(?<![0-9])\d{15}(?![0-9])",
        r"(?<![0-9])\d{6}\s+\d{8}\s+\d{3}[\dXx](?![0-9])",
        r"(?<![0-9])\d{6}-\d{8}-\d{3}[\dXx](?![0-9])",
    )
]


class IDCardDesensitizer(_TypedDesensitizer):
    """Resident ID numbers; the birth-date segment is masked."""

    TYPES = ("id_card", "identity", "citizen_id")
    VALIDATE_PATTERN = r"\d{17}[\dXx]|\d{15}"

    def __init__(self) -> None:
        super().__init__("id_card")

    def get_config(self, key: str):
        if key == "strict_validation":
            return True, True
        return super().get_config(key)

    @staticmethod
    def mask_id(raw: str) -> str:
        cleaned = clean_id_card(raw)
        separated = " " in raw or "-" in raw
        if len(cleaned) == 15:
            if separated:
                return nz.mask_digit_positions(raw, 7, 12, count_fullwidth=False)
            return cleaned[:6] + "******" + cleaned[12:]
        if len(cleaned) == 18:
            if separated:
                return nz.mask_digit_positions(raw, 7, 14, count_fullwidth=False, extra="Xx")
            return cleaned[:6] + "********" + cleaned[14:]
        return raw

    def _mask_if_valid(self, m: re.Match) -> str:
        match = m.group()
        if is_valid_id_card(clean_id_card(match)):
            return self.mask_id(match)
        return match

    def _process(self, text: str) -> str:
        result = text
        for pattern in _ID_PATTERNS:
            result = pattern.sub(self._mask_if_valid, result)
        return result


# ── Chinese name ─────────────────────────────────────────────────────

_COMMON_SURNAMES = (
    "张王李赵刘陈杨黄周吴徐孙朱马胡郭林何高梁郑罗宋谢唐韩曹许邓萧冯曾程蔡彭潘袁于董余苏"
    "叶吕魏蒋田杜丁沈姜范江傅钟卢汪戴崔任陆廖姚方金邱夏谭韦贾邹石熊孟秦阎薛侯雷白龙段"
    "郝孔邵史毛常万顾赖武康贺严尹钱施牛洪龚"
)
NAME_PATTERN = f"[{_COMMON_SURNAMES}][一-龯]{{1,3}}|用户[0-9一二三四五六七八九十]+"
_NAME_RE = re.compile(NAME_PATTERN)


def _is_cjk(ch: str) -> bool:
    cp = ord(ch)
    return 0x4E00 <= cp <= 0x9FFF or 0x3400 <= cp <= 0x4DBF or 0x20000 <= cp <= 0x2A6DF


class ChineseNameDesensitizer(_TypedDesensitizer):
    """Chinese personal names.  Prone to false positives in prose; not registered by default."""

    TYPES = ("chinese_name", "name")
    VALIDATE_PATTERN = NAME_PATTERN

    def __init__(self) -> None:
        super().__init__("chinese_name")

    @staticmethod
    def mask_name(name: str) -> str:
        name = name.strip()
        if len(name) <= 1:
            return name
        if len(name) == 2:
            return name[0] + "*"
        return name[0] + "*" * (len(name) - 2) + name[-1]

    def _process(self, text: str) -> str:
        trimmed = text.strip()
        if trimmed and len(trimmed) <= 10 and all(_is_cjk(ch) for ch in trimmed):
            return self.mask_name(trimmed)
        return _NAME_RE.sub(lambda m: self.mask_name(m.group()), text)


def default_desensitizers() -> list[BaseDesensitizer]:
    """The four built-ins registered on every manager, in registration order."""
    return [PhoneDesensitizer(), EmailDesensitizer(), BankCardDesensitizer(), IDCardDesensitizer()]
