"""Validation algorithms shared by matchers and desensitizers.

All functions take already-normalized input (ASCII digits, no separators)
unless stated otherwise.
"""

from __future__ import annotations

ID_WEIGHTS = (7, 9, 10, 5, 8, 4, 2, 1, 6, 3, 7, 9, 10, 5, 8, 4, 2)
ID_CHECKSUM_TABLE = "10X98765432"

# Well-known public test numbers; never treated as real cards.
TEST_CARD_NUMBERS = frozenset({
    "4111111111111111",    # Visa
    "5555555555554444",    # MasterCard
    "378282246310005",     # American Express
    "4000000000000000",
    "4000000000000002",
})

_DAYS_IN_MONTH = (31, 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31)


def luhn_valid(number: str) -> bool:
    """Luhn checksum over a digit string; non-digits fail."""
    if not number or not number.isascii() or not number.isdigit():
        return False
    total = 0
    for i, ch in enumerate(reversed(number)):
        n = ord(ch) - 48
        if i % 2 == 1:
            n *= 2
            if n > 9:
                n -= 9
        total += n
    return total % 10 == 0


def _all_same(digits: str) -> bool:
    return digits.count(digits[0]) == len(digits)


def _ascending(digits: str) -> bool:
    return all(ord(b) - ord(a) == 1 for a, b in zip(digits, digits[1:]))


def is_obvious_fake_card(number: str) -> bool:
    """All-identical digits, a strictly ascending run, or a public test number."""
    return _all_same(number) or _ascending(number) or number in TEST_CARD_NUMBERS


def is_valid_bank_card(number: str) -> bool:
    if not 13 <= len(number) <= 19:
        return False
    if not number.isascii() or not number.isdigit():
        return False
    if is_obvious_fake_card(number):
        return False
    return luhn_valid(number)


def is_valid_phone(phone: str) -> bool:
    """Mainland mobile number: 11 digits, ``1`` then 3..9, not all the same."""
    if len(phone) != 11 or not phone.isascii() or not phone.isdigit():
        return False
    if phone[0] != "1" or phone[1] not in "3456789":
        return False
    return not _all_same(phone)


def is_leap_year(year: int) -> bool:
    return (year % 4 == 0 and year % 100 != 0) or year % 400 == 0


def is_valid_date(year: int, month: int, day: int) -> bool:
    if not 1900 <= year <= 2100:
        return False
    if not 1 <= month <= 12:
        return False
    days = _DAYS_IN_MONTH[month - 1]
    if month == 2 and is_leap_year(year):
        days = 29
    return 1 <= day <= days


def id_checksum_char(first17: str) -> str:
    total = sum(int(ch) * w for ch, w in zip(first17, ID_WEIGHTS))
    return ID_CHECKSUM_TABLE[total % 11]


def clean_id_card(raw: str) -> str:
    return raw.replace(" ", "").replace("-", "").upper()


def is_valid_id_card(id_card: str) -> bool:
    """15-digit legacy or 18-character resident ID (expects ``clean_id_card`` output)."""
    if len(id_card) == 15:
        if not id_card.isascii() or not id_card.isdigit():
            return False
        return is_valid_date(int("19" + id_card[6:8]), int(id_card[8:10]), int(id_card[10:12]))

    if len(id_card) == 18:
        head, check = id_card[:17], id_card[17]
        if not head.isascii() or not head.isdigit():
            return False
        if check != "X" and not ("0" <= check <= "9"):
            return False
        if not is_valid_date(int(id_card[6:10]), int(id_card[10:12]), int(id_card[12:14])):
            return False
        return id_checksum_char(head) == check

    return False
