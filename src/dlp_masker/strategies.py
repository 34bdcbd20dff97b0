"""Masking strategies: pure ``str -> str`` functions, one per kind.

These are the building blocks used by the built-in matchers (as
transformers) and by ``custom:<name>`` struct tags (through a
``StrategyRegistry``).  All lengths are measured in code points, so
Chinese text is masked character by character.
"""

from __future__ import annotations
import base64 as _b64
import hashlib
import ipaddress
import re
import threading
from typing import Callable
from urllib.parse import parse_qsl, urlencode, urlsplit

from loguru import logger

from .validators import luhn_valid

Strategy = Callable[[str], str]

EMAIL_PATTERN = r"[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}"
_EMAIL_RE = re.compile(EMAIL_PATTERN, re.ASCII)

# Query parameters whose values are always masked (substring match on the key).
DEFAULT_URL_SENSITIVE_PARAMS: tuple[str, ...] = (
    # auth
    "token", "access_token", "refresh_token", "id_token", "bearer", "jwt",
    # keys
    "key", "api_key", "apikey", "secret", "secret_key", "private_key", "public_key",
    # passwords
    "password", "passwd", "pwd", "auth", "authentication", "credentials",
    # personal
    "ssn", "sin", "credit_card", "card_number", "account", "account_number",
    "phone", "mobile", "email", "address", "license_number",
    # session
    "session", "session_id", "sessionid", "cookie",
    # signatures
    "sign", "signature", "hash", "digest",
    # oauth
    "client_secret", "client_id", "code", "state", "nonce",
    # misc
    "certificate", "license", "passport", "device_id", "imei", "mac", "ip",
    "location", "coordinates",
)


def _stars(n: int) -> str:
    return "*" * max(n, 0)


def keep_length(text: str, pre: int, post: int) -> str:
    """Keep ``pre`` leading and ``post`` trailing characters, mask the rest."""
    n = len(text)
    if n <= pre + post:
        return text
    return text[:pre] + _stars(n - pre - post) + (text[n - post:] if post else "")


def mask_words(text: str, *words: str) -> str:
    """Replace every occurrence of each word with stars of equal length."""
    for word in words:
        if word:
            text = text.replace(word, _stars(len(word)))
    return text


# ── Personal ─────────────────────────────────────────────────────────

def chinese_name(name: str) -> str:
    if len(name) <= 1:
        return name
    if len(name) == 2:
        return name[0] + "*"
    return name[0] + _stars(len(name) - 2) + name[-1]


def id_card(value: str) -> str:
    if len(value) <= 10:
        return value
    return value[:6] + _stars(len(value) - 10) + value[-4:]


def passport(value: str) -> str:
    return value if len(value) < 6 else keep_length(value, 2, 2)


def license_number(value: str) -> str:
    return value if len(value) < 8 else keep_length(value, 4, 2)


def social_security(value: str) -> str:
    if len(value) != 11:
        return value
    return value[:3] + "-**-" + value[7:]


def medical_id(value: str) -> str:
    return value if len(value) < 8 else keep_length(value, 3, 3)


def company_id(value: str) -> str:
    return value if len(value) < 6 else keep_length(value, 2, 2)


def username(value: str) -> str:
    return value if len(value) <= 4 else keep_length(value, 2, 2)


def nickname(value: str) -> str:
    if len(value) <= 1:
        return value
    return value[0] + _stars(len(value) - 1)


first_mask = nickname


def biography(value: str) -> str:
    if len(value) <= 10:
        return value
    return value[:5] + "..." + value[-5:]


comment = biography
signature = username


# ── Contact ──────────────────────────────────────────────────────────

def mobile_phone(phone: str) -> str:
    if len(phone) <= 7:
        return phone
    return phone[:3] + _stars(len(phone) - 7) + phone[-4:]


def landline(phone: str) -> str:
    if len(phone) <= 6:
        return phone
    return phone[:3] + _stars(len(phone) - 5) + phone[-2:]


def mask_email_address(address: str) -> str:
    """Mask one ``local@domain`` value; the domain is kept."""
    local, sep, domain = address.partition("@")
    if not sep or "@" in domain:
        return address
    if len(local) <= 2:
        return "*@" + domain
    if len(local) <= 4:
        return local[0] + "*" + local[-1] + "@" + domain
    return local[:2] + _stars(len(local) - 4) + local[-2:] + "@" + domain


def email(text: str) -> str:
    """Mask every e-mail address in ``text``.

    Two passes with the same pattern: the second pass masks the residue
    the first one leaves after the inner ``*`` (``test@x.io`` becomes
    ``t*t@x.io`` then ``t**@x.io``).  A fully masked address no longer
    matches, so the result is stable under re-application.
    """
    def repl(m: re.Match) -> str:
        return mask_email_address(m.group())

    return _EMAIL_RE.sub(repl, _EMAIL_RE.sub(repl, text))


def address(value: str) -> str:
    if len(value) <= 8:
        return _stars(len(value))
    return value[:-8] + _stars(8)


def postal_code(code: str) -> str:
    if len(code) != 6:
        return code
    return code[:3] + "***"


# ── Financial ────────────────────────────────────────────────────────

def bank_card(card: str) -> str:
    if len(card) <= 10 or not luhn_valid(card):
        return _stars(len(card))
    return card[:6] + _stars(len(card) - 10) + card[-4:]


def credit_card(card: str) -> str:
    if len(card) < 4:
        return card
    return _stars(len(card) - 4) + card[-4:]


def api_key(value: str) -> str:
    if len(value) < 8:
        return value
    return _stars(len(value) - 4) + value[-4:]


def iban(value: str) -> str:
    if len(value) <= 8:
        return _stars(len(value))
    return value[:4] + _stars(len(value) - 8) + value[-4:]


def swift(value: str) -> str:
    if len(value) <= 4:
        return _stars(len(value))
    return value[:4] + _stars(len(value) - 4)


def password(value: str) -> str:
    return _stars(len(value))


# ── Network and devices ──────────────────────────────────────────────

def ipv4(ip: str) -> str:
    parts = ip.split(".")
    if len(parts) != 4:
        return ip
    return f"{parts[0]}.*.*.{parts[3]}"


def ipv6(ip: str) -> str:
    parts = ip.split(":")
    if len(parts) < 4:
        return ip
    return f"{parts[0]}:{parts[1]}:****:{parts[-1]}"


def mac(value: str) -> str:
    parts = value.split(":")
    if len(parts) != 6:
        return value
    return f"{parts[0]}:**:**:**:**:{parts[5]}"


def device_id(value: str) -> str:
    return value if len(value) < 8 else keep_length(value, 4, 4)


access_token = device_id
refresh_token = device_id


def imei(value: str) -> str:
    if len(value) != 15:
        return value
    return value[:4] + _stars(7) + value[11:]


def vin(value: str) -> str:
    if len(value) != 17:
        return value
    return value[:3] + _stars(11) + value[14:]


def plate(value: str) -> str:
    if len(value) <= 4:
        return value
    return value[:2] + _stars(len(value) - 3) + value[-1:]


def coordinate(value: str) -> str:
    if len(value.split(",")) != 2:
        return value
    return "**.****,**.****"


lat_lng = coordinate


def domain(value: str) -> str:
    if "." not in value:
        return value
    return "****." + value.rsplit(".", 1)[1]


def git_repo(value: str) -> str:
    """Keep protocol and host, hide the repository path."""
    idx = value.find("://")
    if idx == -1:
        return value
    rest = value[idx + 3:]
    slash = rest.find("/")
    if slash == -1:
        return value
    return value[:idx + 3] + rest[:slash] + "/****"


def uuid(value: str) -> str:
    parts = value.split("-")
    if len(parts) == 5 and len(parts[2]) >= 4:
        return f"{parts[0]}-{parts[1]}-****-****-{parts[4]}"
    return value


# ── Secrets ──────────────────────────────────────────────────────────

def jwt(token: str) -> str:
    parts = token.split(".")
    if len(parts) != 3:
        return token
    return f"{parts[0]}.****.{parts[2]}"


def private_key(_: str) -> str:
    return "[PRIVATE_KEY]"


def public_key(value: str) -> str:
    if len(value) < 20:
        return value
    return value[:10] + "..." + value[-10:]


def certificate(value: str) -> str:
    if len(value) < 20:
        return value
    return "-----BEGIN CERTIFICATE-----\n****\n-----END CERTIFICATE-----"


# ── Transforms ───────────────────────────────────────────────────────

def clear(_: str) -> str:
    return ""


def base64(value: str) -> str:
    return _b64.b64encode(value.encode("utf-8")).decode("ascii")


def md5(value: str) -> str:
    return hashlib.md5(value.encode("utf-8")).hexdigest()


def sha1(value: str) -> str:
    return hashlib.sha1(value.encode("utf-8")).hexdigest()


def sha256(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


# ── URL ──────────────────────────────────────────────────────────────

def mask_url(raw: str, sensitive_params: tuple[str, ...] | list[str] = DEFAULT_URL_SENSITIVE_PARAMS) -> str:
    """Mask credentials, IP hosts and sensitive query values in a URL.

    Unparseable input is returned unchanged.
    """
    try:
        parts = urlsplit(raw)
        port = parts.port
    except ValueError:
        return raw

    host = parts.hostname or ""
    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        ip = None
    if ip is not None:
        host = ipv4(host) if ip.version == 4 else ipv6(host)
        if ip.version == 6:
            host = f"[{host}]"

    netloc = ""
    if parts.username is not None or parts.password is not None:
        netloc = "****:****@"
    netloc += host
    if port is not None:
        netloc += f":{port}"

    query = parts.query
    if query:
        pairs = parse_qsl(query, keep_blank_values=True)
        masked = []
        for key, value in pairs:
            lowered = key.lower()
            if any(p in lowered for p in sensitive_params):
                value = "****"
            masked.append((key, value))
        query = urlencode(sorted(masked), safe="*")

    out = []
    if parts.scheme:
        out.append(parts.scheme + "://")
    out.append(netloc)
    out.append(parts.path)
    if query:
        out.append("?" + query)
    if parts.fragment:
        out.append("#" + parts.fragment)
    return "".join(out)


def url(raw: str) -> str:
    return mask_url(raw)


# ── Registry ─────────────────────────────────────────────────────────

DEFAULT_STRATEGIES: dict[str, Strategy] = {
    # personal
    "chinese_name": chinese_name,
    "id_card": id_card,
    "passport": passport,
    "drivers_license": license_number,
    "license_number": license_number,
    "nickname": nickname,
    "biography": biography,
    "signature": signature,
    "comment": comment,
    # contact
    "mobile_phone": mobile_phone,
    "fixed_phone": landline,
    "landline": landline,
    "email": email,
    "address": address,
    "postal_code": postal_code,
    # accounts
    "bank_card": bank_card,
    "credit_card": credit_card,
    "username": username,
    "password": password,
    "api_key": api_key,
    # devices
    "ipv4": ipv4,
    "ipv6": ipv6,
    "mac": mac,
    "device_id": device_id,
    "imei": imei,
    # documents
    "social_security": social_security,
    "medical_id": medical_id,
    "company_id": company_id,
    # vehicles
    "plate": plate,
    "vin": vin,
    # credentials
    "jwt": jwt,
    "access_token": access_token,
    "refresh_token": refresh_token,
    "private_key": private_key,
    "public_key": public_key,
    "certificate": certificate,
    # misc
    "coordinate": coordinate,
    "lat_lng": lat_lng,
    "uuid": uuid,
    "domain": domain,
    "iban": iban,
    "swift": swift,
    "git_repo": git_repo,
    "first_mask": first_mask,
    "null": clear,
    "empty": clear,
    "base64": base64,
    "md5": md5,
    "sha1": sha1,
    "sha256": sha256,
}


class StrategyRegistry:
    """Named masking strategies, one registry per engine."""

    __slots__ = ("_strategies", "_url_params", "_lock")

    def __init__(self, defaults: bool = True) -> None:
        self._strategies: dict[str, Strategy] = dict(DEFAULT_STRATEGIES) if defaults else {}
        self._url_params: list[str] = list(DEFAULT_URL_SENSITIVE_PARAMS)
        self._lock = threading.RLock()
        if defaults:
            self._strategies["url"] = self._mask_url

    def register(self, name: str, strategy: Strategy) -> None:
        with self._lock:
            self._strategies[name] = strategy
        logger.debug("strategy registered: {}", name)

    def get(self, name: str) -> Strategy | None:
        with self._lock:
            return self._strategies.get(name)

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._strategies)

    def register_url_sensitive_params(self, *names: str) -> None:
        with self._lock:
            for name in names:
                lowered = name.lower()
                if lowered and lowered not in self._url_params:
                    self._url_params.append(lowered)

    def url_sensitive_params(self) -> list[str]:
        with self._lock:
            return list(self._url_params)

    def _mask_url(self, raw: str) -> str:
        return mask_url(raw, self.url_sensitive_params())

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._strategies

    def __len__(self) -> int:
        with self._lock:
            return len(self._strategies)
