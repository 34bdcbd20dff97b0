"""Hardened entry point: rate limiting, input checks, bypass detection.

``SecurityLayer.secure_desensitize`` runs, in order:

1. per-client rate limit (fixed window, 100 requests / 60 s by default);
2. input validation (empty, too long, executable-content markers);
3. bypass detection (invisible characters, full-width digits, Cyrillic
   homoglyphs, separated card numbers, separator padding between digits);
4. aggressive masking when a bypass was found, otherwise the manager's
   auto-detect followed by a residue scan that escalates to aggressive
   masking if a raw phone/card/ID number survived.

Every refusal or escalation is appended to an in-memory event ring.
"""

from __future__ import annotations
import re
import threading
import time
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from loguru import logger

from . import normalize as nz
from .desensitizers import default_desensitizers
from .errors import ConfigurationError, DLPError, ProcessingError, SecurityError
from .manager import DesensitizerManager
from .types import DesensitizationResult, EventType, SecurityEvent, ThreatLevel

PROCESSED_MARKER = "\u200b"

MALICIOUS_MARKERS = (
    "<script", "</script>", "javascript:", "data:text/html",
    "vbscript:", "onload=", "onerror=",
)

# Cyrillic letters rendered like Latin a, e, o, p, c, x, y.
HOMOGLYPHS = frozenset("\u0430\u0435\u043e\u0440\u0441\u0445\u0443")

MAX_EVENTS = 1000
KEEP_EVENTS = 500

# Kinds the aggressive pass never runs.
AGGRESSIVE_SKIP = frozenset({"chinese_name"})

_SEPARATED_CARD = re.compile(r"\d{4}[\s\-.]\d{4}[\s\-.]\d{4}[\s\-.]\d{1,7}", re.ASCII)
_DIGIT_SEPARATORS = re.compile(r"(?<=\d)[\s\-.]+(?=\d)", re.ASCII)
_RESIDUE_PATTERNS = tuple(
    re.compile(p, re.ASCII) for p in (r"1[3-9]\d{9}", r"\d{13,19}", r"\d{17}[\dXx]|\d{15}")
)

# Aggressive pass, applied in this order.
_AGG_ELEVEN = re.compile(r"\d{11}", re.ASCII)
_AGG_FULLWIDTH_PHONE = re.compile(r"１[３-９][０-９]{9}")
_AGG_SEPARATED_PHONE = re.compile(r"1[3-9]\d[\s\-.]*\d{4}[\s\-.]*\d{4}", re.ASCII)
_AGG_PADDED_PHONE = re.compile(r"1[3-9]\d.{0,5}\d{4}.{0,5}\d{4}", re.ASCII | re.DOTALL)
_AGG_EMAIL = re.compile(r"[a-zA-Z0-9._%+\-]+@\S+\.[a-zA-Z]{2,}", re.ASCII)
_AGG_CARDS = (
    re.compile(r"\d{13,19}", re.ASCII),
    re.compile(r"\d{4}[\s\-.]\d{4}[\s\-.]\d{4}[\s\-.]\d{1,7}", re.ASCII),
)


class BypassTechnique(str, Enum):
    INVISIBLE_CHARACTER = "INVISIBLE_CHARACTER"
    FULLWIDTH_DIGITS = "FULLWIDTH_DIGITS"
    HOMOGLYPH = "HOMOGLYPH"
    SEPARATED_CARD = "SEPARATED_CARD"
    EXCESSIVE_SEPARATORS = "EXCESSIVE_SEPARATORS"


@dataclass(frozen=True, slots=True)
class BypassAttempt:
    technique: BypassTechnique
    detail: str


@dataclass
class SecurityConfig:
    """Limits for ``SecurityLayer``."""
    rate_limit: int = 100             # requests per window per client
    rate_window: float = 60.0         # seconds
    max_input_length: int = 10000     # characters
    alert_threshold: int = 10         # suspicious calls before ALERT_THRESHOLD_REACHED
    bypass_detection: bool = True


# ── Rate limiting ────────────────────────────────────────────────────


@dataclass(slots=True)
class _ClientWindow:
    count: int
    window_start: float
    last_seen: float


class RateLimiter:
    """Fixed window per client, opened by the client's first request."""

    __slots__ = ("_max", "_window", "_clock", "_clients", "_lock")

    def __init__(self, max_requests: int = 100, window: float = 60.0,
                 clock: Callable[[], float] = time.monotonic) -> None:
        if max_requests <= 0 or window <= 0:
            raise ConfigurationError("rate limit and window must be positive")
        self._max = max_requests
        self._window = window
        self._clock = clock
        self._clients: dict[str, _ClientWindow] = {}
        self._lock = threading.Lock()

    def allow(self, client_id: str) -> bool:
        now = self._clock()
        with self._lock:
            state = self._clients.get(client_id)
            if state is not None and now - state.window_start > self._window:
                state = None
            if state is None:
                self._clients[client_id] = _ClientWindow(1, now, now)
                return True
            if state.count >= self._max:
                return False
            state.count += 1
            state.last_seen = now
            return True

    def reset(self, client_id: str | None = None) -> None:
        with self._lock:
            if client_id is None:
                self._clients.clear()
            else:
                self._clients.pop(client_id, None)

    def usage(self, client_id: str) -> int:
        with self._lock:
            state = self._clients.get(client_id)
            return state.count if state else 0


# ── Security layer ───────────────────────────────────────────────────


class SecurityLayer:
    """Wraps a ``DesensitizerManager`` with the hardened call path."""

    def __init__(
        self,
        manager: DesensitizerManager,
        config: SecurityConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.manager = manager
        self.config = config or SecurityConfig()
        self.rate_limiter = RateLimiter(self.config.rate_limit, self.config.rate_window, clock)
        self._bypass_detection = self.config.bypass_detection
        self._suspicious = 0
        self._suspicious_lock = threading.Lock()
        self._events: list[SecurityEvent] = []
        self._events_lock = threading.Lock()

    def register_defaults(self) -> None:
        """Register the built-in phone, e-mail, bank card and ID card desensitizers."""
        for d in default_desensitizers():
            try:
                self.manager.register(d)
            except ConfigurationError as exc:
                self._log_event(EventType.REGISTER_FAILED, "", ThreatLevel.LOW,
                                f"Failed to register enhanced desensitizer: {exc}")

    # ------------------------------------------------------------------
    # Switches
    # ------------------------------------------------------------------

    def enable_bypass_detection(self) -> None:
        self._bypass_detection = True

    def disable_bypass_detection(self) -> None:
        self._bypass_detection = False

    @property
    def bypass_detection_enabled(self) -> bool:
        return self._bypass_detection

    @property
    def suspicious_count(self) -> int:
        with self._suspicious_lock:
            return self._suspicious

    # ------------------------------------------------------------------
    # Main path
    # ------------------------------------------------------------------

    def secure_desensitize(self, text: str, client_id: str = "default") -> DesensitizationResult:
        """Validate, inspect and mask ``text``.

        Raises ``SecurityError`` when the input is refused outright.
        """
        if not self.rate_limiter.allow(client_id):
            self._log_event(EventType.RATE_LIMIT_EXCEEDED, text, ThreatLevel.MEDIUM,
                            f"Rate limit exceeded for client: {client_id}")
            raise SecurityError("rate limit exceeded")

        try:
            self.validate_input(text)
        except SecurityError as exc:
            self._log_event(EventType.INVALID_INPUT, text, ThreatLevel.LOW, exc.reason)
            raise

        if self._bypass_detection:
            attempts = self.detect_bypass_attempts(text)
            if attempts:
                self._increment_suspicious()
                for attempt in attempts:
                    self._log_event(EventType.BYPASS_ATTEMPT, text, ThreatLevel.HIGH, attempt.detail)
                return self._aggressive(text, bypass_flagged=True)

        try:
            result = self.manager.auto_detect(text)
        except DLPError as exc:
            self._log_event(EventType.DESENSITIZE_ERROR, text, ThreatLevel.LOW, str(exc))
            raise ProcessingError(str(exc), text) from exc

        if self.validate_result(result):
            return result
        self._log_event(EventType.RESULT_VALIDATION_FAILED, text, ThreatLevel.HIGH,
                        "Desensitization result failed validation")
        return self.aggressive_desensitize(text)

    def validate_input(self, text: str) -> None:
        if not text:
            raise SecurityError("empty input")
        if len(text) > self.config.max_input_length:
            raise SecurityError(f"input too long: {len(text)} characters")
        lowered = text.lower()
        for marker in MALICIOUS_MARKERS:
            if marker in lowered:
                raise SecurityError(f"malicious pattern detected: {marker}")

    def detect_bypass_attempts(self, text: str) -> list[BypassAttempt]:
        found: list[BypassAttempt] = []

        for ch in text:
            if nz.is_invisible_char(ch):
                found.append(BypassAttempt(
                    BypassTechnique.INVISIBLE_CHARACTER,
                    f"Zero-width character detected: U+{ord(ch):04X}",
                ))
                break

        fullwidth = sum(1 for ch in text if nz.is_fullwidth_digit(ch))
        if fullwidth:
            found.append(BypassAttempt(
                BypassTechnique.FULLWIDTH_DIGITS,
                f"Full-width digits detected: {fullwidth} occurrences",
            ))

        if any(ch in HOMOGLYPHS for ch in text):
            found.append(BypassAttempt(BypassTechnique.HOMOGLYPH, "Unicode normalization attack detected"))

        if _SEPARATED_CARD.search(text):
            found.append(BypassAttempt(
                BypassTechnique.SEPARATED_CARD, "Bank card number with separators detected",
            ))
        else:
            padding = sum(len(run) for run in _DIGIT_SEPARATORS.findall(text))
            if padding >= 4:
                found.append(BypassAttempt(
                    BypassTechnique.EXCESSIVE_SEPARATORS,
                    f"Excessive separators detected: {padding}",
                ))
        return found

    def validate_result(self, result: DesensitizationResult | None) -> bool:
        """False when the output still carries a raw phone, card or ID number."""
        if result is None or result.error is not None:
            return False
        return not any(p.search(result.desensitized) for p in _RESIDUE_PATTERNS)

    # ------------------------------------------------------------------
    # Aggressive masking
    # ------------------------------------------------------------------

    def aggressive_desensitize(self, text: str) -> DesensitizationResult:
        return self._aggressive(text, bypass_flagged=bool(self.detect_bypass_attempts(text)))

    def _aggressive(self, text: str, bypass_flagged: bool) -> DesensitizationResult:
        start = time.perf_counter_ns()
        result = text
        for name in self.manager.list_names():
            if name in AGGRESSIVE_SKIP:
                continue
            outcome = self.manager.process_with_desensitizer(name, result)
            if outcome.error is None:
                result = outcome.desensitized

        result = _AGG_ELEVEN.sub(_mask_eleven, result)
        result = _AGG_FULLWIDTH_PHONE.sub(lambda m: m.group()[:3] + "****" + m.group()[-4:], result)
        result = _AGG_SEPARATED_PHONE.sub(_mask_separated_phone, result)
        result = _AGG_PADDED_PHONE.sub(_mask_padded_phone, result)
        result = _AGG_EMAIL.sub(_mask_email_loose, result)
        for pattern in _AGG_CARDS:
            result = pattern.sub(_mask_card_digits, result)

        if result == text and bypass_flagged and not result.endswith(PROCESSED_MARKER):
            result += PROCESSED_MARKER

        return DesensitizationResult(
            original=text,
            desensitized=result,
            type_used="aggressive",
            desensitizer_name="aggressive",
            duration_ns=time.perf_counter_ns() - start,
        )

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def _increment_suspicious(self) -> None:
        with self._suspicious_lock:
            self._suspicious += 1
            count = self._suspicious
            reached = count >= self.config.alert_threshold
            if reached:
                self._suspicious = 0
        if reached:
            self._log_event(EventType.ALERT_THRESHOLD_REACHED, "", ThreatLevel.CRITICAL,
                            f"Suspicious activity threshold reached: {count}")

    def _log_event(self, event_type: EventType, payload: str, level: ThreatLevel, details: str) -> None:
        event = SecurityEvent(time.time(), event_type, payload, level, details)
        with self._events_lock:
            self._events.append(event)
            if len(self._events) > MAX_EVENTS:
                del self._events[:len(self._events) - KEEP_EVENTS]

        if level is ThreatLevel.CRITICAL:
            logger.critical("security event {}: {}", event_type.value, details)
        elif level is ThreatLevel.LOW:
            logger.info("security event {}: {}", event_type.value, details)
        else:
            logger.warning("security event {}: {}", event_type.value, details)

    def security_events(self) -> list[SecurityEvent]:
        with self._events_lock:
            return list(self._events)

    def security_stats(self) -> dict[str, Any]:
        with self._events_lock:
            events = list(self._events)
        return {
            "total_events": len(events),
            "suspicious_count": self.suspicious_count,
            "bypass_detection_enabled": self._bypass_detection,
            "event_types": dict(Counter(e.event_type.value for e in events)),
            "threat_levels": dict(Counter(e.threat_level.value for e in events)),
        }


# ── Aggressive mask helpers ──────────────────────────────────────────


def _mask_eleven(m: re.Match) -> str:
    s = m.group()
    if s.startswith("1"):
        return s[:3] + "****" + s[7:]
    return "*" * len(s)


def _mask_separated_phone(m: re.Match) -> str:
    s = m.group()
    if len(nz.ascii_digits(s)) != 11:
        return s
    return nz.mask_digit_positions(s, 4, 7, count_fullwidth=False)


def _mask_padded_phone(m: re.Match) -> str:
    s = m.group()
    digits = nz.ascii_digits(s)
    if len(digits) != 11 or digits[0] != "1":
        return s
    return nz.mask_digit_positions(s, 4, 7, count_fullwidth=False, drop_invisible=True)


def _mask_email_loose(m: re.Match) -> str:
    local, _, domain = m.group().partition("@")
    if len(local) > 2:
        return local[0] + "**@" + domain
    return "*@" + domain


def _mask_card_digits(m: re.Match) -> str:
    s = m.group()
    n = len(nz.ascii_digits(s))
    if not 13 <= n <= 19:
        return s
    return nz.mask_digit_positions(s, 5, n - 4, count_fullwidth=False)
