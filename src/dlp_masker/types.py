"""Core types."""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True, slots=True)
class Match:
    """A single detected sensitive span."""
    type: str              # matcher name, e.g. "mobile_phone"
    content: str
    start: int
    end: int

    @property
    def position(self) -> tuple[int, int]:
        return (self.start, self.end)


@dataclass(slots=True)
class DesensitizationResult:
    """Outcome of one desensitize call.  Produced per call, never persisted."""
    original: str
    desensitized: str
    type_used: str = ""
    desensitizer_name: str = ""
    duration_ns: int = 0
    from_cache: bool = False
    error: str | None = None
    metadata: dict[str, object] = field(default_factory=dict)

    @property
    def changed(self) -> bool:
        return self.original != self.desensitized


@dataclass(slots=True)
class CacheStats:
    hits: int = 0
    misses: int = 0
    size: int = 0

    @property
    def hit_ratio(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


@dataclass(slots=True)
class PerformanceMetrics:
    """Per-desensitizer call metrics; durations in nanoseconds."""
    total_calls: int = 0
    total_duration_ns: int = 0
    average_duration_ns: float = 0.0
    error_count: int = 0
    success_rate: float = 1.0

    def record(self, duration_ns: int, success: bool) -> None:
        self.total_calls += 1
        self.total_duration_ns += duration_ns
        if not success:
            self.error_count += 1
        self.success_rate = 1 - self.error_count / self.total_calls
        self.average_duration_ns = self.total_duration_ns / self.total_calls


@dataclass(slots=True)
class ManagerStats:
    total_desensitizers: int = 0
    enabled_desensitizers: int = 0
    type_coverage: dict[str, int] = field(default_factory=dict)
    performance_metrics: dict[str, PerformanceMetrics] = field(default_factory=dict)


class EventType(str, Enum):
    BYPASS_ATTEMPT = "BYPASS_ATTEMPT"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    INVALID_INPUT = "INVALID_INPUT"
    RESULT_VALIDATION_FAILED = "RESULT_VALIDATION_FAILED"
    ALERT_THRESHOLD_REACHED = "ALERT_THRESHOLD_REACHED"
    REGISTER_FAILED = "REGISTER_FAILED"
    DESENSITIZE_ERROR = "DESENSITIZE_ERROR"


class ThreatLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


@dataclass(frozen=True, slots=True)
class SecurityEvent:
    timestamp: float       # time.time() at append
    event_type: EventType
    payload: str
    threat_level: ThreatLevel
    details: str
