"""Desensitizer registry: name and kind routing, versioning, stats, auto-detect.

    manager = DesensitizerManager()
    manager.register(PhoneDesensitizer())
    manager.process_with_type("phone", "13812345678").desensitized   # "138****5678"
    manager.auto_detect("手机13812345678").desensitized              # "手机138****5678"

``upsert`` replaces a desensitizer in place and returns a strictly
increasing version number; upstream caches compare it to decide when
their snapshot is stale.
"""

from __future__ import annotations
import threading
import time
from dataclasses import replace
from typing import Any

from loguru import logger

from .base import Desensitizer, as_cacheable, as_type_aware
from .errors import ConfigurationError, ProcessingError
from .types import DesensitizationResult, ManagerStats, PerformanceMetrics

DEFAULT_PRECEDENCE = ("phone", "email", "id_card", "bank_card", "chinese_name")


class DesensitizerManager:
    """Thread-safe registry of desensitizers."""

    def __init__(self, precedence: list[str] | tuple[str, ...] | None = None) -> None:
        self._lock = threading.RLock()
        self._desensitizers: dict[str, Desensitizer] = {}
        self._type_mapping: dict[str, list[str]] = {}
        self._metrics: dict[str, PerformanceMetrics] = {}
        self._precedence: tuple[str, ...] = tuple(precedence or DEFAULT_PRECEDENCE)
        self._enabled = True
        self._version = 0

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, desensitizer: Desensitizer | None) -> None:
        if desensitizer is None:
            raise ConfigurationError("desensitizer cannot be nil")
        name = desensitizer.name
        if not name:
            raise ConfigurationError("desensitizer name cannot be empty")
        with self._lock:
            if name in self._desensitizers:
                raise ConfigurationError(f"desensitizer '{name}' already registered")
            self._desensitizers[name] = desensitizer
            self._add_types(name, desensitizer)
            self._metrics[name] = PerformanceMetrics()
            self._version += 1
        logger.debug("desensitizer registered: {}", name)

    def upsert(self, desensitizer: Desensitizer | None) -> int:
        """Register or replace by name; returns the new version.

        A replaced desensitizer keeps its place in every kind list it still
        supports, so routing order is stable across hot reloads.
        """
        if desensitizer is None:
            raise ConfigurationError("desensitizer cannot be nil")
        name = desensitizer.name
        if not name:
            raise ConfigurationError("desensitizer name cannot be empty")
        with self._lock:
            old = self._desensitizers.get(name)
            if old is None:
                self._add_types(name, desensitizer)
                self._metrics[name] = PerformanceMetrics()
            else:
                new_types = set(_types_of(desensitizer))
                for kind in _types_of(old):
                    if kind not in new_types:
                        self._drop_type(kind, name)
                self._add_types(name, desensitizer)
            self._desensitizers[name] = desensitizer
            self._version += 1
            version = self._version
        logger.debug("desensitizer upserted: {} (version {})", name, version)
        return version

    def unregister(self, name: str) -> None:
        with self._lock:
            desensitizer = self._desensitizers.pop(name, None)
            if desensitizer is None:
                raise ConfigurationError(f"desensitizer '{name}' not found")
            for kind in _types_of(desensitizer):
                self._drop_type(kind, name)
            self._metrics.pop(name, None)
            self._version += 1
        logger.debug("desensitizer unregistered: {}", name)

    def _add_types(self, name: str, desensitizer: Desensitizer) -> None:
        for kind in _types_of(desensitizer):
            names = self._type_mapping.setdefault(kind, [])
            if name not in names:
                names.append(name)

    def _drop_type(self, kind: str, name: str) -> None:
        names = self._type_mapping.get(kind)
        if not names:
            return
        remaining = [n for n in names if n != name]
        if remaining:
            self._type_mapping[kind] = remaining
        else:
            del self._type_mapping[kind]

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    @property
    def current_version(self) -> int:
        return self._version

    def get(self, name: str) -> Desensitizer | None:
        with self._lock:
            return self._desensitizers.get(name)

    def desensitizers_for_type(self, kind: str) -> list[Desensitizer]:
        """Enabled desensitizers for ``kind``, in registration order."""
        with self._lock:
            names = list(self._type_mapping.get(kind, ()))
            found = [self._desensitizers.get(n) for n in names]
        return [d for d in found if d is not None and d.enabled]

    def list_names(self) -> list[str]:
        with self._lock:
            return list(self._desensitizers)

    def type_mapping(self) -> dict[str, list[str]]:
        with self._lock:
            return {kind: list(names) for kind, names in self._type_mapping.items()}

    @property
    def precedence(self) -> tuple[str, ...]:
        return self._precedence

    def set_precedence(self, kinds: list[str] | tuple[str, ...]) -> None:
        self._precedence = tuple(kinds)

    # ------------------------------------------------------------------
    # Switches
    # ------------------------------------------------------------------

    def enable(self) -> None:
        self._enabled = True
        logger.debug("desensitizer manager enabled")

    def disable(self) -> None:
        self._enabled = False
        logger.debug("desensitizer manager disabled")

    def is_enabled(self) -> bool:
        return self._enabled

    def enable_all(self) -> None:
        for d in self._snapshot():
            if not d.enabled:
                d.enable()

    def disable_all(self) -> None:
        for d in self._snapshot():
            if d.enabled:
                d.disable()

    def clear_all_caches(self) -> None:
        for d in self._snapshot():
            cacheable = as_cacheable(d)
            if cacheable is not None:
                cacheable.clear_cache()
                logger.debug("desensitizer cache cleared: {}", d.name)

    def _snapshot(self) -> list[Desensitizer]:
        with self._lock:
            return list(self._desensitizers.values())

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def process_with_desensitizer(self, name: str, text: str) -> DesensitizationResult:
        """Run one named desensitizer.  A disabled one yields the input and an error note."""
        desensitizer = self.get(name)
        if desensitizer is None:
            raise ConfigurationError(f"desensitizer '{name}' not found")
        if not desensitizer.enabled:
            return DesensitizationResult(
                original=text,
                desensitized=text,
                desensitizer_name=name,
                error=f"desensitizer '{name}' is disabled",
            )

        start = time.perf_counter_ns()
        error: str | None = None
        try:
            masked = desensitizer.desensitize(text)
        except Exception as exc:
            # Pluggable code: record and fail open with the input.
            logger.error("desensitizer {} failed: {}", name, type(exc).__name__)
            masked, error = text, str(exc)
        duration = time.perf_counter_ns() - start
        self._record(name, duration, error is None)

        cacheable = as_cacheable(desensitizer)
        return DesensitizationResult(
            original=text,
            desensitized=masked,
            desensitizer_name=name,
            duration_ns=duration,
            from_cache=bool(cacheable and cacheable.served_from_cache()),
            error=error,
        )

    def process_with_type(self, kind: str, text: str) -> DesensitizationResult:
        """First enabled desensitizer registered for ``kind``.

        Raises ``ProcessingError`` (carrying ``text``) when nobody handles it.
        """
        candidates = self.desensitizers_for_type(kind)
        if not candidates:
            raise ProcessingError(f"no desensitizer found for type '{kind}'", text)
        result = self.process_with_desensitizer(candidates[0].name, text)
        result.type_used = kind
        return result

    def auto_detect(self, text: str) -> DesensitizationResult:
        """Guess the kind of ``text`` and mask it.

        Exactly one desensitizer validating the whole (trimmed) input means
        single-typed input.  Otherwise the input is treated as prose and
        every precedence kind is applied in turn over the same buffer.
        """
        if not self._enabled:
            return DesensitizationResult(original=text, desensitized=text)

        start = time.perf_counter_ns()
        claimants: list[tuple[Desensitizer, str]] = []
        for d in self._snapshot():
            if not d.enabled:
                continue
            ta = as_type_aware(d)
            if ta is None:
                continue
            for kind in ta.supported_types():
                if ta.validate_type(text, kind):
                    claimants.append((d, kind))
                    break

        if len(claimants) == 1:
            d, kind = claimants[0]
            result = self.process_with_desensitizer(d.name, text)
            if result.error is None:
                result.type_used = kind
                return result

        masked = self._precedence_pass(text)
        return DesensitizationResult(
            original=text,
            desensitized=masked,
            type_used="mixed" if claimants else "",
            duration_ns=time.perf_counter_ns() - start,
            metadata={"candidates": [d.name for d, _ in claimants]},
        )

    def _precedence_pass(self, text: str) -> str:
        applied: set[str] = set()
        result = text
        for kind in self._precedence:
            for d in self.desensitizers_for_type(kind):
                if d.name in applied or as_type_aware(d) is None:
                    continue
                applied.add(d.name)
                outcome = self.process_with_desensitizer(d.name, result)
                if outcome.error is None:
                    result = outcome.desensitized
        return result

    def _record(self, name: str, duration_ns: int, success: bool) -> None:
        with self._lock:
            metrics = self._metrics.get(name)
            if metrics is not None:
                metrics.record(duration_ns, success)

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def stats(self) -> ManagerStats:
        with self._lock:
            desensitizers = list(self._desensitizers.values())
            coverage = {kind: len(names) for kind, names in self._type_mapping.items()}
            metrics = {name: replace(m) for name, m in self._metrics.items()}
        return ManagerStats(
            total_desensitizers=len(desensitizers),
            enabled_desensitizers=sum(1 for d in desensitizers if d.enabled),
            type_coverage=coverage,
            performance_metrics=metrics,
        )

    def detailed_stats(self) -> dict[str, Any]:
        stats = self.stats()
        cache_stats = {}
        for d in self._snapshot():
            cacheable = as_cacheable(d)
            if cacheable is not None and cacheable.cache_enabled:
                cache_stats[d.name] = cacheable.cache_stats()
        return {
            "total_desensitizers": stats.total_desensitizers,
            "enabled_desensitizers": stats.enabled_desensitizers,
            "type_coverage": stats.type_coverage,
            "performance_metrics": stats.performance_metrics,
            "type_mapping": self.type_mapping(),
            "manager_enabled": self._enabled,
            "version": self._version,
            "cache_stats": cache_stats,
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._desensitizers)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._desensitizers


def _types_of(desensitizer: Desensitizer) -> list[str]:
    ta = as_type_aware(desensitizer)
    return ta.supported_types() if ta is not None else []
