"""Desensitizer interface, optional capabilities and the shared base.

A desensitizer owns one family of sensitive data (phones, e-mails, ...):
it normalizes, validates and masks.  Two optional capabilities are
queried through ``as_type_aware`` / ``as_cacheable`` rather than by
poking at attributes:

    d = manager.get("phone")
    if (ta := as_type_aware(d)) is not None:
        ta.validate_type("13812345678", "phone")
"""

from __future__ import annotations
import re
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable

from loguru import logger

from .cache import LRUCache
from .cachekey import CacheKeyCodec
from .errors import ConfigurationError, DLPError, ProcessingError
from .types import CacheStats

MAX_CACHEABLE_LENGTH = 1000
DEFAULT_CACHE_CAPACITY = 1000


class Desensitizer(ABC):
    """Core contract every pluggable desensitizer satisfies."""

    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def supports(self, kind: str) -> bool: ...

    @abstractmethod
    def desensitize(self, text: str) -> str:
        """Return the masked text.  Disabled desensitizers return ``text`` unchanged."""

    @abstractmethod
    def configure(self, options: dict[str, Any] | None) -> None: ...

    @property
    @abstractmethod
    def enabled(self) -> bool: ...

    @abstractmethod
    def enable(self) -> None: ...

    @abstractmethod
    def disable(self) -> None: ...


class TypeAware(ABC):
    """Capability: enumerates its kinds and can test whole inputs against them."""

    @abstractmethod
    def supported_types(self) -> list[str]: ...

    @abstractmethod
    def type_pattern(self, kind: str) -> str: ...

    @abstractmethod
    def validate_type(self, text: str, kind: str) -> bool: ...


class Cacheable(ABC):
    """Capability: keeps a local result cache."""

    @property
    @abstractmethod
    def cache_enabled(self) -> bool: ...

    @abstractmethod
    def set_cache_enabled(self, enabled: bool) -> None: ...

    @abstractmethod
    def clear_cache(self) -> None: ...

    @abstractmethod
    def cache_stats(self) -> CacheStats: ...

    @abstractmethod
    def served_from_cache(self) -> bool:
        """Whether the calling thread's last ``desensitize`` was a cache hit."""


def as_type_aware(d: object) -> TypeAware | None:
    return d if isinstance(d, TypeAware) else None


def as_cacheable(d: object) -> Cacheable | None:
    return d if isinstance(d, Cacheable) else None


class BaseDesensitizer(Desensitizer, Cacheable):
    """Enable flag, options map, and a bounded per-instance result cache.

    Subclasses implement ``supports`` and ``_process``.
    """

    def __init__(self, name: str, *, cache_capacity: int = DEFAULT_CACHE_CAPACITY) -> None:
        self._name = name
        self._enabled = True
        self._options: dict[str, Any] = {}
        self._options_lock = threading.RLock()
        self._cache_enabled = True
        self._cache = LRUCache(cache_capacity)
        self._codec = CacheKeyCodec()
        self._stats_lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._local = threading.local()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self._name!r}, enabled={self._enabled})"

    # ------------------------------------------------------------------
    # Identity and lifecycle
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def enabled(self) -> bool:
        return self._enabled

    def enable(self) -> None:
        self._enabled = True
        logger.debug("desensitizer enabled: {}", self._name)

    def disable(self) -> None:
        self._enabled = False
        logger.debug("desensitizer disabled: {}", self._name)

    def configure(self, options: dict[str, Any] | None) -> None:
        """Replace the options map.  ``cache_enabled`` (bool) toggles the local cache."""
        if options is None:
            raise ConfigurationError("config cannot be nil")
        with self._options_lock:
            self._options = dict(options)
        flag = options.get("cache_enabled")
        if isinstance(flag, bool):
            self.set_cache_enabled(flag)
        logger.debug("desensitizer configured: {}", self._name)

    def get_config(self, key: str) -> tuple[Any, bool]:
        with self._options_lock:
            if key in self._options:
                return self._options[key], True
        return None, False

    # ------------------------------------------------------------------
    # Cache capability
    # ------------------------------------------------------------------

    @property
    def cache_enabled(self) -> bool:
        return self._cache_enabled

    def set_cache_enabled(self, enabled: bool) -> None:
        self._cache_enabled = enabled
        if not enabled:
            self.clear_cache()

    def clear_cache(self) -> None:
        self._cache.clear()
        with self._stats_lock:
            self._hits = 0
            self._misses = 0

    def cache_stats(self) -> CacheStats:
        with self._stats_lock:
            return CacheStats(hits=self._hits, misses=self._misses, size=self._cache.size())

    def served_from_cache(self) -> bool:
        return getattr(self._local, "from_cache", False)

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    @abstractmethod
    def _process(self, text: str) -> str:
        """Mask ``text``; called on cache misses only."""

    def desensitize(self, text: str) -> str:
        self._local.from_cache = False
        if not self._enabled:
            return text
        if not self._cache_enabled or len(text) > MAX_CACHEABLE_LENGTH:
            return self._process(text)

        key = self._codec.key(self._name, text)
        cached, found = self._cache.get(key)
        if found:
            with self._stats_lock:
                self._hits += 1
            self._local.from_cache = True
            return cached

        with self._stats_lock:
            self._misses += 1
        result = self._process(text)
        self._cache.put(key, result)
        return result

    def desensitize_with_deadline(
        self,
        text: str,
        deadline: float | None,
        clock: Callable[[], float] = time.monotonic,
    ) -> str:
        """Like ``desensitize`` but refuse to start after ``deadline`` (``clock`` seconds).

        The check happens at entry only; a running match is not interrupted.
        """
        if deadline is not None and clock() >= deadline:
            raise ProcessingError("deadline exceeded", text)
        return self.desensitize(text)

    def batch_desensitize(self, items: Iterable[str]) -> list[str]:
        items = list(items)
        if not self._enabled:
            return items
        results = []
        for i, item in enumerate(items):
            try:
                results.append(self.desensitize(item))
            except DLPError as exc:
                raise ProcessingError(f"failed to desensitize item at index {i}: {exc}", item) from exc
        return results


# ── Generic variants ─────────────────────────────────────────────────


class RegexDesensitizer(BaseDesensitizer, TypeAware):
    """User-defined ``kind -> (pattern, replacement)`` rules.

    Replacements use ``re.sub`` syntax (``\\1`` for groups).  Rules are
    applied in the order they were added.
    """

    def __init__(self, name: str, *, flags: int = re.ASCII) -> None:
        super().__init__(name)
        self._rules: dict[str, tuple[re.Pattern, str]] = {}
        self._rules_lock = threading.RLock()
        self._flags = flags

    def add_pattern(self, kind: str, pattern: str, replacement: str) -> None:
        try:
            compiled = re.compile(pattern, self._flags)
        except re.error as exc:
            raise ConfigurationError(f"invalid regex pattern for type '{kind}': {exc}") from exc
        with self._rules_lock:
            self._rules[kind] = (compiled, replacement)
        self.clear_cache()

    def remove_pattern(self, kind: str) -> bool:
        with self._rules_lock:
            removed = self._rules.pop(kind, None) is not None
        if removed:
            self.clear_cache()
        return removed

    def supports(self, kind: str) -> bool:
        with self._rules_lock:
            return kind in self._rules

    def supported_types(self) -> list[str]:
        with self._rules_lock:
            return list(self._rules)

    def type_pattern(self, kind: str) -> str:
        with self._rules_lock:
            rule = self._rules.get(kind)
        return rule[0].pattern if rule else ""

    def validate_type(self, text: str, kind: str) -> bool:
        with self._rules_lock:
            rule = self._rules.get(kind)
        return rule is not None and rule[0].fullmatch(text.strip()) is not None

    def _process(self, text: str) -> str:
        with self._rules_lock:
            rules = list(self._rules.values())
        for regex, replacement in rules:
            text = regex.sub(replacement, text)
        return text


class CustomFunctionDesensitizer(BaseDesensitizer, TypeAware):
    """``kind -> callable`` rules; the first callable that changes the text wins.

    Callables are arbitrary user code, so results are not cached.
    """

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self._cache_enabled = False
        self._functions: dict[str, Callable[[str], str]] = {}
        self._fn_lock = threading.RLock()

    def add_function(self, kind: str, fn: Callable[[str], str]) -> None:
        with self._fn_lock:
            self._functions[kind] = fn

    def supports(self, kind: str) -> bool:
        with self._fn_lock:
            return kind in self._functions

    def supported_types(self) -> list[str]:
        with self._fn_lock:
            return list(self._functions)

    def type_pattern(self, kind: str) -> str:
        return ""

    def validate_type(self, text: str, kind: str) -> bool:
        # No pattern to test against; only reachable through explicit kind routing.
        return False

    def _process(self, text: str) -> str:
        with self._fn_lock:
            functions = list(self._functions.values())
        for fn in functions:
            result = fn(text)
            if result != text:
                return result
        return text


def personal_info_desensitizer() -> RegexDesensitizer:
    """Coarse catch-all preset: phone, ID, card, e-mail and IPv4 rules."""
    d = RegexDesensitizer("personal_info")
    d.add_pattern("id_card", r"(?<![0-9])(?:\d{17}[\dXx]|\d{15})(?![0-9])", "*" * 18)
    d.add_pattern("bank_card", r"\b\d{16,19}\b", "*" * 16)
    d.add_pattern("mobile_phone", r"(?<![0-9])(1[3-9]\d)\d{4}(\d{4})(?![0-9])", r"\1****\2")
    d.add_pattern("email", r"[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}", "****@****.***")
    d.add_pattern("ip_address", r"\b(?:\d{1,3}\.){3}\d{1,3}\b", "*.*.*.*")
    return d
