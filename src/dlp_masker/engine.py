"""DlpEngine: the public call surface.

Two routes share one result cache:

- legacy: the ``MatchEngine`` rule table (36 built-in kinds);
- plugin: the ``DesensitizerManager`` (phone, e-mail, bank card, ID card
  by default), with the ``MatchEngine`` as fallback when the manager
  cannot handle a request.

Usage:

    engine = DlpEngine()
    engine.enable()
    engine.desensitize_text("call 13812345678")                # "call 138****5678"
    engine.desensitize_specific_type("test@example.com", "email")
"""

from __future__ import annotations
import difflib
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from loguru import logger

from .base import Desensitizer
from .cache import LRUCache
from .cachekey import SHORT_DATA_LIMIT, CacheKeyCodec
from .desensitizers import ChineseNameDesensitizer
from .errors import ConfigurationError, ProcessingError
from .manager import DEFAULT_PRECEDENCE, DesensitizerManager
from .matcher import MatchEngine, PatternMatcher, default_match_engine
from .security import SecurityConfig, SecurityLayer
from .strategies import Strategy, StrategyRegistry
from .structs import DEFAULT_MAX_DEPTH, StructProcessor
from .types import CacheStats, DesensitizationResult, ManagerStats, Match


@dataclass
class EngineConfig:
    enabled: bool = False
    plugin_architecture: bool = False
    cache_capacity: int = 1000
    cache_max_text: int = 5000        # longer texts bypass the result cache
    precedence: tuple[str, ...] = DEFAULT_PRECEDENCE
    register_chinese_name: bool = False
    max_struct_depth: int = DEFAULT_MAX_DEPTH
    security: SecurityConfig = field(default_factory=SecurityConfig)


class DlpEngine:
    """Masking facade; disabled until ``enable()`` is called."""

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        match_engine: MatchEngine | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or EngineConfig()
        self.match_engine = match_engine or default_match_engine()
        self.strategies = StrategyRegistry()
        self.manager = DesensitizerManager(self.config.precedence)
        self.security = SecurityLayer(self.manager, self.config.security, clock)
        self.security.register_defaults()
        if self.config.register_chinese_name:
            self.manager.register(ChineseNameDesensitizer())
        self.structs = StructProcessor(self, self.strategies, self.config.max_struct_depth)

        self._cache = LRUCache(self.config.cache_capacity)
        self._codec = CacheKeyCodec()
        self._stats_lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._cache_version = self.manager.current_version

        self._types_lock = threading.RLock()
        self._types_cache: list[str] | None = None
        self._types_cache_key = -1

        self._enabled = self.config.enabled
        self._plugin = self.config.plugin_architecture

    # ------------------------------------------------------------------
    # Switches
    # ------------------------------------------------------------------

    def enable(self) -> None:
        self._enabled = True
        logger.debug("dlp engine enabled")

    def disable(self) -> None:
        self._enabled = False
        logger.debug("dlp engine disabled")

    def is_enabled(self) -> bool:
        return self._enabled

    def enable_plugin_architecture(self) -> None:
        self._plugin = True
        logger.debug("plugin architecture enabled")

    def disable_plugin_architecture(self) -> None:
        self._plugin = False
        logger.debug("plugin architecture disabled, using rule table")

    def is_plugin_architecture_enabled(self) -> bool:
        return self._plugin

    def version(self) -> int:
        """Manager rule version; bumps on every register/upsert/unregister."""
        return self.manager.current_version

    # ------------------------------------------------------------------
    # Text
    # ------------------------------------------------------------------

    def desensitize_text(self, text: str) -> str:
        if not self._enabled or not text:
            return text
        if len(text) > self.config.cache_max_text:
            return self._desensitize_uncached(text)

        self._sync_cache_version()
        return self._cached(self._text_key(text), text, self._desensitize_uncached)

    def _desensitize_uncached(self, text: str) -> str:
        if self._plugin:
            try:
                return self.manager.auto_detect(text).desensitized
            except ProcessingError as exc:
                logger.debug("auto-detect failed, using rule table: {}", exc)
        return self.match_engine.replace_all_types(text)

    def desensitize_specific_type(self, text: str, kind: str) -> str:
        if not self._enabled or not text:
            return text
        if len(text) > self.config.cache_max_text:
            return self._specific_uncached(text, kind)

        self._sync_cache_version()
        return self._cached(self._type_key(text, kind), text, lambda t: self._specific_uncached(t, kind))

    def _specific_uncached(self, text: str, kind: str) -> str:
        if self._plugin:
            try:
                return self.manager.process_with_type(kind, text).desensitized
            except ProcessingError:
                pass
        return self.match_engine.replace_by_type(text, kind)

    # Result keys: "t|" for whole-text calls, "s|" for typed calls, then the
    # route and whether the payload is verbatim ("v") or hashed ("h").

    def _text_key(self, text: str) -> str:
        form = "h" if len(text) > SHORT_DATA_LIMIT else "v"
        if self._plugin:
            return f"t|plugin|{form}|{self._codec.key('plugin', text)}"
        return f"t|legacy|{form}|{self._codec.fast_key(text)}"

    def _type_key(self, text: str, kind: str) -> str:
        form = "h" if len(text) > SHORT_DATA_LIMIT else "v"
        route = "plugin" if self._plugin else "legacy"
        return f"s|{route}|{form}|{self._codec.key_with_context(route, kind, text)}"

    def _cached(self, key: str, text: str, compute: Callable[[str], str]) -> str:
        cached, found = self._cache.get(key)
        if found:
            with self._stats_lock:
                self._hits += 1
            return cached
        with self._stats_lock:
            self._misses += 1
        result = compute(text)
        # Only changed results are cached.
        if result != text:
            self._cache.put(key, result)
        return result

    def desensitize_with_deadline(
        self,
        text: str,
        deadline: float | None,
        clock: Callable[[], float] = time.monotonic,
    ) -> str:
        """``desensitize_text`` that refuses to start once ``clock() >= deadline``."""
        if deadline is not None and clock() >= deadline:
            raise ProcessingError("deadline exceeded", text)
        return self.desensitize_text(text)

    def detect_sensitive_info(self, text: str) -> dict[str, list[Match]]:
        """Rule-table spans, grouped by kind, that the active route masks.

        A span the current route leaves as it was (a four-letter word the
        username rule keeps, an IP address on the plugin route) is not
        reported, so every reported span differs in ``desensitize_text``.
        """
        if not self._enabled or not text:
            return {}
        matches = self.match_engine.detect_all(text)
        if not matches:
            return {}
        touched = _touched_ranges(text, self._desensitize_uncached(text))
        found: dict[str, list[Match]] = {}
        for match in matches:
            if any(_overlaps(match, r) for r in touched):
                found.setdefault(match.type, []).append(match)
        return found

    def secure_desensitize(self, text: str, client_id: str = "default") -> DesensitizationResult:
        """Rate-limited, bypass-aware masking.  Raises ``SecurityError`` on refusal."""
        if not self._enabled:
            return DesensitizationResult(original=text, desensitized=text)
        return self.security.secure_desensitize(text, client_id)

    # ------------------------------------------------------------------
    # Structs
    # ------------------------------------------------------------------

    def desensitize_struct(self, obj: Any) -> Any:
        if not self._enabled:
            return obj
        return self.structs.desensitize(obj)

    def batch_desensitize_struct(self, items: list | tuple) -> list | tuple:
        if not self._enabled:
            return items
        return self.structs.batch_desensitize(items)

    # ------------------------------------------------------------------
    # Rule table
    # ------------------------------------------------------------------

    def register_custom_matcher(self, matcher: PatternMatcher | None) -> None:
        if matcher is None or not matcher.name or not matcher.pattern:
            raise ConfigurationError("invalid matcher configuration: name and pattern are required")
        self.match_engine.add_matcher(matcher)
        with self._types_lock:
            self._types_cache = None
        self._cache.clear()

    def get_supported_types(self) -> list[str]:
        current = self.match_engine.types_version
        cached = self._types_cache
        if cached is not None and self._types_cache_key == current:
            return list(cached)
        with self._types_lock:
            if self._types_cache is None or self._types_cache_key != current:
                self._types_cache = self.match_engine.supported_types()
                self._types_cache_key = current
            return list(self._types_cache)

    def register_strategy(self, name: str, strategy: Strategy) -> None:
        if not name or not callable(strategy):
            raise ConfigurationError("strategy needs a name and a callable")
        self.strategies.register(name, strategy)

    # ------------------------------------------------------------------
    # Desensitizers
    # ------------------------------------------------------------------

    def register_custom_desensitizer(self, desensitizer: Desensitizer) -> None:
        self.manager.register(desensitizer)

    def unregister_desensitizer(self, name: str) -> None:
        self.manager.unregister(name)

    def upsert_desensitizer(self, desensitizer: Desensitizer) -> int:
        version = self.manager.upsert(desensitizer)
        self._sync_cache_version()
        return version

    def list_registered_desensitizers(self) -> list[str]:
        return self.manager.list_names()

    def get_desensitizer_stats(self) -> ManagerStats:
        return self.manager.stats()

    def enable_desensitizer(self, name: str) -> None:
        desensitizer = self.manager.get(name)
        if desensitizer is None:
            raise ConfigurationError(f"desensitizer '{name}' not found")
        desensitizer.enable()
        self._cache.clear()

    def disable_desensitizer(self, name: str) -> None:
        desensitizer = self.manager.get(name)
        if desensitizer is None:
            raise ConfigurationError(f"desensitizer '{name}' not found")
        desensitizer.disable()
        self._cache.clear()

    def get_supported_types_with_plugin(self) -> dict[str, list[str]]:
        if not self._plugin:
            return {}
        return self.manager.type_mapping()

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    def _sync_cache_version(self) -> None:
        current = self.manager.current_version
        if current != self._cache_version:
            self._cache.clear()
            self._cache_version = current
            logger.debug("rule version {} seen, result cache cleared", current)

    def clear_cache(self) -> None:
        self._cache.clear()
        with self._stats_lock:
            self._hits = 0
            self._misses = 0

    def get_cache_stats(self) -> tuple[int, int]:
        with self._stats_lock:
            return self._hits, self._misses

    def cache_stats(self) -> CacheStats:
        hits, misses = self.get_cache_stats()
        return CacheStats(hits, misses, self._cache.size())

    def clear_desensitizer_caches(self) -> None:
        self.manager.clear_all_caches()
        self.clear_cache()


def _touched_ranges(original: str, masked: str) -> list[tuple[int, int]]:
    """Ranges of ``original`` that differ in ``masked``.

    Insertions come back as empty ranges at their position.
    """
    if original == masked:
        return []
    matcher = difflib.SequenceMatcher(None, original, masked, autojunk=False)
    return [(i1, i2) for tag, i1, i2, _, _ in matcher.get_opcodes() if tag != "equal"]


def _overlaps(match: Match, touched: tuple[int, int]) -> bool:
    start, end = touched
    if start == end:
        return match.start < start < match.end
    return start < match.end and match.start < end
