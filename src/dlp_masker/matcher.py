"""Pattern matcher and match engine (the rule-table detection path).

Matchers are ranked by a complexity score computed from the pattern
source, then by explicit priority.  ``detect_all`` walks them in rank
order and lets the first matcher that validates a span claim it; later
matches overlapping a claimed span are dropped.

    engine = default_match_engine()
    engine.search_by_type("call 13812345678", "mobile_phone")
    # [Match(type='mobile_phone', content='13812345678', start=5, end=16)]
    engine.replace_all_types("call 13812345678")   # "call 138****5678"
"""

from __future__ import annotations
import dataclasses
import re
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable

from loguru import logger

from .errors import ConfigurationError
from .patterns import DEFAULT_MATCHERS, MASK_MARKER, is_rule_name
from .strategies import password as _mask_all
from .types import Match

_SPECIAL_CHARS = ("\\", "^", "$", "*", "+", "?", "{", "}", "[", "]", "(", ")", "|", ".")
_CHAR_CLASSES = ("\\d", "\\w", "\\s", "\\b", "\\D", "\\W", "\\S", "\\B")
_QUANTIFIERS = ("{", "+", "*", "?")
_LOOKAROUNDS = ("(?!", "(?=", "(?<!", "(?<=")


def compute_complexity(pattern: str) -> int:
    """Heuristic specificity score of a regex source string."""
    score = sum(pattern.count(c) * 2 for c in _SPECIAL_CHARS)
    score += sum(pattern.count(c) * 3 for c in _CHAR_CLASSES)
    score += sum(pattern.count(q) * 4 for q in _QUANTIFIERS)
    score += pattern.count("(") * 5
    if any(la in pattern for la in _LOOKAROUNDS):
        score += 10
    return score


@dataclass(frozen=True)
class PatternMatcher:
    """One detection rule.  Immutable; ``MatchEngine.update_matcher`` swaps in a new one."""
    name: str
    pattern: str
    priority: int = 0
    validate: Callable[[str], bool] | None = None
    transform: Callable[[str], str] = _mask_all
    flags: int = re.ASCII
    regex: re.Pattern = field(init=False, repr=False, compare=False)
    complexity: int = field(init=False, compare=False)

    def __post_init__(self) -> None:
        if not self.name:
            raise ConfigurationError("matcher name is required")
        if not self.pattern:
            raise ConfigurationError(f"matcher '{self.name}' has an empty pattern")
        try:
            compiled = re.compile(self.pattern, self.flags)
        except re.error as exc:
            raise ConfigurationError(
                f"failed to compile regex pattern for {self.name}: {exc}"
            ) from exc
        object.__setattr__(self, "regex", compiled)
        object.__setattr__(self, "complexity", compute_complexity(self.pattern))

    def accepts(self, content: str) -> bool:
        return self.validate is None or self.validate(content)

    @property
    def rank(self) -> tuple[int, int]:
        return (-self.complexity, -self.priority)


class MatchEngine:
    """Ordered collection of ``PatternMatcher`` objects."""

    __slots__ = ("_matchers", "_lock", "_types_version")

    def __init__(self, matchers: list[PatternMatcher] | None = None) -> None:
        self._matchers: list[PatternMatcher] = sorted(matchers or [], key=lambda m: m.rank)
        self._lock = threading.RLock()
        self._types_version = 0

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def add_matcher(self, matcher: PatternMatcher) -> None:
        """Add (or replace by name) a matcher and re-sort."""
        with self._lock:
            kept = [m for m in self._matchers if m.name != matcher.name]
            kept.append(matcher)
            self._matchers = sorted(kept, key=lambda m: m.rank)
            self._types_version += 1
        logger.debug("matcher added: {} (complexity={}, priority={})",
                     matcher.name, matcher.complexity, matcher.priority)

    def remove_matcher(self, name: str) -> bool:
        with self._lock:
            before = len(self._matchers)
            self._matchers = [m for m in self._matchers if m.name != name]
            removed = len(self._matchers) != before
            if removed:
                self._types_version += 1
        if removed:
            logger.debug("matcher removed: {}", name)
        return removed

    def get_matcher(self, name: str) -> PatternMatcher | None:
        with self._lock:
            for m in self._matchers:
                if m.name == name:
                    return m
        return None

    def update_matcher(
        self,
        name: str,
        pattern: str,
        validate: Callable[[str], bool] | None = None,
        transform: Callable[[str], str] | None = None,
    ) -> PatternMatcher:
        """Recompile a matcher in place of the old one.  Raises on unknown name or bad regex."""
        with self._lock:
            current = self.get_matcher(name)
            if current is None:
                raise ConfigurationError(f"matcher {name} not found")
            updated = dataclasses.replace(
                current,
                pattern=pattern,
                validate=validate,
                transform=transform or current.transform,
            )
            self._matchers = sorted(
                [updated if m.name == name else m for m in self._matchers],
                key=lambda m: m.rank,
            )
            self._types_version += 1
        return updated

    def matchers(self) -> list[PatternMatcher]:
        with self._lock:
            return list(self._matchers)

    def supported_types(self) -> list[str]:
        """Matcher names in rank order."""
        with self._lock:
            return [m.name for m in self._matchers]

    @property
    def types_version(self) -> int:
        return self._types_version

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    def detect_all(self, text: str) -> list[Match]:
        """All validated, non-overlapping matches, sorted by start offset."""
        if not text:
            return []
        claimed: list[tuple[int, int]] = []
        results: list[Match] = []
        for matcher in self.matchers():
            for m in matcher.regex.finditer(text):
                start, end = m.span()
                if start == end:
                    continue
                if any(start < e and end > s for s, e in claimed):
                    continue
                content = m.group()
                if not matcher.accepts(content):
                    continue
                claimed.append((start, end))
                results.append(Match(matcher.name, content, start, end))
        results.sort(key=lambda r: r.start)
        return results

    def detect_all_types(self, text: str) -> dict[str, list[Match]]:
        grouped: dict[str, list[Match]] = defaultdict(list)
        for match in self.detect_all(text):
            grouped[match.type].append(match)
        return dict(grouped)

    def search_by_type(self, text: str, kind: str) -> list[Match]:
        """Validated matches of one matcher, ignoring the others."""
        matcher = self.get_matcher(kind)
        if matcher is None or not text:
            return []
        return [
            Match(kind, m.group(), m.start(), m.end())
            for m in matcher.regex.finditer(text)
            if m.end() > m.start() and matcher.accepts(m.group())
        ]

    # ------------------------------------------------------------------
    # Replacement
    # ------------------------------------------------------------------

    @staticmethod
    def _passthrough(text: str) -> bool:
        return not text or is_rule_name(text) or MASK_MARKER in text

    def replace_all_types(self, text: str) -> str:
        """Mask every detected span with its matcher's transformer."""
        if self._passthrough(text):
            return text
        matches = self.detect_all(text)
        if not matches:
            return text
        by_name = {m.name: m for m in self.matchers()}
        result = text
        # Right-to-left so earlier offsets stay valid.
        for match in reversed(matches):
            matcher = by_name.get(match.type)
            if matcher is None:
                continue
            result = result[:match.start] + matcher.transform(match.content) + result[match.end:]
        return result

    def replace_by_type(self, text: str, kind: str) -> str:
        """Mask only spans of matcher ``kind``; unknown kinds leave text unchanged."""
        if self._passthrough(text):
            return text
        matcher = self.get_matcher(kind)
        if matcher is None:
            return text

        def repl(m: re.Match) -> str:
            content = m.group()
            return matcher.transform(content) if matcher.accepts(content) else content

        return matcher.regex.sub(repl, text)

    def __len__(self) -> int:
        with self._lock:
            return len(self._matchers)


def default_matchers() -> list[PatternMatcher]:
    return [
        PatternMatcher(name, pattern, priority, validator, transformer)
        for name, pattern, priority, validator, transformer in DEFAULT_MATCHERS
    ]


def default_match_engine() -> MatchEngine:
    """A fresh engine loaded with the built-in rule table."""
    return MatchEngine(default_matchers())
