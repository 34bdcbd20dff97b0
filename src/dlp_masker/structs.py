"""Tag-driven masking of dataclasses and plain objects.

Fields opt in through a ``dlp`` tag:

    @dataclass
    class User:
        phone: str = field(metadata={"dlp": "phone"})
        email: str = field(metadata={"dlp": "email"})
        note: str = field(metadata={"dlp": "custom:clear"})
        address: Address = field(metadata={"dlp": "recursive"})
        secret: str = field(metadata={"dlp": "-"})

Plain classes declare the same tags as ``__dlp_tags__ = {"attr": "tag"}``.

Tag grammar: ``"<kind>"``, ``"<kind>,recursive"``, ``"<kind>,skip"``,
``"-"`` and ``"custom:<strategy>"``.  Untagged fields are left alone.
"""

from __future__ import annotations
import dataclasses
from dataclasses import dataclass
from typing import Any, Protocol

from loguru import logger

from .errors import DLPError, ValidationError
from .strategies import StrategyRegistry

DEFAULT_MAX_DEPTH = 10
TAG_KEY = "dlp"


class TextMasker(Protocol):
    def desensitize_text(self, text: str) -> str: ...

    def desensitize_specific_type(self, text: str, kind: str) -> str: ...


@dataclass(frozen=True, slots=True)
class TagConfig:
    type: str = ""
    recursive: bool = False
    skip: bool = False
    custom: str = ""


def parse_tag(tag: str | None) -> TagConfig | None:
    """Parse a ``dlp`` tag.  Empty tag -> None; a tag with no usable part raises."""
    if not tag:
        return None
    if tag.strip() == "-":
        return TagConfig(skip=True)

    kind, custom = "", ""
    recursive = skip = False
    for part in tag.split(","):
        part = part.strip()
        if not part:
            continue
        if part == "recursive":
            recursive = True
        elif part == "skip":
            skip = True
        elif part.startswith("custom:"):
            custom = part[len("custom:"):]
        elif not kind:
            kind = part

    if not (kind or custom or skip or recursive):
        raise ValidationError(f"invalid dlp tag configuration: {tag!r}")
    return TagConfig(kind, recursive, skip, custom)


def is_struct(obj: Any) -> bool:
    if isinstance(obj, type):
        return False
    return dataclasses.is_dataclass(obj) or hasattr(type(obj), "__dlp_tags__")


def field_tags(obj: Any) -> list[tuple[str, str]]:
    """(attribute, tag) pairs; ``__dlp_tags__`` entries override dataclass metadata."""
    tags: dict[str, str] = {}
    if dataclasses.is_dataclass(obj):
        for f in dataclasses.fields(obj):
            tag = f.metadata.get(TAG_KEY, "")
            if tag:
                tags[f.name] = tag
    tags.update(getattr(type(obj), "__dlp_tags__", None) or {})
    return list(tags.items())


class StructProcessor:
    """Walks tagged objects and masks their fields through ``masker``."""

    def __init__(
        self,
        masker: TextMasker,
        strategies: StrategyRegistry | None = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self.masker = masker
        self.strategies = strategies or StrategyRegistry()
        self.max_depth = max_depth

    def desensitize(self, obj: Any) -> Any:
        """Mask ``obj`` in place; returns it (or its rebuilt copy if frozen)."""
        if obj is None:
            raise ValidationError("target cannot be None")
        if not is_struct(obj):
            raise ValidationError(
                f"target must be a dataclass instance or declare __dlp_tags__, got {type(obj).__name__}"
            )
        return self._walk(obj, 0, set(), None)

    def batch_desensitize(self, items: list | tuple) -> list | tuple:
        if not isinstance(items, (list, tuple)):
            raise ValidationError("input must be a list or tuple")
        results = []
        for i, item in enumerate(items):
            try:
                results.append(self._walk(item, 0, set(), None))
            except DLPError as exc:
                logger.warning("struct at index {} not desensitized: {}", i, exc)
                results.append(item)
        if isinstance(items, tuple):
            return tuple(results)
        items[:] = results
        return items

    # ------------------------------------------------------------------
    # Walking
    # ------------------------------------------------------------------

    def _walk(self, value: Any, depth: int, seen: set[int], inherited: TagConfig | None) -> Any:
        if depth > self.max_depth:
            raise ValidationError("maximum recursion depth exceeded")
        if value is None:
            return value
        if isinstance(value, str):
            if inherited is not None and (inherited.type or inherited.custom):
                return self._mask_string(value, inherited)
            return value
        if not (is_struct(value) or isinstance(value, (list, tuple, dict))):
            return value

        if id(value) in seen:
            return value
        seen.add(id(value))

        if is_struct(value):
            return self._walk_struct(value, depth, seen)
        if isinstance(value, list):
            for i, item in enumerate(value):
                value[i] = self._walk_item(item, depth, seen, inherited, i)
            return value
        if isinstance(value, tuple):
            items = [self._walk_item(item, depth, seen, inherited, i) for i, item in enumerate(value)]
            if all(a is b for a, b in zip(items, value)):
                return value
            if hasattr(value, "_fields"):
                return type(value)(*items)
            return type(value)(items)
        for key in list(value):
            value[key] = self._walk_item(value[key], depth, seen, inherited, key)
        return value

    def _walk_item(self, item: Any, depth: int, seen: set[int], inherited: TagConfig | None, where: Any) -> Any:
        try:
            return self._walk(item, depth + 1, seen, inherited)
        except DLPError as exc:
            logger.warning("element {!r} not desensitized: {}", where, exc)
            return item

    def _walk_struct(self, obj: Any, depth: int, seen: set[int]) -> Any:
        changes: dict[str, Any] = {}
        for name, tag in field_tags(obj):
            try:
                config = parse_tag(tag)
            except ValidationError as exc:
                logger.debug("field {} ignored: {}", name, exc)
                continue
            if config is None or config.skip:
                continue
            if not hasattr(obj, name):
                continue
            current = getattr(obj, name)
            try:
                updated = self._apply(current, config, depth, seen)
            except DLPError as exc:
                logger.warning("field {}.{} not desensitized: {}", type(obj).__name__, name, exc)
                continue
            if updated is not current:
                changes[name] = updated
        return _write_back(obj, changes)

    def _apply(self, value: Any, config: TagConfig, depth: int, seen: set[int]) -> Any:
        if isinstance(value, str):
            return self._mask_string(value, config)
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return self._mask_number(value, config)
        if config.recursive and (is_struct(value) or isinstance(value, (list, tuple, dict))):
            return self._walk(value, depth + 1, seen, config)
        return value

    # ------------------------------------------------------------------
    # Leaves
    # ------------------------------------------------------------------

    def _strategy(self, name: str):
        strategy = self.strategies.get(name)
        if strategy is None:
            raise ValidationError(f"custom strategy '{name}' not found")
        return strategy

    def _mask_string(self, value: str, config: TagConfig) -> str:
        if not value:
            return value
        if config.custom:
            return self._strategy(config.custom)(value)
        if config.type:
            return self.masker.desensitize_specific_type(value, config.type)
        return self.masker.desensitize_text(value)

    def _mask_number(self, value: int | float, config: TagConfig) -> int | float:
        if not (config.type or config.custom):
            return value
        text = str(value)
        if config.custom:
            masked = self._strategy(config.custom)(text)
        else:
            masked = self.masker.desensitize_specific_type(text, config.type)
        try:
            return type(value)(masked)
        except ValueError:
            if masked != text:
                logger.warning(
                    "{} field tagged {!r} masks to non-numeric text; value kept unmasked",
                    type(value).__name__, config.custom or config.type,
                )
            return value


def _write_back(obj: Any, changes: dict[str, Any]) -> Any:
    if not changes:
        return obj
    params = getattr(type(obj), "__dataclass_params__", None)
    if params is not None and params.frozen:
        try:
            return dataclasses.replace(obj, **changes)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"cannot rebuild {type(obj).__name__}: {exc}") from exc
    for name, value in changes.items():
        try:
            setattr(obj, name, value)
        except AttributeError as exc:
            logger.warning("field {}.{} is read-only: {}", type(obj).__name__, name, exc)
    return obj
