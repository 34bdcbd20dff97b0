"""Cache-key codec.

Turns ``(namespace, payload)`` into a short, collision-resistant key.
Short payloads are kept verbatim; longer ones collapse to a 64-bit
xxhash plus the payload length.

    codec = CacheKeyCodec()
    codec.key("phone", "13812345678")          # "phone:13812345678"
    codec.key("plugin", long_text)             # "plugin:h1f3a...:4096"
    codec.key_with_context("plugin", "email", long_text)   # "ch:9bc0...:4096"

The codec is not itself a cache; it only builds keys.
"""

from __future__ import annotations
import threading

import xxhash

SHORT_DATA_LIMIT = 32
HASH_KEY_LIMIT = 16
FAST_KEY_PREFIX = 8
CONTEXT_CACHE_LIMIT = 100

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _hash64(data: str) -> int:
    return xxhash.xxh64_intdigest(data.encode("utf-8"))


def _to_base36(n: int) -> str:
    if n == 0:
        return "0"
    digits = []
    while n:
        n, rem = divmod(n, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


class CacheKeyCodec:
    """Builds cache keys; memoizes context hashes (bounded)."""

    __slots__ = ("_context_hashes", "_lock")

    def __init__(self) -> None:
        self._context_hashes: dict[str, int] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Key builders
    # ------------------------------------------------------------------

    def key(self, namespace: str, data: str) -> str:
        if len(data) <= SHORT_DATA_LIMIT:
            return f"{namespace}:{data}"
        return f"{namespace}:h{_hash64(data):x}:{len(data)}"

    def key_with_context(self, desensitizer: str, data_type: str, data: str) -> str:
        """Key scoped to a (desensitizer, type) pair.

        The pair's hash is memoized and XORed with the data hash, so the
        context string is not re-hashed on every call.
        """
        if len(data) <= SHORT_DATA_LIMIT:
            return f"{desensitizer}:{data_type}:{data}"
        combined = self._context_hash(f"{desensitizer}:{data_type}") ^ _hash64(data)
        return f"ch:{combined:x}:{len(data)}"

    def fast_key(self, data: str) -> str:
        """Prefix + hash of the remainder + length; the legacy-path cache key."""
        if len(data) <= SHORT_DATA_LIMIT:
            return data
        prefix = data[:FAST_KEY_PREFIX]
        return f"{prefix}h{_hash64(data[FAST_KEY_PREFIX:]):x}:{len(data)}"

    def hash_key(self, data: str) -> str:
        if len(data) <= HASH_KEY_LIMIT:
            return data
        return _to_base36(_hash64(data))

    def layered_key(self, *layers: str) -> str:
        """All but the last layer are joined verbatim; the last one is hashed if long."""
        if not layers:
            return ""
        if len(layers) == 1:
            return self.hash_key(layers[0])
        head = ":".join(layers[:-1])
        return self.key(head, layers[-1])

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def stats(self) -> dict[str, object]:
        with self._lock:
            size = len(self._context_hashes)
        return {"algorithm": "xxhash64", "prefix_cache_size": size}

    def clear_prefix_cache(self) -> None:
        with self._lock:
            self._context_hashes.clear()

    def _context_hash(self, context: str) -> int:
        with self._lock:
            cached = self._context_hashes.get(context)
            if cached is not None:
                return cached
            value = _hash64(context)
            if len(self._context_hashes) < CONTEXT_CACHE_LIMIT:
                self._context_hashes[context] = value
            return value
