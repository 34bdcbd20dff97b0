"""Tests for the cache-key codec and the LRU container."""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import pytest

from dlp_masker.cache import LRUCache
from dlp_masker.cachekey import CONTEXT_CACHE_LIMIT, CacheKeyCodec
from dlp_masker.errors import ConfigurationError

LONG = "x" * 100


# ── Keys ─────────────────────────────────────────────────────────────

def test_short_data_kept_verbatim():
    codec = CacheKeyCodec()
    assert codec.key("phone", "13812345678") == "phone:13812345678"


def test_long_data_hashed_with_length():
    codec = CacheKeyCodec()
    key = codec.key("plugin", LONG)
    assert key.startswith("plugin:h")
    assert key.endswith(":100")
    assert LONG not in key


def test_keys_are_deterministic_and_distinct():
    codec = CacheKeyCodec()
    assert codec.key("ns", LONG) == CacheKeyCodec().key("ns", LONG)
    assert codec.key("ns", LONG) != codec.key("ns", "y" * 100)


def test_key_with_context_short():
    codec = CacheKeyCodec()
    assert codec.key_with_context("legacy", "email", "a@b.io") == "legacy:email:a@b.io"


def test_key_with_context_separates_contexts():
    codec = CacheKeyCodec()
    a = codec.key_with_context("plugin", "phone", LONG)
    b = codec.key_with_context("plugin", "email", LONG)
    assert a.startswith("ch:")
    assert a != b
    assert a == codec.key_with_context("plugin", "phone", LONG)


def test_context_hash_cache_is_bounded():
    codec = CacheKeyCodec()
    for i in range(CONTEXT_CACHE_LIMIT + 50):
        codec.key_with_context("plugin", f"kind{i}", LONG)
    assert codec.stats()["prefix_cache_size"] == CONTEXT_CACHE_LIMIT
    codec.clear_prefix_cache()
    assert codec.stats()["prefix_cache_size"] == 0


def test_fast_key():
    codec = CacheKeyCodec()
    assert codec.fast_key("short") == "short"
    text = "prefix__" + "z" * 60
    key = codec.fast_key(text)
    assert key.startswith("prefix__h")
    assert key.endswith(f":{len(text)}")


def test_hash_key_and_layered_key():
    codec = CacheKeyCodec()
    assert codec.hash_key("abc") == "abc"
    assert codec.hash_key(LONG).isalnum()
    assert codec.layered_key("a", "b", "c") == "a:b:c"
    assert codec.layered_key() == ""


# ── LRU ──────────────────────────────────────────────────────────────

def test_lru_get_miss():
    cache = LRUCache(2)
    assert cache.get("nope") == (None, False)


def test_lru_evicts_least_recent():
    cache = LRUCache(2)
    cache.put("a", 1)
    cache.put("b", 2)
    cache.get("a")          # refresh a
    cache.put("c", 3)
    assert "a" in cache
    assert "b" not in cache
    assert cache.size() == 2
    assert cache.capacity() == 2


def test_lru_clear():
    cache = LRUCache()
    cache.put("a", 1)
    cache.clear()
    assert len(cache) == 0


def test_lru_rejects_bad_capacity():
    with pytest.raises(ConfigurationError):
        LRUCache(0)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
