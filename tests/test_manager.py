"""Tests for the desensitizer manager: registry, routing and auto-detect."""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import pytest

from dlp_masker.base import CustomFunctionDesensitizer, RegexDesensitizer
from dlp_masker.desensitizers import PhoneDesensitizer, default_desensitizers
from dlp_masker.errors import ConfigurationError, ProcessingError
from dlp_masker.manager import DesensitizerManager


@pytest.fixture
def manager():
    m = DesensitizerManager()
    for d in default_desensitizers():
        m.register(d)
    return m


def _boom(text):
    raise RuntimeError("boom")


# ── Registration ─────────────────────────────────────────────────────

def test_register_rejects_none_and_empty_name():
    m = DesensitizerManager()
    with pytest.raises(ConfigurationError):
        m.register(None)
    with pytest.raises(ConfigurationError):
        m.register(CustomFunctionDesensitizer(""))


def test_register_rejects_duplicate(manager):
    with pytest.raises(ConfigurationError, match="already registered"):
        manager.register(PhoneDesensitizer())


def test_type_mapping_built_from_kinds(manager):
    mapping = manager.type_mapping()
    assert mapping["mobile"] == ["phone"]
    assert mapping["credit_card"] == ["bank_card"]
    assert "chinese_name" not in mapping


def test_upsert_versions_strictly_increase(manager):
    v0 = manager.current_version
    v1 = manager.upsert(PhoneDesensitizer())
    v2 = manager.upsert(PhoneDesensitizer())
    assert v0 < v1 < v2
    assert len(manager) == 4


def test_upsert_keeps_routing_order():
    m = DesensitizerManager()
    first = RegexDesensitizer("first")
    first.add_pattern("token", r"tok_\w+", "tok_***")
    second = RegexDesensitizer("second")
    second.add_pattern("token", r"tok_\w+", "[token]")
    m.register(first)
    m.register(second)

    replacement = RegexDesensitizer("first")
    replacement.add_pattern("token", r"tok_\w+", "<hidden>")
    m.upsert(replacement)
    assert m.type_mapping()["token"] == ["first", "second"]
    assert m.process_with_type("token", "tok_abc").desensitized == "<hidden>"


def test_upsert_drops_kinds_no_longer_supported():
    m = DesensitizerManager()
    d = RegexDesensitizer("rules")
    d.add_pattern("a", "a", "*")
    d.add_pattern("b", "b", "*")
    m.register(d)
    narrowed = RegexDesensitizer("rules")
    narrowed.add_pattern("a", "a", "*")
    m.upsert(narrowed)
    assert "b" not in m.type_mapping()


def test_unregister(manager):
    manager.unregister("email")
    assert "email" not in manager
    assert "mail" not in manager.type_mapping()
    with pytest.raises(ConfigurationError, match="not found"):
        manager.unregister("email")


# ── Routing ──────────────────────────────────────────────────────────

def test_process_with_type(manager):
    result = manager.process_with_type("mobile", "13812345678")
    assert result.desensitized == "138****5678"
    assert result.type_used == "mobile"
    assert result.desensitizer_name == "phone"
    assert result.changed


def test_process_with_unknown_type_carries_text(manager):
    with pytest.raises(ProcessingError) as info:
        manager.process_with_type("passport", "E12345678")
    assert info.value.text == "E12345678"


def test_disabled_desensitizer_is_skipped_by_type(manager):
    manager.get("phone").disable()
    with pytest.raises(ProcessingError):
        manager.process_with_type("phone", "13812345678")


def test_disabled_desensitizer_by_name_reports_error(manager):
    manager.get("phone").disable()
    result = manager.process_with_desensitizer("phone", "13812345678")
    assert result.desensitized == "13812345678"
    assert result.error == "desensitizer 'phone' is disabled"


def test_unknown_name_raises(manager):
    with pytest.raises(ConfigurationError):
        manager.process_with_desensitizer("nope", "x")


def test_failing_desensitizer_fails_open():
    m = DesensitizerManager()
    d = CustomFunctionDesensitizer("fragile")
    d.add_function("fragile", _boom)
    m.register(d)
    result = m.process_with_desensitizer("fragile", "secret")
    assert result.desensitized == "secret"
    assert result.error == "boom"
    metrics = m.stats().performance_metrics["fragile"]
    assert metrics.error_count == 1
    assert metrics.success_rate == 0.0


# ── Auto-detect ──────────────────────────────────────────────────────

def test_auto_detect_single_type(manager):
    result = manager.auto_detect("13812345678")
    assert result.desensitized == "138****5678"
    assert result.type_used == "phone"
    assert result.desensitizer_name == "phone"


def test_auto_detect_email(manager):
    result = manager.auto_detect("test@example.com")
    assert result.desensitized == "t**@example.com"
    assert result.type_used == "email"


def test_auto_detect_multiple_claimants_is_mixed(manager):
    # 18 digits: both a card-shaped number and a valid ID
    result = manager.auto_detect("110105194912310011")
    assert result.desensitized == "110105********0011"
    assert result.type_used == "mixed"
    assert result.metadata["candidates"] == ["bank_card", "id_card"]


def test_auto_detect_mixed_prose(manager):
    result = manager.auto_detect("手机13812345678邮箱test@example.com")
    assert result.desensitized == "手机138****5678邮箱t**@example.com"
    assert result.type_used == ""


def test_auto_detect_nothing_sensitive(manager):
    result = manager.auto_detect("hello world")
    assert result.desensitized == "hello world"
    assert not result.changed


def test_disabled_manager_passes_through(manager):
    manager.disable()
    assert not manager.is_enabled()
    assert manager.auto_detect("13812345678").desensitized == "13812345678"
    manager.enable()
    assert manager.auto_detect("13812345678").desensitized == "138****5678"


def test_custom_precedence(manager):
    manager.set_precedence(["email"])
    result = manager.auto_detect("13812345678 test@example.com")
    assert result.desensitized == "13812345678 t**@example.com"


# ── Switches / stats ─────────────────────────────────────────────────

def test_disable_all_and_enable_all(manager):
    manager.disable_all()
    assert manager.stats().enabled_desensitizers == 0
    manager.enable_all()
    assert manager.stats().enabled_desensitizers == 4


def test_stats(manager):
    manager.process_with_type("phone", "13812345678")
    stats = manager.stats()
    assert stats.total_desensitizers == 4
    assert stats.type_coverage["phone"] == 1
    assert stats.performance_metrics["phone"].total_calls == 1


def test_detailed_stats_and_cache_clear(manager):
    manager.process_with_type("phone", "13812345678")
    detail = manager.detailed_stats()
    assert detail["manager_enabled"] is True
    assert detail["version"] == manager.current_version
    assert detail["cache_stats"]["phone"].size == 1
    manager.clear_all_caches()
    assert manager.get("phone").cache_stats().size == 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
