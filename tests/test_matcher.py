"""Tests for pattern matchers and the rule-table match engine."""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import pytest

from dlp_masker import strategies as st
from dlp_masker.errors import ConfigurationError
from dlp_masker.matcher import MatchEngine, PatternMatcher, compute_complexity, default_match_engine
from dlp_masker.validators import luhn_valid

PHONE_STRICT = r"(?<![0-9])1[3-9]\d{9}(?![0-9])"


# ── Complexity / ranking ─────────────────────────────────────────────

def test_complexity_of_literal_is_zero():
    assert compute_complexity("abc") == 0


def test_complexity_components():
    # "\" and "+" specials (2 each), \d class (3), "+" quantifier (4)
    assert compute_complexity(r"\d+") == 11
    # specials ( ? ) -> 6, "?" quantifier 4, group 5, lookaround 10
    assert compute_complexity("(?=x)") == 25


def test_more_complex_pattern_ranks_first():
    engine = MatchEngine([
        PatternMatcher("simple", r"\d{11}", priority=100),
        PatternMatcher("strict", PHONE_STRICT, priority=1),
    ])
    assert engine.supported_types() == ["strict", "simple"]


def test_priority_breaks_ties():
    engine = MatchEngine([
        PatternMatcher("low", r"\d{4}", priority=1),
        PatternMatcher("high", r"\d{4}", priority=5),
    ])
    assert engine.supported_types() == ["high", "low"]


def test_invalid_regex_raises():
    with pytest.raises(ConfigurationError):
        PatternMatcher("broken", "(unclosed")


def test_empty_name_or_pattern_raises():
    with pytest.raises(ConfigurationError):
        PatternMatcher("", r"\d")
    with pytest.raises(ConfigurationError):
        PatternMatcher("empty", "")


# ── Detection ────────────────────────────────────────────────────────

def test_claimed_span_not_reported_twice():
    engine = MatchEngine([
        PatternMatcher("simple", r"\d{11}"),
        PatternMatcher("strict", PHONE_STRICT),
    ])
    matches = engine.detect_all("call 13812345678")
    assert len(matches) == 1
    assert matches[0].type == "strict"
    assert matches[0].position == (5, 16)


def test_failed_validation_leaves_span_unclaimed():
    engine = MatchEngine([
        PatternMatcher("card", r"\d{16}", validate=luhn_valid, transform=st.bank_card),
    ])
    assert engine.detect_all("4532015112830367") == []
    assert engine.replace_all_types("4532015112830367") == "4532015112830367"
    assert engine.replace_all_types("4532015112830366") == "453201******0366"


def test_detect_all_types_groups_by_kind():
    engine = MatchEngine([
        PatternMatcher("phone", PHONE_STRICT, transform=st.mobile_phone),
    ])
    found = engine.detect_all_types("a 13812345678 b 13912345678")
    assert list(found) == ["phone"]
    assert [m.content for m in found["phone"]] == ["13812345678", "13912345678"]


def test_search_by_type():
    engine = default_match_engine()
    found = engine.search_by_type("call 13812345678", "mobile_phone")
    assert [m.content for m in found] == ["13812345678"]
    assert engine.search_by_type("call 13812345678", "no_such_kind") == []


# ── Replacement ──────────────────────────────────────────────────────

def test_replace_multiple_spans():
    engine = MatchEngine([PatternMatcher("phone", PHONE_STRICT, transform=st.mobile_phone)])
    assert engine.replace_all_types("a 13812345678 b 13912345678") == "a 138****5678 b 139****5678"


def test_already_masked_text_passes_through():
    engine = MatchEngine([PatternMatcher("phone", PHONE_STRICT, transform=st.mobile_phone)])
    text = "138****5678 and 13912345678"
    assert engine.replace_all_types(text) == text


def test_rule_name_passes_through():
    engine = default_match_engine()
    assert engine.replace_all_types("email") == "email"


def test_replace_by_type_unknown_kind():
    engine = default_match_engine()
    assert engine.replace_by_type("13812345678", "nope") == "13812345678"


def test_replace_by_type_only_touches_kind():
    engine = default_match_engine()
    assert engine.replace_by_type("call 13812345678", "mobile_phone") == "call 138****5678"


# ── Registry ─────────────────────────────────────────────────────────

def test_add_replace_remove():
    engine = MatchEngine()
    engine.add_matcher(PatternMatcher("a", r"\d+"))
    engine.add_matcher(PatternMatcher("a", r"[0-9]+"))
    assert len(engine) == 1
    assert engine.get_matcher("a").pattern == "[0-9]+"
    assert engine.remove_matcher("a") is True
    assert engine.remove_matcher("a") is False


def test_types_version_bumps_on_mutation():
    engine = MatchEngine()
    v0 = engine.types_version
    engine.add_matcher(PatternMatcher("a", r"\d+"))
    engine.update_matcher("a", r"\d{2}")
    engine.remove_matcher("a")
    assert engine.types_version == v0 + 3


def test_update_matcher_recompiles():
    engine = MatchEngine([PatternMatcher("code", r"X\d{3}", transform=st.password)])
    before = engine.get_matcher("code").complexity
    updated = engine.update_matcher("code", r"(?<![A-Z])X\d{3}")
    assert updated.complexity > before
    assert engine.replace_all_types("code X123") == "code ****"


def test_update_unknown_matcher_raises():
    with pytest.raises(ConfigurationError):
        MatchEngine().update_matcher("nope", r"\d")


# ── Built-in rule table ──────────────────────────────────────────────

def test_default_rule_table_size():
    assert len(default_match_engine()) == 36


def test_legacy_phone():
    assert default_match_engine().replace_all_types("call 13812345678") == "call 138****5678"


def test_legacy_id_card_checksum():
    engine = default_match_engine()
    assert engine.replace_all_types("id 11010519491231002X") == "id 110105********002X"
    matches = engine.detect_all_types("id 11010519491231002X")
    assert [m.content for m in matches["id_card"]] == ["11010519491231002X"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
