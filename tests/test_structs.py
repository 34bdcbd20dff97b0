"""Tests for tag-driven struct masking."""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from collections import namedtuple
from dataclasses import dataclass, field
from typing import Any, Optional

import pytest

from dlp_masker.errors import ValidationError
from dlp_masker.log import reset_logging, setup_logging
from dlp_masker.strategies import StrategyRegistry
from dlp_masker.structs import StructProcessor, TagConfig, field_tags, is_struct, parse_tag


class FakeMasker:
    """Records calls; typed requests come back as ``<kind>:***``."""

    def __init__(self):
        self.calls = []

    def desensitize_text(self, text):
        self.calls.append(("text", text))
        return "*" * len(text)

    def desensitize_specific_type(self, text, kind):
        self.calls.append((kind, text))
        return f"{kind}:***"


def tag(value, **kw):
    return field(metadata={"dlp": value}, **kw)


@dataclass
class User:
    phone: str = tag("phone", default="")
    note: str = tag("custom:password", default="")
    secret: str = tag("-", default="")
    skipped: str = tag("email,skip", default="")
    broken: str = tag(",,", default="")
    plain: str = ""
    age: int = tag("phone", default=0)
    active: bool = tag("phone", default=True)


@dataclass(frozen=True)
class Card:
    number: str = tag("bank_card", default="")


@dataclass
class Holder:
    card: Optional[Card] = tag("recursive", default=None)
    phones: list = tag("phone,recursive", default_factory=list)
    labels: list = tag("phone", default_factory=list)
    extra: dict = tag("email,recursive", default_factory=dict)
    pair: tuple = tag("phone,recursive", default=())


@dataclass
class Node:
    label: str = tag("phone", default="")
    child: Any = tag("recursive", default=None)


class Legacy:
    __dlp_tags__ = {"phone": "phone"}

    def __init__(self, phone, other):
        self.phone = phone
        self.other = other


@pytest.fixture
def masker():
    return FakeMasker()


@pytest.fixture
def proc(masker):
    return StructProcessor(masker)


# ── Tag parsing ──────────────────────────────────────────────────────

def test_parse_tag_forms():
    assert parse_tag("") is None
    assert parse_tag(None) is None
    assert parse_tag("-") == TagConfig(skip=True)
    assert parse_tag("phone") == TagConfig(type="phone")
    assert parse_tag("phone, recursive") == TagConfig(type="phone", recursive=True)
    assert parse_tag("custom:password") == TagConfig(custom="password")
    assert parse_tag("skip") == TagConfig(skip=True)


def test_parse_tag_rejects_empty_parts():
    with pytest.raises(ValidationError, match="invalid dlp tag configuration"):
        parse_tag(",,")


def test_struct_detection():
    assert is_struct(User())
    assert is_struct(Legacy("a", "b"))
    assert not is_struct(User)
    assert not is_struct("text")


def test_field_tags_prefer_class_declaration():
    class Override(User):
        __dlp_tags__ = {"phone": "email"}

    tags = dict(field_tags(Override()))
    assert tags["phone"] == "email"
    assert tags["note"] == "custom:password"


# ── Flat structs ─────────────────────────────────────────────────────

def test_tagged_fields_masked(proc, masker):
    u = User(phone="13812345678", note="hunter2", secret="s", skipped="a@b.io", broken="b", plain="p")
    out = proc.desensitize(u)
    assert out is u
    assert u.phone == "phone:***"
    assert u.note == "*******"
    assert (u.secret, u.skipped, u.broken, u.plain) == ("s", "a@b.io", "b", "p")


def test_numbers_kept_when_mask_does_not_parse(proc):
    u = User(age=42, active=True)
    proc.desensitize(u)
    assert u.age == 42
    assert u.active is True


def test_kept_number_is_logged(proc):
    lines = []
    sink_id = setup_logging("WARNING", sink=lines.append)
    try:
        proc.desensitize(User(age=13812345678))
    finally:
        reset_logging(sink_id)
    assert any("int field tagged 'phone'" in line and "kept unmasked" in line for line in lines)
    assert not any("13812345678" in line for line in lines)


def test_numbers_masked_by_custom_strategy(masker):
    reg = StrategyRegistry()
    reg.register("zero", lambda s: "0" * len(s))

    @dataclass
    class Account:
        balance: int = tag("custom:zero", default=0)

    acct = StructProcessor(masker, reg).desensitize(Account(1234))
    assert acct.balance == 0


def test_empty_string_not_sent_to_masker(proc, masker):
    proc.desensitize(User())
    assert all(text for _, text in masker.calls)


def test_unknown_custom_strategy_leaves_field(masker):
    @dataclass
    class Doc:
        body: str = tag("custom:nope", default="")

    d = StructProcessor(masker).desensitize(Doc("text"))
    assert d.body == "text"


def test_frozen_dataclass_is_rebuilt(proc):
    card = Card("4532015112830366")
    out = proc.desensitize(card)
    assert out is not card
    assert out.number == "bank_card:***"
    assert card.number == "4532015112830366"


def test_plain_class_with_declared_tags(proc):
    obj = Legacy("13812345678", "untouched")
    proc.desensitize(obj)
    assert obj.phone == "phone:***"
    assert obj.other == "untouched"


def test_rejects_none_and_non_structs(proc):
    with pytest.raises(ValidationError):
        proc.desensitize(None)
    with pytest.raises(ValidationError):
        proc.desensitize("13812345678")


# ── Nesting ──────────────────────────────────────────────────────────

def test_recursive_containers(proc):
    h = Holder(
        card=Card("4532015112830366"),
        phones=["13812345678", ""],
        labels=["13912345678"],
        extra={"work": "a@b.io"},
        pair=("13812345678", 7),
    )
    proc.desensitize(h)
    assert h.card.number == "bank_card:***"
    assert h.phones == ["phone:***", ""]
    assert h.labels == ["13912345678"]          # not recursive
    assert h.extra == {"work": "email:***"}
    assert h.pair == ("phone:***", 7)


def test_namedtuple_rebuilt(proc):
    Pair = namedtuple("Pair", "a b")
    h = Holder(pair=Pair("x", "y"))
    proc.desensitize(h)
    assert isinstance(h.pair, Pair)
    assert h.pair == Pair("phone:***", "phone:***")


def test_cycles_terminate(proc):
    n = Node("13812345678")
    n.child = n
    proc.desensitize(n)
    assert n.label == "phone:***"


def test_depth_limit(masker):
    nodes = [Node(f"n{i}") for i in range(5)]
    for parent, child in zip(nodes, nodes[1:]):
        parent.child = child
    StructProcessor(masker, max_depth=2).desensitize(nodes[0])
    assert [n.label for n in nodes] == ["phone:***"] * 3 + ["n3", "n4"]


# ── Batch ────────────────────────────────────────────────────────────

def test_batch_list_in_place(proc):
    items = [User(phone="1"), Legacy("2", "x")]
    out = proc.batch_desensitize(items)
    assert out is items
    assert items[0].phone == "phone:***"
    assert items[1].phone == "phone:***"


def test_batch_tuple_returns_tuple(proc):
    out = proc.batch_desensitize((Card("1"),))
    assert isinstance(out, tuple)
    assert out[0].number == "bank_card:***"


def test_batch_requires_sequence(proc):
    with pytest.raises(ValidationError, match="input must be a list or tuple"):
        proc.batch_desensitize({"a": User()})


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
