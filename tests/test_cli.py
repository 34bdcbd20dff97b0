"""Tests for the dlp-masker command line."""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import io
import json

import pytest

from dlp_masker.cli import main


def run(monkeypatch, capsys, argv, stdin=""):
    monkeypatch.setattr(sys, "stdin", io.StringIO(stdin))
    code = main(argv)
    captured = capsys.readouterr()
    return code, captured.out, captured.err


# ── Text commands ────────────────────────────────────────────────────

def test_mask(monkeypatch, capsys):
    code, out, _ = run(monkeypatch, capsys, ["mask"], "手机13812345678\n")
    assert code == 0
    assert json.loads(out) == {"text": "手机138****5678"}
    assert "手机" in out                 # not ASCII-escaped


def test_mask_legacy(monkeypatch, capsys):
    code, out, _ = run(monkeypatch, capsys, ["--legacy", "mask"], "call 13812345678\n")
    assert code == 0
    assert json.loads(out)["text"] == "call 138****5678"


def test_mask_type(monkeypatch, capsys):
    code, out, _ = run(monkeypatch, capsys, ["mask-type", "--type", "email"], "test@example.com\n")
    assert code == 0
    assert json.loads(out) == {"text": "t**@example.com", "type": "email"}


def test_detect(monkeypatch, capsys):
    code, out, _ = run(monkeypatch, capsys, ["detect"], "call 13812345678")
    assert code == 0
    assert json.loads(out)["mobile_phone"] == [{"content": "13812345678", "start": 5, "end": 16}]


def test_secure_reports_events(monkeypatch, capsys):
    code, out, _ = run(monkeypatch, capsys, ["secure", "--client-id", "svc-a"], "138\u200c1234\u200c5678")
    assert code == 0
    body = json.loads(out)
    assert body["text"] == "138****5678"
    assert body["desensitizer"] == "aggressive"
    assert [e["type"] for e in body["events"]] == ["BYPASS_ATTEMPT"]


def test_secure_refusal_exits_nonzero(monkeypatch, capsys):
    code, out, err = run(monkeypatch, capsys, ["secure"], "")
    assert code == 1
    assert out == ""
    assert "empty input" in err


# ── Struct ───────────────────────────────────────────────────────────

def test_struct_fields(monkeypatch, capsys):
    doc = json.dumps({"phone": "13812345678", "n": 5, "note": "mail test@example.com"})
    code, out, _ = run(monkeypatch, capsys, ["struct", "--field", "phone=phone"], doc)
    assert code == 0
    assert json.loads(out) == {"phone": "138****5678", "n": 5, "note": "mail test@example.com"}


def test_struct_auto(monkeypatch, capsys):
    doc = json.dumps({"note": "mail test@example.com"})
    code, out, _ = run(monkeypatch, capsys, ["struct", "--auto"], doc)
    assert json.loads(out) == {"note": "mail t**@example.com"}


def test_struct_bad_field_mapping(monkeypatch, capsys):
    code, _, err = run(monkeypatch, capsys, ["struct", "--field", "phone"], "{}")
    assert code == 1
    assert "expected key=kind" in err


def test_struct_requires_object(monkeypatch, capsys):
    code, _, err = run(monkeypatch, capsys, ["struct"], "[1, 2]")
    assert code == 1
    assert "JSON object" in err


# ── Types / config ───────────────────────────────────────────────────

def test_types(monkeypatch, capsys):
    code, out, _ = run(monkeypatch, capsys, ["types"])
    body = json.loads(out)
    assert len(body["matchers"]) == 36
    assert body["desensitizers"]["phone"] == ["phone"]
    assert "mobile_phone" in body["strategies"]


def test_types_legacy_has_no_desensitizer_table(monkeypatch, capsys):
    _, out, _ = run(monkeypatch, capsys, ["--legacy", "types"])
    assert json.loads(out)["desensitizers"] == {}


def test_config_file(tmp_path, monkeypatch, capsys):
    path = tmp_path / "dlp.yaml"
    path.write_text("dlp:\n  disabled_desensitizers: [phone]\n", encoding="utf-8")
    code, out, _ = run(monkeypatch, capsys, ["--config", str(path), "mask-type", "--type", "phone"], "13812345678")
    assert code == 0
    # phone desensitizer off and no rule named "phone"
    assert json.loads(out)["text"] == "13812345678"


def test_missing_subcommand_exits():
    with pytest.raises(SystemExit):
        main([])


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
