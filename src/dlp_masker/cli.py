"""CLI interface for dlp-masker.

Usage:
    # Mask free text (stdin: text, stdout: JSON)
    echo '手机13812345678' | python -m dlp_masker.cli mask

    # Mask as one known kind
    echo 'test@example.com' | python -m dlp_masker.cli mask-type --type email

    # List detected spans per kind
    echo 'card 4532015112830366' | python -m dlp_masker.cli detect

    # Hardened path (rate limit, bypass detection)
    printf '138\\u200c1234\\u200c5678' | python -m dlp_masker.cli secure --client-id svc-a

    # Mask a JSON object (stdin), mapping top-level keys to kinds
    echo '{"phone": "13812345678"}' | python -m dlp_masker.cli struct --field phone=phone

    # Supported kinds
    python -m dlp_masker.cli types
"""

from __future__ import annotations
import argparse
import json
import sys
from typing import Any

from .config import create_engine, load_from_yaml
from .engine import DlpEngine
from .errors import DLPError
from .log import setup_logging


def _build_engine(args: argparse.Namespace) -> DlpEngine:
    cfg = load_from_yaml(args.config) if args.config else None
    engine = create_engine(cfg)
    engine.enable()
    if args.legacy:
        engine.disable_plugin_architecture()
    else:
        engine.enable_plugin_architecture()
    return engine


def _dump(obj: Any) -> None:
    json.dump(obj, sys.stdout, ensure_ascii=False)
    sys.stdout.write("\n")


def _read_text() -> str:
    return sys.stdin.read().rstrip("\n")


def cmd_mask(args: argparse.Namespace) -> None:
    """Mask every sensitive span in stdin text."""
    engine = _build_engine(args)
    _dump({"text": engine.desensitize_text(_read_text())})


def cmd_mask_type(args: argparse.Namespace) -> None:
    """Mask stdin text as one kind."""
    engine = _build_engine(args)
    _dump({"text": engine.desensitize_specific_type(_read_text(), args.type), "type": args.type})


def cmd_detect(args: argparse.Namespace) -> None:
    """Report detected spans per kind."""
    engine = _build_engine(args)
    found = engine.detect_sensitive_info(_read_text())
    _dump({
        kind: [{"content": m.content, "start": m.start, "end": m.end} for m in matches]
        for kind, matches in found.items()
    })


def cmd_secure(args: argparse.Namespace) -> None:
    """Run the hardened path and report bypass findings."""
    engine = _build_engine(args)
    result = engine.secure_desensitize(_read_text(), args.client_id)
    _dump({
        "text": result.desensitized,
        "desensitizer": result.desensitizer_name,
        "type": result.type_used,
        "events": [
            {"type": e.event_type.value, "level": e.threat_level.value, "details": e.details}
            for e in engine.security.security_events()
        ],
    })


def cmd_struct(args: argparse.Namespace) -> None:
    """Mask values of a JSON object on stdin, key by key."""
    engine = _build_engine(args)
    data = json.loads(sys.stdin.read())
    if not isinstance(data, dict):
        raise DLPError("struct input must be a JSON object")

    kinds = {}
    for entry in args.field or []:
        key, sep, kind = entry.partition("=")
        if not sep or not key or not kind:
            raise DLPError(f"bad --field {entry!r}, expected key=kind")
        kinds[key] = kind

    out = {}
    for key, value in data.items():
        kind = kinds.get(key)
        if kind and isinstance(value, str):
            out[key] = engine.desensitize_specific_type(value, kind)
        elif isinstance(value, str) and args.auto:
            out[key] = engine.desensitize_text(value)
        else:
            out[key] = value
    _dump(out)


def cmd_types(args: argparse.Namespace) -> None:
    """List matcher kinds and the desensitizer routing table."""
    engine = _build_engine(args)
    _dump({
        "matchers": engine.get_supported_types(),
        "desensitizers": engine.get_supported_types_with_plugin(),
        "strategies": engine.strategies.names(),
    })


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="dlp-masker",
        description="Sensitive-data masking for logs and records",
    )
    parser.add_argument("--config", default=None, help="YAML config path")
    parser.add_argument("--legacy", action="store_true", help="Use the rule table instead of desensitizers")
    parser.add_argument("--log-level", default=None, help="Enable diagnostics at this level (stderr)")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("mask", help="Mask text (stdin)")
    p_type = sub.add_parser("mask-type", help="Mask text as one kind (stdin)")
    p_type.add_argument("--type", required=True, help="Kind, e.g. phone, email, id_card")
    sub.add_parser("detect", help="Detect sensitive spans (stdin)")
    p_secure = sub.add_parser("secure", help="Hardened masking (stdin)")
    p_secure.add_argument("--client-id", default="default", help="Rate-limit bucket")
    p_struct = sub.add_parser("struct", help="Mask a JSON object (stdin)")
    p_struct.add_argument("--field", action="append", help="key=kind, repeatable")
    p_struct.add_argument("--auto", action="store_true", help="Auto-detect unmapped string values")
    sub.add_parser("types", help="List supported kinds")

    args = parser.parse_args(argv)

    if args.log_level:
        setup_logging(args.log_level)

    cmds = {
        "mask": cmd_mask,
        "mask-type": cmd_mask_type,
        "detect": cmd_detect,
        "secure": cmd_secure,
        "struct": cmd_struct,
        "types": cmd_types,
    }
    try:
        cmds[args.command](args)
    except DLPError as exc:
        sys.stderr.write(f"error: {exc}\n")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
