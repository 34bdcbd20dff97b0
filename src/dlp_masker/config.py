"""YAML/dict config loader for dlp-masker.

Supports loading from a YAML file or a plain dict (for embedding in a
larger application config under a ``dlp`` key).

Example YAML:

    dlp:
      enabled: true
      plugin_architecture: true
      cache_capacity: 1000
      precedence: [phone, email, id_card, bank_card, chinese_name]
      register_chinese_name: false
      max_struct_depth: 10
      disabled_desensitizers: []
      custom_patterns:
        - name: employee_id
          pattern: "EMP\\d{6}"
          replacement: "EMP******"
          priority: 500
      security:
        rate_limit: 100
        rate_window: 60
        max_input_length: 10000
        alert_threshold: 10
        bypass_detection: true
      log_level: INFO
"""

from __future__ import annotations
import re
from pathlib import Path
from typing import Any

from .base import RegexDesensitizer
from .engine import DlpEngine, EngineConfig
from .errors import ConfigurationError
from .log import setup_logging
from .manager import DEFAULT_PRECEDENCE
from .matcher import PatternMatcher
from .security import SecurityConfig

CUSTOM_PATTERNS_DESENSITIZER = "custom_patterns"


def load_config(data: dict[str, Any] | None) -> dict[str, Any]:
    """Normalize a config dict (from YAML or inline)."""
    data = data or {}
    # Support nested under "dlp" key or flat
    if "dlp" in data:
        data = data["dlp"] or {}

    security = data.get("security") or {}
    return {
        "enabled": data.get("enabled", True),
        "plugin_architecture": data.get("plugin_architecture", True),
        "cache_capacity": data.get("cache_capacity", 1000),
        "cache_max_text": data.get("cache_max_text", 5000),
        "precedence": list(data.get("precedence") or DEFAULT_PRECEDENCE),
        "register_chinese_name": data.get("register_chinese_name", False),
        "max_struct_depth": data.get("max_struct_depth", 10),
        "disabled_desensitizers": list(data.get("disabled_desensitizers") or []),
        "custom_patterns": list(data.get("custom_patterns") or []),
        "security": {
            "rate_limit": security.get("rate_limit", 100),
            "rate_window": security.get("rate_window", 60),
            "max_input_length": security.get("max_input_length", 10000),
            "alert_threshold": security.get("alert_threshold", 10),
            "bypass_detection": security.get("bypass_detection", True),
        },
        "log_level": data.get("log_level"),
    }


def load_from_yaml(path: str | Path) -> dict[str, Any]:
    """Load config from a YAML file."""
    import yaml
    with open(path, encoding="utf-8") as f:
        return load_config(yaml.safe_load(f))


def engine_config(cfg: dict[str, Any]) -> EngineConfig:
    security = cfg["security"]
    return EngineConfig(
        enabled=cfg["enabled"],
        plugin_architecture=cfg["plugin_architecture"],
        cache_capacity=int(cfg["cache_capacity"]),
        cache_max_text=int(cfg["cache_max_text"]),
        precedence=tuple(cfg["precedence"]),
        register_chinese_name=cfg["register_chinese_name"],
        max_struct_depth=int(cfg["max_struct_depth"]),
        security=SecurityConfig(
            rate_limit=int(security["rate_limit"]),
            rate_window=float(security["rate_window"]),
            max_input_length=int(security["max_input_length"]),
            alert_threshold=int(security["alert_threshold"]),
            bypass_detection=bool(security["bypass_detection"]),
        ),
    )


def create_engine(config: dict[str, Any] | None = None) -> DlpEngine:
    """Create a fully configured engine from a config dict."""
    cfg = load_config(config)

    if cfg["log_level"]:
        setup_logging(cfg["log_level"])

    engine = DlpEngine(engine_config(cfg))

    if cfg["custom_patterns"]:
        custom = RegexDesensitizer(CUSTOM_PATTERNS_DESENSITIZER)
        for entry in cfg["custom_patterns"]:
            name, pattern = entry.get("name"), entry.get("pattern")
            if not name or not pattern:
                raise ConfigurationError(f"custom pattern needs name and pattern: {entry!r}")
            replacement = entry.get("replacement", "****")
            custom.add_pattern(name, pattern, replacement)
            engine.register_custom_matcher(PatternMatcher(
                name,
                pattern,
                priority=int(entry.get("priority", 0)),
                transform=_replacement(pattern, replacement),
            ))
        engine.register_custom_desensitizer(custom)

    for name in cfg["disabled_desensitizers"]:
        engine.disable_desensitizer(name)

    return engine


def _replacement(pattern: str, replacement: str):
    regex = re.compile(pattern, re.ASCII)
    return lambda content: regex.sub(replacement, content)
