"""DLP Masker: sensitive-data detection and masking for logs and records."""

from loguru import logger

from .base import (
    BaseDesensitizer, CustomFunctionDesensitizer, Desensitizer, RegexDesensitizer,
    as_cacheable, as_type_aware, personal_info_desensitizer,
)
from .cache import LRUCache
from .cachekey import CacheKeyCodec
from .config import create_engine, load_config, load_from_yaml
from .desensitizers import (
    BankCardDesensitizer, ChineseNameDesensitizer, EmailDesensitizer,
    IDCardDesensitizer, PhoneDesensitizer,
)
from .engine import DlpEngine, EngineConfig
from .errors import ConfigurationError, DLPError, ProcessingError, SecurityError, ValidationError
from .log import reset_logging, setup_logging
from .manager import DesensitizerManager
from .matcher import MatchEngine, PatternMatcher
from .security import RateLimiter, SecurityConfig, SecurityLayer
from .strategies import StrategyRegistry
from .structs import StructProcessor, parse_tag
from .types import DesensitizationResult, Match, SecurityEvent

logger.disable("dlp_masker")

__all__ = [
    "DlpEngine", "EngineConfig",
    "create_engine", "load_config", "load_from_yaml",
    "Desensitizer", "BaseDesensitizer", "RegexDesensitizer", "CustomFunctionDesensitizer",
    "PhoneDesensitizer", "EmailDesensitizer", "BankCardDesensitizer",
    "IDCardDesensitizer", "ChineseNameDesensitizer", "personal_info_desensitizer",
    "as_type_aware", "as_cacheable",
    "DesensitizerManager", "MatchEngine", "PatternMatcher",
    "SecurityLayer", "SecurityConfig", "RateLimiter",
    "StructProcessor", "parse_tag", "StrategyRegistry",
    "LRUCache", "CacheKeyCodec",
    "DesensitizationResult", "Match", "SecurityEvent",
    "DLPError", "ConfigurationError", "ValidationError", "SecurityError", "ProcessingError",
    "setup_logging", "reset_logging",
]
__version__ = "0.1.0"
