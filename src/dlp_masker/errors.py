"""Exception hierarchy.

Every public operation raises one of these.  ``ProcessingError`` carries
the untouched input so log call sites can fail open instead of dropping
the line.
"""

from __future__ import annotations


class DLPError(Exception):
    """Base class for all dlp_masker errors."""


class ConfigurationError(DLPError):
    """Nil/duplicate desensitizer, invalid regex, missing config."""


class ValidationError(DLPError):
    """Malformed struct target, unsupported type string, depth exceeded."""


class SecurityError(DLPError):
    """Input rejected outright: rate limited, malicious or too long."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class ProcessingError(DLPError):
    """No desensitizer could handle the request; ``text`` is unchanged."""

    def __init__(self, message: str, text: str = "") -> None:
        super().__init__(message)
        self.text = text
