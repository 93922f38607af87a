# depaudit_cli/exceptions.py

"""
Custom exceptions for the Dependency Audit CLI.

All errors raised by the CLI derive from DepAuditCLIError so that main() can map
them onto exit codes in a single place.
"""

from typing import Any, Dict, Optional


class DepAuditCLIError(Exception):
    """Base exception for all Dependency Audit CLI errors."""

    def __init__(self, message: str, code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class ConfigurationError(DepAuditCLIError):
    """Raised when a data source or provider is selected but not configured properly."""
    pass


class ValidationError(DepAuditCLIError):
    """Raised when command-line arguments or input files are invalid."""
    pass


class FileSystemError(DepAuditCLIError):
    """Raised when an input file cannot be read or an output path cannot be written."""
    pass


class SourceUnavailableError(DepAuditCLIError):
    """
    Raised when an audit source cannot produce output for this run
    (tool missing, tool crashed, data provider unreachable).
    """

    def __init__(self, source: str, message: str, code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, details=details)
        self.source = source


class ParseFailureError(DepAuditCLIError):
    """Raised when a source's raw output is not valid JSON or has an unexpected shape."""

    def __init__(self, source: str, message: str, raw_excerpt: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        details = dict(details or {})
        if raw_excerpt is not None:
            details.setdefault("raw_output", raw_excerpt)
        super().__init__(message, code="parse_failure", details=details)
        self.source = source


class NetworkError(DepAuditCLIError):
    """Raised for connection problems and timeouts when talking to external APIs."""
    pass


class ApiError(DepAuditCLIError):
    """Raised when an external API answers with an error or an unusable payload."""
    pass


class AuthenticationError(ApiError):
    """Raised when an external API rejects the configured credentials."""
    pass


class NotificationError(DepAuditCLIError):
    """Raised when a webhook or email notification cannot be delivered."""
    pass


class AllSourcesFailedError(DepAuditCLIError):
    """Raised when every selected audit source failed and the run policy treats that as an error."""

    def __init__(self, message: str, failures: Optional[Dict[str, str]] = None):
        super().__init__(message, code="all_sources_failed", details=dict(failures or {}))
