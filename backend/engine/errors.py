"""
Error taxonomy for the datasource-to-bitable engine.
Every failure surfaces as one of these, tagged with the stage that failed.
Adapters map them to platform error codes; nothing here is retried.
"""
from __future__ import annotations
from typing import Optional


class BitableSyncError(Exception):
    kind = "BitableSyncError"

    def __init__(self, message: str, *, stage: str = "", cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage
        self.cause = cause

    def __str__(self) -> str:
        if self.stage:
            return f"[{self.stage}] {self.message}"
        return self.message


class ParameterError(BitableSyncError):
    """Malformed request body or params string."""
    kind = "ParameterError"


class ConfigurationError(BitableSyncError):
    """Table reference is structurally invalid (bad query mode, missing table, unknown driver)."""
    kind = "ConfigurationError"


class AuthorizationError(BitableSyncError):
    kind = "AuthorizationError"


class ResolutionError(BitableSyncError):
    """Identifier lookup in the credential store failed."""
    kind = "ResolutionError"


class SourceError(BitableSyncError):
    """Driver, connection or query failure against the source database."""
    kind = "SourceError"


class IntrospectionError(SourceError):
    kind = "IntrospectionError"


ERROR_KINDS = (
    ParameterError,
    ConfigurationError,
    AuthorizationError,
    ResolutionError,
    SourceError,
)


def redact(message: str, *secrets: Optional[str]) -> str:
    """Blank out any secret that leaked into a driver message."""
    out = message
    for s in secrets:
        if s:
            out = out.replace(s, "***")
    return out
