"""Exception taxonomy for cleanup operations."""

from __future__ import annotations

from typing import Any, Optional


class CleanupError(Exception):
    """Base class for all cleanup errors."""


class ResolutionError(CleanupError):
    """Raised when a target folder cannot be resolved.

    Attributes:
        query: Path or name the operator supplied
        suggestions: Similar folders as ``{"name", "path"}`` dicts
    """

    def __init__(self, query: str, suggestions: Optional[list[dict[str, str]]] = None) -> None:
        super().__init__(f"Folder '{query}' not found")
        self.query = query
        self.suggestions = suggestions or []


class SafetyViolation(CleanupError):
    """Raised when protected or dependent resources block a run.

    Attributes:
        kind: "protected", "dependencies" or "non_empty"
        items: Names of the offending resources
    """

    def __init__(self, message: str, kind: str, items: Optional[list[Any]] = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.items = items or []


class GatewayError(CleanupError):
    """Raised by gateway implementations when a remote call fails."""


class TransientGatewayError(GatewayError):
    """Network, timeout or rate-limit failure of a single remote call."""


class PermissionGatewayError(GatewayError):
    """The credentials are not allowed to perform the remote call."""


class FatalConfigError(CleanupError):
    """Missing or invalid configuration detected before any network call."""


class PatternValidationError(CleanupError):
    """User-supplied filter pattern rejected before compilation."""

    def __init__(self, pattern: str, reason: str) -> None:
        super().__init__(f"Invalid pattern {pattern!r}: {reason}")
        self.pattern = pattern
        self.reason = reason


class OperationCancelled(CleanupError):
    """The operator interrupted the run before execution finished."""
