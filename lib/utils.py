# =============================================================================
# lib/utils.py - Shared Utilities
# =============================================================================
# Identifier helpers and the base error type shared across the application.
# =============================================================================

import re
from typing import Any


# =============================================================================
# Identifier Utilities
# =============================================================================

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize_platform_key(value: str | None) -> str:
    """
    Lowercase a platform id or display name and strip non-alphanumerics.

    "SuperFoon", "super-foon" and "super_foon " all become "superfoon".
    """
    if not value:
        return ""
    return _NON_ALNUM.sub("", value.lower())


# =============================================================================
# Base Error Class
# =============================================================================

class ApplicationError(Exception):
    """
    Base error class for library-level errors.

    Provides actionable error messages following the principle:
    "Errors should tell HOW to fix, not just WHAT failed."

    Attributes:
        code: Error code for categorization
        message: Human-readable error message
        suggestion: Actionable suggestion for fixing the error
        details: Additional context for debugging

    Example:
        class StoreError(ApplicationError):
            def __init__(self, message: str, **kwargs):
                super().__init__(message, code="STORE_ERROR", **kwargs)
    """

    def __init__(
        self,
        message: str,
        code: str = "APPLICATION_ERROR",
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.details = details or {}

    def __str__(self) -> str:
        result = f"[{self.code}] {self.message}"
        if self.suggestion:
            result += f" Suggestion: {self.suggestion}"
        return result

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for API responses."""
        return {
            "code": self.code,
            "message": self.message,
            "suggestion": self.suggestion,
            "details": self.details,
        }
