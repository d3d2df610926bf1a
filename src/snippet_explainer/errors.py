"""Error taxonomy for the explain pipeline.

Only ``AuthorizationError`` and ``RequestValidationError`` ever reach the
caller as error responses. The rest are absorbed into fallback content.
"""

from __future__ import annotations

from typing import Literal

UpstreamFailure = Literal["transport", "status", "empty", "json", "schema"]


class ExplainerError(Exception):
    pass


class AuthorizationError(ExplainerError):
    """Missing or unknown bearer credential."""


class RequestValidationError(ExplainerError):
    """Request body lacks required fields."""


class UpstreamGenerationError(ExplainerError):
    """The model call failed or returned content that is not a bundle."""

    def __init__(self, reason: UpstreamFailure, message: str, status_code: int | None = None):
        super().__init__(message)
        self.reason = reason
        self.status_code = status_code


class PersistenceError(ExplainerError):
    """A store operation failed."""


class SnippetNotFoundError(PersistenceError):
    """No snippet with this id exists for the requesting owner."""
