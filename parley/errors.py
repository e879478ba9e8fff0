"""Exception types raised by the parley core."""

from __future__ import annotations

from typing import Optional


class ParleyError(RuntimeError):
    """Base class for all errors raised by this package."""


class InvalidArgument(ParleyError, ValueError):
    """Raised when a caller passes malformed input."""


class EmbeddingError(ParleyError):
    """Raised when the provider returns missing or mismatched embeddings."""


class ParseError(ParleyError):
    """Raised when no JSON value can be extracted from model text."""


class ProviderError(ParleyError):
    """Transport, auth, or quota failure reported by the model provider.

    The message is the transport's message, unmodified.
    """

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(ProviderError):
    """Provider signaled overload or quota exhaustion (HTTP 429)."""

    def __init__(self, message: str, status_code: Optional[int] = 429) -> None:
        super().__init__(message, status_code=status_code)


class SessionBusyError(ParleyError):
    """A chat session already has a request in flight."""


__all__ = [
    "ParleyError",
    "InvalidArgument",
    "EmbeddingError",
    "ParseError",
    "ProviderError",
    "RateLimitError",
    "SessionBusyError",
]
