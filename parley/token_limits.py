"""Context window sizes for known models."""

from __future__ import annotations

from typing import Dict

DEFAULT_TOKEN_LIMIT = 1_048_576

TOKEN_LIMITS: Dict[str, int] = {
    "gemini-1.5-pro": 2_097_152,
    "gemini-1.5-flash": 1_048_576,
    "gemini-2.5-pro-preview-05-06": 1_048_576,
    "gemini-2.5-pro-preview-06-05": 1_048_576,
    "gemini-2.5-pro": 1_048_576,
    "gemini-2.5-flash-preview-05-20": 1_048_576,
    "gemini-2.5-flash": 1_048_576,
    "gemini-2.0-flash": 1_048_576,
    "gemini-2.0-flash-preview-image-generation": 32_000,
}


def token_limit(model: str) -> int:
    """Return the input token limit for ``model``, or the default for unknown ids."""

    return TOKEN_LIMITS.get(model, DEFAULT_TOKEN_LIMIT)


__all__ = ["DEFAULT_TOKEN_LIMIT", "TOKEN_LIMITS", "token_limit"]
