"""Switching to a lighter model when the provider signals overload."""

from __future__ import annotations

import logging
from typing import Callable, Optional, TypeVar

from ..config import DEFAULT_FLASH_MODEL, Config
from ..content_generator import AuthType, OverloadSimulation
from ..errors import RateLimitError
from ..logging_utils import LogTag, format_llm_log

T = TypeVar("T")

OverloadHandler = Callable[[], Optional[str]]


class ModelFallbackManager:
    """Asks the user whether to fall back and updates the active model.

    The approval callback lives on the config (``flash_fallback_handler``) so
    front ends can swap it without touching the client.
    """

    def __init__(
        self,
        config: Config,
        *,
        fallback_model: str = DEFAULT_FLASH_MODEL,
        simulation: Optional[OverloadSimulation] = None,
    ) -> None:
        self.config = config
        self.fallback_model = fallback_model
        self.simulation = simulation
        self.logger = logging.getLogger("parley.fallback")

    def handle_overload(self, auth_type: Optional[str] = None) -> Optional[str]:
        """Return the fallback model if the switch was approved, else None.

        Only personal OAuth sessions fall back; API-key and Vertex users get
        the provider error as-is.
        """

        if auth_type != AuthType.LOGIN_WITH_GOOGLE:
            return None

        current_model = self.config.get_model()
        fallback_model = self.fallback_model
        if current_model == fallback_model:
            return None

        handler = self.config.flash_fallback_handler
        if not callable(handler):
            return None

        try:
            accepted = handler(current_model, fallback_model)
        except Exception:
            self.logger.warning("Fallback handler failed", exc_info=True)
            return None

        if not accepted:
            self.logger.info(format_llm_log(LogTag.FALLBACK, "declined", {"from": current_model}))
            return None

        self.config.set_model(fallback_model)
        if self.simulation is not None:
            self.simulation.on_fallback()
        self.logger.info(
            format_llm_log(LogTag.FALLBACK, f"{current_model}→{fallback_model}", milestone=True),
            extra={"model": fallback_model},
        )
        return fallback_model


def call_with_fallback(request: Callable[[str], T], model: str, on_overload: Optional[OverloadHandler]) -> T:
    """Run ``request(model)``; on overload, retry once against an approved fallback.

    The request is never repeated against the same model.
    """

    try:
        return request(model)
    except RateLimitError:
        if on_overload is None:
            raise
        fallback = on_overload()
        if not fallback or fallback == model:
            raise
        return request(fallback)


__all__ = ["ModelFallbackManager", "OverloadHandler", "call_with_fallback"]
