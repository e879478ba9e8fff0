"""Deciding whether the model should keep talking without new user input."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence

from ..cancellation import AbortSignal
from ..config import DEFAULT_FLASH_MODEL
from ..content import Content, NextSpeakerVerdict, is_function_response
from ..errors import ParleyError
from .chat import ChatSession
from .prompts import NEXT_SPEAKER_PROMPT, NEXT_SPEAKER_SCHEMA

VALID_SPEAKERS = ("user", "model")


class NextSpeakerOracle(Protocol):
    """Consulted after a turn that requested no tools."""

    def check(self, chat: ChatSession, signal: Optional[AbortSignal] = None) -> Optional[NextSpeakerVerdict]:
        ...


class JsonGenerator(Protocol):
    def generate_json(
        self,
        contents: Sequence[Content],
        schema: Dict[str, Any],
        signal: Optional[AbortSignal] = None,
        model: Optional[str] = None,
    ) -> Any:
        ...


class NextSpeakerChecker:
    """Default oracle: cheap structural rules first, then ask a fast model."""

    def __init__(self, json_generator: JsonGenerator, model: str = DEFAULT_FLASH_MODEL) -> None:
        self.json_generator = json_generator
        self.model = model
        self.logger = logging.getLogger("parley.next_speaker")

    def check(self, chat: ChatSession, signal: Optional[AbortSignal] = None) -> Optional[NextSpeakerVerdict]:
        curated = chat.get_history(curated=True)
        if not curated:
            return None

        comprehensive = chat.get_history()
        if not comprehensive:
            return None
        last = comprehensive[-1]

        if is_function_response(last):
            return NextSpeakerVerdict(
                next_speaker="model",
                reasoning="The last message was a function response, so the model should speak next.",
            )

        if last.role == "model" and not last.parts:
            return NextSpeakerVerdict(
                next_speaker="model",
                reasoning=(
                    "The last message was a filler model message with no content "
                    "(nothing for user to act on), model should speak next."
                ),
            )

        if curated[-1].role != "model":
            return None

        contents: List[Content] = [*curated, Content.user_text(NEXT_SPEAKER_PROMPT)]
        try:
            parsed = self.json_generator.generate_json(contents, NEXT_SPEAKER_SCHEMA, signal, model=self.model)
        except ParleyError:
            self.logger.warning(
                "Failed to talk to the provider when checking whether the conversation should continue",
                exc_info=True,
            )
            return None

        if not isinstance(parsed, dict):
            return None
        speaker = parsed.get("next_speaker")
        if speaker not in VALID_SPEAKERS:
            return None
        return NextSpeakerVerdict(next_speaker=speaker, reasoning=str(parsed.get("reasoning", "")))


__all__ = ["JsonGenerator", "NextSpeakerChecker", "NextSpeakerOracle", "VALID_SPEAKERS"]
