"""Conversation client that glues the chat, turns, compression, and fallback."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, Generator, List, Optional, Sequence

from ..cancellation import AbortSignal
from ..config import DEFAULT_FLASH_MODEL, Config
from ..content import CompressionResult, Content, GenerateContentResponse, Part
from ..content_generator import ContentGenerator, HttpContentGenerator, OverloadSimulation
from ..embeddings import EmbeddingService, EmbeddingVector
from ..errors import ParleyError, ParseError
from ..logging_utils import LogTag, format_decision, format_progress, format_state_transition
from ..tools.base import ToolRegistry
from ..utils.json_helpers import extract_json
from .chat import ChatSession, Message
from .compression import HistoryCompressor
from .fallback import ModelFallbackManager, call_with_fallback
from .next_speaker import NextSpeakerChecker, NextSpeakerOracle
from .prompts import (
    CONTINUE_REQUEST,
    ENVIRONMENT_ACKNOWLEDGEMENT,
    get_core_system_prompt,
    get_environment_context,
)
from .turn import EventType, Turn, TurnEvent


class LoopState(str, Enum):
    DISPATCHING = "dispatching"
    STREAMING = "streaming"
    CHECKING_NEXT_SPEAKER = "checking_next_speaker"
    DONE = "done"
    ABORTED = "aborted"


class ConversationClient:
    """High-level entry point for driving a conversation with the model.

    Every collaborator is injectable; by default the client talks to the
    provider over HTTP and builds the rest on top of that transport.
    """

    MAX_TURNS = 100

    def __init__(
        self,
        config: Config,
        content_generator: Optional[ContentGenerator] = None,
        *,
        tool_registry: Optional[ToolRegistry] = None,
        next_speaker: Optional[NextSpeakerOracle] = None,
        compressor: Optional[HistoryCompressor] = None,
        fallback_manager: Optional[ModelFallbackManager] = None,
        embedding_service: Optional[EmbeddingService] = None,
        simulation: Optional[OverloadSimulation] = None,
    ) -> None:
        self.config = config
        self.content_generator = content_generator or HttpContentGenerator(
            config.settings.provider, simulation=simulation
        )
        self.tool_registry = tool_registry or ToolRegistry()
        self.fallback_manager = fallback_manager or ModelFallbackManager(
            config,
            simulation=simulation or getattr(self.content_generator, "simulation", None),
        )
        self.compressor = compressor or HistoryCompressor(config, self.content_generator)
        self.embedding_service = embedding_service or EmbeddingService(config, self.content_generator)
        self.next_speaker = next_speaker or NextSpeakerChecker(self)
        self.generate_content_config: Dict[str, Any] = {"temperature": 0, "topP": 1}
        self.chat: Optional[ChatSession] = None
        self.logger = logging.getLogger("parley.client")

    # ---- Chat lifecycle ----------------------------------------------------
    def initialize(self) -> None:
        self.chat = self.start_chat()

    def is_initialized(self) -> bool:
        return self.chat is not None

    def get_chat(self) -> ChatSession:
        if self.chat is None:
            raise ParleyError("Chat not initialized. Call initialize() first.")
        return self.chat

    def set_chat(self, chat: ChatSession) -> None:
        self.chat = chat

    def start_chat(self, extra_history: Optional[Sequence[Content]] = None) -> ChatSession:
        """Build a new chat seeded with the environment context."""

        history = [
            Content.user_text(get_environment_context(self.config.get_working_dir())),
            Content.model_text(ENVIRONMENT_ACKNOWLEDGEMENT),
            *(extra_history or []),
        ]
        generation_config: Dict[str, Any] = dict(self.generate_content_config)
        generation_config["systemInstruction"] = get_core_system_prompt(self.config.get_user_memory())
        tools = self.tool_registry.as_request_tools()
        if tools:
            generation_config["tools"] = tools
        return ChatSession(
            self.config,
            self.content_generator,
            generation_config=generation_config,
            history=history,
            on_overload=self._on_overload,
        )

    def reset_chat(self) -> None:
        self.chat = self.start_chat()
        self.logger.info("Chat reset", extra={"session_id": self.config.get_session_id()})

    def restart_chat(self, history: Optional[Sequence[Content]] = None) -> ChatSession:
        """Replace the chat with a new one holding ``history`` after the baseline.

        Used when resuming a saved conversation; ``history`` should not repeat
        the environment entries.
        """

        self.chat = self.start_chat(history)
        return self.chat

    def get_history(self) -> List[Content]:
        return self.get_chat().get_history()

    def set_history(self, history: Sequence[Content]) -> None:
        self.get_chat().set_history(history)

    def add_history(self, content: Content) -> None:
        self.get_chat().add_history(content)

    # ---- Conversation loop -------------------------------------------------
    def send_message_stream(
        self,
        message: Message,
        signal: Optional[AbortSignal] = None,
        max_turns: int = MAX_TURNS,
    ) -> Generator[TurnEvent, None, Turn]:
        """Stream events for the message and any turns the model continues on its own.

        The generator's return value is the last completed Turn. The loop
        stops when a turn requests tools, the next-speaker check hands control
        to the user, the turn ceiling is reached, or ``signal`` is aborted.
        ``MAX_TURNS`` caps ``max_turns``.
        """

        bounded_turns = min(max_turns, self.MAX_TURNS)
        last_turn = Turn(self.get_chat())
        request: Message = message
        turn_number = 0
        state = LoopState.DISPATCHING

        while turn_number < bounded_turns:
            if signal is not None and signal.aborted:
                state = self._transition(state, LoopState.ABORTED, turn_number)
                break

            compressed = self.try_compress_chat(signal=signal)
            if compressed is not None:
                yield TurnEvent(EventType.CHAT_COMPRESSED, compressed)
            if signal is not None and signal.aborted:
                state = self._transition(state, LoopState.ABORTED, turn_number)
                break

            turn = Turn(self.get_chat())
            turn_number += 1
            state = self._transition(state, LoopState.STREAMING, turn_number)

            errored = False
            for event in turn.run(request, signal):
                if event.type == EventType.ERROR:
                    errored = True
                yield event

            if signal is not None and signal.aborted:
                state = self._transition(state, LoopState.ABORTED, turn_number)
                break
            last_turn = turn

            if errored or turn.pending_tool_calls:
                state = self._transition(state, LoopState.DONE, turn_number)
                break

            if turn_number >= bounded_turns:
                self.logger.info(format_progress(LogTag.LOOP_LIMIT, turn_number, bounded_turns))
                break

            state = self._transition(state, LoopState.CHECKING_NEXT_SPEAKER, turn_number)
            verdict = self.next_speaker.check(self.get_chat(), signal)
            should_continue = verdict is not None and verdict.next_speaker == "model"
            self.logger.debug(
                format_decision("cont", should_continue, speaker=verdict.next_speaker if verdict else None)
            )
            if not should_continue:
                state = self._transition(state, LoopState.DONE, turn_number)
                break

            state = self._transition(state, LoopState.DISPATCHING, turn_number)
            request = [Part(text=CONTINUE_REQUEST)]

        return last_turn

    def _transition(self, from_state: LoopState, to_state: LoopState, turn_number: int) -> LoopState:
        self.logger.debug(
            format_state_transition(from_state.value, to_state.value, turn=turn_number),
            extra={"turn": turn_number},
        )
        return to_state

    # ---- One-shot requests -------------------------------------------------
    def generate_content(
        self,
        contents: Sequence[Content],
        generation_config: Optional[Dict[str, Any]] = None,
        signal: Optional[AbortSignal] = None,
    ) -> GenerateContentResponse:
        """Single non-streaming request against the currently configured model."""

        request_config = dict(self.generate_content_config)
        request_config.update(generation_config or {})
        request_config["systemInstruction"] = get_core_system_prompt(self.config.get_user_memory())
        return call_with_fallback(
            lambda model: self.content_generator.generate_content(
                model=model, contents=list(contents), config=request_config, signal=signal
            ),
            self.config.get_model(),
            self._on_overload,
        )

    def generate_json(
        self,
        contents: Sequence[Content],
        schema: Dict[str, Any],
        signal: Optional[AbortSignal] = None,
        model: Optional[str] = None,
        config: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Ask for a JSON answer and parse it out of the response text.

        Raises:
            ParseError: the response was empty or held no valid JSON.
        """

        request_config = dict(self.generate_content_config)
        request_config.update(config or {})
        request_config["systemInstruction"] = get_core_system_prompt(self.config.get_user_memory())
        request_config["responseSchema"] = schema
        request_config["responseMimeType"] = "application/json"

        response = call_with_fallback(
            lambda active_model: self.content_generator.generate_content(
                model=active_model, contents=list(contents), config=request_config, signal=signal
            ),
            model or DEFAULT_FLASH_MODEL,
            self._on_overload,
        )
        text = response.text
        if not text:
            raise ParseError("API returned an empty response for generate_json.")
        return extract_json(text)

    def generate_embedding(self, texts: Sequence[str]) -> List[EmbeddingVector]:
        return self.embedding_service.embed(texts)

    # ---- Budget and overload -----------------------------------------------
    def try_compress_chat(
        self, force: bool = False, signal: Optional[AbortSignal] = None
    ) -> Optional[CompressionResult]:
        return self.compressor.try_compress(self, force=force, signal=signal)

    def handle_flash_fallback(self, auth_type: Optional[str] = None) -> Optional[str]:
        return self.fallback_manager.handle_overload(auth_type)

    def _on_overload(self) -> Optional[str]:
        return self.handle_flash_fallback(self.config.get_auth_type())


__all__ = ["ConversationClient", "LoopState"]
