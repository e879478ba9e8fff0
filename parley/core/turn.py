"""A single request/response cycle with the model."""

from __future__ import annotations

import logging
import re
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

from ..cancellation import AbortSignal
from ..content import FunctionCall, GenerateContentResponse
from ..errors import ProviderError
from .chat import ChatSession, Message


class EventType(str, Enum):
    CONTENT = "content"
    THOUGHT = "thought"
    TOOL_CALL_REQUEST = "tool_call_request"
    ERROR = "error"
    USER_CANCELLED = "user_cancelled"
    CHAT_COMPRESSED = "chat_compressed"


@dataclass
class ToolCallRequestInfo:
    """A tool call the model asked for, waiting on the external executor."""

    call_id: str
    name: str
    args: Dict[str, Any] = field(default_factory=dict)
    is_client_initiated: bool = False
    prompt_id: Optional[str] = None


@dataclass(frozen=True)
class ThoughtSummary:
    subject: str
    description: str


@dataclass(frozen=True)
class StructuredError:
    message: str
    status: Optional[int] = None


@dataclass(frozen=True)
class TurnEvent:
    type: EventType
    value: Any = None


_SUBJECT_PATTERN = re.compile(r"\*\*(.*?)\*\*", re.DOTALL)


def parse_thought(text: str) -> ThoughtSummary:
    """Split ``**Subject** rest`` model reasoning into subject and description."""

    match = _SUBJECT_PATTERN.search(text)
    if not match:
        return ThoughtSummary(subject="", description=text.strip())
    subject = match.group(1).strip()
    description = (text[: match.start()] + text[match.end():]).strip()
    return ThoughtSummary(subject=subject, description=description)


class Turn:
    """Drives one model turn and reports what came back.

    ``run`` is a one-shot generator: it streams events as the response
    arrives and never replays them. After it finishes, ``pending_tool_calls``
    holds every tool call the model requested during the turn.
    """

    def __init__(self, chat: ChatSession, prompt_id: Optional[str] = None) -> None:
        self.chat = chat
        self.prompt_id = prompt_id or uuid.uuid4().hex[:12]
        self.pending_tool_calls: List[ToolCallRequestInfo] = []
        self.finish_reason: Optional[str] = None
        self._debug_responses: List[GenerateContentResponse] = []
        self.logger = logging.getLogger("parley.turn")

    def run(self, message: Message, signal: Optional[AbortSignal] = None) -> Iterator[TurnEvent]:
        stream = self.chat.send_message_stream(message, signal=signal)
        try:
            for response in stream:
                if signal is not None and signal.aborted:
                    yield TurnEvent(EventType.USER_CANCELLED)
                    return
                self._debug_responses.append(response)

                for event in self._chunk_events(response):
                    if signal is not None and signal.aborted:
                        yield TurnEvent(EventType.USER_CANCELLED)
                        return
                    if event.type == EventType.TOOL_CALL_REQUEST:
                        self.pending_tool_calls.append(event.value)
                    yield event

                if response.finish_reason:
                    self.finish_reason = response.finish_reason
        except ProviderError as exc:
            if signal is not None and signal.aborted:
                yield TurnEvent(EventType.USER_CANCELLED)
                return
            self.logger.error("Turn failed", extra={"status_code": exc.status_code})
            yield TurnEvent(EventType.ERROR, StructuredError(message=str(exc), status=exc.status_code))
            return
        finally:
            close = getattr(stream, "close", None)
            if close is not None:
                close()

        if signal is not None and signal.aborted:
            yield TurnEvent(EventType.USER_CANCELLED)

    def _chunk_events(self, response: GenerateContentResponse) -> Iterator[TurnEvent]:
        for thought in response.thought_parts:
            yield TurnEvent(EventType.THOUGHT, parse_thought(thought.text or ""))

        text = response.text
        if text:
            yield TurnEvent(EventType.CONTENT, text)

        for call in response.function_calls:
            yield self._tool_call_event(call)

    def _tool_call_event(self, call: FunctionCall) -> TurnEvent:
        call_id = call.id or f"{call.name}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"
        request = ToolCallRequestInfo(
            call_id=call_id,
            name=call.name or "undefined_tool_name",
            args=dict(call.args),
            prompt_id=self.prompt_id,
        )
        self.logger.debug("Model requested tool call", extra={"call_id": call_id})
        return TurnEvent(EventType.TOOL_CALL_REQUEST, request)

    def get_debug_responses(self) -> List[GenerateContentResponse]:
        return list(self._debug_responses)


__all__ = [
    "EventType",
    "StructuredError",
    "ThoughtSummary",
    "ToolCallRequestInfo",
    "Turn",
    "TurnEvent",
    "parse_thought",
]
