"""Chat session: the ordered history of a conversation and its requests."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Union

from ..cancellation import AbortSignal
from ..config import Config
from ..content import Content, GenerateContentResponse, Part, validate_history
from ..content_generator import ContentGenerator
from ..errors import SessionBusyError
from .fallback import OverloadHandler, call_with_fallback

Message = Union[str, Part, Sequence[Part], Content]


def to_user_content(message: Message) -> Content:
    """Normalize caller input into a single user entry."""

    if isinstance(message, Content):
        return message
    if isinstance(message, str):
        return Content.user_text(message)
    if isinstance(message, Part):
        return Content(role="user", parts=(message,))
    return Content(role="user", parts=tuple(message))


def is_valid_content(content: Content) -> bool:
    if not content.parts:
        return False
    for part in content.parts:
        if part.is_empty():
            return False
        if not part.thought and part.text is not None and part.text == "":
            return False
    return True


def extract_curated_history(history: Sequence[Content]) -> List[Content]:
    """Drop invalid model output together with the user entry that prompted it."""

    curated: List[Content] = []
    i = 0
    length = len(history)
    while i < length:
        if history[i].role == "user":
            curated.append(history[i])
            i += 1
            continue
        model_output = []
        is_valid = True
        while i < length and history[i].role == "model":
            model_output.append(history[i])
            if is_valid and not is_valid_content(history[i]):
                is_valid = False
            i += 1
        if is_valid:
            curated.extend(model_output)
        elif curated:
            curated.pop()
    return curated


def consolidate_parts(parts: Sequence[Part]) -> List[Part]:
    """Merge adjacent plain-text parts and drop thoughts."""

    merged: List[Part] = []
    for part in parts:
        if part.thought:
            continue
        if merged and _is_plain_text(part) and _is_plain_text(merged[-1]):
            merged[-1] = Part(text=merged[-1].text + part.text)
            continue
        merged.append(part)
    return merged


def _is_plain_text(part: Part) -> bool:
    return part.text is not None and part == Part(text=part.text)


class ChatSession:
    """Append-only conversation history plus request dispatch.

    History is copied on the way in and out, and ``set_history`` replaces the
    whole list, so snapshots held by callers never change underneath them.
    A session serves one request at a time.
    """

    def __init__(
        self,
        config: Config,
        content_generator: ContentGenerator,
        generation_config: Optional[Dict[str, Any]] = None,
        history: Optional[Sequence[Content]] = None,
        *,
        on_overload: Optional[OverloadHandler] = None,
    ) -> None:
        history = list(history or [])
        validate_history(history)
        self.config = config
        self.content_generator = content_generator
        self.generation_config = dict(generation_config or {})
        self.on_overload = on_overload
        self._history: List[Content] = history
        self._lock = threading.RLock()
        self._in_flight = threading.Lock()
        self.logger = logging.getLogger("parley.chat")

    # ---- History -----------------------------------------------------------
    def get_history(self, curated: bool = False) -> List[Content]:
        with self._lock:
            history = list(self._history)
        return extract_curated_history(history) if curated else history

    def add_history(self, content: Content) -> None:
        with self._lock:
            self._history = self._history + [content]

    def set_history(self, history: Sequence[Content]) -> None:
        history = list(history)
        validate_history(history)
        with self._lock:
            self._history = history

    def clear_history(self) -> None:
        with self._lock:
            self._history = []

    def _record(self, user_content: Content, model_parts: Sequence[Part]) -> None:
        model_content = Content(role="model", parts=tuple(consolidate_parts(model_parts)))
        with self._lock:
            self._history = self._history + [user_content, model_content]

    # ---- Requests ----------------------------------------------------------
    @contextmanager
    def exclusive(self) -> Iterator[None]:
        if not self._in_flight.acquire(blocking=False):
            raise SessionBusyError("Chat session already has a request in flight.")
        try:
            yield
        finally:
            self._in_flight.release()

    def _request_config(self, config: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        merged = dict(self.generation_config)
        merged.update(config or {})
        return merged

    def send_message(
        self,
        message: Message,
        config: Optional[Dict[str, Any]] = None,
        signal: Optional[AbortSignal] = None,
    ) -> GenerateContentResponse:
        """Send one message and wait for the complete response."""

        user_content = to_user_content(message)
        with self.exclusive():
            contents = self.get_history(curated=True) + [user_content]
            request_config = self._request_config(config)
            response = call_with_fallback(
                lambda model: self.content_generator.generate_content(
                    model=model, contents=contents, config=request_config, signal=signal
                ),
                self.config.get_model(),
                self.on_overload,
            )
            self._record(user_content, response.parts)
        return response

    def send_message_stream(
        self,
        message: Message,
        config: Optional[Dict[str, Any]] = None,
        signal: Optional[AbortSignal] = None,
    ) -> Iterator[GenerateContentResponse]:
        """Stream a response; history is updated only once the stream completes."""

        user_content = to_user_content(message)
        with self.exclusive():
            contents = self.get_history(curated=True) + [user_content]
            request_config = self._request_config(config)
            stream = call_with_fallback(
                lambda model: self.content_generator.generate_content_stream(
                    model=model, contents=contents, config=request_config, signal=signal
                ),
                self.config.get_model(),
                self.on_overload,
            )
            model_parts: List[Part] = []
            for chunk in stream:
                model_parts.extend(chunk.parts)
                yield chunk
            if signal is not None and signal.aborted:
                self.logger.info("Stream aborted; history left unchanged")
                return
            self._record(user_content, model_parts)


__all__ = [
    "ChatSession",
    "Message",
    "consolidate_parts",
    "extract_curated_history",
    "is_valid_content",
    "to_user_content",
]
