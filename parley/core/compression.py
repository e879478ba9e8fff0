"""Keeping chat history under the model's context budget.

When the history grows past a fraction of the model's token limit, the older
part is summarized by the model and the chat is restarted with the summary
followed by the recent tail, kept verbatim.
"""

from __future__ import annotations

import json
import logging
from typing import Callable, List, Optional, Protocol, Sequence

import numpy as np

from ..cancellation import AbortSignal
from ..config import Config
from ..content import CompressionResult, Content, is_function_response
from ..content_generator import ContentGenerator
from ..errors import InvalidArgument, ProviderError
from ..logging_utils import LogTag, format_llm_log
from ..token_limits import token_limit
from .chat import ChatSession
from .prompts import COMPRESSION_ACKNOWLEDGEMENT, COMPRESSION_PROMPT, COMPRESSION_REQUEST

Weigher = Callable[[Content], float]


def _aborted(signal: Optional[AbortSignal]) -> bool:
    return signal is not None and signal.aborted


def serialized_size(content: Content) -> int:
    """Length of the compact JSON form of ``content``.

    A cheap stand-in for its share of the token budget; the real token count
    comes from the provider.
    """

    return len(json.dumps(content.to_dict(), separators=(",", ":"), ensure_ascii=False))


def find_index_after_fraction(
    history: Sequence[Content],
    fraction: float,
    weigher: Weigher = serialized_size,
) -> int:
    """Index of the first entry whose cumulative weight reaches ``fraction`` of the total.

    Raises:
        InvalidArgument: if ``fraction`` is not strictly between 0 and 1.
    """

    if not 0 < fraction < 1:
        raise InvalidArgument("Fraction must be strictly between 0 and 1")
    if not history:
        return 0

    weights = np.fromiter((weigher(content) for content in history), dtype=np.float64, count=len(history))
    cumulative = np.cumsum(weights)
    target = fraction * cumulative[-1]
    index = int(np.searchsorted(cumulative, target, side="left"))
    return min(index, len(history) - 1)


class ChatHost(Protocol):
    """Owner of the active chat, able to start and install a replacement."""

    def get_chat(self) -> ChatSession:
        ...

    def start_chat(self, extra_history: Optional[Sequence[Content]] = None) -> ChatSession:
        ...

    def set_chat(self, chat: ChatSession) -> None:
        ...


class HistoryCompressor:
    """Decides when to compress and performs the summary/replace pass."""

    def __init__(
        self,
        config: Config,
        content_generator: ContentGenerator,
        *,
        token_limit_fn: Callable[[str], int] = token_limit,
        weigher: Weigher = serialized_size,
    ) -> None:
        self.config = config
        self.content_generator = content_generator
        self.token_limit_fn = token_limit_fn
        self.weigher = weigher
        self.logger = logging.getLogger("parley.compression")

    def try_compress(
        self,
        host: ChatHost,
        force: bool = False,
        signal: Optional[AbortSignal] = None,
    ) -> Optional[CompressionResult]:
        """Summarize old history if it is too large (or ``force``).

        Returns None, leaving the chat untouched, when nothing was done. An
        abort observed at any step, including a provider call failing because
        of it, also returns None.
        """

        try:
            return self._compress(host, force, signal)
        except ProviderError:
            if _aborted(signal):
                self.logger.info(format_llm_log(LogTag.COMPRESS, "abandoned after abort"))
                return None
            raise

    def _compress(
        self,
        host: ChatHost,
        force: bool,
        signal: Optional[AbortSignal],
    ) -> Optional[CompressionResult]:
        if _aborted(signal):
            return None
        chat = host.get_chat()
        curated = chat.get_history(curated=True)
        if not curated:
            return None

        # The model is read at each count; it may change between the two.
        model = self.config.get_model()
        original_token_count = self.content_generator.count_tokens(
            model=model, contents=curated, signal=signal
        ).total_tokens
        if original_token_count is None:
            self.logger.warning("Could not determine token count for model", extra={"model": model})
            return None

        settings = self.config.get_compression()
        limit = self.token_limit_fn(model)
        if not force and original_token_count < settings.token_threshold * limit:
            return None
        if _aborted(signal):
            return None

        split = self._split_index(curated, 1 - settings.preserve_fraction)
        history_to_compress = curated[:split]
        history_to_keep = curated[split:]

        summarizer = ChatSession(
            self.config,
            self.content_generator,
            generation_config=chat.generation_config,
            history=history_to_compress,
            on_overload=chat.on_overload,
        )
        with chat.exclusive():
            response = summarizer.send_message(
                COMPRESSION_REQUEST,
                config={"systemInstruction": COMPRESSION_PROMPT},
                signal=signal,
            )
        summary = response.text
        if _aborted(signal):
            return None

        new_chat = host.start_chat(
            [
                Content.user_text(summary),
                Content.model_text(COMPRESSION_ACKNOWLEDGEMENT),
                *history_to_keep,
            ]
        )
        new_model = self.config.get_model()
        new_token_count = self.content_generator.count_tokens(
            model=new_model, contents=new_chat.get_history(), signal=signal
        ).total_tokens
        if new_token_count is None:
            self.logger.warning("Could not determine compressed history token count", extra={"model": new_model})
            return None
        if _aborted(signal):
            return None

        host.set_chat(new_chat)
        self.logger.info(
            format_llm_log(
                LogTag.COMPRESS,
                "history compressed",
                {"kept": len(history_to_keep), "summarized": len(history_to_compress)},
                milestone=True,
            ),
            extra={"original_tokens": original_token_count, "new_tokens": new_token_count},
        )
        return CompressionResult(
            original_token_count=original_token_count,
            new_token_count=new_token_count,
        )

    def _split_index(self, curated: List[Content], fraction: float) -> int:
        """Move the split forward so the kept tail starts at a fresh user message."""

        index = find_index_after_fraction(curated, fraction, self.weigher)
        while index < len(curated) and (
            curated[index].role == "model" or is_function_response(curated[index])
        ):
            index += 1
        return index


__all__ = [
    "ChatHost",
    "HistoryCompressor",
    "Weigher",
    "find_index_after_fraction",
    "serialized_size",
]
