"""Conversation loop, chat history, and the services around them."""

from __future__ import annotations

from .chat import ChatSession
from .client import ConversationClient, LoopState
from .compression import HistoryCompressor, find_index_after_fraction
from .fallback import ModelFallbackManager, call_with_fallback
from .next_speaker import NextSpeakerChecker, NextSpeakerOracle
from .turn import EventType, ToolCallRequestInfo, Turn, TurnEvent

__all__ = [
    "ChatSession",
    "ConversationClient",
    "EventType",
    "HistoryCompressor",
    "LoopState",
    "ModelFallbackManager",
    "NextSpeakerChecker",
    "NextSpeakerOracle",
    "ToolCallRequestInfo",
    "Turn",
    "TurnEvent",
    "call_with_fallback",
    "find_index_after_fraction",
]
