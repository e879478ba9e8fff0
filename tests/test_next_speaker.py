"""Tests for the next-speaker check."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from parley.config import DEFAULT_FLASH_MODEL
from parley.content import Content, FunctionResponse, NextSpeakerVerdict, Part
from parley.core.chat import ChatSession
from parley.core.next_speaker import NextSpeakerChecker
from parley.core.prompts import NEXT_SPEAKER_PROMPT, NEXT_SPEAKER_SCHEMA
from parley.errors import ParseError, ProviderError
from tests.fakes import FakeContentGenerator, make_config


def _chat(*history: Content) -> ChatSession:
    return ChatSession(make_config(), FakeContentGenerator(), history=list(history))


@pytest.fixture
def json_generator() -> MagicMock:
    generator = MagicMock()
    generator.generate_json.return_value = {"reasoning": "asked a question", "next_speaker": "user"}
    return generator


def test_empty_history(json_generator) -> None:
    assert NextSpeakerChecker(json_generator).check(_chat()) is None
    json_generator.generate_json.assert_not_called()


def test_function_response_means_model_speaks(json_generator) -> None:
    chat = _chat(
        Content.user_text("run it"),
        Content.model_text("running"),
        Content(role="user", parts=(Part(function_response=FunctionResponse(name="run", response={"ok": True})),)),
    )
    verdict = NextSpeakerChecker(json_generator).check(chat)
    assert verdict.next_speaker == "model"
    json_generator.generate_json.assert_not_called()


def test_empty_model_message_means_model_speaks(json_generator) -> None:
    chat = _chat(
        Content.user_text("a"),
        Content.model_text("b"),
        Content.user_text("hi"),
        Content(role="model", parts=()),
    )
    assert NextSpeakerChecker(json_generator).check(chat).next_speaker == "model"


def test_last_entry_from_user(json_generator) -> None:
    chat = _chat(Content.user_text("hi"), Content.model_text("hello"), Content.user_text("and?"))
    assert NextSpeakerChecker(json_generator).check(chat) is None
    json_generator.generate_json.assert_not_called()


def test_asks_fast_model(json_generator) -> None:
    history = [Content.user_text("hi"), Content.model_text("Do you want more?")]
    verdict = NextSpeakerChecker(json_generator).check(_chat(*history))

    assert verdict == NextSpeakerVerdict(next_speaker="user", reasoning="asked a question")
    args, kwargs = json_generator.generate_json.call_args
    assert args[0] == history + [Content.user_text(NEXT_SPEAKER_PROMPT)]
    assert args[1] == NEXT_SPEAKER_SCHEMA
    assert kwargs["model"] == DEFAULT_FLASH_MODEL


@pytest.mark.parametrize(
    "answer",
    [{"next_speaker": "assistant"}, {"reasoning": "x"}, ["model"], "model"],
)
def test_unusable_answer(json_generator, answer) -> None:
    json_generator.generate_json.return_value = answer
    chat = _chat(Content.user_text("hi"), Content.model_text("hello"))
    assert NextSpeakerChecker(json_generator).check(chat) is None


@pytest.mark.parametrize("error", [ParseError("no json"), ProviderError("timeout")])
def test_failures_are_logged_not_raised(json_generator, error, caplog) -> None:
    json_generator.generate_json.side_effect = error
    chat = _chat(Content.user_text("hi"), Content.model_text("hello"))
    with caplog.at_level("WARNING", logger="parley.next_speaker"):
        assert NextSpeakerChecker(json_generator).check(chat) is None
    assert caplog.records
