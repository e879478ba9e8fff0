"""Tests for a single model turn and the events it emits."""

from __future__ import annotations

import pytest

from parley.cancellation import AbortSignal
from parley.content import FunctionCall, Part
from parley.core.chat import ChatSession
from parley.core.turn import EventType, StructuredError, ThoughtSummary, Turn, parse_thought
from parley.errors import ProviderError
from tests.fakes import FakeContentGenerator, call_response, make_config, parts_response, text_response


@pytest.fixture
def generator() -> FakeContentGenerator:
    return FakeContentGenerator()


@pytest.fixture
def chat(generator: FakeContentGenerator) -> ChatSession:
    return ChatSession(make_config(), generator)


def test_content_events_follow_stream(chat, generator) -> None:
    generator.streams.append([text_response("Hello"), text_response(" world", finish_reason="STOP")])
    turn = Turn(chat)

    events = list(turn.run("hi"))

    assert [(event.type, event.value) for event in events] == [
        (EventType.CONTENT, "Hello"),
        (EventType.CONTENT, " world"),
    ]
    assert turn.finish_reason == "STOP"
    assert turn.pending_tool_calls == []
    assert len(turn.get_debug_responses()) == 2


def test_thoughts_are_reported_separately(chat, generator) -> None:
    generator.streams.append(
        [parts_response(Part(text="**Planning** the next step", thought=True), Part(text="Done."))]
    )

    events = list(Turn(chat).run("hi"))

    assert events[0].type == EventType.THOUGHT
    assert events[0].value == ThoughtSummary(subject="Planning", description="the next step")
    assert events[1].type == EventType.CONTENT
    assert events[1].value == "Done."


def test_tool_calls_become_pending(chat, generator) -> None:
    generator.streams.append(
        [
            call_response("read_file", {"path": "a.txt"}, call_id="call-1"),
            call_response("list_dir", {"path": "."}),
        ]
    )
    turn = Turn(chat, prompt_id="prompt-7")

    events = list(turn.run("look around"))

    assert [event.type for event in events] == [EventType.TOOL_CALL_REQUEST, EventType.TOOL_CALL_REQUEST]
    first, second = turn.pending_tool_calls
    assert first.call_id == "call-1"
    assert first.name == "read_file"
    assert first.args == {"path": "a.txt"}
    assert first.prompt_id == "prompt-7"
    assert first.is_client_initiated is False
    assert second.call_id.startswith("list_dir-")


def test_provider_error_becomes_error_event(chat, generator) -> None:
    generator.streams.append(ProviderError("Quota exceeded for project", status_code=403))

    events = list(Turn(chat).run("hi"))

    assert len(events) == 1
    assert events[0].type == EventType.ERROR
    assert events[0].value == StructuredError(message="Quota exceeded for project", status=403)


def test_error_mid_stream_keeps_earlier_events(chat, generator) -> None:
    def chunks():
        yield text_response("partial")
        raise ProviderError("connection reset")

    generator.streams.append(chunks())

    events = list(Turn(chat).run("hi"))

    assert [event.type for event in events] == [EventType.CONTENT, EventType.ERROR]
    assert events[1].value.message == "connection reset"
    assert chat.get_history() == []


def test_abort_stops_turn(chat, generator) -> None:
    signal = AbortSignal()

    def chunks():
        yield text_response("first")
        signal.abort()
        yield text_response("second")
        yield text_response("third")

    generator.streams.append(chunks())

    events = list(Turn(chat).run("hi", signal))

    assert [event.type for event in events] == [EventType.CONTENT, EventType.USER_CANCELLED]
    assert chat.get_history() == []
    # The session is free again once the turn is done.
    chat.send_message("next")


def test_parse_thought_without_subject() -> None:
    assert parse_thought("  just thinking  ") == ThoughtSummary(subject="", description="just thinking")


def test_abort_between_events_of_one_chunk(chat, generator) -> None:
    generator.streams.append(
        [
            parts_response(
                Part(text="Reading it now."),
                Part(function_call=FunctionCall(name="read_file", args={"path": "a.txt"})),
            )
        ]
    )
    signal = AbortSignal()
    turn = Turn(chat)
    events = []

    for event in turn.run("hi", signal):
        events.append(event)
        if event.type == EventType.CONTENT:
            signal.abort()

    assert [event.type for event in events] == [EventType.CONTENT, EventType.USER_CANCELLED]
    assert turn.pending_tool_calls == []
