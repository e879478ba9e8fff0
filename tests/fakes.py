"""In-memory stand-ins for the provider used across the test suite."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from parley.config import AppConfig, CompressionConfig, Config, ProviderConfig
from parley.content import (
    Candidate,
    Content,
    CountTokensResponse,
    EmbedContentResponse,
    FunctionCall,
    GenerateContentResponse,
    NextSpeakerVerdict,
    Part,
)


@dataclass
class RecordedRequest:
    model: str
    contents: List[Content]
    config: Dict[str, Any] = field(default_factory=dict)


def text_response(text: str, finish_reason: Optional[str] = None) -> GenerateContentResponse:
    return GenerateContentResponse(
        candidates=[Candidate(content=Content.model_text(text), finish_reason=finish_reason)]
    )


def parts_response(*parts: Part, finish_reason: Optional[str] = None) -> GenerateContentResponse:
    return GenerateContentResponse(
        candidates=[Candidate(content=Content(role="model", parts=parts), finish_reason=finish_reason)]
    )


def call_response(name: str, args: Optional[Dict[str, Any]] = None, call_id: Optional[str] = None):
    return parts_response(Part(function_call=FunctionCall(name=name, args=args or {}, id=call_id)))


def make_config(auth_type: str = "gemini-api-key", **kwargs: Any) -> Config:
    settings = AppConfig(
        provider=ProviderConfig(api_key="test-key", auth_type=auth_type, model="gemini-2.5-pro"),
        compression=CompressionConfig(token_threshold=0.7, preserve_fraction=0.3),
    )
    kwargs.setdefault("working_dir", "/tmp/project")
    kwargs.setdefault("session_id", "test-session")
    return Config(settings, **kwargs)


class FakeContentGenerator:
    """Scripted provider.

    Queued items are returned in order; an exception instance is raised
    instead. Streams are queued as iterables of responses and are opened
    eagerly, so a queued exception surfaces when the stream is requested.
    """

    def __init__(self) -> None:
        self.responses: deque = deque()
        self.streams: deque = deque()
        self.token_counts: deque = deque()
        self.default_token_count: Optional[int] = 10
        self.embed_response: Any = EmbedContentResponse(embeddings=[])
        self.generate_calls: List[RecordedRequest] = []
        self.stream_calls: List[RecordedRequest] = []
        self.count_calls: List[RecordedRequest] = []
        self.embed_calls: List[Dict[str, Any]] = []

    def generate_content(self, model, contents, config=None, signal=None):
        self.generate_calls.append(RecordedRequest(model, list(contents), dict(config or {})))
        item = self.responses.popleft() if self.responses else text_response("ok")
        if isinstance(item, Exception):
            raise item
        return item

    def generate_content_stream(self, model, contents, config=None, signal=None):
        self.stream_calls.append(RecordedRequest(model, list(contents), dict(config or {})))
        item = self.streams.popleft() if self.streams else [text_response("ok", finish_reason="STOP")]
        if isinstance(item, Exception):
            raise item
        return iter(item)

    def count_tokens(self, model, contents, signal=None):
        self.count_calls.append(RecordedRequest(model, list(contents)))
        total = self.token_counts.popleft() if self.token_counts else self.default_token_count
        return CountTokensResponse(total_tokens=total)

    def embed_content(self, model, contents):
        self.embed_calls.append({"model": model, "contents": list(contents)})
        if isinstance(self.embed_response, Exception):
            raise self.embed_response
        return self.embed_response


class ScriptedOracle:
    """Next-speaker oracle that answers from a script, repeating the last answer."""

    def __init__(self, *speakers: Optional[str]) -> None:
        self.speakers = list(speakers) or [None]
        self.calls = 0

    def check(self, chat, signal=None):
        self.calls += 1
        speaker = self.speakers.pop(0) if len(self.speakers) > 1 else self.speakers[0]
        if speaker is None:
            return None
        return NextSpeakerVerdict(next_speaker=speaker, reasoning="scripted")


def drain(generator):
    """Collect every event of a generator along with its return value."""

    events = []
    while True:
        try:
            events.append(next(generator))
        except StopIteration as stop:
            return events, stop.value
