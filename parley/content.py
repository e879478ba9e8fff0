"""Dialogue data model shared by the chat session, turns, and the transport.

The dictionaries produced by ``to_dict`` use the provider's wire keys, so a
``Content`` can be posted as-is and its serialized size doubles as a weight
for history splitting.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .errors import InvalidArgument

VALID_ROLES = ("user", "model")


@dataclass(frozen=True)
class FunctionCall:
    """A tool invocation requested by the model."""

    name: str
    args: Dict[str, Any] = field(default_factory=dict)
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name, "args": dict(self.args)}
        if self.id:
            data["id"] = self.id
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FunctionCall":
        return cls(name=data.get("name", ""), args=dict(data.get("args") or {}), id=data.get("id"))


@dataclass(frozen=True)
class FunctionResponse:
    """The result of a tool invocation, sent back to the model."""

    name: str
    response: Dict[str, Any] = field(default_factory=dict)
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name, "response": dict(self.response)}
        if self.id:
            data["id"] = self.id
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FunctionResponse":
        return cls(
            name=data.get("name", ""),
            response=dict(data.get("response") or {}),
            id=data.get("id"),
        )


@dataclass(frozen=True)
class Part:
    """One piece of a dialogue entry.

    Only one payload field is expected to be set. ``thought`` marks model
    reasoning text that is not part of the visible answer.
    """

    text: Optional[str] = None
    inline_data: Optional[Dict[str, str]] = None
    file_data: Optional[Dict[str, str]] = None
    function_call: Optional[FunctionCall] = None
    function_response: Optional[FunctionResponse] = None
    thought: bool = False

    def is_empty(self) -> bool:
        return (
            self.text is None
            and self.inline_data is None
            and self.file_data is None
            and self.function_call is None
            and self.function_response is None
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.text is not None:
            data["text"] = self.text
        if self.inline_data is not None:
            data["inlineData"] = dict(self.inline_data)
        if self.file_data is not None:
            data["fileData"] = dict(self.file_data)
        if self.function_call is not None:
            data["functionCall"] = self.function_call.to_dict()
        if self.function_response is not None:
            data["functionResponse"] = self.function_response.to_dict()
        if self.thought:
            data["thought"] = True
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Part":
        function_call = data.get("functionCall")
        function_response = data.get("functionResponse")
        return cls(
            text=data.get("text"),
            inline_data=data.get("inlineData"),
            file_data=data.get("fileData"),
            function_call=FunctionCall.from_dict(function_call) if function_call else None,
            function_response=(
                FunctionResponse.from_dict(function_response) if function_response else None
            ),
            thought=bool(data.get("thought", False)),
        )


@dataclass(frozen=True)
class Content:
    """A single dialogue entry. Immutable once created."""

    role: str
    parts: Tuple[Part, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.parts, tuple):
            object.__setattr__(self, "parts", tuple(self.parts))

    @classmethod
    def user_text(cls, text: str) -> "Content":
        return cls(role="user", parts=(Part(text=text),))

    @classmethod
    def model_text(cls, text: str) -> "Content":
        return cls(role="model", parts=(Part(text=text),))

    @property
    def text(self) -> str:
        return "".join(part.text for part in self.parts if part.text and not part.thought)

    def to_dict(self) -> Dict[str, Any]:
        return {"role": self.role, "parts": [part.to_dict() for part in self.parts]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Content":
        return cls(
            role=data.get("role", "model"),
            parts=tuple(Part.from_dict(part) for part in data.get("parts") or []),
        )


def validate_history(history: Iterable[Content]) -> None:
    """Reject entries whose role the provider would not accept."""

    for content in history:
        if content.role not in VALID_ROLES:
            raise InvalidArgument(f"Role must be user or model, but got {content.role}.")


def is_function_response(content: Content) -> bool:
    """True when a user entry carries only tool results."""

    return (
        content.role == "user"
        and bool(content.parts)
        and all(part.function_response is not None for part in content.parts)
    )


@dataclass
class Candidate:
    content: Optional[Content] = None
    finish_reason: Optional[str] = None


@dataclass
class GenerateContentResponse:
    """One complete response, or one fragment of a streamed response."""

    candidates: List[Candidate] = field(default_factory=list)
    usage_metadata: Dict[str, Any] = field(default_factory=dict)
    raw: Optional[Dict[str, Any]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GenerateContentResponse":
        candidates = []
        for item in data.get("candidates") or []:
            content = item.get("content")
            candidates.append(
                Candidate(
                    content=Content.from_dict(content) if content else None,
                    finish_reason=item.get("finishReason"),
                )
            )
        return cls(candidates=candidates, usage_metadata=dict(data.get("usageMetadata") or {}), raw=data)

    @property
    def parts(self) -> Tuple[Part, ...]:
        if not self.candidates or self.candidates[0].content is None:
            return ()
        return self.candidates[0].content.parts

    @property
    def text(self) -> str:
        return "".join(part.text for part in self.parts if part.text and not part.thought)

    @property
    def thought_parts(self) -> List[Part]:
        return [part for part in self.parts if part.thought and part.text]

    @property
    def function_calls(self) -> List[FunctionCall]:
        return [part.function_call for part in self.parts if part.function_call is not None]

    @property
    def finish_reason(self) -> Optional[str]:
        return self.candidates[0].finish_reason if self.candidates else None


@dataclass
class ContentEmbedding:
    values: Optional[List[float]] = None


@dataclass
class EmbedContentResponse:
    embeddings: Optional[List[Optional[ContentEmbedding]]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EmbedContentResponse":
        if "embeddings" not in data or data["embeddings"] is None:
            return cls(embeddings=None)
        return cls(
            embeddings=[
                ContentEmbedding(values=item.get("values")) if isinstance(item, dict) else None
                for item in data["embeddings"]
            ]
        )


@dataclass
class CountTokensResponse:
    total_tokens: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CountTokensResponse":
        return cls(total_tokens=data.get("totalTokens"))


@dataclass(frozen=True)
class CompressionResult:
    """Token counts before and after a compression pass."""

    original_token_count: int
    new_token_count: int


@dataclass(frozen=True)
class NextSpeakerVerdict:
    next_speaker: str
    reasoning: str = ""


__all__ = [
    "Candidate",
    "CompressionResult",
    "Content",
    "ContentEmbedding",
    "CountTokensResponse",
    "EmbedContentResponse",
    "FunctionCall",
    "FunctionResponse",
    "GenerateContentResponse",
    "NextSpeakerVerdict",
    "Part",
    "VALID_ROLES",
    "is_function_response",
    "validate_history",
]
