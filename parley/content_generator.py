"""HTTP transport for the Generative Language REST API."""

from __future__ import annotations

import json
import logging
import threading
import time
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Protocol, Sequence

import requests

from .cancellation import AbortSignal
from .config import SETTINGS, ProviderConfig
from .content import (
    Content,
    CountTokensResponse,
    EmbedContentResponse,
    GenerateContentResponse,
)
from .errors import ProviderError, RateLimitError


class AuthType(str, Enum):
    LOGIN_WITH_GOOGLE = "oauth-personal"
    USE_GEMINI = "gemini-api-key"
    USE_VERTEX_AI = "vertex-ai"


class ContentGenerator(Protocol):
    """Operations the core needs from a model provider."""

    def generate_content(
        self,
        model: str,
        contents: Sequence[Content],
        config: Optional[Dict[str, Any]] = None,
        signal: Optional[AbortSignal] = None,
    ) -> GenerateContentResponse:
        ...

    def generate_content_stream(
        self,
        model: str,
        contents: Sequence[Content],
        config: Optional[Dict[str, Any]] = None,
        signal: Optional[AbortSignal] = None,
    ) -> Iterator[GenerateContentResponse]:
        ...

    def count_tokens(
        self,
        model: str,
        contents: Sequence[Content],
        signal: Optional[AbortSignal] = None,
    ) -> CountTokensResponse:
        ...

    def embed_content(self, model: str, contents: Sequence[str]) -> EmbedContentResponse:
        ...


class OverloadSimulation:
    """Makes the transport fail with 429s on demand.

    enabled: turn simulation on.
    after_requests: let this many matching requests through first (0 = fail all).
    for_model: only simulate for this model id.

    Once a fallback has happened the simulation stops, so a switched model
    gets real responses.
    """

    def __init__(
        self,
        enabled: bool = False,
        after_requests: int = 0,
        for_model: Optional[str] = None,
    ) -> None:
        self.enabled = enabled
        self.after_requests = after_requests
        self.for_model = for_model
        self.request_count = 0
        self.fallback_occurred = False
        self._lock = threading.Lock()

    def should_fail(self, model: str) -> bool:
        if not self.enabled or self.fallback_occurred:
            return False
        if self.for_model and model != self.for_model:
            return False
        with self._lock:
            self.request_count += 1
            count = self.request_count
        if self.after_requests > 0:
            return count > self.after_requests
        return True

    def on_fallback(self) -> None:
        self.fallback_occurred = True

    def reset(self) -> None:
        self.request_count = 0
        self.fallback_occurred = False


# Request config keys that belong at the top level of the payload rather than
# inside generationConfig.
_TOP_LEVEL_KEYS = ("systemInstruction", "tools", "toolConfig", "safetySettings")


def build_payload(contents: Sequence[Content], config: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"contents": [content.to_dict() for content in contents]}
    generation_config: Dict[str, Any] = {}
    for key, value in (config or {}).items():
        if value is None:
            continue
        if key == "systemInstruction":
            payload[key] = value.to_dict() if isinstance(value, Content) else {"parts": [{"text": str(value)}]}
        elif key in _TOP_LEVEL_KEYS:
            payload[key] = value
        else:
            generation_config[key] = value
    if generation_config:
        payload["generationConfig"] = generation_config
    return payload


class HttpContentGenerator:
    """Thin wrapper over the ``models/*`` REST endpoints."""

    def __init__(
        self,
        config: Optional[ProviderConfig] = None,
        *,
        session: Optional[requests.Session] = None,
        simulation: Optional[OverloadSimulation] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.config = config or SETTINGS.provider
        self.session = session or requests.Session()
        self.simulation = simulation or OverloadSimulation()
        self.logger = logging.getLogger("parley.transport")
        default_headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            default_headers["x-goog-api-key"] = self.config.api_key
        if headers:
            default_headers.update(headers)
        self.headers = default_headers

    # ---- Public API --------------------------------------------------------
    def generate_content(
        self,
        model: str,
        contents: Sequence[Content],
        config: Optional[Dict[str, Any]] = None,
        signal: Optional[AbortSignal] = None,
    ) -> GenerateContentResponse:
        self._maybe_simulate_overload(model)
        data = self._post(model, "generateContent", build_payload(contents, config), signal=signal).json()
        return GenerateContentResponse.from_dict(data)

    def generate_content_stream(
        self,
        model: str,
        contents: Sequence[Content],
        config: Optional[Dict[str, Any]] = None,
        signal: Optional[AbortSignal] = None,
    ) -> Iterator[GenerateContentResponse]:
        self._maybe_simulate_overload(model)
        response = self._post(
            model,
            "streamGenerateContent",
            build_payload(contents, config),
            params={"alt": "sse"},
            stream=True,
            signal=signal,
        )
        return self._iter_sse(response, signal)

    def count_tokens(
        self,
        model: str,
        contents: Sequence[Content],
        signal: Optional[AbortSignal] = None,
    ) -> CountTokensResponse:
        payload = {"contents": [content.to_dict() for content in contents]}
        data = self._post(model, "countTokens", payload, signal=signal).json()
        return CountTokensResponse.from_dict(data)

    def embed_content(self, model: str, contents: Sequence[str]) -> EmbedContentResponse:
        payload = {
            "requests": [
                {"model": f"models/{model}", "content": {"parts": [{"text": text}]}}
                for text in contents
            ]
        }
        data = self._post(model, "batchEmbedContents", payload).json()
        return EmbedContentResponse.from_dict(data)

    # ---- Internals ---------------------------------------------------------
    def _maybe_simulate_overload(self, model: str) -> None:
        if self.simulation.should_fail(model):
            self.logger.warning("Simulating provider overload", extra={"model": model})
            raise RateLimitError("Rate limit exceeded (simulated)")

    def _post(
        self,
        model: str,
        method: str,
        payload: Dict[str, Any],
        *,
        params: Optional[Dict[str, str]] = None,
        stream: bool = False,
        signal: Optional[AbortSignal] = None,
    ) -> requests.Response:
        if signal is not None and signal.aborted:
            raise ProviderError("Request aborted before it was sent")
        url = f"{self.config.base_url.rstrip('/')}/models/{model}:{method}"
        start = time.perf_counter()
        try:
            response = self.session.post(
                url,
                data=json.dumps(payload),
                headers=self.headers,
                params=params,
                timeout=self.config.request_timeout,
                stream=stream,
            )
        except requests.exceptions.Timeout as exc:
            msg = (
                f"Provider request timed out after {self.config.request_timeout}s "
                f"(url={url}). Raise PARLEY_PROVIDER_REQUEST_TIMEOUT if the model is slow."
            )
            self.logger.error(msg, exc_info=True)
            raise ProviderError(msg) from exc
        except requests.exceptions.ConnectionError as exc:
            msg = f"Could not connect to provider at {self.config.base_url}."
            self.logger.error(msg, exc_info=True)
            raise ProviderError(msg) from exc
        except requests.exceptions.RequestException as exc:
            msg = f"Provider request failed for {url}: {exc}"
            self.logger.error(msg, exc_info=True)
            raise ProviderError(msg) from exc
        elapsed = time.perf_counter() - start

        if response.status_code != 200:
            message = self._error_message(response)
            self.logger.error(
                "Provider request failed",
                extra={
                    "model": model,
                    "status_code": response.status_code,
                    "elapsed_ms": round(elapsed * 1000, 2),
                },
            )
            if response.status_code == 429:
                raise RateLimitError(message)
            raise ProviderError(message, status_code=response.status_code)

        self.logger.debug(
            "Provider request completed",
            extra={
                "model": model,
                "status_code": response.status_code,
                "elapsed_ms": round(elapsed * 1000, 2),
            },
        )
        return response

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return f"Provider returned {response.status_code}: {response.text[:2000]}"
        error = data.get("error") if isinstance(data, dict) else None
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        return f"Provider returned {response.status_code}: {response.text[:2000]}"

    def _iter_sse(
        self, response: requests.Response, signal: Optional[AbortSignal]
    ) -> Iterator[GenerateContentResponse]:
        """Yield one response per ``data:`` event until the stream ends or is aborted."""

        try:
            buffer: List[str] = []
            for raw_line in response.iter_lines(decode_unicode=True):
                if signal is not None and signal.aborted:
                    return
                line = raw_line or ""
                if line.startswith("data:"):
                    buffer.append(line[len("data:"):].strip())
                    continue
                if not line and buffer:
                    yield self._decode_event(buffer)
                    buffer = []
            if buffer and not (signal is not None and signal.aborted):
                yield self._decode_event(buffer)
        finally:
            response.close()

    @staticmethod
    def _decode_event(lines: List[str]) -> GenerateContentResponse:
        payload = "\n".join(lines)
        try:
            return GenerateContentResponse.from_dict(json.loads(payload))
        except json.JSONDecodeError as exc:
            raise ProviderError(f"Malformed stream event from provider: {payload[:200]}") from exc


__all__ = [
    "AuthType",
    "ContentGenerator",
    "HttpContentGenerator",
    "OverloadSimulation",
    "build_payload",
]
