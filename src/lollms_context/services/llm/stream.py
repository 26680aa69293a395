from __future__ import annotations

import codecs
import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional, Union

import httpx

from ...config.settings import ContextSettings


LOG = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


@dataclass(frozen=True)
class TextChunk:
    text: str


@dataclass(frozen=True)
class StreamError:
    message: str


@dataclass(frozen=True)
class EndOfTurn:
    pass


RelayEvent = Union[TextChunk, StreamError, EndOfTurn]


class SSEFrameParser:
    """
    Incremental parser for a `text/event-stream` body.

    Bytes are fed in arbitrary chunks; only complete frames (terminated by a
    blank line) are emitted, and the trailing partial frame is kept until
    the next chunk or `close()`. Each emitted item is the frame's data
    payload with the `data:` prefix removed.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, chunk: bytes) -> List[str]:
        self._buffer += self._decoder.decode(chunk)
        self._buffer = self._buffer.replace("\r\n", "\n")
        payloads: List[str] = []
        while "\n\n" in self._buffer:
            frame, self._buffer = self._buffer.split("\n\n", 1)
            payload = self._frame_payload(frame)
            if payload is not None:
                payloads.append(payload)
        return payloads

    def close(self) -> List[str]:
        """Flush a final frame that was not followed by a blank line."""
        self._buffer += self._decoder.decode(b"", final=True)
        frame, self._buffer = self._buffer.strip("\r\n"), ""
        if not frame:
            return []
        payload = self._frame_payload(frame)
        return [payload] if payload is not None else []

    @staticmethod
    def _frame_payload(frame: str) -> Optional[str]:
        data_lines = []
        for line in frame.split("\n"):
            # Comments (":") and other fields (event:, id:, retry:) are ignored.
            if not line.startswith(DATA_PREFIX):
                continue
            value = line[len(DATA_PREFIX):]
            if value.startswith(" "):
                value = value[1:]
            data_lines.append(value)
        if not data_lines:
            return None
        return "\n".join(data_lines)


def extract_delta(payload: str) -> Optional[str]:
    """
    Pull `choices[0].delta.content` out of a frame payload.

    Raises `json.JSONDecodeError` for malformed JSON; returns None when the
    frame carries no text (role-only deltas, usage frames, unknown shapes).
    """
    parsed: Any = json.loads(payload)
    if not isinstance(parsed, dict):
        return None
    choices = parsed.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    delta = choices[0].get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    if isinstance(content, str) and content:
        return content
    return None


class StreamRelay:
    """
    Streams a chat completion from an OpenAI-compatible endpoint.

    `stream()` yields `TextChunk` events in arrival order, at most one
    `StreamError`, and always finishes with exactly one `EndOfTurn`. No
    retries are attempted; the caller decides whether to resubmit.
    """

    def __init__(self, settings: ContextSettings, *, client: Optional[httpx.AsyncClient] = None) -> None:
        self.settings = settings
        self._client = client

    def build_request_body(self, messages: List[Dict[str, str]]) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "messages": messages,
            "stream": True,
            "temperature": self.settings.TEMPERATURE,
            "top_p": self.settings.TOP_P,
        }
        if self.settings.model:
            body["model"] = self.settings.model
        return body

    def build_headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "text/event-stream"}
        if self.settings.api_key:
            headers["Authorization"] = f"Bearer {self.settings.api_key}"
        return headers

    async def stream(self, messages: List[Dict[str, str]]) -> AsyncIterator[RelayEvent]:
        endpoint = self.settings.chat_endpoint
        if endpoint is None:
            LOG.error("Chat request aborted: no host configured")
            yield StreamError("Lollms host not configured.")
            yield EndOfTurn()
            return

        try:
            if self._client is not None:
                async for event in self._relay(self._client, endpoint, messages):
                    yield event
            else:
                timeout = httpx.Timeout(self.settings.request_timeout_seconds)
                async with httpx.AsyncClient(timeout=timeout) as client:
                    async for event in self._relay(client, endpoint, messages):
                        yield event
        except httpx.HTTPError as exc:
            LOG.error("Chat request to %s failed: %s", endpoint, exc)
            yield StreamError(str(exc) or exc.__class__.__name__)
        except Exception as exc:
            # Malformed hosts fail outside httpx.HTTPError (InvalidURL, socket errors).
            LOG.exception("Chat request to %s failed", endpoint)
            yield StreamError(f"Request failed: {str(exc) or exc.__class__.__name__}")
        yield EndOfTurn()

    async def _relay(
        self,
        client: httpx.AsyncClient,
        endpoint: str,
        messages: List[Dict[str, str]],
    ) -> AsyncIterator[RelayEvent]:
        async with client.stream(
            "POST",
            endpoint,
            json=self.build_request_body(messages),
            headers=self.build_headers(),
        ) as response:
            if not response.is_success:
                LOG.error("Chat endpoint %s returned HTTP %s", endpoint, response.status_code)
                yield StreamError(f"API error: {response.status_code}")
                return

            parser = SSEFrameParser()
            async for chunk in response.aiter_bytes():
                for payload in parser.feed(chunk):
                    if payload.strip() == DONE_SENTINEL:
                        return
                    text = self._decode(payload)
                    if text is not None:
                        yield TextChunk(text)
            for payload in parser.close():
                if payload.strip() == DONE_SENTINEL:
                    return
                text = self._decode(payload)
                if text is not None:
                    yield TextChunk(text)

    @staticmethod
    def _decode(payload: str) -> Optional[str]:
        try:
            return extract_delta(payload)
        except json.JSONDecodeError:
            LOG.warning("Failed to parse stream chunk: %s", payload)
            return None
