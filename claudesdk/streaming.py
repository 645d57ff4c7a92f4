"""Server-sent event streaming of message responses."""

from __future__ import annotations

import asyncio
import enum
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional, Union

import httpx

from claudesdk.errors import AnthropicError, ApiConnectionError, HttpError, StreamError

_log = logging.getLogger(__name__)

_LINE_BREAK = re.compile(rb"\r\n?|\n")
_HEADER_NAME = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
_HEADER_VALUE = re.compile(r"^[\t\x20-\x7e]*$")
_BOM = b"\xef\xbb\xbf"


@dataclass(frozen=True)
class StreamConfig:
    """Settings for a streamed response."""

    buffer_size: int = 1000
    event_timeout: Optional[int] = 30
    retry_on_error: bool = True
    max_retries: Optional[int] = 3


class StreamEventType(enum.Enum):
    """The kinds of event a message stream delivers."""

    MESSAGE_START = "message_start"
    CONTENT_BLOCK_START = "content_block_start"
    CONTENT_BLOCK_DELTA = "content_block_delta"
    CONTENT_BLOCK_STOP = "content_block_stop"
    MESSAGE_DELTA = "message_delta"
    MESSAGE_STOP = "message_stop"


_KNOWN_TYPES = {kind.value: kind for kind in StreamEventType}


@dataclass(frozen=True)
class StreamEvent:
    """One event of a message stream; payload fields are kept as decoded JSON."""

    type: StreamEventType
    index: Optional[int] = None
    message: Optional[Dict[str, Any]] = None
    content_block: Optional[Dict[str, Any]] = None
    delta: Optional[Dict[str, Any]] = None
    usage: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class SseEvent:
    """A raw server-sent event."""

    event: str = "message"
    data: str = ""
    id: str = ""
    retry: Optional[int] = None


class SseDecoder:
    """Incremental decoder turning byte chunks into server-sent events."""

    def __init__(self) -> None:
        self._buffer = b""
        self._started = False
        self._event = ""
        self._data: List[str] = []
        self._last_id = ""
        self._retry: Optional[int] = None

    def feed(self, chunk: bytes) -> List[SseEvent]:
        """Add bytes and return every event completed by them."""
        self._buffer += chunk
        if not self._started:
            if len(self._buffer) < len(_BOM) and _BOM.startswith(self._buffer):
                return []
            if self._buffer.startswith(_BOM):
                self._buffer = self._buffer[len(_BOM):]
            self._started = True

        events = []
        while True:
            match = _LINE_BREAK.search(self._buffer)
            if match is None:
                break
            if match.group() == b"\r" and match.end() == len(self._buffer):
                # A following "\n" may still arrive in the next chunk.
                break
            line = self._buffer[: match.start()]
            self._buffer = self._buffer[match.end():]
            event = self._process_line(line.decode("utf-8", errors="replace"))
            if event is not None:
                events.append(event)
        return events

    def finish(self) -> List[SseEvent]:
        """Flush what is left at the end of the stream.

        An event not closed by a blank line is discarded.
        """
        events = []
        remainder, self._buffer = self._buffer, b""
        for line in _LINE_BREAK.split(remainder)[:-1] if remainder.endswith(b"\r") else [remainder]:
            if not line and not remainder.endswith(b"\r"):
                continue
            event = self._process_line(line.decode("utf-8", errors="replace"))
            if event is not None:
                events.append(event)
        self._event = ""
        self._data = []
        return events

    def _process_line(self, line: str) -> Optional[SseEvent]:
        if not line:
            return self._dispatch()
        if line.startswith(":"):
            return None
        name, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]
        if name == "event":
            self._event = value
        elif name == "data":
            self._data.append(value)
        elif name == "id":
            if "\0" not in value:
                self._last_id = value
        elif name == "retry":
            if value.isdigit():
                self._retry = int(value)
        return None

    def _dispatch(self) -> Optional[SseEvent]:
        if not self._data:
            self._event = ""
            return None
        event = SseEvent(
            event=self._event or "message",
            data="\n".join(self._data),
            id=self._last_id,
            retry=self._retry,
        )
        self._event = ""
        self._data = []
        return event


def _index(value: Dict[str, Any]) -> int:
    index = value.get("index")
    if isinstance(index, int) and not isinstance(index, bool) and index >= 0:
        return index
    return 0


def _load(data: str, name: str) -> Dict[str, Any]:
    try:
        value = json.loads(data)
    except ValueError as exc:
        raise StreamError(f"Failed to parse {name} event: {exc}") from exc
    if not isinstance(value, dict):
        raise StreamError(f"Failed to parse {name} event: expected a JSON object")
    return value


def _typed_object(value: Any) -> bool:
    return isinstance(value, dict) and isinstance(value.get("type"), str)


def _build(kind: StreamEventType, value: Dict[str, Any]) -> StreamEvent:
    if kind is StreamEventType.MESSAGE_START:
        if "message" not in value and "id" in value:
            return StreamEvent(kind, message=value)
        if "message" not in value:
            raise StreamError("message_start event missing message field")
        message = value["message"]
        if not isinstance(message, dict):
            raise StreamError("Failed to parse nested message: expected an object")
        return StreamEvent(kind, message=message)
    if kind is StreamEventType.CONTENT_BLOCK_START:
        block = value.get("content_block")
        if not _typed_object(block):
            raise StreamError(
                "Failed to parse content_block in content_block_start: expected a typed object"
            )
        return StreamEvent(kind, index=_index(value), content_block=block)
    if kind is StreamEventType.CONTENT_BLOCK_DELTA:
        delta = value.get("delta")
        if not _typed_object(delta):
            raise StreamError(
                "Failed to parse delta in content_block_delta: expected a typed object"
            )
        return StreamEvent(kind, index=_index(value), delta=delta)
    if kind is StreamEventType.CONTENT_BLOCK_STOP:
        return StreamEvent(kind, index=_index(value))
    if kind is StreamEventType.MESSAGE_DELTA:
        delta = value.get("delta")
        if not isinstance(delta, dict):
            raise StreamError("Failed to parse delta: expected an object")
        usage = value.get("usage")
        if not isinstance(usage, dict):
            raise StreamError("Failed to parse usage: expected an object")
        return StreamEvent(kind, delta=delta, usage=usage)
    return StreamEvent(StreamEventType.MESSAGE_STOP)


def parse_stream_event(sse: SseEvent) -> Optional[StreamEvent]:
    """Turn a raw event into a stream event; ``None`` for keep-alive pings.

    Both the standard format (the type lives in the JSON payload) and the
    gateway format (the SSE event name is the type) are understood.
    """
    name = sse.event
    if name in ("message", ""):
        try:
            value = json.loads(sse.data)
        except ValueError as exc:
            raise StreamError(f"Failed to parse SSE event: {exc}") from exc
        if not _typed_object(value):
            raise StreamError("Failed to parse SSE event: missing event type")
        if value["type"] == "ping":
            return None
        kind = _KNOWN_TYPES.get(value["type"])
        if kind is None:
            raise StreamError(f"Failed to parse SSE event: unknown event type {value['type']}")
        try:
            return _build(kind, value)
        except StreamError as exc:
            raise StreamError(f"Failed to parse SSE event: {exc.detail}") from exc
    if name == "ping":
        return None
    if name == "message_stop":
        return StreamEvent(StreamEventType.MESSAGE_STOP)
    kind = _KNOWN_TYPES.get(name)
    if kind is None:
        _log.debug("Unknown SSE event type: %s", name)
        raise StreamError(f"Unknown event type: {name}")
    return _build(kind, _load(sse.data, name))


def _convert(sse: SseEvent) -> Union[StreamEvent, StreamError, None]:
    try:
        return parse_stream_event(sse)
    except StreamError as exc:
        return exc


async def _response_events(
    response: httpx.Response,
) -> AsyncIterator[Union[StreamEvent, StreamError]]:
    decoder = SseDecoder()
    try:
        try:
            async for chunk in response.aiter_bytes():
                for sse in decoder.feed(chunk):
                    item = _convert(sse)
                    if item is not None:
                        yield item
            for sse in decoder.finish():
                item = _convert(sse)
                if item is not None:
                    yield item
        except httpx.HTTPError as exc:
            yield StreamError(f"SSE stream error: {exc}")
    finally:
        await response.aclose()


class HttpStreamClient:
    """Async iterator of stream events read from a streaming HTTP response.

    A malformed event raises :class:`StreamError` from ``__anext__``; iteration
    may continue afterwards.
    """

    def __init__(
        self,
        source: AsyncIterator[Union[StreamEvent, StreamError]],
        config: Optional[StreamConfig] = None,
        request_id: Optional[str] = None,
    ) -> None:
        self._source = source
        self.config = config or StreamConfig()
        self._request_id = request_id
        self._ended = False
        self._subscribers: List[asyncio.Queue] = []

    @classmethod
    async def from_response(
        cls, response: httpx.Response, config: Optional[StreamConfig] = None
    ) -> "HttpStreamClient":
        """Wrap a response opened with streaming enabled."""
        request_id = response.headers.get("request-id")
        if not response.is_success:
            await response.aread()
            text = response.text
            await response.aclose()
            raise HttpError(response.status_code, text)
        return cls(_response_events(response), config, request_id)

    def __aiter__(self) -> "HttpStreamClient":
        return self

    async def __anext__(self) -> StreamEvent:
        try:
            item = await self._source.__anext__()
        except StopAsyncIteration:
            self._ended = True
            raise
        if isinstance(item, AnthropicError):
            raise item
        self._broadcast(item)
        if item.type is StreamEventType.MESSAGE_STOP:
            self._ended = True
        return item

    def _broadcast(self, event: StreamEvent) -> None:
        for queue in self._subscribers:
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(event)

    def subscribe(self) -> asyncio.Queue:
        """Return a queue that receives every event read from now on."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.config.buffer_size)
        self._subscribers.append(queue)
        return queue

    def ended(self) -> bool:
        """Tell whether the stream has finished."""
        return self._ended

    def request_id(self) -> Optional[str]:
        """The request id the server sent, if any."""
        return self._request_id


class StreamRequestBuilder:
    """Prepares and sends streaming POST requests."""

    def __init__(self, client: httpx.AsyncClient, base_url: str) -> None:
        self.client = client
        self.base_url = base_url
        self.headers = httpx.Headers()
        self.config = StreamConfig()

    def header(self, key: str, value: str) -> "StreamRequestBuilder":
        """Set a header; invalid names or values are ignored."""
        if _HEADER_NAME.match(key) and _HEADER_VALUE.match(value):
            self.headers[key] = value
        return self

    def with_config(self, config: StreamConfig) -> "StreamRequestBuilder":
        self.config = config
        return self

    async def post_stream(self, endpoint: str, body: Any) -> HttpStreamClient:
        """POST ``body`` as JSON and return the event stream of the response."""
        url = f"{self.base_url.rstrip('/')}/{endpoint.lstrip('/')}"
        headers = httpx.Headers(self.headers)
        headers["accept"] = "text/event-stream"
        headers["cache-control"] = "no-cache"
        request = self.client.build_request("POST", url, headers=headers, json=body)
        try:
            response = await self.client.send(request, stream=True)
        except httpx.HTTPError as exc:
            raise ApiConnectionError(str(exc)) from exc
        return await HttpStreamClient.from_response(response, self.config)