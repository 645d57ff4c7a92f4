# claudesdk

Building blocks for clients of the Claude Messages API:

- **`claudesdk.files`**: build attachments from bytes, base64 text, paths or
  open binary streams. MIME types are detected from the file extension, or from
  the first bytes when there is no extension. Files can be checked against size
  and type limits and hashed with SHA-256.
- **`claudesdk.retry`**: run an async operation with exponential backoff and an
  optional small jitter. You choose which failures are retried: timeouts,
  connection errors, rate limits, server errors, authentication errors,
  particular HTTP status codes, or everything.
- **`claudesdk.streaming`**: decode server-sent events and turn them into typed
  message stream events, reading from an `httpx` response.
- **`claudesdk.errors`**: the exception classes the above raise or retry on.

## Installation

```
pip install claudesdk
```

## Files

```python
from claudesdk.files import (
    File, FileBuilder, FileConstraints, FileSource, FileSourceKind,
)

report = File.from_bytes("report.txt", b"Quarterly numbers")
print(report)            # File { name: report.txt, type: text/plain, size: 17 bytes }
report.validate(FileConstraints(max_size=1024 * 1024))
print(report.calculate_hash())   # also stored in report.hash

checked = (
    FileBuilder()
    .name("chart.png")
    .with_hash()
    .build(FileSource(FileSourceKind.BYTES, b"\x89PNG\r\n\x1a\n"))
)
print(checked.mime_type, checked.hash)   # image/png ...
```

- `File.from_bytes`, `File.from_base64`, `File.from_stream` and
  `File.from_path` create files; `to_file(source, name, mime_type)` does the
  same from a `FileSource`. A path is only read when the content is needed.
- `detect_mime_type(filename, data)` looks at the extension first (unknown
  extensions give `application/octet-stream`), then at PNG, JPEG, PDF and GIF
  magic bytes.
- `File.validate` raises `FileTooLargeError` or `InvalidMimeTypeError`;
  `File.from_path` raises `FileMissingError`; undecodable base64 raises
  `InvalidBase64Error`. All derive from `FileError`.
- `to_bytes`, `to_base64`, `verify_hash`, `is_image`, `is_text` and
  `is_application` inspect the content and type.

## Retries

```python
import asyncio
from claudesdk.errors import HttpError
from claudesdk.retry import RetryCondition, RetryExecutor, RetryPolicy, Success

policy = RetryPolicy(
    max_retries=3,
    initial_delay=0.1,       # seconds
    retry_conditions=[RetryCondition.SERVER_ERROR, RetryCondition.RATE_LIMIT],
)

attempts = 0

async def flaky():
    global attempts
    attempts += 1
    if attempts < 3:
        raise HttpError(503, "Service temporarily unavailable")
    return "done"

async def main():
    result = await RetryExecutor(policy).execute(flaky)
    if isinstance(result, Success):
        print(result.value)
    else:
        print("failed:", result.error)

asyncio.run(main())
```

`execute` returns `Success(value)` or `Failed(error)`. Only `AnthropicError`
exceptions are retried; anything else propagates. The delay after attempt *n*
is `initial_delay * multiplier ** n`, capped at `max_delay`, and retrying stops
once `max_elapsed_time` has passed. Use `HttpStatus(code)` as a condition to
retry on one exact status. `default_retry()` and `api_retry()` return ready-made
executors; `api_retry()` starts at a 0.5 s delay.

## Streaming

```python
import httpx
from claudesdk.streaming import StreamEventType, StreamRequestBuilder

async def stream_reply():
    async with httpx.AsyncClient() as client:
        builder = (
            StreamRequestBuilder(client, "https://api.example.com")
            .header("x-api-key", "placeholder")
        )
        stream = await builder.post_stream("/v1/messages", {
            "model": "claude-3-5-sonnet-latest",
            "max_tokens": 256,
            "stream": True,
            "messages": [{"role": "user", "content": "Hello"}],
        })
        async for event in stream:
            if event.type is StreamEventType.CONTENT_BLOCK_DELTA:
                print(event.delta.get("text", ""), end="")
```

- A non-success response raises `HttpError`; a failure to connect raises
  `ApiConnectionError`.
- A malformed event raises `StreamError` from the iterator; iteration may go
  on afterwards. Ping events are skipped.
- `stream.subscribe()` returns an `asyncio.Queue` that receives every event
  read from then on; `stream.ended()` and `stream.request_id()` report state.
- `SseDecoder` (`feed`, `finish`) and `parse_stream_event` can be used on their
  own, for example on bytes captured from an earlier stream. Both the standard
  format (type in the JSON payload) and the format where the SSE event name is
  the type are understood.

## What this package does not do

It is not a complete API client. There is no client object, no configuration
from the environment, no authentication handling, and no helpers for messages,
batches, models or file uploads: you send requests yourself (for example with
`StreamRequestBuilder` and your own headers) and use these modules around them.
Stream events keep their payloads as plain decoded JSON dictionaries.

## Running the tests

```
pip install -e ".[test]"
pytest
```