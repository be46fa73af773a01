"""Server-sent-event helpers for OpenAI-style streaming."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping

_DATA_PREFIX = "data:"


def event_stream_headers() -> dict[str, str]:
    """Headers sent with an event-stream response."""
    return {
        "Content-Type": "text/event-stream",
        "Cache-Control": "no-cache",
        "Connection": "keep-alive",
        "Transfer-Encoding": "chunked",
        "X-Accel-Buffering": "no",
    }


def openai_stream_eof() -> str:
    """The frame that ends an OpenAI-style stream."""
    return "data: [DONE]\n\n"


def get_api_key_from_header(headers: Mapping[str, str]) -> str:
    """Extract the key from an ``Authorization: Bearer <key>`` header."""
    auth_header = next(
        (value for name, value in headers.items() if name.lower() == "authorization"), ""
    )
    if not auth_header:
        raise ValueError("invalid authorization header format")
    parts = auth_header.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer":
        raise ValueError("authorization header not found")
    return parts[1]


def normalize_sse_line(line: str) -> str:
    """Insert the missing space after a bare ``data:`` prefix."""
    if line.startswith(_DATA_PREFIX) and not line.startswith("data: "):
        return line.replace(_DATA_PREFIX, "data: ", 1)
    return line


def normalize_sse_lines(lines: Iterable[str]) -> Iterator[str]:
    """Normalise every line of an event stream."""
    for line in lines:
        yield normalize_sse_line(line)