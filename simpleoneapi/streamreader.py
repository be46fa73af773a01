"""Reading OpenAI-style chat completion chunks from an event stream."""

from __future__ import annotations

import codecs
import json
from collections.abc import Iterable, Iterator
from typing import Any, Union

from simpleoneapi.schema import OpenAIStreamResponse

_DATA_PREFIX = "data: "
_READ_SIZE = 4096

StreamSource = Union[bytes, str, Iterable[Union[bytes, str]], Any]


class StreamFormatError(ValueError):
    """The stream held a line that is not a valid chunk."""

    def __init__(self, message: str, data: str = "") -> None:
        super().__init__(message)
        self.data = data


def _raw_chunks(source: StreamSource) -> Iterator[bytes | str]:
    if isinstance(source, (bytes, bytearray, str)):
        yield source
        return
    read = getattr(source, "read", None)
    if callable(read):
        while True:
            chunk = read(_READ_SIZE)
            if not chunk:
                return
            yield chunk
        return
    yield from source


def _text_chunks(source: StreamSource) -> Iterator[str]:
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    for chunk in _raw_chunks(source):
        if isinstance(chunk, (bytes, bytearray)):
            text = decoder.decode(bytes(chunk))
        else:
            text = chunk
        if text:
            yield text
    tail = decoder.decode(b"", final=True)
    if tail:
        yield tail


class ChatCompletionStream:
    """Chunks of a streamed chat completion, read line by line from ``source``.

    ``source`` may be bytes, text, a file-like object with ``read`` or an
    iterable of byte or text chunks.
    """

    def __init__(self, source: StreamSource) -> None:
        self._chunks = _text_chunks(source)
        self._buffer = ""

    def _read_line(self) -> str | None:
        while True:
            newline = self._buffer.find("\n")
            if newline >= 0:
                line = self._buffer[: newline + 1]
                self._buffer = self._buffer[newline + 1 :]
                return line
            chunk = next(self._chunks, None)
            if chunk is None:
                return None
            self._buffer += chunk

    def _read_rest(self) -> str:
        rest = self._buffer + "".join(self._chunks)
        self._buffer = ""
        return rest

    def recv(self) -> OpenAIStreamResponse | None:
        """Return the next chunk, or ``None`` for a blank line.

        Raises :class:`EOFError` when the stream ends or sends ``[DONE]``,
        and :class:`StreamFormatError` on a line that is not a chunk.
        """
        line = self._read_line()
        if line is None:
            raise EOFError("end of stream")
        if line == "\n":
            return None
        if "[DONE]" in line:
            raise EOFError("end of stream")

        data = line.strip()
        if data.startswith(_DATA_PREFIX):
            payload = data[len(_DATA_PREFIX) :]
            try:
                decoded = json.loads(payload)
            except ValueError as exc:
                raise StreamFormatError(f"invalid chunk: {exc}", payload) from exc
            if not isinstance(decoded, dict):
                raise StreamFormatError("invalid chunk: not a JSON object", payload)
            try:
                return OpenAIStreamResponse.from_dict(decoded)
            except (TypeError, AttributeError, ValueError) as exc:
                raise StreamFormatError(f"invalid chunk: {exc}", payload) from exc

        rest = self._read_rest()
        raise StreamFormatError(f"unexpected data format: {rest}", rest)

    def __iter__(self) -> Iterator[OpenAIStreamResponse]:
        """Yield every chunk until the stream ends, skipping blank lines."""
        while True:
            try:
                chunk = self.recv()
            except EOFError:
                return
            if chunk is not None:
                yield chunk