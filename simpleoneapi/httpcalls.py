"""HTTP calls to upstream chat services, plain and server-sent-event."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping

import requests

_log = logging.getLogger(__name__)


class HTTPStatusError(Exception):
    """An upstream answered with an unexpected HTTP status."""

    def __init__(self, message: str, status_code: int, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


def _text(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def _status_line(response: requests.Response) -> str:
    reason = response.reason or ""
    return f"{response.status_code} {reason}".strip()


def check_status_code(response: requests.Response) -> requests.Response:
    """Return ``response`` if it is 200 OK, else raise with its body."""
    if response.status_code == 200:
        return response
    try:
        body = _text(response.content)
    except requests.RequestException as exc:
        _log.error("Failed to read response body status=%d error=%s", response.status_code, exc)
        raise HTTPStatusError(
            "failed to read error response body", response.status_code
        ) from exc
    _log.error("Unexpected status code status=%d body=%s", response.status_code, body)
    raise HTTPStatusError(f"status {response.status_code}: {body}", response.status_code, body)


def check_error_response(
    response: requests.Response, limit: int | None = None
) -> requests.Response:
    """Return ``response`` if its status is below 400, else raise with (up to ``limit`` bytes of) its body."""
    if response.status_code < 400:
        return response
    try:
        content = response.content
    except requests.RequestException as exc:
        raise HTTPStatusError(
            f"error reading error response body: {exc}", response.status_code
        ) from exc
    finally:
        response.close()
    if limit is not None:
        content = content[:limit]
    body = _text(content)
    raise HTTPStatusError(
        f"HTTP error: {_status_line(response)}, body: {body}", response.status_code, body
    )


def _post(
    api_key: str,
    url: str,
    body: bytes | str,
    session: requests.Session | None,
    headers: Mapping[str, str] | None = None,
    stream: bool = False,
) -> requests.Response:
    request_headers = {
        "Content-Type": "application/json",
        "Authorization": f"Bearer {api_key}",
    }
    if headers:
        request_headers.update(headers)
    requester = session if session is not None else requests
    return requester.post(url, data=body, headers=request_headers, stream=stream)


def send_http_request(
    api_key: str,
    url: str,
    body: bytes | str,
    session: requests.Session | None = None,
) -> bytes:
    """POST a JSON body and return the response body; raise unless the status is 200."""
    with _post(api_key, url, body, session) as response:
        content = response.content
        if response.status_code != 200:
            text = _text(content)
            raise HTTPStatusError(
                f"http status code: {response.status_code}, {text}", response.status_code, text
            )
        return content


def _complete_lines(response: requests.Response) -> Iterator[str]:
    """Yield newline-terminated lines; a trailing unterminated fragment is dropped."""
    pending = b""
    for chunk in response.iter_content(chunk_size=None):
        pending += chunk
        while True:
            line, newline, rest = pending.partition(b"\n")
            if not newline:
                break
            pending = rest
            yield _text(line + newline)


def _dispatch_data_lines(response: requests.Response, callback: Callable[[str], None]) -> None:
    for line in _complete_lines(response):
        _log.debug("SSE line %r", line)
        if line.startswith("data:"):
            callback(line[5:].strip())


def send_sse_request(
    api_key: str,
    url: str,
    body: bytes | str,
    callback: Callable[[str], None],
    session: requests.Session | None = None,
) -> None:
    """POST a JSON body and pass the payload of each ``data:`` line to ``callback``."""
    _log.debug("send_sse_request url=%s", url)
    with _post(
        api_key, url, body, session, headers={"Accept": "text/event-stream"}, stream=True
    ) as response:
        if response.status_code != 200:
            content = response.content
            message = _text(content) if content else "empty response body"
            raise HTTPStatusError(
                f"http status code: {response.status_code}, {message}",
                response.status_code,
                message,
            )
        _dispatch_data_lines(response, callback)


def send_sse_request_with_headers(
    api_key: str,
    url: str,
    body: bytes | str,
    callback: Callable[[str], None],
    session: requests.Session | None = None,
    headers: Mapping[str, str] | None = None,
) -> None:
    """Like :func:`send_sse_request` with extra headers and no status check."""
    _log.debug("send_sse_request_with_headers url=%s", url)
    with _post(api_key, url, body, session, headers=headers, stream=True) as response:
        _dispatch_data_lines(response, callback)