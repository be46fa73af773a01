import pytest

from simpleoneapi.sse import (
    event_stream_headers,
    get_api_key_from_header,
    normalize_sse_line,
    normalize_sse_lines,
    openai_stream_eof,
)


def test_event_stream_headers():
    headers = event_stream_headers()
    assert headers["Content-Type"] == "text/event-stream"
    assert headers["Cache-Control"] == "no-cache"
    assert headers["X-Accel-Buffering"] == "no"
    assert len(headers) == 5


def test_openai_stream_eof():
    assert openai_stream_eof() == "data: [DONE]\n\n"


def test_api_key_from_header():
    assert get_api_key_from_header({"Authorization": "Bearer token"}) == "token"


def test_api_key_header_name_is_case_insensitive():
    assert get_api_key_from_header({"authorization": "Bearer token"}) == "token"


def test_api_key_missing_header():
    with pytest.raises(ValueError, match="invalid authorization header format"):
        get_api_key_from_header({})


@pytest.mark.parametrize("value", ["Basic token", "Bearer", "Bearer token extra"])
def test_api_key_bad_header(value):
    with pytest.raises(ValueError, match="authorization header not found"):
        get_api_key_from_header({"Authorization": value})


def test_normalize_adds_space():
    assert normalize_sse_line('data:{"a":1}\n') == 'data: {"a":1}\n'


def test_normalize_keeps_well_formed_and_other_lines():
    assert normalize_sse_line("data: x\n") == "data: x\n"
    assert normalize_sse_line("event: data:\n") == "event: data:\n"


def test_normalize_only_first_prefix():
    assert normalize_sse_line("data:data:x") == "data: data:x"


def test_normalize_lines_preserves_order():
    lines = ["data:a\n", "\n", "data: b\n"]
    result = list(normalize_sse_lines(lines))
    assert result == ["data: a\n", "\n", "data: b\n"]