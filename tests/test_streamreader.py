import io
import json

import pytest

from simpleoneapi.streamreader import ChatCompletionStream, StreamFormatError


def _frame(content, model="random"):
    body = {"model": model, "choices": [{"index": 0, "delta": {"content": content}}]}
    return "data: " + json.dumps(body, ensure_ascii=False) + "\n\n"


def test_stream_mode_collects_deltas_until_done():
    # Mirrors the streaming client check: print every delta until EOF.
    text = _frame("你好") + _frame("，大模型") + "data: [DONE]\n\n"
    stream = ChatCompletionStream(text)
    pieces = [chunk.choices[0].delta.content for chunk in stream]
    assert "".join(pieces) == "你好，大模型"


def test_recv_returns_chunk_then_none_for_blank_line():
    stream = ChatCompletionStream(_frame("hi"))
    chunk = stream.recv()
    assert chunk.model == "random"
    assert chunk.choices[0].delta.content == "hi"
    assert stream.recv() is None
    with pytest.raises(EOFError):
        stream.recv()


def test_done_marker_ends_stream():
    stream = ChatCompletionStream("data: [DONE]\n" + _frame("never"))
    with pytest.raises(EOFError):
        stream.recv()


def test_unterminated_last_line_is_dropped():
    stream = ChatCompletionStream('data: {"id": "x"}')
    with pytest.raises(EOFError):
        stream.recv()


def test_unexpected_format_reports_rest_of_stream():
    stream = ChatCompletionStream("garbage\nmore\ntail")
    with pytest.raises(StreamFormatError) as info:
        stream.recv()
    assert info.value.data == "more\ntail"
    assert "unexpected data format: more\ntail" in str(info.value)


def test_invalid_json_raises_format_error():
    stream = ChatCompletionStream("data: {oops\n")
    with pytest.raises(StreamFormatError):
        stream.recv()


def test_non_object_json_raises_format_error():
    stream = ChatCompletionStream("data: [1, 2]\n")
    with pytest.raises(StreamFormatError):
        stream.recv()


def test_error_chunk_is_decoded():
    stream = ChatCompletionStream('data: {"error": {"message": "boom", "type": "server"}}\n')
    chunk = stream.recv()
    assert chunk.error.message == "boom"
    assert chunk.error.type == "server"
    assert chunk.choices == []


def test_file_like_source():
    raw = (_frame("a") + _frame("b") + "data: [DONE]\n").encode("utf-8")
    stream = ChatCompletionStream(io.BytesIO(raw))
    assert [c.choices[0].delta.content for c in stream] == ["a", "b"]


def test_chunks_split_inside_lines_and_characters():
    raw = (_frame("你好") + "data: [DONE]\n").encode("utf-8")
    pieces = [raw[i : i + 3] for i in range(0, len(raw), 3)]
    stream = ChatCompletionStream(iter(pieces))
    assert [c.choices[0].delta.content for c in stream] == ["你好"]


def test_iteration_propagates_format_errors():
    stream = ChatCompletionStream(_frame("ok") + "bad line\n")
    seen = []
    with pytest.raises(StreamFormatError) as info:
        for chunk in stream:
            seen.append(chunk.choices[0].delta.content)
    assert seen == ["ok"]
    assert "unexpected data format" in str(info.value)