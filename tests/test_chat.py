import base64
import json

import pytest
import responses

from simpleoneapi.chat import (
    ChatCompletionRequest,
    ChatMessage,
    ChatMessagePart,
    ChatRequestError,
    ImageURL,
    adjust_request_params,
    convert_system_messages_to_no_system,
    deep_copy_request,
    get_image_url_data,
    get_latest_message,
    get_system_message,
    is_multi_content_message,
    normalize_messages,
    parse_chat_completion_request,
    redacted_request_json,
)
from simpleoneapi.modelparams import adjust_params_to_range


def _image_message(url):
    return ChatMessage(
        role="user",
        multi_content=[
            ChatMessagePart(type="image_url", image_url=ImageURL(url=url)),
            ChatMessagePart(type="text", text="describe"),
        ],
    )


def test_system_message_plain_and_multi():
    plain = [ChatMessage("user", "hi"), ChatMessage("system", "be brief")]
    assert get_system_message(plain) == "be brief"
    multi = [
        ChatMessage("system", multi_content=[ChatMessagePart(type="text", text="rules")])
    ]
    assert get_system_message(multi) == "rules"


def test_system_message_without_text_part_falls_through():
    messages = [
        ChatMessage(
            "system",
            multi_content=[ChatMessagePart(type="image_url", image_url=ImageURL(url="x"))],
        ),
        ChatMessage("system", "second"),
    ]
    assert get_system_message(messages) == "second"
    assert get_system_message([ChatMessage("user", "hi")]) == ""


def test_latest_message():
    assert get_latest_message([]) == ""
    assert get_latest_message([ChatMessage("user", "a"), ChatMessage("system", "b")]) == ""
    assert get_latest_message([ChatMessage("user", "a"), _image_message("x")]) == "describe"
    assert get_latest_message([ChatMessage("assistant", "last")]) == "last"


def test_is_multi_content():
    assert is_multi_content_message([ChatMessage("user", "a"), _image_message("u")])
    assert not is_multi_content_message([ChatMessage("user", "a")])
    assert not is_multi_content_message([])


def test_convert_single_system_becomes_user():
    original = [ChatMessage("system", "only")]
    result = convert_system_messages_to_no_system(original)
    assert [(m.role, m.content) for m in result] == [("user", "only")]
    assert original[0].role == "system"


def test_convert_merges_system_into_next():
    original = [ChatMessage("System", "sys"), ChatMessage("user", "q"), ChatMessage("assistant", "a")]
    result = convert_system_messages_to_no_system(original)
    assert [(m.role, m.content) for m in result] == [("user", "sys\nq"), ("assistant", "a")]
    assert original[1].content == "q"


def test_normalize_drops_repeats_and_late_system():
    messages = [
        ChatMessage("system", "s"),
        ChatMessage("user", "u1"),
        ChatMessage("user", "u2"),
        ChatMessage("system", "late"),
        ChatMessage("assistant", "a1"),
        ChatMessage("tool", "t"),
    ]
    result = normalize_messages(messages, False)
    assert [m.content for m in result] == ["s", "u1", "a1", "t"]
    kept = normalize_messages(messages, True)
    assert [m.content for m in kept] == ["s", "u1", "late", "a1", "t"]


def test_normalize_single_system_and_empty():
    assert [m.role for m in normalize_messages([ChatMessage("system", "x")], False)] == ["user"]
    assert normalize_messages([], True) == []


def test_image_data_url():
    assert get_image_url_data("data:image/png;base64,AAAA") == ("AAAA", "image/png")


def test_image_data_url_errors():
    with pytest.raises(ChatRequestError, match="invalid data URL format"):
        get_image_url_data("data:image/png;base64")
    with pytest.raises(ChatRequestError, match="unsupported URL format"):
        get_image_url_data("ftp://example.com/a.png")


def test_image_http_download():
    with responses.RequestsMock() as mocked:
        mocked.add(
            responses.GET,
            "http://example.com/a.png",
            body=b"\x89PNGdata",
            content_type="image/png",
        )
        data, mime = get_image_url_data("http://example.com/a.png")
    assert base64.b64decode(data) == b"\x89PNGdata"
    assert mime == "image/png"


def test_image_http_error_status():
    with responses.RequestsMock() as mocked:
        mocked.add(responses.GET, "http://example.com/missing.png", status=404)
        with pytest.raises(ChatRequestError, match="HTTP status 404"):
            get_image_url_data("http://example.com/missing.png")


def test_adjust_known_model_matches_ranges():
    request = ChatCompletionRequest(model="glm-4", temperature=1.5, top_p=-1.0, max_tokens=99999)
    expected = adjust_params_to_range("glm-4", 1.5, -1.0, 99999)
    adjust_request_params(request)
    assert (request.temperature, request.top_p, request.max_tokens) == expected
    assert request.max_tokens <= 4095


def test_adjust_unknown_model_unchanged():
    request = ChatCompletionRequest(model="other", temperature=1.5, top_p=2.0, max_tokens=-3)
    adjust_request_params(request)
    assert (request.temperature, request.top_p, request.max_tokens) == (1.5, 2.0, -3)


def test_deep_copy_is_independent():
    original = ChatCompletionRequest(model="m", messages=[_image_message("http://example.com/i")])
    duplicate = deep_copy_request(original)
    duplicate.messages[0].multi_content[0].image_url.url = "changed"
    assert original.messages[0].multi_content[0].image_url.url == "http://example.com/i"
    assert duplicate == deep_copy_request(duplicate)


def test_redacted_json_hides_inline_images_only():
    request = ChatCompletionRequest(
        model="m",
        messages=[_image_message("data:image/png;base64,AAAA"), _image_message("http://example.com/i")],
    )
    decoded = json.loads(redacted_request_json(request))
    assert decoded["messages"][0]["content"][0]["image_url"]["url"] == "..."
    assert decoded["messages"][1]["content"][0]["image_url"]["url"] == "http://example.com/i"
    assert request.messages[0].multi_content[0].image_url.url.startswith("data:")


def test_parse_string_and_object_content():
    body = json.dumps(
        {
            "model": "random",
            "temperature": 0.5,
            "stream": True,
            "messages": [
                {"role": "user", "content": "你好，大模型"},
                {"role": "assistant", "content": {"type": "text", "text": "ok"}},
                {"role": "user", "content": None},
            ],
        }
    )
    request = parse_chat_completion_request(body)
    assert request.model == "random"
    assert request.temperature == 0.5
    assert request.stream is True
    assert [(m.role, m.content) for m in request.messages] == [
        ("user", "你好，大模型"),
        ("assistant", "ok"),
        ("user", ""),
    ]


def test_parse_array_content_kept_as_json():
    parts = [
        {"type": "text", "text": "look"},
        {"type": "image_url", "image_url": {"url": "http://example.com/i"}},
    ]
    body = json.dumps({"model": "m", "messages": [{"role": "user", "content": parts}]})
    request = parse_chat_completion_request(body.encode())
    assert json.loads(request.messages[0].content) == parts


def test_parse_errors():
    with pytest.raises(ChatRequestError, match="unexpected content type: image_url"):
        parse_chat_completion_request(
            json.dumps({"messages": [{"role": "user", "content": {"type": "image_url"}}]})
        )
    with pytest.raises(ChatRequestError, match="failed to unmarshal content"):
        parse_chat_completion_request(json.dumps({"messages": [{"role": "user", "content": 3}]}))
    with pytest.raises(ChatRequestError, match="failed to unmarshal content"):
        parse_chat_completion_request(json.dumps({"messages": [{"role": "user"}]}))
    with pytest.raises(ChatRequestError):
        parse_chat_completion_request("{not json")


def test_to_dict_renders_multi_content_as_list():
    request = ChatCompletionRequest(model="m", messages=[_image_message("http://example.com/i")])
    rendered = request.to_dict()
    assert rendered["messages"][0]["content"][1] == {"type": "text", "text": "describe"}
    assert "stream" not in rendered
    assert ChatCompletionRequest(model="m", stream=True).to_dict()["stream"] is True