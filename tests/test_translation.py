import json

import pytest

from simpleoneapi.schema import Choice, OpenAIResponse, ResponseMessage
from simpleoneapi.streamreader import ChatCompletionStream, StreamFormatError
from simpleoneapi.translation import (
    TranslationError,
    TranslationV1Request,
    TranslationV2Request,
    create_translation_prompt,
    create_translation_prompt_json,
    llm_translate,
    llm_translate_stream,
    translate_v1,
    translate_v2,
)


def _sse(*deltas):
    frames = [
        "data: " + json.dumps({"choices": [{"index": 0, "delta": {"content": d}}]}) + "\n\n"
        for d in deltas
    ]
    return "".join(frames) + "data: [DONE]\n\n"


class FakeClient:
    def __init__(self, translate=lambda prompt: "Hallo, Welt!", stream_body=""):
        self.translate = translate
        self.stream_body = stream_body
        self.requests = []

    def create_chat_completion(self, request):
        self.requests.append(request)
        reply = self.translate(request.messages[0].content)
        if reply is None:
            return OpenAIResponse()
        return OpenAIResponse(
            choices=[Choice(message=ResponseMessage(role="assistant", content=reply))]
        )

    def create_chat_completion_stream(self, request):
        self.requests.append(request)
        return ChatCompletionStream(self.stream_body)


def _fail(prompt):
    raise RuntimeError("boom")


def test_default_prompt_carries_target_and_text():
    prompt = create_translation_prompt("Hello world!", "", "DE")
    assert "将以下文本翻译为目标语言：DE\n文本:\n\n\nHello world!\n```\n输出：" in prompt
    assert prompt.endswith("输出：")


def test_custom_template():
    prompt = create_translation_prompt("Hello world!", "", "DE", "Into %s: %s")
    assert prompt == "Into DE: Hello world!"


def test_template_with_too_few_verbs_reports_extra():
    prompt = create_translation_prompt("Hello world!", "", "DE", "%s")
    assert prompt == "DE%!(EXTRA string=Hello world!)"


def test_json_prompt_embeds_request():
    prompt = create_translation_prompt_json("Hello world!", "EN", "DE")
    assert '{"text":"Hello world!","source_lang":"EN","target_lang":"DE"}' in prompt
    without_source = create_translation_prompt_json("Hello world!", "", "DE")
    assert "source_lang" not in without_source.split("现在我的输入是")[1]


def test_llm_translate_returns_first_choice():
    client = FakeClient()
    assert llm_translate("Hello world!", "", "DE", client) == "Hallo, Welt!"
    request = client.requests[0]
    assert request.model == "random"
    assert request.stream is False
    assert request.messages[0].role == "user"
    assert "Hello world!" in request.messages[0].content


def test_llm_translate_without_choices_raises():
    with pytest.raises(TranslationError, match="no result"):
        llm_translate("Hello world!", "", "DE", FakeClient(translate=lambda p: None))


def test_llm_translate_stream_calls_back_and_joins():
    client = FakeClient(stream_body=_sse("Hallo", ", Welt!"))
    seen = []
    result = llm_translate_stream("Hello world!", "", "DE", seen.append, client)
    assert seen == ["Hallo", ", Welt!"]
    assert result == "".join(seen)
    assert client.requests[0].stream is True


def test_llm_translate_stream_propagates_stream_errors():
    client = FakeClient(stream_body="not a frame\n")
    with pytest.raises(StreamFormatError):
        llm_translate_stream("Hello world!", "", "DE", lambda d: None, client)


def test_v1_request_validation():
    with pytest.raises(TranslationError, match="'Text'"):
        TranslationV1Request.from_dict({"target_lang": "DE"})
    request = TranslationV1Request.from_dict({"text": "Hello world!", "target_lang": "DE"})
    assert request.to_dict() == {"text": "Hello world!", "target_lang": "DE"}


def test_translate_v1_plain():
    status, body = translate_v1({"text": "Hello world!", "target_lang": "DE"}, FakeClient())
    assert status == 200
    assert body == {
        "code": 200,
        "data": "Hallo, Welt!",
        "id": 8356681003,
        "method": "Pro",
        "target_lang": "DE",
    }


def test_translate_v1_missing_field_is_bad_request():
    status, body = translate_v1(b'{"text": "Hello world!"}', FakeClient())
    assert status == 400
    assert "'TargetLang'" in body["error"]


def test_translate_v1_invalid_json_is_bad_request():
    status, body = translate_v1(b"{not json", FakeClient())
    assert status == 400
    assert body["error"]


def test_translate_v1_upstream_failure_is_server_error():
    status, body = translate_v1(
        {"text": "Hello world!", "target_lang": "DE"}, FakeClient(translate=_fail)
    )
    assert (status, body) == (500, {"error": "boom"})


def test_translate_v1_stream_frames():
    client = FakeClient(stream_body=_sse("Hallo", ", Welt!"))
    status, frames = translate_v1(
        {"text": "Hello world!", "target_lang": "DE", "stream": True}, client
    )
    frames = list(frames)
    assert status == 200
    assert all(f.startswith("data: ") and f.endswith("\n\n") for f in frames)
    decoded = [json.loads(f[len("data: ") :]) for f in frames]
    assert [d["data"] for d in decoded] == ["Hallo", ", Welt!"]
    assert decoded[0] == {"code": 0, "data": "Hallo", "target_lang": ""}


def test_translate_v1_stream_error_ends_body():
    client = FakeClient(stream_body=_sse("Hallo") [:-len("data: [DONE]\n\n")] + "oops\n")
    _, frames = translate_v1({"text": "Hello world!", "target_lang": "DE", "stream": True}, client)
    frames = list(frames)
    assert frames[0].startswith("data: ")
    assert "error" in json.loads(frames[-1])


def test_v2_request_requires_text():
    with pytest.raises(TranslationError, match="'Text'"):
        TranslationV2Request.from_dict({"target_lang": "DE"})


def test_translate_v2_translates_each_text_and_skips_failures():
    table = {"apple": "Apfel", "pear": "Birne"}

    def translate(prompt):
        if "broken" in prompt:
            raise RuntimeError("boom")
        return next(v for k, v in table.items() if k in prompt)

    status, body = translate_v2(
        {"text": ["apple", "pear", "broken"], "target_lang": "DE"},
        FakeClient(translate=translate),
    )
    assert status == 200
    assert sorted(t["text"] for t in body["translations"]) == ["Apfel", "Birne"]
    assert all(t["detected_source_language"] == "" for t in body["translations"])


def test_translate_v2_empty_list_gives_null():
    status, body = translate_v2({"text": [], "target_lang": "DE"}, FakeClient())
    assert (status, body) == (200, {"translations": None})


def test_translate_v2_missing_target_is_bad_request():
    status, body = translate_v2({"text": ["Hello world!"]}, FakeClient())
    assert status == 400
    assert "'TargetLang'" in body["error"]


def test_translate_v2_stream_uses_first_text():
    client = FakeClient(stream_body=_sse("Hallo"))
    status, frames = translate_v2(
        {"text": ["Hello world!", "ignored"], "target_lang": "DE", "stream": True}, client
    )
    frames = list(frames)
    assert status == 200
    decoded = json.loads(frames[0][len("data: ") :])
    assert decoded["translations"][0]["text"] == "Hallo"
    assert "Hello world!" in client.requests[0].messages[0].content
    assert "ignored" not in client.requests[0].messages[0].content