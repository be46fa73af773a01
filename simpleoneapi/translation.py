"""Text translation through a chat model, with v1 and v2 request handlers."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable, Iterator, Mapping
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Protocol, Union

from simpleoneapi.chat import ROLE_USER, ChatCompletionRequest, ChatMessage
from simpleoneapi.schema import OpenAIResponse, OpenAIStreamResponse

_log = logging.getLogger(__name__)

_MODEL = "random"
_V2_CONCURRENCY = 5
_V1_ID = 8356681003
_V1_METHOD = "Pro"

DEFAULT_PROMPT_TEMPLATE = (
    "你是一个机器翻译接口，遵循以下输入输出协议，当接收到输入，直接给出输出即可，不要任何多余的回复\n"
    "输入：\n```\n将以下文本翻译为目标语言：DE\n文本:\n\n\nHello world!\n```\n\n"
    "翻译结果直接输出：\n\nHallo, Welt!\n\n"
    "现在我的输入是：\n```\n将以下文本翻译为目标语言：%s\n文本:\n\n\n%s\n```\n输出："
)

_JSON_PROMPT_TEMPLATE = (
    "你是一个机器翻译接口，遵循以下输入输出协议，当接收到输入，直接给出输出即可，不要任何多余的回复\n"
    "输入协议(json格式)：\n```\n"
    '{"text":"Hello world!","target_lang":"DE"}'
    "\n```\n\n翻译结果直接输出：\n\nHallo, Welt!\n\n"
    "现在我的输入是：\n```\n%s\n```\n输出：\n"
)

HandlerResult = tuple[int, Union[dict[str, Any], Iterator[str]]]


class ChatClient(Protocol):
    """What translation needs from a chat completion client."""

    def create_chat_completion(self, request: ChatCompletionRequest) -> OpenAIResponse: ...

    def create_chat_completion_stream(
        self, request: ChatCompletionRequest
    ) -> Iterator[OpenAIStreamResponse]: ...


class TranslationError(ValueError):
    """A translation request was invalid or produced no result."""


def _compact_json(value: Any) -> str:
    text = json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return text.replace("<", "\\u003c").replace(">", "\\u003e").replace("&", "\\u0026")


def _go_format(template: str, *args: str) -> str:
    """Substitute ``%s`` verbs in order, reporting missing and extra values inline."""
    used = 0

    def substitute(match: re.Match[str]) -> str:
        nonlocal used
        if match.group() == "%%":
            return "%"
        if used < len(args):
            value = args[used]
            used += 1
            return value
        return "%!s(MISSING)"

    text = re.sub(r"%[%s]", substitute, template)
    if used < len(args):
        extra = ", ".join(f"string={value}" for value in args[used:])
        text += f"%!(EXTRA {extra})"
    return text


def _required_error(struct: str, name: str) -> str:
    return (
        f"Key: '{struct}.{name}' Error:Field validation for '{name}' "
        "failed on the 'required' tag"
    )


def _string_field(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise TranslationError(f"field {key!r} must be a string")
    return value


def _bool_field(data: Mapping[str, Any], key: str) -> bool:
    value = data.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise TranslationError(f"field {key!r} must be a boolean")
    return value


@dataclass
class TranslationV1Request:
    """A v1 translation request: one text."""

    text: str
    target_lang: str
    source_lang: str = ""
    stream: bool = False

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"text": self.text}
        if self.source_lang:
            out["source_lang"] = self.source_lang
        out["target_lang"] = self.target_lang
        if self.stream:
            out["stream"] = self.stream
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TranslationV1Request:
        """Build and validate a request; ``text`` and ``target_lang`` are required."""
        request = cls(
            text=_string_field(data, "text"),
            target_lang=_string_field(data, "target_lang"),
            source_lang=_string_field(data, "source_lang"),
            stream=_bool_field(data, "stream"),
        )
        problems = []
        if not request.text:
            problems.append(_required_error("TranslationV1Request", "Text"))
        if not request.target_lang:
            problems.append(_required_error("TranslationV1Request", "TargetLang"))
        if problems:
            raise TranslationError("\n".join(problems))
        return request


@dataclass
class TranslationV1Response:
    """A v1 translation response or stream frame."""

    data: str = ""
    code: int = 0
    target_lang: str = ""
    alternatives: list[str] = field(default_factory=list)
    id: int = 0
    method: str = ""
    source_lang: str = ""

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.alternatives:
            out["alternatives"] = list(self.alternatives)
        out["code"] = self.code
        out["data"] = self.data
        if self.id:
            out["id"] = self.id
        if self.method:
            out["method"] = self.method
        if self.source_lang:
            out["source_lang"] = self.source_lang
        out["target_lang"] = self.target_lang
        return out


@dataclass
class TranslationV2Request:
    """A v2 translation request: a list of texts."""

    text: list[str]
    target_lang: str
    source_lang: str = ""
    stream: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TranslationV2Request:
        """Build and validate a request; ``text`` and ``target_lang`` are required."""
        texts = data.get("text")
        if texts is not None and (
            not isinstance(texts, list) or not all(isinstance(t, str) for t in texts)
        ):
            raise TranslationError("field 'text' must be an array of strings")
        target_lang = _string_field(data, "target_lang")
        problems = []
        if texts is None:
            problems.append(_required_error("TranslationV2Request", "Text"))
        if not target_lang:
            problems.append(_required_error("TranslationV2Request", "TargetLang"))
        if problems:
            raise TranslationError("\n".join(problems))
        return cls(
            text=list(texts),
            target_lang=target_lang,
            source_lang=_string_field(data, "source_lang"),
            stream=_bool_field(data, "stream"),
        )


@dataclass
class TranslationV2Result:
    """One translated text."""

    text: str = ""
    detected_source_language: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"detected_source_language": self.detected_source_language, "text": self.text}


@dataclass
class TranslationV2Response:
    """A v2 translation response; ``translations`` is ``None`` when nothing was translated."""

    translations: list[TranslationV2Result] | None = None

    def to_dict(self) -> dict[str, Any]:
        if self.translations is None:
            return {"translations": None}
        return {"translations": [result.to_dict() for result in self.translations]}


def create_translation_prompt(
    src_text: str, src_lang: str, target_lang: str, template: str | None = None
) -> str:
    """Fill the prompt template (``%s`` for the target language, then the text)."""
    return _go_format(template or DEFAULT_PROMPT_TEMPLATE, target_lang, src_text)


def create_translation_prompt_json(src_text: str, src_lang: str, target_lang: str) -> str:
    """Build a prompt that carries the request as a JSON document."""
    request = TranslationV1Request(text=src_text, target_lang=target_lang, source_lang=src_lang)
    return _go_format(_JSON_PROMPT_TEMPLATE, _compact_json(request.to_dict()))


def _build_request(prompt: str, stream: bool) -> ChatCompletionRequest:
    return ChatCompletionRequest(
        model=_MODEL,
        stream=stream,
        messages=[ChatMessage(role=ROLE_USER, content=prompt)],
    )


def llm_translate(
    src_text: str,
    src_lang: str,
    target_lang: str,
    client: ChatClient,
    template: str | None = None,
) -> str:
    """Translate ``src_text`` with one chat completion."""
    prompt = create_translation_prompt(src_text, src_lang, target_lang, template)
    response = client.create_chat_completion(_build_request(prompt, stream=False))
    if not response.choices:
        raise TranslationError("no result")
    content = response.choices[0].message.content
    _log.info("Received chat response content=%s", content)
    return content


def _stream_deltas(
    src_text: str,
    src_lang: str,
    target_lang: str,
    client: ChatClient,
    template: str | None,
) -> Iterator[str]:
    prompt = create_translation_prompt(src_text, src_lang, target_lang, template)
    for chunk in client.create_chat_completion_stream(_build_request(prompt, stream=True)):
        if chunk is None:
            continue
        _log.info("Received chat response %r", chunk)
        if chunk.choices:
            yield chunk.choices[0].delta.content


def llm_translate_stream(
    src_text: str,
    src_lang: str,
    target_lang: str,
    callback: Callable[[str], None],
    client: ChatClient,
    template: str | None = None,
) -> str:
    """Translate with a streamed completion, passing each piece to ``callback``; return the whole."""
    pieces = []
    for delta in _stream_deltas(src_text, src_lang, target_lang, client, template):
        callback(delta)
        pieces.append(delta)
    return "".join(pieces)


def _load_payload(payload: Mapping[str, Any] | bytes | str) -> Mapping[str, Any]:
    if isinstance(payload, (bytes, bytearray, str)):
        try:
            payload = json.loads(payload)
        except (ValueError, UnicodeDecodeError) as exc:
            raise TranslationError(str(exc)) from exc
    if not isinstance(payload, Mapping):
        raise TranslationError("request body must be a JSON object")
    return payload


def _sse_frame(body: dict[str, Any]) -> str:
    return "data: " + _compact_json(body) + "\n\n"


def _error_body(exc: BaseException) -> dict[str, Any]:
    return {"error": str(exc)}


def _v1_stream(request: TranslationV1Request, client: ChatClient) -> Iterator[str]:
    try:
        for delta in _stream_deltas(
            request.text, request.source_lang, request.target_lang, client, None
        ):
            yield _sse_frame(TranslationV1Response(data=delta).to_dict())
    except Exception as exc:  # the stream is already open; report the error in its body
        _log.error("translation stream failed: %s", exc)
        yield _compact_json(_error_body(exc))


def translate_v1(payload: Mapping[str, Any] | bytes | str, client: ChatClient) -> HandlerResult:
    """Handle a v1 translation request and return ``(status, body)``.

    A streaming body is an iterator of event-stream frames, to be served
    with :func:`simpleoneapi.sse.event_stream_headers`.
    """
    try:
        request = TranslationV1Request.from_dict(_load_payload(payload))
    except TranslationError as exc:
        return 400, _error_body(exc)

    if request.stream:
        return 200, _v1_stream(request, client)

    try:
        target_text = llm_translate(
            request.text, request.source_lang, request.target_lang, client
        )
    except Exception as exc:  # any upstream failure becomes a server error
        return 500, _error_body(exc)

    response = TranslationV1Response(
        code=200,
        data=target_text,
        id=_V1_ID,
        method=_V1_METHOD,
        source_lang=request.source_lang,
        target_lang=request.target_lang,
    )
    return 200, response.to_dict()


def _v2_stream(request: TranslationV2Request, client: ChatClient) -> Iterator[str]:
    try:
        for delta in _stream_deltas(
            request.text[0], request.source_lang, request.target_lang, client, None
        ):
            frame = TranslationV2Response(translations=[TranslationV2Result(text=delta)])
            yield _sse_frame(frame.to_dict())
    except Exception as exc:  # the stream is already open; report the error in its body
        _log.error("translation stream failed: %s", exc)
        error = _compact_json(_error_body(exc))
        yield error
        yield error


def translate_v2(payload: Mapping[str, Any] | bytes | str, client: ChatClient) -> HandlerResult:
    """Handle a v2 translation request and return ``(status, body)``.

    Streaming translates only the first text. Otherwise up to five texts are
    translated at once; failed ones are left out and the rest appear in
    completion order.
    """
    try:
        request = TranslationV2Request.from_dict(_load_payload(payload))
    except TranslationError as exc:
        return 400, _error_body(exc)

    if request.stream:
        if not request.text:
            return 400, {"error": "text must not be empty"}
        return 200, _v2_stream(request, client)

    results: list[TranslationV2Result] = []
    with ThreadPoolExecutor(max_workers=_V2_CONCURRENCY) as pool:
        futures = [
            pool.submit(llm_translate, text, "", request.target_lang, client)
            for text in request.text
        ]
        for future in as_completed(futures):
            try:
                results.append(TranslationV2Result(text=future.result()))
            except Exception as exc:  # a failed text is logged and skipped
                _log.error("translation failed: %s", exc)
    return 200, TranslationV2Response(translations=results or None).to_dict()