"""Chat completion requests and helpers for their messages."""

from __future__ import annotations

import base64
import copy
import dataclasses
import json
import logging
from dataclasses import dataclass, field
from typing import Any

import requests

from simpleoneapi.modelparams import UnsupportedModelError, adjust_params_to_range

_log = logging.getLogger(__name__)

ROLE_SYSTEM = "system"
ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"

PART_TEXT = "text"
PART_IMAGE_URL = "image_url"

_IMAGE_TIMEOUT = 30.0
_REDACTED = "..."


class ChatRequestError(ValueError):
    """A chat request or one of its parts could not be understood or fetched."""


def _compact_json(value: Any) -> str:
    """Serialise compactly, escaping HTML-sensitive characters."""
    text = json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return (
        text.replace("<", "\\u003c")
        .replace(">", "\\u003e")
        .replace("&", "\\u0026")
        .replace("\u2028", "\\u2028")
        .replace("\u2029", "\\u2029")
    )


@dataclass
class ImageURL:
    """An image reference inside a message part."""

    url: str = ""
    detail: str = ""

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.url:
            out["url"] = self.url
        if self.detail:
            out["detail"] = self.detail
        return out

    @classmethod
    def from_dict(cls, data: Any) -> ImageURL:
        if not isinstance(data, dict):
            raise ChatRequestError("image_url must be an object")
        url = data.get("url") or ""
        detail = data.get("detail") or ""
        if not isinstance(url, str) or not isinstance(detail, str):
            raise ChatRequestError("image_url fields must be strings")
        return cls(url=url, detail=detail)


@dataclass
class ChatMessagePart:
    """One part of a multi-part message: text or an image."""

    type: str = ""
    text: str = ""
    image_url: ImageURL | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.type:
            out["type"] = self.type
        if self.text:
            out["text"] = self.text
        if self.image_url is not None:
            out["image_url"] = self.image_url.to_dict()
        return out

    @classmethod
    def from_dict(cls, data: Any) -> ChatMessagePart:
        if not isinstance(data, dict):
            raise ChatRequestError("message part must be an object")
        part_type = data.get("type") or ""
        text = data.get("text") or ""
        if not isinstance(part_type, str) or not isinstance(text, str):
            raise ChatRequestError("message part fields must be strings")
        image = data.get("image_url")
        return cls(
            type=part_type,
            text=text,
            image_url=ImageURL.from_dict(image) if image is not None else None,
        )


@dataclass
class ChatMessage:
    """A chat message with plain or multi-part content."""

    role: str = ""
    content: str = ""
    multi_content: list[ChatMessagePart] = field(default_factory=list)
    name: str = ""

    def first_text(self) -> str | None:
        """The text of the message: its content, or its first text part."""
        if self.multi_content:
            return next(
                (part.text for part in self.multi_content if part.type == PART_TEXT), None
            )
        return self.content

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"role": self.role}
        if self.multi_content:
            out["content"] = [part.to_dict() for part in self.multi_content]
        elif self.content:
            out["content"] = self.content
        if self.name:
            out["name"] = self.name
        return out


@dataclass
class ChatCompletionRequest:
    """A chat completion request."""

    model: str = ""
    messages: list[ChatMessage] = field(default_factory=list)
    max_tokens: int = 0
    temperature: float = 0.0
    top_p: float = 0.0
    n: int = 0
    stream: bool = False
    stop: list[str] = field(default_factory=list)
    presence_penalty: float = 0.0
    frequency_penalty: float = 0.0
    user: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Render as a JSON-ready dict, leaving out empty optional fields."""
        out: dict[str, Any] = {
            "model": self.model,
            "messages": [message.to_dict() for message in self.messages],
        }
        optional = {
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "top_p": self.top_p,
            "n": self.n,
            "stream": self.stream,
            "stop": list(self.stop),
            "presence_penalty": self.presence_penalty,
            "frequency_penalty": self.frequency_penalty,
            "user": self.user,
        }
        out.update({key: value for key, value in optional.items() if value})
        return out


def get_system_message(messages: list[ChatMessage]) -> str:
    """Return the text of the first system message that has any, else an empty string."""
    for message in messages:
        if message.role == ROLE_SYSTEM:
            text = message.first_text()
            if text is not None:
                return text
    return ""


def get_latest_message(messages: list[ChatMessage]) -> str:
    """Return the text of the last message, or an empty string if it is a system message."""
    if not messages or messages[-1].role == ROLE_SYSTEM:
        return ""
    return messages[-1].first_text() or ""


def is_multi_content_message(messages: list[ChatMessage]) -> bool:
    """Tell whether any message carries multi-part content."""
    return any(message.multi_content for message in messages)


def convert_system_messages_to_no_system(messages: list[ChatMessage]) -> list[ChatMessage]:
    """Fold a leading system message into the next message, or make it a user message."""
    if not messages:
        return list(messages)
    first = messages[0]
    if first.role.lower() != ROLE_SYSTEM:
        result = list(messages)
    elif len(messages) == 1:
        result = [dataclasses.replace(first, role=ROLE_USER)]
    else:
        following = messages[1]
        merged = dataclasses.replace(following, content=first.content + "\n" + following.content)
        result = [merged, *messages[2:]]
    _log.debug("convert_system_messages_to_no_system messages=%r", result)
    return result


def normalize_messages(messages: list[ChatMessage], keep_all_system: bool) -> list[ChatMessage]:
    """Drop repeated user/assistant turns and, unless kept, later system messages."""
    if not messages:
        return list(messages)
    items = list(messages)
    if len(items) == 1 and items[0].role.lower() == ROLE_SYSTEM:
        items[0] = dataclasses.replace(items[0], role=ROLE_USER)

    normalized: list[ChatMessage] = []
    last_role = ""
    for position, message in enumerate(items):
        role = message.role.lower()
        if not keep_all_system and role == ROLE_SYSTEM and position > 0:
            continue
        if role in (ROLE_USER, ROLE_ASSISTANT) and role == last_role:
            continue
        normalized.append(message)
        last_role = role
    return normalized


def get_image_url_data(data_str: str) -> tuple[str, str]:
    """Return the base64 data and MIME type of a data URL or an HTTP image URL."""
    if data_str.startswith("data:"):
        separator = data_str.find(",")
        if separator == -1:
            raise ChatRequestError("invalid data URL format")
        return data_str[separator + 1 :], data_str[5:separator]
    if data_str.startswith("http"):
        try:
            response = requests.get(data_str, timeout=_IMAGE_TIMEOUT)
        except requests.RequestException as exc:
            raise ChatRequestError(f"error fetching image: {exc}") from exc
        with response:
            if response.status_code != 200:
                raise ChatRequestError(
                    f"failed to download image: HTTP status {response.status_code}"
                )
            encoded = base64.b64encode(response.content).decode("ascii")
            return encoded, response.headers.get("Content-Type", "")
    raise ChatRequestError("unsupported URL format")


def adjust_request_params(request: ChatCompletionRequest) -> ChatCompletionRequest:
    """Clamp the request's sampling parameters for models with known ranges, in place."""
    try:
        temperature, top_p, max_tokens = adjust_params_to_range(
            request.model, request.temperature, request.top_p, request.max_tokens
        )
    except UnsupportedModelError:
        return request
    request.temperature = temperature
    request.top_p = top_p
    request.max_tokens = max_tokens
    _log.debug(
        "adjustedTemperature=%s adjustedTopP=%s MaxTokens=%d", temperature, top_p, max_tokens
    )
    return request


def deep_copy_request(request: ChatCompletionRequest) -> ChatCompletionRequest:
    """Return a copy of ``request`` that shares no mutable state with it."""
    return copy.deepcopy(request)


def redacted_request_json(request: ChatCompletionRequest) -> str:
    """Serialise ``request`` for logging with inline image data replaced by ``...``."""
    filtered = deep_copy_request(request)
    for message in filtered.messages:
        for part in message.multi_content:
            if (
                part.type == PART_IMAGE_URL
                and part.image_url is not None
                and not part.image_url.url.startswith("http")
            ):
                part.image_url.url = _REDACTED
    text = _compact_json(filtered.to_dict())
    _log.info("chat completion request %s", text)
    return text


def _parse_content(content: Any) -> str:
    if content is None or isinstance(content, str):
        return content or ""
    if isinstance(content, dict):
        content_type = content.get("type") or ""
        text = content.get("text") or ""
        if not isinstance(content_type, str) or not isinstance(text, str):
            raise ChatRequestError("failed to unmarshal content")
        if content_type != PART_TEXT:
            raise ChatRequestError(f"unexpected content type: {content_type}")
        return text
    if isinstance(content, list):
        try:
            parts = [ChatMessagePart.from_dict(item) for item in content]
        except ChatRequestError as exc:
            raise ChatRequestError("failed to unmarshal content") from exc
        return _compact_json([part.to_dict() for part in parts])
    raise ChatRequestError("failed to unmarshal content")


def parse_chat_completion_request(data: bytes | str) -> ChatCompletionRequest:
    """Parse a request body, flattening every message's content into a string."""
    try:
        raw = json.loads(data)
    except (ValueError, UnicodeDecodeError) as exc:
        raise ChatRequestError(f"invalid JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise ChatRequestError("request must be a JSON object")

    model = raw.get("model") or ""
    temperature = raw.get("temperature") or 0.0
    stream = raw.get("stream") or False
    raw_messages = raw.get("messages") or []
    if not isinstance(model, str):
        raise ChatRequestError("model must be a string")
    if isinstance(temperature, bool) or not isinstance(temperature, (int, float)):
        raise ChatRequestError("temperature must be a number")
    if not isinstance(stream, bool):
        raise ChatRequestError("stream must be a boolean")
    if not isinstance(raw_messages, list):
        raise ChatRequestError("messages must be an array")

    request = ChatCompletionRequest(model=model, temperature=float(temperature), stream=stream)
    for raw_message in raw_messages:
        if not isinstance(raw_message, dict):
            raise ChatRequestError("message must be an object")
        role = raw_message.get("role") or ""
        if not isinstance(role, str):
            raise ChatRequestError("role must be a string")
        if "content" not in raw_message:
            raise ChatRequestError("failed to unmarshal content")
        request.messages.append(
            ChatMessage(role=role, content=_parse_content(raw_message["content"]))
        )
    return request