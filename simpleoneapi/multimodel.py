"""Sending one prompt to several models at once and relaying their streamed answers."""

from __future__ import annotations

import json
import logging
import threading
import uuid
from collections.abc import Callable, Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Protocol

from simpleoneapi.chat import (
    ROLE_SYSTEM,
    ROLE_USER,
    ChatCompletionRequest,
    ChatMessage,
    deep_copy_request,
)
from simpleoneapi.schema import OpenAIStreamResponse

_log = logging.getLogger(__name__)

Sender = Callable[[dict[str, Any]], None]


class StreamingClient(Protocol):
    """What a multi-model call needs from a chat completion client."""

    def create_chat_completion_stream(
        self, request: ChatCompletionRequest
    ) -> Iterable[OpenAIStreamResponse | None]: ...


def _field(data: Mapping[str, Any], key: str, kinds: tuple[type, ...], default: Any) -> Any:
    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, bool) and bool not in kinds:
        raise ValueError(f"field {key!r} has the wrong type")
    if not isinstance(value, kinds):
        raise ValueError(f"field {key!r} has the wrong type")
    return value


@dataclass
class MMFormData:
    """The form a client sends to start a multi-model call."""

    prompt: str = ""
    temperature: float = 0.0
    max_tokens: int = 0
    top_p: float = 0.0
    models: list[str] = field(default_factory=list)
    system: str = ""
    msg_id: str = ""

    @classmethod
    def from_json(cls, data: bytes | str) -> MMFormData:
        """Decode the form from a JSON message; raises ``ValueError`` if it is malformed."""
        decoded = json.loads(data)
        if not isinstance(decoded, Mapping):
            raise ValueError("form must be a JSON object")
        models = _field(decoded, "models", (list,), [])
        if not all(isinstance(name, str) for name in models):
            raise ValueError("field 'models' must be an array of strings")
        max_tokens = _field(decoded, "maxTokens", (int, float), 0)
        if isinstance(max_tokens, float):
            if not max_tokens.is_integer():
                raise ValueError("field 'maxTokens' must be an integer")
            max_tokens = int(max_tokens)
        return cls(
            prompt=_field(decoded, "prompt", (str,), ""),
            temperature=float(_field(decoded, "temperature", (int, float), 0.0)),
            max_tokens=max_tokens,
            top_p=float(_field(decoded, "topP", (int, float), 0.0)),
            models=list(models),
            system=_field(decoded, "system", (str,), ""),
            msg_id=_field(decoded, "msgid", (str,), ""),
        )


@dataclass
class MMResp:
    """One piece of one model's answer, sent back to the client."""

    model: str = ""
    result: str = ""
    msg_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"model": self.model, "result": self.result, "msgid": self.msg_id}


def construct_base_request(form: MMFormData) -> ChatCompletionRequest:
    """Build the streaming request shared by every model of the call."""
    messages = [ChatMessage(role=ROLE_USER, content=form.prompt)]
    if form.system:
        messages.insert(0, ChatMessage(role=ROLE_SYSTEM, content=form.system))
    return ChatCompletionRequest(
        stream=True,
        messages=messages,
        max_tokens=form.max_tokens,
        temperature=form.temperature,
        top_p=form.top_p,
    )


def _locked_send(send: Sender, lock: threading.Lock, response: MMResp) -> bool:
    with lock:
        try:
            send(response.to_dict())
        except Exception as exc:  # the connection is gone; stop relaying this model
            _log.error("Failed to write JSON response: %s", exc)
            return False
    return True


def _handle_model(
    model_name: str,
    base_request: ChatCompletionRequest,
    client: StreamingClient,
    send: Sender,
    lock: threading.Lock,
    msg_id: str,
) -> None:
    request = deep_copy_request(base_request)
    request.model = model_name
    try:
        stream = iter(client.create_chat_completion_stream(request))
    except Exception as exc:  # a model that cannot start is skipped
        _log.error("Failed to create chat completion stream: %s", exc)
        return

    while True:
        try:
            chunk = next(stream)
        except StopIteration:
            _log.info("Stream finished")
            return
        except EOFError:
            _log.info("Stream finished")
            return
        except Exception as exc:  # report the failure to the client, then stop
            _log.error("Stream error: %s", exc)
            _locked_send(send, lock, MMResp(model=model_name, result=str(exc), msg_id=msg_id))
            return
        if chunk is None or not chunk.choices:
            continue
        response = MMResp(
            model=model_name, result=chunk.choices[0].delta.content, msg_id=msg_id
        )
        if not _locked_send(send, lock, response):
            return


def run_multi_model_call(
    form: MMFormData,
    client: StreamingClient,
    send: Sender,
    msg_id: str | None = None,
) -> str:
    """Stream ``form``'s prompt to each of its models at once, relaying pieces through ``send``.

    Every piece is passed to ``send`` as a dict; calls to ``send`` never overlap.
    Returns the message id shared by all pieces, a fresh UUID unless given.
    """
    if msg_id is None:
        msg_id = str(uuid.uuid4())
    base_request = construct_base_request(form)
    _log.info("multi-model call base request %r", base_request)
    if not form.models:
        return msg_id
    lock = threading.Lock()
    with ThreadPoolExecutor(max_workers=len(form.models)) as pool:
        futures = [
            pool.submit(_handle_model, name, base_request, client, send, lock, msg_id)
            for name in form.models
        ]
        for future in futures:
            future.result()
    return msg_id