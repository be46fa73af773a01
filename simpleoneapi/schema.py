"""Wire types of the OpenAI-style chat API."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


def _put(out: dict[str, Any], key: str, value: Any) -> None:
    """Store ``value`` under ``key`` unless it is absent (``None``)."""
    if value is not None:
        out[key] = value


@dataclass
class Message:
    """One message of a conversation."""

    role: str = ""
    content: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"role": self.role, "content": self.content}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        return cls(role=data.get("role", ""), content=data.get("content", ""))


@dataclass
class ResponseFormat:
    """Requested response format."""

    type: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ResponseFormat:
        return cls(type=data.get("type", ""))


@dataclass
class StreamOptions:
    """Streaming options; carries no fields."""

    def to_dict(self) -> dict[str, Any]:
        return {}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StreamOptions:
        return cls()


@dataclass
class Function:
    """A function named by a tool."""

    name: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Function:
        return cls(name=data.get("name", ""))


@dataclass
class Tool:
    """A tool the model may call."""

    type: str = ""
    function: Function | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": self.type}
        if self.function is not None:
            out["function"] = self.function.to_dict()
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Tool:
        function = data.get("function")
        return cls(
            type=data.get("type", ""),
            function=Function.from_dict(function) if function is not None else None,
        )


@dataclass
class ToolChoiceFunction(Tool):
    """A tool choice that names one function."""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ToolChoiceFunction:
        function = data.get("function")
        return cls(
            type=data.get("type", ""),
            function=Function.from_dict(function) if function is not None else None,
        )


@dataclass
class OpenAIRequest:
    """Body of a chat completion request."""

    model: str = ""
    messages: list[Message] = field(default_factory=list)
    frequency_penalty: float | None = None
    logit_bias: dict[int, int] = field(default_factory=dict)
    logprobs: bool | None = None
    top_logprobs: int | None = None
    max_tokens: int | None = None
    n: int | None = None
    presence_penalty: float | None = None
    response_format: ResponseFormat | None = None
    seed: int | None = None
    stop: list[str] = field(default_factory=list)
    stream: bool | None = None
    stream_options: StreamOptions | None = None
    temperature: float | None = None
    top_p: float | None = None
    tools: list[Tool] = field(default_factory=list)
    tool_choice: Any = None
    user: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Render as a JSON-ready dict, leaving out unset optional fields."""
        out: dict[str, Any] = {
            "model": self.model,
            "messages": [message.to_dict() for message in self.messages],
        }
        _put(out, "frequency_penalty", self.frequency_penalty)
        if self.logit_bias:
            out["logit_bias"] = {str(token): bias for token, bias in self.logit_bias.items()}
        _put(out, "logprobs", self.logprobs)
        _put(out, "top_logprobs", self.top_logprobs)
        _put(out, "max_tokens", self.max_tokens)
        _put(out, "n", self.n)
        _put(out, "presence_penalty", self.presence_penalty)
        if self.response_format is not None:
            out["response_format"] = self.response_format.to_dict()
        _put(out, "seed", self.seed)
        if self.stop:
            out["stop"] = list(self.stop)
        _put(out, "stream", self.stream)
        if self.stream_options is not None:
            out["stream_options"] = self.stream_options.to_dict()
        _put(out, "temperature", self.temperature)
        _put(out, "top_p", self.top_p)
        if self.tools:
            out["tools"] = [tool.to_dict() for tool in self.tools]
        _put(out, "tool_choice", self.tool_choice)
        _put(out, "user", self.user)
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OpenAIRequest:
        """Build a request from a decoded JSON object."""
        response_format = data.get("response_format")
        stream_options = data.get("stream_options")
        return cls(
            model=data.get("model", ""),
            messages=[Message.from_dict(m) for m in data.get("messages") or []],
            frequency_penalty=data.get("frequency_penalty"),
            logit_bias={int(k): v for k, v in (data.get("logit_bias") or {}).items()},
            logprobs=data.get("logprobs"),
            top_logprobs=data.get("top_logprobs"),
            max_tokens=data.get("max_tokens"),
            n=data.get("n"),
            presence_penalty=data.get("presence_penalty"),
            response_format=(
                ResponseFormat.from_dict(response_format) if response_format is not None else None
            ),
            seed=data.get("seed"),
            stop=list(data.get("stop") or []),
            stream=data.get("stream"),
            stream_options=(
                StreamOptions.from_dict(stream_options) if stream_options is not None else None
            ),
            temperature=data.get("temperature"),
            top_p=data.get("top_p"),
            tools=[Tool.from_dict(t) for t in data.get("tools") or []],
            tool_choice=data.get("tool_choice"),
            user=data.get("user"),
        )


@dataclass
class FunctionCall:
    """A function call made by the model."""

    name: str = ""
    arguments: str = ""

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.name:
            out["name"] = self.name
        if self.arguments:
            out["arguments"] = self.arguments
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FunctionCall:
        return cls(name=data.get("name", ""), arguments=data.get("arguments", ""))


@dataclass
class ToolCall:
    """A tool call made by the model."""

    id: str = ""
    type: str = ""
    function: FunctionCall = field(default_factory=FunctionCall)
    index: int | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        _put(out, "index", self.index)
        out["id"] = self.id
        out["type"] = self.type
        out["function"] = self.function.to_dict()
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ToolCall:
        return cls(
            id=data.get("id", ""),
            type=data.get("type", ""),
            function=FunctionCall.from_dict(data.get("function") or {}),
            index=data.get("index"),
        )


@dataclass
class ResponseMessage:
    """The message of a complete response choice."""

    role: str = ""
    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_call_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            out["tool_calls"] = [call.to_dict() for call in self.tool_calls]
        if self.tool_call_id:
            out["tool_call_id"] = self.tool_call_id
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ResponseMessage:
        return cls(
            role=data.get("role", ""),
            content=data.get("content") or "",
            tool_calls=[ToolCall.from_dict(c) for c in data.get("tool_calls") or []],
            tool_call_id=data.get("tool_call_id", ""),
        )


@dataclass
class ResponseDelta:
    """The incremental message of a streamed choice."""

    role: str = ""
    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            out["tool_calls"] = [call.to_dict() for call in self.tool_calls]
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ResponseDelta:
        return cls(
            role=data.get("role", ""),
            content=data.get("content") or "",
            tool_calls=[ToolCall.from_dict(c) for c in data.get("tool_calls") or []],
        )


@dataclass
class Usage:
    """Token usage counts."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.prompt_tokens:
            out["prompt_tokens"] = self.prompt_tokens
        if self.completion_tokens:
            out["completion_tokens"] = self.completion_tokens
        if self.total_tokens:
            out["total_tokens"] = self.total_tokens
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Usage:
        return cls(
            prompt_tokens=data.get("prompt_tokens", 0),
            completion_tokens=data.get("completion_tokens", 0),
            total_tokens=data.get("total_tokens", 0),
        )


@dataclass
class ErrorDetail:
    """Error details returned by an upstream."""

    message: str = ""
    type: str = ""
    param: Any = None
    code: Any = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.message:
            out["message"] = self.message
        if self.type:
            out["type"] = self.type
        _put(out, "param", self.param)
        _put(out, "code", self.code)
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ErrorDetail:
        return cls(
            message=data.get("message", ""),
            type=data.get("type", ""),
            param=data.get("param"),
            code=data.get("code"),
        )


@dataclass
class Choice:
    """One choice of a complete response."""

    index: int = 0
    message: ResponseMessage = field(default_factory=ResponseMessage)
    logprobs: Any = None
    finish_reason: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "message": self.message.to_dict(),
            "logprobs": self.logprobs,
            "finish_reason": self.finish_reason,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Choice:
        return cls(
            index=data.get("index", 0),
            message=ResponseMessage.from_dict(data.get("message") or {}),
            logprobs=data.get("logprobs"),
            finish_reason=data.get("finish_reason") or "",
        )


def _header_fields(obj: OpenAIResponse | OpenAIStreamResponse, out: dict[str, Any]) -> None:
    if obj.object:
        out["object"] = obj.object
    if obj.created:
        out["created"] = obj.created
    if obj.model:
        out["model"] = obj.model
    if obj.system_fingerprint:
        out["system_fingerprint"] = obj.system_fingerprint


def _tail_fields(obj: OpenAIResponse | OpenAIStreamResponse, out: dict[str, Any]) -> None:
    if obj.choices:
        out["choices"] = [choice.to_dict() for choice in obj.choices]
    if obj.usage is not None:
        out["usage"] = obj.usage.to_dict()
    if obj.error is not None:
        out["error"] = obj.error.to_dict()


def _optional(data: dict[str, Any], key: str, kind: Any) -> Any:
    value = data.get(key)
    return kind.from_dict(value) if value is not None else None


@dataclass
class OpenAIResponse:
    """A complete chat completion response."""

    id: str = ""
    object: str = ""
    created: int = 0
    model: str = ""
    system_fingerprint: str = ""
    choices: list[Choice] = field(default_factory=list)
    usage: Usage | None = None
    error: ErrorDetail | None = None

    def to_dict(self) -> dict[str, Any]:
        """Render as a JSON-ready dict, leaving out empty optional fields."""
        out: dict[str, Any] = {"id": self.id}
        _header_fields(self, out)
        _tail_fields(self, out)
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OpenAIResponse:
        """Build a response from a decoded JSON object."""
        return cls(
            id=data.get("id", ""),
            object=data.get("object", ""),
            created=data.get("created", 0),
            model=data.get("model", ""),
            system_fingerprint=data.get("system_fingerprint", ""),
            choices=[Choice.from_dict(c) for c in data.get("choices") or []],
            usage=_optional(data, "usage", Usage),
            error=_optional(data, "error", ErrorDetail),
        )


@dataclass
class OpenAIStreamResponseChoice:
    """One choice of a streamed chunk."""

    index: int = 0
    delta: ResponseDelta = field(default_factory=ResponseDelta)
    logprobs: Any = None
    finish_reason: Any = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"index": self.index, "delta": self.delta.to_dict()}
        _put(out, "logprobs", self.logprobs)
        _put(out, "finish_reason", self.finish_reason)
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OpenAIStreamResponseChoice:
        return cls(
            index=data.get("index", 0),
            delta=ResponseDelta.from_dict(data.get("delta") or {}),
            logprobs=data.get("logprobs"),
            finish_reason=data.get("finish_reason"),
        )


@dataclass
class OpenAIStreamResponse:
    """One chunk of a streamed chat completion."""

    id: str = ""
    object: str = ""
    created: int = 0
    model: str = ""
    system_fingerprint: str = ""
    choices: list[OpenAIStreamResponseChoice] = field(default_factory=list)
    usage: Usage | None = None
    error: ErrorDetail | None = None

    def to_dict(self) -> dict[str, Any]:
        """Render as a JSON-ready dict, leaving out empty optional fields."""
        out: dict[str, Any] = {}
        if self.id:
            out["id"] = self.id
        _header_fields(self, out)
        _tail_fields(self, out)
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OpenAIStreamResponse:
        """Build a chunk from a decoded JSON object."""
        return cls(
            id=data.get("id", ""),
            object=data.get("object", ""),
            created=data.get("created", 0),
            model=data.get("model", ""),
            system_fingerprint=data.get("system_fingerprint", ""),
            choices=[OpenAIStreamResponseChoice.from_dict(c) for c in data.get("choices") or []],
            usage=_optional(data, "usage", Usage),
            error=_optional(data, "error", ErrorDetail),
        )