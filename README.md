# simpleoneapi

Building blocks for a gateway that serves many large-language-model providers
behind one OpenAI-compatible chat completion API.

## What it provides

- `simpleoneapi.chat`: chat request and message types, with helpers to pull
  out the system or latest message, normalize role order, fold a leading
  system message into the first user message, load image URLs as base64,
  parse loosely formed requests and log requests with inline image data
  redacted.
- `simpleoneapi.modelparams`: per-model limits for temperature, top_p and
  max_tokens, and `adjust_params_to_range` to clamp a request to them.
- `simpleoneapi.limits` and `simpleoneapi.limiter`: read QPS, QPM/RPM or
  concurrency limits from configuration, and thread-safe limiters
  (token bucket, one-minute sliding window, semaphore) shared by key through
  `get_limiter`.
- `simpleoneapi.httpcalls`: POST JSON to an upstream with a bearer key, either
  as a plain request or as a server-sent-event stream with a per-line callback.
  Error statuses raise `HTTPStatusError`.
- `simpleoneapi.sse`: event-stream headers, the `data: [DONE]` terminator,
  bearer token extraction and normalization of `data:` lines.
- `simpleoneapi.streamreader`: `ChatCompletionStream` reads streamed chat
  chunks and can be iterated.
- `simpleoneapi.translation`: translate text through a chat model, in one
  piece or streamed, with request and response shapes for v1 and v2
  translation endpoints.
- `simpleoneapi.multimodel`: send one prompt to several models concurrently
  and forward each model's streamed reply.
- `simpleoneapi.schema`: OpenAI request and response dataclasses with
  `to_dict` and `from_dict`.

## Installation

```
pip install simpleoneapi
```

## Example

```python
from simpleoneapi.modelparams import adjust_params_to_range
from simpleoneapi.limiter import get_limiter

temperature, top_p, max_tokens = adjust_params_to_range("glm-4", 1.5, 0.9, 8000)

limiter = get_limiter("service-a", "qps", 5)
limiter.wait(timeout=2.0)
```

Logging is set up with `simpleoneapi.logsetup.init_log("dev")`. The modes are
`prod`, `prodjson`, `dev` and `debug`.

## Running the tests

```
pip install -e ".[test]"
pytest
```