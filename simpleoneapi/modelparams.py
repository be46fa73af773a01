"""Known parameter ranges of some models and clamping into them."""

from __future__ import annotations

import logging
from dataclasses import dataclass

_log = logging.getLogger(__name__)

_ADJUSTMENT = 0.01


class UnsupportedModelError(ValueError):
    """The model has no known parameter ranges."""


@dataclass(frozen=True)
class Range:
    """A closed numeric interval."""

    min: float
    max: float


@dataclass(frozen=True)
class ModelParams:
    """Allowed ranges of a model's sampling parameters."""

    temperature_range: Range
    top_p_range: Range
    max_tokens: int = 0


_GLM_COMMON = ModelParams(temperature_range=Range(0.0, 1.0), top_p_range=Range(0.0, 1.0))


def _glm(max_tokens: int) -> ModelParams:
    return ModelParams(_GLM_COMMON.temperature_range, _GLM_COMMON.top_p_range, max_tokens)


_MODEL_PARAMS: dict[str, ModelParams] = {
    "glm-4-0520": _glm(4095),
    "glm-4": _glm(4095),
    "glm-4-air": _glm(4095),
    "glm-4-airx": _glm(4095),
    "glm-4-flash": _glm(4095),
    "glm-3-turbo": _glm(4095),
    "glm-4v": ModelParams(Range(0.0, 1.0), Range(0.0, 1.0), 1024),
}


def get_model_params(model_name: str) -> ModelParams:
    """Return the parameter ranges of ``model_name``."""
    try:
        return _MODEL_PARAMS[model_name]
    except KeyError:
        raise UnsupportedModelError("unsupported model") from None


def _adjust(value: float, bounds: Range) -> float:
    value = max(value, 0.0)
    if value < bounds.min:
        return bounds.min + _ADJUSTMENT
    if value >= bounds.max:
        return bounds.max - _ADJUSTMENT
    return value


def adjust_params_to_range(
    model_name: str, temperature: float, top_p: float, max_tokens: int
) -> tuple[float, float, int]:
    """Clamp sampling parameters into the ranges ``model_name`` accepts."""
    params = get_model_params(model_name)
    temperature = _adjust(temperature, params.temperature_range)
    top_p = _adjust(top_p, params.top_p_range)
    max_tokens = min(max(max_tokens, 0), params.max_tokens)
    _log.debug(
        "adjusted_temperature=%s adjusted_topP=%s adjusted_maxTokens=%d",
        temperature,
        top_p,
        max_tokens,
    )
    return temperature, top_p, max_tokens