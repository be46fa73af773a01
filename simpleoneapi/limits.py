"""Reading rate-limit settings from credentials and model details."""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any


class LimitType(str, enum.Enum):
    """Kinds of request limits."""

    QPS = "qps"
    QPM = "qpm"
    RPM = "rpm"
    CONCURRENCY = "concurrency"


@dataclass
class Limit:
    """Limit settings of a service or model; zero means unset."""

    qps: float = 0.0
    qpm: float = 0.0
    rpm: float = 0.0
    concurrency: float = 0.0
    timeout: int = 0


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def get_credential_limit(
    credentials: Mapping[str, Any],
) -> tuple[LimitType | None, float, int]:
    """Return the first limit found under ``credentials["limit"]``.

    The order is qps, qpm, rpm, concurrency; rpm is reported as qpm.
    Without any limit the result is ``(None, 0.0, 0)``.
    """
    limit_data = credentials.get("limit")
    if not isinstance(limit_data, Mapping):
        return None, 0.0, 0

    timeout = limit_data.get("timeout")
    if not isinstance(timeout, int) or isinstance(timeout, bool):
        timeout = 0

    for key, reported in (
        (LimitType.QPS, LimitType.QPS),
        (LimitType.QPM, LimitType.QPM),
        (LimitType.RPM, LimitType.QPM),
        (LimitType.CONCURRENCY, LimitType.CONCURRENCY),
    ):
        value = limit_data.get(key.value)
        if _is_number(value):
            return reported, float(value), timeout
    return None, 0.0, 0


def get_limit_details(limit: Limit) -> tuple[LimitType | None, float, int]:
    """Return the first positive limit of ``limit`` with its timeout.

    The order is qps, qpm, rpm, concurrency; rpm is reported as qpm.
    Without any limit the result is ``(None, 0.0, 0)``.
    """
    if limit.qps > 0:
        return LimitType.QPS, limit.qps, limit.timeout
    if limit.qpm > 0:
        return LimitType.QPM, limit.qpm, limit.timeout
    if limit.rpm > 0:
        return LimitType.QPM, limit.rpm, limit.timeout
    if limit.concurrency > 0:
        return LimitType.CONCURRENCY, limit.concurrency, limit.timeout
    return None, 0.0, 0