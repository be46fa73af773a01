"""Small value helpers."""

from __future__ import annotations

import calendar
import datetime
import re
from collections.abc import Mapping
from typing import Any

_RFC3339 = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(\.\d+)?(Z|[+-]\d{2}:\d{2})"
)


def get_string_from_map(data: Mapping[str, Any], key: str) -> str | None:
    """Return ``data[key]`` if it is a string, otherwise ``None``."""
    value = data.get(key)
    return value if isinstance(value, str) else None


def parse_rfc3339nano_to_unix_time(date_time_str: str) -> int:
    """Parse an RFC 3339 timestamp (with optional fractional seconds) to Unix seconds."""
    match = _RFC3339.fullmatch(date_time_str)
    if match is None:
        raise ValueError(f"cannot parse {date_time_str!r} as RFC 3339")
    year, month, day, hour, minute, second = (int(g) for g in match.groups()[:6])
    zone = match.group(8)
    try:
        moment = datetime.datetime(year, month, day, hour, minute, second)
    except ValueError as exc:
        raise ValueError(f"cannot parse {date_time_str!r}: {exc}") from exc
    offset = 0
    if zone != "Z":
        zone_hours, zone_minutes = int(zone[1:3]), int(zone[4:6])
        if zone_hours > 24 or zone_minutes > 60:
            raise ValueError(f"cannot parse {date_time_str!r}: time zone offset out of range")
        offset = zone_hours * 3600 + zone_minutes * 60
        if zone[0] == "-":
            offset = -offset
    return calendar.timegm(moment.timetuple()) - offset