"""Logging configuration for the package."""

from __future__ import annotations

import datetime
import json
import logging
import sys

LOGGER_NAME = "simpleoneapi"

_JSON_MODES = frozenset({"prodj", "prodjson", "productionjson"})
_LEVELS = {
    "prod": logging.WARNING,
    "production": logging.WARNING,
    "prodj": logging.WARNING,
    "prodjson": logging.WARNING,
    "productionjson": logging.WARNING,
    "dev": logging.INFO,
    "development": logging.INFO,
    "debug": logging.DEBUG,
}


def _iso_time(record: logging.LogRecord) -> str:
    moment = datetime.datetime.fromtimestamp(record.created).astimezone()
    return moment.isoformat(timespec="milliseconds")


class _ConsoleFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__("%(asctime)s\t%(levelname)s\t%(filename)s:%(lineno)d\t%(message)s")

    def formatTime(self, record, datefmt=None):  # noqa: N802
        return _iso_time(record)


class _JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "level": record.levelname.lower(),
            "timestamp": _iso_time(record),
            "logger": record.name,
            "caller": f"{record.filename}:{record.lineno}",
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["stacktrace"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def init_log(mode: str) -> logging.Logger:
    """Configure the package logger for ``mode`` and return it."""
    print("level mode", mode, file=sys.stderr)
    level = _LEVELS.get(mode)
    if level is None:
        print("level mode default prod", file=sys.stderr)
        level = logging.WARNING

    if mode in _JSON_MODES:
        formatter: logging.Formatter = _JSONFormatter()
        print("log json format", file=sys.stderr)
    else:
        formatter = _ConsoleFormatter()
        print("log plain-text format", file=sys.stderr)

    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger