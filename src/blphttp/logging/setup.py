"""Structured logging configuration for the gateway.

Provides a JSON-lines formatter, a filter that runs the bundle's
serializers over ``extra`` fields, and a one-call ``configure_logging``
driven by :class:`~blphttp.config.options.LoggerOptions`.

Level names follow bunyan (``trace`` .. ``fatal``); ``trace`` is
registered as stdlib level 5.
"""

from __future__ import annotations

import json
import logging
import os
import socket
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from blphttp.config.options import LoggerOptions

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

LEVELS: dict[str, int] = {
    "trace": TRACE,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
}

# Attributes that are part of the standard LogRecord; everything else
# is an "extra" and is included in structured output.
_STANDARD_ATTRS = frozenset(
    {
        "args",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
    }
)


def level_for(name: str) -> int:
    """Map a bunyan level name to a stdlib level (unknown -> INFO)."""
    return LEVELS.get(name.lower(), logging.INFO)


# ---------------------------------------------------------------------------
# Formatter / filter
# ---------------------------------------------------------------------------


class StructuredFormatter(logging.Formatter):
    """One JSON object per line, bunyan-shaped.

    ``name`` is the service name, ``component`` the emitting logger.
    Extra attributes passed by the caller are copied in verbatim.
    """

    def __init__(self, service_name: str) -> None:
        super().__init__()
        self._service_name = service_name
        self._hostname = socket.gethostname()

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()

        data: dict[str, Any] = {
            "name": self._service_name,
            "hostname": self._hostname,
            "pid": os.getpid(),
            "component": record.name,
            "level": record.levelname.lower(),
            "msg": record.message,
            "time": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
        }

        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                data.setdefault(key, value)

        if record.exc_info and record.exc_info[0] is not None:
            data["err"] = self.formatException(record.exc_info)

        if record.stack_info:
            data["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(data, default=str)


class SerializerFilter(logging.Filter):
    """Replace ``extra`` fields by their serialized form.

    A record logged with ``extra={"res": response}`` carries only what
    the ``res`` serializer keeps (status code and headers).

    The same record passes through every handler, so a record is
    serialized once and marked; later handlers see the marked record
    unchanged.
    """

    _MARKER = "_blphttp_serialized"

    def __init__(self, serializers: Mapping[str, Callable[[Any], Any]]) -> None:
        super().__init__()
        self._serializers = serializers

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if record.__dict__.get(self._MARKER):
            return True
        for field_name, serializer in self._serializers.items():
            if field_name in record.__dict__:
                record.__dict__[field_name] = serializer(record.__dict__[field_name])
        record.__dict__[self._MARKER] = True
        return True


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def configure_logging(options: LoggerOptions) -> logging.Logger:
    """Configure the ``blphttp`` logger hierarchy from *options*.

    Replaces any bootstrap handlers with one handler per configured
    stream.  A log file that can't be opened is reported and skipped.

    Returns the root ``blphttp`` logger.
    """
    root = logging.getLogger("blphttp")
    root.handlers.clear()
    root.propagate = False

    formatter = StructuredFormatter(options.name)
    serializer_filter = SerializerFilter(options.serializers)

    levels: list[int] = []
    for sink in options.streams:
        handler: logging.Handler
        if sink.path is not None:
            try:
                handler = logging.FileHandler(sink.path, encoding="utf-8")
            except OSError as exc:
                root.warning("Could not open log file %s: %s", sink.path, exc)
                continue
        else:
            handler = logging.StreamHandler(sink.stream)

        handler.setLevel(level_for(sink.level))
        handler.setFormatter(formatter)
        handler.addFilter(serializer_filter)
        root.addHandler(handler)
        levels.append(handler.level)

    root.setLevel(min(levels) if levels else logging.WARNING)

    # -- Quieten noisy third-party loggers --
    logging.getLogger("watchdog").setLevel(logging.WARNING)

    return root
