# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Structured logging for filesystem and configuration events.

Every record emitted through :class:`StructuredLogger` carries two extra
attributes: ``event``, a dotted name such as ``filesystem.write``, and
``context``, a mapping combining the logger's fixed context (the emitting
component) with the per-call payload.

Example usage::

    from scriptfs.logging import configure_logging, get_logger

    configure_logging(level="DEBUG", json_mode=True)
    logger = get_logger(__name__, context={"component": "loader"})
    logger.debug("Loaded script.", event="loader.script", context={"path": "/a.ts"})
"""

from __future__ import annotations

import json
import logging
import os
import sys
from collections.abc import Mapping, MutableMapping
from datetime import UTC, datetime
from typing import Any, cast, override

__all__ = [
    "StructuredLogger",
    "configure_logging",
    "get_logger",
]

LOG_LEVEL_ENV = "SCRIPTFS_LOG_LEVEL"
LOG_FORMAT_ENV = "SCRIPTFS_LOG_FORMAT"

_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s %(event)s %(message)s%(fields)s"


class StructuredLogger(logging.LoggerAdapter[logging.Logger]):
    """Logger adapter that turns ``event=`` and ``context=`` keywords into record fields."""

    def __init__(
        self,
        logger: logging.Logger,
        *,
        context: Mapping[str, object] | None = None,
    ) -> None:
        super().__init__(logger, dict(context or {}))

    @property
    def context(self) -> Mapping[str, object]:
        """Fields attached to every record from this logger."""
        return cast(Mapping[str, object], self.extra)

    @override
    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        event = kwargs.pop("event", None)
        if not isinstance(event, str) or not event:
            raise TypeError("Structured logs require an 'event' name.")
        payload = kwargs.pop("context", None)
        if payload is not None and not isinstance(payload, Mapping):
            raise TypeError("context must be a mapping when provided.")
        if kwargs.get("extra"):
            raise TypeError("Pass structured fields through context, not extra.")

        context = {**self.context, **cast(Mapping[str, object], payload or {})}
        kwargs["extra"] = {"event": event, "context": context}
        return msg, kwargs


def get_logger(
    name: str,
    *,
    context: Mapping[str, object] | None = None,
) -> StructuredLogger:
    """Return a :class:`StructuredLogger` for ``name`` carrying ``context`` on every record."""
    return StructuredLogger(logging.getLogger(name), context=context)


def configure_logging(
    *,
    level: int | str | None = None,
    json_mode: bool | None = None,
    env: Mapping[str, str] | None = None,
    force: bool = False,
) -> None:
    """Install a stderr handler on the root logger.

    ``level`` falls back to ``SCRIPTFS_LOG_LEVEL`` and then INFO. ``json_mode``
    falls back to ``SCRIPTFS_LOG_FORMAT`` (``json`` or ``text``). When the root
    logger already has handlers only its level is changed, unless ``force``
    replaces them.
    """
    env = os.environ if env is None else env
    resolved_level = _coerce_level(level if level is not None else env.get(LOG_LEVEL_ENV))
    if json_mode is None:
        json_mode = env.get(LOG_FORMAT_ENV, "text").strip().lower() == "json"

    root = logging.getLogger()
    root.setLevel(resolved_level)
    if root.handlers and not force:
        return

    for existing in list(root.handlers):
        root.removeHandler(existing)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_JsonFormatter() if json_mode else _TextFormatter())
    root.addHandler(handler)


class _TextFormatter(logging.Formatter):
    """Single-line formatter appending context as ``key=value`` pairs."""

    def __init__(self) -> None:
        super().__init__(_TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    @override
    def format(self, record: logging.LogRecord) -> str:
        context = cast(Mapping[str, object], getattr(record, "context", None) or {})
        record.event = getattr(record, "event", "-")
        record.fields = "".join(f" {key}={value!r}" for key, value in context.items())
        return super().format(record)


class _JsonFormatter(logging.Formatter):
    """Formatter rendering one compact JSON object per record."""

    @override
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "event": getattr(record, "event", None),
            "message": record.getMessage(),
            "context": getattr(record, "context", None) or {},
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=repr, separators=(",", ":"))


def _coerce_level(level: int | str | None) -> int:
    if level is None or level == "":
        return logging.INFO
    if isinstance(level, int):
        return level
    levels = logging.getLevelNamesMapping()
    try:
        return levels[level.strip().upper()]
    except KeyError:
        raise ValueError(f"Unknown log level: {level!r}") from None
