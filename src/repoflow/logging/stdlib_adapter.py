"""StdlibLoggingAdapter -- LoggingPort for hosts that keep plain ``logging``.

Call sites may still use the structlog calling convention
(``logger.info("event", key=value)``); keyword arguments are appended to
the message as ``key=value`` pairs.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

from repoflow.core.config import Config
from repoflow.logging.port import LoggingSettings, level_number

_CONSOLE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_JSON_FORMAT = '{"timestamp":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","message":"%(message)s"}'


class _KeyValueLogger:
    __slots__ = ("_logger",)

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    def _emit(self, level: int, event: str, fields: dict[str, Any], exc_info: bool = False) -> None:
        if fields:
            event = f"{event} | " + " ".join(f"{k}={v}" for k, v in fields.items())
        self._logger.log(level, event, exc_info=exc_info)

    def debug(self, event: str, **fields: Any) -> None:
        self._emit(logging.DEBUG, event, fields)

    def info(self, event: str, **fields: Any) -> None:
        self._emit(logging.INFO, event, fields)

    def warning(self, event: str, **fields: Any) -> None:
        self._emit(logging.WARNING, event, fields)

    def error(self, event: str, **fields: Any) -> None:
        self._emit(logging.ERROR, event, fields)

    def exception(self, event: str, **fields: Any) -> None:
        self._emit(logging.ERROR, event, fields, exc_info=True)


class StdlibLoggingAdapter:
    """LoggingPort using only the standard library."""

    def __init__(self) -> None:
        self._settings = LoggingSettings()

    def configure(self, config: Config) -> None:
        self._settings = LoggingSettings.from_config(config)
        logging.basicConfig(
            format=_JSON_FORMAT if self._settings.json else _CONSOLE_FORMAT,
            stream=sys.stdout,
            level=level_number(self._settings.root_level),
            force=True,
        )
        for name, level in self._settings.logger_levels.items():
            self.set_level(name, level)

    def get_logger(self, name: str) -> Any:
        return _KeyValueLogger(logging.getLogger(name))

    def set_level(self, name: str, level: str) -> None:
        logging.getLogger(name).setLevel(level_number(level))
