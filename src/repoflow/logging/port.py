# Copyright 2026 Firefly Software Solutions Inc.
#
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
"""LoggingPort -- the contract for process-wide logging setup.

Both adapters read the same section::

    repoflow:
      logging:
        format: console        # or json
        level:
          root: INFO
          httpx: WARNING       # any other key is a logger name
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from repoflow.core.config import Config


@runtime_checkable
class LoggingPort(Protocol):
    """Port defining the logging contract for repoflow hosts."""

    def configure(self, config: Config) -> None: ...
    def get_logger(self, name: str) -> Any: ...
    def set_level(self, name: str, level: str) -> None: ...


def level_number(level: str) -> int:
    """``"warning"`` -> ``logging.WARNING``; unknown names fall back to INFO."""
    value = logging.getLevelName(level.upper())
    return value if isinstance(value, int) else logging.INFO


@dataclass
class LoggingSettings:
    root_level: str = "INFO"
    format: str = "console"
    logger_levels: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_config(cls, config: Config) -> LoggingSettings:
        levels = {name: str(level).upper() for name, level in config.get_section("repoflow.logging.level").items()}
        return cls(
            root_level=levels.pop("root", "INFO"),
            format=str(config.get("repoflow.logging.format", "console")).lower(),
            logger_levels=levels,
        )

    @property
    def json(self) -> bool:
        return self.format == "json"
