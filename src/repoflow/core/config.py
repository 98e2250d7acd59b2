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
"""Layered orchestrator configuration.

Settings live under the ``repoflow`` root and are read in three layers
(later wins):

1. ``repoflow-defaults.yaml`` shipped in :mod:`repoflow.resources`
2. the host's YAML or TOML file, plus ``<stem>-<profile>`` overlays
3. ``REPOFLOW_<SECTION>_<KEY>`` environment variables, consulted on read

String values may carry ``${NAME}`` or ``${NAME:fallback}`` placeholders.
``NAME`` is looked up in the environment first, then as a dotted config
key.  Property groups are plain dataclasses tagged with
:func:`config_properties` and materialised by :meth:`Config.bind`.
"""

from __future__ import annotations

import dataclasses
import importlib.resources
import os
import re
import tomllib
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any, TypeVar, get_type_hints

import yaml  # type: ignore[import-untyped]

T = TypeVar("T")

_PLACEHOLDER_RE = re.compile(r"\$\{([^}]+)\}")
_PREFIX_ATTR = "__repoflow_config_prefix__"
_ENV_PREFIX = "REPOFLOW_"
_DEFAULTS_RESOURCE = "repoflow-defaults.yaml"
_MAX_PLACEHOLDER_DEPTH = 10
_TRUTHY = frozenset({"true", "1", "yes", "on"})

_MISSING: Any = object()


def config_properties(prefix: str) -> Callable[[type[T]], type[T]]:
    """Tag a dataclass with the dotted section it binds to.

    Usage:
        @config_properties(prefix="repoflow.gateway")
        @dataclass
        class GatewayProperties:
            base_url: str = "http://localhost:8083"
    """

    def decorator(cls: type[T]) -> type[T]:
        setattr(cls, _PREFIX_ATTR, prefix)
        return cls

    return decorator


# ── helpers ───────────────────────────────────────────────────


def _walk(data: Mapping[str, Any], dotted: str) -> Any:
    """Follow *dotted* through nested mappings; ``_MISSING`` when absent."""
    node: Any = data
    for part in dotted.split("."):
        if not isinstance(node, Mapping) or node.get(part) is None:
            return _MISSING
        node = node[part]
    return node


def _merge(base: dict[str, Any], overlay: Mapping[str, Any]) -> dict[str, Any]:
    out = dict(base)
    for key, value in overlay.items():
        current = out.get(key)
        out[key] = _merge(current, value) if isinstance(current, dict) and isinstance(value, Mapping) else value
    return out


def _read_file(path: Path) -> dict[str, Any]:
    if path.suffix == ".toml":
        return tomllib.loads(path.read_text()) or {}
    return yaml.safe_load(path.read_text()) or {}


def _library_defaults() -> dict[str, Any]:
    resource = importlib.resources.files("repoflow.resources").joinpath(_DEFAULTS_RESOURCE)
    return yaml.safe_load(resource.read_text()) or {}


def _env_name(key: str) -> str:
    # repoflow.gateway.base_url -> REPOFLOW_GATEWAY_BASE_URL
    return _ENV_PREFIX + key.removeprefix("repoflow.").upper().replace(".", "_").replace("-", "_")


def _coerce(value: Any, annotation: Any) -> Any:
    if not isinstance(value, str):
        return value
    if annotation is bool:
        return value.strip().lower() in _TRUTHY
    if annotation in (int, float):
        return annotation(value)
    return value


class Config:
    """Dotted-key view over merged configuration data.

    Args:
        data: Already-merged configuration tree.  Used as is, without
            library defaults; see :meth:`defaults` and :meth:`from_file`.
    """

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = data or {}
        self._sources: list[str] = []

    @property
    def loaded_sources(self) -> list[str]:
        """Files merged into this configuration, lowest precedence first."""
        return list(self._sources)

    def to_dict(self) -> dict[str, Any]:
        return dict(self._data)

    # ── construction ──────────────────────────────────────────

    @classmethod
    def defaults(cls) -> Config:
        """Only the packaged defaults."""
        return cls._layered([(f"{_DEFAULTS_RESOURCE} (library defaults)", _library_defaults())])

    @classmethod
    def from_file(
        cls,
        path: str | Path,
        active_profiles: list[str] | None = None,
        load_defaults: bool = True,
    ) -> Config:
        """Layer *path* and its profile overlays over the packaged defaults.

        A profile ``prod`` for ``conf/repoflow.yaml`` is read from
        ``conf/repoflow-prod.yaml``.  Missing files are skipped.
        """
        path = Path(path)
        layers: list[tuple[str, dict[str, Any]]] = []
        if load_defaults:
            layers.append((f"{_DEFAULTS_RESOURCE} (library defaults)", _library_defaults()))
        if path.exists():
            layers.append((str(path), _read_file(path)))
            for profile in active_profiles or []:
                overlay = path.with_name(f"{path.stem}-{profile}{path.suffix}")
                if overlay.exists():
                    layers.append((f"{overlay} (profile: {profile})", _read_file(overlay)))
        return cls._layered(layers)

    @classmethod
    def _layered(cls, layers: list[tuple[str, dict[str, Any]]]) -> Config:
        data: dict[str, Any] = {}
        for _, layer in layers:
            data = _merge(data, layer)
        instance = cls(data)
        instance._sources = [source for source, _ in layers]
        return instance

    # ── reading ───────────────────────────────────────────────

    def get(self, key: str, default: Any = None) -> Any:
        """Value at dotted *key*; the matching ``REPOFLOW_*`` variable wins.

        Placeholders in string values are expanded.
        """
        override = os.environ.get(_env_name(key))
        if override is not None:
            return override
        value = _walk(self._data, key)
        if value is _MISSING:
            return default
        return self.resolve(value) if isinstance(value, str) else value

    def get_section(self, prefix: str) -> dict[str, Any]:
        """The mapping stored under *prefix*, or ``{}``."""
        section = _walk(self._data, prefix)
        return section if isinstance(section, dict) else {}

    def resolve(self, value: Any) -> Any:
        """Expand placeholders in *value*, descending into lists and mappings."""
        if isinstance(value, str):
            return self._expand(value, 0) if "${" in value else value
        if isinstance(value, dict):
            return {k: self.resolve(v) for k, v in value.items()}
        if isinstance(value, list):
            return [self.resolve(v) for v in value]
        return value

    def _expand(self, text: str, depth: int) -> str:
        if depth > _MAX_PLACEHOLDER_DEPTH:
            raise ValueError(f"Placeholder nesting too deep in '{text}'; is there a cycle?")

        def substitute(match: re.Match[str]) -> str:
            name, sep, fallback = match.group(1).partition(":")
            from_env = os.environ.get(name)
            if from_env is not None:
                return from_env
            referenced = _walk(self._data, name)
            if referenced is not _MISSING:
                rendered = str(referenced)
                return self._expand(rendered, depth + 1) if "${" in rendered else rendered
            if sep:
                return fallback
            raise ValueError(f"Cannot resolve placeholder '${{{match.group(1)}}}': not found in environment or config")

        return _PLACEHOLDER_RE.sub(substitute, text)

    # ── binding ───────────────────────────────────────────────

    def bind(self, config_cls: type[T]) -> T:
        """Instantiate a :func:`config_properties` dataclass from its section.

        Each field is read through :meth:`get`, so environment overrides and
        placeholders apply.  Strings are coerced to ``int``, ``float`` or
        ``bool`` fields; absent fields keep the dataclass default.
        """
        prefix = getattr(config_cls, _PREFIX_ATTR, None)
        if prefix is None:
            raise ValueError(f"{config_cls.__name__} is not decorated with @config_properties")

        hints = get_type_hints(config_cls)
        kwargs: dict[str, Any] = {}
        for f in dataclasses.fields(config_cls):  # type: ignore[arg-type]
            value = self.get(f"{prefix}.{f.name}", _MISSING)
            if value is not _MISSING:
                kwargs[f.name] = _coerce(value, hints.get(f.name))
        return config_cls(**kwargs)
