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

"""Configuration loading and filesystem assembly.

The process that embeds a script runtime picks one filesystem at startup.
:func:`load_config` resolves that choice from a TOML or YAML file, the
environment, and explicit overrides, in that order of precedence (lowest
first). :func:`build_filesystem` turns the result into a concrete
implementation.

Example configuration (``scriptfs.toml``)::

    [filesystem]
    kind = "sandbox"
    root = "/srv/scripts"
    current_directory = "/work"
"""

from __future__ import annotations

import os
import tempfile
import tomllib
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final, Literal, cast

import yaml

from .clock import SYSTEM_CLOCK, WallClock
from .errors import ConfigError
from .filesystem import Filesystem, MemoryFilesystem, SandboxFilesystem
from .filesystem._path import ROOT
from .logging import StructuredLogger, get_logger

DEFAULT_CONFIG_PATH: Final[Path] = Path("~/.config/scriptfs/config.toml")

ENV_KIND = "SCRIPTFS_KIND"
ENV_ROOT = "SCRIPTFS_ROOT"
ENV_CASE_SENSITIVE = "SCRIPTFS_CASE_SENSITIVE"
ENV_CURRENT_DIRECTORY = "SCRIPTFS_CWD"

_KINDS: Final[frozenset[str]] = frozenset({"memory", "sandbox"})
_TRUE_TOKENS: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})
_FALSE_TOKENS: Final[frozenset[str]] = frozenset({"0", "false", "no", "off"})

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "FilesystemConfig",
    "build_filesystem",
    "load_config",
    "probe_case_sensitivity",
]

logger: StructuredLogger = get_logger(__name__, context={"component": "config"})

type FilesystemKind = Literal["memory", "sandbox"]


@dataclass(frozen=True, slots=True)
class FilesystemConfig:
    """Resolved choice of filesystem implementation.

    Attributes:
        kind: ``"memory"`` or ``"sandbox"``.
        root: Host directory for the sandbox. Unused by the memory tree.
        case_sensitive: Case policy. ``None`` means the memory tree's default
            (sensitive) or, for the sandbox, a one-time probe of the root.
        current_directory: Initial current directory.
    """

    kind: FilesystemKind = "memory"
    root: Path | None = None
    case_sensitive: bool | None = None
    current_directory: str = ROOT


def load_config(
    path: Path | Mapping[str, Any] | None,
    overrides: Mapping[str, object] | None = None,
    *,
    env: Mapping[str, str] | None = None,
) -> FilesystemConfig:
    """Load and validate the filesystem configuration.

    Parameters
    ----------
    path:
        Path to a ``.toml``, ``.yaml`` or ``.yml`` file. ``None`` falls back
        to ``~/.config/scriptfs/config.toml``, which may be absent. Tests may
        pass an in-memory mapping to skip file I/O.
    overrides:
        Explicit values keyed by ``FilesystemConfig`` field names. ``None``
        values are ignored.
    env:
        Optional environment mapping. Defaults to :data:`os.environ`.

    Returns
    -------
    FilesystemConfig
        The resolved configuration object.
    """

    env_map = dict(os.environ if env is None else env)

    if isinstance(path, Mapping):
        config_data: dict[str, object] = dict(path)
        config_path: Path | None = None
    else:
        config_path = path if path is not None else DEFAULT_CONFIG_PATH.expanduser()
        config_data = _load_config_file(config_path)

    config = _normalise_config(config_data)
    config = _apply_environment_overrides(config=config, env=env_map)
    config = _apply_overrides(config=config, overrides=overrides)

    return _build_config(config=config, config_path=config_path)


def build_filesystem(
    config: FilesystemConfig, *, clock: WallClock = SYSTEM_CLOCK
) -> Filesystem:
    """Construct the filesystem ``config`` selects.

    A sandbox without an explicit case policy probes its root once here and
    passes the answer to the constructor.
    """

    if config.kind == "memory":
        case_sensitive = True if config.case_sensitive is None else config.case_sensitive
        return MemoryFilesystem(
            case_sensitive=case_sensitive,
            current_directory=config.current_directory,
            clock=clock,
        )

    if config.root is None:  # pragma: no cover - rejected by load_config
        msg = "A sandbox filesystem needs a root directory."
        raise ConfigError(msg, operation="build_filesystem")
    case_sensitive = config.case_sensitive
    if case_sensitive is None:
        case_sensitive = probe_case_sensitivity(config.root)
    return SandboxFilesystem(
        config.root,
        case_sensitive=case_sensitive,
        current_directory=config.current_directory,
    )


def probe_case_sensitivity(directory: Path | str) -> bool:
    """Return True if the host filesystem holding ``directory`` is case-sensitive.

    A scratch file is created inside ``directory`` and looked up again under
    its case-flipped name.
    """

    with tempfile.NamedTemporaryFile(prefix="ScriptFS-Probe-", dir=directory) as probe:
        original = Path(probe.name)
        flipped = original.with_name(original.name.swapcase())
        sensitive = not flipped.exists()
    logger.debug(
        "Probed host case sensitivity.",
        event="config.case_probe",
        context={"directory": str(directory), "case_sensitive": sensitive},
    )
    return sensitive


def _load_config_file(path: Path) -> dict[str, object]:
    if not path.exists():
        if path == DEFAULT_CONFIG_PATH.expanduser():
            return {}
        msg = f"Configuration file not found: {path}"
        raise FileNotFoundError(msg)

    suffix = path.suffix.lower()
    data: object
    if suffix == ".toml" or not suffix:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    elif suffix in {".yaml", ".yml"}:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    else:
        msg = f"Unsupported configuration format: {path.suffix}"
        raise ConfigError(msg, operation="load_config", path=str(path))

    if not isinstance(data, MutableMapping):
        msg = "Configuration file must contain a mapping at the root."
        raise ConfigError(msg, operation="load_config", path=str(path))

    mapping = cast(MutableMapping[object, object], data)
    typed_data: dict[str, object] = {}
    for key, value in mapping.items():
        if not isinstance(key, str):
            msg = f"Configuration keys must be strings (got {key!r})."
            raise ConfigError(msg, operation="load_config", path=str(path))
        typed_data[key] = value
    return typed_data


def _normalise_config(raw: Mapping[str, object]) -> dict[str, object]:
    section_obj = raw.get("filesystem")
    if isinstance(section_obj, Mapping):
        section = cast(Mapping[str, object], section_obj)
    else:
        section = raw

    config: dict[str, object] = {
        "kind": section.get("kind"),
        "root": section.get("root"),
        "case_sensitive": section.get("case_sensitive"),
        "current_directory": section.get("current_directory") or section.get("cwd"),
    }
    return config


def _apply_environment_overrides(
    *, config: dict[str, object], env: Mapping[str, str]
) -> dict[str, object]:
    if ENV_KIND in env:
        config["kind"] = env[ENV_KIND]
    if ENV_ROOT in env:
        config["root"] = env[ENV_ROOT]
    if ENV_CASE_SENSITIVE in env:
        config["case_sensitive"] = env[ENV_CASE_SENSITIVE]
    if ENV_CURRENT_DIRECTORY in env:
        config["current_directory"] = env[ENV_CURRENT_DIRECTORY]
    return config


def _apply_overrides(
    *, config: dict[str, object], overrides: Mapping[str, object] | None
) -> dict[str, object]:
    if overrides is None:
        return config
    for key, value in overrides.items():
        if key not in config:
            msg = f"Unknown configuration override: {key!r}"
            raise ConfigError(msg, operation="load_config")
        if value is None:
            continue
        config[key] = value
    return config


def _build_config(
    *, config: Mapping[str, object], config_path: Path | None
) -> FilesystemConfig:
    kind = _coerce_kind(config.get("kind"))
    root = _coerce_path(config.get("root"), "root")
    if kind == "sandbox" and root is None:
        location = (
            str(config_path) if config_path is not None else str(DEFAULT_CONFIG_PATH)
        )
        msg = f"`root` must be configured for a sandbox filesystem (source: {location})."
        raise ConfigError(msg, operation="load_config")

    current_directory = config.get("current_directory")
    if current_directory is None:
        current_directory = ROOT
    elif not isinstance(current_directory, str) or not current_directory:
        msg = "current_directory must be a non-empty string."
        raise ConfigError(msg, operation="load_config")

    return FilesystemConfig(
        kind=kind,
        root=root,
        case_sensitive=_coerce_optional_bool(config.get("case_sensitive")),
        current_directory=current_directory,
    )


def _coerce_kind(value: object) -> FilesystemKind:
    if value is None:
        return "memory"
    if isinstance(value, str) and value.strip().lower() in _KINDS:
        return cast(FilesystemKind, value.strip().lower())
    msg = f"kind must be 'memory' or 'sandbox' (got {value!r})."
    raise ConfigError(msg, operation="load_config")


def _coerce_path(value: object, field_name: str) -> Path | None:
    if value is None:
        return None
    if isinstance(value, Path):
        return value.expanduser()
    if isinstance(value, str):
        return Path(value).expanduser()
    msg = f"{field_name} must be a path-like value."
    raise ConfigError(msg, operation="load_config")


def _coerce_optional_bool(value: object) -> bool | None:
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, str):
        token = value.strip().lower()
        if token in _TRUE_TOKENS:
            return True
        if token in _FALSE_TOKENS:
            return False
    msg = f"case_sensitive must be a boolean (got {value!r})."
    raise ConfigError(msg, operation="load_config")
