"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for opscribe:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.opscribe/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **Global config** -- A single :class:`~opscribe.models.GlobalConfig`
  JSON file storing resolver limits and the default output format.
* **Project-local config** -- ``./opscribe.json`` overriding the resolver
  settings for one working directory.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, project-local config, and global config into the
  final effective configuration.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from opscribe.exceptions import ConfigError
from opscribe.models import GlobalConfig, ResolverConfig

_APP_NAME = "opscribe"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "opscribe.json"

# Environment variable -> ResolverConfig field
_ENV_OVERRIDES = {
    "OPSCRIBE_MAX_DEPTH": "max_depth",
    "OPSCRIBE_MAX_FILES": "max_files",
    "OPSCRIBE_CONCURRENCY": "concurrency",
    "OPSCRIBE_TIMEOUT": "timeout_seconds",
}


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/opscribe/`` (default ``~/.config/opscribe/``).
    On macOS/Windows: ``~/.opscribe/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/opscribe/`` (default ``~/.local/share/opscribe/``).
    On macOS/Windows: ``~/.opscribe/logs/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created next to *path* so that ``os.replace`` is an
    atomic rename on POSIX systems. On any failure the temp file is removed.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close below
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Global config ---


def _global_config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration from the XDG config directory.

    Returns:
        The deserialised :class:`~opscribe.models.GlobalConfig`, or a default
        instance when the file does not exist.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically to disk."""
    data = config.model_dump(mode="json")
    _atomic_write(_global_config_path(), json.dumps(data, indent=2) + "\n")


def set_config_value(config: GlobalConfig, key: str, value: str) -> GlobalConfig:
    """Return a copy of *config* with the dotted *key* set to *value*.

    Supported keys are ``output.format`` and ``resolver.<field>``. The value
    is validated by the corresponding Pydantic model.

    Raises:
        ConfigError: If the key is unknown or the value is invalid.
    """
    section, _, name = key.partition(".")
    if section not in ("resolver", "output") or not name:
        raise ConfigError(f"Unknown config key: {key}")
    current = getattr(config, section)
    if name not in type(current).model_fields:
        raise ConfigError(f"Unknown config key: {key}")

    parsed: Any = None if value.lower() in ("none", "null", "") else value
    data = current.model_dump()
    data[name] = parsed
    try:
        updated = type(current).model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid value for {key}: {value}") from exc
    return config.model_copy(update={section: updated})


# --- Project-local config ---


def load_project_config() -> Optional[dict[str, Any]]:
    """Load project-local configuration from ``./opscribe.json``.

    The file holds a partial ``resolver`` section, e.g.
    ``{"resolver": {"max_depth": 16}}``.

    Returns:
        The parsed JSON as a dict, or ``None`` if the file does not exist.

    Raises:
        ConfigError: If the file exists but contains invalid JSON.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid project config at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid project config at {path}: expected an object")
    return data


# --- Precedence resolution ---


def resolve_config(
    cli_format: Optional[str] = None,
    cli_max_depth: Optional[int] = None,
    cli_max_files: Optional[int] = None,
) -> GlobalConfig:
    """Resolve config with full precedence chain.

    Precedence (high to low):
        1. CLI flags (``cli_format``, ``cli_max_depth``, ``cli_max_files``)
        2. Environment variables (``OPSCRIBE_MAX_DEPTH``, ``OPSCRIBE_MAX_FILES``,
           ``OPSCRIBE_CONCURRENCY``, ``OPSCRIBE_TIMEOUT``)
        3. Project config (``./opscribe.json``)
        4. User config (``~/.config/opscribe/config.json``)
        5. Defaults

    Raises:
        ConfigError: If any layer holds an invalid value.
    """
    global_cfg = load_global_config()
    resolver = global_cfg.resolver.model_dump()

    project = load_project_config()
    if project is not None:
        section = project.get("resolver", {})
        if not isinstance(section, dict):
            raise ConfigError("Project config 'resolver' must be an object")
        resolver.update(section)

    for env_var, name in _ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if value:
            resolver[name] = value

    if cli_max_depth is not None:
        resolver["max_depth"] = cli_max_depth
    if cli_max_files is not None:
        resolver["max_files"] = cli_max_files

    try:
        resolved = ResolverConfig.model_validate(resolver)
    except ValidationError as exc:
        raise ConfigError(f"Invalid resolver settings: {exc}") from exc

    output = global_cfg.output
    if cli_format is not None:
        output = output.model_copy(update={"format": cli_format})

    return GlobalConfig(resolver=resolved, output=output)
