"""Configuration manager for BuildGraph using TOML files."""

from __future__ import annotations

from dataclasses import asdict, fields
from pathlib import Path
from typing import Any, Dict, Optional

import toml

from .config import BuildConfig, default_config_path
from .errors import ConfigError

# Keys accepted in the ``[build]`` table
CONFIG_KEYS = {f.name for f in fields(BuildConfig)} - {"project_root"}


def load_full_config(path: Path) -> Dict[str, Any]:
    """Load the entire TOML config (all sections).

    A missing file is an empty config.
    """
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        raise ConfigError(f"Cannot read config {path}: {exc}") from exc


def load_config(
    project_root: Path,
    config_file: Optional[Path] = None,
    **overrides: Any,
) -> BuildConfig:
    """Build a :class:`BuildConfig` from ``[build]`` plus explicit overrides.

    Args:
        project_root: Directory relative paths resolve against.
        config_file: Explicit config path; defaults to
            :func:`~buildgraph_cli.config.default_config_path`.
        **overrides: Values taking precedence over the file (``None`` is
            ignored, so CLI options can be passed straight through).

    Raises:
        ConfigError: unreadable file, unknown key, or invalid value.
    """
    path = config_file or default_config_path(project_root)
    section = load_full_config(path).get("build", {})
    if not isinstance(section, dict):
        raise ConfigError(f"[build] in {path} must be a table")

    unknown = set(section) - CONFIG_KEYS
    if unknown:
        raise ConfigError(f"Unknown key(s) in [build]: {', '.join(sorted(unknown))}")

    values = dict(section)
    values.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return BuildConfig(project_root=project_root, **values)
    except TypeError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


def save_config(config: BuildConfig, config_file: Optional[Path] = None) -> Path:
    """Write *config* to the ``[build]`` table, preserving other sections."""
    path = config_file or default_config_path(config.project_root)
    full = load_full_config(path)
    payload = asdict(config)
    payload.pop("project_root")
    full["build"] = payload
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        toml.dump(full, f)
    return path
