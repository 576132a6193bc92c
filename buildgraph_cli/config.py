"""Build configuration and default locations."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .errors import ConfigError

CONFIG_FILE_NAME = "buildgraph.toml"
CONFIG_ENV_VAR = "BUILDGRAPH_CONFIG"

EXTRACTORS = ("lexical", "structural")
DANGLING_POLICIES = ("warn", "rebuild", "error")


@dataclass
class BuildConfig:
    """Where units live, where state goes, and how to build them.

    Relative directories resolve against ``project_root``.
    """

    project_root: Path = field(default_factory=Path.cwd)
    source_dir: str = "src"
    output_dir: str = "bin"
    deps_dir: str = ".deps"
    hash_file: str = "hashes.json"
    unit_suffix: str = ".java"
    artifact_suffix: str = ".class"
    extractor: str = "structural"
    workers: int = 1
    dangling: str = "warn"
    compiler: List[str] = field(default_factory=lambda: ["javac"])

    def __post_init__(self) -> None:
        self.project_root = Path(self.project_root)
        self.validate()

    def validate(self) -> None:
        if self.extractor not in EXTRACTORS:
            raise ConfigError(
                f"Unknown extractor '{self.extractor}' (expected one of: {', '.join(EXTRACTORS)})"
            )
        if self.dangling not in DANGLING_POLICIES:
            raise ConfigError(
                f"Unknown dangling policy '{self.dangling}' "
                f"(expected one of: {', '.join(DANGLING_POLICIES)})"
            )
        if not self.unit_suffix.startswith("."):
            raise ConfigError(f"unit_suffix must start with '.': {self.unit_suffix!r}")
        if not isinstance(self.workers, int) or self.workers < 1:
            raise ConfigError(f"workers must be a positive integer, got {self.workers!r}")
        if not self.compiler or not all(isinstance(part, str) for part in self.compiler):
            raise ConfigError("compiler must be a non-empty list of strings")

    def _resolve(self, value: str) -> Path:
        path = Path(value).expanduser()
        return path if path.is_absolute() else self.project_root / path

    @property
    def source_path(self) -> Path:
        return self._resolve(self.source_dir)

    @property
    def output_path(self) -> Path:
        return self._resolve(self.output_dir)

    @property
    def deps_path(self) -> Path:
        return self._resolve(self.deps_dir)

    @property
    def hash_path(self) -> Path:
        return self._resolve(self.hash_file)


def default_config_path(project_root: Path) -> Path:
    """Config file location, honouring ``BUILDGRAPH_CONFIG``."""
    override: Optional[str] = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return project_root / CONFIG_FILE_NAME


def ensure_build_dirs(config: BuildConfig) -> None:
    """Create output and record directories if needed."""
    config.output_path.mkdir(parents=True, exist_ok=True)
    config.deps_path.mkdir(parents=True, exist_ok=True)
