"""Exception hierarchy for the build engine.

Per-unit failures (:class:`ExtractionError`) are caught and logged by the
engine.  Everything else aborts the current run and reaches the caller.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional


class BuildGraphError(Exception):
    """Base class for all engine errors."""


class ConfigError(BuildGraphError):
    """Invalid or unreadable configuration."""


class DigestError(BuildGraphError):
    """A unit could not be read, so it cannot be classified."""

    def __init__(self, unit_id: str, path: Path, reason: str) -> None:
        super().__init__(f"Cannot read unit '{unit_id}' ({path}): {reason}")
        self.unit_id = unit_id
        self.path = path


class ExtractionError(BuildGraphError):
    """Reference extraction failed for a single unit."""

    def __init__(self, unit_name: str, reason: str) -> None:
        super().__init__(f"Cannot extract references from '{unit_name}': {reason}")
        self.unit_name = unit_name


class PersistenceError(BuildGraphError):
    """The hash store could not be written."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Cannot write hash store {path}: {reason}")
        self.path = path


class DanglingReferenceError(BuildGraphError):
    """Surviving units still reference deleted units."""

    def __init__(self, dangling: dict[str, set[str]]) -> None:
        self.dangling = dangling
        details = "; ".join(
            f"{unit_id} -> {', '.join(sorted(targets))}"
            for unit_id, targets in sorted(dangling.items())
        )
        super().__init__(f"Dangling references to deleted units: {details}")


class BuildCancelled(BuildGraphError):
    """The run was cancelled through its cancellation token."""

    def __init__(self, stage: str, pending: Optional[Iterable[str]] = None) -> None:
        super().__init__(f"Build cancelled during {stage}")
        self.stage = stage
        self.pending = sorted(pending or [])
