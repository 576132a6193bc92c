"""Core data models shared by the scanning, analysis, and build layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Set


@dataclass(frozen=True)
class Unit:
    unit_id: str
    name: str
    path: Path


@dataclass
class CompileResult:
    success: bool
    diagnostics: str = ""


@dataclass
class ChangeSet:
    """Outcome of comparing a scan against the hash store."""

    changed: Set[str] = field(default_factory=set)
    deleted: Set[str] = field(default_factory=set)
    digests: Dict[str, str] = field(default_factory=dict)


@dataclass
class RunReport:
    """Everything a caller needs to render the result of one run."""

    units: List[str] = field(default_factory=list)
    changed: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    impacted: List[str] = field(default_factory=list)
    dangling: Dict[str, List[str]] = field(default_factory=dict)
    success: bool = True
    compiled: bool = False
    diagnostics: str = ""

    @property
    def status(self) -> str:
        if not self.success:
            return "failed"
        if self.compiled:
            return "built"
        return "no_changes"

    def summary(self) -> str:
        if not self.success:
            return f"Build failed for {len(self.impacted)} unit(s)."
        if self.compiled:
            return f"Compiled: {', '.join(self.impacted)}"
        if self.impacted:
            return f"Would compile: {', '.join(self.impacted)}"
        return "No changes detected. Compilation skipped."
