"""Compiler collaborators.

The engine only needs ``compile(sources, output_dir) -> CompileResult``.
:class:`CommandCompiler` runs any external toolchain; ``{output}`` in its
argument list is replaced by the output directory and the source paths are
appended.  :class:`JavacCompiler` is the preset for ``javac``.
"""

from __future__ import annotations

import logging
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Sequence

from .models import CompileResult

logger = logging.getLogger(__name__)

OUTPUT_PLACEHOLDER = "{output}"


class Compiler(ABC):
    """Abstract base class for build toolchains."""

    @abstractmethod
    def compile(self, sources: Sequence[Path], output_dir: Path) -> CompileResult:
        """Compile *sources* into *output_dir* and report the outcome."""
        ...


class CommandCompiler(Compiler):
    """Invoke an external command once for the whole unit set."""

    def __init__(self, command: Sequence[str], timeout: Optional[float] = None) -> None:
        if not command:
            raise ValueError("command must not be empty")
        self.command = list(command)
        self.timeout = timeout

    def build_argv(self, sources: Sequence[Path], output_dir: Path) -> List[str]:
        argv = [arg.replace(OUTPUT_PLACEHOLDER, str(output_dir)) for arg in self.command]
        argv.extend(str(src) for src in sources)
        return argv

    def compile(self, sources: Sequence[Path], output_dir: Path) -> CompileResult:
        output_dir.mkdir(parents=True, exist_ok=True)
        argv = self.build_argv(sources, output_dir)
        logger.debug("Running %s", " ".join(argv))
        try:
            proc = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError:
            return CompileResult(False, f"Compiler not found: {argv[0]}")
        except subprocess.TimeoutExpired:
            return CompileResult(False, f"Compiler timed out after {self.timeout}s")

        diagnostics = "\n".join(part for part in (proc.stdout.strip(), proc.stderr.strip()) if part)
        if proc.returncode != 0:
            logger.info("%s exited with status %d", argv[0], proc.returncode)
        return CompileResult(proc.returncode == 0, diagnostics)


class JavacCompiler(CommandCompiler):
    """``javac`` writing classes to, and resolving against, the output directory."""

    def __init__(self, executable: str = "javac", extra_args: Sequence[str] = (), **kwargs) -> None:
        super().__init__(
            [executable, *extra_args, "-d", OUTPUT_PLACEHOLDER, "-cp", OUTPUT_PLACEHOLDER],
            **kwargs,
        )


def compiler_from_command(command: Sequence[str]) -> Compiler:
    """Pick the compiler adapter for a configured command line."""
    if Path(command[0]).name == "javac" and OUTPUT_PLACEHOLDER not in " ".join(command):
        return JavacCompiler(command[0], extra_args=command[1:])
    return CommandCompiler(command)
