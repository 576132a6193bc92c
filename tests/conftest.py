"""Pytest configuration and fixtures for BuildGraph tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Callable, Generator, List, Sequence

import pytest

from buildgraph_cli.compiler import Compiler
from buildgraph_cli.config import CONFIG_ENV_VAR, BuildConfig
from buildgraph_cli.models import CompileResult
from buildgraph_cli.orchestrator import BuildOrchestrator


class RecordingCompiler(Compiler):
    """Fake toolchain that records every call and writes one artifact per source."""

    def __init__(self, success: bool = True, diagnostics: str = "") -> None:
        self.success = success
        self.diagnostics = diagnostics
        self.calls: List[List[str]] = []

    def compile(self, sources: Sequence[Path], output_dir: Path) -> CompileResult:
        self.calls.append(sorted(p.name for p in sources))
        if self.success:
            output_dir.mkdir(parents=True, exist_ok=True)
            for src in sources:
                (output_dir / f"{src.stem}.class").write_text("compiled", encoding="utf-8")
        return CompileResult(self.success, self.diagnostics)


@pytest.fixture(autouse=True)
def _isolate_config_env(monkeypatch):
    """Keep a developer's BUILDGRAPH_CONFIG from leaking into tests."""
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def project(temp_dir: Path) -> Path:
    """Empty project root with a ``src`` directory."""
    (temp_dir / "src").mkdir()
    return temp_dir


@pytest.fixture
def write_unit(project: Path) -> Callable[[str, str], Path]:
    """Write ``src/<name>.java`` and return its path."""

    def _write(name: str, content: str) -> Path:
        path = project / "src" / f"{name}.java"
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def build_config(project: Path) -> BuildConfig:
    return BuildConfig(project_root=project, extractor="lexical")


@pytest.fixture
def compiler() -> RecordingCompiler:
    return RecordingCompiler()


@pytest.fixture
def orchestrator(build_config: BuildConfig, compiler: RecordingCompiler) -> BuildOrchestrator:
    return BuildOrchestrator(build_config, compiler=compiler)


@pytest.fixture
def sample_project_path() -> Path:
    """Path to the Java fixture project."""
    return Path(__file__).parent / "fixtures" / "sample_project"


@pytest.fixture
def alpha_beta(write_unit) -> None:
    """``Alpha`` has no references; ``Beta`` references ``Alpha``."""
    write_unit("Alpha", "public class Alpha {\n    int value;\n}\n")
    write_unit("Beta", "public class Beta {\n    Alpha alpha = new Alpha();\n}\n")
