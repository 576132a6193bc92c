"""Tests for compiler adapters."""

import sys
from pathlib import Path

from buildgraph_cli.compiler import CommandCompiler, JavacCompiler, compiler_from_command


def _python(code: str):
    return [sys.executable, "-c", code]


def test_build_argv_substitutes_output(temp_dir: Path):
    compiler = CommandCompiler(["tool", "--out={output}"])
    argv = compiler.build_argv([temp_dir / "A.java"], temp_dir / "bin")

    assert argv == ["tool", f"--out={temp_dir / 'bin'}", str(temp_dir / "A.java")]


def test_javac_preset_argv(temp_dir: Path):
    argv = JavacCompiler(extra_args=["-g"]).build_argv([temp_dir / "A.java"], temp_dir / "bin")
    out = str(temp_dir / "bin")
    assert argv == ["javac", "-g", "-d", out, "-cp", out, str(temp_dir / "A.java")]


def test_compiler_from_command():
    assert isinstance(compiler_from_command(["javac", "-g"]), JavacCompiler)
    assert type(compiler_from_command(["make", "classes"])) is CommandCompiler
    assert type(compiler_from_command(["javac", "-d", "{output}"])) is CommandCompiler


def test_successful_command(temp_dir: Path):
    compiler = CommandCompiler(_python("import sys; print('ok', len(sys.argv) - 1)"))

    result = compiler.compile([temp_dir / "A.java", temp_dir / "B.java"], temp_dir / "bin")

    assert result.success is True
    assert result.diagnostics == "ok 2"
    assert (temp_dir / "bin").is_dir()


def test_failing_command_collects_diagnostics(temp_dir: Path):
    code = "import sys; sys.stderr.write('A.java:1: error\\n'); sys.exit(1)"
    result = CommandCompiler(_python(code)).compile([temp_dir / "A.java"], temp_dir / "bin")

    assert result.success is False
    assert "A.java:1: error" in result.diagnostics


def test_missing_executable(temp_dir: Path):
    result = CommandCompiler(["no-such-compiler-xyz"]).compile([], temp_dir / "bin")

    assert result.success is False
    assert result.diagnostics == "Compiler not found: no-such-compiler-xyz"


def test_timeout(temp_dir: Path):
    compiler = CommandCompiler(_python("import time; time.sleep(5)"), timeout=0.2)
    result = compiler.compile([], temp_dir / "bin")

    assert result.success is False
    assert "timed out" in result.diagnostics
