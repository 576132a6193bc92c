"""Tests for change detection and deletion cleanup."""

from pathlib import Path

from buildgraph_cli.changes import artifact_paths, clean_deleted, detect_changes, detect_deletions
from buildgraph_cli.digest import digest
from buildgraph_cli.scanner import scan_units
from buildgraph_cli.storage import BuildState, GraphStore


def _units(project: Path):
    return scan_units(project / "src", ".java")


def test_scan_is_non_recursive_and_suffix_filtered(project: Path, write_unit):
    write_unit("Alpha", "class Alpha {}")
    (project / "src" / "notes.txt").write_text("not a unit", encoding="utf-8")
    nested = project / "src" / "pkg"
    nested.mkdir()
    (nested / "Hidden.java").write_text("class Hidden {}", encoding="utf-8")

    units = _units(project)

    assert [u.unit_id for u in units] == ["Alpha.java"]
    assert units[0].name == "Alpha"


def test_scan_missing_root(temp_dir: Path):
    assert scan_units(temp_dir / "nope", ".java") == []


def test_absent_entry_counts_as_changed(build_config, write_unit):
    write_unit("Alpha", "class Alpha {}")
    state = BuildState.open(build_config)

    result = detect_changes(_units(build_config.project_root), state.hashes)

    assert result.changed == {"Alpha.java"}
    assert result.deleted == set()
    assert result.digests["Alpha.java"] == digest(b"class Alpha {}")


def test_unchanged_changed_and_deleted_are_disjoint(build_config, write_unit):
    write_unit("Alpha", "class Alpha {}")
    write_unit("Beta", "class Beta {}")
    state = BuildState.open(build_config)
    state.hashes.set("Alpha.java", digest(b"class Alpha {}"))
    state.hashes.set("Beta.java", "stale")
    state.hashes.set("Gamma.java", "whatever")

    result = detect_changes(_units(build_config.project_root), state.hashes)

    assert result.changed == {"Beta.java"}
    assert result.deleted == {"Gamma.java"}
    assert detect_deletions(_units(build_config.project_root), state.hashes) == {"Gamma.java"}


def test_artifact_paths_include_nested(temp_dir: Path):
    out = temp_dir / "bin"
    out.mkdir()
    for name in ("Alpha.class", "Alpha$Inner.class", "Alpha$1.class", "AlphaBeta.class"):
        (out / name).write_text("x", encoding="utf-8")

    names = sorted(p.name for p in artifact_paths(out, "Alpha", ".class"))

    assert names == ["Alpha$1.class", "Alpha$Inner.class", "Alpha.class"]


def test_clean_deleted_reclaims_everything(build_config):
    state = BuildState.open(build_config)
    out = build_config.output_path
    out.mkdir(parents=True)
    (out / "Gamma.class").write_text("x", encoding="utf-8")
    (out / "Gamma$Inner.class").write_text("x", encoding="utf-8")
    (out / "Alpha.class").write_text("x", encoding="utf-8")
    state.graph.save_record("Gamma.java", {"Alpha.java"})
    state.graph.set_references("Gamma.java", {"Alpha.java"})
    state.hashes.set("Gamma.java", "g")
    state.hashes.set("Alpha.java", "a")

    failures = clean_deleted({"Gamma.java"}, state)

    assert failures == {}
    assert "Gamma.java" not in state.hashes
    assert "Gamma.java" not in state.graph
    assert state.graph.load_record("Gamma.java") is None
    assert not (out / "Gamma.class").exists()
    assert not (out / "Gamma$Inner.class").exists()
    # unrelated unit untouched
    assert (out / "Alpha.class").exists()
    assert state.hashes.get("Alpha.java") == "a"


def test_clean_deleted_tolerates_missing_files(build_config):
    state = BuildState.open(build_config)
    state.hashes.set("Ghost.java", "g")

    assert clean_deleted({"Ghost.java"}, state) == {}
    assert "Ghost.java" not in state.hashes


def test_clean_deleted_is_best_effort(build_config, monkeypatch, caplog):
    state = BuildState.open(build_config)
    out = build_config.output_path
    out.mkdir(parents=True)
    for unit in ("Alpha", "Beta"):
        (out / f"{unit}.class").write_text("x", encoding="utf-8")
        state.graph.save_record(f"{unit}.java", set())
        state.hashes.set(f"{unit}.java", unit)

    original = GraphStore.remove_record

    def _flaky(self, unit_id):
        if unit_id == "Alpha.java":
            raise PermissionError(13, "Permission denied")
        return original(self, unit_id)

    monkeypatch.setattr(GraphStore, "remove_record", _flaky)

    failures = clean_deleted({"Alpha.java", "Beta.java"}, state)

    assert set(failures) == {"Alpha.java"}
    assert "Cleanup of deleted unit Alpha.java failed" in caplog.text
    assert not (out / "Beta.class").exists()
    assert state.graph.load_record("Beta.java") is None
    assert "Alpha.java" not in state.hashes
    assert "Beta.java" not in state.hashes
