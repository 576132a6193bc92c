"""Change detection and stale-state cleanup."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Sequence, Set

from .digest import digest_file
from .models import ChangeSet, Unit
from .scanner import unit_name
from .storage import BuildState, HashStore

logger = logging.getLogger(__name__)


def detect_changes(units: Sequence[Unit], hashes: HashStore) -> ChangeSet:
    """Digest every scanned unit and diff against *hashes*.

    A unit with no stored digest counts as changed.  Ids present in the
    store but missing from the scan are reported as deleted.

    Raises:
        DigestError: a unit could not be read.
    """
    result = ChangeSet()
    for unit in units:
        current = digest_file(unit.path, unit.unit_id)
        result.digests[unit.unit_id] = current
        if hashes.get(unit.unit_id) != current:
            result.changed.add(unit.unit_id)

    result.deleted = detect_deletions(units, hashes)
    logger.debug(
        "%d changed, %d deleted out of %d unit(s)",
        len(result.changed), len(result.deleted), len(units),
    )
    return result


def detect_deletions(units: Iterable[Unit], hashes: HashStore) -> Set[str]:
    existing = {unit.unit_id for unit in units}
    return hashes.unit_ids() - existing


def artifact_paths(output_dir: Path, name: str, artifact_suffix: str) -> List[Path]:
    """Artifacts produced for unit *name*, including nested ones (``Name$Inner``)."""
    if not output_dir.is_dir():
        return []
    paths = [output_dir / f"{name}{artifact_suffix}"]
    paths.extend(sorted(output_dir.glob(f"{name}$*{artifact_suffix}")))
    return [p for p in paths if p.exists()]


def clean_deleted(deleted: Iterable[str], state: BuildState) -> Dict[str, str]:
    """Reclaim hash entry, record, artifacts, and graph node of each deleted unit.

    Best effort: a failing removal is logged and the remaining units are
    still cleaned.

    Returns:
        Mapping of unit id -> error message for units that were not fully
        cleaned.
    """
    config = state.config
    failures: Dict[str, str] = {}
    for unit_id in sorted(deleted):
        state.hashes.remove(unit_id)
        state.graph.remove_unit(unit_id)
        name = unit_name(unit_id, config.unit_suffix)
        try:
            state.graph.remove_record(unit_id)
            for artifact in artifact_paths(config.output_path, name, config.artifact_suffix):
                artifact.unlink(missing_ok=True)
                logger.debug("Removed artifact %s", artifact)
        except OSError as exc:
            logger.warning("Cleanup of deleted unit %s failed: %s", unit_id, exc)
            failures[unit_id] = str(exc)
            continue
        logger.info("Removed state for deleted unit %s", unit_id)
    return failures
