"""Persistence layer for build state.

Architecture:
- **GraphStore** keeps the dependency graph (unit -> referenced units) in
  memory and mirrors each unit's reference set to a newline-separated
  ``<unit>.deps`` record for inspection.
- **HashStore** keeps the last successfully built digest per unit in a
  single JSON file, replaced atomically on save.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

from .config import BuildConfig
from .errors import PersistenceError

logger = logging.getLogger(__name__)

HASH_STORE_VERSION = 1
RECORD_SUFFIX = ".deps"


# ===================================================================
# GraphStore  (in-memory graph + per-unit records)
# ===================================================================

class GraphStore:
    """Dependency graph with a durable per-unit side record."""

    def __init__(self, deps_dir: Path) -> None:
        self.deps_dir = deps_dir
        self._graph: Dict[str, Set[str]] = {}

    # ------------------------------------------------------------------
    # In-memory graph
    # ------------------------------------------------------------------

    def set_references(self, unit_id: str, references: Iterable[str]) -> None:
        self._graph[unit_id] = set(references)

    def references(self, unit_id: str) -> Set[str]:
        return set(self._graph.get(unit_id, ()))

    def remove_unit(self, unit_id: str) -> bool:
        return self._graph.pop(unit_id, None) is not None

    def units(self) -> List[str]:
        return sorted(self._graph)

    def as_dict(self) -> Dict[str, Set[str]]:
        return {unit_id: set(refs) for unit_id, refs in self._graph.items()}

    def clear(self) -> None:
        self._graph.clear()

    def __contains__(self, unit_id: object) -> bool:
        return unit_id in self._graph

    def __len__(self) -> int:
        return len(self._graph)

    # ------------------------------------------------------------------
    # Durable records
    # ------------------------------------------------------------------

    def record_path(self, unit_id: str) -> Path:
        return self.deps_dir / f"{unit_id}{RECORD_SUFFIX}"

    def save_record(self, unit_id: str, references: Iterable[str]) -> None:
        self.deps_dir.mkdir(parents=True, exist_ok=True)
        lines = "".join(f"{ref}\n" for ref in sorted(references))
        self.record_path(unit_id).write_text(lines, encoding="utf-8")

    def load_record(self, unit_id: str) -> Optional[Set[str]]:
        path = self.record_path(unit_id)
        if not path.exists():
            return None
        return {
            line.strip()
            for line in path.read_text(encoding="utf-8").splitlines()
            if line.strip()
        }

    def remove_record(self, unit_id: str) -> bool:
        """Delete the record for *unit_id*.

        Returns ``False`` when there was nothing to delete; other
        filesystem errors propagate as :class:`OSError`.
        """
        path = self.record_path(unit_id)
        if not path.exists():
            return False
        path.unlink()
        return True

    def iter_records(self) -> Iterator[Tuple[str, Set[str]]]:
        if not self.deps_dir.is_dir():
            return
        for path in sorted(self.deps_dir.glob(f"*{RECORD_SUFFIX}")):
            unit_id = path.name[: -len(RECORD_SUFFIX)]
            yield unit_id, self.load_record(unit_id) or set()


# ===================================================================
# HashStore  (JSON, atomic replace)
# ===================================================================

class HashStore:
    """Durable map of unit id -> digest of the last successful build."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._digests: Dict[str, str] = {}

    def load(self) -> "HashStore":
        """Replace in-memory state with the file contents.

        A missing file is an empty store.  A corrupt or unreadable file is
        logged and also treated as empty, which forces a full rebuild.
        """
        self._digests = {}
        if not self.path.exists():
            logger.info("No previous hash state found at %s", self.path)
            return self
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable hash store %s: %s", self.path, exc)
            return self

        digests = payload.get("digests") if isinstance(payload, dict) else None
        if not isinstance(digests, dict):
            logger.warning("Ignoring malformed hash store %s", self.path)
            return self
        self._digests = {str(k): str(v) for k, v in digests.items()}
        logger.debug("Loaded %d digest(s) from %s", len(self._digests), self.path)
        return self

    def save(self) -> None:
        """Write the store via temp file + rename.

        Raises:
            PersistenceError: the file could not be written; the previous
                file is left untouched.
        """
        payload = {"version": HASH_STORE_VERSION, "digests": dict(sorted(self._digests.items()))}
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tmp.open("w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2)
                handle.write("\n")
            tmp.replace(self.path)
        except OSError as exc:
            tmp.unlink(missing_ok=True)
            raise PersistenceError(self.path, str(exc)) from exc
        logger.debug("Saved %d digest(s) to %s", len(self._digests), self.path)

    def get(self, unit_id: str) -> Optional[str]:
        return self._digests.get(unit_id)

    def set(self, unit_id: str, value: str) -> None:
        self._digests[unit_id] = value

    def remove(self, unit_id: str) -> bool:
        return self._digests.pop(unit_id, None) is not None

    def unit_ids(self) -> Set[str]:
        return set(self._digests)

    def snapshot(self) -> Dict[str, str]:
        return dict(self._digests)

    def __contains__(self, unit_id: object) -> bool:
        return unit_id in self._digests

    def __len__(self) -> int:
        return len(self._digests)


# ===================================================================
# BuildState  (everything one run reads and mutates)
# ===================================================================

@dataclass
class BuildState:
    """Graph and hash store for one run or one long-lived session.

    Passed explicitly into each pipeline step so independent instances
    (e.g. parallel tests) never share maps.
    """

    config: BuildConfig
    graph: GraphStore
    hashes: HashStore

    @classmethod
    def open(cls, config: BuildConfig) -> "BuildState":
        return cls(
            config=config,
            graph=GraphStore(config.deps_path),
            hashes=HashStore(config.hash_path).load(),
        )
