"""Unit discovery on the source root."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List

from .models import Unit

logger = logging.getLogger(__name__)


def scan_units(source_root: Path, unit_suffix: str) -> List[Unit]:
    """List the units directly inside *source_root* (non-recursive).

    A missing source root yields no units, which makes every stored unit
    look deleted; callers decide whether that is acceptable.
    """
    if not source_root.is_dir():
        logger.warning("Source root %s does not exist", source_root)
        return []

    units: List[Unit] = []
    for path in sorted(source_root.iterdir()):
        if not path.is_file() or path.suffix != unit_suffix:
            continue
        units.append(Unit(unit_id=path.name, name=path.name[: -len(unit_suffix)], path=path))
    logger.debug("Scanned %d unit(s) in %s", len(units), source_root)
    return units


def unit_name(unit_id: str, unit_suffix: str) -> str:
    """Strip *unit_suffix* from a unit id."""
    return unit_id.removesuffix(unit_suffix)
