"""Content fingerprints for change detection."""

from __future__ import annotations

import hashlib
from pathlib import Path

from .errors import DigestError


def digest(data: bytes) -> str:
    """Return the SHA-256 hex digest of *data*."""
    return hashlib.sha256(data).hexdigest()


def digest_file(path: Path, unit_id: str | None = None) -> str:
    """Digest the bytes of *path*.

    Raises:
        DigestError: the file cannot be read.  Callers treat this as fatal
            because an unreadable unit is neither changed nor unchanged.
    """
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise DigestError(unit_id or path.name, path, exc.strerror or str(exc)) from exc
    return digest(data)
