from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Mapping, Union

from .jsonutil import canonical_dumps

logger = logging.getLogger(__name__)


def ensure_dir(path: Path, *, mode: int = 0o700) -> None:
    """Create ``path`` (owner-only where the platform allows it)."""
    path.mkdir(parents=True, exist_ok=True)
    try:
        os.chmod(path, mode)
    except OSError:
        logger.debug("Could not chmod directory: %s", path, exc_info=True)


def atomic_write(path: Path, data: Union[bytes, str]) -> None:
    """Replace ``path`` with ``data`` in one step.

    Readers see either the previous save slot or the new one, never a torn file.
    Text is written as UTF-8.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    ensure_dir(path.parent)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    finally:
        if tmp.exists():
            try:
                tmp.unlink()
            except OSError:
                logger.debug("Could not remove temp file %s", tmp, exc_info=True)


def atomic_write_json(path: Path, obj: Mapping[str, Any]) -> None:
    atomic_write(path, canonical_dumps(dict(obj)))
