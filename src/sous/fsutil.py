"""Filesystem helpers shared by the key and cipher layers."""

from __future__ import annotations

import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator


@contextmanager
def atomic_output(target: Path, mode: int = 0o600) -> Iterator[Path]:
    """Yield a temporary sibling of *target*; move it into place on success.

    The temporary file lives in the same directory so the final
    ``os.replace`` is atomic. On any exception the temporary file is
    removed and *target* is left untouched.
    """
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{target.name}.", suffix=".tmp", dir=str(target.parent)
    )
    os.close(fd)
    tmp_path = Path(tmp_name)
    try:
        yield tmp_path
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, target)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()


def write_atomic(target: Path, data: bytes, mode: int = 0o600) -> None:
    """Write *data* to *target* through :func:`atomic_output`."""
    with atomic_output(target, mode=mode) as tmp_path:
        with open(tmp_path, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
