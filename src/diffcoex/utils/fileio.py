"""
Atomic file-write utilities.

Reports are written to a temporary file in the destination directory and
moved into place with ``os.replace()``, so an interrupted run never leaves a
half-written CSV next to complete ones from the same analysis.
"""

from __future__ import annotations

import json
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, IO, Iterator

import pandas as pd

__all__ = ['atomic_open', 'atomic_write_json', 'atomic_write_frame']


@contextmanager
def atomic_open(path: str | os.PathLike) -> Iterator[IO[str]]:
    """Text handle whose content replaces *path* only if the block succeeds.

    Parent directories are created as needed. On any exception the temporary
    file is removed and the exception re-raised.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path: str | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w", dir=path.parent, suffix=".tmp", delete=False, newline=""
        ) as tmp:
            tmp_path = tmp.name
            yield tmp
        os.replace(tmp_path, path)
    except BaseException:
        if tmp_path is not None and os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def atomic_write_json(path: str | os.PathLike, data: Any, *, indent: int = 2) -> None:
    """Write *data* as JSON atomically."""
    with atomic_open(path) as handle:
        json.dump(data, handle, indent=indent)


def atomic_write_frame(
    path: str | os.PathLike,
    frame: pd.DataFrame,
    *,
    index: bool = True,
    header: bool = True,
) -> None:
    """Write a DataFrame as CSV atomically."""
    with atomic_open(path) as handle:
        frame.to_csv(handle, index=index, header=header)
