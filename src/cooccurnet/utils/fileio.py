"""
Atomic file-write utilities.

Result tables and run configs are written to a temporary file in the target
directory and moved into place with ``os.replace()``, so an interrupted run
never leaves a half-written topology table behind.
"""

from __future__ import annotations

import json
import os
import tempfile
from contextlib import contextmanager
from typing import Any, Iterator

import pandas as pd

__all__ = ['atomic_write_json', 'atomic_write_csv']


@contextmanager
def _atomic_target(path: str | os.PathLike) -> Iterator[Any]:
    """Yield a writable temp file that replaces *path* on clean exit."""
    path = str(path)
    dir_path = os.path.dirname(path) or "."
    tmp_path: str | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w", dir=dir_path, suffix=".tmp", delete=False, newline=""
        ) as tmp:
            tmp_path = tmp.name
            yield tmp
        os.replace(tmp_path, path)
    except BaseException:
        if tmp_path is not None and os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def atomic_write_json(path: str | os.PathLike, data: Any, *, indent: int = 2) -> None:
    """Write *data* as JSON atomically via temp-file + rename.

    Parameters
    ----------
    path:
        Destination file path.
    data:
        JSON-serializable object.
    indent:
        JSON indentation (default 2).
    """
    with _atomic_target(path) as tmp:
        json.dump(data, tmp, indent=indent)


def atomic_write_csv(path: str | os.PathLike, frame: pd.DataFrame, *, index: bool = False) -> None:
    """Write a DataFrame as CSV atomically via temp-file + rename."""
    with _atomic_target(path) as tmp:
        frame.to_csv(tmp, index=index)
