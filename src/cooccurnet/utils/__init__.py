"""Utility modules for co-occurrence network processing."""

from cooccurnet.utils.fileio import (
    atomic_write_json,
    atomic_write_csv,
)

__all__ = [
    'atomic_write_json',
    'atomic_write_csv',
]
