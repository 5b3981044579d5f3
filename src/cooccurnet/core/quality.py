"""
Quality flag system for tracking per-value provenance in abundance matrices.

Abundance tables go through a few value-changing steps before correlation
testing. Flags record which values were touched so that a relative abundance
matrix can always be told apart from raw counts, and so that substituted
zero-total samples remain visible downstream.

Engineering Design:
    IntFlag enables efficient bitwise operations:
    - Multiple flags per value: NORMALIZED | ZERO_TOTAL_SAMPLE
    - Fast bitwise checks: if flags & QualityFlag.NORMALIZED
    - Memory efficient: single int per value

Examples:
    >>> import numpy as np
    >>> from cooccurnet.core.quality import QualityFlag
    >>>
    >>> flags = np.array([0, 1, 3], dtype=int)
    >>> n_normalized = np.sum(flags & QualityFlag.NORMALIZED != 0)
"""

from __future__ import annotations

from enum import IntFlag

__all__ = ['QualityFlag']


class QualityFlag(IntFlag):
    """
    Bitwise flags for per-value quality tracking in abundance matrices.

    Attributes:
        ORIGINAL: Untouched count from the input table (0)
        NORMALIZED: Value is a per-sample relative proportion (1)
        ZERO_TOTAL_SAMPLE: Value belongs to a sample with zero total
            abundance that was replaced by a zero vector (2)
        BELOW_DETECTION: Count was at or below the minimum count threshold
            during prevalence filtering (4)
    """

    ORIGINAL = 0
    """Untouched original count."""

    NORMALIZED = 1
    """Divided by the sample total (relative abundance)."""

    ZERO_TOTAL_SAMPLE = 2
    """
    Sample had zero total abundance. No division was performed; the column
    was substituted with zeros.
    """

    BELOW_DETECTION = 4
    """Count did not exceed the detection threshold used for prevalence."""
