"""
Relative abundance normalization.

Converts raw per-sample counts into per-sample proportions: each sample's
organism counts are divided by that sample's total count, so every column
sums to 1.0. Rank correlations are computed on these proportions.

A sample with zero total abundance has no defined proportions. The
``zero_total`` policy decides what happens to it, and in no case is a division
by zero performed:

    - "drop" (default): the sample is removed
    - "zero": the column is replaced by zeros and flagged ZERO_TOTAL_SAMPLE
    - "raise": InputError is raised
"""

from __future__ import annotations

import logging
from typing import Literal

import numpy as np

from cooccurnet.core.abundance import AbundanceMatrix
from cooccurnet.core.exceptions import InputError
from cooccurnet.core.quality import QualityFlag
from cooccurnet.core.transform import Transform

logger = logging.getLogger(__name__)

__all__ = ['RelativeAbundance', 'relative_abundance', 'ZeroTotalPolicy']

ZeroTotalPolicy = Literal["drop", "zero", "raise"]


class RelativeAbundance(Transform):
    """
    Divide every sample by its total abundance.

    Args:
        zero_total: Policy for samples with zero total ("drop", "zero", "raise")

    Examples:
        >>> normalizer = RelativeAbundance(zero_total="drop")
        >>> relative = normalizer.apply(matrix)
        >>> np.allclose(relative.data.sum(axis=0), 1.0)
        True
    """

    def __init__(self, zero_total: ZeroTotalPolicy = "drop"):
        if zero_total not in ("drop", "zero", "raise"):
            raise ValueError(
                f"Unknown zero_total policy '{zero_total}'. Use 'drop', 'zero', or 'raise'"
            )
        super().__init__(name="RelativeAbundance", params={"zero_total": zero_total})
        self.zero_total = zero_total

    def apply(self, matrix: AbundanceMatrix) -> AbundanceMatrix:
        totals = matrix.sample_totals
        zero_mask = totals <= 0

        if zero_mask.any():
            zero_ids = list(matrix.sample_ids[zero_mask])
            if self.zero_total == "raise":
                raise InputError(
                    f"{len(zero_ids)} samples have zero total abundance: {zero_ids[:5]}"
                )
            if self.zero_total == "drop":
                logger.warning(
                    f"Dropping {len(zero_ids)} zero-total samples before normalization: "
                    f"{zero_ids[:5]}"
                )
                matrix = matrix.select_samples(~zero_mask)
                totals = totals[~zero_mask]
                zero_mask = np.zeros(len(totals), dtype=bool)

        data = np.zeros_like(matrix.data, dtype=float)
        nonzero = ~zero_mask
        data[:, nonzero] = matrix.data[:, nonzero] / totals[nonzero][None, :]

        flags = matrix.quality_flags | QualityFlag.NORMALIZED
        if zero_mask.any():
            logger.warning(
                f"Substituted zero vectors for {int(zero_mask.sum())} zero-total samples"
            )
            flags[:, zero_mask] |= QualityFlag.ZERO_TOTAL_SAMPLE

        return matrix.with_data(data, flags)

    def validate(self, matrix: AbundanceMatrix) -> list[str]:
        errors = super().validate(matrix)
        if matrix.is_relative:
            errors.append("Matrix is already normalized to relative abundance")
        if self.zero_total == "raise" and (matrix.sample_totals <= 0).any():
            errors.append("Matrix contains zero-total samples")
        return errors


def relative_abundance(
    matrix: AbundanceMatrix,
    zero_total: ZeroTotalPolicy = "drop",
) -> AbundanceMatrix:
    """Functional shortcut for ``RelativeAbundance(zero_total).apply(matrix)``."""
    return RelativeAbundance(zero_total=zero_total).apply(matrix)
