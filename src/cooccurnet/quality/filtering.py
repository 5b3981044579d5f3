"""
Count-threshold filtering for abundance matrices.

Removes samples whose total abundance is too low to normalize and organisms
that are too rare to produce a meaningful rank correlation. Implements the
Transform interface for composable pipelines.

Engineering Design:
    - Pure functions (Transform): input matrix -> output matrix
    - Stratified prevalence: an organism is kept if it is prevalent in at
      least one category, so category-specific organisms survive a global pass
    - Returns a provenance record through get_filter_result()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Set
import numpy as np
import pandas as pd

from cooccurnet.core.abundance import AbundanceMatrix
from cooccurnet.core.quality import QualityFlag
from cooccurnet.core.transform import Transform

logger = logging.getLogger(__name__)

__all__ = ['AbundanceFilter', 'AbundanceFilterResult']


@dataclass
class AbundanceFilterResult:
    """Results from abundance filtering with full provenance."""
    kept_organisms: Set[str]
    removed_organisms: Set[str]
    removed_samples: Set[str]
    stratum_stats: Dict[str, Dict[str, int]] = field(default_factory=dict)
    # stratum_stats format: {"Soil": {"passed": 150, "failed": 50, "n_samples": 24}}
    parameters: Dict[str, Any] = field(default_factory=dict)

    @property
    def n_kept(self) -> int:
        return len(self.kept_organisms)

    @property
    def n_removed(self) -> int:
        return len(self.removed_organisms)

    @property
    def pass_rate(self) -> float:
        total = self.n_kept + self.n_removed
        return self.n_kept / total if total > 0 else 0.0


class AbundanceFilter(Transform):
    """
    Drop low-depth samples and rare organisms.

    Params:
        min_sample_total: Samples whose total abundance is below this value are
            removed. The default (> 0 required) removes only zero-total samples.
        min_count: A count must exceed this value for the organism to be
            considered "present" in a sample.
        min_prevalence: Fraction of samples within a category in which an
            organism must be present.
        category_column: Metadata column defining the strata. None applies a
            single global stratum.
        min_group_size: Strata with fewer samples are skipped.

    Examples:
        >>> abundance_filter = AbundanceFilter(min_count=0, min_prevalence=0.1,
        ...                                    category_column='biome')
        >>> filtered = abundance_filter.apply(matrix)
    """

    def __init__(
        self,
        min_sample_total: float = 1e-12,
        min_count: float = 0.0,
        min_prevalence: float = 0.0,
        category_column: Optional[str] = None,
        min_group_size: int = 1,
    ):
        super().__init__(
            name="AbundanceFilter",
            params={
                "min_sample_total": min_sample_total,
                "min_count": min_count,
                "min_prevalence": min_prevalence,
                "category_column": category_column,
                "min_group_size": min_group_size,
            }
        )
        if not 0.0 <= min_prevalence <= 1.0:
            raise ValueError(f"min_prevalence must be in [0, 1], got {min_prevalence}")
        self.min_sample_total = min_sample_total
        self.min_count = min_count
        self.min_prevalence = min_prevalence
        self.category_column = category_column
        self.min_group_size = min_group_size

    def _sample_mask(self, matrix: AbundanceMatrix) -> np.ndarray:
        return matrix.sample_totals >= self.min_sample_total

    def _compute_keep_mask(
        self, matrix: AbundanceMatrix
    ) -> tuple[np.ndarray, Dict[str, Dict[str, int]]]:
        """
        Core filtering logic: compute which organisms to keep.

        The matrix is expected to be sample-filtered already.

        Returns:
            keep_mask: Boolean array over organisms
            stratum_stats: Per-stratum statistics
        """
        if self.category_column:
            if self.category_column not in matrix.sample_metadata.columns:
                raise ValueError(
                    f"Category column not found in metadata: {self.category_column}"
                )
            groups = matrix.sample_metadata[self.category_column].astype(str)
        else:
            groups = pd.Series("Global", index=matrix.sample_ids)

        present = matrix.data > self.min_count
        keep_mask = np.zeros(matrix.n_organisms, dtype=bool)
        stratum_stats: Dict[str, Dict[str, int]] = {}

        for group in sorted(groups.unique()):
            group_mask = (groups == group).values
            n_samples = int(group_mask.sum())

            if n_samples < self.min_group_size:
                logger.info(f"Skipping small group '{group}' (n={n_samples})")
                continue

            # At least one detection is always required
            thresh_samples = max(1, int(np.ceil(n_samples * self.min_prevalence)))
            group_pass = present[:, group_mask].sum(axis=1) >= thresh_samples
            keep_mask |= group_pass

            n_passed = int(group_pass.sum())
            stratum_stats[group] = {
                "passed": n_passed,
                "failed": matrix.n_organisms - n_passed,
                "n_samples": n_samples,
            }
            logger.debug(f"  Group '{group}' (n={n_samples}): {n_passed} organisms passed")

        return keep_mask, stratum_stats

    def apply(self, matrix: AbundanceMatrix) -> AbundanceMatrix:
        """Apply sample-depth and prevalence filtering."""
        logger.info(
            f"Applying AbundanceFilter: min_sample_total={self.min_sample_total}, "
            f"min_count={self.min_count}, min_prevalence={self.min_prevalence}, "
            f"category_column={self.category_column}"
        )

        sample_mask = self._sample_mask(matrix)
        n_dropped = matrix.n_samples - int(sample_mask.sum())
        if n_dropped:
            logger.warning(
                f"Removed {n_dropped} samples with total abundance < {self.min_sample_total}"
            )
        filtered = matrix.select_samples(sample_mask)

        keep_mask, _ = self._compute_keep_mask(filtered)

        # Record non-detections on the surviving values
        flags = filtered.quality_flags.copy()
        flags[filtered.data <= self.min_count] |= QualityFlag.BELOW_DETECTION
        filtered = filtered.with_data(filtered.data, flags)

        n_kept = int(keep_mask.sum())
        logger.info(
            f"Filtering complete: kept {n_kept}/{filtered.n_organisms} organisms, "
            f"{filtered.n_samples}/{matrix.n_samples} samples"
        )
        return filtered.select_organisms(keep_mask)

    def get_filter_result(self, matrix: AbundanceMatrix) -> AbundanceFilterResult:
        """Compute kept/removed sets without transforming the matrix."""
        sample_mask = self._sample_mask(matrix)
        filtered = matrix.select_samples(sample_mask)
        keep_mask, stratum_stats = self._compute_keep_mask(filtered)

        organism_ids = filtered.organism_ids
        return AbundanceFilterResult(
            kept_organisms=set(map(str, organism_ids[keep_mask])),
            removed_organisms=set(map(str, organism_ids[~keep_mask])),
            removed_samples=set(map(str, matrix.sample_ids[~sample_mask])),
            stratum_stats=stratum_stats,
            parameters=dict(self.params),
        )

    def validate(self, matrix: AbundanceMatrix) -> list[str]:
        errors = super().validate(matrix)
        if self.category_column and self.category_column not in matrix.sample_metadata.columns:
            errors.append(f"Category column '{self.category_column}' missing from metadata")
        return errors
