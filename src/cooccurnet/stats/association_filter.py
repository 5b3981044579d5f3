"""
Significance and strength filtering of association matrices.

Keeps only positive (co-occurring), strong, statistically significant
associations and repairs the matrix into an exactly symmetric adjacency.

Steps (each a pure function of its inputs):
    0. symmetric_inputs  - average each coefficient with its transpose and
                           give each pair the larger of its two p-values
    1. apply_thresholds  - zero cells with |rho| < min_coefficient or
                           p > alpha, judged on the signed rho
    2. clip_negative     - zero negative coefficients (mutual exclusion is
                           not co-occurrence)
    3. coerce_nonfinite  - NaN / infinite values become 0
    4. verify_symmetry   - exact check, SymmetryInvariantViolation on failure

Thresholds run on the already repaired pair, so mirrored cells that straddle
a cutoff are kept or dropped together. Because the thresholds are evaluated
before clipping, the order of steps 1 and 2 cannot change which cells survive.

Examples:
    >>> from cooccurnet.stats.association_filter import AssociationFilter
    >>> cleaned = AssociationFilter(min_coefficient=0.6, alpha=0.05).apply(association)
    >>> bool((cleaned.coefficients >= 0).all())
    True
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, asdict
from typing import Tuple

import numpy as np

from cooccurnet.core.exceptions import SymmetryInvariantViolation
from cooccurnet.stats.dependence import AssociationMatrix, NEUTRAL_P_VALUE

logger = logging.getLogger(__name__)

__all__ = [
    'AssociationFilter',
    'FilterSummary',
    'apply_thresholds',
    'clip_negative',
    'coerce_nonfinite',
    'enforce_symmetry',
    'symmetric_inputs',
    'verify_symmetry',
    'filter_association',
    'DEFAULT_MIN_COEFFICIENT',
    'DEFAULT_ALPHA',
]

DEFAULT_MIN_COEFFICIENT = 0.6
DEFAULT_ALPHA = 0.05


@dataclass(frozen=True)
class FilterSummary:
    """Pair counts at each filtering criterion (upper triangle only)."""
    n_pairs: int
    n_retained: int
    n_negative: int
    n_weak: int
    n_not_significant: int
    n_nonfinite: int

    def to_dict(self) -> dict:
        return asdict(self)


def apply_thresholds(
    coefficients: np.ndarray,
    p_values: np.ndarray,
    min_coefficient: float,
    alpha: float,
) -> np.ndarray:
    """
    Zero cells that are weak or not significant.

    Args:
        coefficients: Signed coefficients
        p_values: Paired p-values
        min_coefficient: Minimum absolute coefficient
        alpha: Maximum p-value

    Returns:
        New coefficient array; cells with |rho| < min_coefficient or
        p > alpha (or non-comparable NaN values) are 0.
    """
    with np.errstate(invalid="ignore"):
        keep = (np.abs(coefficients) >= min_coefficient) & (p_values <= alpha)
    return np.where(keep, coefficients, 0.0)


def clip_negative(coefficients: np.ndarray) -> np.ndarray:
    """Set negative coefficients to 0 (NaN is left for coerce_nonfinite)."""
    with np.errstate(invalid="ignore"):
        return np.where(coefficients < 0, 0.0, coefficients)


def coerce_nonfinite(values: np.ndarray, fill: float = 0.0) -> np.ndarray:
    """Replace NaN and +/-inf with ``fill``."""
    return np.where(np.isfinite(values), values, fill)


def enforce_symmetry(values: np.ndarray) -> np.ndarray:
    """Average each cell with its transpose counterpart."""
    return (values + values.T) / 2.0


def verify_symmetry(values: np.ndarray) -> None:
    """
    Exact symmetry check.

    Raises:
        SymmetryInvariantViolation: If any cell differs from its transpose
    """
    if values.ndim != 2 or values.shape[0] != values.shape[1]:
        raise SymmetryInvariantViolation(n_asymmetric=-1, max_deviation=float("nan"))
    diff = values != values.T
    if diff.any():
        deviation = np.abs(values - values.T)
        raise SymmetryInvariantViolation(
            n_asymmetric=int(diff.sum()),
            max_deviation=float(np.nanmax(deviation)) if np.isfinite(deviation).any() else float("nan"),
        )


def symmetric_inputs(
    coefficients: np.ndarray, p_values: np.ndarray
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Mirror-consistent copies of the raw inputs.

    Coefficients are averaged with their transpose and each pair takes the
    larger of its two p-values, so a pair either passes both cutoffs on both
    sides or on neither.
    """
    return enforce_symmetry(coefficients), np.maximum(p_values, p_values.T)


class AssociationFilter:
    """
    Multi-criterion filter turning an AssociationMatrix into an adjacency.

    Args:
        min_coefficient: Absolute-coefficient cutoff (default 0.6)
        alpha: Significance cutoff (default 0.05)
        symmetry_tolerance: Input asymmetry above this is logged before repair

    After apply(), every nonzero coefficient is positive, >= min_coefficient,
    and its p-value is <= alpha. Dropped cells get p = 1.
    """

    def __init__(
        self,
        min_coefficient: float = DEFAULT_MIN_COEFFICIENT,
        alpha: float = DEFAULT_ALPHA,
        symmetry_tolerance: float = 1e-12,
    ):
        if not 0.0 <= min_coefficient <= 1.0:
            raise ValueError(f"min_coefficient must be in [0, 1], got {min_coefficient}")
        if not 0.0 <= alpha <= 1.0:
            raise ValueError(f"alpha must be in [0, 1], got {alpha}")
        self.min_coefficient = min_coefficient
        self.alpha = alpha
        self.symmetry_tolerance = symmetry_tolerance

    @property
    def params(self) -> dict:
        return {"min_coefficient": self.min_coefficient, "alpha": self.alpha}

    def summarize(self, association: AssociationMatrix) -> FilterSummary:
        """Count upper-triangle pairs failing each criterion."""
        coefficients, p_values = symmetric_inputs(association.coefficients, association.p_values)
        return self._summarize(coefficients, p_values)

    def _summarize(self, coefficients: np.ndarray, p_values: np.ndarray) -> FilterSummary:
        i_upper, j_upper = np.triu_indices(coefficients.shape[0], k=1)
        rho = coefficients[i_upper, j_upper]
        p = p_values[i_upper, j_upper]

        finite = np.isfinite(rho) & np.isfinite(p)
        with np.errstate(invalid="ignore"):
            negative = finite & (rho < 0)
            weak = finite & (np.abs(rho) < self.min_coefficient)
            not_significant = finite & (p > self.alpha)
            retained = finite & ~negative & ~weak & ~not_significant

        return FilterSummary(
            n_pairs=int(len(rho)),
            n_retained=int(retained.sum()),
            n_negative=int(negative.sum()),
            n_weak=int(weak.sum()),
            n_not_significant=int(not_significant.sum()),
            n_nonfinite=int((~finite).sum()),
        )

    def apply(self, association: AssociationMatrix) -> AssociationMatrix:
        """
        Filter and repair an association matrix.

        Raises:
            SymmetryInvariantViolation: If the repaired matrix is not exactly
                symmetric. Treat as a numeric-precision defect, not as data.
        """
        cleaned, _ = self.apply_with_summary(association)
        return cleaned

    def apply_with_summary(
        self, association: AssociationMatrix
    ) -> Tuple[AssociationMatrix, FilterSummary]:
        """apply() plus the FilterSummary, computed in the same pass."""
        if not association.is_symmetric(atol=self.symmetry_tolerance):
            logger.warning(
                "Association matrix is asymmetric beyond tolerance "
                f"{self.symmetry_tolerance}; averaging with transpose"
            )

        # Thresholds are judged on the repaired pair, never on one triangle
        coefficients, p_values = symmetric_inputs(association.coefficients, association.p_values)

        cleaned = apply_thresholds(coefficients, p_values, self.min_coefficient, self.alpha)
        cleaned = clip_negative(cleaned)
        cleaned = coerce_nonfinite(cleaned)
        np.fill_diagonal(cleaned, 0.0)
        verify_symmetry(cleaned)

        retained = cleaned != 0.0
        cleaned_p = np.where(retained, p_values, NEUTRAL_P_VALUE)
        verify_symmetry(cleaned_p)

        summary = self._summarize(coefficients, p_values)
        logger.info(
            f"Association filter (|rho| >= {self.min_coefficient}, p <= {self.alpha}): "
            f"retained {summary.n_retained}/{summary.n_pairs} pairs "
            f"(negative={summary.n_negative}, weak={summary.n_weak}, "
            f"not significant={summary.n_not_significant}, non-finite={summary.n_nonfinite})"
        )

        cleaned_association = AssociationMatrix(
            coefficients=cleaned,
            p_values=cleaned_p,
            organism_ids=association.organism_ids,
        )
        return cleaned_association, summary

    def __repr__(self) -> str:
        return f"AssociationFilter(min_coefficient={self.min_coefficient}, alpha={self.alpha})"


def filter_association(
    association: AssociationMatrix,
    min_coefficient: float = DEFAULT_MIN_COEFFICIENT,
    alpha: float = DEFAULT_ALPHA,
) -> Tuple[AssociationMatrix, FilterSummary]:
    """Functional shortcut returning the cleaned matrix and its summary."""
    association_filter = AssociationFilter(min_coefficient=min_coefficient, alpha=alpha)
    return association_filter.apply_with_summary(association)
