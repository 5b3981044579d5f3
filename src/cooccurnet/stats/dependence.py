"""
Pairwise rank-based dependence estimation.

Computes Spearman's rho and a two-sided p-value for every unordered pair of
organisms in one category's relative abundance matrix. The result is a fully
populated, symmetric AssociationMatrix.

Algorithm:
    1. Rank each organism's abundances across samples once, with ties given
       their average rank (scipy.stats.rankdata, method="average"). Ranking
       is deterministic, so results reproduce exactly across runs.
    2. For each pair (i, j), i < j, Spearman's rho is the Pearson correlation
       of the two rank vectors (spearman_pair). This is a pure function of
       (ranks, i, j) and can be fanned out freely.
    3. The p-value uses the t approximation with n - 2 degrees of freedom:
           t = rho * sqrt((n - 2) / (1 - rho^2)),  p = 2 * P(T > |t|)
       which is what scipy.stats.spearmanr reports.
    4. Cell (j, i) is written with the same values as (i, j), so the matrix
       is symmetric by construction.

Degenerate pairs:
    If either organism is constant across all samples, rho is undefined.
    The pair kernel raises DegenerateAssociationError and the estimator writes
    the neutral placeholder (rho=0, p=1) instead of NaN.

Complexity:
    O(n^2) pairs, each O(m) for m samples. With several hundred organisms this
    is tens of thousands of tests, so the estimator reports progress (callback
    and/or tqdm bar), honours cooperative cancellation between pairs, and can
    split rows across a thread pool. None of these affect the result.

Examples:
    >>> from cooccurnet.stats.dependence import SpearmanEstimator
    >>> estimator = SpearmanEstimator(show_progress=True)
    >>> association = estimator.estimate(relative_matrix)
    >>> association.coefficients.shape
    (120, 120)
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from scipy import stats
from tqdm import tqdm

from cooccurnet.core.abundance import AbundanceMatrix
from cooccurnet.core.exceptions import (
    ComputationCancelled,
    DegenerateAssociationError,
    InsufficientSamplesError,
)

logger = logging.getLogger(__name__)

__all__ = [
    'AssociationMatrix',
    'SpearmanEstimator',
    'rank_rows',
    'spearman_pair',
    'spearman_p_value',
    'NEUTRAL_COEFFICIENT',
    'NEUTRAL_P_VALUE',
]

NEUTRAL_COEFFICIENT = 0.0
NEUTRAL_P_VALUE = 1.0

ProgressCallback = Callable[[int, int], None]
CancelToken = Union[threading.Event, Callable[[], bool]]


@dataclass
class AssociationMatrix:
    """
    Pairwise association results for one category.

    Attributes:
        coefficients: (n x n) rank correlation coefficients in [-1, 1]
        p_values: (n x n) two-sided p-values in [0, 1]
        organism_ids: Row/column identifiers

    The diagonal carries the neutral placeholder and is ignored downstream.
    """
    coefficients: np.ndarray
    p_values: np.ndarray
    organism_ids: pd.Index

    def __post_init__(self):
        if not isinstance(self.organism_ids, pd.Index):
            self.organism_ids = pd.Index(self.organism_ids)
        n = len(self.organism_ids)
        if self.coefficients.shape != (n, n):
            raise ValueError(
                f"coefficients shape {self.coefficients.shape} must be ({n}, {n})"
            )
        if self.p_values.shape != (n, n):
            raise ValueError(
                f"p_values shape {self.p_values.shape} must be ({n}, {n})"
            )

    @property
    def n_organisms(self) -> int:
        return len(self.organism_ids)

    @property
    def n_pairs(self) -> int:
        n = self.n_organisms
        return n * (n - 1) // 2

    def is_symmetric(self, atol: float = 0.0) -> bool:
        """Check symmetry of both arrays (exact when atol == 0)."""
        if atol == 0.0:
            return bool(
                np.array_equal(self.coefficients, self.coefficients.T, equal_nan=True)
                and np.array_equal(self.p_values, self.p_values.T, equal_nan=True)
            )
        return bool(
            np.allclose(self.coefficients, self.coefficients.T, atol=atol, equal_nan=True)
            and np.allclose(self.p_values, self.p_values.T, atol=atol, equal_nan=True)
        )

    def to_frame(self) -> pd.DataFrame:
        """
        Long-format table of unordered pairs (upper triangle).

        Columns: organism_a, organism_b, coefficient, p_value
        """
        i_upper, j_upper = np.triu_indices(self.n_organisms, k=1)
        return pd.DataFrame({
            'organism_a': self.organism_ids[i_upper],
            'organism_b': self.organism_ids[j_upper],
            'coefficient': self.coefficients[i_upper, j_upper],
            'p_value': self.p_values[i_upper, j_upper],
        })

    def copy(self) -> AssociationMatrix:
        return AssociationMatrix(
            coefficients=self.coefficients.copy(),
            p_values=self.p_values.copy(),
            organism_ids=self.organism_ids.copy(),
        )


def rank_rows(data: np.ndarray) -> np.ndarray:
    """
    Rank each row independently, ties receiving their average rank.

    Args:
        data: (n_organisms x n_samples) array

    Returns:
        Array of the same shape holding float ranks 1..n_samples
    """
    data = np.asarray(data, dtype=float)
    if data.size == 0:
        return data.copy()
    return stats.rankdata(data, method="average", axis=1)


def spearman_p_value(rho: float, n: int) -> float:
    """
    Two-sided p-value for Spearman's rho under H0: no monotonic association.

    Args:
        rho: Observed coefficient in [-1, 1]
        n: Number of samples

    Returns:
        p-value in [0, 1]. Perfect association (|rho| == 1) gives 0.
    """
    df = n - 2
    if df <= 0:
        return NEUTRAL_P_VALUE
    if abs(rho) >= 1.0:
        return 0.0
    t_stat = rho * np.sqrt(df / ((1.0 - rho) * (1.0 + rho)))
    p = 2.0 * stats.t.sf(abs(t_stat), df)
    return float(min(1.0, max(0.0, p)))


def spearman_pair(ranks: np.ndarray, i: int, j: int) -> Tuple[float, float]:
    """
    Spearman's rho and p-value for organisms i and j.

    Pure function of its arguments.

    Args:
        ranks: Row-ranked abundance matrix (see rank_rows)
        i, j: Row indices

    Returns:
        (rho, p_value)

    Raises:
        DegenerateAssociationError: If either row is constant
    """
    x = ranks[i]
    y = ranks[j]
    # Constant rows rank to identical values
    if np.all(x == x[0]) or np.all(y == y[0]):
        raise DegenerateAssociationError(i, j)

    xc = x - x.mean()
    yc = y - y.mean()
    denom = np.sqrt(np.dot(xc, xc) * np.dot(yc, yc))
    if denom == 0.0:
        raise DegenerateAssociationError(i, j)

    rho = float(np.dot(xc, yc) / denom)
    rho = min(1.0, max(-1.0, rho))
    return rho, spearman_p_value(rho, len(x))


class SpearmanEstimator:
    """
    Full pairwise Spearman test matrix for one category.

    Args:
        method: Dependence method. Only "spearman" is supported.
        n_workers: Threads used to fan out row blocks (1 = sequential)
        show_progress: Display a tqdm progress bar
        progress: Callback ``progress(done_pairs, total_pairs)``
        cancel: threading.Event or zero-arg callable; checked between pairs
        min_samples: Minimum samples for a meaningful test (>= 3)
        description: Label used for the progress bar

    Examples:
        >>> stop = threading.Event()
        >>> estimator = SpearmanEstimator(n_workers=4, cancel=stop)
        >>> association = estimator.estimate(relative_matrix)
    """

    def __init__(
        self,
        method: str = "spearman",
        n_workers: int = 1,
        show_progress: bool = False,
        progress: Optional[ProgressCallback] = None,
        cancel: Optional[CancelToken] = None,
        min_samples: int = 3,
        description: str = "Pairwise Spearman",
    ):
        if method != "spearman":
            raise ValueError(
                f"Unsupported dependence method '{method}'. Only 'spearman' is available"
            )
        if n_workers < 1:
            raise ValueError(f"n_workers must be >= 1, got {n_workers}")
        if min_samples < 3:
            raise ValueError(f"min_samples must be >= 3, got {min_samples}")
        self.method = method
        self.n_workers = n_workers
        self.show_progress = show_progress
        self.progress = progress
        self.cancel = cancel
        self.min_samples = min_samples
        self.description = description

    def _is_cancelled(self) -> bool:
        if self.cancel is None:
            return False
        if isinstance(self.cancel, threading.Event):
            return self.cancel.is_set()
        return bool(self.cancel())

    def _compute_row(
        self,
        ranks: np.ndarray,
        i: int,
        coefficients: np.ndarray,
        p_values: np.ndarray,
    ) -> Tuple[int, int]:
        """
        Test pairs (i, j) for all j > i.

        Writes only cells (i, j) and (j, i), so rows can run concurrently.

        Returns:
            (n_pairs_done, n_degenerate)
        """
        n = ranks.shape[0]
        n_degenerate = 0
        for j in range(i + 1, n):
            if self._is_cancelled():
                raise ComputationCancelled(
                    f"Cancelled at pair ({i}, {j}) of {n} organisms"
                )
            try:
                rho, p = spearman_pair(ranks, i, j)
            except DegenerateAssociationError:
                rho, p = NEUTRAL_COEFFICIENT, NEUTRAL_P_VALUE
                n_degenerate += 1
            coefficients[i, j] = coefficients[j, i] = rho
            p_values[i, j] = p_values[j, i] = p
        return n - 1 - i, n_degenerate

    def estimate(self, matrix: AbundanceMatrix) -> AssociationMatrix:
        """
        Compute the association matrix for a (relative) abundance matrix.

        Raises:
            InsufficientSamplesError: If fewer than min_samples samples
            ComputationCancelled: If the cancel token is set mid-computation
        """
        return self.estimate_array(matrix.data, matrix.organism_ids)

    def estimate_array(
        self,
        data: np.ndarray,
        organism_ids: Optional[Sequence] = None,
    ) -> AssociationMatrix:
        """Same as estimate() for a bare (organisms x samples) array."""
        data = np.asarray(data, dtype=float)
        if data.ndim != 2:
            raise ValueError(f"data must be 2D, got shape {data.shape}")
        n_organisms, n_samples = data.shape
        if organism_ids is None:
            organism_ids = pd.RangeIndex(n_organisms)

        if n_samples < self.min_samples:
            raise InsufficientSamplesError(
                f"Rank correlation needs at least {self.min_samples} samples, got {n_samples}"
            )

        coefficients = np.full((n_organisms, n_organisms), NEUTRAL_COEFFICIENT)
        p_values = np.full((n_organisms, n_organisms), NEUTRAL_P_VALUE)

        total_pairs = n_organisms * (n_organisms - 1) // 2
        logger.debug(
            f"Estimating {total_pairs} Spearman pairs "
            f"({n_organisms} organisms x {n_samples} samples, workers={self.n_workers})"
        )

        ranks = rank_rows(data)
        done = 0
        n_degenerate = 0

        bar = None
        if self.show_progress:
            bar = tqdm(total=total_pairs, desc=self.description, unit="pair")

        def _report(n_done: int) -> None:
            nonlocal done
            done += n_done
            if bar is not None:
                bar.update(n_done)
            if self.progress is not None:
                self.progress(done, total_pairs)

        try:
            rows = range(n_organisms - 1)
            if self.n_workers == 1:
                for i in rows:
                    n_done, n_deg = self._compute_row(ranks, i, coefficients, p_values)
                    n_degenerate += n_deg
                    _report(n_done)
            else:
                with ThreadPoolExecutor(max_workers=self.n_workers) as executor:
                    futures = [
                        executor.submit(self._compute_row, ranks, i, coefficients, p_values)
                        for i in rows
                    ]
                    try:
                        for future in as_completed(futures):
                            n_done, n_deg = future.result()
                            n_degenerate += n_deg
                            _report(n_done)
                    except ComputationCancelled:
                        for future in futures:
                            future.cancel()
                        raise
        finally:
            if bar is not None:
                bar.close()

        if n_degenerate:
            logger.debug(
                f"{n_degenerate}/{total_pairs} pairs were degenerate (constant abundance); "
                f"neutral placeholder used"
            )

        return AssociationMatrix(
            coefficients=coefficients,
            p_values=p_values,
            organism_ids=pd.Index(organism_ids),
        )
