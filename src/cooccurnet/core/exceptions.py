"""
Error taxonomy for the co-occurrence network pipeline.

Failure classes map onto how far an error is allowed to travel:

    - InputError: bad abundance data (negative, non-finite, zero-total samples).
      Raised early so that NaN never propagates into correlation estimates.
    - DegenerateAssociationError: a single organism pair cannot be tested
      (zero variance). Recoverable - the estimator substitutes the neutral
      placeholder (rho=0, p=1) and never surfaces it to callers.
    - SymmetryInvariantViolation: the cleaned association matrix is not
      exactly symmetric. Fatal for the category being processed; the
      comparator isolates it and continues with the remaining categories.
    - ComputationCancelled: cooperative cancellation of the O(n^2) pair loop.

Empty graphs are not errors. They are reported through EmptyGraphWarning and
an explicitly labelled zero-metric TopologyRecord.
"""

from __future__ import annotations

__all__ = [
    'CooccurNetError',
    'InputError',
    'InsufficientSamplesError',
    'DegenerateAssociationError',
    'SymmetryInvariantViolation',
    'ComputationCancelled',
    'EmptyGraphWarning',
]


class CooccurNetError(Exception):
    """Base class for all pipeline errors."""
    pass


class InputError(CooccurNetError, ValueError):
    """Raised when abundance data violates the non-negative, finite count contract."""
    pass


class InsufficientSamplesError(InputError):
    """Raised when too few samples remain for a rank-based significance test."""
    pass


class DegenerateAssociationError(CooccurNetError):
    """Raised by the pair kernel when a coefficient is undefined (zero variance)."""

    def __init__(self, i: int, j: int, reason: str = "zero variance"):
        self.i = i
        self.j = j
        self.reason = reason
        super().__init__(f"Pair ({i}, {j}) is degenerate: {reason}")


class SymmetryInvariantViolation(CooccurNetError):
    """Raised when a cleaned association matrix fails the exact symmetry check."""

    def __init__(self, n_asymmetric: int, max_deviation: float):
        self.n_asymmetric = n_asymmetric
        self.max_deviation = max_deviation
        super().__init__(
            f"Association matrix is not symmetric after repair: "
            f"{n_asymmetric} asymmetric cells (max deviation {max_deviation:.3e})"
        )


class ComputationCancelled(CooccurNetError):
    """Raised when a caller cancels the pairwise dependence computation."""
    pass


class EmptyGraphWarning(UserWarning):
    """Issued when filtering leaves a category with no retained associations."""
    pass
