"""
Base transformation framework for immutable abundance-matrix operations.

Co-occurrence pipelines apply a short chain of value-changing steps before any
statistics are computed (count filtering, relative abundance). Each step is a
Transform: a pure function from one AbundanceMatrix to a new one, carrying its
parameters for provenance.

Engineering Design:
    - No side effects (inputs are never modified)
    - Deterministic (same input + params -> same output)
    - validate() reports preconditions as a list of messages

Examples:
    >>> from cooccurnet.core.transform import Transform
    >>>
    >>> class Log1p(Transform):
    ...     def __init__(self):
    ...         super().__init__(name="Log1p", params={})
    ...
    ...     def apply(self, matrix):
    ...         import numpy as np
    ...         return matrix.with_data(np.log1p(matrix.data), matrix.quality_flags.copy())
    >>>
    >>> transformed = Log1p().apply(matrix)  # matrix is unchanged
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from cooccurnet.core.abundance import AbundanceMatrix

__all__ = ['Transform']


class Transform(ABC):
    """
    Abstract base class for all abundance-matrix transformations.

    Attributes:
        name: Human-readable transformation name (e.g., "RelativeAbundance")
        params: Parameters used for this transformation (JSON-serializable)
    """

    def __init__(self, name: str, params: dict[str, Any]) -> None:
        self.name = name
        self.params = params

    @abstractmethod
    def apply(self, matrix: AbundanceMatrix) -> AbundanceMatrix:
        """
        Execute transformation and return a new matrix.

        Must never modify the input matrix.

        Raises:
            InputError: If the transformation cannot be applied to this data
        """
        pass

    def validate(self, matrix: AbundanceMatrix) -> list[str]:
        """
        Check preconditions before applying transformation.

        Subclasses should override and call super().validate() first.

        Returns:
            List of error messages (empty list = valid)
        """
        errors: list[str] = []

        if matrix.data.size == 0:
            errors.append("Cannot process empty matrix")

        return errors

    def __repr__(self) -> str:
        params_str = ", ".join(f"{k}={v}" for k, v in self.params.items())
        return f"{self.name}({params_str})"
