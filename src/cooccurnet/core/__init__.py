"""
Core data structures and abstractions for co-occurrence network analysis.

This module provides the foundational types that all other modules build upon:

1. AbundanceMatrix: Count table with sample metadata and quality tracking
2. QualityFlag: Bitwise flags for tracking per-value provenance
3. Transform: Abstract base class for immutable matrix transformations
4. Exceptions: The pipeline's error taxonomy

Examples:
    >>> from cooccurnet.core import AbundanceMatrix, QualityFlag
    >>>
    >>> matrix = AbundanceMatrix.from_counts(counts, organism_ids, sample_ids, metadata)
    >>> n_normalized = np.sum(matrix.quality_flags & QualityFlag.NORMALIZED != 0)
"""

from cooccurnet.core.abundance import AbundanceMatrix
from cooccurnet.core.quality import QualityFlag
from cooccurnet.core.transform import Transform
from cooccurnet.core.exceptions import (
    CooccurNetError,
    InputError,
    InsufficientSamplesError,
    DegenerateAssociationError,
    SymmetryInvariantViolation,
    ComputationCancelled,
    EmptyGraphWarning,
)

__all__ = [
    'AbundanceMatrix',
    'QualityFlag',
    'Transform',
    'CooccurNetError',
    'InputError',
    'InsufficientSamplesError',
    'DegenerateAssociationError',
    'SymmetryInvariantViolation',
    'ComputationCancelled',
    'EmptyGraphWarning',
]
