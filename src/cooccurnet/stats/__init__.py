"""
Statistical core of the co-occurrence pipeline.

Modules:
    normalization: Relative abundance (per-sample proportions)
    dependence: Pairwise Spearman test matrix (AssociationMatrix)
    association_filter: Positive / strong / significant filtering and
        symmetry repair
"""

from cooccurnet.stats.normalization import RelativeAbundance, relative_abundance
from cooccurnet.stats.dependence import (
    AssociationMatrix,
    SpearmanEstimator,
    rank_rows,
    spearman_pair,
    spearman_p_value,
)
from cooccurnet.stats.association_filter import (
    AssociationFilter,
    FilterSummary,
    filter_association,
    DEFAULT_MIN_COEFFICIENT,
    DEFAULT_ALPHA,
)

__all__ = [
    'RelativeAbundance',
    'relative_abundance',
    'AssociationMatrix',
    'SpearmanEstimator',
    'rank_rows',
    'spearman_pair',
    'spearman_p_value',
    'AssociationFilter',
    'FilterSummary',
    'filter_association',
    'DEFAULT_MIN_COEFFICIENT',
    'DEFAULT_ALPHA',
]
