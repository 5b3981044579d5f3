"""
cooccurnet - Co-occurrence Network Comparison Across Environmental Categories

Builds one organism co-occurrence network per environmental category from an
abundance table (relative abundance -> pairwise Spearman tests -> positive,
strong, significant associations -> weighted graph) and compares their
topology: size, mean degree, density, transitivity and greedy modularity.
"""

__version__ = "0.1.0"

from cooccurnet.core.abundance import AbundanceMatrix
from cooccurnet.core.transform import Transform
from cooccurnet.core.quality import QualityFlag
from cooccurnet.network.comparator import CategoryComparator, ComparisonResult
from cooccurnet.network.topology import TopologyRecord

__all__ = [
    "AbundanceMatrix",
    "Transform",
    "QualityFlag",
    "CategoryComparator",
    "ComparisonResult",
    "TopologyRecord",
]
