"""
Co-occurrence graph construction, topology and cross-category comparison.

Modules:
    builder: cleaned AssociationMatrix -> networkx.Graph (isolates pruned)
    modularity: greedy agglomerative (CNM) community detection
    topology: TopologyRecord and TopologyAnalyzer
    comparator: per-category pipeline driver and comparison table
"""

from cooccurnet.network.builder import build_cooccurrence_graph, graph_to_edge_frame
from cooccurnet.network.modularity import (
    CommunityPartition,
    greedy_modularity_partition,
    partition_modularity,
)
from cooccurnet.network.topology import (
    TopologyRecord,
    TopologyAnalyzer,
    analyze_topology,
    STATUS_OK,
    STATUS_EMPTY,
    STATUS_FAILED,
)
from cooccurnet.network.comparator import (
    CategoryComparator,
    CategoryResult,
    ComparisonResult,
)

__all__ = [
    'build_cooccurrence_graph',
    'graph_to_edge_frame',
    'CommunityPartition',
    'greedy_modularity_partition',
    'partition_modularity',
    'TopologyRecord',
    'TopologyAnalyzer',
    'analyze_topology',
    'STATUS_OK',
    'STATUS_EMPTY',
    'STATUS_FAILED',
    'CategoryComparator',
    'CategoryResult',
    'ComparisonResult',
]
