"""
Global structural statistics of co-occurrence graphs.

TopologyRecord columns:
    n_nodes, n_edges  - direct counts
    mean_degree       - 2E / N (0 when N = 0)
    density           - E / (N (N - 1) / 2), in [0, 1] (0 when N < 2)
    transitivity      - closed triplets / all triplets, in [0, 1]
                        (0 when there are no triplets)
    modularity        - modularity of the greedy CNM partition, in
                        [-0.5, 1] (0 for graphs without edges)
    n_communities     - communities in that partition

Degenerate graphs (no edges) are reported with status "empty" and zero
metrics, and an EmptyGraphWarning is issued. Failed categories carry NaN
metrics and status "failed" (see TopologyRecord.failed).
"""

from __future__ import annotations

import logging
import math
import warnings
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

import networkx as nx

from cooccurnet.core.exceptions import EmptyGraphWarning
from cooccurnet.network.modularity import CommunityPartition, greedy_modularity_partition

logger = logging.getLogger(__name__)

__all__ = [
    'TopologyRecord',
    'TopologyAnalyzer',
    'analyze_topology',
    'STATUS_OK',
    'STATUS_EMPTY',
    'STATUS_FAILED',
    'TOPOLOGY_COLUMNS',
]

STATUS_OK = "ok"
STATUS_EMPTY = "empty"
STATUS_FAILED = "failed"

TOPOLOGY_COLUMNS = [
    'category',
    'n_nodes',
    'n_edges',
    'mean_degree',
    'transitivity',
    'modularity',
    'density',
    'n_communities',
    'status',
    'error',
]


@dataclass(frozen=True)
class TopologyRecord:
    """Structural summary of one category's co-occurrence graph."""
    category: str
    n_nodes: Optional[int]
    n_edges: Optional[int]
    mean_degree: float
    density: float
    transitivity: float
    modularity: float
    n_communities: Optional[int]
    status: str = STATUS_OK
    error: Optional[str] = None

    @classmethod
    def empty(cls, category: str, n_nodes: int = 0) -> TopologyRecord:
        """Zero-metric record for a graph without edges."""
        return cls(
            category=category,
            n_nodes=n_nodes,
            n_edges=0,
            mean_degree=0.0,
            density=0.0,
            transitivity=0.0,
            modularity=0.0,
            n_communities=n_nodes,
            status=STATUS_EMPTY,
        )

    @classmethod
    def failed(cls, category: str, error: str) -> TopologyRecord:
        """Sentinel record (NaN metrics) for a category whose processing failed."""
        return cls(
            category=category,
            n_nodes=None,
            n_edges=None,
            mean_degree=math.nan,
            density=math.nan,
            transitivity=math.nan,
            modularity=math.nan,
            n_communities=None,
            status=STATUS_FAILED,
            error=error,
        )

    def is_valid(self, min_nodes: int = 0, min_edges: int = 0) -> bool:
        """True when the record succeeded and meets caller-side size thresholds."""
        if self.status == STATUS_FAILED:
            return False
        return (self.n_nodes or 0) >= min_nodes and (self.n_edges or 0) >= min_edges

    def to_dict(self) -> Dict[str, Any]:
        row = asdict(self)
        return {column: row[column] for column in TOPOLOGY_COLUMNS}


class TopologyAnalyzer:
    """
    Compute a TopologyRecord for a graph.

    Args:
        weighted_modularity: Use edge weights in community detection and in
            the modularity score (default True)
        seed: Optional seed for the community-detection tie-break order
    """

    def __init__(self, weighted_modularity: bool = True, seed: Optional[int] = None):
        self.weighted_modularity = weighted_modularity
        self.seed = seed

    def partition(self, G: nx.Graph) -> CommunityPartition:
        return greedy_modularity_partition(G, weighted=self.weighted_modularity, seed=self.seed)

    def analyze(
        self,
        G: nx.Graph,
        category: Optional[str] = None,
        partition: Optional[CommunityPartition] = None,
    ) -> TopologyRecord:
        """
        Summarize G. G is not modified.

        Args:
            G: Co-occurrence graph
            category: Label (defaults to ``G.graph['category']``)
            partition: Precomputed partition of G; computed when omitted
        """
        if category is None:
            category = str(G.graph.get('category', ''))

        n_nodes = G.number_of_nodes()
        n_edges = G.number_of_edges()

        if n_edges == 0:
            warnings.warn(
                f"Category '{category}' has no retained associations; "
                f"reporting zero-metric topology",
                EmptyGraphWarning,
                stacklevel=2,
            )
            logger.warning(f"[{category}] empty co-occurrence graph")
            return TopologyRecord.empty(category, n_nodes=n_nodes)

        if partition is None:
            partition = self.partition(G)

        record = TopologyRecord(
            category=category,
            n_nodes=n_nodes,
            n_edges=n_edges,
            mean_degree=2.0 * n_edges / n_nodes,
            density=float(nx.density(G)),
            transitivity=float(nx.transitivity(G)),
            modularity=float(partition.modularity),
            n_communities=partition.n_communities,
        )
        logger.info(
            f"[{category}] nodes={record.n_nodes} edges={record.n_edges} "
            f"mean_degree={record.mean_degree:.3f} density={record.density:.4f} "
            f"transitivity={record.transitivity:.4f} modularity={record.modularity:.4f} "
            f"communities={record.n_communities}"
        )
        return record


def analyze_topology(
    G: nx.Graph,
    category: Optional[str] = None,
    weighted_modularity: bool = True,
    seed: Optional[int] = None,
) -> TopologyRecord:
    """Functional shortcut for ``TopologyAnalyzer(...).analyze(G, category)``."""
    return TopologyAnalyzer(weighted_modularity=weighted_modularity, seed=seed).analyze(G, category)
