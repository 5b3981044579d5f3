"""
Tests for graph construction, greedy modularity and topology statistics.
"""

import math
import warnings

import networkx as nx
import numpy as np
import pandas as pd
import pytest

from cooccurnet.core.exceptions import EmptyGraphWarning
from cooccurnet.network.builder import build_cooccurrence_graph, graph_to_edge_frame
from cooccurnet.network.modularity import greedy_modularity_partition, partition_modularity
from cooccurnet.network.topology import (
    STATUS_EMPTY,
    STATUS_FAILED,
    STATUS_OK,
    TOPOLOGY_COLUMNS,
    TopologyAnalyzer,
    TopologyRecord,
    analyze_topology,
)
from cooccurnet.stats.association_filter import AssociationFilter
from cooccurnet.stats.dependence import AssociationMatrix, SpearmanEstimator


def _cleaned(coefficients, ids=None):
    coefficients = np.asarray(coefficients, dtype=float)
    n = coefficients.shape[0]
    ids = ids or [f"O{k}" for k in range(n)]
    p_values = np.where(coefficients != 0, 0.01, 1.0)
    return AssociationMatrix(coefficients, p_values, pd.Index(ids))


@pytest.fixture
def triangle_with_tail():
    """Triangle A-B-C plus pendant D on C."""
    G = nx.Graph(category="Soil")
    G.add_edge("A", "B", weight=0.9, p_value=0.001)
    G.add_edge("B", "C", weight=0.8, p_value=0.002)
    G.add_edge("A", "C", weight=0.7, p_value=0.003)
    G.add_edge("C", "D", weight=0.65, p_value=0.01)
    return G


class TestGraphBuilder:

    def test_edges_from_nonzero_cells(self):
        cleaned = _cleaned([
            [0.0, 0.8, 0.0, 0.0],
            [0.8, 0.0, 0.7, 0.0],
            [0.0, 0.7, 0.0, 0.0],
            [0.0, 0.0, 0.0, 0.0],
        ])
        G = build_cooccurrence_graph(cleaned, category="Soil")
        assert G.graph["category"] == "Soil"
        assert set(G.edges()) == {("O0", "O1"), ("O1", "O2")}
        assert G["O0"]["O1"]["weight"] == 0.8
        assert G["O1"]["O2"]["p_value"] == 0.01
        # O3 has no retained association
        assert "O3" not in G
        assert all(d >= 1 for _, d in G.degree())

    def test_no_self_loops(self):
        cleaned = _cleaned([[0.9, 0.7], [0.7, 0.9]])
        G = build_cooccurrence_graph(cleaned)
        assert nx.number_of_selfloops(G) == 0
        assert G.number_of_edges() == 1

    def test_empty_filter_gives_empty_graph(self):
        G = build_cooccurrence_graph(_cleaned(np.zeros((5, 5))))
        assert G.number_of_nodes() == 0
        assert G.number_of_edges() == 0

    def test_zero_organisms(self):
        G = build_cooccurrence_graph(_cleaned(np.zeros((0, 0))))
        assert G.number_of_nodes() == 0

    def test_node_count_bounded(self, synthetic_matrix):
        association = SpearmanEstimator().estimate(synthetic_matrix)
        G = build_cooccurrence_graph(AssociationFilter().apply(association))
        assert G.number_of_nodes() <= synthetic_matrix.n_organisms

    def test_perfect_rank_correlation_edge_weight(self):
        data = np.array([
            [1, 2, 3, 4, 5, 6, 7, 8],
            [3, 5, 8, 9, 12, 20, 21, 40],
            [5, 1, 4, 2, 8, 3, 7, 6],
        ], dtype=float)
        association = SpearmanEstimator().estimate_array(data, ["X", "Y", "Z"])
        G = build_cooccurrence_graph(AssociationFilter().apply(association))
        assert G["X"]["Y"]["weight"] == 1.0
        assert "Z" not in G

    def test_constant_organism_excluded(self):
        data = np.array([
            [1, 2, 3, 4, 5, 6, 7, 8],
            [2, 3, 4, 5, 6, 7, 8, 9],
            [4, 4, 4, 4, 4, 4, 4, 4],
        ], dtype=float)
        association = SpearmanEstimator().estimate_array(data, ["X", "Y", "K"])
        G = build_cooccurrence_graph(AssociationFilter().apply(association))
        assert "K" not in G
        assert G.has_edge("X", "Y")

    def test_edge_frame(self, triangle_with_tail):
        frame = graph_to_edge_frame(triangle_with_tail)
        assert list(frame.columns) == ["source", "target", "weight", "p_value"]
        assert len(frame) == 4

    def test_edge_frame_empty(self):
        frame = graph_to_edge_frame(nx.Graph())
        assert frame.empty
        assert list(frame.columns) == ["source", "target", "weight", "p_value"]


class TestGreedyModularity:

    def test_barbell_splits_into_two(self):
        G = nx.barbell_graph(5, 0)
        partition = greedy_modularity_partition(G, weighted=False)
        assert partition.n_communities == 2
        assert {frozenset(range(5)), frozenset(range(5, 10))} == set(partition.communities)
        assert partition.modularity == pytest.approx(
            nx.community.modularity(G, partition.communities, weight=None)
        )

    def test_weighted_modularity_matches_networkx(self, triangle_with_tail):
        partition = greedy_modularity_partition(triangle_with_tail, weighted=True)
        assert partition.modularity == pytest.approx(
            nx.community.modularity(triangle_with_tail, partition.communities, weight="weight")
        )

    def test_modularity_in_range(self):
        G = nx.karate_club_graph()
        partition = greedy_modularity_partition(G, weighted=False)
        assert -0.5 <= partition.modularity <= 1.0
        assert partition.modularity > 0.3
        covered = set().union(*partition.communities)
        assert covered == set(G.nodes())

    def test_partition_modularity_of_single_community_is_zero(self):
        G = nx.complete_graph(4)
        assert partition_modularity(G, [frozenset(G.nodes())], weight=None) == pytest.approx(0.0)

    def test_edgeless_graph(self):
        G = nx.empty_graph(3)
        partition = greedy_modularity_partition(G)
        assert partition.modularity == 0.0
        assert partition.n_communities == 3
        assert partition.n_merges == 0

    def test_empty_graph(self):
        partition = greedy_modularity_partition(nx.Graph())
        assert partition.communities == []
        assert partition.modularity == 0.0

    def test_deterministic_with_seed(self):
        G = nx.ring_of_cliques(4, 4)
        first = greedy_modularity_partition(G, seed=11)
        second = greedy_modularity_partition(G, seed=11)
        assert first.communities == second.communities
        assert first.modularity == second.modularity

    def test_input_not_mutated(self, triangle_with_tail):
        before = nx.to_dict_of_dicts(triangle_with_tail)
        greedy_modularity_partition(triangle_with_tail)
        assert nx.to_dict_of_dicts(triangle_with_tail) == before

    def test_membership_covers_nodes(self, triangle_with_tail):
        partition = greedy_modularity_partition(triangle_with_tail)
        assert set(partition.membership) == set(triangle_with_tail.nodes())


class TestTopologyAnalyzer:

    def test_metrics(self, triangle_with_tail):
        record = analyze_topology(triangle_with_tail)
        assert record.category == "Soil"
        assert record.status == STATUS_OK
        assert record.n_nodes == 4
        assert record.n_edges == 4
        assert record.mean_degree == pytest.approx(2.0)
        assert record.density == pytest.approx(4 / 6)
        assert record.transitivity == pytest.approx(nx.transitivity(triangle_with_tail))
        assert 0.0 <= record.density <= 1.0
        assert 0.0 <= record.transitivity <= 1.0
        assert -0.5 <= record.modularity <= 1.0

    def test_graph_not_mutated(self, triangle_with_tail):
        before = nx.to_dict_of_dicts(triangle_with_tail)
        TopologyAnalyzer().analyze(triangle_with_tail)
        assert nx.to_dict_of_dicts(triangle_with_tail) == before

    def test_empty_graph_zero_metrics(self):
        with pytest.warns(EmptyGraphWarning):
            record = analyze_topology(nx.Graph(), category="Desert")
        assert record.status == STATUS_EMPTY
        assert record.n_nodes == 0
        assert record.n_edges == 0
        assert record.mean_degree == 0.0
        assert record.density == 0.0
        assert record.transitivity == 0.0
        assert record.modularity == 0.0

    def test_single_edge(self):
        G = nx.Graph()
        G.add_edge("A", "B", weight=0.9)
        record = analyze_topology(G, category="Pair")
        assert record.density == 1.0
        assert record.transitivity == 0.0
        assert record.mean_degree == 1.0

    def test_idempotent(self, triangle_with_tail):
        analyzer = TopologyAnalyzer(seed=3)
        assert analyzer.analyze(triangle_with_tail) == analyzer.analyze(triangle_with_tail)

    def test_precomputed_partition_is_used(self, triangle_with_tail):
        analyzer = TopologyAnalyzer()
        partition = analyzer.partition(triangle_with_tail)
        record = analyzer.analyze(triangle_with_tail, partition=partition)
        assert record.modularity == partition.modularity
        assert record.n_communities == partition.n_communities


class TestTopologyRecord:

    def test_failed_record_has_nan_metrics(self):
        record = TopologyRecord.failed("Gut", "InsufficientSamplesError: too few")
        assert record.status == STATUS_FAILED
        assert math.isnan(record.modularity)
        assert record.n_nodes is None
        assert not record.is_valid()

    def test_to_dict_columns(self, triangle_with_tail):
        row = analyze_topology(triangle_with_tail).to_dict()
        assert list(row) == TOPOLOGY_COLUMNS

    def test_is_valid_thresholds(self, triangle_with_tail):
        record = analyze_topology(triangle_with_tail)
        assert record.is_valid(min_nodes=4, min_edges=4)
        assert not record.is_valid(min_nodes=5)

    def test_empty_record_counts_isolated_nodes(self):
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", EmptyGraphWarning)
            record = analyze_topology(nx.empty_graph(3), category="Isolated")
        assert record.n_nodes == 3
        assert record.n_communities == 3
        assert record.status == STATUS_EMPTY
