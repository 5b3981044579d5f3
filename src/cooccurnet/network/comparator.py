"""
Multi-category co-occurrence network comparison.

Runs the full pipeline once per environmental category and aggregates the
TopologyRecords into one comparison table:

    select samples -> RelativeAbundance -> SpearmanEstimator
        -> AssociationFilter -> build_cooccurrence_graph -> TopologyAnalyzer

Engineering Design:
    - Categories are independent: each owns its matrices and graph, nothing
      is shared or mutated across categories
    - Failures are isolated per category (logged, recorded with NaN metrics
      and status "failed") and never abort the run
    - Empty graphs are kept as explicitly labelled zero-metric records
    - Optional thread fan-out across categories; results are collected by a
      single aggregator as each category completes
    - Cancellation is forwarded to every estimator and aborts the whole run

Examples:
    >>> comparator = CategoryComparator(matrix, category_column="biome")
    >>> result = comparator.run()
    >>> result.to_frame().sort_values("modularity", ascending=False)
"""

from __future__ import annotations

import logging
import numbers
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, Dict, List, Optional

import networkx as nx
import pandas as pd

from cooccurnet.core.abundance import AbundanceMatrix
from cooccurnet.core.exceptions import (
    ComputationCancelled,
    CooccurNetError,
    InsufficientSamplesError,
)
from cooccurnet.network.builder import build_cooccurrence_graph
from cooccurnet.network.modularity import CommunityPartition
from cooccurnet.network.topology import (
    TopologyAnalyzer,
    TopologyRecord,
    TOPOLOGY_COLUMNS,
)
from cooccurnet.stats.association_filter import (
    AssociationFilter,
    FilterSummary,
    DEFAULT_ALPHA,
    DEFAULT_MIN_COEFFICIENT,
)
from cooccurnet.stats.dependence import CancelToken, SpearmanEstimator
from cooccurnet.stats.normalization import RelativeAbundance, ZeroTotalPolicy

logger = logging.getLogger(__name__)

__all__ = ['CategoryComparator', 'CategoryResult', 'ComparisonResult']


@dataclass
class CategoryResult:
    """Everything produced for one category."""
    category: str
    record: TopologyRecord
    n_samples: int = 0
    n_organisms: int = 0
    graph: Optional[nx.Graph] = None
    partition: Optional[CommunityPartition] = None
    filter_summary: Optional[FilterSummary] = None

    def to_dict(self) -> Dict[str, Any]:
        row = self.record.to_dict()
        row['n_samples'] = self.n_samples
        row['n_organisms'] = self.n_organisms
        if self.filter_summary is not None:
            row['n_pairs_tested'] = self.filter_summary.n_pairs
        else:
            row['n_pairs_tested'] = None
        return row


@dataclass
class ComparisonResult:
    """Per-category results plus the parameters used to produce them."""
    results: Dict[str, CategoryResult] = field(default_factory=dict)
    parameters: Dict[str, Any] = field(default_factory=dict)

    @property
    def categories(self) -> List[str]:
        return sorted(self.results)

    @property
    def records(self) -> Dict[str, TopologyRecord]:
        return {c: self.results[c].record for c in self.categories}

    @property
    def graphs(self) -> Dict[str, nx.Graph]:
        return {
            c: self.results[c].graph
            for c in self.categories
            if self.results[c].graph is not None
        }

    @property
    def failures(self) -> Dict[str, str]:
        return {
            c: r.record.error or ""
            for c, r in sorted(self.results.items())
            if r.record.status == "failed"
        }

    def valid_categories(self, min_nodes: int = 0, min_edges: int = 0) -> List[str]:
        """Categories whose graphs meet the given size thresholds."""
        return [
            c for c in self.categories
            if self.results[c].record.is_valid(min_nodes=min_nodes, min_edges=min_edges)
        ]

    def to_frame(self, sort_by: Optional[str] = None, ascending: bool = True) -> pd.DataFrame:
        """
        Flat comparison table, one row per category.

        Columns: category, n_nodes, n_edges, mean_degree, transitivity,
        modularity, density, n_communities, status, error, n_samples,
        n_organisms, n_pairs_tested
        """
        columns = TOPOLOGY_COLUMNS + ['n_samples', 'n_organisms', 'n_pairs_tested']
        rows = [self.results[c].to_dict() for c in self.categories]
        frame = pd.DataFrame(rows, columns=columns)
        for col in ('n_nodes', 'n_edges', 'n_communities', 'n_pairs_tested'):
            frame[col] = frame[col].astype('Int64')
        if sort_by is not None:
            frame = frame.sort_values(sort_by, ascending=ascending, na_position='last')
        return frame.reset_index(drop=True)


class CategoryComparator:
    """
    Build and compare one co-occurrence network per category.

    Args:
        matrix: Raw abundance matrix with the category column in its metadata
        category_column: Sample metadata column holding category labels
        min_coefficient: Absolute-coefficient cutoff (default 0.6)
        alpha: Significance cutoff (default 0.05)
        zero_total: Zero-total sample policy passed to RelativeAbundance
        min_samples: Categories with fewer samples are recorded as failed
        categories: Restrict the run to these labels (default: all)
        weighted_modularity: Use edge weights in community detection
        seed: Tie-break seed for community detection
        n_workers: Threads across categories
        pair_workers: Threads across pair rows inside each estimator
        show_progress: tqdm bar per category
        progress: Callback ``progress(category, done_pairs, total_pairs)``
        cancel: threading.Event or callable, forwarded to estimators
    """

    def __init__(
        self,
        matrix: AbundanceMatrix,
        category_column: str,
        min_coefficient: float = DEFAULT_MIN_COEFFICIENT,
        alpha: float = DEFAULT_ALPHA,
        zero_total: ZeroTotalPolicy = "drop",
        min_samples: int = 3,
        categories: Optional[List[str]] = None,
        weighted_modularity: bool = True,
        seed: Optional[int] = None,
        n_workers: int = 1,
        pair_workers: int = 1,
        show_progress: bool = False,
        progress: Optional[Callable[[str, int, int], None]] = None,
        cancel: Optional[CancelToken] = None,
    ):
        if category_column not in matrix.sample_metadata.columns:
            raise ValueError(
                f"Category column '{category_column}' not found in sample metadata. "
                f"Available: {list(matrix.sample_metadata.columns)}"
            )
        if n_workers < 1:
            raise ValueError(f"n_workers must be >= 1, got {n_workers}")
        if seed is not None and (isinstance(seed, bool) or not isinstance(seed, numbers.Integral)):
            raise ValueError(f"seed must be an integer or None, got {seed!r}")

        self.matrix = matrix
        self.category_column = category_column
        self.min_samples = max(3, min_samples)
        self.requested_categories = categories
        self.n_workers = n_workers
        self.pair_workers = pair_workers
        self.show_progress = show_progress
        self.progress = progress
        self.cancel = cancel

        self.normalizer = RelativeAbundance(zero_total=zero_total)
        self.association_filter = AssociationFilter(min_coefficient=min_coefficient, alpha=alpha)
        self.analyzer = TopologyAnalyzer(weighted_modularity=weighted_modularity, seed=seed)

    @property
    def parameters(self) -> Dict[str, Any]:
        return {
            'method': 'spearman',
            'category_column': self.category_column,
            'min_coefficient': self.association_filter.min_coefficient,
            'alpha': self.association_filter.alpha,
            'zero_total': self.normalizer.zero_total,
            'min_samples': self.min_samples,
            'weighted_modularity': self.analyzer.weighted_modularity,
            'seed': self.analyzer.seed,
        }

    def get_available_categories(self) -> List[str]:
        """Categories to process, sorted."""
        available = self.matrix.categories(self.category_column)
        if self.requested_categories is None:
            return available
        missing = sorted(set(self.requested_categories) - set(available))
        if missing:
            logger.warning(f"Requested categories not present in metadata: {missing}")
        return [c for c in available if c in set(self.requested_categories)]

    def _make_estimator(self, category: str) -> SpearmanEstimator:
        progress = partial(self.progress, category) if self.progress is not None else None
        return SpearmanEstimator(
            n_workers=self.pair_workers,
            show_progress=self.show_progress,
            progress=progress,
            cancel=self.cancel,
            min_samples=self.min_samples,
            description=f"Spearman [{category}]",
        )

    def run_category(self, category: str) -> CategoryResult:
        """
        Run the full pipeline for one category.

        Raises:
            InsufficientSamplesError: Too few usable samples
            SymmetryInvariantViolation: Cleaned matrix failed the symmetry check
            ComputationCancelled: Cancel token set
        """
        mask = self.matrix.category_mask(self.category_column, category)
        subset = self.matrix.select_samples(mask)
        if subset.n_samples < self.min_samples:
            raise InsufficientSamplesError(
                f"Category '{category}' has only {subset.n_samples} samples "
                f"(minimum required: {self.min_samples})"
            )

        relative = self.normalizer.apply(subset)
        logger.info(
            f"[{category}] {relative.n_organisms} organisms x {relative.n_samples} samples"
        )

        association = self._make_estimator(category).estimate(relative)
        cleaned, summary = self.association_filter.apply_with_summary(association)

        graph = build_cooccurrence_graph(cleaned, category=category)
        partition = self.analyzer.partition(graph) if graph.number_of_edges() else None
        record = self.analyzer.analyze(graph, category=category, partition=partition)

        return CategoryResult(
            category=category,
            record=record,
            n_samples=relative.n_samples,
            n_organisms=relative.n_organisms,
            graph=graph,
            partition=partition,
            filter_summary=summary,
        )

    def _run_isolated(self, category: str) -> CategoryResult:
        try:
            return self.run_category(category)
        except ComputationCancelled:
            raise
        except Exception as e:
            if isinstance(e, (CooccurNetError, ValueError)):
                logger.warning(f"[{category}] processing failed: {type(e).__name__}: {e}")
            else:
                logger.exception(f"[{category}] unexpected error: {type(e).__name__}: {e}")
            return CategoryResult(
                category=category,
                record=TopologyRecord.failed(category, f"{type(e).__name__}: {e}"),
                n_samples=int(self.matrix.category_mask(self.category_column, category).sum()),
                n_organisms=self.matrix.n_organisms,
            )

    def run(self) -> ComparisonResult:
        """
        Process every category and aggregate the results.

        Raises:
            ComputationCancelled: If the cancel token is set
        """
        categories = self.get_available_categories()
        logger.info(
            f"Comparing {len(categories)} categories on '{self.category_column}' "
            f"(|rho| >= {self.association_filter.min_coefficient}, "
            f"p <= {self.association_filter.alpha})"
        )

        result = ComparisonResult(parameters=self.parameters)

        if self.n_workers > 1 and len(categories) > 1:
            with ThreadPoolExecutor(max_workers=min(self.n_workers, len(categories))) as executor:
                future_to_category = {
                    executor.submit(self._run_isolated, category): category
                    for category in categories
                }
                try:
                    for future in as_completed(future_to_category):
                        category_result = future.result()
                        result.results[category_result.category] = category_result
                except ComputationCancelled:
                    for future in future_to_category:
                        future.cancel()
                    raise
        else:
            for category in categories:
                category_result = self._run_isolated(category)
                result.results[category] = category_result

        n_failed = len(result.failures)
        logger.info(
            f"Comparison complete: {len(categories) - n_failed}/{len(categories)} categories "
            f"succeeded"
        )
        return result
