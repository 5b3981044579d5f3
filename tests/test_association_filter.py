"""
Tests for the significance/strength filter and the symmetry repair.
"""

import numpy as np
import pandas as pd
import pytest

from cooccurnet.core.exceptions import SymmetryInvariantViolation
from cooccurnet.network.builder import build_cooccurrence_graph
from cooccurnet.stats.association_filter import (
    AssociationFilter,
    apply_thresholds,
    clip_negative,
    coerce_nonfinite,
    enforce_symmetry,
    filter_association,
    verify_symmetry,
)
from cooccurnet.stats.dependence import AssociationMatrix, SpearmanEstimator


@pytest.fixture
def mixed_association():
    """
    Four organisms, six pairs:
        (A,B) strong, significant     -> kept
        (A,C) strong but negative     -> dropped
        (A,D) strong, not significant -> dropped
        (B,C) weak                    -> dropped
        (B,D) strong, significant     -> kept
        (C,D) at both cutoffs         -> kept
    """
    coefficients = np.array([
        [0.0, 0.80, -0.90, 0.70],
        [0.80, 0.0, 0.30, 0.65],
        [-0.90, 0.30, 0.0, 0.60],
        [0.70, 0.65, 0.60, 0.0],
    ])
    p_values = np.array([
        [1.0, 0.01, 0.001, 0.20],
        [0.01, 1.0, 0.01, 0.04],
        [0.001, 0.01, 1.0, 0.05],
        [0.20, 0.04, 0.05, 1.0],
    ])
    return AssociationMatrix(coefficients, p_values, pd.Index(["A", "B", "C", "D"]))


class TestFilterSteps:

    def test_apply_thresholds_uses_signed_coefficient(self):
        coefficients = np.array([[0.0, -0.9], [-0.9, 0.0]])
        p_values = np.array([[1.0, 0.001], [0.001, 1.0]])
        kept = apply_thresholds(coefficients, p_values, min_coefficient=0.6, alpha=0.05)
        assert kept[0, 1] == -0.9

    def test_clip_negative(self):
        np.testing.assert_array_equal(clip_negative(np.array([-0.5, 0.0, 0.7])), [0.0, 0.0, 0.7])

    def test_coerce_nonfinite(self):
        values = coerce_nonfinite(np.array([np.nan, np.inf, -np.inf, 0.8]))
        np.testing.assert_array_equal(values, [0.0, 0.0, 0.0, 0.8])

    def test_enforce_symmetry_averages(self):
        values = np.array([[0.0, 0.8], [0.9, 0.0]])
        repaired = enforce_symmetry(values)
        assert repaired[0, 1] == repaired[1, 0] == pytest.approx(0.85)
        verify_symmetry(repaired)

    def test_verify_symmetry_raises(self):
        with pytest.raises(SymmetryInvariantViolation) as exc_info:
            verify_symmetry(np.array([[0.0, 0.7], [0.7000001, 0.0]]))
        assert exc_info.value.n_asymmetric == 2
        assert exc_info.value.max_deviation > 0

    def test_verify_symmetry_non_square(self):
        with pytest.raises(SymmetryInvariantViolation):
            verify_symmetry(np.zeros((2, 3)))


class TestAssociationFilter:

    def test_retained_pairs(self, mixed_association):
        cleaned = AssociationFilter(min_coefficient=0.6, alpha=0.05).apply(mixed_association)
        c = cleaned.coefficients
        assert c[0, 1] == 0.80 and c[1, 3] == 0.65 and c[2, 3] == 0.60
        assert c[0, 2] == 0.0 and c[0, 3] == 0.0 and c[1, 2] == 0.0
        np.testing.assert_array_equal(np.diag(c), 0.0)

    def test_output_invariants(self, synthetic_matrix):
        association = SpearmanEstimator().estimate(synthetic_matrix)
        cleaned = AssociationFilter(min_coefficient=0.6, alpha=0.05).apply(association)
        retained = cleaned.coefficients != 0
        assert retained.any()
        assert np.all(cleaned.coefficients[retained] >= 0.6)
        assert np.all(cleaned.p_values[retained] <= 0.05)
        assert np.all(cleaned.p_values[~retained] == 1.0)
        assert np.array_equal(cleaned.coefficients, cleaned.coefficients.T)
        assert np.array_equal(cleaned.p_values, cleaned.p_values.T)

    def test_input_not_mutated(self, mixed_association):
        before = mixed_association.copy()
        AssociationFilter().apply(mixed_association)
        np.testing.assert_array_equal(mixed_association.coefficients, before.coefficients)
        np.testing.assert_array_equal(mixed_association.p_values, before.p_values)

    def test_summary_counts(self, mixed_association):
        summary = AssociationFilter(min_coefficient=0.6, alpha=0.05).summarize(mixed_association)
        assert summary.n_pairs == 6
        assert summary.n_retained == 3
        assert summary.n_negative == 1
        assert summary.n_weak == 1
        assert summary.n_not_significant == 1
        assert summary.n_nonfinite == 0
        assert summary.to_dict()["n_retained"] == 3

    def test_nonfinite_cells_dropped(self, mixed_association):
        association = mixed_association.copy()
        association.coefficients[0, 1] = association.coefficients[1, 0] = np.nan
        cleaned, summary = filter_association(association)
        assert cleaned.coefficients[0, 1] == 0.0
        assert cleaned.p_values[0, 1] == 1.0
        assert summary.n_nonfinite == 1
        assert np.all(np.isfinite(cleaned.coefficients))

    def test_asymmetric_input_is_averaged(self, mixed_association, caplog):
        association = mixed_association.copy()
        association.coefficients[1, 0] = 0.90
        with caplog.at_level("WARNING"):
            cleaned = AssociationFilter().apply(association)
        assert "asymmetric" in caplog.text
        assert cleaned.coefficients[0, 1] == cleaned.coefficients[1, 0] == pytest.approx(0.85)

    def test_mirrors_straddling_coefficient_cutoff(self):
        ids = pd.Index(["A", "B", "C"])
        coefficients = np.array([
            [0.0, 0.6, 0.9],
            [np.nextafter(0.6, 0.0), 0.0, 0.0],
            [0.2, 0.0, 0.0],
        ])
        p_values = np.full((3, 3), 0.01)
        cleaned = AssociationFilter(min_coefficient=0.6, alpha=0.05).apply(
            AssociationMatrix(coefficients, p_values, ids)
        )
        c = cleaned.coefficients
        retained = c != 0
        assert np.all(c[retained] >= 0.6)
        assert c[0, 2] == c[2, 0] == 0.0
        assert np.array_equal(c, c.T)

        graph = build_cooccurrence_graph(cleaned)
        assert all(w >= 0.6 for _, _, w in graph.edges(data="weight"))

    def test_mirrors_straddling_alpha(self):
        ids = pd.Index(["A", "B"])
        coefficients = np.array([[0.0, 0.9], [0.9, 0.0]])
        p_values = np.array([[1.0, 0.05], [np.nextafter(0.05, 1.0), 1.0]])
        cleaned, summary = filter_association(
            AssociationMatrix(coefficients, p_values, ids), min_coefficient=0.6, alpha=0.05
        )
        assert cleaned.coefficients[0, 1] == cleaned.coefficients[1, 0] == 0.0
        assert cleaned.p_values[0, 1] == cleaned.p_values[1, 0] == 1.0
        assert summary.n_retained == 0
        assert summary.n_not_significant == 1

    def test_apply_with_summary_matches_separate_calls(self, mixed_association):
        association_filter = AssociationFilter(min_coefficient=0.6, alpha=0.05)
        cleaned, summary = association_filter.apply_with_summary(mixed_association)
        np.testing.assert_array_equal(
            cleaned.coefficients, association_filter.apply(mixed_association).coefficients
        )
        assert summary == association_filter.summarize(mixed_association)
        assert summary.n_retained == int(np.count_nonzero(np.triu(cleaned.coefficients, k=1)))

    def test_strict_cutoff_keeps_subset(self, synthetic_matrix):
        association = SpearmanEstimator().estimate(synthetic_matrix)
        loose = AssociationFilter(min_coefficient=0.6).apply(association).coefficients != 0
        strict = AssociationFilter(min_coefficient=0.8).apply(association).coefficients != 0
        assert not np.any(strict & ~loose)

    def test_all_filtered(self, mixed_association):
        cleaned = AssociationFilter(min_coefficient=1.0, alpha=0.05).apply(mixed_association)
        assert not cleaned.coefficients.any()

    def test_parameter_validation(self):
        with pytest.raises(ValueError, match="min_coefficient"):
            AssociationFilter(min_coefficient=1.5)
        with pytest.raises(ValueError, match="alpha"):
            AssociationFilter(alpha=-0.1)
