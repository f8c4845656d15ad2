"""
Tests for Benjamini-Hochberg correction and the final gene selection.
"""

import numpy as np
import pytest

from graftexpr.stats.multiple_testing import (
    benjamini_hochberg,
    correct_pvalues,
    fdr_correction,
    select_significant_genes,
)


def _manual_bh(pvalues):
    m = len(pvalues)
    order = np.argsort(pvalues)
    ranked = pvalues[order] * m / np.arange(1, m + 1)
    ranked = np.minimum.accumulate(ranked[::-1])[::-1]
    q = np.empty(m)
    q[order] = np.minimum(ranked, 1.0)
    return q


class TestBenjaminiHochberg:
    """BH adjusted p-values."""

    @pytest.fixture
    def pvalues(self):
        rng = np.random.RandomState(7)
        return np.concatenate([rng.uniform(size=180), rng.uniform(0, 1e-3, size=20)])

    def test_matches_step_up_formula(self, pvalues):
        np.testing.assert_allclose(benjamini_hochberg(pvalues), _manual_bh(pvalues))

    def test_monotone_in_sorted_p_order(self, pvalues):
        q = benjamini_hochberg(pvalues)
        q_sorted = q[np.argsort(pvalues)]
        assert np.all(np.diff(q_sorted) >= 0)
        assert np.all(q <= 1.0)
        assert np.all(q >= pvalues)

    def test_deterministic(self, pvalues):
        first = correct_pvalues(pvalues, alpha=0.10)
        second = correct_pvalues(pvalues, alpha=0.10)
        assert first.n_rejected == second.n_rejected
        np.testing.assert_array_equal(first.q_values, second.q_values)

    def test_nan_excluded_from_test_count(self):
        pvalues = np.array([0.01, np.nan, 0.04])
        q = fdr_correction(pvalues)
        assert np.isnan(q[1])
        np.testing.assert_allclose(q[[0, 2]], [0.02, 0.04])

    def test_bonferroni(self):
        q = fdr_correction(np.array([0.01, 0.2, 0.5]), method="bonferroni")
        np.testing.assert_allclose(q, [0.03, 0.6, 1.0])

    def test_by_is_more_conservative(self, pvalues):
        assert np.all(fdr_correction(pvalues, method="BY") >= fdr_correction(pvalues) - 1e-15)

    def test_unknown_method(self):
        with pytest.raises(ValueError, match="Unknown correction method"):
            fdr_correction(np.array([0.1]), method="holm")

    def test_reject_uses_alpha(self):
        result = correct_pvalues(np.array([0.001, 0.02, 0.5]), alpha=0.05)
        assert result.reject.tolist() == [True, True, False]
        assert result.n_rejected == 2

    def test_invalid_alpha(self):
        with pytest.raises(ValueError, match="alpha"):
            correct_pvalues(np.array([0.1]), alpha=1.5)


class TestSelectSignificantGenes:
    """Intersection of q-value and local fdr filters."""

    def test_intersection_ordered_by_q(self):
        result = select_significant_genes(
            ["A", "B", "C", "D", "E"],
            q_values=np.array([0.05, 0.01, 0.08, 0.20, 0.02]),
            local_fdr=np.array([0.02, 0.05, 0.50, 0.01, 0.09]),
        )
        assert result.gene_ids == ["B", "E", "A"]
        assert result.n_q_pass == 4
        assert result.n_fdr_pass == 4
        assert result.n_selected == 3

    def test_thresholds_are_strict(self):
        result = select_significant_genes(
            ["A"], q_values=np.array([0.10]), local_fdr=np.array([0.01]),
        )
        assert result.n_selected == 0

    def test_nan_never_selected(self):
        result = select_significant_genes(
            ["A", "B"], q_values=np.array([np.nan, 0.01]), local_fdr=np.array([0.01, np.nan]),
        )
        assert result.gene_ids == []

    def test_length_mismatch(self):
        with pytest.raises(ValueError, match="Length mismatch"):
            select_significant_genes(["A", "B"], np.array([0.1]), np.array([0.1, 0.2]))
