"""
Tests for held-out evaluation, model comparison and threshold choice.
"""

import numpy as np
import pytest
from sklearn.metrics import roc_auc_score

from graftexpr.models.classifiers import FittedClassifier
from graftexpr.models.evaluation import (
    choose_operating_threshold,
    compare_models,
    evaluate_classifier,
    sensitivity_specificity,
)


def _linear_model(name="score", weight=1.0):
    """One-gene logistic model whose probability is expit(weight * x)."""
    return FittedClassifier(
        name=name,
        coefficients=np.array([weight]),
        intercept=0.0,
        hyperparameter="lambda",
        hyperparameter_value=0.01,
        cv=None,
    )


@pytest.fixture
def scored_samples():
    rng = np.random.RandomState(3)
    labels = np.repeat([0, 1], [40, 30])
    x = rng.normal(size=70) + 1.2 * labels
    return x[:, None], labels


class TestSensitivitySpecificity:
    """Rates at a fixed probability threshold."""

    def test_known_counts(self):
        labels = np.array([1, 1, 1, 0, 0])
        probs = np.array([0.9, 0.6, 0.2, 0.7, 0.1])
        sensitivity, specificity = sensitivity_specificity(labels, probs, threshold=0.5)
        assert sensitivity == pytest.approx(2 / 3)
        assert specificity == pytest.approx(1 / 2)

    def test_threshold_is_inclusive(self):
        sensitivity, _ = sensitivity_specificity(np.array([1, 0]), np.array([0.5, 0.1]), 0.5)
        assert sensitivity == 1.0

    def test_missing_class_gives_nan(self):
        sensitivity, specificity = sensitivity_specificity(np.array([0, 0]), np.array([0.2, 0.8]))
        assert np.isnan(sensitivity)
        assert specificity == 0.5


class TestEvaluateClassifier:
    """ROC/AUC on held-out samples."""

    def test_auc_matches_sklearn(self, scored_samples):
        data, labels = scored_samples
        evaluation = evaluate_classifier(_linear_model(), data, labels)

        assert evaluation.auc == pytest.approx(roc_auc_score(labels, data[:, 0]))
        assert evaluation.roc.auc == evaluation.auc
        assert evaluation.roc.fpr[0] == 0.0
        assert evaluation.roc.tpr[-1] == 1.0
        assert len(evaluation.probabilities) == len(labels)

    def test_roc_table(self, scored_samples):
        data, labels = scored_samples
        table = evaluate_classifier(_linear_model(), data, labels).roc.to_dataframe()
        assert list(table.columns) == ['threshold', 'fpr', 'tpr', 'sensitivity', 'specificity']
        np.testing.assert_allclose(table['specificity'], 1 - table['fpr'])

    def test_single_class_test_set(self, scored_samples):
        data, _ = scored_samples
        with pytest.raises(ValueError, match="single class"):
            evaluate_classifier(_linear_model(), data, np.zeros(len(data), dtype=int))


class TestCompareModels:
    """Best model by test AUC."""

    def test_highest_auc_wins(self, scored_samples):
        data, labels = scored_samples
        good = evaluate_classifier(_linear_model("good", 1.0), data, labels)
        bad = evaluate_classifier(_linear_model("bad", -1.0), data, labels)

        comparison = compare_models([bad, good])
        assert comparison.best == "good"
        assert comparison.table['best'].tolist() == [False, True]
        assert list(comparison.table['model']) == ["bad", "good"]

    def test_tie_keeps_first(self, scored_samples):
        data, labels = scored_samples
        first = evaluate_classifier(_linear_model("first", 1.0), data, labels)
        second = evaluate_classifier(_linear_model("second", 2.0), data, labels)
        assert first.auc == second.auc
        assert compare_models([first, second]).best == "first"

    def test_empty(self):
        with pytest.raises(ValueError):
            compare_models([])


class TestOperatingThreshold:
    """Threshold choice on the ROC curve."""

    def test_youden_maximizes_j(self, scored_samples):
        data, labels = scored_samples
        evaluation = evaluate_classifier(_linear_model(), data, labels)
        point = choose_operating_threshold(evaluation, method="youden")

        best_j = np.max(evaluation.roc.tpr - evaluation.roc.fpr)
        assert point.youden_j == pytest.approx(best_j)
        assert 0.0 <= point.threshold <= 1.0

    def test_rates_reproduced_at_threshold(self, scored_samples):
        data, labels = scored_samples
        evaluation = evaluate_classifier(_linear_model(), data, labels)
        point = choose_operating_threshold(evaluation)

        sensitivity, specificity = sensitivity_specificity(
            labels, evaluation.probabilities, point.threshold,
        )
        assert sensitivity == pytest.approx(point.sensitivity)
        assert specificity == pytest.approx(point.specificity)

    def test_min_sensitivity_floor(self, scored_samples):
        data, labels = scored_samples
        evaluation = evaluate_classifier(_linear_model(), data, labels)
        point = choose_operating_threshold(evaluation, method="min_sensitivity", min_sensitivity=0.9)

        assert point.sensitivity >= 0.9
        eligible = evaluation.roc.tpr >= 0.9
        assert point.specificity == pytest.approx(np.max(1 - evaluation.roc.fpr[eligible]))
        assert point.method == "min_sensitivity"

    def test_unknown_method(self, scored_samples):
        data, labels = scored_samples
        evaluation = evaluate_classifier(_linear_model(), data, labels)
        with pytest.raises(ValueError, match="threshold method"):
            choose_operating_threshold(evaluation, method="cost")
