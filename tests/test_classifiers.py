"""
Tests for PCR, ridge and lasso logistic classifiers.
"""

import numpy as np
import pytest

from graftexpr.models.classifiers import (
    FittedClassifier,
    fit_pcr,
    fit_penalized,
    lambda_grid,
)


@pytest.fixture
def training_data(standardized_dataset):
    return standardized_dataset.data, standardized_dataset.labels


class TestPCR:
    """Principal-component logistic regression."""

    def test_gene_space_prediction_matches_pipeline(self, training_data):
        data, labels = training_data
        model = fit_pcr(data, labels, max_components=10, n_folds=4, seed=0)

        np.testing.assert_allclose(
            model.decision_function(data),
            model.estimator.decision_function(data),
            rtol=1e-6, atol=1e-8,
        )
        np.testing.assert_allclose(
            model.predict_proba(data),
            model.estimator.predict_proba(data)[:, 1],
            rtol=1e-6, atol=1e-10,
        )

    def test_selected_component_count(self, training_data):
        data, labels = training_data
        model = fit_pcr(data, labels, max_components=10, n_folds=4, seed=0)

        assert model.name == "pcr"
        assert model.hyperparameter == "n_components"
        assert 1 <= model.hyperparameter_value <= 10
        assert model.cv.metric == "auc"
        assert model.cv.best_value == model.hyperparameter_value
        assert model.cv.best_score == pytest.approx(np.nanmax(model.cv.mean))
        assert model.coefficients.shape == (data.shape[1],)

    def test_cv_reproducible_for_fixed_seed(self, training_data):
        data, labels = training_data
        first = fit_pcr(data, labels, max_components=5, seed=4)
        second = fit_pcr(data, labels, max_components=5, seed=4)
        np.testing.assert_array_equal(first.cv.mean, second.cv.mean)

    def test_component_cap_respects_fold_size(self, training_data):
        data, labels = training_data
        model = fit_pcr(data[:20], labels[:20], max_components=30, n_folds=4, seed=0)
        # 20 samples, 4 folds: each training fold has 15 samples
        assert model.cv.values.max() == 14

    def test_single_class_rejected(self, training_data):
        data, _ = training_data
        with pytest.raises(ValueError, match="both classes"):
            fit_pcr(data, np.ones(data.shape[0], dtype=int))


class TestLambdaGrid:
    """glmnet-style penalty grids."""

    def test_descending_log_spaced(self, training_data):
        data, labels = training_data
        grid = lambda_grid(data, labels, "l1", n_lambdas=20, lambda_min_ratio=0.01)

        assert len(grid) == 20
        assert np.all(np.diff(grid) < 0)
        assert grid[-1] / grid[0] == pytest.approx(0.01)
        np.testing.assert_allclose(np.diff(np.log(grid)), np.log(0.01) / 19)

    def test_lasso_max_is_largest_score(self, training_data):
        data, labels = training_data
        grid = lambda_grid(data, labels, "l1")
        expected = np.max(np.abs(data.T @ (labels - labels.mean()))) / len(labels)
        assert grid[0] == pytest.approx(expected)

    def test_ridge_grid_shifted(self, training_data):
        data, labels = training_data
        lasso = lambda_grid(data, labels, "l1")
        ridge = lambda_grid(data, labels, "l2")
        np.testing.assert_allclose(ridge, lasso * 1e3)

    def test_invalid_ratio(self, training_data):
        data, labels = training_data
        with pytest.raises(ValueError, match="lambda_min_ratio"):
            lambda_grid(data, labels, "l1", lambda_min_ratio=2.0)


class TestPenalizedLogistic:
    """Ridge and lasso with CV-selected λ."""

    def test_lasso_selects_signal_genes(self, standardized_dataset):
        model = fit_penalized(
            standardized_dataset.data, standardized_dataset.labels,
            penalty="l1", n_lambdas=20, seed=0,
        )
        assert model.name == "lasso"
        assert model.hyperparameter == "lambda"
        assert model.n_nonzero > 0

        selected = model.selected_genes(standardized_dataset.gene_ids)
        signal = {f"G{j:04d}" for j in range(20)}
        assert selected[0] in signal

    def test_strong_penalty_selects_nothing(self, training_data):
        data, labels = training_data
        lambda_max = lambda_grid(data, labels, "l1")[0]
        model = fit_penalized(data, labels, penalty="l1", lambdas=[10 * lambda_max, 20 * lambda_max])
        assert model.n_nonzero == 0
        assert model.selected_genes([f"g{j}" for j in range(data.shape[1])]) == []

    def test_ridge_keeps_every_gene(self, training_data):
        data, labels = training_data
        model = fit_penalized(data, labels, penalty="l2", n_lambdas=10)
        assert model.name == "ridge"
        assert model.n_nonzero == data.shape[1]

    def test_one_se_lambda_not_smaller_than_min(self, training_data):
        data, labels = training_data
        model = fit_penalized(data, labels, penalty="l1", n_lambdas=15)
        assert model.cv.metric == "error"
        assert model.cv.one_se_value >= model.cv.best_value
        assert model.cv.best_score == pytest.approx(np.nanmin(model.cv.mean))

    def test_cv_reproducible_for_fixed_seed(self, training_data):
        data, labels = training_data
        first = fit_penalized(data, labels, penalty="l2", n_lambdas=8, seed=2)
        second = fit_penalized(data, labels, penalty="l2", n_lambdas=8, seed=2)
        np.testing.assert_array_equal(first.cv.mean, second.cv.mean)
        assert first.hyperparameter_value == second.hyperparameter_value

    def test_unknown_penalty(self, training_data):
        data, labels = training_data
        with pytest.raises(ValueError, match="penalty"):
            fit_penalized(data, labels, penalty="elasticnet")


class TestFittedClassifier:
    """Prediction helpers on a hand-built model."""

    @pytest.fixture
    def model(self):
        return FittedClassifier(
            name="toy",
            coefficients=np.array([2.0, 0.0, -1.0]),
            intercept=0.5,
            hyperparameter="lambda",
            hyperparameter_value=0.1,
            cv=None,
        )

    def test_decision_function(self, model):
        data = np.array([[1.0, 5.0, 1.0], [0.0, 0.0, 0.0]])
        np.testing.assert_allclose(model.decision_function(data), [1.5, 0.5])

    def test_predict_threshold(self, model):
        data = np.array([[1.0, 0.0, 1.0], [-2.0, 0.0, 0.0]])
        assert model.predict(data).tolist() == [1, 0]
        assert model.predict(data, threshold=0.9).tolist() == [0, 0]

    def test_selected_genes_by_magnitude(self, model):
        assert model.selected_genes(["A", "B", "C"]) == ["A", "C"]
        assert model.n_nonzero == 2
