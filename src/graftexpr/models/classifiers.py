"""
Regression classifiers for rejection status.

Three logistic models are fitted on the training partition, each with its
hyperparameter chosen by k-fold cross-validation:

    PCR    Logistic regression on the first k principal components.
           k maximises the CV AUC. The fitted coefficients are mapped back to
           gene space (β = V_k γ) so the model is applied to new samples
           directly from their expression values.
    Ridge  L2-penalised logistic regression; λ minimises the CV
           misclassification error (λ.min).
    Lasso  L1-penalised logistic regression, same selection. Genes with
           non-zero coefficients form the selected signature.

Penalty parameterisation follows glmnet: the objective is
(1/n) Σ loss + λ P(β), which is sklearn's C Σ loss + P(β) with C = 1/(n λ).
The λ grid descends from λ_max (the smallest penalty that zeroes every lasso
coefficient) to lambda_min_ratio × λ_max on a log scale; the ridge grid is
shifted up by 1/0.001 as glmnet does for alpha = 0.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass, field
from typing import Any, Literal

import numpy as np
from numpy.typing import NDArray
from scipy.special import expit
from sklearn.decomposition import PCA
from sklearn.exceptions import ConvergenceWarning
from sklearn.linear_model import LogisticRegression
from sklearn.model_selection import cross_val_score
from sklearn.pipeline import make_pipeline

from graftexpr.models.splitting import make_folds

logger = logging.getLogger(__name__)

__all__ = [
    'CVCurve',
    'FittedClassifier',
    'fit_pcr',
    'lambda_grid',
    'fit_penalized',
]

PenaltyType = Literal["l1", "l2"]

_PENALTY_NAMES = {"l1": "lasso", "l2": "ridge"}


@dataclass(frozen=True)
class CVCurve:
    """Cross-validation scores along a hyperparameter grid.

    Attributes:
        values: Hyperparameter grid (component counts or λ, in search order)
        mean: Mean fold score at each value
        std_error: Standard error of the fold scores
        metric: "auc" (higher is better) or "error" (lower is better)
        best_index: Index of the selected value
        one_se_index: For "error" curves, index of the largest λ within one
            standard error of the minimum; else None
    """
    values: NDArray[np.float64]
    mean: NDArray[np.float64]
    std_error: NDArray[np.float64]
    metric: str
    best_index: int
    one_se_index: int | None = None

    @property
    def best_value(self) -> float:
        return float(self.values[self.best_index])

    @property
    def best_score(self) -> float:
        return float(self.mean[self.best_index])

    @property
    def one_se_value(self) -> float | None:
        if self.one_se_index is None:
            return None
        return float(self.values[self.one_se_index])


@dataclass(frozen=True)
class FittedClassifier:
    """A fitted logistic model expressed in gene space.

    Attributes:
        name: "pcr", "ridge" or "lasso"
        coefficients: Coefficient per gene
        intercept: Intercept of the linear predictor
        hyperparameter: "n_components" or "lambda"
        hyperparameter_value: Selected value
        cv: Cross-validation curve used for the selection
        estimator: Underlying fitted sklearn estimator
    """
    name: str
    coefficients: NDArray[np.float64]
    intercept: float
    hyperparameter: str
    hyperparameter_value: float
    cv: CVCurve
    estimator: Any = field(default=None, repr=False, compare=False)

    def decision_function(self, data: NDArray[np.float64]) -> NDArray[np.float64]:
        """Linear predictor (log-odds of rejection)."""
        return np.asarray(data, dtype=float) @ self.coefficients + self.intercept

    def predict_proba(self, data: NDArray[np.float64]) -> NDArray[np.float64]:
        """Predicted probability of rejection for each row of data."""
        return expit(self.decision_function(data))

    def predict(self, data: NDArray[np.float64], threshold: float = 0.5) -> NDArray[np.int_]:
        return (self.predict_proba(data) >= threshold).astype(int)

    def selected_genes(self, gene_ids, tol: float = 0.0) -> list[str]:
        """Genes with |coefficient| > tol, ordered by |coefficient| descending."""
        gene_ids = np.asarray(gene_ids)
        nonzero = np.flatnonzero(np.abs(self.coefficients) > tol)
        order = nonzero[np.argsort(-np.abs(self.coefficients[nonzero]), kind='stable')]
        return [str(g) for g in gene_ids[order]]

    @property
    def n_nonzero(self) -> int:
        return int(np.count_nonzero(self.coefficients))


def _unpenalized_logistic(seed: int | None) -> LogisticRegression:
    return LogisticRegression(penalty=None, max_iter=1000, random_state=seed)


def _penalized_logistic(penalty: PenaltyType, C: float, seed: int | None) -> LogisticRegression:
    solver = "liblinear" if penalty == "l1" else "lbfgs"
    return LogisticRegression(
        penalty=penalty,
        C=C,
        solver=solver,
        max_iter=5000,
        random_state=seed,
    )


def _validate_training_data(data: NDArray[np.float64], labels: NDArray) -> tuple[NDArray, NDArray]:
    data = np.asarray(data, dtype=float)
    labels = np.asarray(labels).astype(int)
    if data.ndim != 2 or len(labels) != data.shape[0]:
        raise ValueError(
            f"data must be 2D with one row per label; got {data.shape} and {len(labels)} labels"
        )
    if len(np.unique(labels)) != 2:
        raise ValueError("Training labels must contain both classes")
    return data, labels


def fit_pcr(
    data: NDArray[np.float64],
    labels: NDArray,
    max_components: int = 30,
    n_folds: int = 4,
    seed: int | None = 0,
) -> FittedClassifier:
    """
    Principal-component logistic regression with CV-selected component count.

    Args:
        data: Training matrix (samples × genes), standardized
        labels: Binary training labels
        max_components: Largest component count tried. Capped by the number of
            genes and the size of a CV training fold.
        n_folds: Number of CV folds
        seed: Seed for the fold shuffle

    Returns:
        FittedClassifier with gene-space coefficients
    """
    data, labels = _validate_training_data(data, labels)
    folds = make_folds(n_folds, seed)

    n_fold_train = data.shape[0] - int(np.ceil(data.shape[0] / n_folds))
    upper = min(max_components, data.shape[1], n_fold_train - 1)
    if upper < 1:
        raise ValueError(
            f"Too few samples ({data.shape[0]}) for {n_folds}-fold PCR"
        )
    candidates = np.arange(1, upper + 1)

    means = np.full(len(candidates), np.nan)
    std_errors = np.full(len(candidates), np.nan)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", category=ConvergenceWarning)
        for i, k in enumerate(candidates):
            pipeline = make_pipeline(
                PCA(n_components=int(k), svd_solver="full"),
                _unpenalized_logistic(seed),
            )
            scores = cross_val_score(
                pipeline, data, labels, cv=folds, scoring="roc_auc", error_score=np.nan,
            )
            means[i], std_errors[i] = _summarize_folds(scores, f"PCR k={k}")

    if np.all(np.isnan(means)):
        raise ValueError("Cross-validation failed for every component count")

    best = int(np.nanargmax(means))
    cv = CVCurve(
        values=candidates.astype(float),
        mean=means,
        std_error=std_errors,
        metric="auc",
        best_index=best,
    )
    k = int(candidates[best])
    logger.info(f"PCR: {k} components selected (CV AUC {cv.best_score:.3f})")

    with warnings.catch_warnings():
        warnings.simplefilter("ignore", category=ConvergenceWarning)
        pipeline = make_pipeline(PCA(n_components=k, svd_solver="full"), _unpenalized_logistic(seed))
        pipeline.fit(data, labels)

    pca, logistic = pipeline[0], pipeline[1]
    coefficients = pca.components_.T @ logistic.coef_[0]
    intercept = float(logistic.intercept_[0] - pca.mean_ @ coefficients)

    return FittedClassifier(
        name="pcr",
        coefficients=coefficients,
        intercept=intercept,
        hyperparameter="n_components",
        hyperparameter_value=float(k),
        cv=cv,
        estimator=pipeline,
    )


def lambda_grid(
    data: NDArray[np.float64],
    labels: NDArray,
    penalty: PenaltyType,
    n_lambdas: int = 50,
    lambda_min_ratio: float = 0.01,
) -> NDArray[np.float64]:
    """
    Descending glmnet-style λ sequence.

    λ_max = max_j |x_jᵀ (y - ȳ)| / n for the lasso; for the ridge it is
    divided by 0.001.
    """
    if not 0 < lambda_min_ratio < 1:
        raise ValueError(f"lambda_min_ratio must be in (0, 1), got {lambda_min_ratio}")
    if n_lambdas < 1:
        raise ValueError(f"n_lambdas must be positive, got {n_lambdas}")

    labels = np.asarray(labels, dtype=float)
    n = len(labels)
    lambda_max = np.max(np.abs(data.T @ (labels - labels.mean()))) / n
    if penalty == "l2":
        lambda_max /= 1e-3
    if lambda_max <= 0:
        raise ValueError("All genes are uncorrelated with the labels; cannot build a λ grid")

    return lambda_max * np.logspace(0, np.log10(lambda_min_ratio), n_lambdas)


def fit_penalized(
    data: NDArray[np.float64],
    labels: NDArray,
    penalty: PenaltyType,
    n_lambdas: int = 50,
    lambda_min_ratio: float = 0.01,
    n_folds: int = 4,
    seed: int | None = 0,
    lambdas: NDArray[np.float64] | None = None,
) -> FittedClassifier:
    """
    Ridge (penalty="l2") or lasso (penalty="l1") logistic regression.

    λ.min is the grid value with the smallest mean CV misclassification
    error (ties go to the larger λ); λ.1se is recorded on the CV curve. The
    returned model is refitted on all training data at λ.min.

    Args:
        data: Training matrix (samples × genes), standardized
        labels: Binary training labels
        penalty: "l1" or "l2"
        n_lambdas: Grid size
        lambda_min_ratio: Smallest λ as a fraction of λ_max
        n_folds: Number of CV folds
        seed: Seed for the fold shuffle
        lambdas: Explicit descending λ grid (overrides n_lambdas/lambda_min_ratio)

    Returns:
        FittedClassifier named "ridge" or "lasso"
    """
    if penalty not in _PENALTY_NAMES:
        raise ValueError(f"penalty must be 'l1' or 'l2', got {penalty!r}")

    data, labels = _validate_training_data(data, labels)
    name = _PENALTY_NAMES[penalty]

    if lambdas is None:
        lambdas = lambda_grid(data, labels, penalty, n_lambdas, lambda_min_ratio)
    else:
        lambdas = np.sort(np.asarray(lambdas, dtype=float))[::-1]

    folds = make_folds(n_folds, seed)
    errors = np.full((n_folds, len(lambdas)), np.nan)

    with warnings.catch_warnings():
        warnings.simplefilter("ignore", category=ConvergenceWarning)
        for f, (train_idx, val_idx) in enumerate(folds.split(data)):
            y_train = labels[train_idx]
            if len(np.unique(y_train)) < 2:
                logger.warning(f"{name}: fold {f} has a single class in training; skipped")
                continue
            n_train = len(train_idx)
            for j, lam in enumerate(lambdas):
                model = _penalized_logistic(penalty, 1.0 / (n_train * lam), seed)
                model.fit(data[train_idx], y_train)
                predicted = model.predict(data[val_idx])
                errors[f, j] = np.mean(predicted != labels[val_idx])

    means = np.full(len(lambdas), np.nan)
    std_errors = np.full(len(lambdas), np.nan)
    for j in range(len(lambdas)):
        means[j], std_errors[j] = _summarize_folds(errors[:, j], None)

    if np.all(np.isnan(means)):
        raise ValueError(f"Cross-validation failed for every λ ({name})")

    best = int(np.nanargmin(means))
    within_one_se = np.flatnonzero(
        np.nan_to_num(means, nan=np.inf) <= means[best] + np.nan_to_num(std_errors[best])
    )
    cv = CVCurve(
        values=lambdas,
        mean=means,
        std_error=std_errors,
        metric="error",
        best_index=best,
        one_se_index=int(within_one_se[0]),
    )

    lam = cv.best_value
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", category=ConvergenceWarning)
        model = _penalized_logistic(penalty, 1.0 / (len(labels) * lam), seed)
        model.fit(data, labels)

    fitted = FittedClassifier(
        name=name,
        coefficients=model.coef_[0].copy(),
        intercept=float(model.intercept_[0]),
        hyperparameter="lambda",
        hyperparameter_value=lam,
        cv=cv,
        estimator=model,
    )
    logger.info(
        f"{name}: λ.min={lam:.4g} (CV error {cv.best_score:.3f}), "
        f"λ.1se={cv.one_se_value:.4g}, {fitted.n_nonzero} non-zero coefficients"
    )
    return fitted


def _summarize_folds(scores: NDArray[np.float64], label: str | None) -> tuple[float, float]:
    """Mean and standard error of fold scores, ignoring failed (NaN) folds."""
    scores = np.asarray(scores, dtype=float)
    valid = scores[~np.isnan(scores)]
    if len(valid) < len(scores) and label is not None:
        logger.warning(f"{label}: {len(scores) - len(valid)} CV folds failed to score")
    if len(valid) == 0:
        return np.nan, np.nan
    if len(valid) == 1:
        return float(valid[0]), 0.0
    return float(valid.mean()), float(valid.std(ddof=1) / np.sqrt(len(valid)))
