"""
Held-out evaluation and model comparison.

Each fitted classifier is scored once on the test partition: ROC curve, AUC,
and sensitivity/specificity at a probability threshold. The model with the
highest test AUC is preferred, and an operating threshold is then read off
its ROC curve.

Threshold rules:
    youden           maximise J = sensitivity + specificity - 1
    min_sensitivity  highest specificity among thresholds whose sensitivity
                     reaches a floor (a missed rejection costs more than a
                     false alarm)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Sequence

import numpy as np
import pandas as pd
from numpy.typing import NDArray
from sklearn.metrics import roc_auc_score, roc_curve

from graftexpr.models.classifiers import FittedClassifier

__all__ = [
    'ROCCurve',
    'ClassifierEvaluation',
    'OperatingPoint',
    'ModelComparison',
    'sensitivity_specificity',
    'evaluate_classifier',
    'compare_models',
    'choose_operating_threshold',
]


@dataclass(frozen=True)
class ROCCurve:
    """False/true positive rates at each distinct score threshold."""
    fpr: NDArray[np.float64]
    tpr: NDArray[np.float64]
    thresholds: NDArray[np.float64]
    auc: float

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame({
            'threshold': self.thresholds,
            'fpr': self.fpr,
            'tpr': self.tpr,
            'sensitivity': self.tpr,
            'specificity': 1.0 - self.fpr,
        })


@dataclass(frozen=True)
class ClassifierEvaluation:
    """Test-set performance of one classifier.

    Attributes:
        name: Model name
        auc: Area under the ROC curve
        sensitivity: True positive rate at `threshold`
        specificity: True negative rate at `threshold`
        threshold: Probability threshold used for sensitivity/specificity
        roc: Full ROC curve
        probabilities: Predicted rejection probability per test sample
        hyperparameter: Name of the selected hyperparameter
        hyperparameter_value: Its value
    """
    name: str
    auc: float
    sensitivity: float
    specificity: float
    threshold: float
    roc: ROCCurve
    probabilities: NDArray[np.float64]
    hyperparameter: str
    hyperparameter_value: float


@dataclass(frozen=True)
class OperatingPoint:
    """A chosen decision threshold and its test-set rates."""
    threshold: float
    sensitivity: float
    specificity: float
    method: str

    @property
    def youden_j(self) -> float:
        return self.sensitivity + self.specificity - 1.0


@dataclass(frozen=True)
class ModelComparison:
    """Side-by-side test performance and the preferred model."""
    table: pd.DataFrame
    best: str


def sensitivity_specificity(
    labels: NDArray,
    probabilities: NDArray[np.float64],
    threshold: float = 0.5,
) -> tuple[float, float]:
    """
    Sensitivity and specificity when probability >= threshold predicts 1.

    Returns NaN for a rate whose class is absent from labels.
    """
    labels = np.asarray(labels).astype(int)
    predicted = np.asarray(probabilities) >= threshold

    positives = labels == 1
    negatives = labels == 0
    sensitivity = float(predicted[positives].mean()) if positives.any() else np.nan
    specificity = float((~predicted[negatives]).mean()) if negatives.any() else np.nan
    return sensitivity, specificity


def evaluate_classifier(
    model: FittedClassifier,
    data: NDArray[np.float64],
    labels: NDArray,
    threshold: float = 0.5,
) -> ClassifierEvaluation:
    """
    Score a fitted classifier on held-out samples.

    Raises:
        ValueError: If the test labels contain a single class (AUC undefined)
    """
    labels = np.asarray(labels).astype(int)
    if len(np.unique(labels)) < 2:
        raise ValueError("Test labels contain a single class; ROC/AUC is undefined")

    probabilities = model.predict_proba(data)
    fpr, tpr, thresholds = roc_curve(labels, probabilities, drop_intermediate=False)
    auc = float(roc_auc_score(labels, probabilities))
    sensitivity, specificity = sensitivity_specificity(labels, probabilities, threshold)

    return ClassifierEvaluation(
        name=model.name,
        auc=auc,
        sensitivity=sensitivity,
        specificity=specificity,
        threshold=threshold,
        roc=ROCCurve(fpr=fpr, tpr=tpr, thresholds=thresholds, auc=auc),
        probabilities=probabilities,
        hyperparameter=model.hyperparameter,
        hyperparameter_value=model.hyperparameter_value,
    )


def compare_models(evaluations: Sequence[ClassifierEvaluation]) -> ModelComparison:
    """
    Tabulate test performance; the best model has the highest AUC.

    Ties keep the earlier model in `evaluations`.
    """
    if not evaluations:
        raise ValueError("No evaluations to compare")

    table = pd.DataFrame([
        {
            'model': e.name,
            'auc': e.auc,
            'sensitivity': e.sensitivity,
            'specificity': e.specificity,
            'threshold': e.threshold,
            'hyperparameter': e.hyperparameter,
            'hyperparameter_value': e.hyperparameter_value,
        }
        for e in evaluations
    ])
    best = evaluations[int(np.argmax([e.auc for e in evaluations]))].name
    table['best'] = table['model'] == best
    return ModelComparison(table=table, best=best)


def choose_operating_threshold(
    evaluation: ClassifierEvaluation,
    method: Literal["youden", "min_sensitivity"] = "youden",
    min_sensitivity: float = 0.9,
) -> OperatingPoint:
    """
    Pick a decision threshold from the test ROC curve.

    Args:
        evaluation: Evaluation of the chosen model
        method: "youden" or "min_sensitivity"
        min_sensitivity: Sensitivity floor for method="min_sensitivity"

    Returns:
        OperatingPoint; the threshold is capped at 1.0 (roc_curve starts from
        an infinite threshold that classifies nothing as positive)
    """
    roc = evaluation.roc
    specificity = 1.0 - roc.fpr

    if method == "youden":
        index = int(np.argmax(roc.tpr - roc.fpr))
    elif method == "min_sensitivity":
        if not 0 < min_sensitivity <= 1:
            raise ValueError(f"min_sensitivity must be in (0, 1], got {min_sensitivity}")
        eligible = np.flatnonzero(roc.tpr >= min_sensitivity)
        # tpr reaches 1 at the last point, so eligible is never empty
        index = int(eligible[np.argmax(specificity[eligible])])
    else:
        raise ValueError(f"Unknown threshold method {method!r}; use 'youden' or 'min_sensitivity'")

    return OperatingPoint(
        threshold=float(min(roc.thresholds[index], 1.0)),
        sensitivity=float(roc.tpr[index]),
        specificity=float(specificity[index]),
        method=method,
    )
