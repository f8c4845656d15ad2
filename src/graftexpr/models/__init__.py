"""
Predictive models for rejection status.

- Train/test partitioning and CV folds (splitting)
- PCR, ridge and lasso logistic regression (classifiers)
- ROC/AUC evaluation, model comparison and threshold choice (evaluation)
"""

from graftexpr.models.splitting import Partition, train_test_partition, make_folds
from graftexpr.models.classifiers import (
    CVCurve,
    FittedClassifier,
    fit_pcr,
    lambda_grid,
    fit_penalized,
)
from graftexpr.models.evaluation import (
    ROCCurve,
    ClassifierEvaluation,
    OperatingPoint,
    ModelComparison,
    sensitivity_specificity,
    evaluate_classifier,
    compare_models,
    choose_operating_threshold,
)

__all__ = [
    'Partition',
    'train_test_partition',
    'make_folds',
    'CVCurve',
    'FittedClassifier',
    'fit_pcr',
    'lambda_grid',
    'fit_penalized',
    'ROCCurve',
    'ClassifierEvaluation',
    'OperatingPoint',
    'ModelComparison',
    'sensitivity_specificity',
    'evaluate_classifier',
    'compare_models',
    'choose_operating_threshold',
]
