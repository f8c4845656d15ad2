"""
Shared statistical utilities.

Functions:
    cohens_d: Per-column Cohen's d effect size between two labelled groups
    group_means: Per-column means of the two groups
"""

from __future__ import annotations

import numpy as np


__all__ = [
    'cohens_d',
    'group_means',
]


def group_means(values: np.ndarray, labels: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """
    Column means of the label-0 and label-1 rows.

    Args:
        values: Samples × features matrix (or 1D array for a single feature)
        labels: Binary labels aligned with rows

    Returns:
        (mean_0, mean_1)
    """
    values = np.asarray(values, dtype=float)
    labels = np.asarray(labels).astype(int)
    return values[labels == 0].mean(axis=0), values[labels == 1].mean(axis=0)


def cohens_d(
    values: np.ndarray,
    labels: np.ndarray,
) -> np.ndarray:
    """
    Signed Cohen's d between two groups for every column.

    d = (mean_1 - mean_0) / pooled_sd, with the pooled standard deviation
    sqrt(((n0-1) s0² + (n1-1) s1²) / (n0 + n1 - 2)).

    Args:
        values: Samples × features matrix (or 1D array for a single feature)
        labels: Binary labels (0/1 or boolean) aligned with rows

    Returns:
        Array of effect sizes (scalar array for 1D input). Columns whose
        pooled SD is near zero, or groups with fewer than 2 samples, give 0.0.

    Interpretation:
        |d| = 0.2 small, 0.5 medium, 0.8 large

    References:
        Cohen, J. (1988). Statistical Power Analysis for the Behavioral Sciences.
    """
    values = np.asarray(values, dtype=float)
    labels = np.asarray(labels)

    if labels.dtype == bool:
        labels = labels.astype(int)

    g0 = values[labels == 0]
    g1 = values[labels == 1]
    n0, n1 = len(g0), len(g1)

    if n0 < 2 or n1 < 2:
        return np.zeros(values.shape[1:]) if values.ndim > 1 else np.asarray(0.0)

    var0 = g0.var(axis=0, ddof=1)
    var1 = g1.var(axis=0, ddof=1)
    pooled_sd = np.sqrt(((n0 - 1) * var0 + (n1 - 1) * var1) / (n0 + n1 - 2))

    diff = g1.mean(axis=0) - g0.mean(axis=0)
    with np.errstate(divide='ignore', invalid='ignore'):
        d = np.where(pooled_sd < 1e-10, 0.0, diff / np.where(pooled_sd < 1e-10, 1.0, pooled_sd))
    return d
