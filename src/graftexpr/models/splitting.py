"""
Train/test partitioning and cross-validation folds.

The train/test split is a plain random shuffle of sample indices; class
balance is not enforced, so with small cohorts the two partitions can differ
slightly in rejection prevalence.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray
from sklearn.model_selection import KFold, train_test_split

__all__ = ['Partition', 'train_test_partition', 'make_folds']


@dataclass(frozen=True)
class Partition:
    """Disjoint train and test sample indices."""
    train: NDArray[np.int_]
    test: NDArray[np.int_]

    @property
    def n_train(self) -> int:
        return len(self.train)

    @property
    def n_test(self) -> int:
        return len(self.test)


def train_test_partition(
    n_samples: int,
    train_fraction: float = 0.7,
    seed: int | None = 0,
) -> Partition:
    """
    Randomly split sample indices into train and test sets.

    Args:
        n_samples: Total number of samples
        train_fraction: Fraction of samples used for training
        seed: Random seed (None = non-reproducible)

    Returns:
        Partition whose index arrays are disjoint and together cover
        0..n_samples-1

    Raises:
        ValueError: If either partition would be empty
    """
    if not 0 < train_fraction < 1:
        raise ValueError(f"train_fraction must be in (0, 1), got {train_fraction}")
    if n_samples < 2:
        raise ValueError(f"Need at least 2 samples to split, got {n_samples}")

    train, test = train_test_split(
        np.arange(n_samples),
        train_size=train_fraction,
        shuffle=True,
        random_state=seed,
    )
    return Partition(train=np.sort(train), test=np.sort(test))


def make_folds(n_folds: int = 4, seed: int | None = 0) -> KFold:
    """Shuffled k-fold splitter used for hyperparameter selection."""
    if n_folds < 2:
        raise ValueError(f"n_folds must be at least 2, got {n_folds}")
    return KFold(n_splits=n_folds, shuffle=True, random_state=seed)
