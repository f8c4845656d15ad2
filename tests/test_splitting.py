"""
Tests for train/test partitioning and CV folds.
"""

import numpy as np
import pytest

from graftexpr.models.splitting import make_folds, train_test_partition


class TestTrainTestPartition:
    """Random 70/30 style splits."""

    def test_disjoint_and_covering(self):
        partition = train_test_partition(250, train_fraction=0.7, seed=3)
        train, test = set(partition.train), set(partition.test)

        assert train.isdisjoint(test)
        assert train | test == set(range(250))
        assert partition.n_train == 175
        assert partition.n_test == 75

    def test_reproducible_for_fixed_seed(self):
        first = train_test_partition(100, seed=5)
        second = train_test_partition(100, seed=5)
        np.testing.assert_array_equal(first.train, second.train)
        np.testing.assert_array_equal(first.test, second.test)

    def test_seed_changes_split(self):
        first = train_test_partition(100, seed=1)
        second = train_test_partition(100, seed=2)
        assert not np.array_equal(first.train, second.train)

    def test_indices_sorted(self):
        partition = train_test_partition(50, seed=0)
        assert np.all(np.diff(partition.train) > 0)
        assert np.all(np.diff(partition.test) > 0)

    @pytest.mark.parametrize("fraction", [0.0, 1.0, 1.5])
    def test_invalid_fraction(self, fraction):
        with pytest.raises(ValueError, match="train_fraction"):
            train_test_partition(10, train_fraction=fraction)

    def test_too_few_samples(self):
        with pytest.raises(ValueError, match="at least 2 samples"):
            train_test_partition(1)


class TestMakeFolds:
    """Shuffled k-fold splitter."""

    def test_folds_partition_samples(self):
        folds = make_folds(4, seed=0)
        seen = np.concatenate([val for _, val in folds.split(np.zeros((22, 1)))])
        assert sorted(seen.tolist()) == list(range(22))
        assert folds.get_n_splits() == 4

    def test_reproducible(self):
        X = np.zeros((20, 1))
        first = [val.tolist() for _, val in make_folds(4, seed=9).split(X)]
        second = [val.tolist() for _, val in make_folds(4, seed=9).split(X)]
        assert first == second

    def test_needs_two_folds(self):
        with pytest.raises(ValueError, match="n_folds"):
            make_folds(1)
