"""
Pytest configuration and shared fixtures.

This module provides labelled synthetic expression generators and shared
fixtures for all test suites.
"""

import numpy as np
import pandas as pd
import pytest
from pathlib import Path

from graftexpr.core.dataset import ExpressionDataset


def generate_labelled_expression(
    n_samples: int = 60,
    n_genes: int = 200,
    n_signal: int = 20,
    effect: float = 1.5,
    seed: int = 42,
) -> ExpressionDataset:
    """
    Generate a labelled expression matrix with a planted differential signal.

    Args:
        n_samples: Number of samples (half labelled 1, shuffled)
        n_genes: Number of genes
        n_signal: Leading genes shifted upwards in the label-1 group
        effect: Mean shift of the signal genes, in noise standard deviations
        seed: Random seed for reproducibility

    Returns:
        ExpressionDataset with raw (unstandardized) values

    Design:
        - Gaussian noise around per-gene baselines of 5-10 (log-scale magnitudes)
        - Genes G0000..G{n_signal-1} carry the signal; the rest are null
    """
    rng = np.random.RandomState(seed)

    labels = rng.permutation(np.repeat([0, 1], [n_samples - n_samples // 2, n_samples // 2]))
    baseline = rng.uniform(5, 10, size=n_genes)
    data = baseline + rng.normal(size=(n_samples, n_genes))
    data[:, :n_signal] += effect * labels[:, None]

    return ExpressionDataset(
        data=data,
        sample_ids=pd.Index([f"P{i:03d}" for i in range(n_samples)], name="sample_id"),
        gene_ids=pd.Index([f"G{j:04d}" for j in range(n_genes)], name="gene_id"),
        labels=labels,
    )


def save_expression_csv(dataset: ExpressionDataset, path: Path, label_column: str = "Y") -> Path:
    """Write a dataset in the ID, label, genes... layout read by load_expression_table()."""
    df = dataset.to_dataframe()
    df.insert(0, label_column, dataset.labels)
    df.index.name = "ID"
    df.to_csv(path)
    return path


@pytest.fixture
def expression_dataset():
    """Raw dataset: 60 samples x 200 genes, 20 signal genes."""
    return generate_labelled_expression()


@pytest.fixture
def standardized_dataset(expression_dataset):
    """The same dataset with every gene scaled to mean 0, SD 1."""
    from graftexpr.quality.scaling import Standardize

    return Standardize().apply(expression_dataset)


@pytest.fixture
def expression_csv(tmp_path, expression_dataset):
    """The raw dataset written as a comma-separated table."""
    return save_expression_csv(expression_dataset, tmp_path / "expression.csv")
