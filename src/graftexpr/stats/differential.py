"""
Per-gene differential expression between the two outcome groups.

Every gene is tested independently with a two-sided, equal-variance
two-sample t-test (Student's t):

    t = (mean_1 - mean_0) / (s_p sqrt(1/n0 + 1/n1)),   df = n0 + n1 - 2

where s_p is the pooled standard deviation. Group 1 is the rejection group,
so positive statistics mean higher expression in rejection.

The test is vectorised over genes through scipy.stats.ttest_ind(axis=0);
there is no cross-gene dependency at this stage.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

import numpy as np
import pandas as pd
from numpy.typing import NDArray
from scipy import stats as scipy_stats

from graftexpr.utils.statistics import cohens_d, group_means

logger = logging.getLogger(__name__)

__all__ = ['DifferentialResult', 'run_gene_tests']


@dataclass(frozen=True)
class DifferentialResult:
    """Per-gene two-sample t-test results.

    Attributes:
        gene_ids: Gene identifiers
        statistic: t-statistics (group 1 minus group 0)
        p_value: Two-sided p-values
        df: Degrees of freedom (n0 + n1 - 2 for every gene)
        mean_0: Mean expression in group 0
        mean_1: Mean expression in group 1
        effect_size: Cohen's d (pooled SD)
        n_0: Samples in group 0
        n_1: Samples in group 1
    """

    gene_ids: pd.Index
    statistic: NDArray[np.float64]
    p_value: NDArray[np.float64]
    df: NDArray[np.float64]
    mean_0: NDArray[np.float64]
    mean_1: NDArray[np.float64]
    effect_size: NDArray[np.float64]
    n_0: int
    n_1: int

    @property
    def n_genes(self) -> int:
        return len(self.gene_ids)

    def to_dataframe(self) -> pd.DataFrame:
        """One row per gene, in input order."""
        return pd.DataFrame({
            'gene_id': np.asarray(self.gene_ids),
            'statistic': self.statistic,
            'p_value': self.p_value,
            'df': self.df,
            'mean_0': self.mean_0,
            'mean_1': self.mean_1,
            'mean_difference': self.mean_1 - self.mean_0,
            'effect_size': self.effect_size,
        })

    def nominally_significant(self, alpha: float = 0.05) -> int:
        """Number of genes with an unadjusted p-value below alpha."""
        return int(np.sum(self.p_value < alpha))


def run_gene_tests(
    data: NDArray[np.float64],
    labels: NDArray,
    gene_ids: Sequence[str] | pd.Index | None = None,
) -> DifferentialResult:
    """
    Two-sample t-test for every gene.

    Args:
        data: Samples × genes matrix
        labels: Binary labels aligned with rows (1 = rejection)
        gene_ids: Gene identifiers (default: "gene_0", "gene_1", ...)

    Returns:
        DifferentialResult with one entry per gene

    Raises:
        ValueError: If either group has fewer than two samples or the
            gene identifiers do not match the number of columns
    """
    data = np.asarray(data, dtype=float)
    labels = np.asarray(labels).astype(int)

    if data.ndim != 2:
        raise ValueError(f"data must be 2D, got shape {data.shape}")
    if len(labels) != data.shape[0]:
        raise ValueError(
            f"labels length ({len(labels)}) must match data rows ({data.shape[0]})"
        )

    if gene_ids is None:
        gene_ids = pd.Index([f"gene_{i}" for i in range(data.shape[1])])
    gene_ids = pd.Index(gene_ids)
    if len(gene_ids) != data.shape[1]:
        raise ValueError(
            f"gene_ids length ({len(gene_ids)}) must match data columns ({data.shape[1]})"
        )

    group0 = data[labels == 0]
    group1 = data[labels == 1]
    n0, n1 = len(group0), len(group1)
    if n0 < 2 or n1 < 2:
        raise ValueError(
            f"Each group needs at least 2 samples for a t-test, got n0={n0}, n1={n1}"
        )

    result = scipy_stats.ttest_ind(group1, group0, axis=0, equal_var=True)
    statistic = np.asarray(result.statistic, dtype=float)
    p_value = np.asarray(result.pvalue, dtype=float)

    n_undefined = int(np.isnan(statistic).sum())
    if n_undefined:
        logger.warning(
            f"{n_undefined} genes have zero within-group variance; their t-statistics are NaN"
        )

    mean_0, mean_1 = group_means(data, labels)
    logger.info(
        f"Tested {data.shape[1]} genes (n0={n0}, n1={n1}); "
        f"{int(np.sum(p_value < 0.05))} with p < 0.05"
    )

    return DifferentialResult(
        gene_ids=gene_ids,
        statistic=statistic,
        p_value=p_value,
        df=np.full(data.shape[1], float(n0 + n1 - 2)),
        mean_0=mean_0,
        mean_1=mean_1,
        effect_size=cohens_d(data, labels),
        n_0=n0,
        n_1=n1,
    )
