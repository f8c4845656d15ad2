"""
Singular value decomposition of the standardized expression matrix.

Explores unsupervised structure: how much variance the leading components
capture, where samples fall on them, and which genes load on each.

Statistical Background:
    For a column-centred n × p matrix X = U diag(d) Vᵀ, the k-th principal
    component has variance d_k² / (n - 1) and the sample scores on it are
    U_k d_k. The columns of V are the gene loadings.

Examples:
    >>> from graftexpr.stats.decomposition import compute_svd, variance_explained
    >>> svd = compute_svd(dataset.data)
    >>> table = variance_explained(svd, dataset.n_samples)
    >>> table.loc[:4, 'cumulative']
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd
from numpy.typing import NDArray

logger = logging.getLogger(__name__)

__all__ = [
    'SVDResult',
    'compute_svd',
    'variance_explained',
    'n_components_for_variance',
    'project_samples',
    'top_loadings',
]


@dataclass(frozen=True)
class SVDResult:
    """
    Thin SVD factors X = U diag(d) Vᵀ.

    Attributes:
        u: Left singular vectors (n_samples × r)
        d: Singular values, descending (r,)
        v: Right singular vectors / gene loadings (n_genes × r)
    """
    u: NDArray[np.float64]
    d: NDArray[np.float64]
    v: NDArray[np.float64]

    @property
    def n_components(self) -> int:
        return len(self.d)

    @property
    def rank(self) -> int:
        """Numerical rank (singular values above the LAPACK tolerance)."""
        if len(self.d) == 0:
            return 0
        tol = self.d[0] * max(self.u.shape[0], self.v.shape[0]) * np.finfo(float).eps
        return int(np.sum(self.d > tol))


def compute_svd(data: NDArray[np.float64]) -> SVDResult:
    """
    Compute the thin SVD of a samples × genes matrix.

    The matrix is expected to be standardized (see Standardize); it is not
    re-centred here.

    Args:
        data: Samples × genes matrix

    Returns:
        SVDResult with r = min(n_samples, n_genes) components
    """
    u, d, vt = np.linalg.svd(data, full_matrices=False)
    logger.debug(f"SVD of {data.shape[0]}×{data.shape[1]} matrix: {len(d)} components")
    return SVDResult(u=u, d=d, v=vt.T)


def variance_explained(svd: SVDResult, n_samples: int) -> pd.DataFrame:
    """
    Variance captured by each component.

    Args:
        svd: Decomposition from compute_svd()
        n_samples: Number of rows of the decomposed matrix

    Returns:
        DataFrame indexed by component number (1-based) with columns
        singular_value, variance, proportion and cumulative
    """
    if n_samples < 2:
        raise ValueError(f"Need at least 2 samples, got {n_samples}")

    variance = svd.d ** 2 / (n_samples - 1)
    total = variance.sum()
    proportion = variance / total if total > 0 else np.zeros_like(variance)

    return pd.DataFrame(
        {
            'singular_value': svd.d,
            'variance': variance,
            'proportion': proportion,
            'cumulative': np.cumsum(proportion),
        },
        index=pd.RangeIndex(1, svd.n_components + 1, name='component'),
    )


def n_components_for_variance(table: pd.DataFrame, threshold: float) -> int:
    """Smallest number of components whose cumulative proportion reaches threshold."""
    if not 0 < threshold <= 1:
        raise ValueError(f"threshold must be in (0, 1], got {threshold}")
    reached = np.flatnonzero(table['cumulative'].to_numpy() >= threshold - 1e-12)
    if len(reached) == 0:
        return len(table)
    return int(reached[0]) + 1


def project_samples(svd: SVDResult, k: int) -> NDArray[np.float64]:
    """
    Sample scores on the first k components (U_k diag(d_k)).

    Raises:
        ValueError: If k is not in 1..n_components
    """
    if not 1 <= k <= svd.n_components:
        raise ValueError(f"k must be in 1..{svd.n_components}, got {k}")
    return svd.u[:, :k] * svd.d[:k]


def top_loadings(
    svd: SVDResult,
    gene_ids: pd.Index,
    component: int = 1,
    n: int = 20,
) -> pd.DataFrame:
    """
    Genes with the largest absolute loading on one component.

    Args:
        svd: Decomposition from compute_svd()
        gene_ids: Gene identifiers aligned with the rows of svd.v
        component: 1-based component number
        n: Number of genes to return

    Returns:
        DataFrame with gene_id and loading, sorted by |loading| descending
    """
    if not 1 <= component <= svd.n_components:
        raise ValueError(f"component must be in 1..{svd.n_components}, got {component}")

    loadings = svd.v[:, component - 1]
    order = np.argsort(-np.abs(loadings), kind='stable')[:n]
    return pd.DataFrame({
        'gene_id': np.asarray(gene_ids)[order],
        'loading': loadings[order],
    })
