"""
Multiple testing correction and final gene selection.

Two independent filters are applied to the per-gene tests and intersected:

1. Benjamini-Hochberg (BH95) adjusted p-values (q-values):
       q_(i) = min_{j ≥ i} min(1, m p_(j) / j)
   for p-values sorted ascending. Rejecting q < α controls the FDR at α.
2. Empirical-Bayes local fdr (see graftexpr.stats.local_fdr).

A gene is reported when it passes both.

References:
    Benjamini, Y., & Hochberg, Y. (1995). Controlling the false discovery
    rate: a practical and powerful approach to multiple testing.
    Journal of the Royal Statistical Society: Series B, 57(1), 289-300.

    Benjamini, Y., & Yekutieli, D. (2001). The control of the false
    discovery rate in multiple testing under dependency.
    Annals of Statistics, 29(4), 1165-1188.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Sequence

import numpy as np
import pandas as pd
from numpy.typing import NDArray

__all__ = [
    'fdr_correction',
    'benjamini_hochberg',
    'MultipleTestingResult',
    'correct_pvalues',
    'SignificantGenes',
    'select_significant_genes',
]


def fdr_correction(
    pvalues: NDArray[np.float64],
    method: Literal["BH", "BY", "bonferroni"] = "BH",
    alpha: float = 0.10,
) -> NDArray[np.float64]:
    """
    Apply multiple testing correction.

    Args:
        pvalues: Array of raw p-values. NaN entries stay NaN and do not count
            towards the number of tests.
        method: Correction method:
            - "BH": Benjamini-Hochberg (controls FDR)
            - "BY": Benjamini-Yekutieli (controls FDR under dependence)
            - "bonferroni": Bonferroni (controls FWER)
        alpha: Significance threshold (only used by statsmodels for the
            reject decision, which is recomputed by callers).

    Returns:
        Array of adjusted p-values.
    """
    from statsmodels.stats.multitest import multipletests

    pvalues = np.asarray(pvalues, dtype=float)
    valid_mask = ~np.isnan(pvalues)
    adj_pvals = np.full_like(pvalues, np.nan)

    if not np.any(valid_mask):
        return adj_pvals

    method_map = {"BH": "fdr_bh", "BY": "fdr_by", "bonferroni": "bonferroni"}
    if method not in method_map:
        raise ValueError(f"Unknown correction method {method!r}; use one of {list(method_map)}")

    _, adj_pvals[valid_mask], _, _ = multipletests(
        pvalues[valid_mask],
        alpha=alpha,
        method=method_map[method],
    )

    return adj_pvals


def benjamini_hochberg(pvalues: NDArray[np.float64]) -> NDArray[np.float64]:
    """Benjamini-Hochberg q-values (shorthand for fdr_correction(method="BH"))."""
    return fdr_correction(pvalues, method="BH")


@dataclass(frozen=True)
class MultipleTestingResult:
    """Adjusted p-values and the reject decision at alpha.

    Attributes:
        q_values: Adjusted p-values aligned with the input
        reject: q_values < alpha (False where q is NaN)
        method: Correction method
        alpha: Threshold
    """

    q_values: NDArray[np.float64]
    reject: NDArray[np.bool_]
    method: str
    alpha: float

    @property
    def n_rejected(self) -> int:
        return int(self.reject.sum())


def correct_pvalues(
    pvalues: NDArray[np.float64],
    alpha: float = 0.10,
    method: Literal["BH", "BY", "bonferroni"] = "BH",
) -> MultipleTestingResult:
    """
    Adjust p-values and reject hypotheses with adjusted p-value below alpha.

    Examples:
        >>> result = correct_pvalues(tests.p_value, alpha=0.10)
        >>> print(f"{result.n_rejected} genes at 10% FDR")
    """
    if not 0 < alpha < 1:
        raise ValueError(f"alpha must be in (0, 1), got {alpha}")

    q_values = fdr_correction(pvalues, method=method, alpha=alpha)
    with np.errstate(invalid='ignore'):
        reject = np.nan_to_num(q_values, nan=np.inf) < alpha

    return MultipleTestingResult(q_values=q_values, reject=reject, method=method, alpha=alpha)


@dataclass(frozen=True)
class SignificantGenes:
    """Genes passing both the q-value and local-fdr filters.

    Attributes:
        gene_ids: Selected genes ordered by q-value (ascending)
        n_q_pass: Genes passing the q-value filter alone
        n_fdr_pass: Genes passing the local-fdr filter alone
        q_threshold: q-value cutoff
        fdr_threshold: local-fdr cutoff
    """

    gene_ids: list[str]
    n_q_pass: int
    n_fdr_pass: int
    q_threshold: float
    fdr_threshold: float

    @property
    def n_selected(self) -> int:
        return len(self.gene_ids)


def select_significant_genes(
    gene_ids: Sequence[str] | pd.Index,
    q_values: NDArray[np.float64],
    local_fdr: NDArray[np.float64],
    q_threshold: float = 0.10,
    fdr_threshold: float = 0.10,
) -> SignificantGenes:
    """
    Intersect the BH and local-fdr filters.

    Args:
        gene_ids: Gene identifiers
        q_values: BH-adjusted p-values
        local_fdr: Local false discovery rates
        q_threshold: Keep genes with q < q_threshold
        fdr_threshold: Keep genes with local fdr < fdr_threshold

    Returns:
        SignificantGenes ordered by q-value, ties by gene order
    """
    gene_ids = np.asarray(gene_ids)
    q_values = np.asarray(q_values, dtype=float)
    local_fdr = np.asarray(local_fdr, dtype=float)

    if not (len(gene_ids) == len(q_values) == len(local_fdr)):
        raise ValueError(
            f"Length mismatch: {len(gene_ids)} genes, {len(q_values)} q-values, "
            f"{len(local_fdr)} local fdr values"
        )

    q_pass = np.nan_to_num(q_values, nan=np.inf) < q_threshold
    fdr_pass = np.nan_to_num(local_fdr, nan=np.inf) < fdr_threshold
    both = np.flatnonzero(q_pass & fdr_pass)

    order = both[np.argsort(q_values[both], kind='stable')]

    return SignificantGenes(
        gene_ids=[str(g) for g in gene_ids[order]],
        n_q_pass=int(q_pass.sum()),
        n_fdr_pass=int(fdr_pass.sum()),
        q_threshold=q_threshold,
        fdr_threshold=fdr_threshold,
    )
