"""
Statistical analysis of the expression matrix.

Exports core functions for:
- Unsupervised structure (SVD, variance explained, Fisher discriminant)
- Per-gene differential expression (two-sample t-tests)
- Multiple testing correction (Benjamini-Hochberg, local fdr)
"""

from .decomposition import (
    SVDResult,
    compute_svd,
    variance_explained,
    n_components_for_variance,
    project_samples,
    top_loadings,
)
from .discriminant import (
    DiscriminantResult,
    fisher_discriminant,
    discriminant_on_components,
)
from .differential import (
    DifferentialResult,
    run_gene_tests,
)
from .multiple_testing import (
    fdr_correction,
    benjamini_hochberg,
    MultipleTestingResult,
    correct_pvalues,
    SignificantGenes,
    select_significant_genes,
)
from .local_fdr import (
    t_to_z,
    NullEstimate,
    LocalFdrResult,
    estimate_local_fdr,
)

__all__ = [
    "SVDResult",
    "compute_svd",
    "variance_explained",
    "n_components_for_variance",
    "project_samples",
    "top_loadings",
    "DiscriminantResult",
    "fisher_discriminant",
    "discriminant_on_components",
    "DifferentialResult",
    "run_gene_tests",
    "fdr_correction",
    "benjamini_hochberg",
    "MultipleTestingResult",
    "correct_pvalues",
    "SignificantGenes",
    "select_significant_genes",
    "t_to_z",
    "NullEstimate",
    "LocalFdrResult",
    "estimate_local_fdr",
]
