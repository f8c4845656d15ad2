"""
Preprocessing of expression values before analysis.

Components:
    Standardize: Center every gene to mean 0 and scale to unit variance,
                 dropping genes that are constant across samples

Every downstream stage (SVD, t-tests, penalized regression) assumes genes
are on a common scale, so standardization runs once right after loading.
"""

from graftexpr.quality.scaling import Standardize, ScalingResult, standardize_columns

__all__ = [
    'Standardize',
    'ScalingResult',
    'standardize_columns',
]
