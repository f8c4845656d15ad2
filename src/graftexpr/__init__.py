"""
graftexpr - Gene expression analysis of kidney transplant rejection

Exploratory decomposition, per-gene differential testing with false
discovery rate control, and penalized classifiers that predict rejection
from expression profiles.
"""

__version__ = "0.1.0"

from graftexpr.core.dataset import ExpressionDataset
from graftexpr.core.transform import Transform

__all__ = [
    "ExpressionDataset",
    "Transform",
]
