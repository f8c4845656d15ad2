"""
Core data structures shared by every analysis stage.

1. ExpressionDataset: samples × genes matrix with binary outcome labels
2. Transform: abstract base class for immutable preprocessing steps
"""

from graftexpr.core.dataset import ExpressionDataset
from graftexpr.core.transform import Transform

__all__ = [
    'ExpressionDataset',
    'Transform',
]
