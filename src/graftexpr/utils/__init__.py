"""Utility modules shared across analysis stages."""

from graftexpr.utils.statistics import (
    cohens_d,
    group_means,
)

__all__ = [
    'cohens_d',
    'group_means',
]
