"""
I/O module for loading expression tables and writing analysis results.

Key Functions:
    - load_expression_table: Load a labelled samples x genes table
    - write_exploration / write_testing / write_modeling: Stage result tables
    - atomic_write_json: Run summary without partial writes

Examples:
    >>> from graftexpr.io import load_expression_table
    >>> from pathlib import Path
    >>>
    >>> dataset = load_expression_table(Path("kidney_transplant.csv"))
    >>> print(f"Loaded {dataset.n_samples} samples x {dataset.n_genes} genes")
"""

from graftexpr.io.loaders import load_expression_table, encode_labels, sniff_delimiter
from graftexpr.io.writers import (
    atomic_write_json,
    write_exploration,
    write_testing,
    write_modeling,
)

__all__ = [
    'load_expression_table',
    'encode_labels',
    'sniff_delimiter',
    'atomic_write_json',
    'write_exploration',
    'write_testing',
    'write_modeling',
]
