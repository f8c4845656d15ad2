"""
Output writers for analysis results.

Tables are written as CSV; the run summary is written as JSON through a
temporary file in the destination directory followed by ``os.replace()``,
so an interrupted run never leaves a truncated summary behind.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any

import numpy as np
import pandas as pd

if TYPE_CHECKING:
    from graftexpr.core.dataset import ExpressionDataset
    from graftexpr.pipeline import ExplorationReport, ModelingReport, TestingReport

logger = logging.getLogger(__name__)

__all__ = [
    'atomic_write_json',
    'write_exploration',
    'write_testing',
    'write_modeling',
]


def _json_default(value: Any) -> Any:
    """Convert numpy scalars and arrays for json.dump."""
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, np.floating):
        return float(value)
    if isinstance(value, np.bool_):
        return bool(value)
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, Path):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def atomic_write_json(path: str | os.PathLike, data: Any, *, indent: int = 2) -> None:
    """Write *data* as JSON atomically via temp-file + rename.

    Parameters
    ----------
    path:
        Destination file path.
    data:
        JSON-serializable object; numpy scalars and arrays are converted.
    indent:
        JSON indentation (default 2).
    """
    path = str(path)
    dir_path = os.path.dirname(path) or "."
    tmp_path: str | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w", dir=dir_path, suffix=".tmp", delete=False
        ) as tmp:
            tmp_path = tmp.name
            json.dump(data, tmp, indent=indent, default=_json_default)
        os.replace(tmp_path, path)
    except BaseException:
        if tmp_path is not None and os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def write_exploration(
    report: ExplorationReport,
    dataset: ExpressionDataset,
    output_dir: Path,
) -> list[Path]:
    """Write variance_explained.csv, sample_scores.csv, discriminant_scores.csv, top_loadings.csv."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    written = [
        output_dir / "variance_explained.csv",
        output_dir / "sample_scores.csv",
        output_dir / "discriminant_scores.csv",
        output_dir / "top_loadings.csv",
    ]
    report.variance.to_csv(written[0])
    report.scores_frame(dataset).to_csv(written[1])
    report.discriminant_frame(dataset).to_csv(written[2])
    report.loadings.to_csv(written[3], index=False)

    logger.info(f"Wrote exploration tables to {output_dir}")
    return written


def write_testing(report: TestingReport, output_dir: Path) -> list[Path]:
    """Write gene_tests.csv and significant_genes.csv."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    written = [output_dir / "gene_tests.csv", output_dir / "significant_genes.csv"]
    report.to_dataframe().to_csv(written[0], index=False)
    report.significant_frame().to_csv(written[1], index=False)

    logger.info(f"Wrote {report.tests.n_genes} gene tests to {written[0]}")
    return written


def write_modeling(report: ModelingReport, output_dir: Path) -> list[Path]:
    """Write model_comparison.csv and one roc_<model>.csv per classifier."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    comparison_path = output_dir / "model_comparison.csv"
    report.comparison.table.to_csv(comparison_path, index=False)
    written = [comparison_path]

    for evaluation in report.evaluations:
        roc_path = output_dir / f"roc_{evaluation.name}.csv"
        evaluation.roc.to_dataframe().to_csv(roc_path, index=False)
        written.append(roc_path)

    lasso = report.models.get('lasso')
    if lasso is not None and lasso.n_nonzero > 0:
        genes_path = output_dir / "lasso_genes.csv"
        coefficients = pd.Series(lasso.coefficients, index=np.asarray(report.gene_ids).astype(str))
        selected = lasso.selected_genes(report.gene_ids)
        pd.DataFrame({
            'gene_id': selected,
            'coefficient': coefficients.loc[selected].to_numpy(),
        }).to_csv(genes_path, index=False)
        written.append(genes_path)

    logger.info(f"Wrote model comparison for {len(report.evaluations)} classifiers to {output_dir}")
    return written
