"""
End-to-end analysis pipeline.

Runs the stages in order on one standardized dataset:

    1. prepare_dataset   load the table and standardize every gene
    2. run_exploration   SVD, variance explained, projections, discriminant
    3. run_testing       per-gene t-tests, BH q-values, local fdr, gene list
    4. run_modeling      train/test split, PCR/ridge/lasso, ROC comparison

Each stage returns a frozen report; run_analysis bundles them into an
AnalysisReport.

Examples:
    >>> from graftexpr.config import AnalysisConfig
    >>> from graftexpr.pipeline import prepare_dataset, run_analysis
    >>> config = AnalysisConfig(input=Path("kidney_transplant.csv"))
    >>> dataset = prepare_dataset(config)
    >>> report = run_analysis(dataset, config)
    >>> report.modeling.comparison.best
    'lasso'
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import numpy as np
import pandas as pd

from graftexpr.config import AnalysisConfig, ExploreConfig, ModelConfig, TestingConfig
from graftexpr.core.dataset import ExpressionDataset
from graftexpr.io.loaders import load_expression_table
from graftexpr.models import (
    ClassifierEvaluation,
    FittedClassifier,
    ModelComparison,
    OperatingPoint,
    Partition,
    choose_operating_threshold,
    compare_models,
    evaluate_classifier,
    fit_pcr,
    fit_penalized,
    train_test_partition,
)
from graftexpr.quality.scaling import Standardize
from graftexpr.stats import (
    DifferentialResult,
    DiscriminantResult,
    LocalFdrResult,
    MultipleTestingResult,
    SignificantGenes,
    SVDResult,
    compute_svd,
    correct_pvalues,
    discriminant_on_components,
    estimate_local_fdr,
    n_components_for_variance,
    project_samples,
    run_gene_tests,
    select_significant_genes,
    t_to_z,
    top_loadings,
    variance_explained,
)

logger = logging.getLogger(__name__)

__all__ = [
    'ExplorationReport',
    'TestingReport',
    'ModelingReport',
    'AnalysisReport',
    'dataset_summary',
    'prepare_dataset',
    'run_exploration',
    'run_testing',
    'run_modeling',
    'run_analysis',
]


@dataclass(frozen=True)
class ExplorationReport:
    """Unsupervised structure of the standardized matrix."""
    svd: SVDResult
    variance: pd.DataFrame
    scores: np.ndarray
    discriminant: DiscriminantResult
    loadings: pd.DataFrame
    n_components_for_threshold: int

    def scores_frame(self, dataset: ExpressionDataset) -> pd.DataFrame:
        """Sample scores with labels, one column per component (PC1, PC2, ...)."""
        frame = pd.DataFrame(
            self.scores,
            index=dataset.sample_ids,
            columns=[f"PC{i + 1}" for i in range(self.scores.shape[1])],
        )
        frame.insert(0, 'label', dataset.labels)
        return frame

    def discriminant_frame(self, dataset: ExpressionDataset) -> pd.DataFrame:
        return pd.DataFrame(
            {'label': dataset.labels, 'discriminant_score': self.discriminant.scores},
            index=dataset.sample_ids,
        )

    def summary(self) -> dict[str, Any]:
        return {
            'rank': self.svd.rank,
            'variance_first_component': float(self.variance['proportion'].iloc[0]),
            'n_components_for_threshold': self.n_components_for_threshold,
            'discriminant_components': int(len(self.discriminant.direction)),
            'discriminant_separation': float(self.discriminant.separation),
        }


@dataclass(frozen=True)
class TestingReport:
    """Per-gene tests with both multiple-testing filters."""
    tests: DifferentialResult
    bh: MultipleTestingResult
    local_fdr: LocalFdrResult
    significant: SignificantGenes

    def to_dataframe(self) -> pd.DataFrame:
        """One row per gene: test results, q-value, z-value, local fdr, selection."""
        table = self.tests.to_dataframe()
        table['q_value'] = self.bh.q_values
        table['z'] = self.local_fdr.z
        table['local_fdr'] = self.local_fdr.fdr
        table['significant'] = table['gene_id'].astype(str).isin(set(self.significant.gene_ids))
        return table

    def significant_frame(self) -> pd.DataFrame:
        """The selected genes, ordered by q-value."""
        table = self.to_dataframe().set_index('gene_id', drop=False)
        table.index = table.index.astype(str)
        columns = ['gene_id', 'statistic', 'p_value', 'q_value', 'z', 'local_fdr', 'effect_size']
        return table.loc[self.significant.gene_ids, columns].reset_index(drop=True)

    def summary(self) -> dict[str, Any]:
        null = self.local_fdr.null
        return {
            'method': self.bh.method,
            'n_nominal_p05': self.tests.nominally_significant(0.05),
            'n_q_significant': self.significant.n_q_pass,
            'n_local_fdr_significant': self.significant.n_fdr_pass,
            'n_significant': self.significant.n_selected,
            'null_delta': float(null.delta),
            'null_sigma': float(null.sigma),
            'null_p0': float(null.p0),
            'nulltype': null.nulltype,
        }


@dataclass(frozen=True)
class ModelingReport:
    """Fitted classifiers and their held-out comparison."""
    partition: Partition
    models: dict[str, FittedClassifier]
    evaluations: list[ClassifierEvaluation]
    comparison: ModelComparison
    operating_point: OperatingPoint
    gene_ids: pd.Index

    @property
    def best_model(self) -> FittedClassifier:
        return self.models[self.comparison.best]

    def summary(self) -> dict[str, Any]:
        point = self.operating_point
        lasso = self.models.get('lasso')
        return {
            'n_train': self.partition.n_train,
            'n_test': self.partition.n_test,
            'models': {
                e.name: {
                    'auc': float(e.auc),
                    'sensitivity': float(e.sensitivity),
                    'specificity': float(e.specificity),
                    e.hyperparameter: float(e.hyperparameter_value),
                }
                for e in self.evaluations
            },
            'lasso_n_selected_genes': lasso.n_nonzero if lasso is not None else None,
            'best_model': self.comparison.best,
            'operating_threshold': point.threshold,
            'operating_sensitivity': point.sensitivity,
            'operating_specificity': point.specificity,
            'threshold_method': point.method,
        }


def dataset_summary(dataset: ExpressionDataset) -> dict[str, Any]:
    return {
        'n_samples': dataset.n_samples,
        'n_genes': dataset.n_genes,
        'n_positive': dataset.n_positive,
        'n_negative': dataset.n_negative,
    }


@dataclass(frozen=True)
class AnalysisReport:
    """Everything computed by run_analysis()."""
    dataset: ExpressionDataset
    config: AnalysisConfig
    exploration: ExplorationReport
    testing: TestingReport
    modeling: ModelingReport

    def summary(self) -> dict[str, Any]:
        """JSON-serializable run summary."""
        return {
            'timestamp': datetime.now().isoformat(),
            'config': self.config.to_dict(),
            'data': dataset_summary(self.dataset),
            'exploration': self.exploration.summary(),
            'testing': self.testing.summary(),
            'modeling': self.modeling.summary(),
        }


def prepare_dataset(config: AnalysisConfig) -> ExpressionDataset:
    """
    Load the input table and standardize it.

    Raises:
        ValueError: If config.input is not set or the table is malformed
        FileNotFoundError: If the input file is missing
    """
    if config.input is None:
        raise ValueError("No input file configured")

    raw = load_expression_table(
        config.input,
        id_column=config.loader.id_column,
        label_column=config.loader.label_column,
        delimiter=config.loader.delimiter,
        positive_label=config.loader.positive_label,
    )
    transform = Standardize()
    logger.info(f"Applying {transform}")
    return transform.apply(raw)


def run_exploration(dataset: ExpressionDataset, config: ExploreConfig) -> ExplorationReport:
    """SVD, variance curves, top-k projection, loadings and discriminant."""
    svd = compute_svd(dataset.data)
    variance = variance_explained(svd, dataset.n_samples)

    k = min(config.n_components, svd.n_components)
    scores = project_samples(svd, k)

    k_lda = min(config.discriminant_components, svd.rank, dataset.n_samples - 2)
    if k_lda < 1:
        raise ValueError("Too few samples or components for a discriminant")
    discriminant = discriminant_on_components(svd, dataset.labels, k_lda)

    loadings = pd.concat(
        [
            top_loadings(svd, dataset.gene_ids, component=c, n=config.n_top_loadings)
            .assign(component=c)
            for c in range(1, min(3, k) + 1)
        ],
        ignore_index=True,
    )[['component', 'gene_id', 'loading']]

    n_threshold = n_components_for_variance(variance, config.variance_threshold)
    logger.info(
        f"SVD: first component explains {variance['proportion'].iloc[0]:.1%}; "
        f"{n_threshold} components reach {config.variance_threshold:.0%}"
    )

    return ExplorationReport(
        svd=svd,
        variance=variance,
        scores=scores,
        discriminant=discriminant,
        loadings=loadings,
        n_components_for_threshold=n_threshold,
    )


def run_testing(dataset: ExpressionDataset, config: TestingConfig) -> TestingReport:
    """Per-gene t-tests, BH correction, local fdr and their intersection."""
    tests = run_gene_tests(dataset.data, dataset.labels, dataset.gene_ids)
    bh = correct_pvalues(tests.p_value, alpha=config.q_threshold, method=config.fdr_method)

    z = t_to_z(tests.statistic, tests.df)
    local_fdr = estimate_local_fdr(
        z, nulltype=config.nulltype, bins=config.bins, df=config.spline_df,
    )

    significant = select_significant_genes(
        dataset.gene_ids,
        bh.q_values,
        local_fdr.fdr,
        q_threshold=config.q_threshold,
        fdr_threshold=config.fdr_threshold,
    )
    logger.info(
        f"{significant.n_q_pass} genes pass {config.fdr_method} q < {config.q_threshold}, "
        f"{significant.n_fdr_pass} pass local fdr < {config.fdr_threshold}; "
        f"{significant.n_selected} pass both"
    )

    return TestingReport(tests=tests, bh=bh, local_fdr=local_fdr, significant=significant)


def run_modeling(dataset: ExpressionDataset, config: ModelConfig) -> ModelingReport:
    """Fit PCR, ridge and lasso on the training split and compare them on the test split."""
    partition = train_test_partition(dataset.n_samples, config.train_fraction, config.seed)
    train = dataset.select_samples(partition.train)
    test = dataset.select_samples(partition.test)
    logger.info(
        f"Split: {partition.n_train} train ({train.n_positive} positive), "
        f"{partition.n_test} test ({test.n_positive} positive)"
    )

    models = {
        'pcr': fit_pcr(
            train.data, train.labels,
            max_components=config.max_components,
            n_folds=config.n_folds,
            seed=config.seed,
        ),
    }
    for penalty in ('l2', 'l1'):
        model = fit_penalized(
            train.data, train.labels,
            penalty=penalty,
            n_lambdas=config.n_lambdas,
            lambda_min_ratio=config.lambda_min_ratio,
            n_folds=config.n_folds,
            seed=config.seed,
        )
        models[model.name] = model

    evaluations = [evaluate_classifier(m, test.data, test.labels) for m in models.values()]
    comparison = compare_models(evaluations)
    best = next(e for e in evaluations if e.name == comparison.best)
    point = choose_operating_threshold(
        best, method=config.threshold_method, min_sensitivity=config.min_sensitivity,
    )
    logger.info(
        f"Best model: {comparison.best} (test AUC {best.auc:.3f}); "
        f"threshold {point.threshold:.3f} gives sensitivity {point.sensitivity:.2f}, "
        f"specificity {point.specificity:.2f}"
    )

    return ModelingReport(
        partition=partition,
        models=models,
        evaluations=evaluations,
        comparison=comparison,
        operating_point=point,
        gene_ids=dataset.gene_ids,
    )


def run_analysis(dataset: ExpressionDataset, config: AnalysisConfig) -> AnalysisReport:
    """Run exploration, testing and modeling on a standardized dataset."""
    return AnalysisReport(
        dataset=dataset,
        config=config,
        exploration=run_exploration(dataset, config.explore),
        testing=run_testing(dataset, config.testing),
        modeling=run_modeling(dataset, config.model),
    )
