"""
graftexpr analysis commands.

    graftexpr run           Full analysis: explore, differential, predict
    graftexpr explore       SVD, variance explained and discriminant scores
    graftexpr differential  Per-gene t-tests with BH q-values and local fdr
    graftexpr predict       PCR, ridge and lasso classifiers with ROC comparison

All commands share the input/config options; each writes its tables and a
summary.json into --output.

Usage:
    graftexpr run --input kidney_transplant.csv --output results/
    graftexpr differential -i data.tsv -o results/ --q-threshold 0.05
    graftexpr run -c analysis.yaml --seed 7
"""

import argparse
import logging
from datetime import datetime
from pathlib import Path

from graftexpr.cli._validators import (
    _fold_count,
    _positive_int,
    _probability,
    _unit_interval,
)
from graftexpr.cli.config import config_from_args, load_config, merge_config_with_args
from graftexpr.config import ExploreConfig, ModelConfig, TestingConfig, config_from_dict

_COMMANDS = {
    "run": (
        "Full analysis: exploration, differential testing and prediction",
        "Complete analysis",
    ),
    "explore": (
        "Unsupervised structure: SVD, variance explained, discriminant scores",
        "Exploratory Decomposition",
    ),
    "differential": (
        "Per-gene t-tests with Benjamini-Hochberg q-values and local fdr",
        "Differential Expression",
    ),
    "predict": (
        "PCR, ridge and lasso logistic classifiers compared on a held-out split",
        "Rejection Prediction",
    ),
}


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the run, explore, differential and predict subcommands."""
    for command, (help_text, _) in _COMMANDS.items():
        parser = subparsers.add_parser(command, help=help_text, description=help_text)
        _add_shared_arguments(parser)
        if command in ("run", "explore"):
            _add_explore_arguments(parser)
        if command in ("run", "differential"):
            _add_testing_arguments(parser)
        if command in ("run", "predict"):
            _add_model_arguments(parser)
        parser.set_defaults(func=run_command, command=command)


def _add_shared_arguments(parser: argparse.ArgumentParser) -> None:
    # Input/output
    parser.add_argument("--input", "-i", type=Path, default=None,
                        help="Expression table: samples as rows, an ID column, a label column, then genes")
    parser.add_argument("--output", "-o", type=Path, default=None,
                        help="Output directory")
    parser.add_argument("--config", "-c", type=Path, default=None,
                        help="YAML or JSON config file (explicit flags take precedence)")
    parser.add_argument("--verbose", action="store_true",
                        help="Debug logging")

    # Table layout
    parser.add_argument("--id-column", default=None,
                        help="Sample ID column (default: first column)")
    parser.add_argument("--label-column", default=None,
                        help="Rejection label column (default: second column)")
    parser.add_argument("--delimiter", default=None,
                        help="Field delimiter (default: sniffed from the file)")
    parser.add_argument("--positive-label", default=None,
                        help="Label value meaning rejection (default: 1, or the larger label)")


def _add_explore_arguments(parser: argparse.ArgumentParser) -> None:
    defaults = ExploreConfig()
    parser.add_argument("--n-components", type=_positive_int, default=defaults.n_components,
                        help=f"Components in sample_scores.csv (default: {defaults.n_components})")
    parser.add_argument("--discriminant-components", type=_positive_int,
                        default=defaults.discriminant_components,
                        help="Leading components used for the Fisher discriminant "
                             f"(default: {defaults.discriminant_components})")
    parser.add_argument("--variance-threshold", type=_unit_interval,
                        default=defaults.variance_threshold,
                        help="Report components needed to reach this cumulative variance "
                             f"(default: {defaults.variance_threshold})")
    parser.add_argument("--n-top-loadings", type=_positive_int, default=defaults.n_top_loadings,
                        help=f"Top-loading genes per component (default: {defaults.n_top_loadings})")


def _add_testing_arguments(parser: argparse.ArgumentParser) -> None:
    defaults = TestingConfig()
    parser.add_argument("--fdr-method", choices=["BH", "BY", "bonferroni"],
                        default=defaults.fdr_method,
                        help=f"Multiple-testing correction (default: {defaults.fdr_method})")
    parser.add_argument("--q-threshold", type=_probability, default=defaults.q_threshold,
                        help=f"q-value cutoff (default: {defaults.q_threshold})")
    parser.add_argument("--fdr-threshold", type=_probability, default=defaults.fdr_threshold,
                        help=f"Local fdr cutoff (default: {defaults.fdr_threshold})")
    parser.add_argument("--nulltype", choices=["mle", "cme", "theoretical"],
                        default=defaults.nulltype,
                        help=f"Null distribution estimate for local fdr (default: {defaults.nulltype})")
    parser.add_argument("--bins", type=_positive_int, default=defaults.bins,
                        help=f"Histogram bins for the z-value density (default: {defaults.bins})")
    parser.add_argument("--spline-df", type=_positive_int, default=defaults.spline_df,
                        help=f"Spline degrees of freedom for the density fit (default: {defaults.spline_df})")


def _add_model_arguments(parser: argparse.ArgumentParser) -> None:
    defaults = ModelConfig()
    parser.add_argument("--train-fraction", type=_probability, default=defaults.train_fraction,
                        help=f"Fraction of samples used for training (default: {defaults.train_fraction})")
    parser.add_argument("--n-folds", type=_fold_count, default=defaults.n_folds,
                        help=f"Cross-validation folds (default: {defaults.n_folds})")
    parser.add_argument("--seed", type=int, default=defaults.seed,
                        help=f"Random seed for the split and folds (default: {defaults.seed})")
    parser.add_argument("--max-components", type=_positive_int, default=defaults.max_components,
                        help=f"Largest PCR component count tried (default: {defaults.max_components})")
    parser.add_argument("--n-lambdas", type=_positive_int, default=defaults.n_lambdas,
                        help=f"Penalty grid size for ridge/lasso (default: {defaults.n_lambdas})")
    parser.add_argument("--lambda-min-ratio", type=_probability, default=defaults.lambda_min_ratio,
                        help=f"Smallest penalty as a fraction of the largest (default: {defaults.lambda_min_ratio})")
    parser.add_argument("--threshold-method", choices=["youden", "min_sensitivity"],
                        default=defaults.threshold_method,
                        help=f"Operating threshold rule (default: {defaults.threshold_method})")
    parser.add_argument("--min-sensitivity", type=_unit_interval, default=defaults.min_sensitivity,
                        help="Sensitivity floor for --threshold-method min_sensitivity "
                             f"(default: {defaults.min_sensitivity})")


def run_command(args: argparse.Namespace) -> int:
    """Execute one analysis command."""
    from graftexpr.io.writers import (
        atomic_write_json,
        write_exploration,
        write_modeling,
        write_testing,
    )
    from graftexpr.pipeline import (
        dataset_summary,
        prepare_dataset,
        run_exploration,
        run_modeling,
        run_testing,
    )

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    logger = logging.getLogger(__name__)

    # Load and merge config file if provided
    if args.config:
        print(f"Loading configuration from: {args.config}")
        try:
            config = load_config(args.config)
            config_from_dict(config)
            args = merge_config_with_args(config, args, getattr(args, "cli_args", None))
        except (FileNotFoundError, ValueError, TypeError) as e:
            print(f"Error: Config file error: {e}")
            return 1

    # Validate required arguments (after config merge)
    if not args.input:
        print("Error: --input is required (via CLI or config file)")
        return 1
    if not args.output:
        print("Error: --output is required (via CLI or config file)")
        return 1

    analysis_config = config_from_args(args)
    output_dir = Path(analysis_config.output)

    start_time = datetime.now()
    print(f"\n{'='*70}")
    print(f"  {_COMMANDS[args.command][1]}")
    print(f"{'='*70}")
    print(f"Started: {start_time.strftime('%Y-%m-%d %H:%M:%S')}\n")

    summary = {
        'timestamp': start_time.isoformat(),
        'command': args.command,
        'config': analysis_config.to_dict(),
    }
    written = []

    try:
        dataset = prepare_dataset(analysis_config)
        summary['data'] = dataset_summary(dataset)
        output_dir.mkdir(parents=True, exist_ok=True)

        if args.command in ("run", "explore"):
            exploration = run_exploration(dataset, analysis_config.explore)
            written += write_exploration(exploration, dataset, output_dir)
            summary['exploration'] = exploration.summary()

        if args.command in ("run", "differential"):
            testing = run_testing(dataset, analysis_config.testing)
            written += write_testing(testing, output_dir)
            summary['testing'] = testing.summary()

        if args.command in ("run", "predict"):
            modeling = run_modeling(dataset, analysis_config.model)
            written += write_modeling(modeling, output_dir)
            summary['modeling'] = modeling.summary()

        summary_path = output_dir / "summary.json"
        atomic_write_json(summary_path, summary)
        written.append(summary_path)
    except (ValueError, FileNotFoundError) as e:
        logger.debug("Analysis failed", exc_info=True)
        print(f"\nError: {e}")
        return 1

    _print_summary(summary)

    elapsed = datetime.now() - start_time
    print(f"\nOutputs ({len(written)} files) in {output_dir}/")
    for path in written:
        print(f"  {path.name}")
    print(f"\nCompleted in {elapsed.total_seconds():.1f}s")
    return 0


def _print_summary(summary: dict) -> None:
    data = summary['data']
    print(f"\n{'='*70}")
    print("  Results")
    print(f"{'='*70}")
    print(f"Samples: {data['n_samples']} ({data['n_positive']} rejection, "
          f"{data['n_negative']} non-rejection)")
    print(f"Genes:   {data['n_genes']}")

    if 'exploration' in summary:
        e = summary['exploration']
        print(f"\nExploration:")
        print(f"  First component explains {e['variance_first_component']:.1%} of variance")
        print(f"  Components to reach threshold: {e['n_components_for_threshold']}")
        print(f"  Discriminant separation ({e['discriminant_components']} components): "
              f"{e['discriminant_separation']:.3f}")

    if 'testing' in summary:
        t = summary['testing']
        print(f"\nDifferential expression:")
        print(f"  Nominal p < 0.05:        {t['n_nominal_p05']}")
        print(f"  {t['method']} q-value significant: {t['n_q_significant']}")
        print(f"  Local fdr significant:   {t['n_local_fdr_significant']}")
        print(f"  Significant by both:     {t['n_significant']}")
        print(f"  Null: delta={t['null_delta']:.3f}, sigma={t['null_sigma']:.3f}, "
              f"p0={t['null_p0']:.3f} ({t['nulltype']})")

    if 'modeling' in summary:
        m = summary['modeling']
        print(f"\nPrediction ({m['n_train']} train / {m['n_test']} test):")
        for name, result in m['models'].items():
            print(f"  {name:<6} AUC={result['auc']:.3f}  sensitivity={result['sensitivity']:.2f}  "
                  f"specificity={result['specificity']:.2f}")
        print(f"  Best model: {m['best_model']}")
        print(f"  Operating threshold ({m['threshold_method']}): {m['operating_threshold']:.3f} "
              f"(sensitivity {m['operating_sensitivity']:.2f}, "
              f"specificity {m['operating_specificity']:.2f})")
