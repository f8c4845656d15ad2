"""
graftexpr CLI - Command-line interface for kidney transplant expression analysis.

Commands:
    graftexpr run           - Full analysis (explore + differential + predict)
    graftexpr explore       - SVD, variance explained and discriminant scores
    graftexpr differential  - Per-gene t-tests with BH q-values and local fdr
    graftexpr predict       - PCR/ridge/lasso classifiers with ROC comparison
"""

import argparse
import sys
from typing import Optional, List


def main(args: Optional[List[str]] = None) -> int:
    """Main CLI dispatcher for graftexpr."""
    parser = argparse.ArgumentParser(
        prog="graftexpr",
        description="Gene expression analysis of kidney transplant rejection",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  run           Full analysis (explore + differential + predict)
  explore       SVD, variance explained and discriminant scores
  differential  Per-gene t-tests with BH q-values and local fdr
  predict       PCR, ridge and lasso classifiers with ROC comparison

Examples:
  graftexpr run --input kidney_transplant.csv --output results/
  graftexpr differential -i data.csv -o results/ --nulltype cme
  graftexpr predict -i data.csv -o results/ --threshold-method min_sensitivity
  graftexpr run --config analysis.yaml
        """
    )

    parser.add_argument(
        "--version", "-V",
        action="version",
        version="%(prog)s 0.1.0"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    from graftexpr.cli import analyze
    analyze.register_parser(subparsers)

    raw_args = list(args) if args is not None else sys.argv[1:]
    parsed_args = parser.parse_args(raw_args)

    if parsed_args.command is None:
        parser.print_help()
        return 0

    # Raw arguments let a config file tell explicit flags from defaults
    parsed_args.cli_args = raw_args[1:]
    return parsed_args.func(parsed_args)


if __name__ == "__main__":
    sys.exit(main())
