"""
diffcoex CLI - Command-line interface for module-level differential co-expression.

Commands:
    diffcoex preprocess    - log2 + quantile normalisation, split into conditions
    diffcoex dispersion    - DiffCoEx module dispersion with permutation test
    diffcoex module-stats  - Per-module comparison of within-module correlations
"""

import argparse
import sys
from typing import Optional, List


def main(args: Optional[List[str]] = None) -> int:
    """Main CLI dispatcher for diffcoex."""
    parser = argparse.ArgumentParser(
        prog="diffcoex",
        description="Module-level differential co-expression between two conditions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  preprocess    log2 + quantile normalisation, split samples into two conditions
  dispersion    Module-pair dispersion with permutation p-values (DiffCoEx)
  module-stats  Per-module z test of within-module correlations

Examples:
  diffcoex preprocess --input series_matrix.csv --condition-a 1-12 --condition-b 13-24 \\
      --output-a control.csv --output-b treated.csv
  diffcoex dispersion --condition-a control.csv --condition-b treated.csv \\
      --modules modules.txt --output results/run --permutations 1000 --seed 42
  diffcoex module-stats --condition-x control.csv --condition-y treated.csv \\
      --modules modules.txt --output results/module_stats.csv
        """
    )

    parser.add_argument(
        "--version", "-V",
        action="version",
        version="%(prog)s 0.1.0"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    from diffcoex.cli import preprocess, dispersion, module_stats
    preprocess.register_parser(subparsers)
    dispersion.register_parser(subparsers)
    module_stats.register_parser(subparsers)

    raw_args = list(sys.argv[1:] if args is None else args)
    parsed_args = parser.parse_args(raw_args)

    if parsed_args.command is None:
        parser.print_help()
        return 0

    # Raw arguments let config merging tell explicit flags from defaults
    parsed_args.raw_args = raw_args[1:]

    return parsed_args.func(parsed_args)


if __name__ == "__main__":
    sys.exit(main())
