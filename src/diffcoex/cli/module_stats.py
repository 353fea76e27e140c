"""
diffcoex module-stats command - per-module correlation shift test.

For each module, all pairwise Pearson correlations among member genes are
computed in both conditions, and the two sets are compared with a
two-sample z statistic. Quicker than the dispersion permutation test and
limited to within-module structure.

Usage:
    diffcoex module-stats --condition-x control.csv --condition-y treated.csv \\
        --modules modules.txt --output module_stats.csv --equalize-samples
"""

import argparse
import logging
from pathlib import Path

from diffcoex.cli._validators import _positive_int
from diffcoex.io.loaders import load_expression_csv, load_module_assignment
from diffcoex.io.writers import write_module_stats
from diffcoex.stats.module_stats import analyze_modules

logger = logging.getLogger(__name__)


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the module-stats subcommand."""
    parser = subparsers.add_parser(
        "module-stats",
        help="Per-module z test of within-module correlations",
        description=(
            "Compare the distribution of within-module gene-gene correlations\n"
            "between two conditions, one module at a time."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Genes are matched by ID, so the two condition files may list genes in any
order. The p-value is a normal approximation and correlations of overlapping
gene pairs are not independent: use it to rank modules.

Examples:
  diffcoex module-stats --condition-x a.csv --condition-y b.csv \\
      --modules modules.csv --output results/module_stats.csv --truncate 11
        """
    )

    parser.add_argument(
        "--condition-x",
        type=Path,
        required=True,
        help="Condition X CSV (genes × samples)"
    )
    parser.add_argument(
        "--condition-y",
        type=Path,
        required=True,
        help="Condition Y CSV (genes × samples)"
    )
    parser.add_argument(
        "--modules", "-m",
        type=Path,
        required=True,
        help="Gene -> module assignment file"
    )
    parser.add_argument(
        "--output", "-o",
        type=Path,
        required=True,
        help="Output CSV"
    )

    samples = parser.add_mutually_exclusive_group()
    samples.add_argument(
        "--truncate",
        type=_positive_int,
        default=None,
        help="Use only the first N samples of each condition"
    )
    samples.add_argument(
        "--equalize-samples",
        action="store_true",
        help="Truncate both conditions to the smaller sample count"
    )

    parser.add_argument(
        "--header",
        action="store_true",
        help="Condition files have a header line with sample IDs"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Debug logging"
    )

    parser.set_defaults(func=run_module_stats)


def run_module_stats(args: argparse.Namespace) -> int:
    """Execute the module-stats command."""
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    try:
        condition_x = load_expression_csv(args.condition_x, header=args.header)
        condition_y = load_expression_csv(args.condition_y, header=args.header)
        assignment = load_module_assignment(args.modules)
    except (FileNotFoundError, ValueError) as e:
        print(f"ERROR: {e}")
        return 1

    truncate_to = args.truncate
    if args.equalize_samples:
        truncate_to = min(condition_x.n_samples, condition_y.n_samples)
    if truncate_to is not None:
        print(f"Using the first {truncate_to} samples of each condition")

    try:
        stats = analyze_modules(assignment, condition_x, condition_y, truncate_to=truncate_to)
    except ValueError as e:
        print(f"ERROR: {e}")
        return 1

    print(f"\n  {'module':<16} {'size':>6} {'t':>9} {'p':>10}")
    for row in stats.itertuples(index=False):
        print(f"  {row.module:<16} {row.size:>6} {row.t_statistic:>9.3f} {row.p_value:>10.3g}")
    print()

    try:
        write_module_stats(stats, args.output)
    except OSError as e:
        print(f"ERROR: {e}")
        return 1
    return 0
