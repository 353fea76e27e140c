"""
diffcoex dispersion command - DiffCoEx module dispersion with permutation test.

For every pair of modules, the dispersion measures how much the Spearman
correlations between member genes change from condition A to condition B.
Its significance is estimated by re-splitting the pooled samples at random
(keeping group sizes) and counting how often the permuted dispersion reaches
the observed one.

Usage:
    diffcoex dispersion --condition-a control.csv --condition-b treated.csv \\
        --modules modules.txt --output results/run --permutations 1000 --seed 42
    diffcoex dispersion --config run.yaml --workers 8
"""

import argparse
import logging
from datetime import datetime
from pathlib import Path

import numpy as np

from diffcoex.cli._validators import _non_negative_int, _positive_int, _probability
from diffcoex.io.loaders import load_expression_csv, load_module_assignment
from diffcoex.io.writers import write_dispersion_report
from diffcoex.stats.correlation import TIE_METHODS
from diffcoex.stats.differential_coexpression import run_differential_coexpression

logger = logging.getLogger(__name__)


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the dispersion subcommand."""
    parser = subparsers.add_parser(
        "dispersion",
        help="Module-pair dispersion with permutation p-values",
        description=(
            "Differential co-expression between two conditions at the level of\n"
            "gene modules (Tesson et al., BMC Bioinformatics 2010)."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Inputs:
  Condition files as written by 'diffcoex preprocess': one gene per line,
  gene ID first, same genes in the same order in both files. Module file:
  'gene module' per line (whitespace separated) or a CSV with a header.

Outputs ({output}.*):
  dispersion.csv  observed dispersion (module × module)
  counts.csv      permutations with dispersion >= observed
  pvalues.csv     empirical p-values
  qvalues.csv     adjusted p-values (with --fdr)
  summary.json    parameters and all tables

Examples:
  diffcoex dispersion --condition-a a.csv --condition-b b.csv --modules modules.txt \\
      --output results/a_vs_b --permutations 5000 --seed 1 --workers 4 --fdr BH
        """
    )

    parser.add_argument(
        "--condition-a",
        type=Path,
        default=None,
        help="Condition A CSV (genes × samples)"
    )
    parser.add_argument(
        "--condition-b",
        type=Path,
        default=None,
        help="Condition B CSV (genes × samples)"
    )
    parser.add_argument(
        "--modules", "-m",
        type=Path,
        default=None,
        help="Gene -> module assignment file"
    )
    parser.add_argument(
        "--output", "-o",
        type=Path,
        default=None,
        help="Output base path (without extension)"
    )
    parser.add_argument(
        "--permutations", "-n",
        type=_positive_int,
        default=1000,
        help="Number of permutation trials (default: 1000)"
    )
    parser.add_argument(
        "--seed",
        type=_non_negative_int,
        default=None,
        help="Random seed; record it to reproduce a run"
    )
    parser.add_argument(
        "--workers", "-j",
        type=_positive_int,
        default=1,
        help="Worker threads for permutation trials (default: 1)"
    )
    parser.add_argument(
        "--ties",
        choices=list(TIE_METHODS),
        default="ordinal",
        help="Rank tie handling for Spearman correlation (default: ordinal)"
    )
    parser.add_argument(
        "--module-labels",
        nargs="+",
        default=None,
        help="Restrict the analysis to these modules"
    )
    parser.add_argument(
        "--fdr",
        choices=["BH", "BY", "bonferroni"],
        default=None,
        help="Also write adjusted p-values with this method"
    )
    parser.add_argument(
        "--alpha",
        type=_probability,
        default=0.05,
        help="Significance threshold for the printed summary (default: 0.05)"
    )
    parser.add_argument(
        "--header",
        action="store_true",
        help="Condition files have a header line with sample IDs"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML/JSON config file (CLI flags override config values)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Debug logging"
    )

    parser.set_defaults(func=run_dispersion)


def _print_top_pairs(result, alpha: float, limit: int = 10) -> None:
    table = result.summary.to_long()
    # Each unordered pair once
    labels = list(result.dispersion.index)
    position = {label: i for i, label in enumerate(labels)}
    table = table[[position[a] <= position[b] for a, b in zip(table["module_a"], table["module_b"])]]
    table = table.dropna(subset=["pvalue"]).sort_values(["pvalue", "dispersion"], ascending=[True, False])

    n_significant = int((table["pvalue"] < alpha).sum())
    print(f"Module pairs with p < {alpha}: {n_significant} of {len(table)}")
    if table.empty:
        return

    print(f"\n  {'module_a':<16} {'module_b':<16} {'dispersion':>10} {'p':>8}")
    for row in table.head(limit).itertuples(index=False):
        print(f"  {row.module_a:<16} {row.module_b:<16} {row.dispersion:>10.4f} {row.pvalue:>8.4f}")


def run_dispersion(args: argparse.Namespace) -> int:
    """Execute the dispersion command."""
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    if args.config:
        from diffcoex.cli.config import load_config, merge_config_with_args, validate_config

        print(f"Loading configuration from: {args.config}")
        try:
            config = load_config(args.config)
            validate_config(config)
            args = merge_config_with_args(config, args, getattr(args, "raw_args", None))
            print("  Configuration loaded successfully")
        except (FileNotFoundError, ValueError) as e:
            print(f"ERROR: Config file error: {e}")
            return 1

    # Validate required arguments (after config merge)
    for name, flag in (
        ("condition_a", "--condition-a"),
        ("condition_b", "--condition-b"),
        ("modules", "--modules"),
        ("output", "--output"),
    ):
        if getattr(args, name) is None:
            print(f"ERROR: {flag} is required (via CLI or config file)")
            return 1

    start_time = datetime.now()
    print(f"\n{'='*70}")
    print("  Module Differential Co-expression (dispersion permutation test)")
    print(f"{'='*70}")
    print(f"Started: {start_time.strftime('%Y-%m-%d %H:%M:%S')}\n")

    try:
        condition_a = load_expression_csv(Path(args.condition_a), header=args.header)
        condition_b = load_expression_csv(Path(args.condition_b), header=args.header)
        assignment = load_module_assignment(Path(args.modules))
    except (FileNotFoundError, ValueError) as e:
        print(f"ERROR: {e}")
        return 1

    print(f"Condition A: {condition_a.n_genes:,} genes × {condition_a.n_samples} samples")
    print(f"Condition B: {condition_b.n_genes:,} genes × {condition_b.n_samples} samples")
    print(f"Modules: {len(assignment.labels())} ({len(assignment):,} assigned genes)")
    print(f"Permutations: {args.permutations}, seed: {args.seed}, workers: {args.workers}, ties: {args.ties}\n")

    if args.module_labels:
        unknown = sorted(set(args.module_labels) - set(assignment.labels()))
        if unknown:
            print(f"ERROR: Unknown module label(s): {', '.join(unknown)}")
            return 1

    try:
        result = run_differential_coexpression(
            condition_a,
            condition_b,
            assignment,
            n_permutations=int(args.permutations),
            seed=args.seed,
            labels=args.module_labels,
            ties=args.ties,
            n_workers=int(args.workers),
        )
    except (TypeError, ValueError) as e:
        print(f"ERROR: {e}")
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted; no report written")
        return 130

    n_undefined = int(np.isnan(result.dispersion.to_numpy()).sum())
    if n_undefined:
        print(f"WARNING: {n_undefined} module pair(s) have undefined dispersion (constant genes)")

    print()
    _print_top_pairs(result, args.alpha)
    print()

    try:
        write_dispersion_report(result, Path(args.output), fdr=args.fdr)
    except OSError as e:
        print(f"ERROR: Failed to write report: {e}")
        return 1

    elapsed = datetime.now() - start_time
    print(f"\nDone in {elapsed.total_seconds():.1f}s")
    return 0
