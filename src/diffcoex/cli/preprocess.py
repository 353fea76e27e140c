"""
diffcoex preprocess command - normalise raw intensities and split conditions.

Steps:
    1. Load a genes × samples intensity CSV
    2. log2 transform (non-positive values -> 0.0)
    3. Per-sample sort and mean-centring (quantile normalisation)
    4. Slice samples into condition A and condition B by position
    5. Write each condition as a header-less genes × samples CSV
    6. Optionally record the applied transforms as JSON (--provenance)

Usage:
    diffcoex preprocess --input series.csv --condition-a 1-12 --condition-b 13-24 \\
        --output-a control.csv --output-b treated.csv
"""

import argparse
import logging
from datetime import datetime
from pathlib import Path

from diffcoex.core.quality import QualityFlag, count_flagged
from diffcoex.core.transform import apply_transforms
from diffcoex.io.loaders import load_expression_csv
from diffcoex.io.writers import write_condition_matrix
from diffcoex.preprocessing import parse_index_spec, preprocessing_steps, split_conditions
from diffcoex.utils.fileio import atomic_write_json

logger = logging.getLogger(__name__)


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the preprocess subcommand."""
    parser = subparsers.add_parser(
        "preprocess",
        help="log2 + quantile normalisation, split into two conditions",
        description=(
            "Normalise a raw microarray intensity matrix and split its samples\n"
            "into the two conditions compared by the dispersion command."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Sample positions are 1-based and inclusive, counted over the data columns
of the input file: "1-12" is the first twelve samples, "1-6,13-18" two blocks.

Quantile normalisation sorts each sample's values and centres them on the
sample mean. Row order after normalisation is the within-sample rank.

Examples:
  diffcoex preprocess --input GSE1234.csv --condition-a 1-12 --condition-b 13-24 \\
      --output-a control.csv --output-b treated.csv
        """
    )

    parser.add_argument(
        "--input", "-i",
        type=Path,
        required=True,
        help="Input CSV file (gene IDs × samples, header line with sample IDs)"
    )
    parser.add_argument(
        "--condition-a",
        required=True,
        help="Sample positions of condition A, e.g. '1-12'"
    )
    parser.add_argument(
        "--condition-b",
        required=True,
        help="Sample positions of condition B, e.g. '13-24'"
    )
    parser.add_argument(
        "--output-a",
        type=Path,
        required=True,
        help="Output CSV for condition A"
    )
    parser.add_argument(
        "--output-b",
        type=Path,
        required=True,
        help="Output CSV for condition B"
    )
    parser.add_argument(
        "--orientation",
        choices=["genes_by_samples", "samples_by_genes"],
        default="genes_by_samples",
        help="Layout of the input file (default: genes_by_samples)"
    )
    parser.add_argument(
        "--lenient",
        action="store_true",
        help="Replace unparseable cells with 0.0 instead of failing"
    )
    parser.add_argument(
        "--write-header",
        action="store_true",
        help="Write sample IDs as a header line in the output files"
    )
    parser.add_argument(
        "--provenance",
        type=Path,
        default=None,
        help="Optional JSON file recording the input, sample positions and applied transforms"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Debug logging"
    )

    parser.set_defaults(func=run_preprocess)


def run_preprocess(args: argparse.Namespace) -> int:
    """Execute the preprocess command."""
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    start_time = datetime.now()
    print(f"\n{'='*70}")
    print("  Preprocessing: log2 + quantile normalisation")
    print(f"{'='*70}")
    print(f"Started: {start_time.strftime('%Y-%m-%d %H:%M:%S')}\n")

    try:
        condition_a = parse_index_spec(args.condition_a)
        condition_b = parse_index_spec(args.condition_b)
    except ValueError as e:
        print(f"ERROR: Invalid sample positions: {e}")
        return 1

    print(f"Loading: {args.input}")
    try:
        matrix = load_expression_csv(args.input, orientation=args.orientation, lenient=args.lenient)
    except (FileNotFoundError, ValueError) as e:
        print(f"ERROR: {e}")
        return 1
    print(f"Loaded: {matrix.n_genes:,} genes × {matrix.n_samples} samples")

    try:
        steps = preprocessing_steps()
        processed = apply_transforms(matrix, steps)
        matrix_a, matrix_b = split_conditions(processed, condition_a, condition_b)
    except (IndexError, ValueError) as e:
        print(f"ERROR: {e}")
        return 1

    n_substituted = count_flagged(processed.quality_flags, QualityFlag.PARSE_SUBSTITUTED)
    n_floored = count_flagged(processed.quality_flags, QualityFlag.LOG_FLOORED)
    print(f"Unparseable values substituted: {n_substituted:,}")
    print(f"Non-positive values floored:    {n_floored:,}")
    print(f"Condition A: {matrix_a.n_samples} samples, condition B: {matrix_b.n_samples} samples\n")

    try:
        write_condition_matrix(matrix_a, args.output_a, header=args.write_header)
        write_condition_matrix(matrix_b, args.output_b, header=args.write_header)
        if args.provenance is not None:
            atomic_write_json(args.provenance, {
                "input": str(args.input),
                "n_genes": processed.n_genes,
                "condition_a": [i + 1 for i in condition_a],
                "condition_b": [i + 1 for i in condition_b],
                "transforms": [step.to_dict() for step in steps],
                "parse_substituted": n_substituted,
                "log_floored": n_floored,
            })
            print(f"Wrote provenance: {args.provenance}")
    except OSError as e:
        print(f"ERROR: {e}")
        return 1

    elapsed = datetime.now() - start_time
    print(f"\nDone in {elapsed.total_seconds():.1f}s")
    return 0
