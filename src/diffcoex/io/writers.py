"""
Writers for condition matrices and analysis reports.

Condition matrices are written in the layout the dispersion command reads
back: one gene per line, gene id first, samples as columns, no header by
default.

Dispersion reports are a set of files sharing one base path:

    {base}.dispersion.csv  observed dispersion, module × module
    {base}.counts.csv      permutation trials with dispersion >= observed
    {base}.pvalues.csv     empirical p-values (counts / n_permutations)
    {base}.qvalues.csv     FDR-adjusted p-values (only when requested)
    {base}.summary.json    run parameters, module sizes and all of the above

All files are written atomically (see diffcoex.utils.fileio), so a report
directory never holds a truncated file next to complete ones.

Examples:
    >>> write_dispersion_report(result, Path("results/gse1234"), fdr="BH")
    Wrote dispersion report to results/gse1234.{dispersion,counts,pvalues,qvalues}.csv
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

import numpy as np
import pandas as pd
from numpy.typing import ArrayLike, NDArray
from statsmodels.stats.multitest import multipletests

from diffcoex.core.expression import ExpressionMatrix
from diffcoex.stats.differential_coexpression import DifferentialCoexpressionResult
from diffcoex.utils.fileio import atomic_write_frame, atomic_write_json

__all__ = [
    'adjust_pvalues',
    'write_condition_matrix',
    'write_dispersion_report',
    'write_module_stats',
]

FdrMethod = Literal["BH", "BY", "bonferroni"]

_METHOD_MAP = {"BH": "fdr_bh", "BY": "fdr_by", "bonferroni": "bonferroni"}


def adjust_pvalues(
    pvalues: ArrayLike,
    method: FdrMethod = "BH",
) -> NDArray[np.float64]:
    """
    Multiple-testing adjustment of a flat p-value array.

    NaN p-values are excluded from the correction and stay NaN.

    Args:
        pvalues: Raw p-values
        method: "BH" (Benjamini-Hochberg), "BY" (Benjamini-Yekutieli) or
            "bonferroni"

    Returns:
        Adjusted p-values, same shape as the input
    """
    if method not in _METHOD_MAP:
        raise ValueError(f"Unknown adjustment method '{method}', expected one of {list(_METHOD_MAP)}")

    pvalues = np.asarray(pvalues, dtype=np.float64)
    valid_mask = ~np.isnan(pvalues)
    adj_pvals = np.full_like(pvalues, np.nan)

    if not np.any(valid_mask):
        return adj_pvals

    _, adj_pvals[valid_mask], _, _ = multipletests(
        pvalues[valid_mask],
        method=_METHOD_MAP[method],
    )
    return adj_pvals


def _adjust_symmetric(pvalues: pd.DataFrame, method: FdrMethod) -> pd.DataFrame:
    """Adjust each unordered module pair once and mirror the result."""
    values = pvalues.to_numpy(dtype=np.float64)
    upper = np.triu_indices(values.shape[0])
    adjusted = np.full_like(values, np.nan)
    adjusted[upper] = adjust_pvalues(values[upper], method)
    adjusted.T[upper] = adjusted[upper]
    return pd.DataFrame(adjusted, index=pvalues.index, columns=pvalues.columns)


def write_condition_matrix(
    matrix: ExpressionMatrix,
    path: Path,
    header: bool = False,
) -> None:
    """
    Write one condition as a genes × samples CSV.

    Args:
        matrix: Samples × genes matrix
        path: Output file
        header: Write sample ids as a header line

    Raises:
        TypeError: If matrix is not an ExpressionMatrix
        ValueError: If matrix is empty
        OSError: If the file cannot be written
    """
    if not isinstance(matrix, ExpressionMatrix):
        raise TypeError(f"matrix must be ExpressionMatrix, got {type(matrix)}")
    if matrix.n_samples == 0 or matrix.n_genes == 0:
        raise ValueError(f"Cannot write empty matrix (shape {matrix.shape})")

    path = Path(path)
    frame = matrix.to_frame().T
    frame.index.name = "gene"
    try:
        atomic_write_frame(path, frame, header=header)
    except OSError as e:
        raise OSError(f"Failed to write condition matrix {path}: {e}") from e
    print(f"Wrote {matrix.n_genes} genes × {matrix.n_samples} samples to {path}")


def write_dispersion_report(
    result: DifferentialCoexpressionResult,
    output_base: Path,
    fdr: FdrMethod | None = None,
) -> dict[str, Path]:
    """
    Write a dispersion permutation-test result.

    Args:
        result: Output of run_differential_coexpression()
        output_base: Base path (without extension)
        fdr: Optional adjustment method for an additional q-value table.
            Each unordered module pair is one test.

    Returns:
        Mapping of report part -> written path
    """
    output_base = Path(output_base)
    base = str(output_base)

    tables = {
        "dispersion": result.dispersion,
        "counts": result.exceed_counts,
        "pvalues": result.pvalues,
    }
    if fdr is not None:
        tables["qvalues"] = _adjust_symmetric(result.pvalues, fdr)

    written: dict[str, Path] = {}
    for part, table in tables.items():
        path = Path(f"{base}.{part}.csv")
        atomic_write_frame(path, table)
        written[part] = path

    summary = result.to_dict()
    if fdr is not None:
        summary["fdr_method"] = fdr
        summary["qvalues"] = {
            str(row): {
                str(col): (None if pd.isna(val) else float(val))
                for col, val in tables["qvalues"].loc[row].items()
            }
            for row in tables["qvalues"].index
        }
    summary_path = Path(f"{base}.summary.json")
    atomic_write_json(summary_path, summary)
    written["summary"] = summary_path

    print(f"Wrote dispersion report to {base}.{{{','.join(tables)}}}.csv")
    print(f"Wrote run summary to {summary_path}")
    return written


def write_module_stats(stats: pd.DataFrame, path: Path) -> None:
    """
    Write per-module correlation test results (one row per module).

    Raises:
        TypeError: If stats is not a DataFrame
    """
    if not isinstance(stats, pd.DataFrame):
        raise TypeError(f"stats must be DataFrame, got {type(stats)}")

    path = Path(path)
    atomic_write_frame(path, stats, index=False)
    print(f"Wrote statistics for {len(stats)} modules to {path}")
