"""
Loaders for expression matrices and module assignments.

Expression files:
    Plain CSV, first column = identifiers. The usual microarray layout is one
    probe/gene per line with samples as columns ("genes_by_samples"); files
    with one sample per line are read with orientation="samples_by_genes".
    Condition matrices written by write_condition_matrix() have no header
    line; load them with header=False and synthetic sample ids are assigned.

    Example (genes_by_samples, with header):
    ```
    probe,GSM1001,GSM1002,GSM1003
    1007_s_at,8.21,7.94,8.40
    1053_at,5.02,5.33,4.87
    ```

Module assignment files:
    Either a CSV with a header row (first column gene, second column module)
    or whitespace-separated text with one "gene module" pair per line, as
    produced by WGCNA-style colour exports:
    ```
    1007_s_at turquoise
    1053_at   red
    ```

Engineering Design:
    - Strict by default: unparseable cells are an error listing the first few
      offenders. lenient=True substitutes 0.0 and flags the cell
      PARSE_SUBSTITUTED so the substitution stays visible downstream.
    - Duplicate identifiers: warn and keep the first occurrence
    - Infinite values are always an error
"""

from __future__ import annotations

import logging
import warnings
from pathlib import Path
from typing import Literal

import numpy as np
import pandas as pd

from diffcoex.core.expression import ExpressionMatrix
from diffcoex.core.modules import ModuleAssignment
from diffcoex.core.quality import QualityFlag

__all__ = ['load_expression_csv', 'load_module_assignment']

logger = logging.getLogger(__name__)

_MAX_REPORTED_CELLS = 5


def _check_file(path: Path, kind: str) -> Path:
    if not isinstance(path, Path):
        path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"{kind} file not found: {path}")
    if not path.is_file():
        raise ValueError(f"Path is not a file: {path}")
    return path


def load_expression_csv(
    path: Path,
    orientation: Literal["genes_by_samples", "samples_by_genes"] = "genes_by_samples",
    header: bool = True,
    lenient: bool = False,
) -> ExpressionMatrix:
    """
    Load an expression CSV into a samples × genes ExpressionMatrix.

    Args:
        path: CSV file, first column = row identifiers
        orientation: "genes_by_samples" if each line is a gene (default),
            "samples_by_genes" if each line is a sample
        header: Whether the first line holds column identifiers. Without a
            header, column ids are synthesized ("sample_1"... or "gene_1"...).
        lenient: Replace unparseable cells with 0.0 (flagged
            PARSE_SUBSTITUTED) instead of raising

    Returns:
        ExpressionMatrix with rows = samples, columns = genes

    Raises:
        FileNotFoundError: If path does not exist
        ValueError: On empty files, non-numeric cells (strict mode), infinite
            values or an unknown orientation
    """
    if orientation not in ("genes_by_samples", "samples_by_genes"):
        raise ValueError(f"Unknown orientation '{orientation}'")
    path = _check_file(path, "Expression")

    try:
        raw = pd.read_csv(path, index_col=0, header=0 if header else None, dtype=str)
    except pd.errors.EmptyDataError as e:
        raise ValueError(f"CSV file is empty: {path}") from e
    except pd.errors.ParserError as e:
        raise ValueError(f"Failed to read CSV file {path}: {e}") from e

    if raw.shape[0] == 0 or raw.shape[1] == 0:
        raise ValueError(f"CSV contains no data: {path}")

    raw.index = raw.index.astype(str)
    if header:
        raw.columns = raw.columns.astype(str)
    else:
        prefix = "sample" if orientation == "genes_by_samples" else "gene"
        raw.columns = [f"{prefix}_{i + 1}" for i in range(raw.shape[1])]

    if raw.index.duplicated().any():
        n_duplicates = int(raw.index.duplicated().sum())
        warnings.warn(
            f"Found {n_duplicates} duplicate row IDs in {path.name}. "
            "Using first occurrence of each.",
            UserWarning
        )
        raw = raw[~raw.index.duplicated(keep='first')]

    if raw.columns.duplicated().any():
        n_duplicates = int(raw.columns.duplicated().sum())
        warnings.warn(
            f"Found {n_duplicates} duplicate column IDs in {path.name}. "
            "Using first occurrence of each.",
            UserWarning
        )
        raw = raw.loc[:, ~raw.columns.duplicated(keep='first')]

    numeric = raw.apply(lambda col: pd.to_numeric(col.str.strip(), errors="coerce"))
    bad = (numeric.isna() & raw.notna()).to_numpy()

    flags = np.full(numeric.shape, QualityFlag.ORIGINAL, dtype=int)
    if bad.any():
        if not lenient:
            rows, cols = np.nonzero(bad)
            examples = [
                f"row {i} ('{raw.index[i]}'), col {j} ('{raw.columns[j]}'): {raw.iat[i, j]}"
                for i, j in zip(rows[:_MAX_REPORTED_CELLS], cols[:_MAX_REPORTED_CELLS])
            ]
            raise ValueError(
                f"CSV contains {int(bad.sum())} non-numeric values:\n" +
                "\n".join(f"  - {x}" for x in examples) +
                ("\n  ..." if len(rows) > _MAX_REPORTED_CELLS else "")
            )
        numeric = numeric.mask(bad, 0.0)
        flags[bad] |= QualityFlag.PARSE_SUBSTITUTED
        logger.warning(
            f"{path.name}: {int(bad.sum())} unparseable value(s) replaced with 0.0"
        )

    data = numeric.to_numpy(dtype=np.float64)

    if np.isnan(data).any():
        n_nan = int(np.isnan(data).sum())
        warnings.warn(
            f"Found {n_nan:,} missing values ({100 * n_nan / data.size:.2f}% of data) "
            f"in {path.name}. Correlations involving these genes will be undefined.",
            UserWarning
        )

    if np.isinf(data).any():
        n_inf = int(np.isinf(data).sum())
        raise ValueError(
            f"CSV contains {n_inf} infinite values. "
            "Please clean data before loading."
        )

    if orientation == "genes_by_samples":
        return ExpressionMatrix(
            data=data.T,
            gene_ids=pd.Index(numeric.index),
            sample_ids=pd.Index(numeric.columns),
            quality_flags=flags.T,
        )
    return ExpressionMatrix(
        data=data,
        gene_ids=pd.Index(numeric.columns),
        sample_ids=pd.Index(numeric.index),
        quality_flags=flags,
    )


def _read_assignment_csv(path: Path) -> list[tuple[str, str]]:
    try:
        df = pd.read_csv(path, dtype=str)
    except pd.errors.EmptyDataError as e:
        raise ValueError(f"Module file is empty: {path}") from e

    if df.shape[1] < 2:
        raise ValueError(
            f"Module CSV needs a gene column and a module column, got {list(df.columns)}"
        )

    pairs = df.iloc[:, :2]
    incomplete = pairs.isna().any(axis=1)
    if incomplete.any():
        logger.warning(f"{path.name}: skipped {int(incomplete.sum())} row(s) with missing values")
        pairs = pairs[~incomplete]

    return [(gene.strip(), module.strip()) for gene, module in pairs.itertuples(index=False)]


def _read_assignment_text(path: Path) -> list[tuple[str, str]]:
    pairs = []
    with open(path) as handle:
        for line_number, line in enumerate(handle, start=1):
            fields = line.split()
            if not fields or fields[0].startswith("#"):
                continue
            if len(fields) != 2:
                logger.warning(
                    f"{path.name}:{line_number}: expected 'gene module', "
                    f"got {len(fields)} field(s); line skipped"
                )
                continue
            pairs.append((fields[0], fields[1]))
    return pairs


def load_module_assignment(path: Path) -> ModuleAssignment:
    """
    Load a gene -> module assignment.

    Files ending in ``.csv`` are read as CSV with a header row; anything else
    as whitespace-separated "gene module" lines. Blank lines and lines
    starting with '#' are ignored; malformed lines are skipped with a warning.
    A gene listed twice keeps its first module.

    Returns:
        ModuleAssignment

    Raises:
        FileNotFoundError: If path does not exist
        ValueError: If no valid assignment could be read
    """
    path = _check_file(path, "Module")

    if path.suffix.lower() == ".csv":
        pairs = _read_assignment_csv(path)
    else:
        pairs = _read_assignment_text(path)

    genes: dict[str, str] = {}
    n_duplicates = 0
    for gene, module in pairs:
        if gene in genes:
            n_duplicates += 1
            continue
        genes[gene] = module

    if n_duplicates:
        warnings.warn(
            f"Found {n_duplicates} duplicate gene IDs in {path.name}. "
            "Using first occurrence of each.",
            UserWarning
        )

    if not genes:
        raise ValueError(f"No module assignments found in {path}")

    assignment = ModuleAssignment(genes)
    logger.info(f"Loaded {len(assignment)} genes in {len(assignment.labels())} modules from {path.name}")
    return assignment
