"""
Per-module comparison of within-module correlation between two conditions.

A lightweight companion to the dispersion permutation test. For one module,
all pairwise Pearson correlations among its member genes are computed in each
condition, and the two collections of correlation values are compared with a
two-sample z statistic using unpooled (Welch-type) variances:

    t = (mean_x - mean_y) / sqrt(var_x / n_x + var_y / n_y)
    p = 2 * (1 - Phi(|t|))

The p-value is a normal approximation; correlations of overlapping gene pairs
are not independent, so treat it as a ranking score rather than an exact test.

Expression is looked up by gene identifier (a mapping gene -> sample vector),
so the two conditions need not share a column layout. When conditions have
different sample counts the vectors can be truncated to a common length with
``truncate_to``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from typing import Sequence

import numpy as np
import pandas as pd
from numpy.typing import ArrayLike, NDArray
from scipy import stats

from diffcoex.core.expression import ExpressionMatrix
from diffcoex.stats.correlation import pearson_correlation

__all__ = [
    'ModuleStats',
    'expression_by_gene',
    'module_correlations',
    'welch_z_test',
    'analyze_module',
    'analyze_modules',
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModuleStats:
    """Two-sample z test of within-module correlations.

    Attributes:
        module: Module label.
        size: Number of genes assigned to the module.
        t_statistic: z statistic (condition X minus condition Y).
        p_value: Two-sided normal-approximation p-value.
        n_correlations_x: Finite correlations in condition X.
        n_correlations_y: Finite correlations in condition Y.
    """

    module: str
    size: int
    t_statistic: float
    p_value: float
    n_correlations_x: int = 0
    n_correlations_y: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def expression_by_gene(matrix: ExpressionMatrix) -> dict[str, NDArray[np.float64]]:
    """Map each gene id to its sample vector."""
    return {str(gene): matrix.data[:, j] for j, gene in enumerate(matrix.gene_ids)}


def module_correlations(
    genes: Sequence[str],
    expression: Mapping[str, ArrayLike],
    truncate_to: int | None = None,
) -> NDArray[np.float64]:
    """
    Pearson correlations of all unordered gene pairs present in ``expression``.

    Pairs are visited in ``genes`` order (i < j). Genes missing from the
    mapping are skipped. Non-finite correlations (constant genes) are dropped.

    Args:
        genes: Module members
        expression: gene id -> sample vector
        truncate_to: If set, only the first ``truncate_to`` samples are used

    Returns:
        1D array of correlation values
    """
    if truncate_to is not None and truncate_to < 2:
        raise ValueError(f"truncate_to must be >= 2, got {truncate_to}")

    vectors = []
    for gene in genes:
        if gene not in expression:
            continue
        values = np.asarray(expression[gene], dtype=np.float64)
        if truncate_to is not None:
            values = values[:truncate_to]
        vectors.append(values)

    correlations = []
    n_dropped = 0
    for i in range(len(vectors) - 1):
        for j in range(i + 1, len(vectors)):
            r = pearson_correlation(vectors[i], vectors[j])
            if np.isfinite(r):
                correlations.append(r)
            else:
                n_dropped += 1

    if n_dropped:
        logger.debug(f"Dropped {n_dropped} undefined correlation(s) from constant genes")

    return np.asarray(correlations, dtype=np.float64)


def welch_z_test(x: ArrayLike, y: ArrayLike) -> tuple[float, float]:
    """
    Two-sample z statistic with unpooled sample variances.

    Args:
        x, y: Samples to compare

    Returns:
        (t_statistic, p_value). Both NaN if either sample has fewer than two
        values or the standard error is zero.
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    if len(x) < 2 or len(y) < 2:
        return float('nan'), float('nan')

    se = np.sqrt(np.var(x, ddof=1) / len(x) + np.var(y, ddof=1) / len(y))
    if se == 0:
        return float('nan'), float('nan')

    t_stat = (np.mean(x) - np.mean(y)) / se
    p_value = 2.0 * stats.norm.sf(abs(t_stat))
    return float(t_stat), float(p_value)


def analyze_module(
    module: str,
    assignment: Mapping[str, str],
    expression_x: Mapping[str, ArrayLike],
    expression_y: Mapping[str, ArrayLike],
    truncate_to: int | None = None,
) -> ModuleStats:
    """
    Compare within-module correlations of one module between two conditions.

    Args:
        module: Module label
        assignment: gene id -> module label
        expression_x: gene id -> sample vector, condition X
        expression_y: gene id -> sample vector, condition Y
        truncate_to: Optional common sample count

    Returns:
        ModuleStats
    """
    genes = [g for g, label in assignment.items() if label == module]
    corr_x = module_correlations(genes, expression_x, truncate_to)
    corr_y = module_correlations(genes, expression_y, truncate_to)

    t_stat, p_value = welch_z_test(corr_x, corr_y)
    if np.isnan(t_stat):
        logger.warning(
            f"Module '{module}': too few correlations to test "
            f"({len(corr_x)} vs {len(corr_y)})"
        )

    return ModuleStats(
        module=module,
        size=len(genes),
        t_statistic=t_stat,
        p_value=p_value,
        n_correlations_x=len(corr_x),
        n_correlations_y=len(corr_y),
    )


def analyze_modules(
    assignment: Mapping[str, str],
    expression_x: Mapping[str, ArrayLike] | ExpressionMatrix,
    expression_y: Mapping[str, ArrayLike] | ExpressionMatrix,
    truncate_to: int | None = None,
    modules: Sequence[str] | None = None,
) -> pd.DataFrame:
    """
    Run analyze_module() for every module.

    Args:
        assignment: gene id -> module label
        expression_x, expression_y: Mappings or ExpressionMatrix per condition
        truncate_to: Optional common sample count
        modules: Labels to test (default: all, sorted)

    Returns:
        DataFrame with one row per module (columns as ModuleStats fields)
    """
    if isinstance(expression_x, ExpressionMatrix):
        expression_x = expression_by_gene(expression_x)
    if isinstance(expression_y, ExpressionMatrix):
        expression_y = expression_by_gene(expression_y)

    if modules is None:
        modules = sorted(set(assignment.values()))

    rows = [
        analyze_module(module, assignment, expression_x, expression_y, truncate_to).to_dict()
        for module in modules
    ]
    columns = [
        "module", "size", "t_statistic", "p_value", "n_correlations_x", "n_correlations_y",
    ]
    return pd.DataFrame(rows, columns=columns)
