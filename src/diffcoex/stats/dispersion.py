"""
Module-to-module dispersion of rank correlation between two conditions.

For genes g_i, g_j let c1(i, j) and c2(i, j) be their Spearman correlations in
condition 1 and condition 2. The dispersion between modules A and B is the
root-mean-square change of those correlations over the relevant gene pairs:

    Same module (A == B), n members, all unordered pairs i < j:

        d(A, A) = sqrt( (Σ (c1 - c2)² / 2) / C(n, 2) )

    Different modules, n1 members of A, n2 members of B, all n1·n2 pairs:

        d(A, B) = sqrt( Σ (c1 - c2)² / (n1 · n2) )

A module with fewer than two members has no within-module pairs and a module
pair with an empty side has no cross pairs; both give 0.0 rather than an error
because small and singleton modules are routine in real assignments.

NaN correlations (a gene constant within one condition) propagate: the
dispersion of any module pair involving such a gene is NaN.

References:
    Tesson BM, Breitling R, Jansen RC (2010). DiffCoEx: a simple and sensitive
    method to find differentially coexpressed gene modules.
    BMC Bioinformatics 11:497.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Sequence

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from diffcoex.core.expression import ExpressionMatrix
from diffcoex.core.modules import columns_for_module, module_indices
from diffcoex.stats.correlation import TieMethod, spearman_cross, spearman_matrix

__all__ = [
    'check_aligned',
    'dispersion',
    'dispersion_from_correlations',
    'dispersion_matrix',
    'dispersion_values',
]

logger = logging.getLogger(__name__)


def check_aligned(condition1: ExpressionMatrix, condition2: ExpressionMatrix) -> None:
    """
    Require two condition matrices to describe the same genes in the same order.

    Raises:
        TypeError: If either input is not an ExpressionMatrix
        ValueError: If gene counts or identifiers differ
    """
    for name, matrix in (("condition1", condition1), ("condition2", condition2)):
        if not isinstance(matrix, ExpressionMatrix):
            raise TypeError(f"{name} must be ExpressionMatrix, got {type(matrix)}")
    if condition1.n_genes != condition2.n_genes:
        raise ValueError(
            f"Condition matrices must have the same number of genes, "
            f"got {condition1.n_genes} and {condition2.n_genes}"
        )
    if not condition1.gene_ids.equals(condition2.gene_ids):
        raise ValueError("Condition matrices must have identical gene identifiers in the same order")


def dispersion_from_correlations(
    corr1: NDArray[np.float64],
    corr2: NDArray[np.float64],
    same_module: bool,
) -> float:
    """
    Dispersion from the correlation blocks of one module pair.

    Args:
        corr1: Correlations in condition 1. Square (n × n) for a same-module
            pair, (n1 × n2) otherwise.
        corr2: Matching block for condition 2
        same_module: Whether the block is a within-module block

    Returns:
        Non-negative dispersion, 0.0 when there are no gene pairs, or NaN
    """
    if corr1.shape != corr2.shape:
        raise ValueError(f"Correlation blocks differ in shape: {corr1.shape} vs {corr2.shape}")

    if same_module:
        n = corr1.shape[0]
        if n < 2:
            return 0.0
        upper = np.triu_indices(n, k=1)
        diff = corr1[upper] - corr2[upper]
        n_pairs = n * (n - 1) / 2.0
        return float(np.sqrt((np.sum(diff * diff) / 2.0) / n_pairs))

    n1, n2 = corr1.shape
    if n1 == 0 or n2 == 0:
        return 0.0
    diff = corr1 - corr2
    return float(np.sqrt(np.sum(diff * diff) / (n1 * n2)))


def dispersion(
    module_a: str,
    module_b: str,
    condition1: ExpressionMatrix,
    condition2: ExpressionMatrix,
    assignment: Mapping[str, str],
    ties: TieMethod = "ordinal",
) -> float:
    """
    Dispersion statistic between two modules across two conditions.

    Correlations are computed within each condition separately, so the
    conditions may have different sample counts but must share genes.

    Args:
        module_a: First module label
        module_b: Second module label (equal to module_a for the within-module case)
        condition1: Samples × genes matrix of the first condition
        condition2: Samples × genes matrix of the second condition
        assignment: gene id -> module label
        ties: Rank tie handling passed to the Spearman correlation

    Returns:
        float >= 0 (or NaN if a member gene is constant within a condition)

    Raises:
        ValueError: If the conditions are not gene-aligned

    Examples:
        >>> d = dispersion("red", "red", healthy, disease, assignment)
        >>> d_rb = dispersion("red", "blue", healthy, disease, assignment)
    """
    check_aligned(condition1, condition2)

    if module_a == module_b:
        corr1 = spearman_matrix(columns_for_module(condition1, assignment, module_a), ties)
        corr2 = spearman_matrix(columns_for_module(condition2, assignment, module_a), ties)
        return dispersion_from_correlations(corr1, corr2, same_module=True)

    corr1 = spearman_cross(
        columns_for_module(condition1, assignment, module_a),
        columns_for_module(condition1, assignment, module_b),
        ties,
    )
    corr2 = spearman_cross(
        columns_for_module(condition2, assignment, module_a),
        columns_for_module(condition2, assignment, module_b),
        ties,
    )
    return dispersion_from_correlations(corr1, corr2, same_module=False)


def _module_blocks(
    gene_ids: pd.Index,
    assignment: Mapping[str, str],
    labels: Sequence[str],
) -> tuple[NDArray[np.intp], dict[str, slice]]:
    """Column indices of all module members, grouped by label, and each label's slice."""
    chunks = []
    slices: dict[str, slice] = {}
    start = 0
    for label in labels:
        idx = module_indices(gene_ids, assignment, label)
        chunks.append(idx)
        slices[label] = slice(start, start + len(idx))
        start += len(idx)
    columns = np.concatenate(chunks) if chunks else np.array([], dtype=np.intp)
    return columns.astype(np.intp), slices


def dispersion_values(
    condition1: ExpressionMatrix,
    condition2: ExpressionMatrix,
    assignment: Mapping[str, str],
    labels: Sequence[str],
    ties: TieMethod = "ordinal",
) -> NDArray[np.float64]:
    """Label × label array of dispersions, without alignment checks or logging."""
    columns, slices = _module_blocks(condition1.gene_ids, assignment, labels)
    corr1 = spearman_matrix(condition1.data[:, columns], ties)
    corr2 = spearman_matrix(condition2.data[:, columns], ties)

    values = np.zeros((len(labels), len(labels)))
    for i, label_a in enumerate(labels):
        rows = slices[label_a]
        for j, label_b in enumerate(labels):
            cols = slices[label_b]
            values[i, j] = dispersion_from_correlations(
                corr1[rows, cols], corr2[rows, cols], same_module=(label_a == label_b)
            )
    return values


def dispersion_matrix(
    condition1: ExpressionMatrix,
    condition2: ExpressionMatrix,
    assignment: Mapping[str, str],
    labels: Sequence[str] | None = None,
    ties: TieMethod = "ordinal",
) -> pd.DataFrame:
    """
    Dispersion for every ordered pair of module labels.

    Ranks and correlations of all module genes are computed once per
    condition; each cell is then evaluated on its correlation blocks with the
    same formula as dispersion().

    Args:
        condition1, condition2: Gene-aligned samples × genes matrices
        assignment: gene id -> module label
        labels: Module labels (rows/columns of the result). Defaults to the
            sorted unique labels of the assignment.
        ties: Rank tie handling

    Returns:
        Square DataFrame indexed and columned by label
    """
    check_aligned(condition1, condition2)

    if labels is None:
        labels = sorted(set(assignment.values()))
    labels = list(labels)

    values = dispersion_values(condition1, condition2, assignment, labels, ties)

    n_nan = int(np.isnan(values).sum())
    if n_nan:
        logger.warning(
            f"{n_nan} module pair(s) have undefined dispersion "
            f"(a member gene is constant within a condition)"
        )

    return pd.DataFrame(values, index=pd.Index(labels, name="module"), columns=pd.Index(labels, name="module"))
