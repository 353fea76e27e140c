"""
Module assignments and module column selection.

A module assignment maps gene identifiers to module labels (conventionally
colour names such as "turquoise" or "red") produced by an upstream clustering
step. It is passed explicitly to every computation that needs it; nothing in
this package reads module membership from shared state.

Genes missing from the assignment belong to no module and are ignored by all
module-based statistics.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Iterator, Sequence

import numpy as np
import pandas as pd

from diffcoex.core.expression import ExpressionMatrix

__all__ = ['ModuleAssignment', 'module_indices', 'columns_for_module']


class ModuleAssignment(Mapping):
    """
    Immutable gene id -> module label mapping.

    Behaves as a read-only ``Mapping[str, str]``. Insertion order of the source
    mapping is preserved for iteration.

    Examples:
        >>> assignment = ModuleAssignment({"g1": "red", "g2": "red", "g3": "blue"})
        >>> assignment.labels()
        ['blue', 'red']
        >>> assignment.members("red", ["g3", "g2", "g1"])
        ['g2', 'g1']
    """

    def __init__(self, mapping: Mapping[str, str] | Sequence[tuple[str, str]]):
        items = mapping.items() if isinstance(mapping, Mapping) else mapping
        genes: dict[str, str] = {}
        for gene, label in items:
            genes[str(gene)] = str(label)
        self._genes = genes

    def __getitem__(self, gene: str) -> str:
        return self._genes[gene]

    def __iter__(self) -> Iterator[str]:
        return iter(self._genes)

    def __len__(self) -> int:
        return len(self._genes)

    def __hash__(self) -> int:
        return hash(tuple(self._genes.items()))

    def labels(self) -> list[str]:
        """Unique module labels, sorted."""
        return sorted(set(self._genes.values()))

    def sizes(self) -> dict[str, int]:
        """Number of assigned genes per label (regardless of any matrix)."""
        counts: dict[str, int] = {}
        for label in self._genes.values():
            counts[label] = counts.get(label, 0) + 1
        return dict(sorted(counts.items()))

    def members(self, label: str, gene_ids: Sequence[str] | pd.Index | None = None) -> list[str]:
        """
        Genes assigned to ``label``.

        Args:
            label: Module label
            gene_ids: If given, restrict to these genes and return them in this order.
                Otherwise return assignment order.
        """
        if gene_ids is None:
            return [g for g, lab in self._genes.items() if lab == label]
        return [str(g) for g in gene_ids if self._genes.get(str(g)) == label]

    def restrict(self, gene_ids: Sequence[str] | pd.Index) -> ModuleAssignment:
        """Assignment limited to genes present in ``gene_ids``."""
        present = {str(g) for g in gene_ids}
        return ModuleAssignment({g: lab for g, lab in self._genes.items() if g in present})

    def to_series(self) -> pd.Series:
        return pd.Series(self._genes, name="module", dtype=object).rename_axis("gene")

    def __repr__(self) -> str:
        return f"ModuleAssignment({len(self)} genes, {len(self.labels())} modules)"


def module_indices(
    gene_ids: Sequence[str] | pd.Index,
    assignment: Mapping[str, str],
    label: str,
) -> np.ndarray:
    """Column positions (ascending) of genes assigned to ``label``."""
    return np.array(
        [j for j, gene in enumerate(gene_ids) if assignment.get(str(gene)) == label],
        dtype=np.intp,
    )


def columns_for_module(
    matrix: ExpressionMatrix | np.ndarray,
    assignment: Mapping[str, str],
    label: str,
    gene_ids: Sequence[str] | pd.Index | None = None,
) -> np.ndarray:
    """
    Select the member columns of one module.

    Columns are returned in gene-id order, which is the column order of the
    matrix. A module with no members in the matrix yields an array of shape
    ``(n_samples, 0)``; callers treat that as a defined edge case.

    Args:
        matrix: ExpressionMatrix, or a plain samples × genes array together
            with ``gene_ids``
        assignment: gene id -> module label
        label: Module to select
        gene_ids: Column identifiers, required for plain arrays

    Returns:
        Array (n_samples, n_members) whose columns are the member vectors
    """
    if isinstance(matrix, ExpressionMatrix):
        data = matrix.data
        if gene_ids is None:
            gene_ids = matrix.gene_ids
    else:
        data = np.asarray(matrix, dtype=np.float64)
        if gene_ids is None:
            raise ValueError("gene_ids are required when selecting from a plain array")

    if data.ndim != 2:
        raise ValueError(f"Expected 2D array, got shape {data.shape}")
    if len(gene_ids) != data.shape[1]:
        raise ValueError(
            f"gene_ids length ({len(gene_ids)}) must match matrix columns ({data.shape[1]})"
        )

    return data[:, module_indices(gene_ids, assignment, label)]
