"""
End-to-end module-level differential co-expression test.

Pipeline:
    1. Observed dispersion for every module pair on the real conditions
    2. Pool both conditions and z-score each gene once
    3. Draw permutations of the pooled samples from a seeded generator
    4. Dispersion for every module pair on every permutation (null)
    5. Empirical p-value per module pair

Inputs must already be preprocessed (log2 + normalisation) and gene-aligned.
"""

from __future__ import annotations

import logging
import threading
import warnings
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Callable, Sequence

import numpy as np
import pandas as pd

from diffcoex.core.expression import ExpressionMatrix
from diffcoex.stats.correlation import TieMethod
from diffcoex.stats.dispersion import check_aligned, dispersion_matrix
from diffcoex.stats.permutation import (
    NullDistribution,
    build_null_distribution,
    generate_permutations,
)
from diffcoex.stats.scaling import combine_conditions
from diffcoex.stats.significance import SignificanceSummary, summarize_significance

__all__ = ['DifferentialCoexpressionResult', 'run_differential_coexpression']

logger = logging.getLogger(__name__)


@dataclass
class DifferentialCoexpressionResult:
    """Result of run_differential_coexpression().

    Attributes:
        summary: Observed dispersion, exceedance counts and p-values.
        null: Full permutation null distribution.
        n_samples_a: Samples in condition A.
        n_samples_b: Samples in condition B.
        module_sizes: Member genes per module present in the data.
        seed: Seed used for the permutation generator (None if unseeded).
        ties: Rank tie handling used.
    """

    summary: SignificanceSummary
    null: NullDistribution
    n_samples_a: int
    n_samples_b: int
    module_sizes: dict[str, int] = field(default_factory=dict)
    seed: int | None = None
    ties: str = "ordinal"

    @property
    def dispersion(self) -> pd.DataFrame:
        return self.summary.dispersion

    @property
    def pvalues(self) -> pd.DataFrame:
        return self.summary.pvalues

    @property
    def exceed_counts(self) -> pd.DataFrame:
        return self.summary.exceed_counts

    def to_dict(self) -> dict:
        """Serialize to JSON-compatible dict (without the raw null values)."""
        null_means = None
        if self.null.n_trials:
            with warnings.catch_warnings():
                warnings.simplefilter("ignore", RuntimeWarning)
                null_means = np.nanmean(self.null.values, axis=2)
        result = self.summary.to_dict()
        result.update({
            "n_samples_a": self.n_samples_a,
            "n_samples_b": self.n_samples_b,
            "module_sizes": dict(self.module_sizes),
            "seed": self.seed,
            "ties": self.ties,
        })
        if null_means is not None:
            result["null_mean"] = {
                a: {
                    b: (None if np.isnan(null_means[i, j]) else float(null_means[i, j]))
                    for j, b in enumerate(self.null.labels)
                }
                for i, a in enumerate(self.null.labels)
            }
        return result


def run_differential_coexpression(
    condition_a: ExpressionMatrix,
    condition_b: ExpressionMatrix,
    assignment: Mapping[str, str],
    n_permutations: int = 1000,
    seed: int | None = None,
    labels: Sequence[str] | None = None,
    ties: TieMethod = "ordinal",
    n_workers: int = 1,
    cancel_event: threading.Event | None = None,
    progress: Callable[[int, int], None] | None = None,
) -> DifferentialCoexpressionResult:
    """
    Permutation test of module dispersion between two conditions.

    Args:
        condition_a: Samples × genes matrix, condition A
        condition_b: Samples × genes matrix, condition B (same genes, same order)
        assignment: gene id -> module label
        n_permutations: Number of permutation trials
        seed: Seed for np.random.default_rng; pass it to reproduce a run
        labels: Modules to test (default: all labels of the assignment)
        ties: Rank tie handling for Spearman correlation
        n_workers: Threads used to evaluate permutation trials
        cancel_event: Set to abort the permutation loop (PermutationCancelled)
        progress: Optional callback(n_completed, n_permutations)

    Returns:
        DifferentialCoexpressionResult

    Raises:
        ValueError: If conditions are not gene-aligned or no module has
            members in the data
    """
    check_aligned(condition_a, condition_b)
    if n_permutations < 0:
        raise ValueError(f"n_permutations must be non-negative, got {n_permutations}")

    if labels is None:
        labels = sorted(set(assignment.values()))
    labels = list(labels)

    gene_set = {str(g) for g in condition_a.gene_ids}
    module_sizes = {
        label: sum(1 for g, lab in assignment.items() if lab == label and g in gene_set)
        for label in labels
    }
    if not any(module_sizes.values()):
        raise ValueError(
            "None of the module genes are present in the expression data "
            f"({len(assignment)} assigned genes, {condition_a.n_genes} genes in data)"
        )

    n_unassigned = sum(1 for g in gene_set if g not in assignment)
    logger.info(
        f"Differential co-expression: {len(labels)} modules, "
        f"{condition_a.n_samples} vs {condition_b.n_samples} samples, "
        f"{condition_a.n_genes} genes ({n_unassigned} without module)"
    )

    observed = dispersion_matrix(condition_a, condition_b, assignment, labels=labels, ties=ties)

    pooled = combine_conditions(condition_a, condition_b)

    rng = np.random.default_rng(seed)
    permutations = generate_permutations(
        condition_a.n_samples, condition_b.n_samples, n_permutations, rng
    )

    logger.info(f"Building null distribution: {n_permutations} permutations, {n_workers} worker(s)")
    null = build_null_distribution(
        pooled,
        permutations,
        assignment,
        labels,
        ties=ties,
        n_workers=n_workers,
        cancel_event=cancel_event,
        progress=progress,
    )

    summary = summarize_significance(observed, null)

    return DifferentialCoexpressionResult(
        summary=summary,
        null=null,
        n_samples_a=condition_a.n_samples,
        n_samples_b=condition_b.n_samples,
        module_sizes=module_sizes,
        seed=seed,
        ties=ties,
    )
