"""
Permutation null distribution for module dispersion.

Under the null hypothesis the two conditions are exchangeable: any split of the
pooled samples into groups of the original sizes is as likely as the observed
one. Each permutation trial:

    1. Shuffles the pooled row indices 0..n_a+n_b-1 (Fisher-Yates, via
       numpy.random.Generator.permutation)
    2. Takes the first n_a indices as surrogate condition 1 and the remaining
       n_b as surrogate condition 2
    3. Recomputes the dispersion on those two row subsets of the pooled,
       scaled matrix with exactly the code used for the observed statistic

All randomness is in step 1. Permutations are drawn up front from one
explicitly seeded generator, so the null distribution is reproducible and
independent of how many worker threads evaluate it.

Concurrency:
    Trials are independent. build_null_distribution() evaluates them on a
    ThreadPoolExecutor; the pooled matrix is read-only and every trial writes
    only its own slot of the output array. A threading.Event can be set from
    another thread to stop the loop between trials.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, Sequence

import numpy as np
from numpy.typing import NDArray

from diffcoex.core.expression import ExpressionMatrix
from diffcoex.stats.correlation import TieMethod
from diffcoex.stats.dispersion import dispersion, dispersion_values

__all__ = [
    'PermutationCancelled',
    'NullDistribution',
    'generate_permutations',
    'permutation_complement',
    'partition_pooled',
    'null_dispersion',
    'build_null_distribution',
]

logger = logging.getLogger(__name__)


class PermutationCancelled(RuntimeError):
    """Raised when a null-distribution run is cancelled before completion.

    Attributes:
        n_completed: Trials fully evaluated before cancellation was observed.
        n_requested: Trials requested.
    """

    def __init__(self, n_completed: int, n_requested: int):
        super().__init__(
            f"Permutation run cancelled after {n_completed}/{n_requested} trials"
        )
        self.n_completed = n_completed
        self.n_requested = n_requested


@dataclass(frozen=True)
class NullDistribution:
    """Dispersion values under permutation for every module pair.

    Attributes:
        labels: Module labels indexing the first two axes.
        values: Array (n_labels, n_labels, n_trials); values[i, j, k] is the
            dispersion between labels[i] and labels[j] in trial k.
    """

    labels: tuple[str, ...]
    values: NDArray[np.float64]

    @property
    def n_trials(self) -> int:
        return self.values.shape[2]

    def pair(self, module_a: str, module_b: str) -> NDArray[np.float64]:
        """Ordered trial values for one module pair."""
        i = self.labels.index(module_a)
        j = self.labels.index(module_b)
        return self.values[i, j, :]


def generate_permutations(
    size_a: int,
    size_b: int,
    n_trials: int,
    rng: np.random.Generator,
) -> NDArray[np.intp]:
    """
    Draw random re-splits of the pooled sample indices.

    Args:
        size_a: Number of condition-1 samples
        size_b: Number of condition-2 samples
        n_trials: Number of permutations
        rng: Shared random generator (e.g. np.random.default_rng(seed))

    Returns:
        Int array (n_trials, size_a). Row k holds the surrogate condition-1
        indices of trial k: the first size_a entries of an independent uniform
        shuffle of range(size_a + size_b). The complement of a row is the
        surrogate condition 2.

    Raises:
        ValueError: On negative sizes or trial count
    """
    if size_a < 0 or size_b < 0:
        raise ValueError(f"Group sizes must be non-negative, got {size_a} and {size_b}")
    if n_trials < 0:
        raise ValueError(f"n_trials must be non-negative, got {n_trials}")

    total = size_a + size_b
    permutations = np.empty((n_trials, size_a), dtype=np.intp)
    for k in range(n_trials):
        permutations[k] = rng.permutation(total)[:size_a]
    return permutations


def permutation_complement(permutation: NDArray[np.intp] | Sequence[int], total: int) -> NDArray[np.intp]:
    """Indices in range(total) not used by ``permutation``, ascending."""
    used = np.zeros(total, dtype=bool)
    used[np.asarray(permutation, dtype=np.intp)] = True
    return np.flatnonzero(~used).astype(np.intp)


def partition_pooled(
    pooled: ExpressionMatrix,
    permutation: NDArray[np.intp] | Sequence[int],
) -> tuple[ExpressionMatrix, ExpressionMatrix]:
    """
    Split the pooled matrix into two surrogate condition matrices.

    Surrogate 1 takes the permutation's rows in permutation order; surrogate 2
    takes the remaining rows in ascending order.

    Raises:
        ValueError: If the permutation repeats an index
        IndexError: If an index is outside the pooled matrix
    """
    permutation = np.asarray(permutation, dtype=np.intp)
    if len(np.unique(permutation)) != len(permutation):
        raise ValueError("Permutation contains duplicate row indices")
    first = pooled.select_rows(permutation)
    second = pooled.select_rows(permutation_complement(permutation, pooled.n_samples))
    return first, second


def null_dispersion(
    permutation: NDArray[np.intp] | Sequence[int],
    pooled: ExpressionMatrix,
    module_a: str,
    module_b: str,
    assignment: Mapping[str, str],
    ties: TieMethod = "ordinal",
) -> float:
    """
    Dispersion of one module pair for one permutation trial.

    Identical to ``dispersion(module_a, module_b, *partition_pooled(pooled,
    permutation), assignment)``.
    """
    surrogate1, surrogate2 = partition_pooled(pooled, permutation)
    return dispersion(module_a, module_b, surrogate1, surrogate2, assignment, ties=ties)


def _evaluate_trial(
    pooled: ExpressionMatrix,
    permutation: NDArray[np.intp],
    assignment: Mapping[str, str],
    labels: Sequence[str],
    ties: TieMethod,
) -> NDArray[np.float64]:
    surrogate1, surrogate2 = partition_pooled(pooled, permutation)
    return dispersion_values(surrogate1, surrogate2, assignment, labels, ties)


def build_null_distribution(
    pooled: ExpressionMatrix,
    permutations: NDArray[np.intp],
    assignment: Mapping[str, str],
    labels: Sequence[str],
    ties: TieMethod = "ordinal",
    n_workers: int = 1,
    cancel_event: threading.Event | None = None,
    progress: Callable[[int, int], None] | None = None,
) -> NullDistribution:
    """
    Evaluate every permutation trial for every module pair.

    Each trial partitions the pooled matrix once and reuses that partition for
    all module pairs.

    Args:
        pooled: Pooled, scaled samples × genes matrix (see combine_conditions)
        permutations: (n_trials, size_a) array from generate_permutations()
        assignment: gene id -> module label
        labels: Module labels to evaluate
        ties: Rank tie handling
        n_workers: Worker threads (1 = sequential)
        cancel_event: When set, evaluation stops before the next trial and
            PermutationCancelled is raised
        progress: Optional callback(n_completed, n_trials)

    Returns:
        NullDistribution with values of shape (n_labels, n_labels, n_trials)

    Raises:
        PermutationCancelled: If cancel_event was set before all trials finished
    """
    permutations = np.asarray(permutations, dtype=np.intp)
    if permutations.ndim != 2:
        raise ValueError(f"permutations must be 2D (n_trials, size_a), got shape {permutations.shape}")
    if n_workers < 1:
        raise ValueError(f"n_workers must be >= 1, got {n_workers}")

    labels = list(labels)
    n_trials = permutations.shape[0]
    values = np.full((len(labels), len(labels), n_trials), np.nan)

    def cancelled() -> bool:
        return cancel_event is not None and cancel_event.is_set()

    n_completed = 0
    report_every = max(1, n_trials // 10)

    def record(k: int, trial_values: NDArray[np.float64]) -> None:
        nonlocal n_completed
        values[:, :, k] = trial_values
        n_completed += 1
        if progress is not None:
            progress(n_completed, n_trials)
        if n_completed % report_every == 0:
            logger.info(f"Permutation {n_completed}/{n_trials}")

    if n_workers == 1:
        for k in range(n_trials):
            if cancelled():
                raise PermutationCancelled(n_completed, n_trials)
            record(k, _evaluate_trial(pooled, permutations[k], assignment, labels, ties))
    else:
        with ThreadPoolExecutor(max_workers=n_workers) as executor:
            pending = set()
            next_trial = 0
            future_to_trial = {}
            while next_trial < n_trials or pending:
                while next_trial < n_trials and len(pending) < 2 * n_workers and not cancelled():
                    future = executor.submit(
                        _evaluate_trial, pooled, permutations[next_trial], assignment, labels, ties
                    )
                    future_to_trial[future] = next_trial
                    pending.add(future)
                    next_trial += 1

                if not pending:
                    break

                done, pending = wait(pending, return_when=FIRST_COMPLETED)
                for future in done:
                    record(future_to_trial.pop(future), future.result())

            if cancelled() and n_completed < n_trials:
                raise PermutationCancelled(n_completed, n_trials)

    return NullDistribution(labels=tuple(labels), values=values)
