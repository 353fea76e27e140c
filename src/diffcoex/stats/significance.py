"""
Empirical significance of observed module dispersions.

For every module pair (i, j) the number of permutation trials whose dispersion
is at least the observed dispersion is counted, and the empirical p-value is
that count divided by the number of trials:

    p(i, j) = #{k : null[i, j, k] >= observed[i, j]} / n_trials

No pseudo-count is added and no multiple-testing correction is applied; both
are left to the caller (see diffcoex.io.writers.adjust_pvalues for an opt-in
FDR adjustment at report time).

An undefined observed dispersion (NaN) gets a NaN p-value, and NaN null values
never count as exceeding.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd

from diffcoex.stats.permutation import NullDistribution

__all__ = ['SignificanceSummary', 'summarize_significance']


@dataclass
class SignificanceSummary:
    """Observed dispersion with permutation counts and empirical p-values.

    Attributes:
        dispersion: Observed dispersion per module pair.
        exceed_counts: Number of null trials with dispersion >= observed.
        pvalues: exceed_counts / n_permutations (NaN where observed is NaN).
        n_permutations: Number of permutation trials.
    """

    dispersion: pd.DataFrame
    exceed_counts: pd.DataFrame
    pvalues: pd.DataFrame
    n_permutations: int

    def to_long(self) -> pd.DataFrame:
        """One row per module pair: module_a, module_b, dispersion, count, pvalue."""
        rows = []
        for module_a in self.dispersion.index:
            for module_b in self.dispersion.columns:
                rows.append({
                    "module_a": module_a,
                    "module_b": module_b,
                    "dispersion": self.dispersion.at[module_a, module_b],
                    "exceed_count": int(self.exceed_counts.at[module_a, module_b]),
                    "pvalue": self.pvalues.at[module_a, module_b],
                })
        return pd.DataFrame(rows, columns=["module_a", "module_b", "dispersion", "exceed_count", "pvalue"])

    def to_dict(self) -> dict:
        """Serialize to JSON-compatible dict (NaN -> None)."""

        def clean(frame: pd.DataFrame) -> dict:
            return {
                str(row): {
                    str(col): (None if pd.isna(val) else float(val))
                    for col, val in frame.loc[row].items()
                }
                for row in frame.index
            }

        return {
            "n_permutations": self.n_permutations,
            "modules": [str(label) for label in self.dispersion.index],
            "dispersion": clean(self.dispersion),
            "exceed_counts": clean(self.exceed_counts),
            "pvalues": clean(self.pvalues),
        }


def summarize_significance(
    observed: pd.DataFrame,
    null: NullDistribution,
) -> SignificanceSummary:
    """
    Compare observed dispersions with their permutation null distributions.

    Args:
        observed: Square DataFrame of observed dispersion, indexed by labels
        null: NullDistribution over the same labels

    Returns:
        SignificanceSummary

    Raises:
        ValueError: If the labels of observed and null disagree
    """
    labels = list(null.labels)
    if list(observed.index) != labels or list(observed.columns) != labels:
        raise ValueError(
            f"Observed dispersion labels {list(observed.index)} do not match "
            f"null distribution labels {labels}"
        )

    obs = observed.to_numpy(dtype=np.float64)
    n_trials = null.n_trials

    with np.errstate(invalid='ignore'):
        exceed = null.values >= obs[:, :, np.newaxis]
    counts = exceed.sum(axis=2).astype(np.int64)

    if n_trials > 0:
        pvalues = counts / float(n_trials)
    else:
        pvalues = np.full(obs.shape, np.nan)
    pvalues = np.where(np.isnan(obs), np.nan, pvalues)

    index = observed.index
    columns = observed.columns
    return SignificanceSummary(
        dispersion=observed.copy(),
        exceed_counts=pd.DataFrame(counts, index=index, columns=columns),
        pvalues=pd.DataFrame(pvalues, index=index, columns=columns),
        n_permutations=n_trials,
    )
