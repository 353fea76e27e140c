"""
Rank and product-moment correlation primitives.

Spearman's rho is the Pearson correlation of rank vectors. Ranks are 1-based
positions in ascending sort order. Two tie conventions are supported:

    - "ordinal" (default): tied values receive strictly increasing ranks in
      order of appearance. This is the historical DiffCoEx behaviour and is
      kept so results are comparable with earlier runs. It is NOT textbook
      Spearman: a run of ties gets an arbitrary but deterministic ordering.
    - "average": tied values share the mean of the ranks they span
      (textbook Spearman, identical to scipy.stats.spearmanr).

A constant input has no defined correlation. Because ordinal ranking would
otherwise turn a constant vector into 1..n, constancy is detected on the raw
values and the result is NaN for both conventions.

All column-wise routines share the same ranking and correlation kernels, so
``spearman_correlation(x, y)`` and the entries of ``spearman_matrix`` agree
exactly.
"""

from __future__ import annotations

from typing import Literal

import numpy as np
from numpy.typing import ArrayLike, NDArray
from scipy.stats import rankdata

__all__ = [
    'TieMethod',
    'TIE_METHODS',
    'rank_columns',
    'spearman_correlation',
    'pearson_correlation',
    'spearman_matrix',
    'spearman_cross',
]

TieMethod = Literal["ordinal", "average"]
TIE_METHODS: tuple[str, ...] = ("ordinal", "average")


def _check_ties(ties: str) -> None:
    if ties not in TIE_METHODS:
        raise ValueError(f"Unknown tie method '{ties}'. Use one of {TIE_METHODS}")


def _as_columns(data: ArrayLike) -> NDArray[np.float64]:
    array = np.asarray(data, dtype=np.float64)
    if array.ndim == 1:
        array = array[:, np.newaxis]
    if array.ndim != 2:
        raise ValueError(f"Expected 1D or 2D array, got shape {array.shape}")
    return array


def _constant_columns(data: NDArray[np.float64]) -> NDArray[np.bool_]:
    if data.shape[0] == 0:
        return np.ones(data.shape[1], dtype=bool)
    return np.all(data == data[0:1, :], axis=0)


def rank_columns(data: ArrayLike, ties: TieMethod = "ordinal") -> NDArray[np.float64]:
    """
    Rank each column of a samples × variables array.

    Args:
        data: 1D or 2D array; 1D input is treated as a single column
        ties: "ordinal" or "average"

    Returns:
        Float array of 1-based ranks with the same (2D) shape. Columns whose
        raw values are constant are returned as NaN.
    """
    _check_ties(ties)
    array = _as_columns(data)
    if array.shape[0] == 0 or array.shape[1] == 0:
        return array.copy()
    ranks = rankdata(array, method=ties, axis=0).astype(np.float64)
    ranks[:, _constant_columns(array)] = np.nan
    return ranks


def _column_correlation(
    a: NDArray[np.float64],
    b: NDArray[np.float64],
) -> NDArray[np.float64]:
    """
    Pearson correlation between every column of ``a`` and every column of ``b``.

    numerator = Σ(dx·dy), denominator = sqrt(Σdx²·Σdy²). Constant columns and
    columns containing NaN yield NaN.
    """
    if a.shape[0] != b.shape[0]:
        raise ValueError(
            f"Inputs must have the same number of observations, got {a.shape[0]} and {b.shape[0]}"
        )
    if a.shape[0] == 0:
        return np.full((a.shape[1], b.shape[1]), np.nan)

    da = a - a.mean(axis=0)
    db = b - b.mean(axis=0)
    numerator = da.T @ db
    denominator = np.sqrt(np.outer(np.sum(da * da, axis=0), np.sum(db * db, axis=0)))

    with np.errstate(divide='ignore', invalid='ignore'):
        r = numerator / denominator

    r[_constant_columns(a), :] = np.nan
    r[:, _constant_columns(b)] = np.nan
    return np.clip(r, -1.0, 1.0)


def _check_pair(x: ArrayLike, y: ArrayLike) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    if x.ndim != 1 or y.ndim != 1:
        raise ValueError(f"Inputs must be 1D, got shapes {x.shape} and {y.shape}")
    if len(x) != len(y):
        raise ValueError(f"Input vectors must have equal length, got {len(x)} and {len(y)}")
    return x, y


def spearman_correlation(x: ArrayLike, y: ArrayLike, ties: TieMethod = "ordinal") -> float:
    """
    Spearman rank correlation between two equal-length vectors.

    Args:
        x, y: Numeric vectors
        ties: "ordinal" (default) or "average"

    Returns:
        rho in [-1, 1], or NaN if either vector is constant

    Raises:
        ValueError: If the vectors differ in length

    Examples:
        >>> spearman_correlation([1, 2, 3, 4], [10, 20, 30, 40])
        1.0
        >>> spearman_correlation([1, 2, 3, 4], [4, 3, 2, 1])
        -1.0
    """
    x, y = _check_pair(x, y)
    return float(_column_correlation(rank_columns(x, ties), rank_columns(y, ties))[0, 0])


def pearson_correlation(x: ArrayLike, y: ArrayLike) -> float:
    """
    Pearson product-moment correlation between two equal-length vectors.

    Same failure contract as spearman_correlation().
    """
    x, y = _check_pair(x, y)
    return float(_column_correlation(x[:, np.newaxis], y[:, np.newaxis])[0, 0])


def spearman_matrix(data: ArrayLike, ties: TieMethod = "ordinal") -> NDArray[np.float64]:
    """
    Spearman correlation between all pairs of columns.

    Args:
        data: Samples × variables array

    Returns:
        Symmetric (n_variables × n_variables) matrix
    """
    ranks = rank_columns(data, ties)
    return _column_correlation(ranks, ranks)


def spearman_cross(a: ArrayLike, b: ArrayLike, ties: TieMethod = "ordinal") -> NDArray[np.float64]:
    """
    Spearman correlation between each column of ``a`` and each column of ``b``.

    Returns:
        (n_columns_a × n_columns_b) matrix
    """
    return _column_correlation(rank_columns(a, ties), rank_columns(b, ties))
