"""
Column standardisation and pooling of two condition matrices.

The permutation null is built from a single pooled matrix: condition A rows
stacked on condition B rows, z-scored per gene. Scaling happens once, before
any resampling, and the pooled matrix is read-only from then on.
"""

from __future__ import annotations

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from diffcoex.core.expression import ExpressionMatrix

__all__ = ['scale_columns', 'combine_conditions']


def _scale_array(data: NDArray[np.float64]) -> NDArray[np.float64]:
    n_rows = data.shape[0]
    if n_rows == 0:
        return data.copy()

    mean = data.mean(axis=0)
    centered = data - mean
    if n_rows < 2:
        return centered

    std = np.sqrt(np.sum(centered * centered, axis=0) / (n_rows - 1))
    # Zero-variance columns are centred only
    scale = np.where(std == 0, 1.0, std)
    return centered / scale


def scale_columns(
    matrix: ExpressionMatrix | NDArray[np.float64],
) -> ExpressionMatrix | NDArray[np.float64]:
    """
    Z-score every column: subtract the mean, divide by the sample SD (ddof=1).

    Columns with zero standard deviation are centred but not rescaled, and a
    single-row matrix is only centred, so no division by zero occurs.

    Args:
        matrix: ExpressionMatrix or samples × genes array (not modified)

    Returns:
        Same kind as the input, with scaled values

    Examples:
        >>> scaled = scale_columns(np.array([[1.0, 5.0], [3.0, 5.0]]))
        >>> scaled[:, 1]
        array([0., 0.])
    """
    if isinstance(matrix, ExpressionMatrix):
        return matrix.with_data(_scale_array(matrix.data))

    data = np.asarray(matrix, dtype=np.float64)
    if data.ndim != 2:
        raise ValueError(f"Expected 2D array, got shape {data.shape}")
    return _scale_array(data)


def combine_conditions(
    condition_a: ExpressionMatrix | NDArray[np.float64],
    condition_b: ExpressionMatrix | NDArray[np.float64],
) -> ExpressionMatrix | NDArray[np.float64]:
    """
    Stack condition A rows on condition B rows and scale the result.

    Rows 0..n_a-1 of the pooled matrix come from condition A and rows
    n_a..n_a+n_b-1 from condition B.

    Args:
        condition_a: Samples × genes matrix for condition A
        condition_b: Samples × genes matrix for condition B

    Returns:
        Pooled, column-scaled matrix. An ExpressionMatrix when both inputs are
        ExpressionMatrix, otherwise an array.

    Raises:
        ValueError: If column counts differ, or gene identifiers differ
    """
    if isinstance(condition_a, ExpressionMatrix) and isinstance(condition_b, ExpressionMatrix):
        if condition_a.n_genes != condition_b.n_genes:
            raise ValueError(
                f"Matrices must have the same number of columns, "
                f"got {condition_a.n_genes} and {condition_b.n_genes}"
            )
        if not condition_a.gene_ids.equals(condition_b.gene_ids):
            raise ValueError("Condition matrices must have identical gene identifiers in the same order")

        pooled = ExpressionMatrix(
            data=np.vstack([condition_a.data, condition_b.data]),
            gene_ids=condition_a.gene_ids,
            sample_ids=pd.Index(condition_a.sample_ids.append(condition_b.sample_ids)),
            quality_flags=np.vstack([condition_a.quality_flags, condition_b.quality_flags]),
        )
        return scale_columns(pooled)

    a = condition_a.data if isinstance(condition_a, ExpressionMatrix) else np.asarray(condition_a, dtype=np.float64)
    b = condition_b.data if isinstance(condition_b, ExpressionMatrix) else np.asarray(condition_b, dtype=np.float64)
    if a.ndim != 2 or b.ndim != 2:
        raise ValueError(f"Expected 2D arrays, got shapes {a.shape} and {b.shape}")
    if a.shape[1] != b.shape[1]:
        raise ValueError(
            f"Matrices must have the same number of columns, got {a.shape[1]} and {b.shape[1]}"
        )
    return _scale_array(np.vstack([a, b]))
