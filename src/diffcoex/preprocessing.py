"""
Preprocessing for microarray intensities before co-expression analysis.

Two steps, applied to the full matrix before it is split into conditions:

1. log2 transform. Convention: ``log2(x)`` for x > 0 and ``0.0`` for x <= 0.
   The floored cells are flagged QualityFlag.LOG_FLOORED. (The alternative
   ``log2(x + 1)`` convention is not offered; the two are not numerically
   equivalent and mixing them across runs makes dispersions incomparable.)

2. Quantile normalisation, DiffCoEx reference variant. Each sample's values
   are sorted ascending independently and then centred on that sample's mean.
   Unlike Bolstad et al. (2003) there is no averaging of the sorted values
   across samples, so samples keep their own value distributions (shifted to
   mean zero). Row position after normalisation is the within-sample rank,
   not the original gene.

Both functions take features × samples arrays (the on-disk layout, one gene
per row); the Transform wrappers operate on samples × genes ExpressionMatrix
objects and normalise each sample (row).

Sample slicing into conditions is by position: split_conditions() takes the
sample indices of each condition.
"""

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np
from numpy.typing import NDArray

from diffcoex.core.expression import ExpressionMatrix
from diffcoex.core.quality import QualityFlag, count_flagged
from diffcoex.core.transform import Transform, apply_transforms

__all__ = [
    'log2_transform',
    'quantile_normalize',
    'Log2Transform',
    'QuantileNormalization',
    'preprocess',
    'preprocessing_steps',
    'split_conditions',
    'parse_index_spec',
]

logger = logging.getLogger(__name__)


def log2_transform(data: NDArray[np.float64]) -> tuple[NDArray[np.float64], NDArray[np.bool_]]:
    """
    Base-2 logarithm with non-positive values mapped to 0.0.

    Args:
        data: Array of raw intensities (any shape)

    Returns:
        (transformed, floored_mask) where floored_mask marks cells that were <= 0
    """
    data = np.asarray(data, dtype=np.float64)
    floored = data <= 0
    result = np.zeros_like(data)
    np.log2(data, out=result, where=~floored)
    return result, floored


def quantile_normalize(data: NDArray[np.float64]) -> NDArray[np.float64]:
    """
    Reference quantile normalisation: sort each sample, then mean-centre it.

    Args:
        data: 2D array (n_features, n_samples)

    Returns:
        Array of the same shape; column j holds sample j's values sorted
        ascending minus their mean.

    Examples:
        >>> quantile_normalize(np.array([[3.0, 10.0], [1.0, 30.0], [2.0, 20.0]]))
        array([[ -1., -10.],
               [  0.,   0.],
               [  1.,  10.]])
    """
    data = np.asarray(data, dtype=np.float64)
    if data.ndim != 2:
        raise ValueError(f"Expected 2D array, got {data.ndim}D")
    if data.shape[0] == 0:
        return data.copy()

    sorted_cols = np.sort(data, axis=0)
    return sorted_cols - sorted_cols.mean(axis=0)


class Log2Transform(Transform):
    """log2 with non-positive values floored to 0.0 (flagged LOG_FLOORED)."""

    def __init__(self) -> None:
        super().__init__(name="Log2Transform", params={"non_positive": 0.0})

    def validate(self, matrix: ExpressionMatrix) -> list[str]:
        errors = super().validate(matrix)
        if np.isnan(matrix.data).any():
            errors.append("Matrix contains NaN values")
        return errors

    def apply(self, matrix: ExpressionMatrix) -> ExpressionMatrix:
        transformed, floored = log2_transform(matrix.data)
        flags = np.array(matrix.quality_flags)
        flags[floored] |= QualityFlag.LOG_FLOORED

        n_floored = count_flagged(flags, QualityFlag.LOG_FLOORED)
        if n_floored:
            logger.info(
                f"log2: {n_floored} non-positive value(s) "
                f"({100 * n_floored / flags.size:.2f}%) set to 0.0"
            )
        return matrix.with_data(transformed, quality_flags=flags)


class QuantileNormalization(Transform):
    """Per-sample sort and mean-centring (see quantile_normalize)."""

    def __init__(self) -> None:
        super().__init__(name="QuantileNormalization", params={"variant": "sort_and_center"})

    def apply(self, matrix: ExpressionMatrix) -> ExpressionMatrix:
        # Samples are rows here; quantile_normalize works on sample columns
        normalized = quantile_normalize(matrix.data.T).T
        # Flags move with their values
        order = np.argsort(matrix.data, axis=1, kind="stable")
        flags = np.take_along_axis(matrix.quality_flags, order, axis=1)
        return matrix.with_data(normalized, quality_flags=flags)


def preprocessing_steps() -> list[Transform]:
    """The transforms preprocess() applies, in order."""
    return [Log2Transform(), QuantileNormalization()]


def preprocess(matrix: ExpressionMatrix) -> ExpressionMatrix:
    """Apply Log2Transform then QuantileNormalization."""
    return apply_transforms(matrix, preprocessing_steps())


def parse_index_spec(spec: str) -> list[int]:
    """
    Parse 1-based, inclusive sample ranges such as ``"1-12,25-48"``.

    Returns:
        0-based indices in the given order

    Raises:
        ValueError: On malformed ranges
    """
    indices: list[int] = []
    for part in spec.split(","):
        part = part.strip()
        if not part:
            continue
        if "-" in part:
            start_text, end_text = part.split("-", 1)
            start, end = int(start_text), int(end_text)
            if start < 1 or end < start:
                raise ValueError(f"Invalid sample range '{part}'")
            indices.extend(range(start - 1, end))
        else:
            value = int(part)
            if value < 1:
                raise ValueError(f"Sample positions are 1-based, got {value}")
            indices.append(value - 1)
    if not indices:
        raise ValueError(f"Empty sample specification '{spec}'")
    return indices


def split_conditions(
    matrix: ExpressionMatrix,
    condition_a: Sequence[int],
    condition_b: Sequence[int],
) -> tuple[ExpressionMatrix, ExpressionMatrix]:
    """
    Slice a preprocessed matrix into two gene-aligned condition matrices.

    Args:
        matrix: Samples × genes matrix
        condition_a: 0-based sample positions of condition A
        condition_b: 0-based sample positions of condition B

    Raises:
        ValueError: If the two conditions share a sample
        IndexError: If a position is out of range
    """
    overlap = set(condition_a) & set(condition_b)
    if overlap:
        raise ValueError(f"Conditions share {len(overlap)} sample position(s): {sorted(overlap)[:5]}")
    return matrix.select_rows(list(condition_a)), matrix.select_rows(list(condition_b))
