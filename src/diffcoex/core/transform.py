"""
Base transformation framework for immutable matrix operations.

Preprocessing steps (log transform, normalisation) are expressed as Transform
objects: pure functions from ExpressionMatrix to ExpressionMatrix that record
their name and parameters so a run can report exactly what was done to the
data before any correlation was computed.

Engineering Design:
    Pure Functions:
        - No side effects (inputs are never modified)
        - Deterministic (same input + params -> same output)
        - Composable (chain with apply_transforms)

Examples:
    >>> class Shift(Transform):
    ...     def __init__(self, offset: float):
    ...         super().__init__(name="Shift", params={"offset": offset})
    ...         self.offset = offset
    ...
    ...     def apply(self, matrix):
    ...         return matrix.with_data(matrix.data + self.offset)
    >>>
    >>> shifted = Shift(1.0).apply(matrix)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Sequence, TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from diffcoex.core.expression import ExpressionMatrix

__all__ = ['Transform', 'apply_transforms']

logger = logging.getLogger(__name__)


class Transform(ABC):
    """
    Abstract base class for matrix transformations.

    Attributes:
        name: Human-readable transformation name (e.g., "Log2Transform")
        params: JSON-serializable parameters used for this transformation
        timestamp: When this transform instance was created
    """

    def __init__(self, name: str, params: dict[str, Any]) -> None:
        self.name = name
        self.params = params
        self.timestamp = datetime.now()

    @abstractmethod
    def apply(self, matrix: ExpressionMatrix) -> ExpressionMatrix:
        """
        Execute transformation and return a new matrix.

        Must never modify the input.

        Raises:
            ValueError: If the transformation cannot be applied (see validate())
        """

    def validate(self, matrix: ExpressionMatrix) -> list[str]:
        """
        Check preconditions before applying the transformation.

        Subclasses should override and call super().validate() first.

        Returns:
            List of error messages (empty list = valid)
        """
        errors: list[str] = []

        if matrix.data.size == 0:
            errors.append("Cannot process empty matrix")
        elif np.isinf(matrix.data).any():
            errors.append("Matrix contains infinite values")

        return errors

    def to_dict(self) -> dict[str, Any]:
        """Provenance record for reports."""
        return {
            "name": self.name,
            "params": dict(self.params),
            "timestamp": self.timestamp.isoformat(),
        }

    def __repr__(self) -> str:
        params_str = ", ".join(f"{k}={v}" for k, v in self.params.items())
        return f"{self.name}({params_str})"


def apply_transforms(
    matrix: ExpressionMatrix,
    transforms: Sequence[Transform],
) -> ExpressionMatrix:
    """
    Validate and apply transforms in order.

    Raises:
        ValueError: On the first transform whose validate() reports errors
    """
    result = matrix
    for transform in transforms:
        errors = transform.validate(result)
        if errors:
            raise ValueError(
                f"{transform!r} cannot be applied: " + "; ".join(errors)
            )
        logger.debug(f"Applying {transform!r} to {result.n_samples}x{result.n_genes} matrix")
        result = transform.apply(result)
    return result
