"""
Core data structure for condition-specific expression matrices.

ExpressionMatrix binds a numeric matrix to the identifiers of its rows
(samples) and columns (genes/probes). All co-expression statistics in this
package correlate *columns* across *rows*, so the layout is fixed:

    - Rows = samples (arrays, patients, replicates)
    - Columns = genes/probes
    - Values = log-scale, normalised intensities

Expression files on disk are usually stored the other way round (one gene per
line); loaders transpose on the way in so that the statistics never have to
think about orientation.

Engineering Design:
    - Immutable: selection returns new instances, the data array is read-only
    - Bounds-checked: row indices are validated before fancy indexing
    - Identifiers travel with the data: gene_ids can never be reordered
      independently of the columns they label
    - Quality flags: per-value provenance (see QualityFlag)

Examples:
    >>> import numpy as np
    >>> import pandas as pd
    >>> from diffcoex.core.expression import ExpressionMatrix
    >>>
    >>> matrix = ExpressionMatrix(
    ...     data=np.array([[1.0, 2.0], [2.0, 3.0], [3.0, 4.0]]),
    ...     gene_ids=pd.Index(["gene1", "gene2"]),
    ... )
    >>> matrix.shape
    (3, 2)
    >>> first_two = matrix.select_rows([0, 1])
"""

from __future__ import annotations

from typing import Literal, Sequence

import numpy as np
import pandas as pd

from diffcoex.core.quality import QualityFlag

__all__ = ['ExpressionMatrix']


class ExpressionMatrix:
    """
    Immutable samples × genes matrix with identifiers and quality flags.

    Attributes:
        data: Read-only float64 array (n_samples × n_genes)
        gene_ids: Column identifiers (probe/gene ids)
        sample_ids: Row identifiers
        quality_flags: Per-value QualityFlag bits (same shape as data)

    Shape Invariants:
        - data.ndim == 2
        - data.shape[0] == len(sample_ids)
        - data.shape[1] == len(gene_ids)
        - quality_flags.shape == data.shape
    """

    def __init__(
        self,
        data: np.ndarray,
        gene_ids: pd.Index | Sequence[str],
        sample_ids: pd.Index | Sequence[str] | None = None,
        quality_flags: np.ndarray | None = None,
    ):
        """
        Initialize ExpressionMatrix with validation.

        Args:
            data: Numeric matrix (samples × genes). Copied to float64.
            gene_ids: One identifier per column.
            sample_ids: One identifier per row. Defaults to "sample_1".."sample_n".
            quality_flags: Optional flag matrix; defaults to all ORIGINAL.

        Raises:
            TypeError: If data is not array-like numeric
            ValueError: If data is not 2D or identifier lengths don't match
        """
        if isinstance(data, ExpressionMatrix):
            raise TypeError("data must be an array, got ExpressionMatrix (use .copy())")
        try:
            array = np.array(data, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise TypeError(f"data must be numeric array-like, got {type(data)}") from e

        if array.ndim != 2:
            raise ValueError(f"data must be 2D (samples × genes), got shape {array.shape}")

        n_samples, n_genes = array.shape

        gene_ids = pd.Index(gene_ids)
        if len(gene_ids) != n_genes:
            raise ValueError(
                f"gene_ids length ({len(gene_ids)}) must match data columns ({n_genes})"
            )

        if sample_ids is None:
            sample_ids = pd.Index([f"sample_{i + 1}" for i in range(n_samples)])
        else:
            sample_ids = pd.Index(sample_ids)
        if len(sample_ids) != n_samples:
            raise ValueError(
                f"sample_ids length ({len(sample_ids)}) must match data rows ({n_samples})"
            )

        if quality_flags is None:
            flags = np.full(array.shape, QualityFlag.ORIGINAL, dtype=int)
        else:
            flags = np.array(quality_flags, dtype=int)
            if flags.shape != array.shape:
                raise ValueError(
                    f"quality_flags shape {flags.shape} must match data shape {array.shape}"
                )

        array.setflags(write=False)
        flags.setflags(write=False)

        self._data = array
        self._gene_ids = gene_ids
        self._sample_ids = sample_ids
        self._quality_flags = flags

    @classmethod
    def from_frame(
        cls,
        frame: pd.DataFrame,
        orientation: Literal["samples_by_genes", "genes_by_samples"] = "samples_by_genes",
    ) -> ExpressionMatrix:
        """
        Build from a labelled DataFrame.

        Args:
            frame: Numeric DataFrame
            orientation: "samples_by_genes" if rows are samples (index = sample ids),
                "genes_by_samples" if rows are genes (index = gene ids, the usual
                on-disk layout).
        """
        if orientation == "genes_by_samples":
            frame = frame.T
        elif orientation != "samples_by_genes":
            raise ValueError(f"Unknown orientation '{orientation}'")
        return cls(
            data=frame.to_numpy(dtype=np.float64),
            gene_ids=pd.Index(frame.columns.astype(str)),
            sample_ids=pd.Index(frame.index.astype(str)),
        )

    @property
    def data(self) -> np.ndarray:
        """Expression values (samples × genes), read-only."""
        return self._data

    @property
    def gene_ids(self) -> pd.Index:
        """Column identifiers."""
        return self._gene_ids

    @property
    def sample_ids(self) -> pd.Index:
        """Row identifiers."""
        return self._sample_ids

    @property
    def quality_flags(self) -> np.ndarray:
        """Per-value provenance bits, read-only."""
        return self._quality_flags

    @property
    def shape(self) -> tuple[int, int]:
        """Matrix dimensions (n_samples, n_genes)."""
        return self._data.shape

    @property
    def n_samples(self) -> int:
        return self._data.shape[0]

    @property
    def n_genes(self) -> int:
        return self._data.shape[1]

    def column(self, j: int) -> np.ndarray:
        """Sample vector of gene column ``j``."""
        if not -self.n_genes <= j < self.n_genes:
            raise IndexError(f"column {j} out of range for {self.n_genes} genes")
        return self._data[:, j]

    def select_rows(self, indices: Sequence[int] | np.ndarray) -> ExpressionMatrix:
        """
        Subset samples by integer position, in the given order.

        Args:
            indices: Row positions; may repeat but must be in range

        Returns:
            New ExpressionMatrix with the selected rows

        Raises:
            IndexError: If any index is outside [0, n_samples)
        """
        idx = np.asarray(indices, dtype=np.intp)
        if idx.ndim != 1:
            raise ValueError(f"indices must be 1D, got shape {idx.shape}")
        if idx.size and (idx.min() < 0 or idx.max() >= self.n_samples):
            raise IndexError(
                f"row indices must lie in [0, {self.n_samples}), "
                f"got range [{idx.min()}, {idx.max()}]"
            )
        return ExpressionMatrix(
            data=self._data[idx, :],
            gene_ids=self._gene_ids,
            sample_ids=self._sample_ids[idx],
            quality_flags=self._quality_flags[idx, :],
        )

    def select_samples(self, mask: np.ndarray | pd.Series | Sequence[int]) -> ExpressionMatrix:
        """
        Subset samples by boolean mask or integer positions.

        Raises:
            ValueError: If a boolean mask length doesn't match n_samples
        """
        if isinstance(mask, pd.Series):
            mask = mask.values
        mask = np.asarray(mask)
        if mask.dtype == bool:
            if len(mask) != self.n_samples:
                raise ValueError(
                    f"mask length ({len(mask)}) must match n_samples ({self.n_samples})"
                )
            mask = np.flatnonzero(mask)
        return self.select_rows(mask)

    def select_genes(self, mask: np.ndarray | pd.Series) -> ExpressionMatrix:
        """
        Subset genes (columns) by boolean mask, preserving column order.

        Raises:
            ValueError: If mask length doesn't match n_genes
        """
        if isinstance(mask, pd.Series):
            mask = mask.values
        mask = np.asarray(mask, dtype=bool)
        if len(mask) != self.n_genes:
            raise ValueError(
                f"mask length ({len(mask)}) must match n_genes ({self.n_genes})"
            )
        return ExpressionMatrix(
            data=self._data[:, mask],
            gene_ids=self._gene_ids[mask],
            sample_ids=self._sample_ids,
            quality_flags=self._quality_flags[:, mask],
        )

    def with_data(self, data: np.ndarray, quality_flags: np.ndarray | None = None) -> ExpressionMatrix:
        """New matrix with the same identifiers and replaced values."""
        return ExpressionMatrix(
            data=data,
            gene_ids=self._gene_ids,
            sample_ids=self._sample_ids,
            quality_flags=self._quality_flags if quality_flags is None else quality_flags,
        )

    def to_frame(self) -> pd.DataFrame:
        """Samples × genes DataFrame copy."""
        return pd.DataFrame(self._data.copy(), index=self._sample_ids, columns=self._gene_ids)

    def copy(self) -> ExpressionMatrix:
        return ExpressionMatrix(
            data=self._data.copy(),
            gene_ids=self._gene_ids.copy(),
            sample_ids=self._sample_ids.copy(),
            quality_flags=self._quality_flags.copy(),
        )

    def __repr__(self) -> str:
        if self.n_genes:
            genes = f"{self.gene_ids[0]}...{self.gene_ids[-1]}"
        else:
            genes = "(none)"
        return f"ExpressionMatrix({self.n_samples} samples × {self.n_genes} genes; genes: {genes})"
