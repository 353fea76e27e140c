"""
Per-value provenance flags for expression matrices.

Loading and preprocessing are allowed to be lenient in two places: cells that
cannot be parsed as numbers may be replaced by 0.0, and the log2 transform maps
non-positive intensities to 0.0. Both substitutions silently change the data
that every downstream correlation sees, so each substituted cell is marked with
a bit in a quality-flag array that travels with the matrix.

Engineering Design:
    IntFlag gives cheap bitwise composition:
    - Multiple flags per value: PARSE_SUBSTITUTED | LOG_FLOORED
    - Fast checks on whole arrays: ``flags & QualityFlag.LOG_FLOORED != 0``
    - One int per value, same shape as the data

Examples:
    >>> import numpy as np
    >>> from diffcoex.core.quality import QualityFlag
    >>>
    >>> flags = np.array([0, 1, 2, 3], dtype=int)
    >>> n_floored = np.sum(flags & QualityFlag.LOG_FLOORED != 0)
    >>> n_floored
    2
"""

from __future__ import annotations

from enum import IntFlag

import numpy as np

__all__ = ['QualityFlag', 'count_flagged']


class QualityFlag(IntFlag):
    """
    Bitwise flags for per-value provenance tracking.

    Attributes:
        ORIGINAL: Value taken verbatim from the input (0)
        PARSE_SUBSTITUTED: Unparseable cell replaced by 0.0 during lenient loading (1)
        LOG_FLOORED: Non-positive value mapped to 0.0 by the log2 transform (2)
    """

    ORIGINAL = 0
    """Untouched value."""

    PARSE_SUBSTITUTED = 1
    """Cell text was not a number; 0.0 was substituted."""

    LOG_FLOORED = 2
    """Value was <= 0 before log2 and was set to 0.0 instead of -inf/NaN."""


def count_flagged(flags: np.ndarray, flag: QualityFlag) -> int:
    """Number of cells carrying ``flag``."""
    return int(np.sum((flags & flag) != 0))
