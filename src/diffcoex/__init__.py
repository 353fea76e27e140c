"""
diffcoex - Module-level differential co-expression

Tests whether the correlation structure within and between gene modules
differs between two experimental conditions, using the DiffCoEx dispersion
statistic with a sample-permutation null distribution.
"""

__version__ = "0.1.0"

from diffcoex.core.expression import ExpressionMatrix
from diffcoex.core.modules import ModuleAssignment
from diffcoex.core.quality import QualityFlag
from diffcoex.stats.differential_coexpression import run_differential_coexpression

__all__ = [
    "ExpressionMatrix",
    "ModuleAssignment",
    "QualityFlag",
    "run_differential_coexpression",
]
