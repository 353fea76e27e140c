"""
Statistics for module-level differential co-expression.

Exports core functions for:
- Spearman/Pearson correlation primitives
- Column scaling and pooling of two conditions
- Module dispersion (observed and permutation null)
- Empirical significance of module dispersion
- Per-module two-sample z test of within-module correlations
"""

from .correlation import (
    TIE_METHODS,
    pearson_correlation,
    rank_columns,
    spearman_correlation,
    spearman_cross,
    spearman_matrix,
)
from .scaling import combine_conditions, scale_columns
from .dispersion import dispersion, dispersion_matrix
from .permutation import (
    NullDistribution,
    PermutationCancelled,
    build_null_distribution,
    generate_permutations,
    null_dispersion,
    partition_pooled,
    permutation_complement,
)
from .significance import SignificanceSummary, summarize_significance
from .differential_coexpression import (
    DifferentialCoexpressionResult,
    run_differential_coexpression,
)
from .module_stats import ModuleStats, analyze_module, analyze_modules, welch_z_test

__all__ = [
    "TIE_METHODS",
    "pearson_correlation",
    "rank_columns",
    "spearman_correlation",
    "spearman_cross",
    "spearman_matrix",
    "combine_conditions",
    "scale_columns",
    "dispersion",
    "dispersion_matrix",
    "NullDistribution",
    "PermutationCancelled",
    "build_null_distribution",
    "generate_permutations",
    "null_dispersion",
    "partition_pooled",
    "permutation_complement",
    "SignificanceSummary",
    "summarize_significance",
    "DifferentialCoexpressionResult",
    "run_differential_coexpression",
    "ModuleStats",
    "analyze_module",
    "analyze_modules",
    "welch_z_test",
]
