"""File input/output for expression matrices, module assignments and reports."""

from diffcoex.io.loaders import load_expression_csv, load_module_assignment
from diffcoex.io.writers import (
    adjust_pvalues,
    write_condition_matrix,
    write_dispersion_report,
    write_module_stats,
)

__all__ = [
    'load_expression_csv',
    'load_module_assignment',
    'adjust_pvalues',
    'write_condition_matrix',
    'write_dispersion_report',
    'write_module_stats',
]
