"""
Core data structures for differential co-expression analysis.

1. ExpressionMatrix: samples × genes matrix bound to its identifiers
2. QualityFlag: per-value provenance bits
3. Transform: abstract base class for immutable preprocessing steps
4. ModuleAssignment: explicit gene -> module label mapping

Design Philosophy:
    - Immutability: operations return new instances
    - Explicit inputs: module membership and randomness are passed in,
      never looked up from shared state
"""

from diffcoex.core.expression import ExpressionMatrix
from diffcoex.core.modules import ModuleAssignment, columns_for_module, module_indices
from diffcoex.core.quality import QualityFlag, count_flagged
from diffcoex.core.transform import Transform, apply_transforms

__all__ = [
    'ExpressionMatrix',
    'ModuleAssignment',
    'columns_for_module',
    'module_indices',
    'QualityFlag',
    'count_flagged',
    'Transform',
    'apply_transforms',
]
