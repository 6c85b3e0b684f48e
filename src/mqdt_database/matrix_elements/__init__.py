"""稀疏矩阵元的枚举与累加。"""

from .triples import SparseTripleSet
from .enumerator import (
    EnumerationStatistics,
    MatrixElementEnumerator,
    PruningConfig,
    all_matrix_elements,
)

__all__ = [
    "SparseTripleSet",
    "EnumerationStatistics",
    "MatrixElementEnumerator",
    "PruningConfig",
    "all_matrix_elements",
]
