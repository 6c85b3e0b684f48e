"""稀疏三元组 ``(row, col, value)`` 的累加容器。"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple

import numpy as np
from scipy.sparse import coo_matrix


@dataclass
class SparseTripleSet:
    """单个算符累积的非零矩阵元，按插入顺序保存。"""

    rows: List[int] = field(default_factory=list)
    cols: List[int] = field(default_factory=list)
    values: List[float] = field(default_factory=list)

    def append(self, row: int, col: int, value: float) -> None:
        self.rows.append(int(row))
        self.cols.append(int(col))
        self.values.append(float(value))

    def extend(self, other: "SparseTripleSet") -> None:
        self.rows.extend(other.rows)
        self.cols.extend(other.cols)
        self.values.extend(other.values)

    def __len__(self) -> int:
        return len(self.values)

    def __iter__(self) -> Iterator[Tuple[int, int, float]]:
        return zip(self.rows, self.cols, self.values)

    def sorted(self) -> List[Tuple[int, int, float]]:
        """按 ``(row, col)`` 排序后的三元组，用于规范比较。"""
        return sorted(self, key=lambda item: (item[0], item[1]))

    def to_coo(self, shape: Optional[Tuple[int, int]] = None, *, start_id: int = 0) -> coo_matrix:
        rows = np.asarray(self.rows, dtype=np.int64) - start_id
        cols = np.asarray(self.cols, dtype=np.int64) - start_id
        data = np.asarray(self.values, dtype=float)
        if shape is None:
            size = int(max(rows.max(initial=-1), cols.max(initial=-1))) + 1
            shape = (size, size)
        return coo_matrix((data, (rows, cols)), shape=shape)
