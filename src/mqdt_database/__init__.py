"""MQDT Rydberg 态数据库生成：态表与稀疏多极矩阵元表。"""

__all__ = [
    "basis",
    "observables",
    "operators",
    "matrix_elements",
    "io",
    "reporting",
    "validation",
]
