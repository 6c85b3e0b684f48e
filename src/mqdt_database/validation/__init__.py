"""数值验证工具。"""

from .benchmarks import PRINCIPAL_N_BENCHMARKS, validate_principal_n

__all__ = ["PRINCIPAL_N_BENCHMARKS", "validate_principal_n"]
