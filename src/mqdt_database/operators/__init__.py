"""带缓存的算符求值器与参考算符实现。"""

from .memoized import CacheInfo, LRUCache, MemoizedOperators, OperatorValues
from .reference import ReferenceOperators, UnsupportedCouplingError, hydrogenic_radial_moment

__all__ = [
    "CacheInfo",
    "LRUCache",
    "MemoizedOperators",
    "OperatorValues",
    "ReferenceOperators",
    "UnsupportedCouplingError",
    "hydrogenic_radial_moment",
]
