"""四种算符矩阵元的记忆化封装与有界 LRU 缓存。"""
from __future__ import annotations

import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Hashable, Mapping, NamedTuple, Tuple

from mqdt_database.basis.states import BasisState, Parameters

DEFAULT_CACHE_SIZE = 2 ** 17

OPERATOR_TABLES: Dict[str, str] = {
    "dipole": "matrix_elements_d",
    "quadrupole": "matrix_elements_q",
    "magnetic": "matrix_elements_mu",
    "diamagnetic": "matrix_elements_q0",
}


class CacheInfo(NamedTuple):
    hits: int
    misses: int
    maxsize: int
    currsize: int


class OperatorValues(NamedTuple):
    """同一态对的四个矩阵元（原子单位）。"""

    dipole: float
    quadrupole: float
    magnetic: float
    diamagnetic: float


class LRUCache:
    """线程安全的有界 LRU 缓存，附带命中/未命中计数。

    计算在锁外进行；并发下同一键可能被重复计算，但结果一致。
    被序列化到工作进程时得到一个空的分片，计数从零开始。
    """

    def __init__(self, maxsize: int = DEFAULT_CACHE_SIZE) -> None:
        if maxsize <= 0:
            raise ValueError("maxsize 必须为正整数。")
        self.maxsize = int(maxsize)
        self._data: "OrderedDict[Hashable, Any]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get_or_compute(self, key: Hashable, compute: Callable[[], Any]) -> Any:
        with self._lock:
            if key in self._data:
                self._data.move_to_end(key)
                self.hits += 1
                return self._data[key]
        value = compute()
        with self._lock:
            self.misses += 1
            self._data[key] = value
            self._data.move_to_end(key)
            while len(self._data) > self.maxsize:
                self._data.popitem(last=False)
        return value

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def info(self) -> CacheInfo:
        with self._lock:
            return CacheInfo(self.hits, self.misses, self.maxsize, len(self._data))

    def absorb(self, info: CacheInfo) -> None:
        """合并另一个分片的计数（不合并缓存内容）。"""
        with self._lock:
            self.hits += info.hits
            self.misses += info.misses

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
            self.hits = 0
            self.misses = 0

    def __getstate__(self) -> Dict[str, Any]:
        return {"maxsize": self.maxsize}

    def __setstate__(self, state: Mapping[str, Any]) -> None:
        self.__init__(state["maxsize"])


def state_key(state: BasisState) -> Tuple[Hashable, ...]:
    """态的量子数身份：通道（含 ``nu``）、系数、核心掩码与 ``f``，与数组索引无关。"""
    return (state.channels, state.coefficients, state.model.core, state.f)


@dataclass
class MemoizedOperators:
    """对外部算符求值函数的缓存门面。

    ``provider`` 需提供 ``dipole(s1, s2)``、``quadrupole(s1, s2)``、
    ``magnetic(dipole_const, mass, spin, s1, s2)`` 与 ``diamagnetic(s1, s2)``。
    求值函数抛出的异常原样向上传播。
    """

    provider: Any
    parameters: Parameters
    maxsize: int = DEFAULT_CACHE_SIZE
    caches: Dict[str, LRUCache] = field(init=False)

    def __post_init__(self) -> None:
        self.caches = {name: LRUCache(self.maxsize) for name in OPERATOR_TABLES}

    def _lookup(self, name: str, s1: BasisState, s2: BasisState, compute: Callable[[], float]) -> float:
        key = (state_key(s1), state_key(s2))
        return self.caches[name].get_or_compute(key, lambda: float(compute()))

    def dipole(self, s1: BasisState, s2: BasisState) -> float:
        return self._lookup("dipole", s1, s2, lambda: self.provider.dipole(s1, s2))

    def quadrupole(self, s1: BasisState, s2: BasisState) -> float:
        return self._lookup("quadrupole", s1, s2, lambda: self.provider.quadrupole(s1, s2))

    def magnetic(self, s1: BasisState, s2: BasisState) -> float:
        params = self.parameters
        return self._lookup(
            "magnetic",
            s1,
            s2,
            lambda: self.provider.magnetic(
                params.dipole_const, params.mass, params.spin, s1, s2),
        )

    def diamagnetic(self, s1: BasisState, s2: BasisState) -> float:
        return self._lookup("diamagnetic", s1, s2, lambda: self.provider.diamagnetic(s1, s2))

    def evaluate(self, s1: BasisState, s2: BasisState) -> OperatorValues:
        return OperatorValues(
            dipole=self.dipole(s1, s2),
            quadrupole=self.quadrupole(s1, s2),
            magnetic=self.magnetic(s1, s2),
            diamagnetic=self.diamagnetic(s1, s2),
        )

    def cache_info(self) -> Dict[str, CacheInfo]:
        return {name: cache.info() for name, cache in self.caches.items()}

    def absorb(self, infos: Mapping[str, CacheInfo]) -> None:
        for name, info in infos.items():
            self.caches[name].absorb(info)

    def provider_cache_info(self) -> Dict[str, CacheInfo]:
        """外部求值器自带缓存的统计（若有）。"""
        report = getattr(self.provider, "cache_info", None)
        if report is None:
            return {}
        return dict(report())
