"""矩阵元枚举：对排序后的基组做上三角扫描、剪枝并按对称性补全转置元。"""
from __future__ import annotations

import math
import multiprocessing as mp
import os
import sys
import time
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

import numpy as np
from numba import njit

from mqdt_database.basis.angular import phase
from mqdt_database.basis.states import BasisArray
from mqdt_database.matrix_elements.triples import SparseTripleSet
from mqdt_database.operators.memoized import (
    OPERATOR_TABLES,
    CacheInfo,
    MemoizedOperators,
)

START_ID = 0
TABLE_NAMES: Tuple[str, ...] = tuple(OPERATOR_TABLES.values())


@dataclass(frozen=True)
class PruningConfig:
    """剪枝阈值。

    Attributes
    ----------
    angular_window : int
        最大角动量转移阶数（目前只计算到四极，因此为 2）。
    nu_gap : float
        两态所有通道 ``nu`` 两两相差不小于该值时视为径向重叠可忽略。
    low_nu_threshold : float
        只有两态全部 ``nu`` 都大于该阈值时才应用径向剪枝。
    enabled : bool
        关闭后对全部态对求值。
    """

    angular_window: int = 2
    nu_gap: float = 11.0
    low_nu_threshold: float = 25.0
    enabled: bool = True


@dataclass
class EnumerationStatistics:
    pairs_total: int = 0
    pruned_angular: int = 0
    pruned_radial: int = 0
    evaluated: int = 0
    elapsed: float = 0.0
    workers: int = 1
    cache_info: Dict[str, CacheInfo] = field(default_factory=dict)
    provider_cache_info: Dict[str, CacheInfo] = field(default_factory=dict)


@dataclass(frozen=True)
class _SortedBasis:
    order: np.ndarray
    min_lr: np.ndarray
    max_lr: np.ndarray
    nus: Tuple[np.ndarray, ...]
    f: np.ndarray


@dataclass
class _ChunkResult:
    chunk_id: int
    triples: Dict[str, SparseTripleSet]
    pairs_processed: int
    pruned_angular: int
    pruned_radial: int
    evaluated: int
    cache_info: Dict[str, CacheInfo]
    provider_cache_info: Dict[str, CacheInfo]


@dataclass
class _WorkerPayload:
    enumerator: "MatrixElementEnumerator"
    basis: BasisArray
    sorted_basis: _SortedBasis


_WORKER_PAYLOAD: Optional[_WorkerPayload] = None


class _SimpleProgress:
    """在 stderr 上按百分比刷新的单行进度条。"""

    __slots__ = ("total", "desc", "stream", "count", "_shown", "_shown_at")

    refresh_interval = 0.25

    def __init__(self, total: int, desc: str) -> None:
        self.total = max(int(total), 0)
        self.desc = desc
        self.stream = sys.stderr
        self.count = 0
        self._shown = -1
        self._shown_at = time.perf_counter()
        if not self.total:
            self._render()

    @property
    def percent(self) -> int:
        return 100 if not self.total else (100 * self.count) // self.total

    def update(self, step: int = 1) -> None:
        if not self.total:
            return
        self.count = min(self.total, self.count + step)
        now = time.perf_counter()
        stale = now - self._shown_at >= self.refresh_interval
        if self.percent != self._shown or stale or self.count == self.total:
            self._render()
            self._shown, self._shown_at = self.percent, now

    def close(self) -> None:
        if self.total:
            self.count = self.total
            self._render()
        self.stream.write("\n")
        self.stream.flush()

    def _render(self) -> None:
        shown = self.percent if self.total else 0
        self.stream.write(f"\r{self.desc}: {shown:3d}% ({self.count}/{self.total})")
        self.stream.flush()


@njit()
def _nu_separated(nus1: np.ndarray, nus2: np.ndarray, gap: float, threshold: float) -> bool:
    for nu1 in nus1:
        if nu1 <= threshold:
            return False
    for nu2 in nus2:
        if nu2 <= threshold:
            return False
    for nu1 in nus1:
        for nu2 in nus2:
            if abs(nu1 - nu2) < gap:
                return False
    return True


def sort_basis(basis: BasisArray) -> _SortedBasis:
    """按 ``(min l_r, min nu, 原索引)`` 排序，只生成顺序数组，不改动基组本身。"""
    min_lr = np.array([min(state.relevant_lr) for state in basis], dtype=np.int64)
    max_lr = np.array([max(state.relevant_lr) for state in basis], dtype=np.int64)
    nus = tuple(np.ascontiguousarray(state.relevant_nu, dtype=float) for state in basis)
    min_nu = np.array([nu.min() for nu in nus], dtype=float)
    order = np.array(
        sorted(range(len(basis)), key=lambda idx: (min_lr[idx], min_nu[idx], idx)),
        dtype=np.int64,
    )
    f = basis.get_f()
    return _SortedBasis(order=order, min_lr=min_lr, max_lr=max_lr, nus=nus, f=f)


def transposed_prefactor(f_row: float, f_col: float) -> int:
    r"""转置元的相位 ``(-1)^{f_col - f_row}``。"""
    diff = f_col - f_row
    if abs(diff - round(diff)) > 1e-9:
        raise ValueError(f"f 之差 {diff!r} 不是整数，无法确定转置相位。")
    return phase(diff)


def _info_delta(after: Mapping[str, CacheInfo], before: Mapping[str, CacheInfo]) -> Dict[str, CacheInfo]:
    delta: Dict[str, CacheInfo] = {}
    for name, info in after.items():
        prev = before.get(name, CacheInfo(0, 0, info.maxsize, 0))
        delta[name] = CacheInfo(info.hits - prev.hits, info.misses -
                                prev.misses, info.maxsize, info.currsize)
    return delta


def _merge_info(total: Dict[str, CacheInfo], extra: Mapping[str, CacheInfo]) -> None:
    for name, info in extra.items():
        prev = total.get(name)
        if prev is None:
            total[name] = info
        else:
            total[name] = CacheInfo(prev.hits + info.hits, prev.misses + info.misses,
                                    prev.maxsize, max(prev.currsize, info.currsize))


@dataclass
class MatrixElementEnumerator:
    """负责全部态对的偶极、四极、磁偶极与抗磁矩阵元枚举。"""

    operators: MemoizedOperators
    pruning: PruningConfig = field(default_factory=PruningConfig)
    start_id: int = START_ID
    max_workers: Optional[int] = None
    rows_per_chunk: Optional[int] = None
    statistics: Optional[EnumerationStatistics] = field(
        init=False, default=None, repr=False)

    def enumerate(
        self,
        basis: BasisArray,
        *,
        progress: bool | str | None = None,
    ) -> Dict[str, SparseTripleSet]:
        """返回表名到稀疏三元组的映射，三元组顺序即排序后的遍历顺序。"""

        if isinstance(progress, str):
            progress_desc = progress
            show_progress = True
        elif isinstance(progress, bool) or progress is None:
            progress_desc = "Enumerating matrix elements"
            show_progress = bool(progress)
        else:
            raise TypeError("progress must be a bool, str, or None")

        size = len(basis)
        total_pairs = size * (size + 1) // 2
        reporter = _SimpleProgress(
            total_pairs, progress_desc) if show_progress else None

        sorted_basis = sort_basis(basis)
        worker_count = self._resolve_worker_count()
        time_start = time.perf_counter()

        try:
            if worker_count <= 1 or size <= 1:
                chunk_results = [
                    self._enumerate_rows(
                        basis, sorted_basis, 0, size, reporter, chunk_id=0)
                ]
                provider_info = self.operators.provider_cache_info()
            else:
                chunk_results = self._enumerate_parallel(
                    basis, sorted_basis, reporter, worker_count)
                provider_info = dict(self.operators.provider_cache_info())
                for chunk in chunk_results:
                    self.operators.absorb(chunk.cache_info)
                    _merge_info(provider_info, chunk.provider_cache_info)
        finally:
            if reporter is not None:
                reporter.close()

        triples = {name: SparseTripleSet() for name in TABLE_NAMES}
        stats = EnumerationStatistics(pairs_total=total_pairs, workers=max(1, worker_count))
        for chunk in sorted(chunk_results, key=lambda c: c.chunk_id):
            for name in TABLE_NAMES:
                triples[name].extend(chunk.triples[name])
            stats.pruned_angular += chunk.pruned_angular
            stats.pruned_radial += chunk.pruned_radial
            stats.evaluated += chunk.evaluated
        stats.elapsed = time.perf_counter() - time_start
        stats.cache_info = self.operators.cache_info()
        stats.provider_cache_info = provider_info
        self.statistics = stats
        return triples

    def skip_reason(self, sorted_basis: _SortedBasis, id1: int, id2: int) -> Optional[str]:
        """返回 ``"angular"``、``"radial"`` 或 ``None``；``id2`` 须在排序中不早于 ``id1``。"""
        pruning = self.pruning
        if not pruning.enabled:
            return None
        if sorted_basis.min_lr[id2] - sorted_basis.max_lr[id1] > pruning.angular_window:
            return "angular"
        if _nu_separated(
            sorted_basis.nus[id1],
            sorted_basis.nus[id2],
            float(pruning.nu_gap),
            float(pruning.low_nu_threshold),
        ):
            return "radial"
        return None

    def _enumerate_rows(
        self,
        basis: BasisArray,
        sorted_basis: _SortedBasis,
        row_start: int,
        row_end: int,
        reporter: Optional[_SimpleProgress],
        chunk_id: int,
    ) -> _ChunkResult:
        triples = {name: SparseTripleSet() for name in TABLE_NAMES}
        operators = self.operators
        cache_before = operators.cache_info()
        provider_before = operators.provider_cache_info()
        order = sorted_basis.order
        f = sorted_basis.f
        size = order.size
        start_id = self.start_id
        pairs_processed = 0
        pruned_angular = 0
        pruned_radial = 0
        evaluated = 0

        for pos1 in range(row_start, row_end):
            id1 = int(order[pos1])
            s1 = basis[id1]
            for pos2 in range(pos1, size):
                id2 = int(order[pos2])
                reason = self.skip_reason(sorted_basis, id1, id2)
                if reason == "angular":
                    # 排序保证后续态的 min l_r 只增不减
                    pruned_angular += size - pos2
                    break
                if reason == "radial":
                    pruned_radial += 1
                    continue

                values = operators.evaluate(s1, basis[id2])
                evaluated += 1
                prefactor = transposed_prefactor(f[id1], f[id2]) if id1 != id2 else 1
                for op_name, table in OPERATOR_TABLES.items():
                    value = getattr(values, op_name)
                    if value == 0:
                        continue
                    triples[table].append(id1 + start_id, id2 + start_id, value)
                    if id1 != id2:
                        triples[table].append(
                            id2 + start_id, id1 + start_id, value * prefactor)

            pairs_processed += size - pos1
            if reporter is not None:
                reporter.update(size - pos1)

        return _ChunkResult(
            chunk_id=chunk_id,
            triples=triples,
            pairs_processed=pairs_processed,
            pruned_angular=pruned_angular,
            pruned_radial=pruned_radial,
            evaluated=evaluated,
            cache_info=_info_delta(operators.cache_info(), cache_before),
            provider_cache_info=_info_delta(
                operators.provider_cache_info(), provider_before),
        )

    def _enumerate_parallel(
        self,
        basis: BasisArray,
        sorted_basis: _SortedBasis,
        reporter: Optional[_SimpleProgress],
        worker_count: int,
    ) -> List[_ChunkResult]:
        chunks = self._make_row_chunks(len(basis), worker_count)
        if not chunks:
            return []

        try:
            ctx = mp.get_context(None)
        except ValueError:
            ctx = mp.get_context("spawn")

        payload = _WorkerPayload(
            enumerator=self, basis=basis, sorted_basis=sorted_basis)
        chunk_tasks = list(enumerate(chunks))
        chunk_results: List[_ChunkResult] = []
        with ctx.Pool(
            processes=worker_count,
            initializer=_parallel_worker_init,
            initargs=(payload,),
        ) as pool:
            for chunk in pool.imap_unordered(
                _parallel_process_chunk, chunk_tasks, chunksize=1
            ):
                chunk_results.append(chunk)
                if reporter is not None and chunk.pairs_processed:
                    reporter.update(chunk.pairs_processed)

        return chunk_results

    def _resolve_worker_count(self) -> int:
        """进程数：显式参数优先，其次 ``MQDT_DB_WORKERS``，最后为 CPU 核数。"""
        if self.max_workers is not None:
            return max(1, int(self.max_workers))
        requested = os.getenv("MQDT_DB_WORKERS", "").strip()
        if requested.isdigit() and int(requested) >= 1:
            return int(requested)
        return max(1, os.cpu_count() or 1)

    def _make_row_chunks(self, size: int, worker_count: int) -> List[Tuple[int, int]]:
        """把排序后的行切成连续区间；缺省每个进程约分到四块。"""
        if size <= 0:
            return []
        span = self.rows_per_chunk or 0
        if span <= 0:
            span = math.ceil(size / (max(worker_count, 1) * 4))
        span = max(1, int(span))
        return [(start, min(size, start + span)) for start in range(0, size, span)]


def all_matrix_elements(
    basis: BasisArray,
    operators: MemoizedOperators,
    **kwargs,
) -> Dict[str, SparseTripleSet]:
    """便捷函数，内部调用 :class:`MatrixElementEnumerator`。"""
    progress = kwargs.pop("progress", None)
    enumerator = MatrixElementEnumerator(operators=operators, **kwargs)
    return enumerator.enumerate(basis, progress=progress)


def report_statistics(stats: EnumerationStatistics) -> None:
    print("\n--- Matrix element enumeration ---")
    print(f"  Pairs (upper triangle) : {stats.pairs_total:12d}")
    print(f"  Pruned (angular)       : {stats.pruned_angular:12d}")
    print(f"  Pruned (radial)        : {stats.pruned_radial:12d}")
    print(f"  Evaluated              : {stats.evaluated:12d}")
    print(f"  Elapsed                : {stats.elapsed:12.2f} s ({stats.workers} workers)")
    for label, infos in (("evaluator", stats.cache_info), ("provider", stats.provider_cache_info)):
        for name, info in infos.items():
            print(
                f"  Cache [{label}:{name}] hits={info.hits} misses={info.misses} "
                f"size={info.currsize}/{info.maxsize}"
            )


def _parallel_worker_init(payload: _WorkerPayload) -> None:
    global _WORKER_PAYLOAD
    _WORKER_PAYLOAD = payload


def _parallel_process_chunk(task: Tuple[int, Tuple[int, int]]) -> _ChunkResult:
    if _WORKER_PAYLOAD is None:
        raise RuntimeError("Worker payload is not initialized.")
    enumerator = _WORKER_PAYLOAD.enumerator
    chunk_id, (start, end) = task
    return enumerator._enumerate_rows(
        _WORKER_PAYLOAD.basis,
        _WORKER_PAYLOAD.sorted_basis,
        start,
        end,
        reporter=None,
        chunk_id=chunk_id,
    )
