"""态的量子数统计：系数加权期望值、标准差以及通道混合诊断量。"""
from __future__ import annotations

import math
from typing import Sequence, Tuple

import numpy as np
from numba import njit

from mqdt_database.basis.channels import QUANTUM_NUMBERS, channel_quantum_numbers
from mqdt_database.basis.states import BasisState

VARIANCE_TOLERANCE = 1e-11


@njit()
def _weighted_moments(values: np.ndarray, coefficients: np.ndarray) -> Tuple[float, float]:
    weights = coefficients * coefficients
    total = 0.0
    for idx in range(weights.size):
        total += weights[idx]
    # 权重和不超过 1 时保留缺失概率，不做归一
    if total > 1.0:
        weights = weights / total
    first = 0.0
    second = 0.0
    for idx in range(values.size):
        first += values[idx] * weights[idx]
        second += values[idx] * values[idx] * weights[idx]
    return first, second


def _as_arrays(values: Sequence[float], coefficients: Sequence[float]) -> Tuple[np.ndarray, np.ndarray]:
    values_arr = np.ascontiguousarray(values, dtype=float)
    coeff_arr = np.ascontiguousarray(coefficients, dtype=float)
    if values_arr.ndim != 1 or values_arr.size == 0:
        raise ValueError("量子数序列必须为非空一维数组。")
    if values_arr.shape != coeff_arr.shape:
        raise ValueError("量子数与系数的长度必须一致。")
    return values_arr, coeff_arr


def _all_equal(values: np.ndarray) -> bool:
    # NaN 视为相等：方案中未定义的量子数在单通道态上标准差仍为 0
    return bool(np.array_equal(values, np.full_like(values, values[0]), equal_nan=True))


def expectation_value(values: Sequence[float], coefficients: Sequence[float]) -> float:
    """计算 ``<q> = Σ c_i² q_i``（权重和大于 1 时先归一）。"""
    values_arr, coeff_arr = _as_arrays(values, coefficients)
    if _all_equal(values_arr):
        return float(values_arr[0])
    first, _ = _weighted_moments(values_arr, coeff_arr)
    return float(first)


def standard_deviation(values: Sequence[float], coefficients: Sequence[float]) -> float:
    """计算 ``sqrt(<q²> - <q>²)``，数值抵消导致的近零方差截断为 0。"""
    values_arr, coeff_arr = _as_arrays(values, coefficients)
    if _all_equal(values_arr):
        return 0.0
    first, second = _weighted_moments(values_arr, coeff_arr)
    variance = second - first * first
    if variance < VARIANCE_TOLERANCE:
        return 0.0
    return math.sqrt(variance)


def _state_values(state: BasisState, qn: str) -> Tuple[Sequence[float], Sequence[float]]:
    if qn not in QUANTUM_NUMBERS:
        raise KeyError(f"未知量子数 {qn!r}。")
    if qn == "nu":
        return state.nu_list, state.coefficients
    values = [channel_quantum_numbers(channel)[qn]
              for channel in state.core_channels]
    return values, state.core_coefficients


def state_expectation(state: BasisState, qn: str) -> float:
    """态上量子数 ``qn`` 的期望值；``nu`` 使用全部通道，其余只用核心通道。"""
    values, coefficients = _state_values(state, qn)
    return expectation_value(values, coefficients)


def state_standard_deviation(state: BasisState, qn: str) -> float:
    values, coefficients = _state_values(state, qn)
    return standard_deviation(values, coefficients)


def underspecified_contribution(state: BasisState) -> float:
    """非核心通道的系数平方和，即未被名义对称性块覆盖的概率。"""
    return float(sum(coeff ** 2 for coeff, core in zip(state.coefficients, state.model.core) if not core))


def is_multichannel(state: BasisState) -> bool:
    return len(state.coefficients) != 1
