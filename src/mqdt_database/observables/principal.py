"""由有效主量子数 ``nu`` 与 ``l_r`` 估计整数主量子数 ``n``。"""
from __future__ import annotations

from typing import Dict, Union

import numpy as np

from mqdt_database.basis.states import BasisState
from mqdt_database.observables.statistics import state_expectation

ArrayLike = Union[float, int, np.ndarray]

# 量子亏损修正的整数偏移，键为 l_r
_YB_OFFSETS: Dict[int, int] = {0: 4, 1: 3, 2: 2, 3: 1}
_DEFAULT_OFFSETS: Dict[int, int] = {0: 3, 1: 2, 2: 2}

LOW_NU_THRESHOLD = 2.0


def quantum_defect_offsets(species: str) -> Dict[int, int]:
    """返回物种对应的偏移表；名称包含 ``Yb`` 的物种使用单独的一套。"""
    if "Yb" in species:
        return dict(_YB_OFFSETS)
    return dict(_DEFAULT_OFFSETS)


def estimate_n(nu: ArrayLike, l_r: ArrayLike, species: str) -> Union[int, np.ndarray]:
    """``n = ceil(nu + offset(l_r))``，其中 ``nu < 2`` 时额外加 1。

    标量输入返回 ``int``，数组输入返回整型数组。
    """

    nu_arr = np.array(nu, dtype=float, copy=True)
    l_arr = np.asarray(l_r)
    if nu_arr.shape != l_arr.shape:
        raise ValueError("nu 与 l_r 的形状必须一致。")

    shifted = nu_arr + np.where(nu_arr < LOW_NU_THRESHOLD, 1.0, 0.0)
    for l_value, offset in quantum_defect_offsets(species).items():
        shifted = shifted + np.where(l_arr == l_value, float(offset), 0.0)

    n = np.ceil(shifted).astype(int)
    if n.ndim == 0:
        return int(n)
    return n


def state_principal_n(state: BasisState, species: str) -> int:
    """利用态的 ``nu`` 与四舍五入后的 ``<l_r>`` 估计 ``n``。"""
    l_r = int(round(state_expectation(state, "l_r")))
    return int(estimate_n(state.nu, l_r, species))
