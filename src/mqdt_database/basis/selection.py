"""数据库态筛选：按 ``n`` 上下限与高 ``l`` 截断挑选写入数据库的态。"""
from __future__ import annotations

import math

from mqdt_database.basis.states import BasisArray, BasisState
from mqdt_database.observables.principal import state_principal_n

HIGH_L = 10


def select_database_states(
    basis: BasisArray,
    *,
    n_max: int,
    n_min_sqdt: int,
    n_max_high_l: float = math.inf,
    high_l: int = HIGH_L,
) -> BasisArray:
    """返回满足截断条件的新基组数组。

    - 所有态要求 ``n <= n_max``；
    - SQDT 模型的态要求 ``n >= n_min_sqdt``；
    - 核自旋非零时，SQDT 态中 ``l_r >= n_max_high_l`` 的被丢弃，
      ``l_r > high_l`` 的要求 ``n <= min(n_max_high_l, n_max)``。
    """

    parameters = basis.parameters
    species = parameters.species

    def keep(state: BasisState) -> bool:
        n = state_principal_n(state, species)
        if n > n_max:
            return False
        if not state.model.is_sqdt:
            return True
        if n < n_min_sqdt:
            return False
        if parameters.spin > 0:
            l_ryd = state.lr_list[0]
            if l_ryd >= n_max_high_l:
                return False
            if l_ryd > high_l and n > min(n_max_high_l, n_max):
                return False
        return True

    return basis.select(keep)


def count_out_of_range(basis: BasisArray) -> int:
    """统计 ``nu`` 不在所属模型有效区间内的态的个数。"""
    return sum(1 for state in basis if not state.model.contains_nu(state.nu))
