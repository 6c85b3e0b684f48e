r"""参考算符实现：单电子张量算符在 LS / jj / FJ 耦合通道间的约化矩阵元。

角向部分按 Edmonds (7.1.7)/(7.1.8) 逐层退耦到 Rydberg 电子的 ``l_r`` 或 ``s_r``，
径向部分通过可替换的 ``radial(nu1, l1, nu2, l2, power)`` 给出。
态间矩阵元为核心通道上的系数加权和：

.. math::

    \langle a \| T^{(k)} \| b \rangle = \sum_{i,j} c^a_i c^b_j
        \langle \phi_i \| T^{(k)} \| \phi_j \rangle .

生产数据库应替换为完整的径向求解器；本实现用于冒烟运行与穷举校验。
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Callable, Dict

from mqdt_database.basis.angular import AngularCoupling
from mqdt_database.basis.channels import Channel, CouplingScheme, S_R
from mqdt_database.basis.states import BasisState, Parameters
from mqdt_database.operators.memoized import CacheInfo, LRUCache

RadialMoment = Callable[[float, int, float, int, int], float]

BOHR_MAGNETON = 0.5  # 原子单位
NU_TOLERANCE = 1e-9
CHANNEL_CACHE_SIZE = 2 ** 16


class UnsupportedCouplingError(ValueError):
    """通道对的耦合方案组合不受支持（需要框架变换）。"""


def _hydrogenic_expectation(nu: float, l: int, power: int) -> float:
    if power == 0:
        return 1.0
    if power == 1:
        return 0.5 * (3.0 * nu * nu - l * (l + 1))
    if power == 2:
        return 0.5 * nu * nu * (5.0 * nu * nu + 1.0 - 3.0 * l * (l + 1))
    raise ValueError(f"不支持的径向幂次 r^{power}。")


def hydrogenic_radial_moment(nu1: float, l1: int, nu2: float, l2: int, power: int) -> float:
    r"""同一 ``nu`` 流形内的类氢径向矩阵元 ``<nu l1| r^power |nu l2>``。

    不同 ``nu`` 之间返回 0（流形近似）；``Δl = 1`` 的偶极元取
    ``3/2 ν sqrt(ν² - l_>²)``，其余非对角元取对角值的几何平均。
    """

    if abs(nu1 - nu2) > NU_TOLERANCE:
        return 0.0
    nu = 0.5 * (nu1 + nu2)
    if l1 == l2:
        return _hydrogenic_expectation(nu, l1, power)
    if power == 0:
        return 0.0
    if power == 1 and abs(l1 - l2) == 1:
        l_greater = max(l1, l2)
        return 1.5 * nu * math.sqrt(max(nu * nu - l_greater * l_greater, 0.0))
    return math.sqrt(abs(_hydrogenic_expectation(nu, l1, power) * _hydrogenic_expectation(nu, l2, power)))


def _same(a: float, b: float) -> bool:
    return abs(a - b) < 1e-9


@dataclass
class ReferenceOperators:
    """按通道对缓存的参考算符求值器。

    ``nuclear_spin`` 用于 LS/jj 通道中 ``F = J + I`` 一层的退耦；
    磁偶极算符使用调用时传入的核自旋。
    """

    nuclear_spin: float = 0.0
    angular: AngularCoupling = field(default_factory=AngularCoupling)
    radial: RadialMoment = hydrogenic_radial_moment
    cache_size: int = CHANNEL_CACHE_SIZE
    caches: Dict[str, LRUCache] = field(init=False)

    def __post_init__(self) -> None:
        self.caches = {
            "angular_matrix": LRUCache(self.cache_size),
            "magnetic_matrix": LRUCache(self.cache_size),
        }

    @classmethod
    def from_parameters(cls, parameters: Parameters, **kwargs) -> "ReferenceOperators":
        return cls(nuclear_spin=float(parameters.spin), **kwargs)

    # --- 态间矩阵元 -----------------------------------------------------

    def dipole(self, s1: BasisState, s2: BasisState) -> float:
        return self._state_sum(s1, s2, lambda a, b: self._multipole(a, b, k=1, power=1))

    def quadrupole(self, s1: BasisState, s2: BasisState) -> float:
        return self._state_sum(s1, s2, lambda a, b: self._multipole(a, b, k=2, power=2))

    def diamagnetic(self, s1: BasisState, s2: BasisState) -> float:
        return self._state_sum(s1, s2, lambda a, b: self._multipole(a, b, k=0, power=2))

    def magnetic(self, dipole_const: float, mass: float, spin: float, s1: BasisState, s2: BasisState) -> float:
        g_l = 1.0 - 1.0 / mass
        g_s = float(dipole_const)
        return self._state_sum(
            s1, s2, lambda a, b: self._magnetic(a, b, g_l=g_l, g_s=g_s, spin=float(spin)))

    def cache_info(self) -> Dict[str, CacheInfo]:
        return {name: cache.info() for name, cache in self.caches.items()}

    # --- 通道矩阵元 -----------------------------------------------------

    @staticmethod
    def _state_sum(s1: BasisState, s2: BasisState, element: Callable[[Channel, Channel], float]) -> float:
        total = 0.0
        for coeff_a, channel_a in zip(s1.core_coefficients, s1.core_channels):
            if coeff_a == 0.0:
                continue
            for coeff_b, channel_b in zip(s2.core_coefficients, s2.core_channels):
                if coeff_b == 0.0:
                    continue
                total += coeff_a * coeff_b * element(channel_a, channel_b)
        return total

    def _multipole(self, a: Channel, b: Channel, *, k: int, power: int) -> float:
        key = ("multipole", k, power, a, b)
        return self.caches["angular_matrix"].get_or_compute(
            key, lambda: self._compute_multipole(a, b, k, power))

    def _magnetic(self, a: Channel, b: Channel, *, g_l: float, g_s: float, spin: float) -> float:
        key = (g_l, g_s, spin, a, b)
        return self.caches["magnetic_matrix"].get_or_compute(
            key, lambda: self._compute_magnetic(a, b, g_l, g_s, spin))

    def _compute_multipole(self, a: Channel, b: Channel, k: int, power: int) -> float:
        self._check_schemes(a, b)
        reduced = self.angular.reduced_spherical_tensor(a.l_r, k, b.l_r)
        if reduced == 0.0:
            return 0.0
        angular = self._orbital_recoupling(a, b, k, self.nuclear_spin)
        if angular == 0.0:
            return 0.0
        return angular * reduced * self.radial(a.nu, a.l_r, b.nu, b.l_r, power)

    def _compute_magnetic(self, a: Channel, b: Channel, g_l: float, g_s: float, spin: float) -> float:
        self._check_schemes(a, b)
        # 磁偶极算符不改变 l_r
        if a.l_r != b.l_r:
            return 0.0
        overlap = self.radial(a.nu, a.l_r, b.nu, b.l_r, 0)
        if overlap == 0.0:
            return 0.0
        orbital = self._orbital_recoupling(a, b, 1, spin) * \
            self.angular.reduced_orbital_momentum(a.l_r, b.l_r)
        spin_part = self._spin_recoupling(a, b, spin) * \
            self.angular.reduced_spin(S_R)
        return -BOHR_MAGNETON * (g_l * orbital + g_s * spin_part) * overlap

    @staticmethod
    def _check_schemes(a: Channel, b: Channel) -> None:
        if a.scheme is not b.scheme:
            raise UnsupportedCouplingError(
                f"不支持 {a.scheme.value} 与 {b.scheme.value} 通道之间的矩阵元。")

    def _orbital_recoupling(self, a: Channel, b: Channel, k: int, spin: float) -> float:
        """作用于 ``l_r`` 的秩 ``k`` 张量从通道层退耦到 ``<l_r||·||l_r'>`` 的因子。"""
        if not (_same(a.s_c, b.s_c) and a.l_c == b.l_c):
            return 0.0
        ang = self.angular
        scheme = a.scheme
        if scheme is CouplingScheme.LS:
            factor = ang.acting_on_first(
                a.j_tot, spin, a.f_tot, b.j_tot, spin, b.f_tot, k)
            if factor == 0.0:
                return 0.0
            factor *= ang.acting_on_first(a.l_tot, a.s_tot,
                                          a.j_tot, b.l_tot, b.s_tot, b.j_tot, k)
            if factor == 0.0:
                return 0.0
            return factor * ang.acting_on_second(a.l_c, a.l_r, a.l_tot, b.l_c, b.l_r, b.l_tot, k)
        if scheme is CouplingScheme.JJ:
            if not _same(a.j_c, b.j_c):
                return 0.0
            factor = ang.acting_on_first(
                a.j_tot, spin, a.f_tot, b.j_tot, spin, b.f_tot, k)
            if factor == 0.0:
                return 0.0
            factor *= ang.acting_on_second(a.j_c, a.j_r,
                                           a.j_tot, b.j_c, b.j_r, b.j_tot, k)
            if factor == 0.0:
                return 0.0
            return factor * ang.acting_on_first(a.l_r, S_R, a.j_r, b.l_r, S_R, b.j_r, k)
        # FJ
        if not _same(a.j_c, b.j_c):
            return 0.0
        factor = ang.acting_on_second(
            a.f_c, a.j_r, a.f_tot, b.f_c, b.j_r, b.f_tot, k)
        if factor == 0.0:
            return 0.0
        return factor * ang.acting_on_first(a.l_r, S_R, a.j_r, b.l_r, S_R, b.j_r, k)

    def _spin_recoupling(self, a: Channel, b: Channel, spin: float) -> float:
        """作用于 ``s_r`` 的秩 1 张量的退耦因子。"""
        if not (_same(a.s_c, b.s_c) and a.l_c == b.l_c and a.l_r == b.l_r):
            return 0.0
        ang = self.angular
        scheme = a.scheme
        if scheme is CouplingScheme.LS:
            factor = ang.acting_on_first(
                a.j_tot, spin, a.f_tot, b.j_tot, spin, b.f_tot, 1)
            if factor == 0.0:
                return 0.0
            factor *= ang.acting_on_second(a.l_tot, a.s_tot,
                                           a.j_tot, b.l_tot, b.s_tot, b.j_tot, 1)
            if factor == 0.0:
                return 0.0
            return factor * ang.acting_on_second(a.s_c, S_R, a.s_tot, b.s_c, S_R, b.s_tot, 1)
        if scheme is CouplingScheme.JJ:
            factor = ang.acting_on_first(
                a.j_tot, spin, a.f_tot, b.j_tot, spin, b.f_tot, 1)
            if factor == 0.0:
                return 0.0
            factor *= ang.acting_on_second(a.j_c, a.j_r,
                                           a.j_tot, b.j_c, b.j_r, b.j_tot, 1)
            if factor == 0.0:
                return 0.0
            return factor * ang.acting_on_second(a.l_r, S_R, a.j_r, b.l_r, S_R, b.j_r, 1)
        if not _same(a.j_c, b.j_c):
            return 0.0
        factor = ang.acting_on_second(
            a.f_c, a.j_r, a.f_tot, b.f_c, b.j_r, b.f_tot, 1)
        if factor == 0.0:
            return 0.0
        return factor * ang.acting_on_second(a.l_r, S_R, a.j_r, b.l_r, S_R, b.j_r, 1)
