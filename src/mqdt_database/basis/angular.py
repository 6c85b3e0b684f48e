r"""角动量耦合系数与约化矩阵元（Edmonds 约定），供参考算符实现使用。"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, Tuple

from sympy import Rational
from sympy.physics.wigner import wigner_3j, wigner_6j

_EPS = 1e-14


def _twice(j: float) -> int:
    value = int(round(2 * j))
    if abs(2 * j - value) > 1e-9:
        raise ValueError(f"角动量 {j!r} 不是整数或半整数。")
    return value


def _rational(twice_j: int) -> Rational:
    return Rational(twice_j, 2)


def phase(exponent: float) -> int:
    r"""返回 ``(-1)^exponent``，要求指数为整数。"""
    value = int(round(exponent))
    if abs(exponent - value) > 1e-9:
        raise ValueError(f"相位指数 {exponent!r} 不是整数。")
    return -1 if value % 2 else 1


def triangle(j1: float, j2: float, j3: float) -> bool:
    """三角条件，同时检查 ``j1 + j2 + j3`` 为整数。"""
    t1, t2, t3 = _twice(j1), _twice(j2), _twice(j3)
    if (t1 + t2 + t3) % 2:
        return False
    return abs(t1 - t2) <= t3 <= t1 + t2


@dataclass
class AngularCoupling:
    """封装 3j、6j 符号与单电子张量算符的约化矩阵元。

    - 3j / 6j 符号（sympy 精确求值后缓存为浮点数）
    - ``<l||C^k||l'>``、``<l||l||l'>``、``<s||s||s>``
    - 耦合对中作用于第一/第二部分的张量算符的退耦因子 (Edmonds 7.1.7 / 7.1.8)
    """

    cache_3j: Dict[Tuple[int, int, int, int, int, int],
                   float] = field(default_factory=dict)
    cache_6j: Dict[Tuple[int, int, int, int, int, int],
                   float] = field(default_factory=dict)

    def wigner_3j(self, j1: float, j2: float, j3: float, m1: float, m2: float, m3: float) -> float:
        """返回 Wigner 3j 符号。"""
        key = tuple(_twice(x) for x in (j1, j2, j3, m1, m2, m3))
        if key not in self.cache_3j:
            self.cache_3j[key] = float(
                wigner_3j(*(_rational(x) for x in key)).evalf())
        return self.cache_3j[key]

    def wigner_6j(self, j1: float, j2: float, j3: float, l1: float, l2: float, l3: float) -> float:
        """返回 Wigner 6j 符号。"""
        key = tuple(_twice(x) for x in (j1, j2, j3, l1, l2, l3))
        if key not in self.cache_6j:
            self.cache_6j[key] = float(
                wigner_6j(*(_rational(x) for x in key)).evalf())
        return self.cache_6j[key]

    def reduced_spherical_tensor(self, l: int, k: int, lp: int) -> float:
        r"""``<l||C^k||l'> = (-1)^l \sqrt{(2l+1)(2l'+1)} (l k l'; 0 0 0)``。"""
        if not triangle(l, k, lp) or (l + k + lp) % 2:
            return 0.0
        three = self.wigner_3j(l, k, lp, 0, 0, 0)
        if abs(three) < _EPS:
            return 0.0
        return phase(l) * math.sqrt((2 * l + 1) * (2 * lp + 1)) * three

    @staticmethod
    def reduced_orbital_momentum(l: int, lp: int) -> float:
        r"""``<l||\mathbf{l}||l'> = \delta_{ll'} \sqrt{l(l+1)(2l+1)}``。"""
        if l != lp:
            return 0.0
        return math.sqrt(l * (l + 1) * (2 * l + 1))

    @staticmethod
    def reduced_spin(s: float) -> float:
        return math.sqrt(s * (s + 1) * (2 * s + 1))

    def acting_on_first(
        self,
        j1: float,
        j2: float,
        J: float,
        j1p: float,
        j2p: float,
        Jp: float,
        k: int,
    ) -> float:
        r"""``<j1 j2 J||T^k(1)||j1' j2 J'> / <j1||T^k||j1'>``，即 Edmonds (7.1.7)。"""
        if _twice(j2) != _twice(j2p):
            return 0.0
        if not (triangle(J, k, Jp) and triangle(j1, k, j1p)):
            return 0.0
        six = self.wigner_6j(j1, J, j2, Jp, j1p, k)
        if abs(six) < _EPS:
            return 0.0
        return phase(j1 + j2 + Jp + k) * math.sqrt((2 * J + 1) * (2 * Jp + 1)) * six

    def acting_on_second(
        self,
        j1: float,
        j2: float,
        J: float,
        j1p: float,
        j2p: float,
        Jp: float,
        k: int,
    ) -> float:
        r"""``<j1 j2 J||U^k(2)||j1 j2' J'> / <j2||U^k||j2'>``，即 Edmonds (7.1.8)。"""
        if _twice(j1) != _twice(j1p):
            return 0.0
        if not (triangle(J, k, Jp) and triangle(j2, k, j2p)):
            return 0.0
        six = self.wigner_6j(j2, J, j1, Jp, j2p, k)
        if abs(six) < _EPS:
            return 0.0
        return phase(j1 + j2p + J + k) * math.sqrt((2 * J + 1) * (2 * Jp + 1)) * six
