"""对称性块（模型）的描述，以及从模型名称解析 ``nu`` 有效区间。"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Sequence, Tuple

from .channels import CouplingScheme

_NU = r"(?:ν|nu)"
_NUMBER = r"([-+]?\d+(?:\.\d*)?(?:[eE][-+]?\d+)?)"
_LOWER_ONLY = re.compile(rf"{_NU}\s*>\s*{_NUMBER}")
_BOUNDED = re.compile(rf"{_NUMBER}\s*<\s*{_NU}\s*<\s*{_NUMBER}")
_HAS_NU = re.compile(rf"(?<![A-Za-z]){_NU}(?![A-Za-z])")


class ModelNameError(ValueError):
    """模型名称中的 ``nu`` 区间无法解析。"""


def parse_nu_range(name: str) -> Tuple[float, float]:
    """从 ``"... ν > X"`` 或 ``"... X < ν < Y"`` 形式的名称中解析区间。

    名称中不出现 ``ν``/``nu`` 时返回 ``(0, inf)``。
    """

    bounded = _BOUNDED.search(name)
    if bounded is not None:
        nu_min, nu_max = float(bounded.group(1)), float(bounded.group(2))
        if nu_min >= nu_max:
            raise ModelNameError(f"模型 {name!r} 的 nu 区间为空。")
        return nu_min, nu_max
    lower = _LOWER_ONLY.search(name)
    if lower is not None:
        return float(lower.group(1)), math.inf
    if _HAS_NU.search(name):
        raise ModelNameError(f"无法从模型名称 {name!r} 中解析 nu 区间。")
    return 0.0, math.inf


@dataclass(frozen=True)
class Model:
    """一个对称性块：宇称、总角动量 ``f``、耦合方案以及核心通道掩码。"""

    name: str
    parity: int
    f: float
    scheme: CouplingScheme
    core: Tuple[bool, ...]
    nu_min: float = 0.0
    nu_max: float = math.inf

    @classmethod
    def from_name(
        cls,
        name: str,
        *,
        parity: int,
        f: float,
        scheme: CouplingScheme | str,
        core: Sequence[bool],
    ) -> "Model":
        nu_min, nu_max = parse_nu_range(name)
        return cls(
            name=name,
            parity=int(parity),
            f=float(f),
            scheme=CouplingScheme(scheme),
            core=tuple(bool(flag) for flag in core),
            nu_min=nu_min,
            nu_max=nu_max,
        )

    @property
    def is_sqdt(self) -> bool:
        return self.name.startswith("SQDT")

    @property
    def core_indices(self) -> Tuple[int, ...]:
        return tuple(idx for idx, flag in enumerate(self.core) if flag)

    def contains_nu(self, nu: float) -> bool:
        return self.nu_min < nu < self.nu_max
