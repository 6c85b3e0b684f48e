r"""MQDT 通道定义：三种耦合方案下的角动量量子数与有效主量子数 ``nu``。"""
from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from typing import Dict, Mapping, Union


class CouplingScheme(str, enum.Enum):
    """通道的耦合方案标签。"""

    LS = "LS"
    JJ = "JJ"
    FJ = "FJ"


QUANTUM_NUMBERS = (
    "s_c",
    "l_c",
    "l_r",
    "s_tot",
    "l_tot",
    "j_c",
    "j_r",
    "j_tot",
    "f_c",
    "f_tot",
    "nu",
)

S_R = 0.5


@dataclass(frozen=True)
class LSChannel:
    r"""LS 耦合通道 ``|(s_c s_r) S, (l_c l_r) L; J, I; F>``。"""

    nu: float
    l_r: int
    s_tot: float
    l_tot: int
    j_tot: float
    f_tot: float
    s_c: float = 0.5
    l_c: int = 0

    scheme = CouplingScheme.LS


@dataclass(frozen=True)
class JJChannel:
    r"""jj 耦合通道 ``|(l_c s_c) j_c, (l_r s_r) j_r; J, I; F>``。"""

    nu: float
    l_r: int
    j_c: float
    j_r: float
    j_tot: float
    f_tot: float
    s_c: float = 0.5
    l_c: int = 0

    scheme = CouplingScheme.JJ


@dataclass(frozen=True)
class FJChannel:
    r"""FJ 耦合通道 ``|((l_c s_c) j_c, I) f_c, (l_r s_r) j_r; F>``。"""

    nu: float
    l_r: int
    j_c: float
    f_c: float
    j_r: float
    f_tot: float
    s_c: float = 0.5
    l_c: int = 0

    scheme = CouplingScheme.FJ


Channel = Union[LSChannel, JJChannel, FJChannel]

_CHANNEL_TYPES = {
    CouplingScheme.LS: LSChannel,
    CouplingScheme.JJ: JJChannel,
    CouplingScheme.FJ: FJChannel,
}


def channel_quantum_numbers(channel: Channel) -> Dict[str, float]:
    """返回通道的全部量子数；在该耦合方案下不是好量子数的项记为 ``nan``。"""

    values: Dict[str, float] = {name: math.nan for name in QUANTUM_NUMBERS}
    values["nu"] = float(channel.nu)
    values["l_r"] = float(channel.l_r)
    values["s_c"] = float(channel.s_c)
    values["l_c"] = float(channel.l_c)
    values["f_tot"] = float(channel.f_tot)

    scheme = channel.scheme
    if scheme is CouplingScheme.LS:
        values["s_tot"] = float(channel.s_tot)
        values["l_tot"] = float(channel.l_tot)
        values["j_tot"] = float(channel.j_tot)
    elif scheme is CouplingScheme.JJ:
        values["j_c"] = float(channel.j_c)
        values["j_r"] = float(channel.j_r)
        values["j_tot"] = float(channel.j_tot)
    elif scheme is CouplingScheme.FJ:
        values["j_c"] = float(channel.j_c)
        values["f_c"] = float(channel.f_c)
        values["j_r"] = float(channel.j_r)
    else:  # pragma: no cover - 枚举已穷举
        raise ValueError(f"未知耦合方案: {scheme!r}")
    return values


def channel_from_dict(data: Mapping[str, object], scheme: CouplingScheme | str) -> Channel:
    """由字典构造通道，字段名与数据类属性一致。"""

    try:
        scheme = CouplingScheme(data.get("scheme", scheme))
    except ValueError as err:
        raise ValueError(f"未知耦合方案: {data.get('scheme', scheme)!r}") from err
    cls = _CHANNEL_TYPES[scheme]
    fields = {key: value for key, value in data.items() if key != "scheme"}
    if "l_r" in fields:
        fields["l_r"] = int(fields["l_r"])
    if "l_c" in fields:
        fields["l_c"] = int(fields["l_c"])
    if "l_tot" in fields:
        fields["l_tot"] = int(fields["l_tot"])
    return cls(**fields)


def channel_to_dict(channel: Channel) -> Dict[str, object]:
    """``channel_from_dict`` 的逆操作。"""

    data: Dict[str, object] = {"scheme": channel.scheme.value}
    data.update(channel.__dict__)
    return data
