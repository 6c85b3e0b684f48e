"""本征态与基组数组，由外部 MQDT 本征求解步骤生成、在此只读使用。"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterator, Sequence, Tuple

import numpy as np

from .channels import Channel
from .models import Model


@dataclass(frozen=True)
class Parameters:
    """物种参数。

    Attributes
    ----------
    species : str
        物种名称，例如 ``"Yb174"``。
    spin : float
        核自旋 ``I``。
    mass : float
        原子实质量（以电子质量为单位），用于约化质量修正。
    dipole_const : float
        Rydberg 电子自旋的 g 因子。
    """

    species: str
    spin: float = 0.0
    mass: float = float("inf")
    dipole_const: float = 2.00231930436


@dataclass(frozen=True)
class BasisState:
    """单个本征态：通道展开系数、能量 (cm⁻¹)、宇称、总角动量 ``f`` 与所属模型。

    系数不一定归一：只有模型中标记为核心的通道平方和不超过 1。
    """

    channels: Tuple[Channel, ...]
    coefficients: Tuple[float, ...]
    energy: float
    nu: float
    parity: int
    f: float
    model: Model

    def __post_init__(self) -> None:
        object.__setattr__(self, "channels", tuple(self.channels))
        object.__setattr__(self, "coefficients",
                           tuple(float(c) for c in self.coefficients))
        if not self.channels:
            raise ValueError("BasisState 至少需要一个通道。")
        if len(self.channels) != len(self.coefficients):
            raise ValueError(
                f"通道数 ({len(self.channels)}) 与系数个数 ({len(self.coefficients)}) 不一致。")
        if len(self.model.core) != len(self.channels):
            raise ValueError(
                f"模型 {self.model.name!r} 的核心掩码长度与通道数不一致。")
        if not any(self.model.core):
            raise ValueError(f"模型 {self.model.name!r} 没有核心通道。")

    @property
    def core_channels(self) -> Tuple[Channel, ...]:
        return tuple(self.channels[idx] for idx in self.model.core_indices)

    @property
    def core_coefficients(self) -> Tuple[float, ...]:
        return tuple(self.coefficients[idx] for idx in self.model.core_indices)

    @property
    def lr_list(self) -> Tuple[int, ...]:
        return tuple(channel.l_r for channel in self.channels)

    @property
    def nu_list(self) -> Tuple[float, ...]:
        return tuple(float(channel.nu) for channel in self.channels)

    @property
    def relevant_lr(self) -> Tuple[int, ...]:
        """核心通道的 ``l_r``，用于排序与剪枝。"""
        return tuple(channel.l_r for channel in self.core_channels)

    @property
    def relevant_nu(self) -> Tuple[float, ...]:
        return tuple(float(channel.nu) for channel in self.core_channels)


@dataclass(frozen=True)
class BasisArray:
    """有序、索引稳定的本征态集合，附带生成它们所用的物种参数。"""

    states: Tuple[BasisState, ...]
    parameters: Parameters

    def __post_init__(self) -> None:
        object.__setattr__(self, "states", tuple(self.states))

    def __len__(self) -> int:
        return len(self.states)

    def __getitem__(self, index: int) -> BasisState:
        return self.states[index]

    def __iter__(self) -> Iterator[BasisState]:
        return iter(self.states)

    def get_nu(self) -> np.ndarray:
        return np.array([state.nu for state in self.states], dtype=float)

    def get_f(self) -> np.ndarray:
        return np.array([state.f for state in self.states], dtype=float)

    def get_parity(self) -> np.ndarray:
        return np.array([state.parity for state in self.states], dtype=int)

    def get_energy(self) -> np.ndarray:
        """能量，单位 cm⁻¹。"""
        return np.array([state.energy for state in self.states], dtype=float)

    def select(self, predicate: Callable[[BasisState], bool]) -> "BasisArray":
        """返回满足条件的新数组，原数组保持不变。"""
        return BasisArray(
            states=tuple(state for state in self.states if predicate(state)),
            parameters=self.parameters,
        )

    @classmethod
    def from_states(cls, states: Sequence[BasisState], parameters: Parameters) -> "BasisArray":
        return cls(states=tuple(states), parameters=parameters)
