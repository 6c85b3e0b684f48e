"""通道、模型与本征态的数据模型，以及角动量耦合工具。"""

from .channels import (
    Channel,
    CouplingScheme,
    FJChannel,
    JJChannel,
    LSChannel,
    channel_from_dict,
    channel_quantum_numbers,
    channel_to_dict,
)
from .models import Model, ModelNameError, parse_nu_range
from .states import BasisArray, BasisState, Parameters
from .angular import AngularCoupling

__all__ = [
    "Channel",
    "CouplingScheme",
    "FJChannel",
    "JJChannel",
    "LSChannel",
    "channel_from_dict",
    "channel_quantum_numbers",
    "channel_to_dict",
    "Model",
    "ModelNameError",
    "parse_nu_range",
    "BasisArray",
    "BasisState",
    "Parameters",
    "AngularCoupling",
]
