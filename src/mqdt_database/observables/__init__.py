"""量子数统计与主量子数估计。"""

from .statistics import (
    expectation_value,
    is_multichannel,
    standard_deviation,
    state_expectation,
    state_standard_deviation,
    underspecified_contribution,
)
from .principal import estimate_n, state_principal_n

__all__ = [
    "expectation_value",
    "standard_deviation",
    "state_expectation",
    "state_standard_deviation",
    "underspecified_contribution",
    "is_multichannel",
    "estimate_n",
    "state_principal_n",
]
