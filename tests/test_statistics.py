import math

import pytest

from mqdt_database.basis import CouplingScheme, JJChannel
from mqdt_database.basis.channels import QUANTUM_NUMBERS
from mqdt_database.observables import (
    expectation_value,
    is_multichannel,
    standard_deviation,
    state_expectation,
    state_standard_deviation,
    underspecified_contribution,
)

from tests.builders import ls_channel, make_state, singlet, triplet


@pytest.mark.parametrize("qn", ["nu", "l_r", "s_tot", "l_tot", "j_tot", "f_tot", "s_c", "l_c"])
def test_single_channel_is_exact(qn):
    state = triplet(37.25, 2, 3)
    expected = {"nu": 37.25, "l_r": 2, "s_tot": 1.0, "l_tot": 2, "j_tot": 3,
                "f_tot": 3, "s_c": 0.5, "l_c": 0}[qn]
    assert state_expectation(state, qn) == expected
    assert state_standard_deviation(state, qn) == 0.0


def test_single_channel_with_small_coefficient():
    state = make_state([ls_channel(30.0, 1, 0.0, 1)], [0.3], f=1)
    assert state_expectation(state, "l_r") == 1.0
    assert state_standard_deviation(state, "l_r") == 0.0


def test_weights_are_renormalised_only_above_one():
    assert expectation_value([1.0, 2.0], [1.0, 1.0]) == pytest.approx(1.5)
    assert standard_deviation([1.0, 2.0], [1.0, 1.0]) == pytest.approx(0.5)

    # 权重和 0.72 < 1，不归一
    assert expectation_value([1.0, 2.0], [0.6, 0.6]) == pytest.approx(1.08)
    assert standard_deviation([1.0, 2.0], [0.6, 0.6]) == pytest.approx(math.sqrt(1.8 - 1.08 ** 2))


def test_near_zero_variance_is_clamped():
    # 几乎全部权重在一个通道上，方差低于阈值
    assert standard_deviation([1.0, 2.0], [1.0, 1e-7]) == 0.0


def test_mismatched_lengths_raise():
    with pytest.raises(ValueError):
        expectation_value([1.0, 2.0], [1.0])
    with pytest.raises(ValueError):
        standard_deviation([], [])


def test_nu_uses_all_channels_other_numbers_only_core():
    state = make_state(
        [ls_channel(30.0, 0, 0.0, 0), ls_channel(40.0, 2, 0.0, 2)],
        [0.6, 0.8],
        f=0,
        core=[True, False],
    )
    assert state_expectation(state, "nu") == pytest.approx(0.36 * 30.0 + 0.64 * 40.0)
    assert state_standard_deviation(state, "nu") > 0.0
    assert state_expectation(state, "l_r") == 0.0
    assert state_standard_deviation(state, "l_r") == 0.0
    assert underspecified_contribution(state) == pytest.approx(0.64)


def test_undefined_quantum_numbers_are_nan():
    channel = JJChannel(nu=30.0, l_r=1, j_c=0.5, j_r=0.5, j_tot=1.0, f_tot=1.0)
    state = make_state([channel], [1.0], f=1, scheme=CouplingScheme.JJ)
    assert math.isnan(state_expectation(state, "s_tot"))
    assert math.isnan(state_expectation(state, "l_tot"))
    assert state_expectation(state, "j_r") == 0.5
    for qn in ("l_tot", "s_tot", "f_c"):
        assert state_standard_deviation(state, qn) == 0.0


def test_all_nan_values_count_as_equal():
    assert standard_deviation([math.nan, math.nan], [0.6, 0.8]) == 0.0
    assert math.isnan(expectation_value([math.nan], [1.0]))
    assert math.isnan(standard_deviation([math.nan, 1.0], [0.6, 0.8]))


def test_unknown_quantum_number_raises():
    with pytest.raises(KeyError):
        state_expectation(singlet(30.0, 0), "m_j")
    assert "m_j" not in QUANTUM_NUMBERS


def test_multichannel_flag(three_states):
    assert not is_multichannel(three_states[0])
    assert is_multichannel(three_states[2])
    assert underspecified_contribution(three_states[2]) == 0.0
