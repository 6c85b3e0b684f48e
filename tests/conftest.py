import matplotlib

matplotlib.use("Agg")

import pytest

from mqdt_database.operators import MemoizedOperators, ReferenceOperators

from tests.builders import YB174, ladder_basis, three_state_basis


@pytest.fixture
def three_states():
    return three_state_basis()


@pytest.fixture
def ladder():
    return ladder_basis()


@pytest.fixture
def reference():
    return ReferenceOperators.from_parameters(YB174)


@pytest.fixture
def memoized(reference):
    return MemoizedOperators(provider=reference, parameters=YB174)
