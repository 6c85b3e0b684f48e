import pickle

import pytest

from mqdt_database.operators import CacheInfo, LRUCache, MemoizedOperators, OperatorValues
from mqdt_database.operators.memoized import state_key

from tests.builders import YB174, singlet, triplet


class CountingProvider:
    def __init__(self):
        self.calls = 0

    def dipole(self, s1, s2):
        self.calls += 1
        return 0.1 * s1.nu + 1.0 / 3.0 * s2.nu

    def quadrupole(self, s1, s2):
        self.calls += 1
        return s1.nu * s2.nu / 7.0

    def magnetic(self, dipole_const, mass, spin, s1, s2):
        self.calls += 1
        return dipole_const * (s1.f - s2.f)

    def diamagnetic(self, s1, s2):
        self.calls += 1
        return (s1.nu - s2.nu) / 11.0


class FailingProvider(CountingProvider):
    def quadrupole(self, s1, s2):
        raise RuntimeError("radial integral diverged")


def test_cached_values_are_bit_identical():
    provider = CountingProvider()
    operators = MemoizedOperators(provider=provider, parameters=YB174)
    s1, s2 = singlet(30.3, 1), triplet(31.7, 2, 2)

    first = operators.evaluate(s1, s2)
    assert isinstance(first, OperatorValues)
    assert provider.calls == 4
    second = operators.evaluate(s1, s2)
    assert provider.calls == 4
    assert second == first

    fresh = MemoizedOperators(provider=CountingProvider(), parameters=YB174)
    assert fresh.evaluate(s1, s2) == first
    info = operators.cache_info()["dipole"]
    assert (info.hits, info.misses, info.currsize) == (1, 1, 1)


def test_key_is_quantum_numbers_not_identity():
    provider = CountingProvider()
    operators = MemoizedOperators(provider=provider, parameters=YB174)
    operators.dipole(singlet(30.3, 1), singlet(31.3, 1))
    operators.dipole(singlet(30.3, 1), singlet(31.3, 1))
    assert provider.calls == 1
    operators.dipole(singlet(31.3, 1), singlet(30.3, 1))
    assert provider.calls == 2
    assert state_key(singlet(30.3, 1)) == state_key(singlet(30.3, 1))
    assert state_key(singlet(30.3, 1)) != state_key(singlet(30.4, 1))


def test_magnetic_receives_species_parameters():
    seen = {}

    class Recorder(CountingProvider):
        def magnetic(self, dipole_const, mass, spin, s1, s2):
            seen.update(dipole_const=dipole_const, mass=mass, spin=spin)
            return 0.0

    operators = MemoizedOperators(provider=Recorder(), parameters=YB174)
    operators.magnetic(singlet(30.0, 0), singlet(30.0, 0))
    assert seen == {"dipole_const": YB174.dipole_const, "mass": YB174.mass, "spin": YB174.spin}


def test_provider_errors_propagate_and_are_not_cached():
    operators = MemoizedOperators(provider=FailingProvider(), parameters=YB174)
    with pytest.raises(RuntimeError, match="diverged"):
        operators.evaluate(singlet(30.0, 0), singlet(30.0, 1))
    assert len(operators.caches["quadrupole"]) == 0


def test_lru_eviction_and_counters():
    cache = LRUCache(maxsize=2)
    assert cache.get_or_compute("a", lambda: 1) == 1
    assert cache.get_or_compute("b", lambda: 2) == 2
    assert cache.get_or_compute("a", lambda: -1) == 1
    cache.get_or_compute("c", lambda: 3)
    assert "a" in cache and "c" in cache
    assert "b" not in cache
    assert cache.info() == CacheInfo(hits=1, misses=3, maxsize=2, currsize=2)

    cache.absorb(CacheInfo(hits=5, misses=2, maxsize=2, currsize=1))
    assert cache.info().hits == 6 and cache.info().misses == 5
    cache.clear()
    assert cache.info() == CacheInfo(0, 0, 2, 0)
    with pytest.raises(ValueError):
        LRUCache(maxsize=0)


def test_pickled_cache_is_empty_shard():
    cache = LRUCache(maxsize=8)
    cache.get_or_compute("a", lambda: 1)
    clone = pickle.loads(pickle.dumps(cache))
    assert len(clone) == 0
    assert clone.info() == CacheInfo(0, 0, 8, 0)
