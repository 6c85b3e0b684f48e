from collections import Counter

import pytest

from mqdt_database.basis import BasisArray
from mqdt_database.basis.angular import phase
from mqdt_database.matrix_elements import MatrixElementEnumerator, PruningConfig, all_matrix_elements
from mqdt_database.matrix_elements.enumerator import TABLE_NAMES, _SimpleProgress, sort_basis, transposed_prefactor
from mqdt_database.operators import MemoizedOperators, ReferenceOperators, UnsupportedCouplingError

from tests.builders import YB174, fj_state, singlet, three_state_basis, triplet


def _unit_radial(nu1, l1, nu2, l2, power):
    return 1.0


def _enumerate(basis, provider=None, **kwargs):
    provider = provider or ReferenceOperators.from_parameters(basis.parameters)
    operators = MemoizedOperators(provider=provider, parameters=basis.parameters)
    kwargs.setdefault("max_workers", 1)
    enumerator = MatrixElementEnumerator(operators=operators, **kwargs)
    return enumerator, enumerator.enumerate(basis)


def test_sort_order_uses_min_lr_then_nu_then_index():
    states = [singlet(40.0, 2), singlet(35.0, 0), singlet(30.0, 1), singlet(35.0, 0, energy=-50.0)]
    basis = BasisArray.from_states(states, YB174)
    assert sort_basis(basis).order.tolist() == [1, 3, 2, 0]


def test_transposed_prefactor():
    assert transposed_prefactor(0.0, 1.0) == -1
    assert transposed_prefactor(2.5, 0.5) == 1
    with pytest.raises(ValueError):
        transposed_prefactor(0.0, 0.5)


def test_three_state_scenario():
    provider = ReferenceOperators.from_parameters(YB174, radial=_unit_radial)
    enumerator, triples = _enumerate(three_state_basis(), provider)
    dipole = {(row, col): value for row, col, value in triples["matrix_elements_d"]}

    assert (0, 2) in dipole and (2, 0) in dipole
    assert dipole[(0, 2)] != 0.0
    assert dipole[(2, 0)] == dipole[(0, 2)] * phase(1 - 0)
    assert len(dipole) == 2
    # nu 相同，不满足 11 的间隔，不做径向剪枝
    assert enumerator.statistics.pruned_radial == 0
    assert enumerator.statistics.evaluated == 6


def test_three_state_scenario_radial_rule():
    provider = ReferenceOperators.from_parameters(YB174, radial=_unit_radial)
    enumerator, triples = _enumerate(three_state_basis(nu_second=45.0), provider)
    stats = enumerator.statistics
    # (0,1) 与 (2,1) 的全部 nu 都大于 25 且相差不小于 11
    assert stats.pruned_radial == 2
    assert stats.evaluated == 4
    pairs = {(row, col) for row, col, _ in triples["matrix_elements_d"]}
    assert {(0, 2), (2, 0)} <= pairs
    for name in TABLE_NAMES:
        assert all(row == col or 1 not in (row, col) for row, col, _ in triples[name])

    # 阈值以下不剪枝
    enumerator, _ = _enumerate(three_state_basis(nu_second=45.0), provider,
                               pruning=PruningConfig(low_nu_threshold=35.0))
    assert enumerator.statistics.pruned_radial == 0


def test_transpose_symmetry_and_no_third_entry(ladder):
    _, triples = _enumerate(ladder)
    f = ladder.get_f()
    for name in TABLE_NAMES:
        entries = {}
        counts = Counter()
        for row, col, value in triples[name]:
            assert (row, col) not in entries
            entries[(row, col)] = value
            counts[frozenset((row, col))] += 1
        assert entries, name
        for (row, col), value in entries.items():
            if row == col:
                assert counts[frozenset((row,))] == 1
                continue
            assert counts[frozenset((row, col))] == 2
            assert entries[(col, row)] == value * phase(f[col] - f[row])


def test_angular_pruning_never_drops_nonzero(ladder):
    provider = ReferenceOperators.from_parameters(YB174)
    enumerator, pruned_triples = _enumerate(ladder, provider)
    _, full_triples = _enumerate(ladder, ReferenceOperators.from_parameters(YB174),
                                 pruning=PruningConfig(enabled=False))

    sorted_basis = sort_basis(ladder)
    order = sorted_basis.order.tolist()
    pruned_pairs = 0
    for pos1, id1 in enumerate(order):
        for id2 in order[pos1:]:
            if enumerator.skip_reason(sorted_basis, id1, id2) != "angular":
                continue
            pruned_pairs += 1
            s1, s2 = ladder[id1], ladder[id2]
            assert provider.dipole(s1, s2) == 0.0
            assert provider.quadrupole(s1, s2) == 0.0
            assert provider.diamagnetic(s1, s2) == 0.0
            assert provider.magnetic(YB174.dipole_const, YB174.mass, YB174.spin, s1, s2) == 0.0
    assert pruned_pairs > 0
    assert pruned_pairs == enumerator.statistics.pruned_angular
    for name in TABLE_NAMES:
        assert pruned_triples[name].sorted() == full_triples[name].sorted()


def test_start_id_offsets_ids(three_states):
    _, shifted = _enumerate(three_states, start_id=100)
    _, plain = _enumerate(three_states)
    for name in TABLE_NAMES:
        assert [(r - 100, c - 100, v) for r, c, v in shifted[name]] == list(plain[name])


def test_cache_counters_cover_every_evaluation(ladder):
    enumerator, _ = _enumerate(ladder)
    stats = enumerator.statistics
    for info in stats.cache_info.values():
        assert info.hits + info.misses == stats.evaluated
    assert stats.pairs_total == len(ladder) * (len(ladder) + 1) // 2
    assert stats.evaluated + stats.pruned_angular + stats.pruned_radial == stats.pairs_total
    assert "angular_matrix" in stats.provider_cache_info


def test_duplicate_states_are_served_from_cache():
    state = singlet(30.0, 1)
    basis = BasisArray.from_states([state, singlet(30.0, 0), state], YB174)
    enumerator, triples = _enumerate(basis, pruning=PruningConfig(enabled=False))
    dipole = {(row, col): value for row, col, value in triples["matrix_elements_d"]}
    assert dipole[(1, 0)] == dipole[(1, 2)]
    assert enumerator.statistics.cache_info["dipole"].hits > 0


def test_provider_errors_propagate():
    basis = BasisArray.from_states([singlet(30.0, 0), fj_state(30.0, 1, 0.5, 0.5, 1.0)], YB174)
    with pytest.raises(UnsupportedCouplingError):
        _enumerate(basis)


def test_empty_and_single_state_basis():
    empty = BasisArray.from_states([], YB174)
    _, triples = _enumerate(empty)
    assert all(len(triples[name]) == 0 for name in TABLE_NAMES)

    single = BasisArray.from_states([triplet(30.0, 0, 1)], YB174)
    _, triples = _enumerate(single)
    assert len(triples["matrix_elements_q0"]) == 1
    assert len(triples["matrix_elements_d"]) == 0


def test_parallel_matches_serial(ladder):
    serial = all_matrix_elements(
        ladder, MemoizedOperators(ReferenceOperators.from_parameters(YB174), YB174), max_workers=1)
    operators = MemoizedOperators(ReferenceOperators.from_parameters(YB174), YB174)
    enumerator = MatrixElementEnumerator(operators=operators, max_workers=2, rows_per_chunk=3)
    parallel = enumerator.enumerate(ladder)
    for name in TABLE_NAMES:
        assert list(parallel[name]) == list(serial[name])
    stats = enumerator.statistics
    assert stats.workers == 2
    for info in stats.cache_info.values():
        assert info.hits + info.misses == stats.evaluated


def test_worker_count_resolution(monkeypatch):
    operators = MemoizedOperators(ReferenceOperators.from_parameters(YB174), YB174)
    assert MatrixElementEnumerator(operators=operators, max_workers=0)._resolve_worker_count() == 1
    assert MatrixElementEnumerator(operators=operators, max_workers=3)._resolve_worker_count() == 3

    enumerator = MatrixElementEnumerator(operators=operators)
    monkeypatch.setenv("MQDT_DB_WORKERS", " 5 ")
    assert enumerator._resolve_worker_count() == 5
    for value in ("0", "-2", "many"):
        monkeypatch.setenv("MQDT_DB_WORKERS", value)
        assert enumerator._resolve_worker_count() >= 1
    monkeypatch.setenv("MQDT_DB_WORKERS", "5")
    assert MatrixElementEnumerator(operators=operators, max_workers=2)._resolve_worker_count() == 2


@pytest.mark.parametrize("size, workers, rows", [(0, 4, None), (1, 4, None), (37, 3, None), (37, 3, 10), (5, 1, 50)])
def test_row_chunks_cover_rows_contiguously(size, workers, rows):
    operators = MemoizedOperators(ReferenceOperators.from_parameters(YB174), YB174)
    chunks = MatrixElementEnumerator(operators=operators, rows_per_chunk=rows)._make_row_chunks(size, workers)
    covered = [row for start, stop in chunks for row in range(start, stop)]
    assert covered == list(range(size))
    assert all(stop > start for start, stop in chunks)
    if rows is not None and size:
        assert all(stop - start <= rows for start, stop in chunks)
    if rows is None:
        assert len(chunks) <= 4 * workers


def test_progress_reporter_writes_percentages(capsys):
    reporter = _SimpleProgress(total=4, desc="矩阵元")
    reporter.update()
    reporter.update(10)
    reporter.close()
    err = capsys.readouterr().err
    assert "矩阵元:  25% (1/4)" in err
    assert "100% (4/4)" in err
    assert err.endswith("\n")

    empty = _SimpleProgress(total=0, desc="空")
    empty.update()
    empty.close()
    assert "空:   0% (0/0)" in capsys.readouterr().err
