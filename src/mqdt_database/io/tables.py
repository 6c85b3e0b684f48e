"""把态与稀疏三元组整理成按列存放的数据表，供导出使用。"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

import numpy as np
from scipy.sparse import coo_matrix

from mqdt_database.basis.states import BasisArray
from mqdt_database.matrix_elements.triples import SparseTripleSet
from mqdt_database.observables.principal import estimate_n
from mqdt_database.observables.statistics import (
    is_multichannel,
    state_expectation,
    state_standard_deviation,
    underspecified_contribution,
)

HARTREE_IN_INVERSE_CM = 219474.6313632

# 列名 -> 量子数名
_STATISTIC_COLUMNS: Tuple[Tuple[str, str], ...] = (
    ("nui", "nu"),
    ("l", "l_tot"),
    ("j", "j_tot"),
    ("s", "s_tot"),
    ("l_ryd", "l_r"),
    ("j_ryd", "j_r"),
)

ID_COLUMNS = ("id", "id_initial", "id_final")


@dataclass
class Table:
    """按列存储的数据表；各列长度相同。"""

    name: str
    columns: Dict[str, np.ndarray] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.columns = {key: np.asarray(value) for key, value in self.columns.items()}
        lengths = {value.shape[0] for value in self.columns.values()}
        if len(lengths) > 1:
            raise ValueError(f"表 {self.name!r} 的各列长度不一致: {sorted(lengths)}")

    def __len__(self) -> int:
        for value in self.columns.values():
            return int(value.shape[0])
        return 0

    @property
    def column_names(self) -> List[str]:
        return list(self.columns)

    def describe(self) -> List[Dict[str, object]]:
        """每列的类型与 min/max/mean 摘要。"""
        summary: List[Dict[str, object]] = []
        for key, value in self.columns.items():
            entry: Dict[str, object] = {"column": key, "dtype": str(value.dtype)}
            if value.size and np.issubdtype(value.dtype, np.number):
                finite = value[np.isfinite(value)] if np.issubdtype(
                    value.dtype, np.floating) else value
                entry["nan"] = int(value.size - finite.size)
                if finite.size:
                    entry["min"] = finite.min().item()
                    entry["max"] = finite.max().item()
                    entry["mean"] = float(np.mean(finite))
            summary.append(entry)
        return summary

    def to_coo(self, shape: Optional[Tuple[int, int]] = None, *, start_id: int = 0) -> coo_matrix:
        """矩阵元表转为 scipy 稀疏矩阵。"""
        if not {"id_initial", "id_final", "val"}.issubset(self.columns):
            raise KeyError(f"表 {self.name!r} 不是矩阵元表。")
        triples = SparseTripleSet(
            rows=self.columns["id_initial"].tolist(),
            cols=self.columns["id_final"].tolist(),
            values=self.columns["val"].tolist(),
        )
        return triples.to_coo(shape, start_id=start_id)


def triples_to_table(name: str, triples: SparseTripleSet) -> Table:
    return Table(
        name=name,
        columns={
            "id_initial": np.asarray(triples.rows, dtype=np.int64),
            "id_final": np.asarray(triples.cols, dtype=np.int64),
            "val": np.asarray(triples.values, dtype=float),
        },
    )


def basis_to_table(basis: BasisArray, *, start_id: int = 0) -> Table:
    """态表：能量（原子单位）、宇称、``n``、``nu``、``f`` 与量子数统计。"""

    size = len(basis)
    parameters = basis.parameters
    exp_l_ryd = np.array([state_expectation(state, "l_r")
                         for state in basis], dtype=float)
    l_rounded = np.array([int(round(value)) for value in exp_l_ryd], dtype=np.int64)

    columns: Dict[str, np.ndarray] = {
        "id": np.arange(start_id, start_id + size, dtype=np.int64),
        "energy": basis.get_energy() / HARTREE_IN_INVERSE_CM,
        "parity": basis.get_parity(),
        "n": np.asarray(estimate_n(basis.get_nu(), l_rounded, parameters.species), dtype=np.int64).reshape(size),
        "nu": basis.get_nu(),
        "f": basis.get_f(),
    }
    for suffix, qn in _STATISTIC_COLUMNS:
        columns[f"exp_{suffix}"] = np.array(
            [state_expectation(state, qn) for state in basis], dtype=float)
    for suffix, qn in _STATISTIC_COLUMNS:
        columns[f"std_{suffix}"] = np.array(
            [state_standard_deviation(state, qn) for state in basis], dtype=float)
    columns["is_j_total_momentum"] = np.full(
        size, parameters.spin == 0, dtype=bool)
    columns["is_calculated_with_mqdt"] = np.array(
        [is_multichannel(state) for state in basis], dtype=bool)
    columns["underspecified_channel_contribution"] = np.array(
        [underspecified_contribution(state) for state in basis], dtype=float)
    return Table(name="states", columns=columns)


def assemble_tables(
    basis: BasisArray,
    triples: Mapping[str, SparseTripleSet],
    *,
    start_id: int = 0,
) -> Dict[str, Table]:
    """合并态表与四个矩阵元表，键为表名。"""
    tables = {"states": basis_to_table(basis, start_id=start_id)}
    for name, entries in triples.items():
        tables[name] = triples_to_table(name, entries)
    return tables


def renumber(table: Table, start_id: int, *, current_start: int = 0) -> Table:
    """把表中的 id 列整体平移到新的起始编号。"""
    shift = start_id - current_start
    columns = {
        key: (value + shift if key in ID_COLUMNS else value)
        for key, value in table.columns.items()
    }
    return Table(name=table.name, columns=columns)
