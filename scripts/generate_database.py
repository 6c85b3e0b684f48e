"""由 MQDT 基组生成态表与四个多极矩阵元表，并写入数据库目录。"""
from __future__ import annotations

import argparse
import importlib
import math
import sys
import time
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Callable, Iterator, TextIO

from mqdt_database.basis import Parameters
from mqdt_database.basis.selection import count_out_of_range, select_database_states
from mqdt_database.io import DatabaseWriter, assemble_tables, database_directory, load_basis
from mqdt_database.io.database import VERSION
from mqdt_database.matrix_elements import MatrixElementEnumerator, PruningConfig
from mqdt_database.matrix_elements.enumerator import report_statistics
from mqdt_database.operators import MemoizedOperators, ReferenceOperators
from mqdt_database.operators.memoized import DEFAULT_CACHE_SIZE
from mqdt_database.reporting import plot_sparsity, plot_spectrum
from mqdt_database.validation import validate_principal_n


@dataclass(frozen=True)
class SelectionConfig:
    n_min_sqdt: int = 25
    n_max: int = 110
    n_max_high_l: float = math.inf


@dataclass(frozen=True)
class RunConfig:
    basis_file: Path
    directory: Path
    overwrite: bool
    start_id: int
    workers: int | None
    chunk_rows: int | None
    cache_size: int
    operators: str | None
    progress: bool
    plot: bool


class _Tee:
    """同时写入多个流，用于把标准输出复制到日志文件。"""

    def __init__(self, *streams: TextIO) -> None:
        self.streams = streams

    def write(self, data: str) -> int:
        for stream in self.streams:
            stream.write(data)
        return len(data)

    def flush(self) -> None:
        for stream in self.streams:
            stream.flush()


@contextmanager
def timelog(label: str) -> Iterator[None]:
    print(f"{label}...")
    time_start = time.perf_counter()
    try:
        yield
    finally:
        print(f"{label} 完成，耗时 {time.perf_counter() - time_start:.2f} s")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Generate the MQDT state and matrix-element database for one species.")
    parser.add_argument("basis_file", type=Path,
                        help="JSON 基组文件（参数、模型、态）")
    parser.add_argument("--n-min-sqdt", type=int, default=25)
    parser.add_argument("--n-max", type=int, default=110)
    parser.add_argument("--n-max-high-l", type=float, default=math.inf)
    parser.add_argument("--directory", type=Path, default=Path("database"))
    parser.add_argument("--overwrite", action="store_true", default=False)
    parser.add_argument("--start-id", type=int, default=0)
    parser.add_argument("--workers", type=int, default=None,
                        help="并行进程数，缺省读取 MQDT_DB_WORKERS 或 CPU 核数")
    parser.add_argument("--chunk-rows", type=int, default=None)
    parser.add_argument("--cache-size", type=int, default=DEFAULT_CACHE_SIZE)
    parser.add_argument("--angular-window", type=int, default=2)
    parser.add_argument("--nu-gap", type=float, default=11.0)
    parser.add_argument("--low-nu-threshold", type=float, default=25.0)
    parser.add_argument("--no-pruning", dest="pruning",
                        action="store_false", default=True)
    parser.add_argument("--operators", default=None,
                        help="算符工厂 'module:callable'，以 Parameters 调用")
    parser.add_argument("--progress", action="store_true", default=False)
    parser.add_argument("--plot", action="store_true", default=False)
    return parser.parse_args()


def load_operator_factory(spec: str | None) -> Callable[[Parameters], object]:
    if spec is None:
        return ReferenceOperators.from_parameters
    module_name, _, attribute = spec.partition(":")
    if not module_name or not attribute:
        raise ValueError(f"算符工厂应写作 'module:callable'，收到 {spec!r}")
    module = importlib.import_module(module_name)
    return getattr(module, attribute)


def run(run_config: RunConfig, selection: SelectionConfig, pruning: PruningConfig) -> None:
    basis = load_basis(run_config.basis_file)
    species = basis.parameters.species

    writer = DatabaseWriter(database_directory(run_config.directory, species, VERSION))
    output_dir = writer.prepare(overwrite=run_config.overwrite)

    with (output_dir / f"{species}.log").open("w", encoding="utf-8") as log_handle:
        stdout = sys.stdout
        sys.stdout = _Tee(stdout, log_handle)  # type: ignore[assignment]
        try:
            _run_logged(run_config, selection, pruning, basis, writer)
        finally:
            sys.stdout = stdout


def _run_logged(run_config, selection, pruning, basis, writer: DatabaseWriter) -> None:
    parameters = basis.parameters
    species = parameters.species
    print(f"Start {species}: {asdict(selection)}")
    print(f"  Pruning: {asdict(pruning)}")
    print(f"  Output: {writer.base_path}")
    validate_principal_n(species)

    print(f"读入 {len(basis)} 个态")
    basis = select_database_states(
        basis,
        n_max=selection.n_max,
        n_min_sqdt=selection.n_min_sqdt,
        n_max_high_l=selection.n_max_high_l,
    )
    print(f"筛选后保留 {len(basis)} 个态")
    out_of_range = count_out_of_range(basis)
    if out_of_range:
        print(f"  [WARN] {out_of_range} 个态的 nu 不在所属模型的有效区间内")

    factory = load_operator_factory(run_config.operators)
    operators = MemoizedOperators(
        provider=factory(parameters),
        parameters=parameters,
        maxsize=run_config.cache_size,
    )
    enumerator = MatrixElementEnumerator(
        operators=operators,
        pruning=pruning,
        start_id=run_config.start_id,
        max_workers=run_config.workers,
        rows_per_chunk=run_config.chunk_rows,
    )
    with timelog("计算矩阵元"):
        triples = enumerator.enumerate(basis, progress=run_config.progress)

    with timelog("组装数据表"):
        tables = assemble_tables(basis, triples, start_id=run_config.start_id)
    states_table = tables["states"]
    for name, table in tables.items():
        print(f"\n{name}: {len(table)} 行")
        for entry in table.describe():
            summary = ", ".join(f"{key}={value}" for key, value in entry.items() if key != "column")
            print(f"  {entry['column']:<36s} {summary}")

    metadata = {
        "species": species,
        "version": VERSION,
        "parameters": asdict(parameters),
        "selection": asdict(selection),
        "pruning": asdict(pruning),
        "start_id": run_config.start_id,
        "operators": run_config.operators or "reference",
        "rows": {name: len(table) for name, table in tables.items()},
    }
    with timelog("写入数据库"):
        writer.save(tables, metadata=metadata)

    if enumerator.statistics is not None:
        report_statistics(enumerator.statistics)

    if run_config.plot:
        plot_spectrum(states_table, output_path=writer.base_path / "states.png")
        for name, table in tables.items():
            if name == "states":
                continue
            plot_sparsity(table, start_id=run_config.start_id, size=len(states_table),
                          output_path=writer.base_path / f"{name}.png")
        print(f"图像已保存到 {writer.base_path}")


def main() -> None:
    args = parse_args()
    run_config = RunConfig(
        basis_file=args.basis_file,
        directory=args.directory,
        overwrite=args.overwrite,
        start_id=args.start_id,
        workers=args.workers,
        chunk_rows=args.chunk_rows,
        cache_size=args.cache_size,
        operators=args.operators,
        progress=args.progress,
        plot=args.plot,
    )
    selection = SelectionConfig(
        n_min_sqdt=args.n_min_sqdt,
        n_max=args.n_max,
        n_max_high_l=args.n_max_high_l,
    )
    pruning = PruningConfig(
        angular_window=args.angular_window,
        nu_gap=args.nu_gap,
        low_nu_threshold=args.low_nu_threshold,
        enabled=args.pruning,
    )
    run(run_config, selection, pruning)


if __name__ == "__main__":
    main()
