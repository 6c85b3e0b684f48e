import importlib.util
import sys
from pathlib import Path

import pytest

from mqdt_database.io import DatabaseWriter, dump_basis
from mqdt_database.matrix_elements import PruningConfig

SCRIPT = Path(__file__).resolve().parents[1] / "scripts" / "generate_database.py"


@pytest.fixture(scope="module")
def driver():
    spec = importlib.util.spec_from_file_location("generate_database", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    sys.modules[spec.name] = module
    spec.loader.exec_module(module)
    return module


def _config(driver, basis_file, directory, **overrides):
    options = dict(
        basis_file=basis_file,
        directory=directory,
        overwrite=False,
        start_id=0,
        workers=1,
        chunk_rows=None,
        cache_size=1024,
        operators=None,
        progress=False,
        plot=True,
    )
    options.update(overrides)
    return driver.RunConfig(**options)


def test_full_run_writes_database(tmp_path, driver, ladder, capsys):
    basis_file = dump_basis(ladder, tmp_path / "basis.json")
    run_config = _config(driver, basis_file, tmp_path / "database")
    driver.run(run_config, driver.SelectionConfig(n_min_sqdt=1), PruningConfig())

    output = tmp_path / "database" / "Yb174_mqdt_v1.1"
    writer = DatabaseWriter(output)
    for name in ("states", "matrix_elements_d", "matrix_elements_q",
                 "matrix_elements_mu", "matrix_elements_q0"):
        assert (output / f"{name}.npz").exists()
        assert (output / f"{name}.png").exists() or name == "states"
    assert len(writer.load("states")) == len(ladder)
    assert writer.load_metadata()["rows"]["states"] == len(ladder)

    log = (output / "Yb174.log").read_text(encoding="utf-8")
    assert "matrix_elements_d" in log
    assert "Pruned (angular)" in log
    assert "Pruned (angular)" in capsys.readouterr().out

    with pytest.raises(FileExistsError):
        driver.run(run_config, driver.SelectionConfig(n_min_sqdt=1), PruningConfig())
    driver.run(_config(driver, basis_file, tmp_path / "database", overwrite=True, plot=False),
               driver.SelectionConfig(n_max=10), PruningConfig())
    assert len(writer.load("states")) == 0


def test_operator_factory_lookup(driver):
    factory = driver.load_operator_factory("mqdt_database.operators:ReferenceOperators")
    assert factory.__name__ == "ReferenceOperators"
    assert driver.load_operator_factory(None).__self__.__name__ == "ReferenceOperators"
    with pytest.raises(ValueError):
        driver.load_operator_factory("no_colon")


def test_timelog_reports_even_when_step_fails(driver, capsys):
    with pytest.raises(RuntimeError):
        with driver.timelog("写入数据库"):
            raise RuntimeError("disk full")
    out = capsys.readouterr().out
    assert "写入数据库..." in out
    assert "写入数据库 完成" in out
