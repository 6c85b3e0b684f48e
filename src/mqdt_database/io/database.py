"""Persistence helpers for database tables."""
from __future__ import annotations

import json
import shutil
from pathlib import Path
from typing import Any, Dict, Mapping

import numpy as np

from mqdt_database.io.tables import Table

VERSION = "v1.1"


def database_directory(base_path: Path, species: str, version: str = VERSION) -> Path:
    return Path(base_path) / f"{species}_mqdt_{version}"


class DatabaseWriter:
    """Store column tables as ``{name}.npz`` next to a ``metadata.json``."""

    metadata_filename = "metadata.json"

    def __init__(self, base_path: Path) -> None:
        self.base_path = Path(base_path)

    def _resolve(self, name: str) -> Path:
        return self.base_path / f"{name}.npz"

    def prepare(self, *, overwrite: bool = False) -> Path:
        """Create the output directory; refuse to reuse an existing one unless asked."""
        if self.base_path.exists():
            if not overwrite:
                raise FileExistsError(
                    f"Output directory already exists: {self.base_path}. Use --overwrite to overwrite.")
            self.drop()
        self.base_path.mkdir(parents=True, exist_ok=True)
        return self.base_path

    def available(self, *, metadata: Mapping[str, object]) -> bool:
        meta_file = self.base_path / self.metadata_filename
        if not meta_file.exists():
            return False
        try:
            with meta_file.open("r", encoding="utf-8") as handle:
                stored = json.load(handle)
        except json.JSONDecodeError:
            return False
        return stored == json.loads(json.dumps(dict(metadata), default=str))

    def save_table(self, table: Table) -> Path:
        path = self._resolve(table.name)
        self.base_path.mkdir(parents=True, exist_ok=True)
        np.savez(path, **table.columns)
        return path

    def save(self, tables: Mapping[str, Table], *, metadata: Mapping[str, object]) -> None:
        for table in tables.values():
            self.save_table(table)
        with (self.base_path / self.metadata_filename).open("w", encoding="utf-8") as handle:
            json.dump(dict(metadata), handle, ensure_ascii=False,
                      indent=2, sort_keys=True, default=str)

    def load(self, name: str) -> Table:
        path = self._resolve(name)
        with np.load(path) as archive:
            columns: Dict[str, Any] = {key: archive[key] for key in archive.files}
        return Table(name=name, columns=columns)

    def load_metadata(self) -> Dict[str, Any]:
        with (self.base_path / self.metadata_filename).open("r", encoding="utf-8") as handle:
            return json.load(handle)

    def drop(self) -> None:
        if not self.base_path.exists():
            return
        shutil.rmtree(self.base_path)
