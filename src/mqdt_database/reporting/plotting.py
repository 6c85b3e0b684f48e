"""数据库表的可视化：矩阵元稀疏结构与能级-nu 散点图。"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np

from mqdt_database.io.tables import Table


@dataclass
class DatabasePlotter:
    """负责导出表的可视化输出。"""

    marker_size: float = 1.0

    def plot_sparsity(self, table: Table, *, start_id: int = 0, size: int | None = None, output_path: str | Path | None = None) -> None:
        """绘制矩阵元表的非零位置，颜色为 ``log10|val|``。"""
        rows = np.asarray(table.columns["id_initial"], dtype=np.int64) - start_id
        cols = np.asarray(table.columns["id_final"], dtype=np.int64) - start_id
        values = np.asarray(table.columns["val"], dtype=float)
        if size is None:
            size = int(max(rows.max(initial=-1), cols.max(initial=-1))) + 1

        fig, ax = plt.subplots(figsize=(6, 6))
        if values.size:
            magnitude = np.log10(np.abs(values) + 1e-300)
            scatter = ax.scatter(cols, rows, c=magnitude, s=self.marker_size,
                                 marker="s", cmap="viridis", lw=0)
            fig.colorbar(scatter, ax=ax, label="log10 |val|")
        ax.set_xlim(-0.5, size - 0.5)
        ax.set_ylim(size - 0.5, -0.5)
        ax.set_xlabel("id_final")
        ax.set_ylabel("id_initial")
        ax.set_title(f"{table.name} ({len(table)} 个非零元)")
        ax.set_aspect("equal")

        if output_path:
            fig.savefig(output_path, dpi=300, bbox_inches="tight")
        plt.close(fig)

    def plot_spectrum(self, states: Table, *, output_path: str | Path | None = None) -> None:
        """按宇称分色绘制能量 (a.u.) 随 ``nu`` 的分布。"""
        nu = np.asarray(states.columns["nu"], dtype=float)
        energy = np.asarray(states.columns["energy"], dtype=float)
        parity = np.asarray(states.columns["parity"], dtype=int)

        fig, ax = plt.subplots(figsize=(8, 5))
        for value in np.unique(parity):
            mask = parity == value
            ax.scatter(nu[mask], energy[mask], s=4 * self.marker_size,
                       label=f"宇称 {int(value):+d}")
        ax.set_xlabel("nu")
        ax.set_ylabel("能量 / a.u.")
        ax.set_title(f"{states.name} ({len(states)} 个态)")
        if parity.size:
            ax.legend()
        ax.grid(True, linestyle="--", alpha=0.4)

        if output_path:
            fig.savefig(output_path, dpi=300, bbox_inches="tight")
        plt.close(fig)


def plot_sparsity(table: Table, *, start_id: int = 0, size: int | None = None, output_path: str | Path | None = None) -> None:
    """便捷函数，内部调用 :class:`DatabasePlotter`。"""
    DatabasePlotter().plot_sparsity(table, start_id=start_id,
                                    size=size, output_path=output_path)


def plot_spectrum(states: Table, *, output_path: str | Path | None = None) -> None:
    """便捷函数，内部调用 :class:`DatabasePlotter`。"""
    DatabasePlotter().plot_spectrum(states, output_path=output_path)
