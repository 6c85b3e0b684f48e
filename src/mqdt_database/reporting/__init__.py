"""绘图输出。"""

from .plotting import DatabasePlotter, plot_sparsity, plot_spectrum

__all__ = ["DatabasePlotter", "plot_sparsity", "plot_spectrum"]
