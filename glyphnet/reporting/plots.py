"""Headless-safe plotting adapters."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Mapping, Tuple


class PlotAdapter:
    """Collect per-split epoch losses and optionally emit a matplotlib figure."""

    def __init__(self, run_dir: str | Path, enable_plots: bool = False):
        self.enable_plots = enable_plots
        self.run_dir = Path(run_dir)
        self._history: Dict[str, List[Tuple[int, float]]] = {}
        if self.enable_plots:
            self.run_dir.mkdir(parents=True, exist_ok=True)

    def for_split(self, split: str):
        def _record(epoch: int, metrics: Mapping[str, float]) -> None:
            if not self.enable_plots or "loss" not in metrics:
                return
            self._history.setdefault(split, []).append((epoch, float(metrics["loss"])))

        return _record

    def close(self) -> Path | None:
        if not self.enable_plots or not self._history:
            return None
        import matplotlib

        matplotlib.use("Agg", force=True)
        import matplotlib.pyplot as plt  # imported lazily for headless safety

        fig, ax = plt.subplots()
        for split, points in sorted(self._history.items()):
            if split == "test":
                continue
            epochs, losses = zip(*points)
            ax.plot(epochs, losses, marker="o", label=split)
        ax.set_xlabel("Epoch")
        ax.set_ylabel("Squared error")
        ax.set_title("Training Curve")
        ax.legend()
        plot_path = self.run_dir / "loss.png"
        fig.savefig(plot_path)
        plt.close(fig)
        return plot_path


__all__ = ["PlotAdapter"]
