"""Headless-safe learning curve plots."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, List, Mapping, Sequence, Tuple


class PlotAdapter:
    """Collect per-split epoch metrics and draw one figure per metric on close."""

    def __init__(
        self,
        run_dir: str | Path,
        enable_plots: bool = False,
        metrics: Sequence[str] = ("accuracy", "cost"),
    ) -> None:
        self.enable_plots = enable_plots
        self.run_dir = Path(run_dir)
        self.metrics = tuple(metrics)
        self._history: Dict[str, List[Tuple[int, Mapping[str, float]]]] = {}
        if self.enable_plots:
            self.run_dir.mkdir(parents=True, exist_ok=True)

    def for_split(self, split: str) -> Callable[[int, Mapping[str, float]], None]:
        def _record(epoch: int, metrics: Mapping[str, float]) -> None:
            if self.enable_plots:
                self._history.setdefault(split, []).append((int(epoch), dict(metrics)))

        return _record

    def close(self) -> List[Path]:
        if not self.enable_plots or not self._history:
            return []
        import matplotlib

        matplotlib.use("Agg", force=True)
        import matplotlib.pyplot as plt  # imported lazily for headless safety

        written: List[Path] = []
        for metric in self.metrics:
            fig, ax = plt.subplots()
            for split, history in sorted(self._history.items()):
                points = [(epoch, values[metric]) for epoch, values in history if metric in values]
                if points:
                    epochs, values = zip(*points)
                    ax.plot(epochs, values, marker="o", label=split)
            ax.set_xlabel("Epoch")
            ax.set_ylabel(metric.capitalize())
            ax.set_title(f"{metric.capitalize()} per epoch")
            ax.legend()
            path = self.run_dir / f"{metric}.png"
            fig.savefig(path)
            plt.close(fig)
            written.append(path)
        return written


__all__ = ["PlotAdapter"]
