"""Pipeline assembly: dataset + network + trainer + reporting from one config."""

from __future__ import annotations

import json
import time
from copy import deepcopy
from pathlib import Path
from typing import Dict, List, Mapping, Sequence

import numpy as np

from ..core.builder import build_network, describe_network
from ..core.errors import ConfigurationError
from ..core.types import RunResult
from ..data import get_dataset
from ..reporting.artifacts import write_manifest
from ..reporting.metrics import CsvSink, JsonlSink
from ..reporting.plots import PlotAdapter
from ..reporting.summary import write_summary
from .trainer import Trainer

_PRESETS: Dict[str, Mapping[str, object]] = {
    "toy-separable": {
        "data": {"name": "separable", "options": {"n_points": 200, "dims": 2, "seed": 0}},
        "model": {"layers": ["input:2", "sigmoid:8", "sigmoid:2"], "cost": "mse"},
        "train": {
            "epochs": 20,
            "batch_size": 10,
            "lr": 2.0,
            "seed": 7,
            "run_dir": "runs/toy-separable",
            "enable_plots": False,
        },
    },
    "separable-parallel": {
        "data": {"name": "separable", "options": {"n_points": 400, "dims": 4, "seed": 1}},
        "model": {"layers": ["input:4", "relu:16", "sigmoid:2"], "cost": "mse"},
        "train": {
            "epochs": 10,
            "batch_size": 8,
            "lr": 0.5,
            "seed": 11,
            "threads": 4,
            "run_dir": "runs/separable-parallel",
            "enable_plots": False,
        },
    },
    "bars-pool": {
        "data": {"name": "bars", "options": {"n_points": 200, "width": 8, "height": 8, "seed": 0}},
        "model": {
            "layers": ["input:64", "pool2d:avg:8x8:2x2", "sigmoid:8", "sigmoid:2"],
            "cost": "mse",
        },
        "train": {
            "epochs": 100,
            "batch_size": 10,
            "lr": 2.0,
            "seed": 3,
            "run_dir": "runs/bars-pool",
            "enable_plots": False,
        },
    },
    "bars-conv": {
        "data": {"name": "bars", "options": {"n_points": 200, "width": 8, "height": 8, "seed": 0}},
        "model": {
            # Two 6x6 feature maps side by side form a 12x6 grid.
            "layers": [
                "input:64",
                "conv2d:2:8x8:3x3",
                "pool2d:max:12x6:2x2",
                "relu:16",
                "sigmoid:2",
            ],
            "cost": "mse",
        },
        "train": {
            "epochs": 15,
            "batch_size": 10,
            "lr": 0.5,
            "seed": 5,
            "run_dir": "runs/bars-conv",
            "enable_plots": False,
        },
    },
}

_PRESET_DIR = Path(__file__).resolve().parents[1] / "configs" / "presets"
_REQUIRED_SECTIONS = {"data", "model", "train"}


def load_config_file(path: str | Path) -> Mapping[str, object]:
    """Read a JSON or YAML mapping."""

    path = Path(path)
    text = path.read_text()
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        import yaml

        try:
            data = yaml.safe_load(text) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Malformed YAML in {path.name}: {exc}") from exc
    elif suffix == ".json":
        try:
            data = json.loads(text or "{}")
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Malformed JSON in {path.name}: {exc}") from exc
    else:
        raise ConfigurationError(f"Unsupported config file type: {path.suffix}")
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"Config {path.name} must decode to a mapping")
    return data


def merge_config(base: Mapping[str, object], override: Mapping[str, object]) -> Dict[str, object]:
    """Deep-merge ``override`` on top of a copy of ``base``."""

    merged: Dict[str, object] = deepcopy(dict(base))
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = merge_config(merged[key], value)  # type: ignore[arg-type]
        else:
            merged[key] = deepcopy(value)
    return merged


def _file_presets() -> Dict[str, Mapping[str, object]]:
    found: Dict[str, Mapping[str, object]] = {}
    if not _PRESET_DIR.exists():
        return found
    for file in sorted(_PRESET_DIR.iterdir()):
        if file.suffix.lower() not in {".yaml", ".yml", ".json"}:
            continue
        data = load_config_file(file)
        missing = _REQUIRED_SECTIONS - set(data)
        if missing:
            raise KeyError(
                f"Preset {file.name} is missing required sections: {', '.join(sorted(missing))}"
            )
        found[file.stem] = json.loads(json.dumps(data))
    return found


def presets() -> Mapping[str, Mapping[str, object]]:
    combined: Dict[str, Mapping[str, object]] = {
        name: deepcopy(cfg) for name, cfg in _PRESETS.items()
    }
    combined.update(_file_presets())
    return combined


def load_preset(name: str) -> Dict[str, object]:
    available = presets()
    if name not in available:
        raise KeyError(f"Unknown preset: {name}. Available presets: {', '.join(sorted(available))}")
    return deepcopy(dict(available[name]))


class _MetricsCapture:
    def __init__(self) -> None:
        self.history: List[tuple[int, Mapping[str, float]]] = []
        self.last: Mapping[str, float] = {}

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        payload = {k: float(v) for k, v in metrics.items()}
        self.history.append((int(epoch), payload))
        self.last = payload


def _resolve_run_dir(train_cfg: Mapping[str, object], dataset: str) -> Path:
    if "run_dir" in train_cfg:
        return Path(str(train_cfg["run_dir"]))
    timestamp = time.strftime("%Y%m%d-%H%M%S")
    return Path("runs") / timestamp / dataset


def _print_startup_summary(
    *,
    dataset_name: str,
    layers: Sequence[str],
    shape: Sequence[int],
    cost: str,
    threads: int,
    param_count: int,
) -> None:
    print("=== neuralnet run ===")
    print(f"Dataset       : {dataset_name}")
    print(f"Layers        : {', '.join(layers)}")
    print(f"Shape         : {list(shape)}")
    print(f"Cost          : {cost}")
    print(f"Threads       : {threads}")
    print(f"Parameters    : {param_count}")
    print("=====================")


def run_pipeline(config: Mapping[str, object]) -> RunResult:
    missing = _REQUIRED_SECTIONS - set(config)
    if missing:
        raise KeyError(f"Config is missing required sections: {', '.join(sorted(missing))}")
    data_cfg = dict(config["data"])  # type: ignore[arg-type]
    model_cfg = dict(config["model"])  # type: ignore[arg-type]
    train_cfg = dict(config["train"])  # type: ignore[arg-type]

    dataset = get_dataset(str(data_cfg["name"]), **dict(data_cfg.get("options", {})))
    seed = int(train_cfg.get("seed", 0))
    rng = np.random.default_rng(seed)

    layers = model_cfg.get("layers")
    if not layers:
        raise ConfigurationError("model.layers must list at least the input layer")
    network = build_network(layers, str(model_cfg.get("cost", "mse")), rng)
    if network.input_size != dataset.data_spec.d_in:
        raise ConfigurationError(
            f"Network takes {network.input_size} inputs but dataset {dataset.name!r} "
            f"provides {dataset.data_spec.d_in}"
        )
    if network.output_size != dataset.data_spec.d_out:
        raise ConfigurationError(
            f"Network produces {network.output_size} outputs but dataset {dataset.name!r} "
            f"expects {dataset.data_spec.d_out}"
        )

    threads = int(train_cfg.get("threads", 1))
    batch_count = train_cfg.get("batch_count")
    run_dir = _resolve_run_dir(train_cfg, dataset.name)
    run_dir.mkdir(parents=True, exist_ok=True)

    _print_startup_summary(
        dataset_name=dataset.name,
        layers=describe_network(network),
        shape=network.shape(),
        cost=str(network.cost_function),
        threads=threads,
        param_count=network.parameter_count(),
    )

    train_jsonl = JsonlSink(run_dir / "metrics_train.jsonl", split="train", seed=seed)
    train_csv = CsvSink(run_dir / "metrics_train.csv", split="train")
    test_jsonl = JsonlSink(run_dir / "metrics_test.jsonl", split="test", seed=seed)
    test_csv = CsvSink(run_dir / "metrics_test.csv", split="test")
    capture_test = _MetricsCapture()
    plots = PlotAdapter(run_dir, enable_plots=bool(train_cfg.get("enable_plots", False)))

    split_loggers = {
        "train": [train_jsonl, train_csv, plots.for_split("train")],
        "test": [test_jsonl, test_csv, capture_test, plots.for_split("test")],
    }

    trainer = Trainer(network, rng)
    checkpoint = run_dir / "network.nnet"
    if checkpoint.exists():
        checkpoint.unlink()
    result = trainer.run(
        dataset.splits["train"],
        epochs=int(train_cfg.get("epochs", 1)),
        batch_size=int(train_cfg.get("batch_size", 10)),
        learning_rate=float(train_cfg.get("lr", 0.1)),
        threads=threads,
        batch_count=int(batch_count) if batch_count is not None else None,
        test=dataset.splits.get("test"),
        split_loggers=split_loggers,
        checkpoint_dir=run_dir,
    )
    plots.close()

    (run_dir / "metrics_test.json").write_text(json.dumps(capture_test.last, indent=2))
    safe_config = json.loads(json.dumps(config))
    manifest = write_manifest(
        run_dir / "manifest.json",
        config=safe_config,
        dataset_provenance=dataset.provenance,
        network=network,
    )
    summary_path = write_summary(
        train_jsonl.path, run_dir / "summary.json", tail=int(train_cfg.get("summary_tail", 32))
    )
    (run_dir / "config.json").write_text(json.dumps(safe_config, indent=2))

    return RunResult(
        epochs=result.epochs,
        batches=result.batches,
        metrics_path=str(train_jsonl.path),
        manifest_path=manifest,
        summary_path=summary_path,
        network_path=result.network_path,
    )


__all__ = ["load_config_file", "load_preset", "merge_config", "presets", "run_pipeline"]
