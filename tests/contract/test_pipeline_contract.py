import json
from pathlib import Path

import numpy as np
import pytest

from neuralnet.core.builder import build_network
from neuralnet.core.errors import ConfigurationError
from neuralnet.data import get_dataset
from neuralnet.io.persistence import load_network
from neuralnet.training.pipelines import (
    load_config_file,
    load_preset,
    merge_config,
    presets,
    run_pipeline,
)
from neuralnet.training.trainer import Trainer


def _config(run_dir, **train):
    cfg = load_preset("toy-separable")
    return merge_config(cfg, {"train": {"epochs": 3, "run_dir": str(run_dir), **train}})


def test_run_pipeline_writes_artifacts(tmp_path, capsys):
    result = run_pipeline(_config(tmp_path / "run"))
    run_dir = tmp_path / "run"
    for name in [
        "metrics_train.jsonl",
        "metrics_train.csv",
        "metrics_test.jsonl",
        "metrics_test.csv",
        "metrics_test.json",
        "manifest.json",
        "summary.json",
        "config.json",
        "network.nnet",
    ]:
        assert (run_dir / name).exists(), name
    assert result.epochs == 3
    assert result.batches == 3 * 16
    assert result.network_path.endswith("network.nnet")
    lines = (run_dir / "metrics_train.jsonl").read_text().splitlines()
    assert [json.loads(line)["epoch"] for line in lines] == [1, 2, 3]
    assert set(json.loads((run_dir / "metrics_test.json").read_text())) == {"accuracy", "cost"}
    manifest = json.loads((run_dir / "manifest.json").read_text())
    assert manifest["network"]["shape"] == [2, 8, 2]
    assert "=== neuralnet run ===" in capsys.readouterr().out


def test_run_pipeline_is_deterministic(tmp_path):
    run_pipeline(_config(tmp_path / "a"))
    run_pipeline(_config(tmp_path / "b"))
    assert (tmp_path / "a" / "metrics_train.jsonl").read_bytes() == (
        tmp_path / "b" / "metrics_train.jsonl"
    ).read_bytes()
    first = load_network(tmp_path / "a" / "network.nnet")
    second = load_network(tmp_path / "b" / "network.nnet")
    for left, right in zip(first.layers, second.layers):
        for x, y in zip(left.parameters(), right.parameters()):
            assert np.array_equal(x, y)


def test_rerun_overwrites_checkpoint(tmp_path):
    run_pipeline(_config(tmp_path / "run"))
    result = run_pipeline(_config(tmp_path / "run", epochs=1))
    assert result.epochs == 1
    assert len((tmp_path / "run" / "metrics_train.jsonl").read_text().splitlines()) == 1


def test_mismatched_network_is_rejected(tmp_path):
    cfg = merge_config(_config(tmp_path / "run"), {"model": {"layers": ["input:3", "sigmoid:2"]}})
    with pytest.raises(ConfigurationError, match="inputs"):
        run_pipeline(cfg)
    cfg = merge_config(_config(tmp_path / "run"), {"model": {"layers": ["input:2", "sigmoid:3"]}})
    with pytest.raises(ConfigurationError, match="outputs"):
        run_pipeline(cfg)


def test_missing_sections_and_unknown_preset():
    with pytest.raises(KeyError, match="train"):
        run_pipeline({"data": {}, "model": {}})
    with pytest.raises(KeyError, match="Available presets"):
        load_preset("does-not-exist")


@pytest.mark.parametrize("name", sorted(presets()))
def test_presets_build_networks_matching_their_data(name):
    cfg = load_preset(name)
    assert {"data", "model", "train"} <= set(cfg)
    dataset = get_dataset(cfg["data"]["name"], **cfg["data"].get("options", {}))
    network = build_network(cfg["model"]["layers"], cfg["model"].get("cost", "mse"))
    assert network.input_size == dataset.data_spec.d_in
    assert network.output_size == dataset.data_spec.d_out


def test_yaml_preset_is_discovered():
    assert "separable-leaky" in presets()
    cfg = load_preset("separable-leaky")
    assert cfg["model"]["layers"][1].startswith("leakyrelu")


def test_trainer_batch_count_limits_each_epoch():
    dataset = get_dataset("separable", n_points=50, dims=2, seed=0)
    network = build_network(["input:2", "sigmoid:4", "sigmoid:2"], "mse", np.random.default_rng(0))

    class Recorder:
        def __init__(self):
            self.starts = []
            self.epochs = []

        def on_epoch_start(self, epoch, samples):
            self.starts.append((epoch, samples))

        def on_epoch(self, epoch, metrics):
            self.epochs.append((epoch, metrics["split"]))

    recorder = Recorder()
    seen = []
    result = Trainer(network, np.random.default_rng(1), callbacks=[recorder]).run(
        dataset.splits["train"],
        epochs=2,
        batch_size=5,
        learning_rate=0.5,
        batch_count=2,
        test=dataset.splits["test"],
        split_loggers={"test": [lambda epoch, metrics: seen.append(epoch)]},
    )
    assert result.batches == 4
    assert result.network_path == ""
    assert recorder.starts == [(1, 10), (2, 10)]
    assert recorder.epochs == [(1, "train"), (1, "test"), (2, "train"), (2, "test")]
    assert seen == [1, 2]
    with pytest.raises(ConfigurationError):
        Trainer(network, np.random.default_rng(0)).run(dataset.splits["train"], -1, 5, 0.1)


@pytest.mark.parametrize("threads", [0, -3])
def test_non_positive_threads_are_rejected(tmp_path, threads):
    with pytest.raises(ConfigurationError, match="threads"):
        run_pipeline(_config(tmp_path / "run", threads=threads))
    dataset = get_dataset("separable", n_points=20, dims=2, seed=0)
    network = build_network(["input:2", "sigmoid:2"], "mse", np.random.default_rng(0))
    with pytest.raises(ConfigurationError, match="threads"):
        Trainer(network, np.random.default_rng(0)).run(
            dataset.splits["train"], 1, 5, 0.1, threads=threads
        )


def test_config_files_must_be_valid_mappings(tmp_path):
    bad_suffix = tmp_path / "override.txt"
    bad_suffix.write_text("train: {}")
    with pytest.raises(ConfigurationError, match="Unsupported config file type"):
        load_config_file(bad_suffix)
    broken = tmp_path / "override.yaml"
    broken.write_text("train: [unclosed\n")
    with pytest.raises(ConfigurationError, match="Malformed YAML"):
        load_config_file(broken)
    listing = tmp_path / "override.json"
    listing.write_text("[1, 2]")
    with pytest.raises(ConfigurationError, match="mapping"):
        load_config_file(listing)
    listing.write_text("{not json")
    with pytest.raises(ConfigurationError, match="Malformed JSON"):
        load_config_file(listing)


def test_file_presets_ship_inside_the_package():
    import neuralnet
    from neuralnet.training import pipelines

    package_root = Path(neuralnet.__file__).resolve().parent
    assert pipelines._PRESET_DIR.is_relative_to(package_root)
    assert (pipelines._PRESET_DIR / "separable-leaky.yaml").exists()


def test_bars_pool_preset_learns(tmp_path):
    cfg = merge_config(load_preset("bars-pool"), {"train": {"run_dir": str(tmp_path / "bars")}})
    run_pipeline(cfg)
    last = json.loads((tmp_path / "bars" / "metrics_train.jsonl").read_text().splitlines()[-1])
    assert last["accuracy"] >= 0.9
