import json

import numpy as np

from neuralnet.core.builder import build_network
from neuralnet.reporting.artifacts import write_manifest
from neuralnet.reporting.metrics import CsvSink, JsonlSink
from neuralnet.reporting.plots import PlotAdapter
from neuralnet.reporting.summary import write_summary


def test_jsonl_and_csv_sinks(tmp_path):
    jsonl = JsonlSink(tmp_path / "metrics.jsonl", split="test", seed=3, sha="abc")
    csv_sink = CsvSink(tmp_path / "metrics.csv", split="test")
    for epoch, acc in enumerate([0.5, 0.75], start=1):
        jsonl.on_epoch(epoch, {"accuracy": acc, "cost": 1.0 / epoch})
        csv_sink(epoch, {"accuracy": acc, "cost": 1.0 / epoch})
    records = [json.loads(line) for line in jsonl.path.read_text().splitlines()]
    assert records[1] == {
        "epoch": 2,
        "split": "test",
        "seed": 3,
        "sha": "abc",
        "accuracy": 0.75,
        "cost": 0.5,
    }
    lines = csv_sink.path.read_text().splitlines()
    assert lines[0] == "epoch,split,accuracy,cost"
    assert len(lines) == 3


def test_summary_is_deterministic(tmp_path):
    sink = JsonlSink(tmp_path / "metrics.jsonl", seed=0, sha="fixed")
    for epoch, acc in enumerate([0.4, 0.9, 0.8], start=1):
        sink.on_epoch(epoch, {"accuracy": acc, "cost": 1.0 - acc})
    first = write_summary(sink.path, tmp_path / "a.json", tail=2)
    second = write_summary(sink.path, tmp_path / "b.json", tail=2)
    text = (tmp_path / "a.json").read_text()
    assert text == (tmp_path / "b.json").read_text()
    summary = json.loads(text)
    assert first.endswith("a.json") and second.endswith("b.json")
    assert summary["records"] == 3
    assert summary["best_epoch"] == 2
    assert summary["metrics"]["accuracy"]["last"] == 0.8
    assert abs(summary["metrics"]["accuracy"]["tail_mean"] - 0.85) < 1e-12


def test_manifest_describes_network(tmp_path):
    network = build_network(["input:2", "relu:3", "sigmoid:1"], "mae", np.random.default_rng(0))
    path = write_manifest(
        tmp_path / "manifest.json",
        config={"train": {"seed": 1}},
        dataset_provenance={"type": "synthetic"},
        network=network,
    )
    manifest = json.loads(open(path).read())
    assert manifest["network"] == {
        "layers": ["input:2", "relu:3", "sigmoid:1"],
        "shape": [2, 3, 1],
        "cost": "mae",
        "parameters": 2 * 3 + 3 + 3 + 1,
    }
    assert manifest["dataset"] == {"type": "synthetic"}
    assert "git_sha" in manifest


def test_plot_adapter_writes_curves(tmp_path):
    plots = PlotAdapter(tmp_path, enable_plots=True)
    train = plots.for_split("train")
    for epoch in range(1, 4):
        train(epoch, {"accuracy": epoch / 4, "cost": 1.0 / epoch})
    written = plots.close()
    assert sorted(p.name for p in written) == ["accuracy.png", "cost.png"]
    assert all(p.exists() for p in written)


def test_disabled_plot_adapter_is_silent(tmp_path):
    plots = PlotAdapter(tmp_path / "plots", enable_plots=False)
    plots.for_split("train")(1, {"accuracy": 1.0})
    assert plots.close() == []
    assert not (tmp_path / "plots").exists()
