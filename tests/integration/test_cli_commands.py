import json
from pathlib import Path

import numpy as np
import pytest

from cli.main import main
from neuralnet.data.idx import write_idx
from neuralnet.io.persistence import load_network


def _write_dataset(root: Path, prefix: str, count: int, seed: int):
    rng = np.random.default_rng(seed)
    labels = rng.integers(0, 2, size=count).astype(np.uint8)
    images = np.zeros((count, 2, 2), dtype=np.uint8)
    # Label 1 lights the top row, label 0 the bottom row.
    images[labels == 1, 0, :] = 255
    images[labels == 0, 1, :] = 255
    images_path = root / f"{prefix}-images.idx"
    labels_path = root / f"{prefix}-labels.idx"
    write_idx(images_path, images)
    write_idx(labels_path, labels)
    return images_path, labels_path


@pytest.fixture
def network_path(tmp_path, capsys):
    path = tmp_path / "model.nnet"
    main(["create", "-n", str(path), "-l", "input:4", "-l", "sigmoid:3", "-l", "sigmoid:2", "--seed", "1"])
    assert f"Created a new neural network at {path}" in capsys.readouterr().out
    return path


def test_create_refuses_to_overwrite(network_path, capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["create", "-n", str(network_path), "-l", "input:4", "-l", "sigmoid:2"])
    assert excinfo.value.code == 1
    assert "already exists" in capsys.readouterr().out


def test_create_rejects_bad_layers(tmp_path, capsys):
    with pytest.raises(SystemExit):
        main(["create", "-n", str(tmp_path / "bad.nnet"), "-l", "relu:3"])
    assert capsys.readouterr().out.startswith("Error:")
    assert not (tmp_path / "bad.nnet").exists()


def test_train_then_test(tmp_path, network_path, capsys):
    images, labels = _write_dataset(tmp_path, "train", 40, seed=0)
    test_images, test_labels = _write_dataset(tmp_path, "test", 10, seed=1)
    before = load_network(network_path).layers[1].weights.copy()
    main(
        [
            "train",
            "-n", str(network_path),
            "-i", str(images),
            "-l", str(labels),
            "-r", "2.0",
            "-s", "4",
            "-e", "2",
            "--test-images", str(test_images),
            "--test-labels", str(test_labels),
            "--seed", "3",
            "-v",
        ]
    )
    out = capsys.readouterr().out
    assert "Starting epoch 1 training with all batches of size 4 and 40 total samples" in out
    assert "Finished training for epoch 2." in out
    assert out.count("Accuracy:") == 2
    assert "10/10 100.00%" in out
    assert f"Finished training. Saved the neural network to {network_path}" in out
    assert not np.array_equal(load_network(network_path).layers[1].weights, before)

    main(["test", "-n", str(network_path), "-i", str(test_images), "-l", str(test_labels), "-c", "6", "-v"])
    out = capsys.readouterr().out.splitlines()
    assert len(out) == 7
    assert all(line.startswith(("Correct:", "Wrong:")) for line in out[:6])
    assert out[-1].startswith("Accuracy: ") and "/6 - " in out[-1]


def test_train_requires_paired_test_files(tmp_path, network_path):
    images, labels = _write_dataset(tmp_path, "train", 4, seed=0)
    with pytest.raises(SystemExit) as excinfo:
        main(["train", "-n", str(network_path), "-i", str(images), "-l", str(labels), "-r", "0.1",
              "--test-images", str(images)])
    assert excinfo.value.code == 2


def test_evaluate_prints_one_line_per_output(tmp_path, network_path, capsys):
    image = tmp_path / "image.raw"
    image.write_bytes(bytes([255, 255, 0, 0]))
    main(["evaluate", "-n", str(network_path), "-i", str(image)])
    lines = capsys.readouterr().out.splitlines()
    assert [line[:3] for line in lines] == [" 1:", " 2:"]
    assert all(line.endswith("%") for line in lines)

    image.write_bytes(bytes([1, 2, 3]))
    with pytest.raises(SystemExit):
        main(["evaluate", "-n", str(network_path), "-i", str(image)])
    assert "Incorrect image data length (3) should be 4" in capsys.readouterr().out


def test_run_lists_presets(capsys):
    main(["run", "--list-presets"])
    names = capsys.readouterr().out.split()
    assert {"toy-separable", "bars-pool", "bars-conv", "separable-leaky"} <= set(names)


def test_run_with_config_override(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    override = tmp_path / "override.json"
    override.write_text(json.dumps({"train": {"epochs": 2, "run_dir": "runs/cli"}}))
    main(["run", "--preset", "toy-separable", "--config", str(override), "--seed", "5",
          "--dump-config", "resolved.json"])
    result = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert result["epochs"] == 2
    assert Path(result["network"]).exists()
    assert (Path("runs/cli") / "metrics_train.jsonl").exists()
    resolved = json.loads(Path("resolved.json").read_text())
    assert resolved["train"]["seed"] == 5
    assert resolved["model"]["layers"][0] == "input:2"


def test_run_unknown_preset_exits(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["run", "--preset", "nope"])
    assert excinfo.value.code == 1
    assert "Unknown preset: nope" in capsys.readouterr().out


@pytest.mark.parametrize(
    "name, text, message",
    [
        ("override.txt", "train: {}", "Unsupported config file type"),
        ("override.yaml", "train: [unclosed\n", "Malformed YAML"),
        ("override.json", "[1, 2]", "must decode to a mapping"),
    ],
)
def test_run_rejects_bad_config_files(tmp_path, capsys, name, text, message):
    config = tmp_path / name
    config.write_text(text)
    with pytest.raises(SystemExit) as excinfo:
        main(["run", "--config", str(config)])
    assert excinfo.value.code == 1
    out = capsys.readouterr().out
    assert out.startswith("Error:") and message in out


def test_train_rejects_zero_threads(tmp_path, network_path, capsys):
    images, labels = _write_dataset(tmp_path, "train", 4, seed=0)
    with pytest.raises(SystemExit) as excinfo:
        main(["train", "-n", str(network_path), "-i", str(images), "-l", str(labels), "-r", "0.1", "-t", "0"])
    assert excinfo.value.code == 1
    assert "threads must be at least 1" in capsys.readouterr().out
