"""Command line entry point for creating, training and evaluating networks."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Iterable, Mapping

import numpy as np

from neuralnet.core.builder import build_network
from neuralnet.core.errors import NeuralNetError, ShapeMismatchError
from neuralnet.data.idx_files import load_idx_arrays
from neuralnet.io.persistence import load_network, save_network
from neuralnet.training import pipelines
from neuralnet.training.metrics import correct, predict
from neuralnet.training.trainer import Trainer


def _format_result(result) -> str:
    payload = {
        "epochs": result.epochs,
        "batches": result.batches,
        "metrics": result.metrics_path,
        "manifest": result.manifest_path,
        "summary": result.summary_path,
        "network": result.network_path,
    }
    return json.dumps(payload, sort_keys=True)


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-v", "--verbose", action="store_true", help="Print per-batch progress")

    parser = argparse.ArgumentParser(description=__doc__)
    commands = parser.add_subparsers(dest="command", required=True)

    create = commands.add_parser("create", parents=[common], help="Create a new neural network")
    create.add_argument("-n", "--network", type=Path, required=True, help="The .nnet file to create")
    create.add_argument(
        "-l",
        "--layer",
        dest="layers",
        action="append",
        required=True,
        help="Layer spec such as input:784, relu:32, pool2d:max:28x28:2x2 (repeatable)",
    )
    create.add_argument("--cost", default="mse", help="Cost function (mse or mae)")
    create.add_argument("--seed", type=int, help="Seed for weight initialisation")

    train = commands.add_parser("train", parents=[common], help="Train a network on IDX data")
    train.add_argument("-n", "--network", type=Path, required=True)
    train.add_argument("-i", "--images", type=Path, required=True, help="IDX image file")
    train.add_argument("-l", "--labels", type=Path, required=True, help="IDX label file")
    train.add_argument("-r", "--learning-rate", type=float, required=True)
    train.add_argument("-s", "--batch-size", type=int, default=10)
    train.add_argument("-c", "--batch-count", type=int, help="Batches per epoch, default all")
    train.add_argument("-e", "--epochs", type=int, default=1)
    train.add_argument("-t", "--threads", type=int, default=1, help="Data-parallel workers")
    train.add_argument("--test-images", type=Path, help="Test the network every epoch")
    train.add_argument("--test-labels", type=Path)
    train.add_argument("--seed", type=int, help="Seed for shuffling and subsampling")

    test = commands.add_parser("test", parents=[common], help="Measure accuracy on IDX data")
    test.add_argument("-n", "--network", type=Path, required=True)
    test.add_argument("-i", "--images", type=Path, required=True)
    test.add_argument("-l", "--labels", type=Path, required=True)
    test.add_argument("-c", "--count", type=int, help="Number of samples to test")
    test.add_argument("--seed", type=int)

    evaluate = commands.add_parser("evaluate", parents=[common], help="Evaluate one raw image")
    evaluate.add_argument("-n", "--network", type=Path, required=True)
    evaluate.add_argument("-i", "--image", type=Path, required=True, help="Raw bytes, one per input")

    run = commands.add_parser("run", parents=[common], help="Run a configured pipeline")
    run.add_argument("--preset", default="toy-separable", help="Preset configuration to execute")
    run.add_argument("--config", type=Path, help="Optional JSON/YAML config override")
    run.add_argument("--enable-plots", action="store_true", help="Enable plotting adapters")
    run.add_argument("--seed", type=int, help="Seed used for training")
    run.add_argument("--list-presets", action="store_true", help="List available presets and exit")
    run.add_argument("--dump-config", type=Path, help="Dump the resolved config to a JSON file")

    args = parser.parse_args(argv)
    if args.command == "train" and (args.test_images is None) != (args.test_labels is None):
        parser.error("--test-images and --test-labels must be given together")
    return args


class _ConsoleReporter:
    def __init__(self, batch_size: int, batch_count: int | None) -> None:
        self.batch_size = batch_size
        self.batch_count = batch_count

    def on_epoch_start(self, epoch: int, samples: int) -> None:
        batches = "all" if self.batch_count is None else str(self.batch_count)
        print(
            f"Starting epoch {epoch} training with {batches} batches of size "
            f"{self.batch_size} and {samples} total samples"
        )

    def on_epoch(self, epoch: int, metrics: Mapping[str, object]) -> None:
        if metrics.get("split") == "train":
            print(f"Finished training for epoch {epoch}.")
        elif metrics.get("split") == "test":
            print(f"Accuracy: {float(metrics['accuracy']) * 100:.2f}% - cost {float(metrics['cost']):.6f}")


def _progress(index: int, total: int) -> None:
    print(f"{index}/{total} {index / total * 100:.2f}%")


def _create(args: argparse.Namespace) -> None:
    network = build_network(args.layers, args.cost, np.random.default_rng(args.seed))
    save_network(network, args.network, new=True)
    print(f"Created a new neural network at {args.network}")


def _train(args: argparse.Namespace) -> None:
    network = load_network(args.network)
    inputs, targets, _ = load_idx_arrays(args.images, args.labels, network.output_size)
    test = None
    if args.test_images is not None:
        test_inputs, test_targets, _ = load_idx_arrays(
            args.test_images, args.test_labels, network.output_size
        )
        test = (test_inputs, test_targets)

    trainer = Trainer(
        network,
        np.random.default_rng(args.seed),
        callbacks=[_ConsoleReporter(args.batch_size, args.batch_count)],
    )
    trainer.run(
        (inputs, targets),
        epochs=args.epochs,
        batch_size=args.batch_size,
        learning_rate=args.learning_rate,
        threads=args.threads,
        batch_count=args.batch_count,
        test=test,
        progress=_progress if args.verbose else None,
    )
    save_network(network, args.network, new=False)
    print(f"Finished training. Saved the neural network to {args.network}")


def _test(args: argparse.Namespace) -> None:
    network = load_network(args.network)
    inputs, targets, labels = load_idx_arrays(args.images, args.labels, network.output_size)
    order = np.random.default_rng(args.seed).permutation(len(inputs))
    if args.count is not None:
        order = order[: args.count]
    predictions = predict(network, inputs[order])
    hits = correct(predictions, targets[order])
    if args.verbose:
        for prediction, hit, label in zip(predictions, hits, labels[order]):
            winner = int(np.argmax(prediction))
            verdict = "Correct" if hit else "Wrong"
            print(f"{verdict}: {int(label[0])} = {winner} @ {prediction[winner] * 100:.2f}%")
    total = len(order)
    count = int(np.sum(hits))
    share = count / total * 100 if total else 0.0
    print(f"Accuracy: {count}/{total} - {share:.2f}%")


def _evaluate(args: argparse.Namespace) -> None:
    network = load_network(args.network)
    if not args.image.exists():
        raise FileNotFoundError(f"File does not exist: {args.image}")
    pixels = np.frombuffer(args.image.read_bytes(), dtype=np.uint8) / 255.0
    if pixels.size != network.input_size:
        raise ShapeMismatchError(
            f"Incorrect image data length ({pixels.size}) should be {network.input_size}"
        )
    for index, value in enumerate(network.feed_forward(pixels)):
        print(f"{index + 1:>2}: {value * 100:.2f}%")


def _run(args: argparse.Namespace) -> None:
    if args.list_presets:
        for name in sorted(pipelines.presets().keys()):
            print(name)
        return

    config = pipelines.load_preset(args.preset)
    if args.config:
        override = pipelines.load_config_file(args.config)
        if {"data", "model", "train"} <= set(override.keys()):
            config = json.loads(json.dumps(override))
        else:
            config = pipelines.merge_config(config, override)
    if args.enable_plots:
        config.setdefault("train", {})["enable_plots"] = True
    if args.seed is not None:
        config.setdefault("train", {})["seed"] = int(args.seed)

    if args.dump_config:
        args.dump_config.parent.mkdir(parents=True, exist_ok=True)
        args.dump_config.write_text(json.dumps(config, indent=2))

    print(_format_result(pipelines.run_pipeline(config)))


_COMMANDS = {
    "create": _create,
    "train": _train,
    "test": _test,
    "evaluate": _evaluate,
    "run": _run,
}


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)
    try:
        _COMMANDS[args.command](args)
    except (NeuralNetError, OSError, KeyError) as exc:
        message = exc.args[0] if isinstance(exc, KeyError) and exc.args else exc
        print(f"Error: {message}")
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
