"""Train a preset epoch by epoch and record train/test accuracy as CSV."""

from __future__ import annotations

import argparse
import csv
import sys
from pathlib import Path


def main(argv=None):
    root = Path(__file__).resolve().parents[1]
    if str(root) not in sys.path:
        sys.path.insert(0, str(root))

    import numpy as np

    from neuralnet.core.builder import build_network
    from neuralnet.data import get_dataset
    from neuralnet.training.metrics import compute_metrics
    from neuralnet.training.pipelines import load_preset

    ap = argparse.ArgumentParser(description=__doc__)
    ap.add_argument("--preset", default="toy-separable")
    ap.add_argument("--epochs", type=int, default=30)
    ap.add_argument("--out", type=str, default=".artifacts/bench/epochs.csv")
    args = ap.parse_args(argv)

    config = load_preset(args.preset)
    data_cfg, model_cfg, train_cfg = config["data"], config["model"], config["train"]
    dataset = get_dataset(data_cfg["name"], **data_cfg.get("options", {}))
    rng = np.random.default_rng(int(train_cfg.get("seed", 0)))
    network = build_network(model_cfg["layers"], model_cfg.get("cost", "mse"), rng)
    train_pairs = dataset.pairs("train")
    train_split = dataset.splits["train"]
    test_split = dataset.splits.get("test", train_split)

    out = Path(args.out)
    out.parent.mkdir(parents=True, exist_ok=True)
    with out.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow(["epoch", "train_accuracy", "test_accuracy"])
        for epoch in range(args.epochs + 1):
            if epoch:
                network.parallel_stochastic_gradient_descent(
                    train_pairs,
                    int(train_cfg.get("threads", 1)),
                    int(train_cfg.get("batch_size", 10)),
                    float(train_cfg.get("lr", 0.1)),
                    rng=rng,
                )
            train_acc = compute_metrics(network, *train_split)["accuracy"]
            test_acc = compute_metrics(network, *test_split)["accuracy"]
            writer.writerow([epoch, f"{train_acc:.6f}", f"{test_acc:.6f}"])
            handle.flush()
    print(f"Wrote {out}")
    return out


if __name__ == "__main__":
    main()
