import csv
import subprocess
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]


def test_bench_epochs_writes_curve(tmp_path):
    out = tmp_path / "bench" / "epochs.csv"
    subprocess.check_call(
        [sys.executable, "scripts/bench_epochs.py", "--preset", "toy-separable", "--epochs", "3", "--out", str(out)],
        cwd=ROOT,
    )
    with out.open(newline="", encoding="utf-8") as handle:
        rows = list(csv.DictReader(handle))
    assert [int(row["epoch"]) for row in rows] == [0, 1, 2, 3]
    for row in rows:
        assert 0.0 <= float(row["train_accuracy"]) <= 1.0
        assert 0.0 <= float(row["test_accuracy"]) <= 1.0
