import json
from pathlib import Path

import numpy as np
import pytest

from glyphnet.core.rng import RandomSource
from glyphnet.training import pipelines


def _write_glyph_csv(path, n=60, size=6, n_classes=3, seed=0):
    rng = np.random.default_rng(seed)
    lines = ["label," + ",".join(f"p{i}" for i in range(size * size))]
    for i in range(n):
        label = i % n_classes
        pixels = rng.integers(0, 256, size=size * size)
        lines.append(f"{label}," + ",".join(str(int(p)) for p in pixels))
    path.write_text("\n".join(lines) + "\n")
    return path


def _config(tmp_path, **train_overrides):
    tmp_path.mkdir(parents=True, exist_ok=True)
    csv_path = _write_glyph_csv(tmp_path / "glyphs.csv")
    train = {
        "epochs": 3,
        "batch_size": 8,
        "lr": 0.01,
        "seed": 7,
        "minority_classes": [2],
        "checkpoint_warmup": 0,
        "run_dir": str(tmp_path / "run"),
        "enable_plots": False,
    }
    train.update(train_overrides)
    return {
        "data": {
            "sources": [{"path": str(csv_path), "label_offset": 0}],
            "input_size": 6,
            "target_size": 4,
            "threshold": 50,
            "train_ratio": 0.6,
            "validation_ratio": 0.2,
        },
        "model": {
            "hidden": [8],
            "activation": "relu",
            "output_activation": "sigmoid",
            "n_classes": 3,
        },
        "train": train,
    }


def test_pipeline_writes_run_artifacts(tmp_path):
    config = _config(tmp_path)
    result = pipelines.run_pipeline(config)
    run_dir = tmp_path / "run"

    for name in (
        "metrics_train.jsonl",
        "metrics_train.csv",
        "metrics_val.jsonl",
        "metrics_val.csv",
        "metrics_test.json",
        "config.json",
        "manifest.json",
        "model.json",
    ):
        assert (run_dir / name).exists(), name

    assert result.epochs == 3
    assert Path(result.model_path) == run_dir / "model.json"
    assert 0.0 <= result.test_accuracy <= 1.0

    records = [json.loads(line) for line in Path(result.metrics_path).read_text().splitlines()]
    assert [r["epoch"] for r in records] == [0, 1, 2]
    assert all(r["split"] == "train" and r["seed"] == 7 for r in records)

    manifest = json.loads(Path(result.manifest_path).read_text())
    assert manifest["config"]["train"]["seed"] == 7
    assert manifest["dataset"]["samples"] == 60
    assert manifest["dataset"]["splits"] == {"train": 36, "val": 12, "test": 12}
    assert manifest["network"]["layer_dims"] == [16, 8, 3]

    test_metrics = json.loads((run_dir / "metrics_test.json").read_text())
    assert test_metrics["total"] == 12
    assert len(test_metrics["confusion"]) == 3


def test_pipeline_is_reproducible_for_a_seed(tmp_path):
    first = pipelines.run_pipeline(_config(tmp_path / "a"))
    second = pipelines.run_pipeline(_config(tmp_path / "b"))
    val_a = (tmp_path / "a" / "run" / "metrics_val.jsonl").read_text()
    val_b = (tmp_path / "b" / "run" / "metrics_val.jsonl").read_text()
    assert val_a == val_b
    assert first.test_accuracy == second.test_accuracy


def test_pipeline_rejects_labels_beyond_model_classes(tmp_path):
    config = _config(tmp_path)
    config["model"]["n_classes"] = 2
    with pytest.raises(ValueError):
        pipelines.run_pipeline(config)


def test_pipeline_requires_sources(tmp_path):
    config = _config(tmp_path)
    config["data"]["sources"] = []
    with pytest.raises(KeyError):
        pipelines.run_pipeline(config)
    with pytest.raises(KeyError):
        pipelines.run_pipeline({"data": {}, "model": {}})


def test_presets_include_builtin_and_file_presets():
    available = pipelines.presets()
    assert {"symbols-mlp", "digits-min", "letters-az"} <= set(available)
    symbols = pipelines.load_preset("symbols-mlp")
    assert symbols["model"]["hidden"] == [200]
    assert symbols["train"]["minority_classes"] == [11, 15, 18, 26]
    assert [s["label_offset"] for s in symbols["data"]["sources"]] == [0, 0, 10]
    letters = pipelines.load_preset("letters-az")
    assert letters["data"]["sources"][0]["label_offset"] == 10
    with pytest.raises(KeyError):
        pipelines.load_preset("missing")


def test_load_config_file_requires_all_sections(tmp_path):
    path = tmp_path / "partial.yaml"
    path.write_text("data:\n  sources: [a.csv]\nmodel: {}\n")
    with pytest.raises(KeyError):
        pipelines.load_config_file(path)


def test_build_network_uses_configured_topology():
    network = pipelines.build_network(
        {"hidden": [5, 4], "activation": 0, "output_activation": "sigmoid", "n_classes": 36},
        576,
        RandomSource(1),
        0.001,
    )
    assert network.describe() == [576, 5, 4, 36]
    assert network.learning_rate == pytest.approx(0.001)
    with pytest.raises(ValueError):
        pipelines.build_network({"hidden": [0]}, 4, RandomSource(1), 0.1)
