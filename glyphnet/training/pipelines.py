"""Pipeline assembly for glyphnet training runs."""

from __future__ import annotations

import json
import time
from copy import deepcopy
from pathlib import Path
from typing import Dict, List, Mapping, Sequence

import yaml

from ..core.activations import ActivationKind
from ..core.network import Network
from ..core.rng import DEFAULT_SEED, RandomSource
from ..core.snapshot import JsonSnapshotWriter
from ..core.types import RunResult
from ..data.dataset import GlyphDataset
from ..reporting.artifacts import write_manifest
from ..reporting.metrics import CsvSink, JsonlSink, MetricsCapture
from ..reporting.plots import PlotAdapter
from .callbacks import BestModelCallback
from .metrics import default_metrics
from .trainer import Trainer, TrainerConfig

_PRESETS: Dict[str, Mapping[str, object]] = {
    "symbols-mlp": {
        "data": {
            "sources": [
                {"path": "data/mnist_train.csv", "label_offset": 0},
                {"path": "data/mnist_test.csv", "label_offset": 0},
                {"path": "data/AZ_data.csv", "label_offset": 10},
            ],
            "input_size": 28,
            "target_size": 24,
            "threshold": 50,
            "train_ratio": 0.8,
            "validation_ratio": 0.1,
            "size_limit": None,
        },
        "model": {
            "hidden": [200],
            "activation": "relu",
            "output_activation": "sigmoid",
            "n_classes": 36,
        },
        "train": {
            "epochs": 20,
            "batch_size": 32,
            "lr": 0.001,
            "seed": DEFAULT_SEED,
            "minority_classes": [11, 15, 18, 26],
            "checkpoint_warmup": 15,
            "run_dir": "runs/symbols-mlp",
            "enable_plots": False,
        },
    },
    "digits-min": {
        "data": {
            "sources": [{"path": "data/mnist_train.csv", "label_offset": 0}],
            "input_size": 28,
            "target_size": 24,
            "threshold": 50,
            "train_ratio": 0.8,
            "validation_ratio": 0.1,
            "size_limit": 2000,
        },
        "model": {
            "hidden": [64],
            "activation": "relu",
            "output_activation": "sigmoid",
            "n_classes": 10,
        },
        "train": {
            "epochs": 3,
            "batch_size": 32,
            "lr": 0.001,
            "seed": DEFAULT_SEED,
            "minority_classes": [],
            "checkpoint_warmup": 0,
            "run_dir": "runs/digits-min",
            "enable_plots": False,
        },
    },
}

_PRESET_DIR = Path(__file__).resolve().parents[2] / "configs" / "presets"
_FILE_PRESETS_CACHE: Dict[str, Mapping[str, object]] | None = None
_REQUIRED_SECTIONS = {"data", "model", "train"}


def _read_preset_file(path: Path) -> Mapping[str, object]:
    text = path.read_text()
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        data = yaml.safe_load(text) or {}
    elif suffix == ".json":
        data = json.loads(text or "{}")
    else:
        raise ValueError(f"Unsupported preset file type: {path.suffix}")

    if not isinstance(data, Mapping):
        raise TypeError(f"Preset {path.name} must decode to a mapping")
    return data


def _check_sections(name: str, data: Mapping[str, object]) -> None:
    missing = _REQUIRED_SECTIONS - set(data)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise KeyError(f"Config {name} is missing required sections: {missing_str}")


def _file_presets() -> Dict[str, Mapping[str, object]]:
    global _FILE_PRESETS_CACHE
    if _FILE_PRESETS_CACHE is None:
        found: Dict[str, Mapping[str, object]] = {}
        if _PRESET_DIR.exists():
            for file in sorted(_PRESET_DIR.iterdir()):
                if file.suffix.lower() not in {".yaml", ".yml", ".json"}:
                    continue
                data = _read_preset_file(file)
                _check_sections(file.name, data)
                found[file.stem] = json.loads(json.dumps(data))
        _FILE_PRESETS_CACHE = found
    return {name: deepcopy(cfg) for name, cfg in _FILE_PRESETS_CACHE.items()}


def presets() -> Mapping[str, Mapping[str, object]]:
    combined: Dict[str, Mapping[str, object]] = {}
    combined.update({name: deepcopy(cfg) for name, cfg in _PRESETS.items()})
    combined.update(_file_presets())
    return combined


def load_preset(name: str) -> Mapping[str, object]:
    file_overrides = _file_presets()
    if name in file_overrides:
        return file_overrides[name]
    try:
        return deepcopy(_PRESETS[name])
    except KeyError as exc:
        raise KeyError(f"Unknown preset: {name}") from exc


def load_config_file(path: str | Path) -> Mapping[str, object]:
    """Read a full run config from a YAML or JSON file."""

    path = Path(path)
    data = _read_preset_file(path)
    _check_sections(path.name, data)
    return data


# ---------------------------------------------------------------------------
# Run assembly


def build_network(
    model_cfg: Mapping[str, object], n_inputs: int, rng: RandomSource, learning_rate: float
) -> Network:
    """Stack hidden layers and the output layer described by ``model_cfg``."""

    hidden = [int(h) for h in model_cfg.get("hidden", [])]
    if any(h <= 0 for h in hidden):
        raise ValueError(f"Hidden layer sizes must be positive, got {hidden}")
    activation = ActivationKind.parse(model_cfg.get("activation", "relu"))
    output_activation = ActivationKind.parse(model_cfg.get("output_activation", "sigmoid"))
    n_classes = int(model_cfg.get("n_classes", 36))
    if n_classes <= 0:
        raise ValueError(f"n_classes must be positive, got {n_classes}")

    network = Network(rng=rng, learning_rate=learning_rate)
    width = int(n_inputs)
    for size in hidden:
        network.add_layer(width, size, activation)
        width = size
    network.add_layer(width, n_classes, output_activation)
    return network


def build_dataset(data_cfg: Mapping[str, object], rng: RandomSource) -> GlyphDataset:
    return GlyphDataset(
        rng,
        input_size=int(data_cfg.get("input_size", 28)),
        target_size=int(data_cfg.get("target_size", 24)),
        threshold=int(data_cfg.get("threshold", 50)),
    )


def resolve_sources(data_cfg: Mapping[str, object]) -> tuple[List[str], List[int]]:
    sources = data_cfg.get("sources")
    if not sources:
        raise KeyError("Config data section requires a non-empty `sources` list")
    paths: List[str] = []
    offsets: List[int] = []
    for source in sources:  # type: ignore[union-attr]
        if isinstance(source, str):
            paths.append(source)
            offsets.append(0)
            continue
        if "path" not in source:
            raise KeyError(f"Data source entry is missing `path`: {source}")
        paths.append(str(source["path"]))
        offsets.append(int(source.get("label_offset", 0)))
    return paths, offsets


def run_pipeline(config: Mapping[str, object]) -> RunResult:
    _check_sections("run", config)
    data_cfg = dict(config["data"])
    model_cfg = dict(config["model"])
    train_cfg = dict(config["train"])

    seed = int(train_cfg.get("seed", DEFAULT_SEED))
    rng = RandomSource(seed)
    n_classes = int(model_cfg.get("n_classes", 36))
    metric_names = train_cfg.get("metrics") or default_metrics(n_classes)
    trainer_cfg = TrainerConfig(
        epochs=int(train_cfg.get("epochs", 5)),
        batch_size=int(train_cfg.get("batch_size", 32)),
        learning_rate=float(train_cfg.get("lr", 0.001)),
        minority_class_ids=[int(c) for c in train_cfg.get("minority_classes", [])],
        checkpoint_warmup_epochs=int(train_cfg.get("checkpoint_warmup", 15)),
        metric_names=tuple(metric_names),
    )

    dataset = build_dataset(data_cfg, rng)
    paths, offsets = resolve_sources(data_cfg)
    size_limit = data_cfg.get("size_limit")
    dataset.load(paths, offsets, size_limit=int(size_limit) if size_limit is not None else None)
    if len(dataset) and int(dataset.labels.max()) >= n_classes:
        raise ValueError(
            f"Dataset contains label {int(dataset.labels.max())} but the model has "
            f"{n_classes} classes"
        )
    train, validation, test = dataset.split(
        float(data_cfg.get("train_ratio", 0.8)), float(data_cfg.get("validation_ratio", 0.1))
    )

    network = build_network(model_cfg, dataset.n_pixels, rng, trainer_cfg.learning_rate)

    run_dir = _resolve_run_dir(train_cfg)
    run_dir.mkdir(parents=True, exist_ok=True)
    writer = JsonSnapshotWriter(run_dir / "model.json")

    _print_startup_summary(
        sources=paths,
        samples=len(dataset),
        splits=(len(train), len(validation), len(test)),
        dims=network.describe(),
        metrics=",".join(trainer_cfg.metric_names),
        param_count=network.parameter_count(),
        seed=seed,
    )

    plots = PlotAdapter(run_dir, enable_plots=bool(train_cfg.get("enable_plots", False)))
    capture_train = MetricsCapture()
    capture_val = MetricsCapture()
    capture_test = MetricsCapture()
    split_loggers = {
        "train": [
            JsonlSink(run_dir / "metrics_train.jsonl", split="train", seed=seed),
            CsvSink(run_dir / "metrics_train.csv", split="train"),
            capture_train,
            plots.for_split("train"),
        ],
        "val": [
            JsonlSink(run_dir / "metrics_val.jsonl", split="val", seed=seed),
            CsvSink(run_dir / "metrics_val.csv", split="val"),
            capture_val,
            plots.for_split("val"),
        ],
        "test": [capture_test],
    }

    trainer = Trainer(
        network,
        dataset,
        trainer_cfg,
        checkpoint=BestModelCallback(),
        persister=writer,
        split_loggers=split_loggers,
    )
    result = trainer.run(train, validation, test)

    test_payload = result.test.to_dict() if result.test is not None else {}
    (run_dir / "metrics_test.json").write_text(json.dumps(test_payload, indent=2))
    config_path = run_dir / "config.json"
    config_path.write_text(json.dumps(_safe_config(config), indent=2))
    manifest = write_manifest(
        run_dir / "manifest.json",
        config=_safe_config(config),
        dataset={
            "sources": [{"path": p, "label_offset": o} for p, o in zip(paths, offsets)],
            "samples": len(dataset),
            "class_counts": {str(k): v for k, v in dataset.class_counts().items()},
            "splits": {"train": len(train), "val": len(validation), "test": len(test)},
        },
        layer_dims=network.describe(),
    )
    plot_path = plots.close()

    return RunResult(
        epochs=result.epochs,
        metrics_path=str(run_dir / "metrics_train.jsonl"),
        manifest_path=manifest,
        model_path=str(writer.path) if writer.saved else "",
        test_accuracy=result.test.accuracy if result.test is not None else 0.0,
        test_loss=float(result.test.loss or 0.0) if result.test is not None else 0.0,
        extra={
            "best_valid_loss": result.best_valid_loss,
            "checkpoints": result.checkpoints,
            "plot_path": str(plot_path) if plot_path else None,
        },
    )


def _resolve_run_dir(train_cfg: Mapping[str, object]) -> Path:
    if train_cfg.get("run_dir"):
        return Path(str(train_cfg["run_dir"]))
    timestamp = time.strftime("%Y%m%d-%H%M%S")
    return Path("runs") / timestamp


def _safe_config(config: Mapping[str, object]) -> Mapping[str, object]:
    return json.loads(json.dumps(config))


def _print_startup_summary(
    *,
    sources: Sequence[str],
    samples: int,
    splits: Sequence[int],
    dims: Sequence[int],
    metrics: str,
    param_count: int,
    seed: int,
) -> None:
    print("=== glyphnet run ===")
    print(f"Sources       : {', '.join(sources)}")
    print(f"Samples       : {samples}")
    print(f"Splits        : train={splits[0]} val={splits[1]} test={splits[2]}")
    print(f"Dimensions    : {list(dims)}")
    print(f"Metrics       : {metrics}")
    print(f"Parameters    : {param_count}")
    print(f"Seed          : {seed}")
    print("====================")


__all__ = [
    "build_dataset",
    "build_network",
    "load_config_file",
    "load_preset",
    "presets",
    "resolve_sources",
    "run_pipeline",
]
