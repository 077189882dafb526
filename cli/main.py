"""Command line entry point for glyphnet training, evaluation and prediction."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Iterable

import yaml

from glyphnet.core.rng import RandomSource
from glyphnet.data.csv_source import read_pixel_rows
from glyphnet.inference import Recognizer
from glyphnet.training import pipelines

logger = logging.getLogger("glyphnet.cli")


def _format_result(result) -> str:
    payload = {
        "epochs": result.epochs,
        "metrics": result.metrics_path,
        "manifest": result.manifest_path,
        "model": result.model_path,
        "test_accuracy": round(float(result.test_accuracy), 6),
    }
    return json.dumps(payload, sort_keys=True)


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    preset_names = sorted(pipelines.presets().keys())
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--preset",
        choices=preset_names,
        default="symbols-mlp",
        help="Preset configuration to execute",
    )
    parser.add_argument("--config", type=Path, help="Optional JSON/YAML config override")
    parser.add_argument("--seed", type=int, help="Seed for initialisation, splits and shuffles")
    parser.add_argument("--epochs", type=int, help="Override the number of training epochs")
    parser.add_argument("--run-dir", type=Path, help="Directory receiving run artifacts")
    parser.add_argument(
        "--enable-plots", action="store_true", help="Write a loss curve into the run directory"
    )
    parser.add_argument(
        "--list-presets", action="store_true", help="List available presets and exit"
    )
    parser.add_argument(
        "--dump-config", type=Path, help="Dump the resolved config to a JSON file"
    )
    parser.add_argument(
        "--evaluate",
        type=Path,
        metavar="CSV",
        help="Evaluate --model on a labelled CSV file instead of training",
    )
    parser.add_argument(
        "--predict",
        type=Path,
        metavar="CSV",
        help="Print top-k labels of --model for every raw pixel row in CSV",
    )
    parser.add_argument("--model", type=Path, help="Saved model.json for --evaluate/--predict")
    parser.add_argument("--top-k", type=int, default=5, help="Predictions reported per row")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, ...)")
    return parser.parse_args(argv)


def _load_override(path: Path) -> dict:
    text = path.read_text()
    if path.suffix in {".yml", ".yaml"}:
        return yaml.safe_load(text) or {}
    return json.loads(text or "{}")


def _merge(base: dict, override: dict) -> dict:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _merge(dict(base[key]), value)
        else:
            base[key] = value
    return base


def resolve_config(args: argparse.Namespace) -> dict:
    config = json.loads(json.dumps(pipelines.load_preset(args.preset)))

    if args.config:
        override = _load_override(args.config)
        if {"data", "model", "train"} <= set(override.keys()):
            config = json.loads(json.dumps(override))
        else:
            config = _merge(config, dict(override))

    train_cfg = config.setdefault("train", {})
    if args.enable_plots:
        train_cfg["enable_plots"] = True
    if args.seed is not None:
        train_cfg["seed"] = int(args.seed)
    if args.epochs is not None:
        train_cfg["epochs"] = int(args.epochs)
    if args.run_dir is not None:
        train_cfg["run_dir"] = str(args.run_dir)
    return config


def _recognizer(args: argparse.Namespace, config: dict) -> Recognizer:
    if args.model is None:
        raise SystemExit("--model is required with --evaluate and --predict")
    data_cfg = config.get("data", {})
    return Recognizer.from_file(
        args.model,
        target_size=int(data_cfg.get("target_size", 24)),
        threshold=int(data_cfg.get("threshold", 50)),
    )


def _evaluate(args: argparse.Namespace, config: dict) -> None:
    recognizer = _recognizer(args, config)
    seed = int(config.get("train", {}).get("seed", 0))
    dataset = pipelines.build_dataset(config.get("data", {}), RandomSource(seed))
    split = dataset.read_split([args.evaluate], [0])
    report = recognizer.evaluate(split.images, split.labels)
    print(json.dumps(report.to_dict(), sort_keys=True))


def _predict(args: argparse.Namespace, config: dict) -> None:
    recognizer = _recognizer(args, config)
    default_size = int(config.get("data", {}).get("input_size", 28))
    for row, pixels in enumerate(read_pixel_rows(args.predict)):
        predictions = recognizer.predict(pixels, default_size=default_size, k=args.top_k)
        payload = {
            "row": row,
            "predictions": [
                {"label": p.label, "score": round(p.score, 6), "share": round(p.share, 2)}
                for p in predictions
            ],
        }
        print(json.dumps(payload, sort_keys=True))


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.list_presets:
        for name in sorted(pipelines.presets().keys()):
            print(name)
        raise SystemExit(0)

    config = resolve_config(args)

    if args.dump_config:
        args.dump_config.parent.mkdir(parents=True, exist_ok=True)
        args.dump_config.write_text(json.dumps(config, indent=2))

    if args.evaluate is not None:
        _evaluate(args, config)
        return
    if args.predict is not None:
        _predict(args, config)
        return

    result = pipelines.run_pipeline(config)
    logger.info("Run finished with test accuracy %.4f", result.test_accuracy)
    print(_format_result(result))


if __name__ == "__main__":
    main()
