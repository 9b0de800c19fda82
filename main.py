# main.py

"""Command-line interface for the responsive scaling optimizer."""

import argparse
import asyncio
import dataclasses
import json
import logging
import os
import warnings
from pathlib import Path

import optuna
import pandas as pd

from responsive_optimizer.config import Config
from responsive_optimizer.data_processing import FeatureExtractor
from responsive_optimizer.optimizer import ScalingOptimizer
from responsive_optimizer.types import ComponentUsageData, ResponsiveConfig, TrainingData

for var in ["OMP_NUM_THREADS", "OPENBLAS_NUM_THREADS", "MKL_NUM_THREADS", "NUMEXPR_NUM_THREADS", "VECLIB_MAXIMUM_THREADS"]:
    os.environ.setdefault(var, "1")

warnings.filterwarnings('ignore', category=UserWarning)
warnings.filterwarnings('ignore', category=FutureWarning)

logger = logging.getLogger("responsive_optimizer.cli")


def _read_json(path):
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def load_training_data(path, settings: Config):
    """
    Read labelled examples from a JSON list.

    Each example carries ``labels`` and either a flattened ``features``
    vector or the raw ``config`` and ``usage`` it should be extracted from.
    """
    extractor = FeatureExtractor(settings)
    examples = []
    for item in _read_json(path):
        if "features" not in item and "config" in item:
            features = extractor.extract_features(
                ResponsiveConfig.from_dict(item["config"]),
                [ComponentUsageData.from_dict(u) for u in item.get("usage") or []],
            )
            item = {**item, "features": features}
        examples.append(TrainingData.from_dict(item))
    return examples


def _print_metrics(title, metrics):
    print(f"\n{title}")
    table = pd.DataFrame([{
        "accuracy": metrics.accuracy,
        "precision": metrics.precision,
        "recall": metrics.recall,
        "f1_score": metrics.f1_score,
        "mse": metrics.mse,
        "samples": metrics.sample_count,
    }])
    print(table.to_string(index=False, float_format="%.4f"))


def _print_suggestions(suggestions):
    tokens = pd.DataFrame.from_dict(
        {name: dataclasses.asdict(token) for name, token in suggestions.suggested_tokens.items()},
        orient="index",
    )
    print("\nSuggested tokens")
    print(tokens.to_string(float_format="%.3f"))

    curves = pd.DataFrame(
        [{"token": r.token, "mode": r.mode, "scale": r.scale, "confidence": r.confidence}
         for r in suggestions.scaling_curve_recommendations]
    )
    print("\nScaling curves")
    print(curves.to_string(index=False, float_format="%.3f"))

    impacts = pd.DataFrame([dataclasses.asdict(i) for i in suggestions.performance_impacts])
    print("\nPerformance impact")
    print(impacts.to_string(index=False, float_format="%.2f"))

    if suggestions.accessibility_warnings:
        print("\nAccessibility warnings")
        for warning in suggestions.accessibility_warnings:
            print(f"  [{warning.severity}] {warning.description} ({warning.wcag_reference})")

    print(f"\nConfidence: {suggestions.confidence_score:.3f}")


async def _run(args, settings: Config):
    optimizer = ScalingOptimizer(settings, architecture=getattr(args, "architecture", None))

    if args.command == "info":
        if getattr(args, "model", None):
            await optimizer.initialize(args.model)
        info = optimizer.get_model_info()
        print(f"Architecture: {info.architecture}")
        print(f"Initialized:  {info.is_initialized}")
        print(f"Parameters:   {info.parameters}")
        for layer in info.layers:
            print(f"  - {layer}")
        return info

    if args.command == "optimize":
        await optimizer.initialize(getattr(args, "model", None))
        suggestions = await optimizer.optimize_scaling(_read_json(args.config), _read_json(args.usage))
        _print_suggestions(suggestions)
        if getattr(args, "output", None):
            Path(args.output).parent.mkdir(parents=True, exist_ok=True)
            with open(args.output, "w", encoding="utf-8") as f:
                json.dump(dataclasses.asdict(suggestions), f, indent=2)
            logger.info("Suggestions written to %s", args.output)
        return suggestions

    if args.command == "train":
        training_data = load_training_data(args.data, settings)
        if getattr(args, "tune", 0):
            best = await optimizer.tune_hyperparameters(training_data, n_trials=args.tune)
            print(f"\nBest {best['architecture']} parameters: {best['best_params']} (mse={best['best_value']:.4f})")
        await optimizer.initialize()
        metrics = await optimizer.train_model(training_data)
        _print_metrics("Training metrics", metrics)
        target = await optimizer.save_model(args.output)
        print(f"\nModel saved to {target}")
        return metrics

    if args.command == "evaluate":
        await optimizer.initialize(args.model)
        metrics = await optimizer.evaluate_model(load_training_data(args.data, settings))
        _print_metrics("Evaluation metrics", metrics)
        return metrics

    raise ValueError(f"Unknown command '{args.command}'")


def main(args, settings: Config | None = None):
    """
    Main function of the command-line interface.

    Dispatches to one of the ``optimize``, ``train``, ``evaluate`` or
    ``info`` commands and returns the command's result.
    """
    logging.basicConfig(
        level=getattr(args, "log_level", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    optuna.logging.set_verbosity(optuna.logging.WARNING)
    return asyncio.run(_run(args, settings or Config()))


def build_parser():
    parser = argparse.ArgumentParser(
        description="Responsive scaling optimizer. Suggests token scaling rules from component usage data.",
        formatter_class=argparse.RawTextHelpFormatter
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    optimize = subparsers.add_parser("optimize", help="Suggest optimized scaling rules for a configuration.")
    optimize.add_argument("--config", required=True, help="JSON file with the responsive configuration.")
    optimize.add_argument("--usage", required=True, help="JSON file with a list of component usage records.")
    optimize.add_argument("--model", default=None, help="Saved model to use instead of a fresh one.")
    optimize.add_argument("--output", default=None, help="Optionally write the suggestions to this JSON file.")

    train = subparsers.add_parser("train", help="Train a model on labelled examples and save it.")
    train.add_argument("--data", required=True, help="JSON file with a list of labelled examples.")
    train.add_argument("--output", required=True, help="File or directory to save the trained model to.")
    train.add_argument(
        "--architecture",
        default=None,
        choices=list(Config.MODEL_FAMILIES.keys()),
        help="Model family to train. Defaults to " + Config.ARCHITECTURE + "."
    )
    train.add_argument(
        "--tune",
        type=int,
        default=0,
        metavar="N_TRIALS",
        help="Run an Optuna search with this many trials before training and report the best parameters."
    )

    evaluate = subparsers.add_parser("evaluate", help="Score a saved model on labelled examples.")
    evaluate.add_argument("--data", required=True, help="JSON file with a list of labelled examples.")
    evaluate.add_argument("--model", required=True, help="Saved model to evaluate.")

    info = subparsers.add_parser("info", help="Describe the configured or a saved model.")
    info.add_argument("--model", default=None, help="Saved model to describe.")
    info.add_argument(
        "--architecture",
        default=None,
        choices=list(Config.MODEL_FAMILIES.keys()),
        help="Model family to describe when no saved model is given."
    )
    return parser


if __name__ == "__main__":
    main(build_parser().parse_args())
