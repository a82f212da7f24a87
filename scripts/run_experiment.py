#!/usr/bin/env python3
"""
Sensor Classification Experiment
================================

Trains a random forest on band-filtered statistical features of the
training readings and reports prediction accuracy on a test set.

Usage:
    python scripts/run_experiment.py
    python scripts/run_experiment.py --config configs/reference.yaml
    python scripts/run_experiment.py --train train.csv --test test_data.csv --answers result.csv
    python scripts/run_experiment.py --state-mode shared   # reproduce carried filter state

Author: Sensor Classifier Project Team
License: MIT
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

import yaml

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.sensor.classifier import ClassifierConfig
from src.sensor.errors import SensorError
from src.sensor.features import StateMode
from src.sensor.pipeline import ExperimentConfig, ExperimentResult, ExperimentRunner

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def print_report(result: ExperimentResult) -> None:
    """Print per-reading predictions and the overall accuracy."""
    print("\n" + "=" * 60)
    print(f"Test set: {result.test_path}")
    print("-" * 60)

    if not result.succeeded:
        print(f"FAILED: {result.error}")
        print("=" * 60 + "\n")
        return

    evaluation = result.evaluation
    for predicted, expected in evaluation.pairs():
        print(f"Prediction result: {predicted:g} Ideal result: {expected:g}")

    print("-" * 60)
    print(f"Accuracy {evaluation.accuracy:.2f}% "
          f"({evaluation.n_correct}/{evaluation.n_total})")
    print(f"Features: {len(result.feature_names)}, training readings: {result.n_train}")
    print(f"Duration: {result.duration_s:.2f}s")
    print("=" * 60 + "\n")


def build_config(args: argparse.Namespace) -> ExperimentConfig:
    """Load the configuration file and apply command-line overrides."""
    config = ExperimentConfig.from_yaml(args.config) if args.config else ExperimentConfig()

    if args.train:
        config.train_path = args.train
    if args.test:
        config.test_path = args.test
    if args.answers:
        config.answer_path = args.answers
    if args.state_mode:
        config.state_mode = StateMode.parse(args.state_mode)
    if args.trees is not None or args.seed is not None:
        config.classifier = ClassifierConfig(
            n_estimators=args.trees if args.trees is not None else config.classifier.n_estimators,
            max_depth=config.classifier.max_depth,
            random_state=args.seed if args.seed is not None else config.classifier.random_state,
            n_jobs=config.classifier.n_jobs,
        )
    if args.seed is not None:
        config.augmentation = replace(config.augmentation, seed=args.seed)
    if args.no_augment:
        config.augmentation = replace(config.augmentation, enabled=False)

    return config


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Band-feature random-forest experiment")
    parser.add_argument("--config", "-c", type=str, default=None,
                        help="YAML experiment configuration")
    parser.add_argument("--train", type=str, default=None, help="Training CSV")
    parser.add_argument("--test", type=str, default=None, help="Test CSV")
    parser.add_argument("--answers", type=str, default=None, help="Answer CSV for the test set")
    parser.add_argument("--trees", type=int, default=None, help="Number of trees")
    parser.add_argument("--seed", type=int, default=None,
                        help="Seed for the forest and the test-set rescaling")
    parser.add_argument("--state-mode", choices=["isolated", "shared"], default=None,
                        help="Filter-state handling between readings")
    parser.add_argument("--no-augment", action="store_true",
                        help="Do not randomly rescale test readings")
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose logging"
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        config = build_config(args)
    except (SensorError, ValueError, OSError, yaml.YAMLError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    result = ExperimentRunner(config).run()
    print_report(result)
    return 0 if result.succeeded else 1


if __name__ == "__main__":
    sys.exit(main())
