"""
Experiment Pipeline Module
==========================

Orchestrates one train/evaluate experiment.

Pipeline Flow:

    train.csv ──> normalize ──────────────┐
                                          ├─> FeatureExtractor ─> RandomForest
    test.csv + answers ─> rescale ─> normalize ─┘                    │
                                                                   predict
                                                                     │
                                                              accuracy report

Failure Handling:
    Dataset-level failures (unreadable files, label/row count mismatch,
    undefined statistics) are logged and recorded on the returned
    ExperimentResult. When several test sets are evaluated, a failing set
    does not stop the others.

Example:
    >>> config = ExperimentConfig.from_yaml("configs/reference.yaml")
    >>> runner = ExperimentRunner(config)
    >>> result = runner.run()
    >>> print(result.evaluation.accuracy)

Author: Sensor Classifier Project Team
License: MIT
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import yaml

from .classifier import ClassifierConfig, EvaluationResult, RandomForestModel, evaluate
from .dataset import (
    AugmentationConfig,
    LabeledReading,
    labels_of,
    load_test_data,
    load_training_data,
    normalize_all,
    rescale_randomly,
)
from .errors import ConfigurationError, SensorError
from .features import REFERENCE_STATISTICS, FeatureExtractor, FeaturePlan, StateMode
from .filters import REFERENCE_BANDS, REFERENCE_SAMPLING_RATE, FilterBank, ImpulseResponse
from .statistics import DegeneratePolicy, StatisticKind

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class ExperimentConfig:
    """
    Master configuration for one experiment.

    Attributes:
        train_path: Training CSV
        test_path: Test CSV
        answer_path: Answer CSV holding the test labels

        sampling_rate: Capture sampling rate in Hz
        bands: Band name -> (low, high) cutoffs, None marking an open edge
        impulse_response: Filter design family
        filter_order: Filter order (None = default per family)
        statistics: Statistics computed on every band, in column order

        state_mode: Filter-state handling between readings
        degenerate_policy: Handling of undefined statistics
        normalize: Whether to normalize readings before extraction
        augmentation: Random rescaling of test readings
        classifier: Random-forest configuration
    """
    train_path: str = "train.csv"
    test_path: str = "test_data.csv"
    answer_path: str = "result.csv"

    sampling_rate: float = REFERENCE_SAMPLING_RATE
    bands: Dict[str, Tuple[Optional[float], Optional[float]]] = field(
        default_factory=lambda: dict(REFERENCE_BANDS)
    )
    impulse_response: ImpulseResponse = ImpulseResponse.FINITE
    filter_order: Optional[int] = None
    statistics: List[StatisticKind] = field(
        default_factory=lambda: list(REFERENCE_STATISTICS)
    )

    state_mode: StateMode = StateMode.ISOLATED
    degenerate_policy: DegeneratePolicy = DegeneratePolicy.RAISE
    normalize: bool = True
    augmentation: AugmentationConfig = field(default_factory=AugmentationConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)

    def __post_init__(self) -> None:
        """Validate configuration consistency."""
        if not self.bands:
            raise ConfigurationError("At least one band is required")
        if not self.statistics:
            raise ConfigurationError("At least one statistic is required")

        self.bands = {name: tuple(cutoffs) for name, cutoffs in self.bands.items()}
        self.statistics = [StatisticKind.parse(s) for s in self.statistics]

        # Fail at configuration time on bad cutoffs
        self._bank = self.build_bank()

    def build_bank(self) -> FilterBank:
        """Filter bank described by this configuration."""
        return FilterBank.from_cutoffs(
            self.bands, self.sampling_rate, self.impulse_response, self.filter_order
        )

    def build_plan(self) -> FeaturePlan:
        """Feature plan: every statistic on every band, band-major."""
        return FeaturePlan.from_grid(self._bank, self.statistics)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ExperimentConfig':
        """
        Build a configuration from plain (YAML-style) values.

        Enum fields are given by name, bands as ``name: [low, high]``.
        """
        data = dict(data or {})
        kwargs: Dict[str, Any] = {}

        for key in ("train_path", "test_path", "answer_path", "normalize"):
            if key in data:
                kwargs[key] = data.pop(key)
        if "sampling_rate" in data:
            kwargs["sampling_rate"] = float(data.pop("sampling_rate"))
        if "filter_order" in data:
            kwargs["filter_order"] = data.pop("filter_order")
        if "bands" in data:
            bands = data.pop("bands") or {}
            for name, cutoffs in bands.items():
                if not isinstance(cutoffs, (list, tuple)) or len(cutoffs) != 2:
                    raise ConfigurationError(
                        f"Band '{name}' must be given as [low, high], got {cutoffs!r}"
                    )
            kwargs["bands"] = {name: tuple(cutoffs) for name, cutoffs in bands.items()}
        if "impulse_response" in data:
            kwargs["impulse_response"] = _parse_enum(
                ImpulseResponse, data.pop("impulse_response")
            )
        if "statistics" in data:
            kwargs["statistics"] = [StatisticKind.parse(s) for s in data.pop("statistics")]
        if "state_mode" in data:
            kwargs["state_mode"] = StateMode.parse(data.pop("state_mode"))
        if "degenerate_policy" in data:
            kwargs["degenerate_policy"] = _parse_enum(
                DegeneratePolicy, data.pop("degenerate_policy")
            )
        if "augmentation" in data:
            kwargs["augmentation"] = AugmentationConfig(**(data.pop("augmentation") or {}))
        if "classifier" in data:
            kwargs["classifier"] = ClassifierConfig(**(data.pop("classifier") or {}))

        if data:
            raise ConfigurationError(f"Unknown configuration keys: {sorted(data)}")

        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """Plain-value representation suitable for YAML."""
        return {
            "train_path": self.train_path,
            "test_path": self.test_path,
            "answer_path": self.answer_path,
            "sampling_rate": self.sampling_rate,
            "bands": {name: list(cutoffs) for name, cutoffs in self.bands.items()},
            "impulse_response": self.impulse_response.name.lower(),
            "filter_order": self.filter_order,
            "statistics": [s.name.lower() for s in self.statistics],
            "state_mode": self.state_mode.name.lower(),
            "degenerate_policy": self.degenerate_policy.name.lower(),
            "normalize": self.normalize,
            "augmentation": {
                "enabled": self.augmentation.enabled,
                "gain_low": self.augmentation.gain_low,
                "gain_high": self.augmentation.gain_high,
                "offset_low": self.augmentation.offset_low,
                "offset_high": self.augmentation.offset_high,
                "seed": self.augmentation.seed,
            },
            "classifier": {
                "n_estimators": self.classifier.n_estimators,
                "max_depth": self.classifier.max_depth,
                "random_state": self.classifier.random_state,
                "n_jobs": self.classifier.n_jobs,
            },
        }

    @classmethod
    def from_yaml(cls, path: PathLike) -> 'ExperimentConfig':
        """
        Load configuration from YAML file.

        Args:
            path: Path to YAML configuration file

        Returns:
            ExperimentConfig instance
        """
        with open(path, "r") as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    def to_yaml(self, path: PathLike) -> None:
        """
        Save configuration to YAML file.

        Args:
            path: Path to save configuration
        """
        with open(path, "w") as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=None, sort_keys=False)


def _parse_enum(enum_cls, value):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls[str(value).strip().upper()]
    except KeyError:
        raise ConfigurationError(f"Unknown {enum_cls.__name__}: {value}") from None


# =============================================================================
# Results
# =============================================================================

@dataclass
class ExperimentResult:
    """
    Outcome of evaluating one test set.

    Attributes:
        test_path: Test set that was evaluated
        evaluation: Accuracy report (None when the run failed)
        error: Failure description (None on success)
        n_train: Training readings used
        feature_names: Column layout of the feature matrix
        duration_s: Wall time of the run
    """
    test_path: str
    evaluation: Optional[EvaluationResult] = None
    error: Optional[str] = None
    n_train: int = 0
    feature_names: List[str] = field(default_factory=list)
    duration_s: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.evaluation is not None


# =============================================================================
# Runner
# =============================================================================

class ExperimentRunner:
    """
    Trains a random forest on band features and evaluates it.

    The same FeatureExtractor (and so the same plan and column order) is
    used for training and every test set.
    """

    def __init__(self, config: Optional[ExperimentConfig] = None) -> None:
        """
        Initialize runner.

        Args:
            config: Experiment configuration (default: reference setup)
        """
        self.config = config or ExperimentConfig()
        self.plan = self.config.build_plan()
        self.extractor = FeatureExtractor(
            self.plan,
            state_mode=self.config.state_mode,
            degenerate_policy=self.config.degenerate_policy,
        )
        self.model: Optional[RandomForestModel] = None
        self._n_train = 0

        logger.info(
            f"ExperimentRunner initialized: {len(self.plan)} features, "
            f"{self.config.classifier.n_estimators} trees"
        )

    # =========================================================================
    # Stages
    # =========================================================================

    def prepare_training(self, readings: Sequence[LabeledReading]) -> None:
        """Normalize training readings in place."""
        if self.config.normalize:
            normalize_all(readings)

    def prepare_test(self, readings: Sequence[LabeledReading]) -> None:
        """Randomly rescale, then normalize, test readings in place."""
        if self.config.augmentation.enabled:
            rescale_randomly(readings, self.config.augmentation)
        if self.config.normalize:
            normalize_all(readings)

    def train(self, readings: Sequence[LabeledReading]) -> RandomForestModel:
        """
        Fit the forest on training readings.

        Args:
            readings: Pre-processed training readings

        Returns:
            Fitted model
        """
        if not readings:
            raise SensorError("Training set is empty")

        X = self.extractor.transform(readings)
        y = labels_of(readings)

        self.model = RandomForestModel(self.config.classifier).fit(X, y)
        self._n_train = len(readings)
        return self.model

    def predict(self, readings: Sequence[LabeledReading]) -> np.ndarray:
        """Predicted label per reading, one feature vector at a time."""
        if self.model is None:
            raise RuntimeError("Model must be trained before predict")
        return np.asarray(
            [self.model.predict(self.extractor.extract(r)) for r in readings],
            dtype=np.float64,
        )

    def evaluate(self, readings: Sequence[LabeledReading]) -> EvaluationResult:
        """Predict and compare against the readings' labels."""
        predictions = self.predict(readings)
        return evaluate(labels_of(readings), predictions)

    # =========================================================================
    # End-to-end
    # =========================================================================

    def fit_from_file(self, train_path: Optional[PathLike] = None) -> RandomForestModel:
        """Load, pre-process and train on a training CSV."""
        path = train_path or self.config.train_path
        readings = load_training_data(path)
        self.prepare_training(readings)
        return self.train(readings)

    def evaluate_file(
        self,
        test_path: PathLike,
        answer_path: PathLike,
    ) -> ExperimentResult:
        """
        Evaluate one test set, capturing dataset-level failures.

        Args:
            test_path: Test CSV
            answer_path: Answer CSV

        Returns:
            ExperimentResult with either an evaluation or an error
        """
        start = time.perf_counter()
        result = ExperimentResult(
            test_path=str(test_path),
            n_train=self._n_train,
            feature_names=self.plan.feature_names,
        )

        try:
            readings = load_test_data(test_path, answer_path)
            self.prepare_test(readings)
            result.evaluation = self.evaluate(readings)
        except SensorError as e:
            logger.error(f"Evaluation of {test_path} failed: {e}")
            result.error = str(e)

        result.duration_s = time.perf_counter() - start
        return result

    def run(self) -> ExperimentResult:
        """
        Train on the configured training set and evaluate the test set.

        Returns:
            ExperimentResult; ``error`` is set if training or evaluation failed
        """
        return self.run_many([(self.config.test_path, self.config.answer_path)])[0]

    def run_many(self, test_sets: Sequence[Tuple[PathLike, PathLike]]) -> List[ExperimentResult]:
        """
        Train once, then evaluate several (test, answer) pairs.

        A failing test set is reported and skipped; the remaining sets are
        still evaluated. If training fails every result carries that error.
        """
        start = time.perf_counter()
        try:
            self.fit_from_file()
        except SensorError as e:
            logger.error(f"Training on {self.config.train_path} failed: {e}")
            return [
                ExperimentResult(
                    test_path=str(test_path),
                    error=f"training failed: {e}",
                    feature_names=self.plan.feature_names,
                    duration_s=time.perf_counter() - start,
                )
                for test_path, _ in test_sets
            ]

        return [self.evaluate_file(test_path, answer_path) for test_path, answer_path in test_sets]


def run_experiment(config_path: Optional[PathLike] = None) -> ExperimentResult:
    """
    Run one experiment from a configuration file.

    Args:
        config_path: YAML configuration (None = reference defaults)

    Returns:
        ExperimentResult
    """
    config = ExperimentConfig.from_yaml(config_path) if config_path else ExperimentConfig()
    return ExperimentRunner(config).run()
