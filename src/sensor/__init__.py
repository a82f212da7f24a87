"""
Sensor Reading Classification Module
====================================

Classifies fixed-length sensor captures from statistics of several
frequency-band views of each signal.

Pipeline Overview:

    CSV → Readings → Normalize → Band Filters → Statistics → Random Forest

    1. Dataset: CSV ingestion, scaling and normalization
    2. Filters: Lowpass/bandpass/highpass filter bank (FIR or IIR)
    3. Statistics: mean, std, var, min, max, median, skew, kurtosis,
       crest factor, impulse factor, entropy
    4. Features: Ordered (statistic, band) plan → feature vectors/matrices
    5. Classifier: scikit-learn random forest + accuracy report

Key Classes:
    - FilterSpec / FilterBank: Band configuration
    - FeaturePlan: Feature vector layout
    - FeatureExtractor: Applies a plan to readings
    - RandomForestModel: Classifier wrapper
    - ExperimentRunner: End-to-end train/evaluate orchestration

Quick Start:
    >>> from src.sensor import ExperimentConfig, ExperimentRunner
    >>>
    >>> config = ExperimentConfig(train_path="train.csv",
    ...                           test_path="test_data.csv",
    ...                           answer_path="result.csv")
    >>> result = ExperimentRunner(config).run()
    >>> print(result.evaluation.accuracy)

Author: Sensor Classifier Project Team
License: MIT
"""

# Errors
from .errors import (
    SensorError,
    ConfigurationError,
    DimensionMismatchError,
    UndefinedStatisticError,
    DatasetError,
    SizeMismatchError,
)

# Filters
from .filters import (
    FilterType,
    ImpulseResponse,
    FilterSpec,
    DigitalFilter,
    FilterBank,
)

# Statistics
from .statistics import (
    StatisticKind,
    DegeneratePolicy,
    compute_statistic,
)

# Features
from .features import (
    StateMode,
    FeaturePlanEntry,
    FeaturePlan,
    FeatureExtractor,
    build_feature_matrix,
)

# Dataset
from .dataset import (
    Reading,
    LabeledReading,
    AugmentationConfig,
    load_training_data,
    load_test_data,
)

# Classifier
from .classifier import (
    ClassifierConfig,
    RandomForestModel,
    EvaluationResult,
    evaluate,
)

# Pipeline
from .pipeline import (
    ExperimentConfig,
    ExperimentResult,
    ExperimentRunner,
    run_experiment,
)

# Version
__version__ = "0.1.0"

# Public API
__all__ = [
    # Errors
    "SensorError",
    "ConfigurationError",
    "DimensionMismatchError",
    "UndefinedStatisticError",
    "DatasetError",
    "SizeMismatchError",
    # Filters
    "FilterType",
    "ImpulseResponse",
    "FilterSpec",
    "DigitalFilter",
    "FilterBank",
    # Statistics
    "StatisticKind",
    "DegeneratePolicy",
    "compute_statistic",
    # Features
    "StateMode",
    "FeaturePlanEntry",
    "FeaturePlan",
    "FeatureExtractor",
    "build_feature_matrix",
    # Dataset
    "Reading",
    "LabeledReading",
    "AugmentationConfig",
    "load_training_data",
    "load_test_data",
    # Classifier
    "ClassifierConfig",
    "RandomForestModel",
    "EvaluationResult",
    "evaluate",
    # Pipeline
    "ExperimentConfig",
    "ExperimentResult",
    "ExperimentRunner",
    "run_experiment",
]
