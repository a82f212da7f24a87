"""
Classifier Module
=================

Random-forest classification of feature vectors and accuracy reporting.

The forest itself is scikit-learn's RandomForestClassifier; this module
only fixes its configuration, maps between float class ids and the
estimator, and summarizes predictions against expected labels.

Author: Sensor Classifier Project Team
License: MIT
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
from sklearn.ensemble import RandomForestClassifier
from sklearn.metrics import accuracy_score, confusion_matrix

from .errors import DimensionMismatchError

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class ClassifierConfig:
    """
    Random-forest configuration.

    Attributes:
        n_estimators: Number of trees
        max_depth: Maximum tree depth (None = grow until pure)
        random_state: Seed for bootstrap sampling and feature selection
        n_jobs: Parallel jobs for fit/predict (None = 1, -1 = all cores)
    """
    n_estimators: int = 50
    max_depth: Optional[int] = None
    random_state: Optional[int] = 42
    n_jobs: Optional[int] = None

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.n_estimators < 1:
            raise ValueError(f"n_estimators must be >= 1, got {self.n_estimators}")
        if self.max_depth is not None and self.max_depth < 1:
            raise ValueError(f"max_depth must be >= 1, got {self.max_depth}")


# =============================================================================
# Model
# =============================================================================

class RandomForestModel:
    """
    Random-forest classifier over a fixed feature layout.

    Example:
        >>> model = RandomForestModel(ClassifierConfig(n_estimators=50))
        >>> model.fit(X_train, y_train)
        >>> label = model.predict(x)
    """

    def __init__(self, config: Optional[ClassifierConfig] = None) -> None:
        """
        Initialize model.

        Args:
            config: Forest configuration (default: 50 trees)
        """
        self.config = config or ClassifierConfig()
        self._forest = RandomForestClassifier(
            n_estimators=self.config.n_estimators,
            max_depth=self.config.max_depth,
            random_state=self.config.random_state,
            n_jobs=self.config.n_jobs,
        )
        self._n_features: Optional[int] = None

    def fit(self, X: np.ndarray, y: np.ndarray) -> 'RandomForestModel':
        """
        Train on a feature matrix.

        Args:
            X: Features, shape (n_readings, n_features)
            y: Labels, shape (n_readings,)

        Returns:
            self (for method chaining)
        """
        X = np.asarray(X, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        if X.ndim != 2:
            raise ValueError(f"X must be 2-D, got shape {X.shape}")
        if X.shape[0] != y.shape[0]:
            raise DimensionMismatchError(
                f"{X.shape[0]} feature rows but {y.shape[0]} labels"
            )
        if X.shape[0] == 0:
            raise ValueError("Cannot fit on an empty training set")

        self._forest.fit(X, y)
        self._n_features = X.shape[1]

        logger.info(
            f"Trained random forest: {self.config.n_estimators} trees, "
            f"{X.shape[0]} readings, {X.shape[1]} features, "
            f"{len(self._forest.classes_)} classes"
        )
        return self

    def _check_features(self, X: np.ndarray) -> None:
        if self._n_features is None:
            raise RuntimeError("Model must be fitted before predict")
        if X.shape[-1] != self._n_features:
            raise DimensionMismatchError(
                f"Expected {self._n_features} features, got {X.shape[-1]}"
            )

    def predict(self, features: np.ndarray) -> float:
        """
        Predict the label of one feature vector.

        Args:
            features: Vector, shape (n_features,)

        Returns:
            Predicted class id
        """
        x = np.asarray(features, dtype=np.float64)
        if x.ndim != 1:
            raise ValueError(f"features must be 1-D, got shape {x.shape}")
        self._check_features(x)
        return float(self._forest.predict(x[np.newaxis, :])[0])

    def predict_batch(self, X: np.ndarray) -> np.ndarray:
        """Predict labels for every row of a feature matrix."""
        X = np.asarray(X, dtype=np.float64)
        if X.ndim != 2:
            raise ValueError(f"X must be 2-D, got shape {X.shape}")
        self._check_features(X)
        return self._forest.predict(X).astype(np.float64)

    @property
    def classes(self) -> np.ndarray:
        """Class ids seen during training."""
        if self._n_features is None:
            raise RuntimeError("Model is not fitted")
        return self._forest.classes_

    @property
    def feature_importances(self) -> np.ndarray:
        """Impurity-based importance per feature column."""
        if self._n_features is None:
            raise RuntimeError("Model is not fitted")
        return self._forest.feature_importances_

    @property
    def is_fitted(self) -> bool:
        return self._n_features is not None


# =============================================================================
# Evaluation
# =============================================================================

@dataclass
class EvaluationResult:
    """
    Prediction quality on a labeled set.

    Attributes:
        accuracy: Percentage of correct predictions (0-100)
        predictions: Predicted labels, in reading order
        expected: True labels, in reading order
        classes: Label values indexing the confusion matrix
        confusion: Confusion matrix (rows = true, cols = predicted)
    """
    accuracy: float
    predictions: np.ndarray
    expected: np.ndarray
    classes: List[float] = field(default_factory=list)
    confusion: Optional[np.ndarray] = None

    @property
    def n_correct(self) -> int:
        return int(np.sum(self.predictions == self.expected))

    @property
    def n_total(self) -> int:
        return int(self.expected.shape[0])

    def pairs(self) -> List[Tuple[float, float]]:
        """(predicted, expected) per reading."""
        return [(float(p), float(t)) for p, t in zip(self.predictions, self.expected)]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "accuracy_percent": self.accuracy,
            "correct": self.n_correct,
            "total": self.n_total,
            "classes": list(self.classes),
            "confusion_matrix": self.confusion.tolist() if self.confusion is not None else None,
        }


def evaluate(expected: np.ndarray, predictions: np.ndarray) -> EvaluationResult:
    """
    Compare predictions to expected labels.

    Args:
        expected: True labels
        predictions: Predicted labels, same length

    Returns:
        EvaluationResult with accuracy in percent
    """
    expected = np.asarray(expected, dtype=np.float64)
    predictions = np.asarray(predictions, dtype=np.float64)
    if expected.shape != predictions.shape:
        raise DimensionMismatchError(
            f"{predictions.shape[0]} predictions for {expected.shape[0]} labels"
        )
    if expected.size == 0:
        return EvaluationResult(accuracy=0.0, predictions=predictions, expected=expected)

    classes = sorted(set(expected.tolist()) | set(predictions.tolist()))
    accuracy = float(accuracy_score(expected, predictions)) * 100.0
    confusion = confusion_matrix(expected, predictions, labels=classes)

    logger.info(f"Accuracy {accuracy:.2f}% ({int(np.sum(expected == predictions))}/{expected.size})")
    return EvaluationResult(
        accuracy=accuracy,
        predictions=predictions,
        expected=expected,
        classes=classes,
        confusion=confusion,
    )
