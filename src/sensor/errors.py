"""
Error Types
===========

Typed exceptions raised by the feature pipeline and the dataset loaders.
Callers at the top level catch ``SensorError`` to report a failed dataset
and keep processing the remaining ones.

Author: Sensor Classifier Project Team
License: MIT
"""

from __future__ import annotations


class SensorError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(SensorError, ValueError):
    """Invalid filter or experiment configuration, raised at creation time."""


class DimensionMismatchError(SensorError):
    """Produced feature vector does not match the feature plan length."""


class UndefinedStatisticError(SensorError):
    """A statistic is undefined for the given samples (empty or degenerate)."""


class DatasetError(SensorError):
    """A dataset file could not be read or parsed."""


class SizeMismatchError(DatasetError):
    """Answer-label count differs from the number of data rows."""

    def __init__(self, n_rows: int, n_labels: int) -> None:
        super().__init__(
            f"Test data size ({n_rows}) does not match result size ({n_labels})"
        )
        self.n_rows = n_rows
        self.n_labels = n_labels
