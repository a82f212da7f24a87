"""
Dataset Module
==============

Sensor readings, their CSV ingestion and the amplitude pre-processing
applied before feature extraction.

CSV Layout:
    Each data row is ``id, s_0, s_1, ..., s_{n-1}, label``. Any line that
    contains the text ``id`` is a header and is skipped. Test sets may
    carry their labels in a separate answer file whose rows are aligned by
    position; only the last column of an answer row is used.

Pre-processing:
    - scale(a, b): x <- a * x + b
    - normalize(): x <- x / ((max - min) / 2), i.e. unit half peak-to-peak
    - rescale_randomly(): random gain/offset applied to test readings so
      the classifier is evaluated on amplitude-shifted captures

Author: Sensor Classifier Project Team
License: MIT
"""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np

from .errors import DatasetError, SizeMismatchError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# Lines containing this token are treated as headers
HEADER_TOKEN = 'id'


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class Reading:
    """
    One fixed-length time-domain capture.

    Attributes:
        data: Samples, converted to float64
    """
    data: np.ndarray

    def __post_init__(self) -> None:
        """Ensure data is a non-empty 1-D float array owned by the reading."""
        self.data = np.array(self.data, dtype=np.float64)
        if self.data.ndim != 1:
            raise ValueError(f"Reading data must be 1-D, got shape {self.data.shape}")
        if self.data.size == 0:
            raise ValueError("Reading must contain at least one sample")

    @property
    def n_samples(self) -> int:
        """Number of samples."""
        return int(self.data.size)

    def scale(self, a: float, b: float = 0.0) -> None:
        """Apply ``a * x + b`` in place."""
        self.data *= a
        self.data += b

    def normalize(self) -> None:
        """Divide in place by half the peak-to-peak amplitude."""
        half_range = (np.max(self.data) - np.min(self.data)) / 2.0
        if half_range == 0:
            raise DatasetError("Cannot normalize a constant reading")
        self.scale(1.0 / half_range, 0.0)


@dataclass
class LabeledReading(Reading):
    """
    Reading with its target class.

    The label can be replaced once, when a test set's labels arrive from a
    separate answer file.
    """
    label: float = float('nan')
    _relabeled: bool = field(default=False, init=False, repr=False)

    def relabel(self, label: float) -> None:
        """Overwrite the label with the value from an answer file."""
        if self._relabeled:
            raise DatasetError("Label has already been replaced from an answer file")
        self.label = float(label)
        self._relabeled = True


# =============================================================================
# Pre-processing
# =============================================================================

@dataclass
class AugmentationConfig:
    """
    Random amplitude perturbation of test readings.

    Gain is drawn from [gain_low, gain_high) and offset from
    [offset_low, offset_high) independently for each reading.

    Attributes:
        enabled: Whether to perturb test readings
        gain_low: Lower bound of the gain
        gain_high: Upper bound of the gain
        offset_low: Lower bound of the offset
        offset_high: Upper bound of the offset
        seed: Random seed (None = nondeterministic)
    """
    enabled: bool = True
    gain_low: float = 1.0
    gain_high: float = 2.0
    offset_low: float = 0.0
    offset_high: float = 1.0
    seed: Optional[int] = 42

    def __post_init__(self) -> None:
        """Validate ranges."""
        if self.gain_low >= self.gain_high:
            raise ValueError(f"gain_low ({self.gain_low}) must be < gain_high ({self.gain_high})")
        if self.offset_low > self.offset_high:
            raise ValueError(
                f"offset_low ({self.offset_low}) must be <= offset_high ({self.offset_high})"
            )
        if self.gain_low <= 0 < self.gain_high:
            raise ValueError("gain range must not include zero")


def normalize_all(readings: Sequence[Reading]) -> None:
    """Normalize every reading in place."""
    for reading in readings:
        reading.normalize()


def rescale_randomly(
    readings: Sequence[Reading],
    config: AugmentationConfig,
    rng: Optional[np.random.Generator] = None,
) -> List[Tuple[float, float]]:
    """
    Apply a random gain and offset to each reading in place.

    Args:
        readings: Readings to perturb
        config: Gain/offset ranges
        rng: Random generator (default: seeded from config.seed)

    Returns:
        (gain, offset) applied to each reading, in order
    """
    if rng is None:
        rng = np.random.default_rng(config.seed)

    applied = []
    for reading in readings:
        gain = float(rng.uniform(config.gain_low, config.gain_high))
        offset = float(rng.uniform(config.offset_low, config.offset_high))
        reading.scale(gain, offset)
        applied.append((gain, offset))

    logger.debug(f"Rescaled {len(applied)} readings")
    return applied


# =============================================================================
# CSV Ingestion
# =============================================================================

def _iter_rows(path: Path) -> Iterator[Tuple[int, List[float]]]:
    """Yield (line number, parsed values) for every non-header row."""
    try:
        f = path.open('r', newline='')
    except OSError as e:
        raise DatasetError(f"Cannot open {path}: {e}") from e

    with f:
        for line_no, row in enumerate(csv.reader(f), start=1):
            if not row or all(not cell.strip() for cell in row):
                continue
            if any(HEADER_TOKEN in cell for cell in row):
                continue
            try:
                values = [float(cell) for cell in row]
            except ValueError as e:
                raise DatasetError(f"{path}:{line_no}: {e}") from e
            yield line_no, values


def _row_to_reading(path: Path, line_no: int, values: List[float]) -> LabeledReading:
    if len(values) < 3:
        raise DatasetError(
            f"{path}:{line_no}: expected id, at least one sample and a label, "
            f"got {len(values)} columns"
        )
    return LabeledReading(data=np.asarray(values[1:-1]), label=values[-1])


def load_training_data(path: PathLike) -> List[LabeledReading]:
    """
    Load labeled readings from a CSV file.

    Args:
        path: CSV with ``id, samples..., label`` rows

    Returns:
        Readings in file order

    Raises:
        DatasetError: Unreadable file or malformed row
    """
    path = Path(path)
    readings = [_row_to_reading(path, line_no, values) for line_no, values in _iter_rows(path)]
    logger.info(f"Read {len(readings)} lines from {path}")
    return readings


def load_answer_labels(path: PathLike) -> List[float]:
    """Last-column labels of an answer file, in file order."""
    path = Path(path)
    labels = []
    for line_no, values in _iter_rows(path):
        if not values:
            raise DatasetError(f"{path}:{line_no}: empty answer row")
        labels.append(values[-1])
    return labels


def load_test_data(data_path: PathLike, answer_path: PathLike) -> List[LabeledReading]:
    """
    Load test readings and take their labels from an answer file.

    Args:
        data_path: CSV with ``id, samples..., label`` rows
        answer_path: CSV whose last column holds the true labels

    Returns:
        Readings in file order, labels replaced from the answer file

    Raises:
        SizeMismatchError: Answer count differs from row count
        DatasetError: Unreadable file or malformed row
    """
    data_path = Path(data_path)
    readings = [
        _row_to_reading(data_path, line_no, values)
        for line_no, values in _iter_rows(data_path)
    ]
    labels = load_answer_labels(answer_path)

    if len(labels) != len(readings):
        raise SizeMismatchError(len(readings), len(labels))

    for reading, label in zip(readings, labels):
        reading.relabel(label)

    logger.info(f"Read {len(readings)} lines from {data_path}")
    return readings


def labels_of(readings: Sequence[LabeledReading]) -> np.ndarray:
    """Label vector aligned with the readings."""
    return np.asarray([r.label for r in readings], dtype=np.float64)
