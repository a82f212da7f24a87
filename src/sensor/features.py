"""
Feature Extraction Module
=========================

Turns raw sensor readings into fixed-length feature vectors by routing each
reading through a bank of band filters and reducing every filtered view
with a statistic.

Key Classes:
    1. FeaturePlan: Ordered (statistic, band) pairs defining vector layout
    2. FeatureExtractor: Applies a plan to one reading or a whole dataset
    3. StateMode: How filter history is handled between readings

Vector Layout:
    Position i of every vector corresponds to plan entry i. The same plan
    must be used for training and test extraction, otherwise the matrix
    columns are not comparable.

Filter State:
    Filters carry history between calls. In ISOLATED mode each band is
    filtered once per reading from zero history and the filtered view is
    shared by all entries of that band, so a reading's features do not
    depend on what was processed before it. SHARED mode keeps one set of
    long-lived filters and re-runs the reading through its band filter for
    every entry without resetting, which makes output depend on processing
    order. SHARED reproduces the numbers of earlier runs that relied on
    that behaviour.

Author: Sensor Classifier Project Team
License: MIT
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import numpy as np

from .errors import ConfigurationError, DimensionMismatchError
from .filters import DigitalFilter, FilterBank
from .statistics import DegeneratePolicy, StatisticKind, compute_statistic

logger = logging.getLogger(__name__)


# =============================================================================
# Enumerations and Constants
# =============================================================================

class StateMode(Enum):
    """Filter-state handling between readings."""
    ISOLATED = auto()   # Fresh filter history for every reading
    SHARED = auto()     # History carried across entries and readings

    @classmethod
    def parse(cls, value: Union[str, 'StateMode']) -> 'StateMode':
        """Look up a mode by (case-insensitive) name."""
        if isinstance(value, cls):
            return value
        try:
            return cls[str(value).strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown state mode: {value}") from None


# Statistics computed on every band of the reference plan
REFERENCE_STATISTICS = (
    StatisticKind.CREST_FACTOR,
    StatisticKind.SKEW,
    StatisticKind.KURTOSIS,
    StatisticKind.STD,
    StatisticKind.VAR,
)


# =============================================================================
# Feature Plan
# =============================================================================

@dataclass(frozen=True)
class FeaturePlanEntry:
    """
    One output column: a statistic computed on one band.

    Attributes:
        statistic: Reduction applied to the filtered view
        band: Name of the band in the plan's filter bank
    """
    statistic: StatisticKind
    band: str

    @property
    def name(self) -> str:
        """Column name, e.g. ``band_1_crest_factor``."""
        return f"{self.band}_{self.statistic.name.lower()}"


@dataclass
class FeaturePlan:
    """
    Ordered feature layout over a filter bank.

    Attributes:
        bank: Named band filters referenced by the entries
        entries: Output columns in order
    """
    bank: FilterBank
    entries: List[FeaturePlanEntry] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Validate that every entry references a known band."""
        for entry in self.entries:
            self._check_entry(entry)

    def _check_entry(self, entry: FeaturePlanEntry) -> None:
        if entry.band not in self.bank:
            raise ConfigurationError(
                f"Plan entry '{entry.name}' references unknown band '{entry.band}'"
            )

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    def __getitem__(self, index: int) -> FeaturePlanEntry:
        return self.entries[index]

    def add(self, statistic: Union[str, StatisticKind], band: str) -> 'FeaturePlan':
        """Append an entry; returns self for chaining."""
        entry = FeaturePlanEntry(StatisticKind.parse(statistic), band)
        self._check_entry(entry)
        self.entries.append(entry)
        return self

    @property
    def feature_names(self) -> List[str]:
        """Column names in vector order."""
        return [entry.name for entry in self.entries]

    @property
    def bands_used(self) -> List[str]:
        """Bands referenced by at least one entry, in first-use order."""
        return list(dict.fromkeys(entry.band for entry in self.entries))

    @classmethod
    def from_grid(
        cls,
        bank: FilterBank,
        statistics: Iterable[Union[str, StatisticKind]],
        bands: Optional[Sequence[str]] = None,
    ) -> 'FeaturePlan':
        """
        Every statistic on every band, band-major.

        Args:
            bank: Filter bank providing the bands
            statistics: Statistics computed per band, in column order
            bands: Subset/order of bands (default: all bank bands)

        Returns:
            Plan with len(bands) * len(statistics) entries
        """
        kinds = [StatisticKind.parse(s) for s in statistics]
        band_names = list(bands) if bands is not None else list(bank.names)
        entries = [
            FeaturePlanEntry(kind, band)
            for band in band_names
            for kind in kinds
        ]
        return cls(bank=bank, entries=entries)

    @classmethod
    def reference(cls, bank: Optional[FilterBank] = None) -> 'FeaturePlan':
        """
        Reference 25-column plan.

        crest factor, skew, kurtosis, std and var on each of the five
        reference bands.
        """
        return cls.from_grid(bank or FilterBank.reference(), REFERENCE_STATISTICS)


# =============================================================================
# Feature Extractor
# =============================================================================

def _reading_samples(reading: Any) -> np.ndarray:
    """Accept a Reading-like object (``.data``) or a plain sample array."""
    data = getattr(reading, 'data', reading)
    samples = np.asarray(data, dtype=np.float64)
    if samples.ndim != 1:
        raise ValueError(f"Reading must be 1-D, got shape {samples.shape}")
    return samples


class FeatureExtractor:
    """
    Applies a feature plan to readings.

    Holds one running filter per band of the plan's bank. How their history
    is treated between readings is selected by ``state_mode``.

    Example:
        >>> plan = FeaturePlan.reference()
        >>> extractor = FeatureExtractor(plan)
        >>> X_train = extractor.transform(train_readings)
        >>> X_test = extractor.transform(test_readings)
    """

    def __init__(
        self,
        plan: FeaturePlan,
        state_mode: StateMode = StateMode.ISOLATED,
        degenerate_policy: DegeneratePolicy = DegeneratePolicy.RAISE,
    ) -> None:
        """
        Initialize extractor.

        Args:
            plan: Feature layout
            state_mode: Filter-state handling between readings
            degenerate_policy: Handling of undefined statistics
        """
        if len(plan) == 0:
            raise ConfigurationError("Feature plan has no entries")

        self.plan = plan
        self.state_mode = state_mode
        self.degenerate_policy = degenerate_policy
        self._filters: Dict[str, DigitalFilter] = plan.bank.instantiate()
        self._n_extracted = 0

        logger.info(
            f"FeatureExtractor initialized: {len(plan)} features over "
            f"{len(plan.bands_used)} bands, state_mode={state_mode.name}"
        )

    def extract(self, reading: Any) -> np.ndarray:
        """
        Compute the feature vector of one reading.

        Args:
            reading: Reading (``.data``) or 1-D sample array

        Returns:
            Feature vector, shape (len(plan),)

        Raises:
            UndefinedStatisticError: Degenerate filtered view under
                DegeneratePolicy.RAISE
            DimensionMismatchError: Vector length differs from the plan
        """
        samples = _reading_samples(reading)

        if self.state_mode == StateMode.ISOLATED:
            values = self._extract_isolated(samples)
        else:
            values = self._extract_shared(samples)

        features = np.asarray(values, dtype=np.float64)
        if features.shape != (len(self.plan),):
            raise DimensionMismatchError(
                f"Produced {features.shape[0]} features for a plan of length {len(self.plan)}"
            )

        self._n_extracted += 1
        return features

    def _filter_for(self, band: str) -> DigitalFilter:
        """Running filter of a band; bands added to the bank later are built on first use."""
        filt = self._filters.get(band)
        if filt is None:
            if band not in self.plan.bank:
                raise ConfigurationError(f"Band '{band}' is not defined in the filter bank")
            filt = DigitalFilter(self.plan.bank[band])
            self._filters[band] = filt
            logger.debug(f"Created filter for band '{band}' added after initialization")
        return filt

    def _extract_isolated(self, samples: np.ndarray) -> List[float]:
        views: Dict[str, np.ndarray] = {}
        values = []
        for entry in self.plan:
            view = views.get(entry.band)
            if view is None:
                filt = self._filter_for(entry.band)
                filt.reset()
                view = filt.process(samples)
                filt.reset()
                views[entry.band] = view
            values.append(compute_statistic(entry.statistic, view, self.degenerate_policy))
        return values

    def _extract_shared(self, samples: np.ndarray) -> List[float]:
        values = []
        for entry in self.plan:
            view = self._filter_for(entry.band).process(samples)
            values.append(compute_statistic(entry.statistic, view, self.degenerate_policy))
        return values

    def transform(self, readings: Sequence[Any]) -> np.ndarray:
        """Feature matrix for a sequence of readings (see build_feature_matrix)."""
        return build_feature_matrix(readings, self)

    def reset(self) -> None:
        """Restore fresh history on every band filter."""
        for filt in self._filters.values():
            filt.reset()
        logger.debug("Filter state reset")

    @property
    def feature_names(self) -> List[str]:
        """Names of all features."""
        return self.plan.feature_names

    @property
    def n_features(self) -> int:
        """Number of features produced."""
        return len(self.plan)

    @property
    def n_extracted(self) -> int:
        """Readings processed since construction."""
        return self._n_extracted


# =============================================================================
# Dataset Feature Matrix
# =============================================================================

def build_feature_matrix(readings: Sequence[Any], extractor: FeatureExtractor) -> np.ndarray:
    """
    Extract features for every reading, preserving row order.

    Readings are processed sequentially; in SHARED mode the filter history
    flows from row i into row i + 1.

    Args:
        readings: Ordered readings
        extractor: Configured extractor

    Returns:
        Feature matrix, shape (len(readings), len(plan)); row i belongs
        to readings[i]
    """
    n_features = extractor.n_features
    matrix = np.zeros((len(readings), n_features), dtype=np.float64)

    for row, reading in enumerate(readings):
        vector = extractor.extract(reading)
        if vector.shape[0] != n_features:
            raise DimensionMismatchError(
                f"Row {row}: expected {n_features} features, got {vector.shape[0]}"
            )
        matrix[row] = vector

    logger.info(
        f"Built feature matrix {matrix.shape} "
        f"({extractor.n_extracted} readings extracted by this extractor)"
    )
    return matrix
