"""
Statistical Feature Functions
=============================

Scalar reductions computed on one (filtered) view of a reading. Every
function takes a non-empty 1-D array of samples and returns a float.

Definitions:
    mean            arithmetic mean
    std / var       sample standard deviation / variance (ddof = 1)
    min / max       extremal value
    median          middle value (mean of the two middles for even counts)
    skew            bias-corrected third standardized moment
    kurtosis        bias-corrected excess fourth standardized moment
    crest_factor    ((max - min) / 2) / std
    impulse_factor  max / mean(|x|)
    entropy         Shannon entropy (nats) of the sample-value histogram

Degenerate Input:
    Empty input is always an error. A constant signal leaves std-based
    statistics undefined (0/0); what happens then is selected by
    DegeneratePolicy.

Author: Sensor Classifier Project Team
License: MIT
"""

from __future__ import annotations

import logging
import warnings
from enum import Enum, auto
from typing import Callable, Dict, Union

import numpy as np
from numpy.typing import ArrayLike
from scipy.stats import entropy as shannon_entropy
from scipy.stats import kurtosis as scipy_kurtosis
from scipy.stats import skew as scipy_skew

from .errors import UndefinedStatisticError

logger = logging.getLogger(__name__)


# =============================================================================
# Enumerations
# =============================================================================

class StatisticKind(Enum):
    """Closed set of statistics available to a feature plan."""
    MEAN = auto()
    STD = auto()
    VAR = auto()
    MIN = auto()
    MAX = auto()
    MEDIAN = auto()
    SKEW = auto()
    KURTOSIS = auto()
    CREST_FACTOR = auto()
    IMPULSE_FACTOR = auto()
    ENTROPY = auto()

    @classmethod
    def parse(cls, value: Union[str, 'StatisticKind']) -> 'StatisticKind':
        """Look up a kind by (case-insensitive) name."""
        if isinstance(value, cls):
            return value
        key = str(value).strip().upper().replace('-', '_')
        try:
            return cls[key]
        except KeyError:
            valid = ', '.join(k.name.lower() for k in cls)
            raise ValueError(f"Unknown statistic '{value}' (expected one of: {valid})") from None


class DegeneratePolicy(Enum):
    """What to do when a statistic evaluates to a non-finite value."""
    RAISE = auto()       # Fail fast with UndefinedStatisticError
    PROPAGATE = auto()   # Return NaN and let the caller deal with it


# Histogram resolution for the entropy statistic
ENTROPY_BINS = 32


# =============================================================================
# Statistic Functions
# =============================================================================

def _as_samples(samples: ArrayLike) -> np.ndarray:
    """Convert input to a non-empty 1-D float64 array."""
    arr = np.asarray(samples, dtype=np.float64)
    if arr.ndim != 1:
        raise ValueError(f"samples must be 1-D, got shape {arr.shape}")
    if arr.size == 0:
        raise UndefinedStatisticError("samples must contain at least one value")
    return arr


def mean(samples: ArrayLike) -> float:
    return float(np.mean(_as_samples(samples)))


def std(samples: ArrayLike) -> float:
    """Sample standard deviation (N - 1 denominator)."""
    return float(np.std(_as_samples(samples), ddof=1))


def var(samples: ArrayLike) -> float:
    """Sample variance (N - 1 denominator)."""
    return float(np.var(_as_samples(samples), ddof=1))


def minimum(samples: ArrayLike) -> float:
    return float(np.min(_as_samples(samples)))


def maximum(samples: ArrayLike) -> float:
    return float(np.max(_as_samples(samples)))


def median(samples: ArrayLike) -> float:
    return float(np.median(_as_samples(samples)))


def skew(samples: ArrayLike) -> float:
    """Bias-corrected skewness; NaN for constant input."""
    return float(scipy_skew(_as_samples(samples), bias=False))


def kurtosis(samples: ArrayLike) -> float:
    """Bias-corrected excess kurtosis (normal distribution -> 0)."""
    return float(scipy_kurtosis(_as_samples(samples), fisher=True, bias=False))


def crest_factor(samples: ArrayLike) -> float:
    """
    Half peak-to-peak amplitude over standard deviation.

    Indicates how "peaky" a signal is: a sine wave gives sqrt(2).
    """
    arr = _as_samples(samples)
    half_range = (np.max(arr) - np.min(arr)) / 2.0
    return float(half_range / np.std(arr, ddof=1))


def impulse_factor(samples: ArrayLike) -> float:
    """Maximum over mean absolute value."""
    arr = _as_samples(samples)
    return float(np.max(arr) / np.mean(np.abs(arr)))


def entropy(samples: ArrayLike, bins: int = ENTROPY_BINS) -> float:
    """
    Shannon entropy of the distribution of sample values.

    The value range is split into ``bins`` equal-width bins and the entropy
    of the resulting occupancy distribution is returned in nats. A constant
    signal falls into a single bin and has zero entropy.

    Args:
        samples: 1-D samples
        bins: Number of histogram bins

    Returns:
        Entropy in [0, log(bins)]
    """
    arr = _as_samples(samples)
    counts, _ = np.histogram(arr, bins=bins)
    return float(shannon_entropy(counts))


STATISTIC_FUNCTIONS: Dict[StatisticKind, Callable[[ArrayLike], float]] = {
    StatisticKind.MEAN: mean,
    StatisticKind.STD: std,
    StatisticKind.VAR: var,
    StatisticKind.MIN: minimum,
    StatisticKind.MAX: maximum,
    StatisticKind.MEDIAN: median,
    StatisticKind.SKEW: skew,
    StatisticKind.KURTOSIS: kurtosis,
    StatisticKind.CREST_FACTOR: crest_factor,
    StatisticKind.IMPULSE_FACTOR: impulse_factor,
    StatisticKind.ENTROPY: entropy,
}

_unmapped = set(StatisticKind) - set(STATISTIC_FUNCTIONS)
if _unmapped:
    raise ImportError(f"Statistics without implementation: {sorted(k.name for k in _unmapped)}")


# =============================================================================
# Dispatch
# =============================================================================

def compute_statistic(
    kind: StatisticKind,
    samples: ArrayLike,
    policy: DegeneratePolicy = DegeneratePolicy.RAISE,
) -> float:
    """
    Evaluate one statistic with the given degenerate-input policy.

    Args:
        kind: Statistic to compute
        samples: Non-empty 1-D samples
        policy: Handling of non-finite results

    Returns:
        Statistic value (NaN only under DegeneratePolicy.PROPAGATE)

    Raises:
        UndefinedStatisticError: Empty input, or a non-finite result
            under DegeneratePolicy.RAISE
    """
    func = STATISTIC_FUNCTIONS[kind]

    # 0/0 and precision-loss warnings are turned into policy decisions below
    with warnings.catch_warnings(), np.errstate(divide='ignore', invalid='ignore'):
        warnings.simplefilter('ignore', RuntimeWarning)
        value = func(samples)

    if np.isfinite(value):
        return value

    if policy == DegeneratePolicy.RAISE:
        raise UndefinedStatisticError(
            f"{kind.name.lower()} is undefined for this signal (got {value})"
        )

    logger.debug(f"{kind.name.lower()} evaluated to {value}; propagating NaN")
    return float('nan')
