"""
Digital Filter Bank Module
==========================

Frequency-band filters used to derive several views of one sensor reading
before statistics are computed on them.

Components:
    - FilterSpec: Immutable recipe (type, impulse response, rate, cutoffs)
    - DigitalFilter: Running filter built from a spec, carries history
    - FilterBank: Ordered, named collection of band specs

Mathematical Background:
    1. Finite impulse response: windowed-sinc design (Hamming window),
       y[n] = Σ_k h[k] x[n-k], with order + 1 taps
    2. Infinite impulse response: Butterworth design,
       H(s) = 1 / sqrt(1 + (s/ωc)^2n), realised as second-order sections

Filter State:
    A DigitalFilter keeps its delay-line history between calls to
    process(), so two consecutive calls behave like one call on the
    concatenated input. Fresh state is an all-zero history. Callers that
    need reading-independent output either reset() the filter or build a
    new one per reading (see features.StateMode).

Author: Sensor Classifier Project Team
License: MIT
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, Iterator, Optional, Tuple

import numpy as np
from numpy.typing import ArrayLike
from scipy import signal

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


# =============================================================================
# Enumerations and Constants
# =============================================================================

class FilterType(Enum):
    """Types of frequency filters available."""
    LOWPASS = auto()
    HIGHPASS = auto()
    BANDPASS = auto()


class ImpulseResponse(Enum):
    """Impulse response family of the designed filter."""
    FINITE = auto()      # FIR, linear phase
    INFINITE = auto()    # IIR, Butterworth


# Default orders when a spec leaves ``order`` unset
DEFAULT_FIR_ORDER = 64
DEFAULT_IIR_ORDER = 4

# Reference band layout for 8 kHz captures (Hz)
REFERENCE_SAMPLING_RATE = 8000.0
REFERENCE_BANDS: Dict[str, Tuple[Optional[float], Optional[float]]] = {
    'low': (None, 200.0),            # lowpass
    'band_1': (200.0, 2000.0),
    'band_2': (2000.0, 3000.0),
    'band_3': (3000.0, 3400.0),
    'high': (3400.0, None),          # highpass
}


# =============================================================================
# Configuration
# =============================================================================

@dataclass(frozen=True)
class FilterSpec:
    """
    Immutable configuration for a single filter.

    Attributes:
        filter_type: Type of filter (lowpass, highpass, bandpass)
        impulse_response: FIR or IIR design
        sampling_rate: Signal sampling rate in Hz
        low_freq: Low cutoff frequency in Hz (highpass/bandpass)
        high_freq: High cutoff frequency in Hz (lowpass/bandpass)
        order: Filter order; None selects a default per impulse response
    """
    filter_type: FilterType
    impulse_response: ImpulseResponse = ImpulseResponse.FINITE
    sampling_rate: float = REFERENCE_SAMPLING_RATE
    low_freq: Optional[float] = None
    high_freq: Optional[float] = None
    order: Optional[int] = None

    def __post_init__(self) -> None:
        """Validate filter configuration."""
        if not np.isfinite(self.sampling_rate) or self.sampling_rate <= 0:
            raise ConfigurationError(
                f"sampling_rate must be finite and > 0, got {self.sampling_rate}"
            )
        for cutoff in self.cutoffs:
            if not np.isfinite(cutoff):
                raise ConfigurationError(f"Cutoff frequency must be finite, got {cutoff}")

        if self.filter_type == FilterType.BANDPASS:
            if self.low_freq is None or self.high_freq is None:
                raise ConfigurationError(
                    "Bandpass filter requires both low_freq and high_freq"
                )
            if self.low_freq >= self.high_freq:
                raise ConfigurationError(
                    f"low_freq ({self.low_freq}) must be < high_freq ({self.high_freq})"
                )
        elif self.filter_type == FilterType.HIGHPASS:
            if self.low_freq is None or self.high_freq is not None:
                raise ConfigurationError("Highpass filter requires exactly low_freq")
        elif self.filter_type == FilterType.LOWPASS:
            if self.high_freq is None or self.low_freq is not None:
                raise ConfigurationError("Lowpass filter requires exactly high_freq")

        nyquist = self.sampling_rate / 2.0
        for cutoff in self.cutoffs:
            if cutoff <= 0 or cutoff >= nyquist:
                raise ConfigurationError(
                    f"Cutoff frequency {cutoff} Hz must be between 0 and "
                    f"Nyquist ({nyquist} Hz)"
                )

        if self.order is not None and self.order < 1:
            raise ConfigurationError(f"order must be >= 1, got {self.order}")

        # firwin needs an odd tap count (even order) to pass Nyquist
        if (
            self.impulse_response == ImpulseResponse.FINITE
            and self.filter_type == FilterType.HIGHPASS
            and self.effective_order % 2 != 0
        ):
            raise ConfigurationError(
                f"FIR highpass filter requires an even order, got {self.effective_order}"
            )

    @property
    def cutoffs(self) -> Tuple[float, ...]:
        """Configured cutoff frequencies in ascending order."""
        return tuple(f for f in (self.low_freq, self.high_freq) if f is not None)

    @property
    def effective_order(self) -> int:
        """Order used for the design."""
        if self.order is not None:
            return self.order
        if self.impulse_response == ImpulseResponse.FINITE:
            return DEFAULT_FIR_ORDER
        return DEFAULT_IIR_ORDER

    @classmethod
    def lowpass(
        cls,
        sampling_rate: float,
        cutoff: float,
        impulse_response: ImpulseResponse = ImpulseResponse.FINITE,
        order: Optional[int] = None,
    ) -> 'FilterSpec':
        """Create a lowpass spec."""
        return cls(FilterType.LOWPASS, impulse_response, sampling_rate,
                   high_freq=cutoff, order=order)

    @classmethod
    def highpass(
        cls,
        sampling_rate: float,
        cutoff: float,
        impulse_response: ImpulseResponse = ImpulseResponse.FINITE,
        order: Optional[int] = None,
    ) -> 'FilterSpec':
        """Create a highpass spec."""
        return cls(FilterType.HIGHPASS, impulse_response, sampling_rate,
                   low_freq=cutoff, order=order)

    @classmethod
    def bandpass(
        cls,
        sampling_rate: float,
        low: float,
        high: float,
        impulse_response: ImpulseResponse = ImpulseResponse.FINITE,
        order: Optional[int] = None,
    ) -> 'FilterSpec':
        """Create a bandpass spec."""
        return cls(FilterType.BANDPASS, impulse_response, sampling_rate,
                   low_freq=low, high_freq=high, order=order)

    @classmethod
    def from_cutoffs(
        cls,
        sampling_rate: float,
        low: Optional[float],
        high: Optional[float],
        impulse_response: ImpulseResponse = ImpulseResponse.FINITE,
        order: Optional[int] = None,
    ) -> 'FilterSpec':
        """
        Infer the filter type from which cutoffs are given.

        (None, f) is a lowpass, (f, None) a highpass, (f1, f2) a bandpass.
        """
        if low is None and high is None:
            raise ConfigurationError("At least one cutoff frequency is required")
        if low is None:
            return cls.lowpass(sampling_rate, high, impulse_response, order)
        if high is None:
            return cls.highpass(sampling_rate, low, impulse_response, order)
        return cls.bandpass(sampling_rate, low, high, impulse_response, order)


# =============================================================================
# Filter Implementation
# =============================================================================

class DigitalFilter:
    """
    Stateful single-channel digital filter.

    Maintains the delay-line history between calls to process() for
    seamless chunk-based filtering.

    Implementation Details:
        FIR filters run through scipy.signal.lfilter with a zero-initialised
        history of ``order`` samples. IIR filters use second-order sections
        via scipy.signal.sosfilt for numerical stability.
    """

    def __init__(self, spec: FilterSpec) -> None:
        """
        Initialize filter from its spec.

        Args:
            spec: Validated filter configuration
        """
        self.spec = spec

        if spec.impulse_response == ImpulseResponse.FINITE:
            self._taps = self._design_fir()
            self._sos = None
        else:
            self._taps = None
            self._sos = self._design_iir()

        self._zi = self._init_state()

        logger.debug(
            f"Created {spec.impulse_response.name} {spec.filter_type.name} filter: "
            f"cutoffs={spec.cutoffs}, order={spec.effective_order}, "
            f"fs={spec.sampling_rate}"
        )

    def _design_fir(self) -> np.ndarray:
        """
        Design windowed-sinc FIR taps.

        Returns:
            Filter taps, length order + 1
        """
        numtaps = self.spec.effective_order + 1
        fs = self.spec.sampling_rate

        if self.spec.filter_type == FilterType.LOWPASS:
            return signal.firwin(numtaps, self.spec.high_freq, pass_zero='lowpass', fs=fs)
        if self.spec.filter_type == FilterType.HIGHPASS:
            return signal.firwin(numtaps, self.spec.low_freq, pass_zero='highpass', fs=fs)
        if self.spec.filter_type == FilterType.BANDPASS:
            return signal.firwin(
                numtaps,
                [self.spec.low_freq, self.spec.high_freq],
                pass_zero='bandpass',
                fs=fs,
            )
        raise ConfigurationError(f"Unknown filter type: {self.spec.filter_type}")

    def _design_iir(self) -> np.ndarray:
        """
        Design a Butterworth filter as second-order sections.

        Returns:
            SOS filter coefficients
        """
        btype = {
            FilterType.LOWPASS: 'lowpass',
            FilterType.HIGHPASS: 'highpass',
            FilterType.BANDPASS: 'bandpass',
        }[self.spec.filter_type]
        cutoffs = self.spec.cutoffs
        wn = cutoffs[0] if len(cutoffs) == 1 else list(cutoffs)

        return signal.butter(
            self.spec.effective_order,
            wn,
            btype=btype,
            output='sos',
            fs=self.spec.sampling_rate,
        )

    def _init_state(self) -> np.ndarray:
        """
        Zero history for the designed filter.

        Returns:
            Initial filter state array
        """
        if self._taps is not None:
            return np.zeros(len(self._taps) - 1)
        return np.zeros((self._sos.shape[0], 2))

    def process(self, samples: ArrayLike) -> np.ndarray:
        """
        Filter samples, maintaining state between calls.

        Args:
            samples: 1-D input samples

        Returns:
            Filtered samples, same length as input

        Note:
            Modifies internal state, so consecutive calls produce
            continuous filtered output.
        """
        data = np.asarray(samples, dtype=np.float64)
        if data.ndim != 1:
            raise ValueError(f"samples must be 1-D, got shape {data.shape}")
        if data.size == 0:
            return data.copy()

        if self._taps is not None:
            filtered, self._zi = signal.lfilter(self._taps, [1.0], data, zi=self._zi)
        else:
            filtered, self._zi = signal.sosfilt(self._sos, data, zi=self._zi)

        return filtered

    def reset(self) -> None:
        """Reset filter state to initial conditions."""
        self._zi = self._init_state()

    @property
    def is_fresh(self) -> bool:
        """Whether the filter history is still all zeros."""
        return not np.any(self._zi)


# =============================================================================
# Filter Bank
# =============================================================================

@dataclass
class FilterBank:
    """
    Ordered collection of named band specs.

    Attributes:
        bands: Band name -> filter spec, in declaration order
    """
    bands: Dict[str, FilterSpec] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate bank contents."""
        for name, spec in self.bands.items():
            if not isinstance(spec, FilterSpec):
                raise ConfigurationError(
                    f"Band '{name}' must be a FilterSpec, got {type(spec).__name__}"
                )

    def __len__(self) -> int:
        return len(self.bands)

    def __iter__(self) -> Iterator[str]:
        return iter(self.bands)

    def __contains__(self, name: object) -> bool:
        return name in self.bands

    def __getitem__(self, name: str) -> FilterSpec:
        return self.bands[name]

    @property
    def names(self) -> Tuple[str, ...]:
        """Band names in declaration order."""
        return tuple(self.bands)

    def add(self, name: str, spec: FilterSpec) -> None:
        """Register a band; names must be unique."""
        if name in self.bands:
            raise ConfigurationError(f"Band '{name}' already defined")
        self.bands[name] = spec

    def instantiate(self) -> Dict[str, DigitalFilter]:
        """Build one fresh running filter per band."""
        return {name: DigitalFilter(spec) for name, spec in self.bands.items()}

    @classmethod
    def from_cutoffs(
        cls,
        bands: Dict[str, Tuple[Optional[float], Optional[float]]],
        sampling_rate: float,
        impulse_response: ImpulseResponse = ImpulseResponse.FINITE,
        order: Optional[int] = None,
    ) -> 'FilterBank':
        """
        Create a bank from ``name -> (low, high)`` cutoff pairs.

        Args:
            bands: Cutoffs per band, None marking an open edge
            sampling_rate: Signal sampling rate in Hz
            impulse_response: Design family shared by all bands
            order: Filter order shared by all bands

        Returns:
            FilterBank with one spec per band
        """
        return cls({
            name: FilterSpec.from_cutoffs(sampling_rate, low, high, impulse_response, order)
            for name, (low, high) in bands.items()
        })

    @classmethod
    def reference(
        cls,
        sampling_rate: float = REFERENCE_SAMPLING_RATE,
        impulse_response: ImpulseResponse = ImpulseResponse.FINITE,
    ) -> 'FilterBank':
        """
        Five-band layout for 8 kHz captures.

        lowpass 200 Hz, bandpass 200-2000, 2000-3000, 3000-3400 Hz,
        highpass 3400 Hz.
        """
        return cls.from_cutoffs(REFERENCE_BANDS, sampling_rate, impulse_response)
