"""
Pytest Configuration and Fixtures
==================================

Shared test configuration and fixtures for all test modules.
Handles path setup for importing src modules.

Author: Sensor Classifier Project Team
License: MIT
"""

import sys
from pathlib import Path

# Add project root to path for imports
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import pytest
import numpy as np


# =============================================================================
# Global Fixtures
# =============================================================================

@pytest.fixture(scope="session")
def project_root_path():
    """Get project root path."""
    return project_root


@pytest.fixture
def temp_data_dir(tmp_path):
    """Create temporary data directory for tests."""
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    return data_dir


# =============================================================================
# Markers
# =============================================================================

def pytest_configure(config):
    """Add custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "integration: marks integration tests")


# =============================================================================
# Signal Fixtures
# =============================================================================

SAMPLING_RATE = 8000.0

# Tone frequency per class: one class inside each of three reference bands
CLASS_TONES = {
    1.0: 500.0,     # band_1
    2.0: 2500.0,    # band_2
    3.0: 3700.0,    # high
}


@pytest.fixture
def rng():
    """Seeded random generator."""
    return np.random.default_rng(42)


@pytest.fixture
def tone_factory(rng):
    """Build noisy sine captures at the reference sampling rate."""
    def make(freq, n_samples=256, amplitude=1.0, noise=0.1):
        t = np.arange(n_samples) / SAMPLING_RATE
        return (
            amplitude * np.sin(2 * np.pi * freq * t)
            + noise * rng.standard_normal(n_samples)
        )
    return make


@pytest.fixture
def labeled_readings(tone_factory):
    """Ten readings per class, classes interleaved."""
    from src.sensor.dataset import LabeledReading

    readings = []
    for _ in range(10):
        for label, freq in CLASS_TONES.items():
            readings.append(LabeledReading(data=tone_factory(freq), label=label))
    return readings


@pytest.fixture
def write_dataset(temp_data_dir):
    """
    Write readings as ``id, samples..., label`` CSV rows.

    Returns a function (name, rows, labels, header=True) -> Path.
    """
    def write(name, rows, labels, header=True):
        path = temp_data_dir / name
        lines = []
        if header:
            n = len(rows[0]) if len(rows) else 0
            lines.append(",".join(["id"] + [f"s{i}" for i in range(n)] + ["label"]))
        for idx, (row, label) in enumerate(zip(rows, labels)):
            values = ",".join(repr(float(v)) for v in row)
            lines.append(f"{idx},{values},{label}")
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path
    return write


@pytest.fixture
def write_answers(temp_data_dir):
    """Write an ``id, label`` answer file; returns a function (name, labels) -> Path."""
    def write(name, labels):
        path = temp_data_dir / name
        lines = ["id,label"] + [f"{idx},{label}" for idx, label in enumerate(labels)]
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path
    return write


@pytest.fixture
def class_tones():
    """Class label -> tone frequency in Hz."""
    return dict(CLASS_TONES)
