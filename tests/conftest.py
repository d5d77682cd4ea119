"""
Shared pytest fixtures and configuration for the bfeed survival tests

This module provides a seeded synthetic dataset with the bfeed schema and
a fixture for the real dataset that skips when it cannot be obtained.
"""

import os
import sys
import warnings
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

os.environ.setdefault("MPLBACKEND", "Agg")

import matplotlib

matplotlib.use("Agg")

# Add src to path
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from bfeed_survival.config.settings import AnalysisConfig  # noqa: E402
from bfeed_survival.data.loader import BreastfeedingDataLoader  # noqa: E402


def make_raw_bfeed(n=300, seed=AnalysisConfig.RANDOM_SEED, censor_rate=0.1):
    """Coded table laid out like the Rdatasets export of bfeed."""
    rng = np.random.default_rng(seed)

    race = rng.choice([1, 2, 3], size=n, p=[0.6, 0.2, 0.2])
    poverty = rng.binomial(1, 0.2, size=n)
    smoke = rng.binomial(1, 0.3, size=n)
    alcohol = rng.binomial(1, 0.15, size=n)
    pc3mth = rng.binomial(1, 0.15, size=n)
    agemth = rng.integers(15, 29, size=n)
    ybirth = rng.integers(78, 87, size=n)
    yschool = np.clip(np.round(rng.normal(12, 1.8, size=n)), 3, 19).astype(int)

    # Black and other mothers and smokers stop earlier
    log_hazard = 0.5 * (race == 2) + 0.3 * (race == 3) + 0.4 * smoke - 0.08 * (yschool - 12)
    rate = np.exp(log_hazard) / 14.0
    duration = np.ceil(rng.exponential(1.0 / rate)).astype(int)
    duration = np.clip(duration, 1, 192)

    delta = (rng.random(n) >= censor_rate).astype(int)

    return pd.DataFrame({
        'rownames': np.arange(1, n + 1),
        'duration': duration,
        'delta': delta,
        'race': race,
        'poverty': poverty,
        'smoke': smoke,
        'alcohol': alcohol,
        'agemth': agemth,
        'ybirth': ybirth,
        'yschool': yschool,
        'pc3mth': pc3mth,
    })


# ============================================================================
# Synthetic Data Fixtures
# ============================================================================


@pytest.fixture
def raw_bfeed():
    """Coded synthetic table"""
    return make_raw_bfeed()


@pytest.fixture
def loader():
    """Loader that never touches the network"""
    return BreastfeedingDataLoader(data_url=None, verbose=False)


@pytest.fixture
def bfeed_data(raw_bfeed, loader):
    """Decoded synthetic table"""
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", UserWarning)
        return loader.preprocess_frame(raw_bfeed)


@pytest.fixture(scope="session")
def regression_results():
    """Cox workflow on the synthetic table, shared because it refits many models"""
    from bfeed_survival.analysis.regression import run_regression_analysis

    loader = BreastfeedingDataLoader(data_url=None, verbose=False)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", UserWarning)
        data = loader.preprocess_frame(make_raw_bfeed())
        return run_regression_analysis(data, verbose=False)


# ============================================================================
# Real Data Fixtures
# ============================================================================


@pytest.fixture(scope="session")
def real_bfeed():
    """The published 927-record dataset; skipped when neither file nor network is available"""
    loader = BreastfeedingDataLoader(verbose=False)
    try:
        return loader.preprocess_data()
    except OSError as e:
        pytest.skip(f"bfeed dataset unavailable: {e}")


@pytest.fixture
def output_dir(tmp_path):
    """Temporary output directory"""
    return tmp_path / "output"
