"""
Pytest configuration and shared fixtures for taengine tests.
"""
from datetime import datetime, timedelta

import numpy as np
import polars as pl
import pytest

from taengine.indicators import BarSeries, IndicatorEngine, get_registry


START = datetime(2024, 1, 2, 9, 30)


def timeline(n, step=timedelta(days=1)):
    """n ascending timestamps starting at START."""
    return [START + step * i for i in range(n)]


# ============================================================================
# Sample Data Fixtures
# ============================================================================

def make_ohlcv_df(n_rows, seed=42):
    """Seeded random-walk OHLCV Polars DataFrame."""
    base_price = 150.0
    dates = [START + timedelta(minutes=5 * i) for i in range(n_rows)]

    # Generate realistic price data
    rng = np.random.default_rng(seed)
    returns = rng.normal(0, 0.01, n_rows)
    prices = base_price * np.cumprod(1 + returns)

    return pl.DataFrame({
        "datetime": dates,
        "open": prices * (1 + rng.uniform(-0.005, 0.005, n_rows)),
        "high": prices * (1 + rng.uniform(0.001, 0.02, n_rows)),
        "low": prices * (1 - rng.uniform(0.001, 0.02, n_rows)),
        "close": prices,
        "volume": rng.integers(100000, 1000000, n_rows),
    })


@pytest.fixture
def sample_ohlcv_df():
    """Create a sample OHLCV Polars DataFrame (100 rows) for testing."""
    return make_ohlcv_df(100)


@pytest.fixture
def sample_bars(sample_ohlcv_df):
    """BarSeries over the sample OHLCV frame."""
    return BarSeries.from_frame(sample_ohlcv_df)


@pytest.fixture
def long_bars():
    """300 bars, enough history for every packaged indicator (SMA_200 included)."""
    return BarSeries.from_frame(make_ohlcv_df(300, seed=7))


@pytest.fixture
def close_only_bars(sample_ohlcv_df):
    """Bars carrying only close prices."""
    return BarSeries.from_arrays(
        sample_ohlcv_df["datetime"].to_list(),
        sample_ohlcv_df["close"].to_list(),
    )


@pytest.fixture
def zero_volume_bars(sample_ohlcv_df):
    """Full OHLC bars whose volume is zero on every bar."""
    df = sample_ohlcv_df.with_columns(pl.lit(0).alias("volume"))
    return BarSeries.from_frame(df)


@pytest.fixture
def flat_bars():
    """60 bars with constant price 100 and no range."""
    n = 60
    return BarSeries.from_arrays(
        timeline(n),
        [100.0] * n,
        high=[100.0] * n,
        low=[100.0] * n,
        open=[100.0] * n,
        volume=[1000.0] * n,
    )


@pytest.fixture
def make_bars():
    """Factory building a daily BarSeries from closes (and optional fields)."""
    def _make(closes, **fields):
        return BarSeries.from_arrays(timeline(len(closes)), list(closes), **fields)
    return _make


# ============================================================================
# Engine Fixtures
# ============================================================================

@pytest.fixture
def registry():
    """Process-wide registry built from the packaged indicators.yml."""
    return get_registry()


@pytest.fixture
def engine(registry):
    """Sequential indicator engine over the packaged registry."""
    return IndicatorEngine(registry)


@pytest.fixture
def indicators_yml(tmp_path):
    """Small custom descriptor table written to a temporary file."""
    path = tmp_path / "indicators.yml"
    path.write_text(
        "indicators:\n"
        "  - {id: FastEMA, label: Fast EMA, family: ema, category: trend, defaults: {period: 3}}\n"
        "  - {id: SlowEMA, label: Slow EMA, family: ema, category: trend, defaults: {period: 8}}\n"
        "  - {id: Flow, label: Money Flow, family: mfi, category: volume}\n"
        "aliases:\n"
        "  Quick: FastEMA\n"
    )
    return path
