"""
Tests for taengine.indicators.bands module.
"""
import numpy as np
import pytest

from taengine.indicators.bands import (
    bollinger_bands,
    donchian_channels,
    keltner_channels,
    keltner_pipeline,
)
from taengine.indicators.oscillators import atr
from taengine.indicators.primitives import ema, sma


class TestBollinger:
    """Tests for Bollinger Bands."""

    def test_ordering(self, sample_bars):
        """Test upper >= middle >= lower on every row."""
        result = bollinger_bands(sample_bars.closes, 20, 2.0)
        assert result.shape == (len(sample_bars) - 19, 3)
        upper, middle, lower = result.T
        assert np.all(upper >= middle)
        assert np.all(middle >= lower)

    def test_middle_is_sma(self, sample_bars):
        """Test the middle band is the SMA."""
        result = bollinger_bands(sample_bars.closes, 20)
        np.testing.assert_allclose(result[:, 1], sma(sample_bars.closes, 20))

    def test_population_std(self):
        """Test band width uses the population standard deviation."""
        upper, middle, lower = bollinger_bands([1.0, 2.0, 3.0, 4.0], 4, 1.0)[0]
        assert middle == pytest.approx(2.5)
        assert upper == pytest.approx(2.5 + np.sqrt(1.25))
        assert lower == pytest.approx(2.5 - np.sqrt(1.25))

    def test_constant_series_collapses(self):
        """Test a constant series gives three equal bands."""
        np.testing.assert_allclose(bollinger_bands(np.full(30, 8.0), 10), 8.0)


class TestKeltner:
    """Tests for Keltner Channels."""

    def test_warmup(self):
        """Test the channel starts on the first ATR bar."""
        assert keltner_pipeline(20).warmup == 20

    def test_components(self, sample_bars):
        """Test EMA middle line and ATR width on the common tail."""
        bars = sample_bars
        result = keltner_channels(bars.highs, bars.lows, bars.closes, 10, 2.0)
        middle = ema(bars.closes, 10)[1:]
        width = 2.0 * atr(bars.highs, bars.lows, bars.closes, 10)
        assert len(result) == len(bars) - 10
        np.testing.assert_allclose(result[:, 1], middle)
        np.testing.assert_allclose(result[:, 0], middle + width)
        np.testing.assert_allclose(result[:, 2], middle - width)


class TestDonchian:
    """Tests for Donchian Channels."""

    def test_values(self):
        """Test rolling highest high, lowest low and their midpoint."""
        high = [5.0, 7.0, 6.0, 9.0]
        low = [1.0, 3.0, 2.0, 4.0]
        result = donchian_channels(high, low, 3)
        np.testing.assert_allclose(result, [[7.0, 4.0, 1.0], [9.0, 5.5, 2.0]])

    def test_length(self, sample_bars):
        """Test period - 1 warm-up."""
        result = donchian_channels(sample_bars.highs, sample_bars.lows, 20)
        assert result.shape == (len(sample_bars) - 19, 3)
