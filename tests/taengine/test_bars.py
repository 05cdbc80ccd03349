"""
Tests for taengine.indicators.bars module.
"""
from datetime import datetime, timedelta

import numpy as np
import pandas as pd
import polars as pl
import pytest

from taengine.indicators.bars import Bar, BarSeries
from taengine.indicators.errors import InvalidBarSeries


def timeline(n):
    return [datetime(2024, 1, 2) + timedelta(days=i) for i in range(n)]


class TestBarSeries:
    """Tests for BarSeries construction and validation."""

    def test_from_arrays(self):
        """Test parallel sequences become bars with float columns."""
        ts = timeline(3)
        series = BarSeries.from_arrays(ts, [1, 2, 3], high=[2, 3, 4], low=[0, 1, 2])
        assert len(series) == 3
        assert series[0] == Bar(ts[0], 1, high=2, low=0)
        assert series.closes.dtype == np.float64
        assert series.has_high_low
        assert not series.has_volume
        assert series.volumes is None

    def test_unordered_timestamps(self):
        """Test timestamps must be strictly ascending."""
        ts = timeline(3)
        with pytest.raises(InvalidBarSeries):
            BarSeries.from_arrays([ts[0], ts[2], ts[1]], [1.0, 2.0, 3.0])

    def test_duplicate_timestamps(self):
        """Test a repeated timestamp is rejected."""
        ts = timeline(2)
        with pytest.raises(InvalidBarSeries):
            BarSeries.from_arrays([ts[0], ts[1], ts[1]], [1.0, 2.0, 3.0])

    def test_gaps_kept(self):
        """Test irregular spacing is accepted as is."""
        ts = [datetime(2024, 1, 2), datetime(2024, 1, 3), datetime(2024, 1, 9)]
        series = BarSeries.from_arrays(ts, [1.0, 2.0, 3.0])
        assert series.timestamps == tuple(ts)

    @pytest.mark.parametrize("bad", [float("nan"), float("inf"), None])
    def test_non_finite_close(self, bad):
        """Test every close must be a finite number."""
        with pytest.raises(InvalidBarSeries):
            BarSeries.from_arrays(timeline(3), [1.0, bad, 3.0])

    @pytest.mark.parametrize("field", ["open", "high", "low", "volume"])
    def test_infinite_optional_field(self, field):
        """Test an infinite open, high, low or volume is rejected."""
        values = {field: [1.0, float("inf"), 3.0]}
        with pytest.raises(InvalidBarSeries):
            BarSeries.from_arrays(timeline(3), [1.0, 2.0, 3.0], **values)

    def test_nan_optional_field_is_missing(self):
        """Test a NaN volume marks the field absent instead of failing."""
        series = BarSeries.from_arrays(
            timeline(3), [1.0, 2.0, 3.0], volume=[10.0, float("nan"), 30.0]
        )
        assert not series.has_volume

    def test_length_mismatch(self):
        """Test every field needs one value per timestamp."""
        with pytest.raises(InvalidBarSeries):
            BarSeries.from_arrays(timeline(3), [1.0, 2.0, 3.0], volume=[1.0, 2.0])

    def test_partially_missing_field(self):
        """Test a field missing on any bar counts as absent."""
        series = BarSeries.from_arrays(
            timeline(3), [1.0, 2.0, 3.0], volume=[10.0, None, 30.0]
        )
        assert not series.has_volume
        with pytest.raises(KeyError):
            series.column("volume")

    def test_zero_volume_is_present(self, zero_volume_bars):
        """Test all-zero volume is still a volume column."""
        assert zero_volume_bars.has_volume
        assert np.all(zero_volume_bars.volumes == 0.0)

    def test_columns_read_only(self, sample_bars):
        """Test exposed arrays cannot be written."""
        with pytest.raises(ValueError):
            sample_bars.closes[0] = 0.0

    def test_unknown_field(self, sample_bars):
        """Test asking about a field bars never carry raises KeyError."""
        with pytest.raises(KeyError):
            sample_bars.has_field("vwap")

    def test_slice(self, sample_bars):
        """Test slicing returns a BarSeries."""
        head = sample_bars[:10]
        assert isinstance(head, BarSeries)
        assert len(head) == 10
        np.testing.assert_array_equal(head.closes, sample_bars.closes[:10])

    def test_empty(self):
        """Test an empty series is valid."""
        series = BarSeries([])
        assert len(series) == 0
        assert repr(series) == "BarSeries([])"


class TestFromFrame:
    """Tests for DataFrame import."""

    def test_polars(self, sample_ohlcv_df):
        """Test OHLCV columns are picked up from a polars frame."""
        series = BarSeries.from_frame(sample_ohlcv_df)
        assert len(series) == sample_ohlcv_df.height
        assert series.has_high_low and series.has_volume
        np.testing.assert_allclose(series.closes, sample_ohlcv_df["close"].to_numpy())

    def test_pandas(self):
        """Test a pandas frame with capitalized columns."""
        df = pd.DataFrame({
            "timestamp": timeline(3),
            "Close": [1.0, 2.0, 3.0],
            "Volume": [5.0, 6.0, 7.0],
        })
        series = BarSeries.from_frame(df)
        assert series.has_volume
        assert not series.has_high_low

    def test_null_volume(self, sample_ohlcv_df):
        """Test a null in a column makes that field absent."""
        volume = sample_ohlcv_df["volume"].to_list()
        volume[5] = None
        df = sample_ohlcv_df.with_columns(pl.Series("volume", volume))
        assert not BarSeries.from_frame(df).has_volume

    def test_missing_timestamp(self):
        """Test a frame without a timestamp column is rejected."""
        with pytest.raises(InvalidBarSeries):
            BarSeries.from_frame(pl.DataFrame({"close": [1.0, 2.0]}))

    def test_missing_close(self):
        """Test a frame without closes is rejected."""
        with pytest.raises(InvalidBarSeries):
            BarSeries.from_frame(pl.DataFrame({"datetime": timeline(2), "high": [1.0, 2.0]}))
