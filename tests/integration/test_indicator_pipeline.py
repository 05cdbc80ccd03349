"""Integration tests for the indicator pipeline.

These tests verify the full flow from a raw OHLCV frame to aligned,
per-bar indicator output. Uses string-based API for all indicator
definitions.
"""

from datetime import datetime, timedelta

import numpy as np
import polars as pl
import pytest

from taengine.indicators import (
    BarSeries,
    IndicatorEngine,
    IndicatorRequest,
    MissingRequiredField,
    add_indicators,
)


class TestIndicatorPipelineIntegration:
    """Integration tests for indicator computation pipeline."""

    @pytest.fixture
    def realistic_market_data(self):
        """Create realistic market data with proper OHLCV relationships."""
        np.random.seed(42)
        n = 252  # One trading year

        # Generate realistic price series using geometric random walk
        returns = np.random.normal(0.0005, 0.02, n)
        prices = 100 * np.exp(np.cumsum(returns))

        # Generate OHLC from close prices
        high = prices * (1 + np.abs(np.random.normal(0, 0.01, n)))
        low = prices * (1 - np.abs(np.random.normal(0, 0.01, n)))
        open_prices = prices * (1 + np.random.normal(0, 0.005, n))

        # Ensure OHLC relationships are valid
        high = np.maximum(high, np.maximum(open_prices, prices))
        low = np.minimum(low, np.minimum(open_prices, prices))

        # Generate volume
        volume = np.random.randint(100000, 10000000, n)

        start = datetime(2023, 1, 3)
        return pl.DataFrame({
            "datetime": [start + timedelta(days=i) for i in range(n)],
            "open": open_prices,
            "high": high,
            "low": low,
            "close": prices,
            "volume": volume,
        })

    def test_full_indicator_suite_computation(self, realistic_market_data):
        """Test computing a full suite of indicators end-to-end."""
        series = BarSeries.from_frame(realistic_market_data)
        engine = IndicatorEngine()

        indicators = [
            # Trend
            "SMA_20", "EMA_12", "DEMA_20", "TEMA_20", "HMA_14", "T3_14", "ADX_14",
            # Momentum
            "RSI_14", "Stoch_14", "StochRSI_14", "CCI_20", "MFI_14", "CMO_14",
            "AwesomeOsc", "UltimateOsc",
            # Volatility
            "BB_20_2", "Keltner_20_2", "Donchian_20", "ATR_14",
            # Volume
            "OBV", "VWAP", "CMF_20", "VolumeOsc",
            # Overlay
            "MACD",
        ]
        results = engine.compute(series, indicators)

        assert results.ok, results.errors
        assert list(results) == indicators

        # Every output ends on the last bar and starts right after its warm-up
        for key, aligned in results.items():
            assert aligned.timestamps[-1] == series.timestamps[-1], key
            assert aligned.first_timestamp == series[aligned.offset].timestamp, key
            assert np.all(np.isfinite(aligned.values)), key

        # Verify indicator values make sense
        for key in ["RSI_14", "MFI_14", "UltimateOsc"]:
            values = results[key].values
            assert np.all((values >= 0) & (values <= 100)), f"{key} should be between 0-100"
        assert np.all(results["ATR_14"].values > 0)

    def test_string_shorthand_pipeline(self, realistic_market_data):
        """Test using string shorthand for indicator definitions."""
        result = add_indicators(
            realistic_market_data,
            ["SMA_20", "EMA_13", "BB_30_2.5", "MACD_5_35_5"]
        )

        assert "SMA_20" in result.columns
        assert "EMA_13" in result.columns
        assert "BB_30_2.5_upper" in result.columns
        assert "BB_30_2.5_lower" in result.columns
        assert "MACD_5_35_5_histogram" in result.columns

        assert result["EMA_13"].null_count() == 12
        assert result["BB_30_2.5_middle"].null_count() == 29
        assert result["MACD_5_35_5_signal"].null_count() == 34 + 4

    def test_indicator_values_converge(self, realistic_market_data):
        """Test that indicator values stabilize after warmup period."""
        result = add_indicators(realistic_market_data, ["SMA_20", "RSI_14"])

        # SMA-20 has exactly 19 warm-up bars
        ma_values = result["SMA_20"].to_list()
        assert sum(1 for v in ma_values if v is None) == 19

        # Non-null values should be within reasonable range of close prices
        close_prices = result["close"].to_list()
        for i, ma in enumerate(ma_values):
            if ma is not None:
                assert abs(ma - close_prices[i]) / close_prices[i] < 0.2

    def test_multi_symbol_pipeline(self, realistic_market_data):
        """Test computing indicators for multiple symbols."""
        symbols_data = {
            "AAPL": realistic_market_data,
            "GOOGL": realistic_market_data.with_columns(pl.col("close") * 2),
            "MSFT": realistic_market_data.head(100),
        }

        indicators = ["SMA_20", "RSI_14", "SMA_200"]
        engine = IndicatorEngine(max_workers=2)

        results = {}
        for symbol, df in symbols_data.items():
            results[symbol] = engine.compute(BarSeries.from_frame(df), indicators)

        # Verify all symbols processed
        assert len(results) == 3
        for symbol in ["AAPL", "GOOGL"]:
            assert results[symbol].ok

        # 100 bars are too few for SMA_200; the other requests still compute
        assert set(results["MSFT"]) == {"SMA_20", "RSI_14"}
        assert "SMA_200" in results["MSFT"].errors

    def test_close_only_data(self, realistic_market_data):
        """Test a close-only feed computes close indicators and rejects the rest."""
        df = realistic_market_data.select(["datetime", "close"])
        series = BarSeries.from_frame(df)
        results = IndicatorEngine().compute(series, ["EMA_20", "ATR_14", "OBV", "VIDYA_14"])

        assert set(results) == {"EMA_20", "VIDYA_14"}
        assert isinstance(results.errors["ATR_14"], MissingRequiredField)
        assert isinstance(results.errors["OBV"], MissingRequiredField)

    def test_chart_requests(self, realistic_market_data):
        """Test per-chart requests with keyed overrides."""
        series = BarSeries.from_frame(realistic_market_data)
        engine = IndicatorEngine()
        results = engine.compute(series, [
            {"id": "BB", "period": 20, "stdDevMultiplier": 2.0, "key": "bb"},
            IndicatorRequest("EMA", period=50, key="trend"),
        ])

        points = results["bb"].to_dicts()
        assert len(points) == len(series) - 19
        assert set(points[0]) == {"time", "upper", "middle", "lower"}
        assert results["trend"].first_timestamp == series[49].timestamp
