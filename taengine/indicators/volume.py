"""Single-pass volume indicators: OBV, VWAP, CMF, Volume Oscillator, Volume ROC."""

import numpy as np

from .oscillators import HLCV, roc_stage, typical_price
from .pipeline import Pipeline, Stage, combine, window_stage
from .primitives import check_period, rolling_sum, safe_divide, sma


def _on_balance(data: np.ndarray) -> np.ndarray:
    close, volume = data[:, 0], data[:, 1]
    signed = np.sign(np.diff(close)) * volume[1:]
    return np.concatenate([[0.0], np.cumsum(signed)])


def obv_pipeline() -> Pipeline:
    """OBV starts at 0 on the first bar, so it consumes no warm-up."""
    return Pipeline("obv", [Stage("obv", _on_balance)], inputs=("close", "volume"))


def obv(closes, volumes) -> np.ndarray:
    """On Balance Volume."""
    return obv_pipeline().run(closes, volumes)


def _cumulative_vwap(data: np.ndarray) -> np.ndarray:
    tp = typical_price(data)
    volume = data[:, 3]
    cum_volume = np.cumsum(volume)
    vwap_values = safe_divide(np.cumsum(tp * volume), cum_volume)
    return np.where(cum_volume != 0, vwap_values, tp)


def vwap_pipeline() -> Pipeline:
    return Pipeline("vwap", [Stage("vwap", _cumulative_vwap)], inputs=HLCV)


def vwap(highs, lows, closes, volumes) -> np.ndarray:
    """Cumulative VWAP of the typical price.

    Falls back to the typical price while no volume has traded.
    """
    return vwap_pipeline().run(highs, lows, closes, volumes)


def cmf_pipeline(period: int = 20) -> Pipeline:
    period = check_period(period)

    def chaikin(data):
        high, low, close, volume = data[:, 0], data[:, 1], data[:, 2], data[:, 3]
        multiplier = safe_divide((close - low) - (high - close), high - low)
        return safe_divide(rolling_sum(multiplier * volume, period), rolling_sum(volume, period))

    return Pipeline(f"cmf({period})", [
        Stage(f"cmf({period})", chaikin, period - 1),
    ], inputs=HLCV)


def cmf(highs, lows, closes, volumes, period: int = 20) -> np.ndarray:
    """Chaikin Money Flow; bars with zero range add no money-flow volume."""
    return cmf_pipeline(period).run(highs, lows, closes, volumes)


def volume_oscillator_pipeline(fast_period: int = 5, slow_period: int = 10) -> Pipeline:
    fast_period = check_period(fast_period, "fast_period")
    slow_period = check_period(slow_period, "slow_period")
    return Pipeline(f"volume_osc({fast_period},{slow_period})", [
        combine(
            "volume_osc",
            [window_stage("sma", sma, fast_period), window_stage("sma", sma, slow_period)],
            lambda fast, slow: safe_divide(100.0 * (fast - slow), slow),
        ),
    ], inputs=("volume",))


def volume_oscillator(volumes, fast_period: int = 5, slow_period: int = 10) -> np.ndarray:
    """Percentage difference between a fast and a slow volume SMA."""
    return volume_oscillator_pipeline(fast_period, slow_period).run(volumes)


def volume_roc_pipeline(period: int = 14) -> Pipeline:
    return Pipeline(f"volume_roc({period})", [roc_stage(period, "volume_roc")], inputs=("volume",))


def volume_roc(volumes, period: int = 14) -> np.ndarray:
    """Rate of change of volume in percent."""
    return volume_roc_pipeline(period).run(volumes)
