"""Single-pass price indicators.

RSI, ATR, ADX, Stochastic, Williams %R, CCI, MFI, ROC and Momentum. Each
indicator has a `*_pipeline` builder declaring its stages and warm-up, and
a plain function taking numpy arrays that runs it.

Zero denominators resolve to the oscillator's neutral value (50 for 0..100
oscillators, -50 for Williams %R, 0 for zero-centred ones) so that no NaN
or infinity reaches a chart or a downstream stage.
"""

import numpy as np

from .pipeline import Pipeline, Stage, combine, identity, window_stage
from .primitives import (
    check_period,
    lag_difference,
    rma,
    rolling_max,
    rolling_min,
    rolling_sum,
    rolling_window,
    safe_divide,
    sma,
)


HLC = ("high", "low", "close")
HLCV = ("high", "low", "close", "volume")

# Mean deviations this small relative to the mean are treated as a flat window
FLAT_TOLERANCE = 1e-12


def typical_price(data: np.ndarray) -> np.ndarray:
    """(high + low + close) / 3 from an (n, >=3) high/low/close matrix."""
    return (data[:, 0] + data[:, 1] + data[:, 2]) / 3.0


def true_range(data: np.ndarray) -> np.ndarray:
    """True range from bar 1 onward; bar 0 has no previous close."""
    high, low = data[1:, 0], data[1:, 1]
    previous_close = data[:-1, 2]
    return np.maximum(high, previous_close) - np.minimum(low, previous_close)


def strength_index(up, down) -> np.ndarray:
    """100 * up / (up + down); 100 with no down moves, 50 with no moves at all.

    Algebraically equal to 100 - 100 / (1 + up / down).
    """
    return safe_divide(100.0 * np.asarray(up), np.asarray(up) + np.asarray(down), neutral=50.0)


# =============================================================================
# RSI
# =============================================================================


def _gains_losses(data: np.ndarray) -> np.ndarray:
    change = np.diff(data)
    return np.column_stack([np.maximum(change, 0.0), np.maximum(-change, 0.0)])


def rsi_pipeline(period: int = 14) -> Pipeline:
    """RSI with Wilder smoothing: one point for the first change, period - 1 for the seed."""
    period = check_period(period)

    def wilder(data):
        return strength_index(rma(data[:, 0], period), rma(data[:, 1], period))

    return Pipeline(f"rsi({period})", [
        Stage("gains_losses", _gains_losses, 1),
        Stage(f"wilder_rsi({period})", wilder, period - 1),
    ])


def rsi(closes, period: int = 14) -> np.ndarray:
    """Relative Strength Index, bounded in [0, 100]."""
    return rsi_pipeline(period).run(closes)


# =============================================================================
# ATR / ADX
# =============================================================================


def atr_pipeline(period: int = 14) -> Pipeline:
    period = check_period(period)
    return Pipeline(f"atr({period})", [
        Stage("true_range", true_range, 1),
        window_stage("rma", rma, period),
    ], inputs=HLC)


def atr(highs, lows, closes, period: int = 14) -> np.ndarray:
    """Average True Range (Wilder smoothing of the true range)."""
    return atr_pipeline(period).run(highs, lows, closes)


def _directional_movement(data: np.ndarray) -> np.ndarray:
    high, low = data[:, 0], data[:, 1]
    up = high[1:] - high[:-1]
    down = low[:-1] - low[1:]
    plus_dm = np.where((up > down) & (up > 0), up, 0.0)
    minus_dm = np.where((down > up) & (down > 0), down, 0.0)
    return np.column_stack([true_range(data), plus_dm, minus_dm])


def _directional_index(smoothed: np.ndarray) -> np.ndarray:
    tr, plus_dm, minus_dm = smoothed[:, 0], smoothed[:, 1], smoothed[:, 2]
    plus_di = safe_divide(100.0 * plus_dm, tr)
    minus_di = safe_divide(100.0 * minus_dm, tr)
    return safe_divide(100.0 * np.abs(plus_di - minus_di), plus_di + minus_di)


def adx_pipeline(period: int = 14) -> Pipeline:
    """ADX: DM/TR from bar 1, Wilder-smoothed, DX, then Wilder-smoothed again."""
    period = check_period(period)

    def smooth(data):
        return np.column_stack([rma(data[:, i], period) for i in range(data.shape[1])])

    return Pipeline(f"adx({period})", [
        Stage("directional_movement", _directional_movement, 1),
        Stage(f"wilder_dm({period})", smooth, period - 1),
        Stage("dx", _directional_index),
        window_stage("rma", rma, period),
    ], inputs=HLC)


def adx(highs, lows, closes, period: int = 14) -> np.ndarray:
    """Average Directional Index."""
    return adx_pipeline(period).run(highs, lows, closes)


# =============================================================================
# STOCHASTIC / WILLIAMS %R
# =============================================================================


def percent_k(data: np.ndarray, period: int) -> np.ndarray:
    """Raw stochastic %K over an (n, 3) high/low/close matrix."""
    highest = rolling_max(data[:, 0], period)
    lowest = rolling_min(data[:, 1], period)
    close = data[period - 1:, 2]
    return safe_divide(100.0 * (close - lowest), highest - lowest, neutral=50.0)


def percent_d_stage(signal_period: int) -> Stage:
    """Append %D = SMA(%K) next to %K, giving (k, d) rows."""
    signal_period = check_period(signal_period, "signal_period")
    return combine(
        f"percent_d({signal_period})",
        [identity(), window_stage("sma", sma, signal_period)],
        lambda k, d: np.column_stack([k, d]),
    )


def stochastic_pipeline(period: int = 14, signal_period: int = 3) -> Pipeline:
    period = check_period(period)
    return Pipeline(f"stoch({period},{signal_period})", [
        Stage(f"percent_k({period})", lambda data: percent_k(data, period), period - 1),
        percent_d_stage(signal_period),
    ], inputs=HLC, outputs=("k", "d"))


def stochastic(highs, lows, closes, period: int = 14, signal_period: int = 3) -> np.ndarray:
    """Stochastic Oscillator, rows of (%K, %D) in [0, 100]."""
    return stochastic_pipeline(period, signal_period).run(highs, lows, closes)


def williams_r_pipeline(period: int = 14) -> Pipeline:
    period = check_period(period)

    def williams(data):
        highest = rolling_max(data[:, 0], period)
        lowest = rolling_min(data[:, 1], period)
        close = data[period - 1:, 2]
        return safe_divide(-100.0 * (highest - close), highest - lowest, neutral=-50.0)

    return Pipeline(f"williams_r({period})", [
        Stage(f"williams_r({period})", williams, period - 1),
    ], inputs=HLC)


def williams_r(highs, lows, closes, period: int = 14) -> np.ndarray:
    """Williams %R in [-100, 0]."""
    return williams_r_pipeline(period).run(highs, lows, closes)


# =============================================================================
# CCI / MFI
# =============================================================================


def _commodity_channel(tp: np.ndarray, period: int) -> np.ndarray:
    windows = rolling_window(tp, period)
    mean = windows.mean(axis=-1)
    mean_dev = np.abs(windows - mean[:, None]).mean(axis=-1)
    mean_dev = np.where(mean_dev <= FLAT_TOLERANCE * np.abs(mean), 0.0, mean_dev)
    return safe_divide(tp[period - 1:] - mean, 0.015 * mean_dev)


def cci_pipeline(period: int = 20) -> Pipeline:
    period = check_period(period)
    return Pipeline(f"cci({period})", [
        Stage("typical_price", typical_price),
        Stage(f"cci({period})", lambda tp: _commodity_channel(tp, period), period - 1),
    ], inputs=HLC)


def cci(highs, lows, closes, period: int = 20) -> np.ndarray:
    """Commodity Channel Index; 0 on a flat typical price."""
    return cci_pipeline(period).run(highs, lows, closes)


def _money_flow(data: np.ndarray) -> np.ndarray:
    tp = typical_price(data)
    flow = (tp * data[:, 3])[1:]
    change = np.diff(tp)
    positive = np.where(change > 0, flow, 0.0)
    negative = np.where(change < 0, flow, 0.0)
    return np.column_stack([positive, negative])


def mfi_pipeline(period: int = 14) -> Pipeline:
    period = check_period(period)

    def index(data):
        return strength_index(rolling_sum(data[:, 0], period), rolling_sum(data[:, 1], period))

    return Pipeline(f"mfi({period})", [
        Stage("money_flow", _money_flow, 1),
        Stage(f"mfi({period})", index, period - 1),
    ], inputs=HLCV)


def mfi(highs, lows, closes, volumes, period: int = 14) -> np.ndarray:
    """Money Flow Index; 50 over windows without any money flow."""
    return mfi_pipeline(period).run(highs, lows, closes, volumes)


# =============================================================================
# ROC / MOMENTUM
# =============================================================================


def roc_stage(period: int, name: str = "roc") -> Stage:
    period = check_period(period)

    def rate(data):
        return safe_divide(100.0 * lag_difference(data, period), data[:-period])

    return Stage(f"{name}({period})", rate, period)


def roc_pipeline(period: int = 12) -> Pipeline:
    return Pipeline(f"roc({period})", [roc_stage(period)])


def roc(closes, period: int = 12) -> np.ndarray:
    """Rate of Change in percent; 0 where the base value is 0."""
    return roc_pipeline(period).run(closes)


def momentum_pipeline(period: int = 10) -> Pipeline:
    period = check_period(period)
    return Pipeline(f"momentum({period})", [
        Stage(f"momentum({period})", lambda data: lag_difference(data, period), period),
    ])


def momentum(closes, period: int = 10) -> np.ndarray:
    """close[i] - close[i - period]."""
    return momentum_pipeline(period).run(closes)
