"""Multi-stage composite indicators.

Each composite is spelled out as its chain of stages rather than a closed
form, because every chained EMA/WMA discards its own warm-up and the
chained output is shorter than the closed form suggests. Three EMAs of
period P in a row consume 3 * (P - 1) points, not P - 1.
"""

import math

import numpy as np

from .oscillators import percent_d_stage, percent_k, rsi_pipeline, true_range
from .pipeline import Pipeline, Stage, combine, identity, repeat, window_stage
from .primitives import check_period, ema, rolling_sum, safe_divide, sma, wma
from .errors import InvalidParameter


# =============================================================================
# MACD
# =============================================================================


def macd_pipeline(fast_period: int = 12, slow_period: int = 26, signal_period: int = 9) -> Pipeline:
    fast_period = check_period(fast_period, "fast_period")
    slow_period = check_period(slow_period, "slow_period")
    signal_period = check_period(signal_period, "signal_period")
    return Pipeline(f"macd({fast_period},{slow_period},{signal_period})", [
        combine(
            "macd_line",
            [window_stage("ema", ema, fast_period), window_stage("ema", ema, slow_period)],
            lambda fast, slow: fast - slow,
        ),
        combine(
            f"signal({signal_period})",
            [identity(), window_stage("ema", ema, signal_period)],
            lambda line, signal: np.column_stack([line, signal, line - signal]),
        ),
    ], outputs=("macd", "signal", "histogram"))


def macd(closes, fast_period: int = 12, slow_period: int = 26, signal_period: int = 9) -> np.ndarray:
    """MACD rows of (macd_line, signal_line, histogram)."""
    return macd_pipeline(fast_period, slow_period, signal_period).run(closes)


# =============================================================================
# CHAINED EMA FAMILY
# =============================================================================


def dema_pipeline(period: int = 20) -> Pipeline:
    ema_stage = window_stage("ema", ema, period)
    return Pipeline(f"dema({period})", [
        ema_stage,
        combine("dema", [identity(), ema_stage], lambda e1, e2: 2.0 * e1 - e2),
    ])


def dema(values, period: int = 20) -> np.ndarray:
    """Double EMA: 2 * EMA - EMA(EMA), over the second EMA's span."""
    return dema_pipeline(period).run(values)


def tema_pipeline(period: int = 20) -> Pipeline:
    ema_stage = window_stage("ema", ema, period)
    return Pipeline(f"tema({period})", [
        ema_stage,
        combine(
            "tema",
            [identity(), ema_stage, Pipeline("ema2", repeat(ema_stage, 2))],
            lambda e1, e2, e3: 3.0 * e1 - 3.0 * e2 + e3,
        ),
    ])


def tema(values, period: int = 20) -> np.ndarray:
    """Triple EMA: 3 * EMA1 - 3 * EMA2 + EMA3."""
    return tema_pipeline(period).run(values)


def trix_pipeline(period: int = 14) -> Pipeline:
    ema_stage = window_stage("ema", ema, period)

    def percent_change(data):
        return safe_divide(100.0 * np.diff(data), data[:-1])

    return Pipeline(f"trix({period})", repeat(ema_stage, 3) + [
        Stage("percent_change", percent_change, 1),
    ])


def trix(values, period: int = 14) -> np.ndarray:
    """One-bar percent change of a triple-chained EMA."""
    return trix_pipeline(period).run(values)


def t3_coefficients(volume_factor: float) -> tuple[float, float, float, float]:
    v = volume_factor
    c1 = -v ** 3
    c2 = 3 * v ** 2 + 3 * v ** 3
    c3 = -6 * v ** 2 - 3 * v - 3 * v ** 3
    c4 = 1 + 3 * v + v ** 3 + 3 * v ** 2
    return c1, c2, c3, c4


def t3_pipeline(period: int = 14, volume_factor: float = 0.7) -> Pipeline:
    """Tillson T3: six chained EMAs, recombined from the third onward."""
    ema_stage = window_stage("ema", ema, period)
    c1, c2, c3, c4 = t3_coefficients(volume_factor)
    return Pipeline(f"t3({period},{volume_factor})", repeat(ema_stage, 3) + [
        combine(
            "t3",
            [
                identity(),
                ema_stage,
                Pipeline("ema2", repeat(ema_stage, 2)),
                Pipeline("ema3", repeat(ema_stage, 3)),
            ],
            lambda e3, e4, e5, e6: c4 * e3 + c3 * e4 + c2 * e5 + c1 * e6,
        ),
    ])


def t3(values, period: int = 14, volume_factor: float = 0.7) -> np.ndarray:
    return t3_pipeline(period, volume_factor).run(values)


def zlema_pipeline(period: int = 14) -> Pipeline:
    period = check_period(period)
    lag = (period - 1) // 2
    stages = []
    if lag:
        stages.append(Stage(
            f"delag({lag})",
            lambda data: data[lag:] + (data[lag:] - data[:-lag]),
            lag,
        ))
    stages.append(window_stage("ema", ema, period))
    return Pipeline(f"zlema({period})", stages)


def zlema(values, period: int = 14) -> np.ndarray:
    """Zero-lag EMA: EMA of x[i] + (x[i] - x[i - lag]), lag = (period - 1) // 2."""
    return zlema_pipeline(period).run(values)


# =============================================================================
# HULL MOVING AVERAGE
# =============================================================================


def hma_pipeline(period: int = 14) -> Pipeline:
    period = check_period(period, minimum=2)
    return Pipeline(f"hma({period})", [
        combine(
            "hull",
            [window_stage("wma", wma, period // 2), window_stage("wma", wma, period)],
            lambda half, full: 2.0 * half - full,
        ),
        window_stage("wma", wma, math.isqrt(period)),
    ])


def hma(values, period: int = 14) -> np.ndarray:
    """Hull Moving Average: WMA(sqrt(P)) of 2 * WMA(P / 2) - WMA(P)."""
    return hma_pipeline(period).run(values)


# =============================================================================
# CMO / VIDYA
# =============================================================================


def chande_momentum(data: np.ndarray, period: int) -> np.ndarray:
    change = np.diff(data)
    up = rolling_sum(np.maximum(change, 0.0), period)
    down = rolling_sum(np.maximum(-change, 0.0), period)
    return safe_divide(100.0 * (up - down), up + down)


def cmo_pipeline(period: int = 14) -> Pipeline:
    period = check_period(period)
    return Pipeline(f"cmo({period})", [
        Stage(f"cmo({period})", lambda data: chande_momentum(data, period), period),
    ])


def cmo(values, period: int = 14) -> np.ndarray:
    """Chande Momentum Oscillator in [-100, 100]; 0 without any change."""
    return cmo_pipeline(period).run(values)


def _variable_index(data: np.ndarray, period: int, alpha: float) -> np.ndarray:
    weights = alpha * np.abs(chande_momentum(data, period)) / 100.0
    values = data[period:]
    result = np.empty(len(values))
    previous = data[period - 1]
    for j, (value, k) in enumerate(zip(values, weights)):
        if np.isfinite(value):
            previous = value if np.isnan(previous) else k * value + (1.0 - k) * previous
        result[j] = previous
    return result


def vidya_pipeline(period: int = 14, alpha: float = 0.2) -> Pipeline:
    """VIDYA starts on the first bar with a full CMO window.

    The value before it (the close at period - 1) only seeds the recursion.
    """
    period = check_period(period)
    if not 0 < alpha <= 1:
        raise InvalidParameter(f"alpha must be in (0, 1], got {alpha}")
    return Pipeline(f"vidya({period},{alpha})", [
        Stage(f"vidya({period})", lambda data: _variable_index(data, period, alpha), period),
    ])


def vidya(values, period: int = 14, alpha: float = 0.2) -> np.ndarray:
    """Variable Index Dynamic Average, weighted by |CMO|."""
    return vidya_pipeline(period, alpha).run(values)


# =============================================================================
# STOCHASTIC RSI
# =============================================================================


def stoch_rsi_pipeline(period: int = 14, signal_period: int = 3) -> Pipeline:
    """RSI, then the stochastic %K/%D formula with the RSI as high, low and close."""
    period = check_period(period)
    stochastic_of_rsi = Pipeline("stochastic", [
        Stage(
            f"percent_k({period})",
            lambda data: percent_k(np.column_stack([data, data, data]), period),
            period - 1,
        ),
        percent_d_stage(signal_period),
    ], outputs=("k", "d"))
    return rsi_pipeline(period).then(stochastic_of_rsi, name=f"stoch_rsi({period},{signal_period})")


def stoch_rsi(closes, period: int = 14, signal_period: int = 3) -> np.ndarray:
    """Stochastic RSI rows of (%K, %D) in [0, 100]."""
    return stoch_rsi_pipeline(period, signal_period).run(closes)


# =============================================================================
# AWESOME / ULTIMATE OSCILLATORS
# =============================================================================


def awesome_oscillator_pipeline(fast_period: int = 5, slow_period: int = 34) -> Pipeline:
    fast_period = check_period(fast_period, "fast_period")
    slow_period = check_period(slow_period, "slow_period")
    return Pipeline(f"awesome({fast_period},{slow_period})", [
        Stage("median_price", lambda data: (data[:, 0] + data[:, 1]) / 2.0),
        combine(
            "awesome",
            [window_stage("sma", sma, fast_period), window_stage("sma", sma, slow_period)],
            lambda fast, slow: fast - slow,
        ),
    ], inputs=("high", "low"))


def awesome_oscillator(highs, lows, fast_period: int = 5, slow_period: int = 34) -> np.ndarray:
    """SMA(fast) - SMA(slow) of the median price (high + low) / 2."""
    return awesome_oscillator_pipeline(fast_period, slow_period).run(highs, lows)


def _buying_pressure(data: np.ndarray) -> np.ndarray:
    low, close = data[1:, 1], data[1:, 2]
    previous_close = data[:-1, 2]
    pressure = close - np.minimum(low, previous_close)
    return np.column_stack([pressure, true_range(data)])


def _pressure_average(window: int) -> Stage:
    window = check_period(window, "window")

    def average(data):
        return safe_divide(
            rolling_sum(data[:, 0], window), rolling_sum(data[:, 1], window), neutral=0.5
        )

    return Stage(f"average({window})", average, window - 1)


def ultimate_oscillator_pipeline(
    fast_period: int = 7, period: int = 14, slow_period: int = 28
) -> Pipeline:
    """Williams' Ultimate Oscillator over three windows weighted 4:2:1."""
    return Pipeline(f"ultimate({fast_period},{period},{slow_period})", [
        Stage("buying_pressure", _buying_pressure, 1),
        combine(
            "ultimate",
            [_pressure_average(fast_period), _pressure_average(period), _pressure_average(slow_period)],
            lambda short, medium, long: 100.0 * (4.0 * short + 2.0 * medium + long) / 7.0,
        ),
    ], inputs=("high", "low", "close"))


def ultimate_oscillator(
    highs, lows, closes, fast_period: int = 7, period: int = 14, slow_period: int = 28
) -> np.ndarray:
    """Ultimate Oscillator in [0, 100]."""
    return ultimate_oscillator_pipeline(fast_period, period, slow_period).run(highs, lows, closes)
