"""Primitive averages and array helpers.

SMA, EMA and WMA are the windowed reductions every other indicator is
built from. All functions here are pure: the output depends only on the
input slice and the period, and for a period P over M points the output
holds M - P + 1 values (empty when M < P).
"""

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from .errors import InvalidParameter


def check_period(period, name: str = "period", minimum: int = 1) -> int:
    """Validate an integer look-back and return it as a plain int."""
    if isinstance(period, bool) or not isinstance(period, (int, np.integer)):
        raise InvalidParameter(f"{name} must be an integer, got {period!r}")
    if period < minimum:
        raise InvalidParameter(f"{name} must be >= {minimum}, got {period}")
    return int(period)


def as_array(values) -> np.ndarray:
    return np.asarray(values, dtype=float)


def empty_output(width: int = 1) -> np.ndarray:
    """Zero-length output with the trailing shape of a 1- or k-line result."""
    if width == 1:
        return np.empty(0)
    return np.empty((0, width))


# =============================================================================
# ROLLING HELPERS
# =============================================================================


def rolling_window(values, period: int) -> np.ndarray:
    """Trailing windows along the first axis, oldest value first.

    A 1-D input of length n gives shape (n - period + 1, period); a 2-D
    input (n, k) gives (n - period + 1, k, period).
    """
    values = as_array(values)
    if len(values) < period:
        return np.empty((0,) + values.shape[1:] + (period,))
    return sliding_window_view(values, period, axis=0)


def rolling_sum(values, period: int) -> np.ndarray:
    return rolling_window(values, period).sum(axis=-1)


def rolling_max(values, period: int) -> np.ndarray:
    return rolling_window(values, period).max(axis=-1)


def rolling_min(values, period: int) -> np.ndarray:
    return rolling_window(values, period).min(axis=-1)


def safe_divide(numerator, denominator, neutral: float = 0.0) -> np.ndarray:
    """Element-wise division yielding `neutral` wherever the denominator is 0."""
    numerator, denominator = np.broadcast_arrays(as_array(numerator), as_array(denominator))
    result = np.full(numerator.shape, neutral, dtype=float)
    np.divide(numerator, denominator, out=result, where=denominator != 0)
    return result


def tail_align(*arrays: np.ndarray) -> list[np.ndarray]:
    """Truncate arrays to the shortest length, keeping their last rows.

    Outputs of stages with different warm-ups end on the same bar, so the
    overlapping part is always the tail.
    """
    n = min(len(a) for a in arrays)
    return [a[len(a) - n:] for a in arrays]


def lag_difference(values, period: int) -> np.ndarray:
    """values[i] - values[i - period], one value per i >= period."""
    values = as_array(values)
    return values[period:] - values[:-period]


# =============================================================================
# MOVING AVERAGES
# =============================================================================


def sma(values, period: int) -> np.ndarray:
    """Simple Moving Average."""
    period = check_period(period)
    values = as_array(values)
    if len(values) < period:
        return empty_output()
    return rolling_window(values, period).mean(axis=-1)


def _smooth(values: np.ndarray, period: int, alpha: float) -> np.ndarray:
    """Recursive smoothing seeded with the mean of the first `period` values.

    A non-finite input holds the previous output instead of propagating,
    so one bad point cannot poison every later value.
    """
    values = as_array(values)
    if len(values) < period:
        return empty_output()

    result = np.empty(len(values) - period + 1)
    seed = values[:period]
    seed = seed[np.isfinite(seed)]
    previous = seed.mean() if len(seed) else np.nan
    result[0] = previous

    for j, value in enumerate(values[period:], start=1):
        if np.isfinite(value):
            if np.isnan(previous):
                previous = value
            else:
                previous = previous + alpha * (value - previous)
        result[j] = previous

    return result


def ema(values, period: int) -> np.ndarray:
    """Exponential Moving Average, alpha = 2 / (period + 1)."""
    period = check_period(period)
    return _smooth(values, period, 2.0 / (period + 1))


def rma(values, period: int) -> np.ndarray:
    """Wilder's Moving Average (RMA), alpha = 1 / period."""
    period = check_period(period)
    return _smooth(values, period, 1.0 / period)


def wma(values, period: int) -> np.ndarray:
    """Weighted Moving Average, weights period..1 with the newest heaviest."""
    period = check_period(period)
    values = as_array(values)
    if len(values) < period:
        return empty_output()
    weights = np.arange(1, period + 1, dtype=float)
    return rolling_window(values, period) @ weights / weights.sum()
