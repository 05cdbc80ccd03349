"""Channel indicators emitting (upper, middle, lower) rows."""

import numpy as np

from .oscillators import HLC, atr_pipeline
from .pipeline import Pipeline, Stage, column, combine, window_stage
from .primitives import check_period, ema, rolling_max, rolling_min, rolling_window


BAND_OUTPUTS = ("upper", "middle", "lower")


def _band(middle, width) -> np.ndarray:
    return np.column_stack([middle + width, middle, middle - width])


def bollinger_pipeline(period: int = 20, std_dev: float = 2.0) -> Pipeline:
    period = check_period(period)

    def bands(data):
        windows = rolling_window(data, period)
        return _band(windows.mean(axis=-1), std_dev * windows.std(axis=-1))

    return Pipeline(f"bollinger({period},{std_dev})", [
        Stage(f"bollinger({period})", bands, period - 1),
    ], outputs=BAND_OUTPUTS)


def bollinger_bands(closes, period: int = 20, std_dev: float = 2.0) -> np.ndarray:
    """SMA +/- std_dev population standard deviations."""
    return bollinger_pipeline(period, std_dev).run(closes)


def keltner_pipeline(period: int = 20, multiplier: float = 2.0) -> Pipeline:
    """EMA of close +/- multiplier * ATR, both of the same period.

    ATR needs one more bar than the EMA, so the channel starts on ATR's
    first bar.
    """
    period = check_period(period)
    middle = Pipeline("ema", [column(2, "close"), window_stage("ema", ema, period)])
    return Pipeline(f"keltner({period},{multiplier})", [
        combine(
            "keltner",
            [middle, atr_pipeline(period)],
            lambda mid, rng: _band(mid, multiplier * rng),
        ),
    ], inputs=HLC, outputs=BAND_OUTPUTS)


def keltner_channels(highs, lows, closes, period: int = 20, multiplier: float = 2.0) -> np.ndarray:
    return keltner_pipeline(period, multiplier).run(highs, lows, closes)


def donchian_pipeline(period: int = 20) -> Pipeline:
    period = check_period(period)

    def channel(data):
        upper = rolling_max(data[:, 0], period)
        lower = rolling_min(data[:, 1], period)
        return np.column_stack([upper, (upper + lower) / 2.0, lower])

    return Pipeline(f"donchian({period})", [
        Stage(f"donchian({period})", channel, period - 1),
    ], inputs=("high", "low"), outputs=BAND_OUTPUTS)


def donchian_channels(highs, lows, period: int = 20) -> np.ndarray:
    """Rolling highest high, midpoint and lowest low."""
    return donchian_pipeline(period).run(highs, lows)
