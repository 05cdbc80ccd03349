"""OHLCV bar input model.

A BarSeries is the only thing the engine reads. It is validated once on
construction (ascending unique timestamps, finite values) and exposes each
field as a read-only float64 array. Gaps in the timeline are kept as they
are; nothing is synthesized.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Optional, Sequence, Union

import numpy as np

from .errors import InvalidBarSeries


logger = logging.getLogger(__name__)


BAR_FIELDS = ("open", "high", "low", "close", "volume")

# Column names accepted by BarSeries.from_frame
_TIMESTAMP_COLUMNS = ("datetime", "timestamp", "time", "date")
_FIELD_ALIASES = {
    "open": ["open", "Open", "o"],
    "high": ["high", "High", "h"],
    "low": ["low", "Low", "l"],
    "close": ["close", "Close", "c", "price"],
    "volume": ["volume", "Volume", "v", "vol"],
}


@dataclass(frozen=True)
class Bar:
    """One OHLCV observation. Only timestamp and close are mandatory."""

    timestamp: Any
    close: float
    open: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None
    volume: Optional[float] = None


def _is_missing(value) -> bool:
    if value is None:
        return True
    try:
        return math.isnan(value)
    except TypeError:
        return False


class BarSeries(Sequence):
    """Immutable, ordered sequence of bars.

    A field counts as present only when every bar carries a value for it,
    so a series with some missing volumes is treated as having no volume.
    """

    def __init__(self, bars: Iterable[Bar]):
        self._bars = tuple(bars)
        self._validate()

        self._timestamps = tuple(b.timestamp for b in self._bars)
        self._columns: dict[str, Optional[np.ndarray]] = {}
        for name in BAR_FIELDS:
            raw = [getattr(b, name) for b in self._bars]
            if any(_is_missing(v) for v in raw):
                self._columns[name] = None
                continue
            values = np.asarray(raw, dtype=float)
            values.flags.writeable = False
            self._columns[name] = values

    def _validate(self):
        previous = None
        for i, bar in enumerate(self._bars):
            if _is_missing(bar.close) or not math.isfinite(bar.close):
                raise InvalidBarSeries(f"Bar {i} has a non-finite close: {bar.close}")
            # NaN marks a missing value; infinities are never valid
            for name in ("open", "high", "low", "volume"):
                value = getattr(bar, name)
                if not _is_missing(value) and not math.isfinite(value):
                    raise InvalidBarSeries(f"Bar {i} has a non-finite {name}: {value}")
            if previous is not None and not bar.timestamp > previous:
                raise InvalidBarSeries(
                    f"Bar {i} timestamp {bar.timestamp} does not follow {previous}; "
                    f"bars must be strictly ascending"
                )
            previous = bar.timestamp

    @classmethod
    def from_arrays(
        cls,
        timestamps: Sequence,
        close: Sequence[float],
        high: Optional[Sequence[float]] = None,
        low: Optional[Sequence[float]] = None,
        open: Optional[Sequence[float]] = None,
        volume: Optional[Sequence[float]] = None,
    ) -> "BarSeries":
        """Build a series from parallel field sequences."""
        n = len(timestamps)
        fields = {"close": close, "high": high, "low": low, "open": open, "volume": volume}
        for name, values in fields.items():
            if values is not None and len(values) != n:
                raise InvalidBarSeries(
                    f"Field '{name}' has {len(values)} values for {n} timestamps"
                )

        def pick(values, i):
            return None if values is None else values[i]

        bars = [
            Bar(
                timestamp=timestamps[i],
                close=close[i],
                open=pick(open, i),
                high=pick(high, i),
                low=pick(low, i),
                volume=pick(volume, i),
            )
            for i in range(n)
        ]
        return cls(bars)

    @classmethod
    def from_frame(cls, df) -> "BarSeries":
        """Build a series from a polars or pandas DataFrame.

        Args:
            df: Frame with a datetime/timestamp/time/date column and OHLCV
                columns. Only close is required.

        Returns:
            BarSeries in the frame's row order
        """
        columns = list(df.columns)

        ts_col = next((c for c in _TIMESTAMP_COLUMNS if c in columns), None)
        if ts_col is None:
            raise InvalidBarSeries(
                f"No timestamp column found, expected one of {_TIMESTAMP_COLUMNS}"
            )

        def find(field):
            for alias in _FIELD_ALIASES[field]:
                if alias in columns:
                    return [None if _is_missing(v) else v for v in df[alias].to_list()]
            return None

        close = find("close")
        if close is None:
            raise InvalidBarSeries(f"No close column found in {columns}")

        series = cls.from_arrays(
            df[ts_col].to_list(),
            close,
            high=find("high"),
            low=find("low"),
            open=find("open"),
            volume=find("volume"),
        )
        logger.debug(f"Loaded {len(series)} bars from frame")
        return series

    def __len__(self) -> int:
        return len(self._bars)

    def __getitem__(self, index: Union[int, slice]):
        if isinstance(index, slice):
            return BarSeries(self._bars[index])
        return self._bars[index]

    def __iter__(self) -> Iterator[Bar]:
        return iter(self._bars)

    def __repr__(self) -> str:
        if not self._bars:
            return "BarSeries([])"
        return f"BarSeries({len(self)} bars, {self._timestamps[0]} .. {self._timestamps[-1]})"

    @property
    def timestamps(self) -> tuple:
        return self._timestamps

    @property
    def closes(self) -> np.ndarray:
        return self._columns["close"]

    @property
    def opens(self) -> Optional[np.ndarray]:
        return self._columns["open"]

    @property
    def highs(self) -> Optional[np.ndarray]:
        return self._columns["high"]

    @property
    def lows(self) -> Optional[np.ndarray]:
        return self._columns["low"]

    @property
    def volumes(self) -> Optional[np.ndarray]:
        return self._columns["volume"]

    @property
    def has_high_low(self) -> bool:
        return self.has_field("high") and self.has_field("low")

    @property
    def has_volume(self) -> bool:
        return self.has_field("volume")

    def has_field(self, name: str) -> bool:
        if name not in self._columns:
            raise KeyError(f"Unknown bar field: {name}")
        return self._columns[name] is not None

    def column(self, name: str) -> np.ndarray:
        """Return one field as an array.

        Raises:
            KeyError: If the field is unknown or absent from the series
        """
        if not self.has_field(name):
            raise KeyError(f"Bar series has no '{name}' data")
        return self._columns[name]
