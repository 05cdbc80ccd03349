"""Map indicator outputs back onto the bar timeline.

An output of length L computed over N bars covers the last L bars, so its
j-th value belongs to bar `N - L + j`. The same offset applies to every
line of a multi-line output.
"""

import logging
from dataclasses import dataclass
from typing import Any, Iterator, Optional, Sequence, Union

import numpy as np
import pandas as pd
import polars as pl

from .bars import BarSeries
from .errors import AlignmentError


logger = logging.getLogger(__name__)


def compute_offset(n_bars: int, n_output: int) -> int:
    """Number of leading bars without a value: N - L.

    Raises:
        AlignmentError: If the output is longer than the series
    """
    if n_output > n_bars:
        raise AlignmentError(f"Output of {n_output} points cannot align to {n_bars} bars")
    return n_bars - n_output


@dataclass(frozen=True)
class AlignedPoint:
    """One output value paired with the timestamp of the bar it belongs to."""

    timestamp: Any
    value: Union[float, tuple[float, ...]]


class AlignedSeries(Sequence):
    """Indicator output zipped with bar timestamps.

    Attributes:
        indicator_id: Id of the indicator that produced the values
        values: (L,) or (L, k) array of output values
        offset: Index of the bar holding values[0]
        outputs: Names of the output lines
    """

    def __init__(
        self,
        indicator_id: str,
        bar_timestamps: Sequence,
        values: np.ndarray,
        offset: int,
        outputs: Sequence[str] = ("value",),
    ):
        self.indicator_id = indicator_id
        self.values = values
        self.offset = offset
        self.outputs = tuple(outputs)
        self._bar_timestamps = tuple(bar_timestamps)

    def __len__(self) -> int:
        return len(self.values)

    def __getitem__(self, index):
        if isinstance(index, slice):
            return [self[i] for i in range(*index.indices(len(self)))]
        if index < 0:
            index += len(self)
        if not 0 <= index < len(self):
            raise IndexError(f"AlignedSeries index {index} out of range")
        return AlignedPoint(self._bar_timestamps[self.offset + index], self._point_value(index))

    def __iter__(self) -> Iterator[AlignedPoint]:
        for j in range(len(self)):
            yield self[j]

    def __repr__(self) -> str:
        return (
            f"AlignedSeries({self.indicator_id}: {len(self)} points, "
            f"offset={self.offset}, outputs={self.outputs})"
        )

    def _point_value(self, j: int):
        if self.is_multi:
            return tuple(float(v) for v in self.values[j])
        return float(self.values[j])

    @property
    def is_multi(self) -> bool:
        return self.values.ndim == 2

    @property
    def n_bars(self) -> int:
        return len(self._bar_timestamps)

    @property
    def timestamps(self) -> tuple:
        return self._bar_timestamps[self.offset:]

    @property
    def first_timestamp(self):
        """Timestamp of the first aligned point, None when there is none."""
        return self._bar_timestamps[self.offset] if len(self) else None

    def column(self, name: Optional[str] = None) -> np.ndarray:
        """One output line as a 1-D array.

        Raises:
            KeyError: If `name` is not one of the output names
        """
        if name is None:
            name = self.outputs[0]
        if name not in self.outputs:
            raise KeyError(f"{self.indicator_id} has no output '{name}' (outputs: {self.outputs})")
        if not self.is_multi:
            return self.values
        return self.values[:, self.outputs.index(name)]

    def padded(self, name: Optional[str] = None) -> list:
        """Full-length values for one line, with None over the warm-up bars."""
        return [None] * self.offset + self.column(name).tolist()

    def to_dicts(self) -> list[dict[str, Any]]:
        """Chart points: {"time", "value"}, or {"time", <line>...} for multi-line output."""
        if not self.is_multi:
            return [{"time": ts, "value": float(v)} for ts, v in zip(self.timestamps, self.values)]
        return [
            {"time": ts, **{name: float(v) for name, v in zip(self.outputs, row)}}
            for ts, row in zip(self.timestamps, self.values)
        ]

    def _columns(self, prefix: str) -> dict[str, np.ndarray]:
        if not self.is_multi:
            return {prefix or "value": self.values}
        return {
            f"{prefix}_{name}" if prefix else name: self.values[:, i]
            for i, name in enumerate(self.outputs)
        }

    def to_frame(self, prefix: str = "") -> pl.DataFrame:
        """Aligned points as a polars DataFrame with a timestamp column."""
        data = {"timestamp": list(self.timestamps)}
        data.update({name: values.tolist() for name, values in self._columns(prefix).items()})
        return pl.DataFrame(data)

    def to_pandas(self, prefix: str = "") -> pd.DataFrame:
        """Aligned points as a pandas DataFrame indexed by timestamp."""
        return pd.DataFrame(
            self._columns(prefix),
            index=pd.Index(list(self.timestamps), name="timestamp"),
        )


def align(
    series: BarSeries,
    output,
    indicator_id: str = "",
    outputs: Sequence[str] = ("value",),
    expected_warmup: Optional[int] = None,
) -> AlignedSeries:
    """Pair each output value with the timestamp of its bar.

    Args:
        series: Bars the output was computed from
        output: (L,) or (L, k) array
        indicator_id: Label for errors and repr
        outputs: Output line names, one per column
        expected_warmup: Warm-up the pipeline declared; a different offset
            means the output is not where it claims to be

    Returns:
        AlignedSeries with offset N - L

    Raises:
        AlignmentError: If the output is too long, has the wrong number of
            lines, or disagrees with the expected warm-up
    """
    values = np.asarray(output, dtype=float)
    outputs = tuple(outputs)
    width = values.shape[1] if values.ndim == 2 else 1
    if values.ndim > 2 or width != len(outputs):
        raise AlignmentError(
            f"{indicator_id}: output shape {values.shape} does not match lines {outputs}"
        )

    offset = compute_offset(len(series), len(values))
    if expected_warmup is not None and len(values) and offset != expected_warmup:
        raise AlignmentError(
            f"{indicator_id}: offset {offset} differs from declared warm-up {expected_warmup}"
        )
    logger.debug(f"Aligned {indicator_id}: {len(values)} points at offset {offset}")
    return AlignedSeries(indicator_id, series.timestamps, values, offset, outputs)
