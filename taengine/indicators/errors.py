"""Exceptions raised by the indicator engine.

Per-indicator failures derive from IndicatorError so that a batch compute
can collect them and keep going. The remaining classes signal malformed
input series or a broken internal invariant.
"""

from typing import Optional


class IndicatorError(Exception):
    """Base class for failures of a single indicator request."""

    def __init__(self, message: str, indicator_id: Optional[str] = None):
        self.indicator_id = indicator_id
        super().__init__(message)


class UnknownIndicator(IndicatorError):
    """Requested identifier is not in the registry."""

    def __init__(self, indicator_id: str):
        super().__init__(f"Unknown indicator: {indicator_id}", indicator_id)


class MissingRequiredField(IndicatorError):
    """Indicator needs a bar field the series does not carry."""

    def __init__(self, indicator_id: str, field: str):
        self.field = field
        super().__init__(
            f"{indicator_id} requires '{field}' but the bar series has no {field} data",
            indicator_id,
        )


class InsufficientHistory(IndicatorError):
    """Fewer bars than the indicator's cumulative warm-up demands."""

    def __init__(self, indicator_id: str, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(
            f"{indicator_id} needs at least {required} bars, got {available}",
            indicator_id,
        )


class InvalidParameter(IndicatorError, ValueError):
    """Parameter value is out of range or inconsistent with the others."""

    pass


class InvalidBarSeries(ValueError):
    """Bar series is unordered, has duplicate timestamps or bad closes."""

    pass


class PipelineError(RuntimeError):
    """A pipeline stage emitted a length other than the one it declared."""

    pass


class AlignmentError(RuntimeError):
    """Output length cannot be mapped back onto the bar timeline."""

    pass


class RegistryFrozenError(RuntimeError):
    """Attempt to modify the registry after it was frozen."""

    pass
