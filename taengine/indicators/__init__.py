"""Technical indicator computation over OHLCV bar series.

Every indicator is a pipeline of stages, each declaring how many leading
bars it consumes. The engine sums those warm-ups, so every output can be
placed back on exactly the bars it belongs to, however deeply its stages
are chained (DEMA, TEMA, MACD, Stochastic RSI, ...).

Architecture:
    1. Bars: validated, immutable input series (BarSeries)
    2. Pipelines: primitives, single-pass and composite indicators
    3. Registry: descriptor table loaded from indicators.yml
    4. Engine: request -> pipeline -> aligned output, errors per request

Usage:
    from taengine.indicators import BarSeries, IndicatorEngine, add_indicators

    series = BarSeries.from_frame(df)
    engine = IndicatorEngine()
    results = engine.compute(series, ["RSI_14", "EMA_13", "BB_20_2", "MACD"])

    for point in results["EMA_13"]:
        point.timestamp, point.value

    results["BB_20_2"].to_dicts()  # [{"time", "upper", "middle", "lower"}, ...]
    results.errors                  # {"MFI_14": MissingRequiredField(...)}

    # Or add padded columns to a polars DataFrame
    df = add_indicators(df, ["RSI_14", "ATR_14"])

    # Plain numpy functions are available too
    from taengine.indicators import ema, tema
    tema(closes, 10)
"""

# Engine exports (primary API)
from .engine import (
    IndicatorEngine,
    IndicatorResults,
    PIPELINE_BUILDERS,
    add_indicators,
    build_pipeline,
)

# Input model and alignment
from .bars import Bar, BarSeries
from .alignment import AlignedPoint, AlignedSeries, align, compute_offset

# Registry exports
from .registry import (
    IndicatorRegistry,
    get_indicator,
    get_registry,
    parse_request,
)
from .spec import (
    FAMILY_SPECS,
    IndicatorCategory,
    IndicatorDescriptor,
    IndicatorFamily,
    IndicatorParam,
    IndicatorRequest,
)
from .errors import (
    AlignmentError,
    IndicatorError,
    InsufficientHistory,
    InvalidBarSeries,
    InvalidParameter,
    MissingRequiredField,
    PipelineError,
    RegistryFrozenError,
    UnknownIndicator,
)

# Pipeline building blocks
from .pipeline import Pipeline, Stage, combine, identity, repeat, window_stage
from .primitives import ema, rma, sma, wma

# Indicator functions
from .oscillators import (
    adx, atr, cci, mfi, momentum, roc, rsi, stochastic, williams_r,
)
from .volume import cmf, obv, volume_oscillator, volume_roc, vwap
from .composites import (
    awesome_oscillator, cmo, dema, hma, macd, stoch_rsi, t3, tema, trix,
    ultimate_oscillator, vidya, zlema,
)
from .bands import bollinger_bands, donchian_channels, keltner_channels


__all__ = [
    # Engine exports (primary API)
    "IndicatorEngine",
    "IndicatorResults",
    "PIPELINE_BUILDERS",
    "add_indicators",
    "build_pipeline",
    # Input model and alignment
    "Bar",
    "BarSeries",
    "AlignedPoint",
    "AlignedSeries",
    "align",
    "compute_offset",
    # Registry exports
    "IndicatorRegistry",
    "get_indicator",
    "get_registry",
    "parse_request",
    "FAMILY_SPECS",
    "IndicatorCategory",
    "IndicatorDescriptor",
    "IndicatorFamily",
    "IndicatorParam",
    "IndicatorRequest",
    # Errors
    "AlignmentError",
    "IndicatorError",
    "InsufficientHistory",
    "InvalidBarSeries",
    "InvalidParameter",
    "MissingRequiredField",
    "PipelineError",
    "RegistryFrozenError",
    "UnknownIndicator",
    # Pipeline building blocks
    "Pipeline",
    "Stage",
    "combine",
    "identity",
    "repeat",
    "window_stage",
    "ema",
    "rma",
    "sma",
    "wma",
    # Indicator functions
    "adx",
    "atr",
    "cci",
    "mfi",
    "momentum",
    "roc",
    "rsi",
    "stochastic",
    "williams_r",
    "cmf",
    "obv",
    "volume_oscillator",
    "volume_roc",
    "vwap",
    "awesome_oscillator",
    "cmo",
    "dema",
    "hma",
    "macd",
    "stoch_rsi",
    "t3",
    "tema",
    "trix",
    "ultimate_oscillator",
    "vidya",
    "zlema",
    "bollinger_bands",
    "donchian_channels",
    "keltner_channels",
]
