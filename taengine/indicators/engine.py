"""Indicator calculation engine.

Turns requests into aligned outputs:

    resolve id -> validate parameters -> check bar fields -> check history
    -> run the family's pipeline -> align onto the bar timeline

Every family in `IndicatorFamily` has a pipeline builder in
`PIPELINE_BUILDERS`; a family without one fails at import time.

Example:
    engine = IndicatorEngine()
    results = engine.compute(series, [
        "RSI_14",                                   # registered id
        "EMA_13",                                   # family + period
        IndicatorRequest("BB", std_dev_multiplier=2.5, key="bb_wide"),
    ])
    results["RSI_14"].first_timestamp
    results.errors                                  # key -> IndicatorError
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional, Sequence, Union

import polars as pl

from .alignment import AlignedSeries, align
from .bands import bollinger_pipeline, donchian_pipeline, keltner_pipeline
from .bars import BarSeries
from .composites import (
    awesome_oscillator_pipeline,
    cmo_pipeline,
    dema_pipeline,
    hma_pipeline,
    macd_pipeline,
    stoch_rsi_pipeline,
    t3_pipeline,
    tema_pipeline,
    trix_pipeline,
    ultimate_oscillator_pipeline,
    vidya_pipeline,
    zlema_pipeline,
)
from .errors import (
    IndicatorError,
    InsufficientHistory,
    InvalidParameter,
    MissingRequiredField,
)
from .oscillators import (
    adx_pipeline,
    atr_pipeline,
    cci_pipeline,
    mfi_pipeline,
    momentum_pipeline,
    roc_pipeline,
    rsi_pipeline,
    stochastic_pipeline,
    williams_r_pipeline,
)
from .pipeline import Pipeline, window_stage
from .primitives import ema, sma, wma
from .registry import IndicatorRegistry, get_registry
from .spec import FAMILY_SPECS, IndicatorDescriptor, IndicatorFamily, IndicatorRequest
from .volume import (
    cmf_pipeline,
    obv_pipeline,
    volume_oscillator_pipeline,
    volume_roc_pipeline,
    vwap_pipeline,
)


logger = logging.getLogger(__name__)


RequestLike = Union[str, IndicatorRequest, dict]


def _result_key(request: RequestLike) -> str:
    if isinstance(request, IndicatorRequest):
        return request.result_key
    if isinstance(request, dict):
        for name in ("key", "descriptor_id", "descriptorId", "id"):
            if request.get(name):
                return str(request[name])
    return str(request)


def _average(name: str, func: Callable) -> Callable[..., Pipeline]:
    def build(period: int) -> Pipeline:
        return Pipeline(f"{name}({period})", [window_stage(name, func, period)])
    return build


# Builders receive the validated parameters of their family as keywords
PIPELINE_BUILDERS: dict[IndicatorFamily, Callable[..., Pipeline]] = {
    IndicatorFamily.SMA: _average("sma", sma),
    IndicatorFamily.EMA: _average("ema", ema),
    IndicatorFamily.WMA: _average("wma", wma),
    IndicatorFamily.DEMA: dema_pipeline,
    IndicatorFamily.TEMA: tema_pipeline,
    IndicatorFamily.HMA: hma_pipeline,
    IndicatorFamily.ZLEMA: zlema_pipeline,
    IndicatorFamily.T3: t3_pipeline,
    IndicatorFamily.VIDYA: vidya_pipeline,
    IndicatorFamily.RSI: rsi_pipeline,
    IndicatorFamily.STOCH: stochastic_pipeline,
    IndicatorFamily.STOCH_RSI: stoch_rsi_pipeline,
    IndicatorFamily.WILLIAMS_R: williams_r_pipeline,
    IndicatorFamily.CCI: cci_pipeline,
    IndicatorFamily.MFI: mfi_pipeline,
    IndicatorFamily.ROC: roc_pipeline,
    IndicatorFamily.MOMENTUM: momentum_pipeline,
    IndicatorFamily.TRIX: trix_pipeline,
    IndicatorFamily.CMO: cmo_pipeline,
    IndicatorFamily.MACD: macd_pipeline,
    IndicatorFamily.AWESOME: awesome_oscillator_pipeline,
    IndicatorFamily.ULTIMATE: ultimate_oscillator_pipeline,
    IndicatorFamily.ADX: adx_pipeline,
    IndicatorFamily.ATR: atr_pipeline,
    IndicatorFamily.BOLLINGER: lambda period, std_dev_multiplier: bollinger_pipeline(
        period, std_dev_multiplier
    ),
    IndicatorFamily.KELTNER: lambda period, std_dev_multiplier: keltner_pipeline(
        period, std_dev_multiplier
    ),
    IndicatorFamily.DONCHIAN: donchian_pipeline,
    IndicatorFamily.OBV: obv_pipeline,
    IndicatorFamily.VWAP: vwap_pipeline,
    IndicatorFamily.CMF: cmf_pipeline,
    IndicatorFamily.VOLUME_OSC: volume_oscillator_pipeline,
    IndicatorFamily.VOLUME_ROC: volume_roc_pipeline,
}

_unbuilt = [f.name for f in IndicatorFamily if f not in PIPELINE_BUILDERS]
if _unbuilt:
    raise RuntimeError(f"No pipeline builder for indicator families: {_unbuilt}")


def build_pipeline(family: IndicatorFamily, params: dict[str, Any]) -> Pipeline:
    """Build the pipeline for a family from validated parameters.

    Raises:
        RuntimeError: If the pipeline's inputs or outputs differ from the
            family's declaration
    """
    pipeline = PIPELINE_BUILDERS[family](**params)
    declared = FAMILY_SPECS[family]
    if pipeline.inputs != declared.inputs or pipeline.outputs != declared.outputs:
        raise RuntimeError(
            f"Pipeline {pipeline.name} reads {pipeline.inputs} -> {pipeline.outputs}, "
            f"family {family.value} declares {declared.inputs} -> {declared.outputs}"
        )
    return pipeline


class IndicatorResults(dict):
    """Mapping of result key to AlignedSeries, plus the failed requests.

    Attributes:
        errors: Result key -> IndicatorError for every request that failed
    """

    def __init__(self):
        super().__init__()
        self.errors: dict[str, IndicatorError] = {}

    @property
    def ok(self) -> bool:
        return not self.errors


class IndicatorEngine:
    """Computes indicator requests over a BarSeries.

    Args:
        registry: Descriptor registry; the process-wide one by default
        max_workers: Threads used for a batch; 1 computes sequentially
    """

    def __init__(self, registry: Optional[IndicatorRegistry] = None, max_workers: int = 1):
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self.registry = registry if registry is not None else get_registry()
        self.max_workers = max_workers

    def to_request(self, request: RequestLike) -> IndicatorRequest:
        if isinstance(request, IndicatorRequest):
            return request
        if isinstance(request, str):
            return self.registry.parse_request(request)
        if isinstance(request, dict):
            return IndicatorRequest.from_dict(request)
        raise InvalidParameter(
            f"Indicator request must be a string, dict or IndicatorRequest, got {type(request)}"
        )

    def prepare(self, request: RequestLike) -> tuple[IndicatorDescriptor, dict[str, Any], Pipeline]:
        """Resolve a request to its descriptor, parameters and pipeline."""
        request = self.to_request(request)
        descriptor = self.registry.resolve(request.descriptor_id)
        params = descriptor.validate_params(**request.overrides())
        try:
            pipeline = build_pipeline(descriptor.family, params)
        except InvalidParameter as e:
            raise InvalidParameter(str(e), descriptor.id) from None
        return descriptor, params, pipeline

    def warmup(self, request: RequestLike) -> int:
        """Bars consumed before the first output of a request."""
        return self.prepare(request)[2].warmup

    def compute_one(self, series: BarSeries, request: RequestLike) -> AlignedSeries:
        """Compute a single request, raising on failure.

        Raises:
            UnknownIndicator: If the id is not registered
            InvalidParameter: If an override is invalid
            MissingRequiredField: If the bars lack high/low or volume
            InsufficientHistory: If there are fewer bars than the warm-up needs
        """
        descriptor, params, pipeline = self.prepare(request)

        for name in descriptor.required_fields + pipeline.inputs:
            if not series.has_field(name):
                raise MissingRequiredField(descriptor.id, name)

        if len(series) < pipeline.min_length:
            raise InsufficientHistory(descriptor.id, pipeline.min_length, len(series))

        output = pipeline.run(*(series.column(name) for name in pipeline.inputs))
        logger.debug(f"Computed {descriptor.id} {params}: {len(output)} points")
        return align(
            series,
            output,
            indicator_id=descriptor.id,
            outputs=pipeline.outputs,
            expected_warmup=pipeline.warmup,
        )

    def compute(self, series: BarSeries, requests: Sequence[RequestLike]) -> IndicatorResults:
        """Compute a batch of requests.

        A failing request is logged and recorded in `results.errors`; it
        never stops the others.

        Args:
            series: Bars to compute over
            requests: IndicatorRequest objects or strings like "RSI_14"

        Returns:
            IndicatorResults keyed by each request's result key
        """
        results = IndicatorResults()
        keyed = []
        seen = set()
        for index, request in enumerate(requests):
            key = _result_key(request)
            if key in seen:
                slot = f"{key}[{index}]"
                results.errors[slot] = InvalidParameter(f"Duplicate result key '{key}'", key)
                logger.warning(f"Skipping {slot}: duplicate result key")
                continue
            seen.add(key)
            keyed.append((key, request))

        if self.max_workers > 1 and len(keyed) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                outcomes = list(executor.map(lambda kr: self._attempt(series, kr[1]), keyed))
        else:
            outcomes = [self._attempt(series, request) for _, request in keyed]

        for (key, _), (aligned, error) in zip(keyed, outcomes):
            if error is None:
                results[key] = aligned
            else:
                logger.warning(f"Error computing {key}: {error}")
                results.errors[key] = error
        return results

    def _attempt(self, series: BarSeries, request: RequestLike):
        try:
            return self.compute_one(series, request), None
        except IndicatorError as e:
            return None, e


# Convenience functions

def add_indicators(
    df: pl.DataFrame,
    indicators: Sequence[RequestLike],
    engine: Optional[IndicatorEngine] = None,
) -> pl.DataFrame:
    """Add indicator columns to an OHLCV DataFrame.

    Each output line becomes one full-length column padded with nulls over
    the warm-up bars. Multi-line indicators get one column per line, named
    "<key>_<line>". Failed indicators are logged and skipped.

    Args:
        df: Polars DataFrame with a timestamp column and OHLCV columns
        indicators: Requests like "RSI_14", "BB_20_2"

    Returns:
        DataFrame with indicator columns added

    Example:
        df = add_indicators(df, ["RSI_14", "EMA_13", "MACD"])
    """
    engine = engine or IndicatorEngine()
    series = BarSeries.from_frame(df)
    results = engine.compute(series, indicators)

    columns = []
    for key, aligned in results.items():
        if aligned.is_multi:
            for name in aligned.outputs:
                columns.append(pl.Series(f"{key}_{name}", aligned.padded(name), dtype=pl.Float64))
        else:
            columns.append(pl.Series(key, aligned.padded(), dtype=pl.Float64))
    return df.with_columns(columns) if columns else df.clone()
