"""Indicator descriptors and requests.

`IndicatorFamily` is the closed set of computations the engine knows how
to run. Each family declares the bar fields it reads, its parameters and
its output lines in `FAMILY_SPECS`. An `IndicatorDescriptor` is one named,
configured entry of a family (e.g. "RSI_21" is the RSI family with
period 21), and an `IndicatorRequest` asks for a descriptor with optional
parameter overrides.
"""

import math
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Optional, Union

from .errors import InvalidParameter


class IndicatorCategory(Enum):
    """Category of technical indicator."""

    MOMENTUM = "momentum"
    TREND = "trend"
    VOLATILITY = "volatility"
    VOLUME = "volume"
    OVERLAY = "overlay"  # Drawn in its own pane over price, e.g. MACD


class IndicatorFamily(Enum):
    """Closed set of indicator computations."""

    # Moving averages
    SMA = "sma"
    EMA = "ema"
    WMA = "wma"
    DEMA = "dema"
    TEMA = "tema"
    HMA = "hma"
    ZLEMA = "zlema"
    T3 = "t3"
    VIDYA = "vidya"
    # Momentum
    RSI = "rsi"
    STOCH = "stoch"
    STOCH_RSI = "stoch_rsi"
    WILLIAMS_R = "williams_r"
    CCI = "cci"
    MFI = "mfi"
    ROC = "roc"
    MOMENTUM = "momentum"
    TRIX = "trix"
    CMO = "cmo"
    MACD = "macd"
    AWESOME = "awesome"
    ULTIMATE = "ultimate"
    # Trend strength / volatility
    ADX = "adx"
    ATR = "atr"
    BOLLINGER = "bollinger"
    KELTNER = "keltner"
    DONCHIAN = "donchian"
    # Volume
    OBV = "obv"
    VWAP = "vwap"
    CMF = "cmf"
    VOLUME_OSC = "volume_osc"
    VOLUME_ROC = "volume_roc"


@dataclass
class IndicatorParam:
    """Parameter specification for an indicator."""

    name: str
    param_type: type
    default: Any
    description: str = ""
    min_value: Optional[Union[int, float]] = None
    max_value: Optional[Union[int, float]] = None

    def coerce(self, value: Any) -> Any:
        """Convert a value to the parameter type.

        Raises:
            InvalidParameter: If the value has the wrong type or is out of range
        """
        if isinstance(value, bool):
            raise InvalidParameter(f"{self.name} must be a number, got {value!r}")
        if self.param_type is int and isinstance(value, float) and not value.is_integer():
            raise InvalidParameter(f"{self.name} must be an integer, got {value!r}")
        try:
            value = self.param_type(value)
        except (ValueError, TypeError):
            raise InvalidParameter(
                f"Invalid value {value!r} for parameter {self.name} "
                f"(expected {self.param_type.__name__})"
            ) from None
        if self.param_type is float and not math.isfinite(value):
            raise InvalidParameter(f"{self.name} must be finite, got {value}")

        if self.min_value is not None and value < self.min_value:
            raise InvalidParameter(f"{self.name} must be >= {self.min_value}, got {value}")
        if self.max_value is not None and value > self.max_value:
            raise InvalidParameter(f"{self.name} must be <= {self.max_value}, got {value}")
        return value

    def validate(self, value: Any) -> bool:
        """Validate a parameter value."""
        try:
            self.coerce(value)
        except InvalidParameter:
            return False
        return True


def period_param(default: int, minimum: int = 1, name: str = "period") -> IndicatorParam:
    return IndicatorParam(name, int, default, "Lookback period", min_value=minimum)


FAST_PARAM = IndicatorParam("fast_period", int, 12, "Fast lookback period", min_value=1)
SLOW_PARAM = IndicatorParam("slow_period", int, 26, "Slow lookback period", min_value=1)
SIGNAL_PARAM = IndicatorParam("signal_period", int, 9, "Signal line period", min_value=1)

STD_DEV_PARAM = IndicatorParam(
    name="std_dev_multiplier",
    param_type=float,
    default=2.0,
    description="Band width in standard deviations (or ATRs)",
)

VOLUME_FACTOR_PARAM = IndicatorParam(
    name="volume_factor",
    param_type=float,
    default=0.7,
    description="T3 volume factor",
    min_value=0.0,
    max_value=1.0,
)

ALPHA_PARAM = IndicatorParam(
    name="alpha",
    param_type=float,
    default=0.2,
    description="VIDYA smoothing factor",
    max_value=1.0,
)


def _with_default(param: IndicatorParam, default) -> IndicatorParam:
    return IndicatorParam(
        param.name, param.param_type, default, param.description,
        param.min_value, param.max_value,
    )


CLOSE = ("close",)
HIGH_LOW = ("high", "low")
HLC = ("high", "low", "close")
HLCV = ("high", "low", "close", "volume")
BANDS = ("upper", "middle", "lower")


@dataclass(frozen=True)
class FamilySpec:
    """Static shape of an indicator family.

    Attributes:
        inputs: Bar fields read, in the column order the pipeline expects
        params: Parameters in positional order (used by "EMA_13" parsing)
        outputs: Output line names
    """

    inputs: tuple[str, ...]
    params: tuple[IndicatorParam, ...]
    outputs: tuple[str, ...] = ("value",)

    @property
    def param_names(self) -> tuple[str, ...]:
        return tuple(p.name for p in self.params)


FAMILY_SPECS: dict[IndicatorFamily, FamilySpec] = {
    IndicatorFamily.SMA: FamilySpec(CLOSE, (period_param(20),)),
    IndicatorFamily.EMA: FamilySpec(CLOSE, (period_param(20),)),
    IndicatorFamily.WMA: FamilySpec(CLOSE, (period_param(20),)),
    IndicatorFamily.DEMA: FamilySpec(CLOSE, (period_param(20),)),
    IndicatorFamily.TEMA: FamilySpec(CLOSE, (period_param(20),)),
    IndicatorFamily.HMA: FamilySpec(CLOSE, (period_param(14, minimum=2),)),
    IndicatorFamily.ZLEMA: FamilySpec(CLOSE, (period_param(14),)),
    IndicatorFamily.T3: FamilySpec(CLOSE, (period_param(14), VOLUME_FACTOR_PARAM)),
    IndicatorFamily.VIDYA: FamilySpec(CLOSE, (period_param(14), ALPHA_PARAM)),
    IndicatorFamily.RSI: FamilySpec(CLOSE, (period_param(14),)),
    IndicatorFamily.STOCH: FamilySpec(
        HLC, (period_param(14), _with_default(SIGNAL_PARAM, 3)), ("k", "d")
    ),
    IndicatorFamily.STOCH_RSI: FamilySpec(
        CLOSE, (period_param(14), _with_default(SIGNAL_PARAM, 3)), ("k", "d")
    ),
    IndicatorFamily.WILLIAMS_R: FamilySpec(HLC, (period_param(14),)),
    IndicatorFamily.CCI: FamilySpec(HLC, (period_param(20),)),
    IndicatorFamily.MFI: FamilySpec(HLCV, (period_param(14),)),
    IndicatorFamily.ROC: FamilySpec(CLOSE, (period_param(12),)),
    IndicatorFamily.MOMENTUM: FamilySpec(CLOSE, (period_param(10),)),
    IndicatorFamily.TRIX: FamilySpec(CLOSE, (period_param(14),)),
    IndicatorFamily.CMO: FamilySpec(CLOSE, (period_param(14),)),
    IndicatorFamily.MACD: FamilySpec(
        CLOSE, (FAST_PARAM, SLOW_PARAM, SIGNAL_PARAM), ("macd", "signal", "histogram")
    ),
    IndicatorFamily.AWESOME: FamilySpec(
        HIGH_LOW, (_with_default(FAST_PARAM, 5), _with_default(SLOW_PARAM, 34))
    ),
    IndicatorFamily.ULTIMATE: FamilySpec(
        HLC, (_with_default(FAST_PARAM, 7), period_param(14), _with_default(SLOW_PARAM, 28))
    ),
    IndicatorFamily.ADX: FamilySpec(HLC, (period_param(14),)),
    IndicatorFamily.ATR: FamilySpec(HLC, (period_param(14),)),
    IndicatorFamily.BOLLINGER: FamilySpec(CLOSE, (period_param(20), STD_DEV_PARAM), BANDS),
    IndicatorFamily.KELTNER: FamilySpec(HLC, (period_param(20), STD_DEV_PARAM), BANDS),
    IndicatorFamily.DONCHIAN: FamilySpec(HIGH_LOW, (period_param(20),), BANDS),
    IndicatorFamily.OBV: FamilySpec(("close", "volume"), ()),
    IndicatorFamily.VWAP: FamilySpec(HLCV, ()),
    IndicatorFamily.CMF: FamilySpec(HLCV, (period_param(20),)),
    IndicatorFamily.VOLUME_OSC: FamilySpec(
        ("volume",), (_with_default(FAST_PARAM, 5), _with_default(SLOW_PARAM, 10))
    ),
    IndicatorFamily.VOLUME_ROC: FamilySpec(("volume",), (period_param(14),)),
}


def check_cross_params(family: IndicatorFamily, params: dict[str, Any]) -> None:
    """Rules spanning more than one parameter.

    Raises:
        InvalidParameter: If the combination is not computable
    """
    fast = params.get("fast_period")
    slow = params.get("slow_period")
    if fast is not None and slow is not None and fast >= slow:
        raise InvalidParameter(f"fast_period ({fast}) must be < slow_period ({slow})")

    if family is IndicatorFamily.MACD and params["signal_period"] >= slow:
        raise InvalidParameter(
            f"signal_period ({params['signal_period']}) must be < slow_period ({slow})"
        )
    if family is IndicatorFamily.ULTIMATE and not fast < params["period"] < slow:
        raise InvalidParameter(
            f"Ultimate Oscillator windows must satisfy fast < period < slow, "
            f"got {fast}, {params['period']}, {slow}"
        )
    if "std_dev_multiplier" in params and params["std_dev_multiplier"] <= 0:
        raise InvalidParameter(
            f"std_dev_multiplier must be > 0, got {params['std_dev_multiplier']}"
        )
    if "alpha" in params and params["alpha"] <= 0:
        raise InvalidParameter(f"alpha must be in (0, 1], got {params['alpha']}")


# =============================================================================
# DESCRIPTOR
# =============================================================================


@dataclass(frozen=True)
class IndicatorDescriptor:
    """Static description of one selectable indicator.

    Attributes:
        id: Identifier used in requests (e.g. "RSI_14", "BB_20_2")
        label: Display label
        family: Computation family
        category: Category classification
        requires_volume: Bars must carry volume
        requires_high_low: Bars must carry high and low
        default_period: Headline period shown to users
        defaults: Parameter defaults overriding the family defaults
        description: Human-readable description
    """

    id: str
    label: str
    family: IndicatorFamily
    category: IndicatorCategory
    requires_volume: bool = False
    requires_high_low: bool = False
    default_period: Optional[int] = None
    defaults: dict[str, Any] = field(default_factory=dict, hash=False, compare=False)
    description: str = ""

    def __post_init__(self):
        """Derive field requirements from the family and validate defaults."""
        inputs = self.family_spec.inputs
        # Configuration may add requirements but never remove the family's own
        object.__setattr__(self, "requires_volume", self.requires_volume or "volume" in inputs)
        object.__setattr__(
            self, "requires_high_low",
            self.requires_high_low or "high" in inputs or "low" in inputs,
        )
        resolved = self.validate_params()
        if self.default_period is None:
            object.__setattr__(
                self, "default_period",
                resolved.get("period", resolved.get("fast_period")),
            )

    @property
    def family_spec(self) -> FamilySpec:
        return FAMILY_SPECS[self.family]

    @property
    def params(self) -> tuple[IndicatorParam, ...]:
        return self.family_spec.params

    @property
    def inputs(self) -> tuple[str, ...]:
        return self.family_spec.inputs

    @property
    def outputs(self) -> tuple[str, ...]:
        return self.family_spec.outputs

    @property
    def required_fields(self) -> tuple[str, ...]:
        """Optional bar fields this indicator cannot run without."""
        required = []
        if self.requires_high_low:
            required.extend(["high", "low"])
        if self.requires_volume:
            required.append("volume")
        return tuple(required)

    def get_default_params(self) -> dict[str, Any]:
        """Get dictionary of parameter names to default values."""
        result = {p.name: p.default for p in self.params}
        result.update(self.defaults)
        return result

    def validate_params(self, **overrides) -> dict[str, Any]:
        """Validate and fill in default parameters.

        Args:
            **overrides: Parameter values to validate; None means "use default"

        Returns:
            Dictionary of validated parameters with defaults filled in

        Raises:
            InvalidParameter: If a parameter is unknown, invalid, or the
                combination is not computable
        """
        specs = {p.name: p for p in self.params}
        values = self.get_default_params()
        values.update({k: v for k, v in overrides.items() if v is not None})

        result = {}
        for key, value in values.items():
            param_spec = specs.get(key)
            if param_spec is None:
                raise InvalidParameter(
                    f"{self.id} has no parameter '{key}' "
                    f"(expected one of {sorted(specs) or 'none'})",
                    self.id,
                )
            try:
                result[key] = param_spec.coerce(value)
            except InvalidParameter as e:
                raise InvalidParameter(str(e), self.id) from None

        try:
            check_cross_params(self.family, result)
        except InvalidParameter as e:
            raise InvalidParameter(str(e), self.id) from None
        return result

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "label": self.label,
            "family": self.family.value,
            "category": self.category.value,
            "requires_volume": self.requires_volume,
            "requires_high_low": self.requires_high_low,
            "default_period": self.default_period,
            "defaults": dict(self.defaults),
            "description": self.description,
            "params": [
                {
                    "name": p.name,
                    "type": p.param_type.__name__,
                    "default": self.get_default_params()[p.name],
                    "description": p.description,
                }
                for p in self.params
            ],
            "outputs": list(self.outputs),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "IndicatorDescriptor":
        """Create from dictionary (one entry of indicators.yml)."""
        return cls(
            id=str(data["id"]),
            label=data.get("label", str(data["id"])),
            family=IndicatorFamily(data["family"]),
            category=IndicatorCategory(data["category"]),
            requires_volume=data.get("requires_volume", False),
            requires_high_low=data.get("requires_high_low", False),
            default_period=data.get("default_period"),
            defaults=dict(data.get("defaults") or {}),
            description=data.get("description", ""),
        )


# =============================================================================
# REQUEST
# =============================================================================


# camelCase names used by chart configurations
_REQUEST_FIELD_ALIASES = {
    "descriptorId": "descriptor_id",
    "id": "descriptor_id",
    "fastPeriod": "fast_period",
    "slowPeriod": "slow_period",
    "signalPeriod": "signal_period",
    "stdDevMultiplier": "std_dev_multiplier",
    "volumeFactor": "volume_factor",
}


@dataclass(frozen=True)
class IndicatorRequest:
    """A request for one descriptor with optional parameter overrides.

    Attributes:
        descriptor_id: Registered id or alias
        key: Name of the result entry, defaults to descriptor_id
    """

    descriptor_id: str
    period: Optional[int] = None
    fast_period: Optional[int] = None
    slow_period: Optional[int] = None
    signal_period: Optional[int] = None
    std_dev_multiplier: Optional[float] = None
    volume_factor: Optional[float] = None
    alpha: Optional[float] = None
    key: Optional[str] = None

    @property
    def result_key(self) -> str:
        return self.key or self.descriptor_id

    def overrides(self) -> dict[str, Any]:
        """Parameters explicitly set on this request."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name not in ("descriptor_id", "key") and getattr(self, f.name) is not None
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "IndicatorRequest":
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for name, value in data.items():
            name = _REQUEST_FIELD_ALIASES.get(name, name)
            if name not in known:
                raise InvalidParameter(f"Unknown request field '{name}'")
            kwargs[name] = value
        if not kwargs.get("descriptor_id"):
            raise InvalidParameter(f"Indicator request has no descriptor id: {data}")
        return cls(**kwargs)
