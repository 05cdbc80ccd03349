"""Read-only registry of indicator descriptors.

The registry is filled once, from the packaged `indicators.yml` table (or
a caller-supplied one), and frozen. After that it is safe to share between
threads: every method is a lookup.

Usage:
    registry = get_registry()
    descriptor = registry.resolve("rsi_14")     # case-insensitive
    request = registry.parse_request("EMA_13")  # EMA family, period 13
"""

import logging
import threading
from pathlib import Path
from typing import Any, Iterator, Optional, Union

import yaml

from .errors import InvalidParameter, RegistryFrozenError, UnknownIndicator
from .spec import (
    IndicatorCategory,
    IndicatorDescriptor,
    IndicatorFamily,
    IndicatorRequest,
)


logger = logging.getLogger(__name__)


DEFAULT_CONFIG = Path(__file__).parent / "indicators.yml"


def _is_number(token: str) -> bool:
    try:
        float(token)
    except ValueError:
        return False
    return True


class IndicatorRegistry:
    """Append-only table of indicator descriptors keyed by id.

    Lookups are case-insensitive and follow aliases. Once `freeze` is
    called, `register` and `add_alias` raise RegistryFrozenError.
    """

    def __init__(self):
        self._descriptors: dict[str, IndicatorDescriptor] = {}
        self._aliases: dict[str, str] = {}
        self._frozen = False

    def __len__(self) -> int:
        return len(self._descriptors)

    def __contains__(self, name: str) -> bool:
        return self.has(name)

    def __iter__(self) -> Iterator[IndicatorDescriptor]:
        return iter(self._descriptors.values())

    def __repr__(self) -> str:
        state = "frozen" if self._frozen else "open"
        return f"IndicatorRegistry({len(self)} indicators, {len(self._aliases)} aliases, {state})"

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> "IndicatorRegistry":
        self._frozen = True
        return self

    def _check_open(self):
        if self._frozen:
            raise RegistryFrozenError("Indicator registry is read-only after initialization")

    def register(self, descriptor: IndicatorDescriptor) -> None:
        """Register an indicator descriptor.

        Args:
            descriptor: IndicatorDescriptor to register

        Raises:
            RegistryFrozenError: If the registry is frozen
            ValueError: If the id (or an alias of that name) is already taken
        """
        self._check_open()
        key = descriptor.id.lower()
        if key in self._descriptors or key in self._aliases:
            raise ValueError(f"Indicator '{descriptor.id}' is already registered")
        self._descriptors[key] = descriptor
        logger.debug(f"Registered indicator: {descriptor.id}")

    def add_alias(self, alias: str, target: str) -> None:
        """Map an alternative name onto a registered id."""
        self._check_open()
        key = alias.lower()
        if key in self._descriptors:
            raise ValueError(f"Alias '{alias}' shadows a registered indicator")
        self._aliases[key] = self.resolve(target).id.lower()

    def get(self, name: str) -> Optional[IndicatorDescriptor]:
        """Get indicator descriptor by id or alias.

        Args:
            name: Indicator id or alias

        Returns:
            IndicatorDescriptor if found, None otherwise
        """
        name_lower = name.lower()

        if name_lower in self._descriptors:
            return self._descriptors[name_lower]

        if name_lower in self._aliases:
            return self._descriptors[self._aliases[name_lower]]

        return None

    def resolve(self, name: str) -> IndicatorDescriptor:
        """Like `get`, but raises UnknownIndicator when absent."""
        descriptor = self.get(name)
        if descriptor is None:
            raise UnknownIndicator(name)
        return descriptor

    def has(self, name: str) -> bool:
        return self.get(name) is not None

    def list_indicators(
        self,
        category: Optional[IndicatorCategory] = None,
        family: Optional[IndicatorFamily] = None,
    ) -> list[str]:
        """List registered indicator ids.

        Args:
            category: Filter by category (optional)
            family: Filter by family (optional)

        Returns:
            Sorted list of indicator ids
        """
        result = []
        for descriptor in self._descriptors.values():
            if category and descriptor.category != category:
                continue
            if family and descriptor.family != family:
                continue
            result.append(descriptor.id)
        return sorted(result, key=str.lower)

    def list_aliases(self) -> dict[str, str]:
        """Get mapping of all aliases to canonical ids."""
        return {alias: self._descriptors[target].id for alias, target in self._aliases.items()}

    def describe(self, name: str) -> dict[str, Any]:
        return self.resolve(name).to_dict()

    def parse_request(self, text: str) -> IndicatorRequest:
        """Parse indicator string notation into a request.

        An exact id or alias gives a request for that descriptor. Otherwise
        the base is the longest registered run of leading non-numeric
        "_"-separated tokens, and every token after it must be a number
        filling the family's parameters in declared order:

        - "EMA_13" -> EMA with period=13
        - "Stoch_14_5" -> Stoch with period=14, signal_period=5
        - "BB_30_2.5" -> BB with period=30, std_dev_multiplier=2.5
        - "MACD_5_35_5" -> MACD with fast=5, slow=35, signal=5

        The request key is always the original text.

        Raises:
            UnknownIndicator: If no prefix names a descriptor
            InvalidParameter: If a token is not a number or there are too many
        """
        text = text.strip()
        if self.has(text):
            return IndicatorRequest(self.resolve(text).id, key=text)

        parts = text.split("_")
        leading = next((i for i, part in enumerate(parts) if _is_number(part)), len(parts))
        for split in range(leading, 0, -1):
            base = self.get("_".join(parts[:split]))
            if base is not None:
                break
        else:
            raise UnknownIndicator(text)

        names = [p.name for p in base.params]
        tokens = parts[split:]
        if len(tokens) > len(names):
            raise InvalidParameter(
                f"{text}: {base.family.value} takes at most {len(names)} parameter(s)", text
            )

        params = {}
        for name, token in zip(names, tokens):
            try:
                params[name] = float(token) if "." in token else int(token)
            except ValueError:
                raise InvalidParameter(f"{text}: '{token}' is not a number", text) from None

        return IndicatorRequest(base.id, key=text, **params)

    def load_from_config(self, config_path: Union[str, Path]) -> int:
        """Load indicator descriptors and aliases from YAML configuration.

        Args:
            config_path: Path to an indicators.yml table

        Returns:
            Number of indicators loaded
        """
        config_path = Path(config_path)
        if not config_path.exists():
            logger.warning(f"Config file not found: {config_path}")
            return 0

        with open(config_path) as f:
            config = yaml.safe_load(f) or {}

        count = 0
        for entry in config.get("indicators") or []:
            if not isinstance(entry, dict):
                logger.error(f"Skipping indicator entry {entry!r}: expected a mapping")
                continue
            try:
                self.register(IndicatorDescriptor.from_dict(entry))
                count += 1
            except (KeyError, TypeError, ValueError) as e:
                logger.error(f"Error loading indicator {entry.get('id', entry)}: {e}")

        for alias, target in (config.get("aliases") or {}).items():
            try:
                self.add_alias(str(alias), str(target))
            except (UnknownIndicator, ValueError) as e:
                logger.error(f"Error loading alias {alias} -> {target}: {e}")

        logger.info(f"Loaded {count} indicators from {config_path.name}")
        return count

    @classmethod
    def from_config(cls, config_path: Union[str, Path] = DEFAULT_CONFIG, freeze: bool = True) -> "IndicatorRegistry":
        """Build a registry from a YAML table, frozen unless asked otherwise."""
        registry = cls()
        registry.load_from_config(config_path)
        if freeze:
            registry.freeze()
        return registry


# Module-level convenience functions

_registry: Optional[IndicatorRegistry] = None
_registry_lock = threading.Lock()


def get_registry() -> IndicatorRegistry:
    """Get the process-wide registry, built from the packaged table on first use.

    Returns:
        Frozen IndicatorRegistry
    """
    global _registry
    if _registry is None:
        with _registry_lock:
            if _registry is None:
                _registry = IndicatorRegistry.from_config(DEFAULT_CONFIG)
    return _registry


def reset_registry() -> None:
    """Drop the process-wide registry so the next access rebuilds it (tests)."""
    global _registry
    with _registry_lock:
        _registry = None


def get_indicator(name: str) -> IndicatorDescriptor:
    return get_registry().resolve(name)


def parse_request(text: str) -> IndicatorRequest:
    """Parse "EMA_13"-style notation against the global registry."""
    return get_registry().parse_request(text)
