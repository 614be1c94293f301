"""
Fault signature library.

A fault signature pairs a named physical failure mode with the contribution
pattern it is expected to produce: a non-negative weight per monitored
parameter, treated as sum-normalized for scoring. Signatures also carry
the diagnosis metadata shown to operators (mechanism, corrective actions,
severity, references) and the injection defaults used by the simulator
(driver parameter, expected shift, duration).

The library is validated once against the parameter registry and is
read-only afterwards.

Example:
    >>> library = default_library()
    >>> library.list_available()
    ['Die Wear', 'Screw Slip', 'Temp Spike', 'Pressure Surge', 'Line Slowdown', 'Thin Wall']
    >>> library.get("Thin Wall").severity
    <Severity.CRITICAL: 4>
"""

import math
from collections.abc import Mapping
from dataclasses import dataclass
from enum import IntEnum
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Any, Tuple

from .constants import FAULT_MODES
from .exceptions import ConfigurationError
from .parameters import ParameterRegistry, default_registry


class Severity(IntEnum):
    """Ordered fault severity levels."""
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4

    @classmethod
    def parse(cls, value) -> "Severity":
        """Accept a Severity, its name (case-insensitive) or its value."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.upper()]
            except KeyError:
                raise ConfigurationError(f"Unknown severity: '{value}'") from None
        try:
            return cls(value)
        except ValueError:
            raise ConfigurationError(f"Unknown severity: {value!r}") from None


@dataclass(frozen=True)
class FaultSignature:
    """
    Named fault archetype.

    Attributes:
        name: Fault name, unique within a library
        param: Primary driver parameter
        delta: Expected shift of the driver parameter (engineering units)
        severity: Severity level
        signature: Expected contribution weight per parameter
        mechanism: Physical explanation of the failure mode
        actions: Ordered corrective-action steps
        references: Citation string
        duration: Default injection length in ticks
        color: Display color
    """
    name: str
    param: str
    delta: float
    severity: Severity
    signature: Mapping[str, float]
    mechanism: str = ""
    actions: Tuple[str, ...] = ()
    references: str = ""
    duration: int = 1
    color: str = ""

    def __post_init__(self):
        object.__setattr__(self, "severity", Severity.parse(self.severity))
        object.__setattr__(self, "signature", MappingProxyType(dict(self.signature)))
        object.__setattr__(self, "actions", tuple(self.actions))

    @classmethod
    def from_dict(cls, data: Mapping) -> "FaultSignature":
        """Build a signature from a catalog entry."""
        try:
            return cls(
                name=data["name"],
                param=data["param"],
                delta=data.get("delta", 0.0),
                severity=data["severity"],
                signature=data["signature"],
                mechanism=data.get("mechanism", ""),
                actions=data.get("actions", ()),
                references=data.get("references", ""),
                duration=data.get("duration", 1),
                color=data.get("color", ""),
            )
        except KeyError as e:
            name = data.get("name", "<unnamed>") if isinstance(data, Mapping) else data
            raise ConfigurationError(
                f"Fault signature '{name}' is missing required field {e}"
            ) from e

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "param": self.param,
            "delta": self.delta,
            "duration": self.duration,
            "severity": self.severity.name,
            "color": self.color,
            "signature": dict(self.signature),
            "mechanism": self.mechanism,
            "actions": list(self.actions),
            "references": self.references,
        }

    def expected(self, key: str) -> float:
        """Expected weight for a parameter (0 if absent)."""
        return self.signature.get(key, 0.0)

    def normalized(self) -> Dict[str, float]:
        """Signature weights divided by their sum (all zeros if sum is zero)."""
        total = sum(self.signature.values())
        if total == 0:
            return {key: 0.0 for key in self.signature}
        return {key: w / total for key, w in self.signature.items()}


class SignatureLibrary:
    """
    Read-only, validated catalog of fault signatures.

    Catalog order is preserved and is the tie-break order for diagnosis.

    Raises:
        ConfigurationError: On duplicate names, unknown parameters,
            negative or non-finite weights, or invalid durations
    """

    def __init__(self, signatures: Iterable[FaultSignature],
                 registry: ParameterRegistry):
        catalog: Dict[str, FaultSignature] = {}
        for sig in signatures:
            self._validate(sig, registry)
            if sig.name in catalog:
                raise ConfigurationError(f"Duplicate fault signature: '{sig.name}'")
            catalog[sig.name] = sig
        self._catalog = catalog
        self._registry = registry

    @staticmethod
    def _validate(sig: FaultSignature, registry: ParameterRegistry):
        if sig.param not in registry:
            raise ConfigurationError(
                f"Fault signature '{sig.name}': unknown driver parameter '{sig.param}'"
            )
        for key, weight in sig.signature.items():
            if key not in registry:
                raise ConfigurationError(
                    f"Fault signature '{sig.name}': unknown parameter '{key}'"
                )
            if not isinstance(weight, (int, float)) or not math.isfinite(weight):
                raise ConfigurationError(
                    f"Fault signature '{sig.name}': weight for '{key}' must be a finite number"
                )
            if weight < 0:
                raise ConfigurationError(
                    f"Fault signature '{sig.name}': negative weight {weight} for '{key}'"
                )
        if not isinstance(sig.duration, int) or sig.duration < 1:
            raise ConfigurationError(
                f"Fault signature '{sig.name}': duration must be a positive integer"
            )

    @classmethod
    def from_list(cls, entries: Iterable[Mapping],
                  registry: ParameterRegistry) -> "SignatureLibrary":
        """Build a library from catalog dictionaries."""
        return cls([FaultSignature.from_dict(entry) for entry in entries], registry)

    def __iter__(self) -> Iterator[FaultSignature]:
        return iter(self._catalog.values())

    def __len__(self) -> int:
        return len(self._catalog)

    def __contains__(self, name: str) -> bool:
        return name in self._catalog

    def __repr__(self) -> str:
        return f"SignatureLibrary({list(self._catalog)})"

    @property
    def registry(self) -> ParameterRegistry:
        return self._registry

    def get(self, name: str) -> FaultSignature:
        """
        Get a signature by name.

        Raises:
            KeyError: If no signature has that name
        """
        if name not in self._catalog:
            available = ", ".join(self._catalog.keys())
            raise KeyError(f"Unknown fault: '{name}'. Available: {available}")
        return self._catalog[name]

    def list_available(self) -> List[str]:
        """Signature names in catalog order."""
        return list(self._catalog.keys())

    def list_by_severity(self, severity) -> List[str]:
        """Names of signatures at the given severity level."""
        level = Severity.parse(severity)
        return [name for name, sig in self._catalog.items() if sig.severity == level]

    def list_by_parameter(self, key: str) -> List[str]:
        """Names of signatures driven by the given parameter."""
        return [name for name, sig in self._catalog.items() if sig.param == key]

    def get_info(self, name: str) -> Dict[str, Any]:
        """Summary information for one signature."""
        sig = self.get(name)
        return {
            "name": sig.name,
            "param": sig.param,
            "severity": sig.severity.name,
            "delta": sig.delta,
            "duration": sig.duration,
            "n_actions": len(sig.actions),
        }

    def list_all_info(self) -> List[Dict[str, Any]]:
        return [self.get_info(name) for name in self._catalog]

    def to_list(self) -> List[Dict[str, Any]]:
        """Serialize to the list accepted by from_list()."""
        return [sig.to_dict() for sig in self._catalog.values()]


def default_library(registry: ParameterRegistry = None) -> SignatureLibrary:
    """The six extrusion failure modes of the built-in catalog."""
    if registry is None:
        registry = default_registry()
    return SignatureLibrary.from_list(FAULT_MODES, registry)
