"""
Parameter registry for monitored process variables.

Each monitored variable is described by an immutable ParameterDefinition
holding its nominal mean, standard deviation and Shewhart control limits.
The ParameterRegistry is a typed, ordered mapping from parameter key to
definition. It is validated once when built and never changes during a run.

Example:
    >>> from extrusion_mspc.parameters import ParameterRegistry, ParameterDefinition
    >>> registry = ParameterRegistry([
    ...     ParameterDefinition.from_sigma("barrel_temp", mean=200.0, std=3.0),
    ... ])
    >>> registry["barrel_temp"].ucl
    209.0
"""

import math
from collections.abc import Mapping
from dataclasses import dataclass, asdict
from typing import Dict, Iterable, Iterator, List, Any

from .constants import PARAMETER_TABLE, SIGMA_LIMIT
from .exceptions import ConfigurationError


@dataclass(frozen=True)
class ParameterDefinition:
    """
    Nominal operating point and control limits for one variable.

    Limits are stored explicitly so they may diverge from the default
    mean ± 3σ band.

    Attributes:
        key: Parameter identifier used in snapshots
        label: Display label
        unit: Engineering unit
        mean: Nominal mean μ
        std: Nominal standard deviation σ
        ucl: Upper control limit
        lcl: Lower control limit
        short: Two-letter tag for compact displays
        color: Display color
    """
    key: str
    label: str
    unit: str
    mean: float
    std: float
    ucl: float
    lcl: float
    short: str = ""
    color: str = ""

    def __post_init__(self):
        for name in ("mean", "std", "ucl", "lcl"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or not math.isfinite(value):
                raise ConfigurationError(
                    f"Parameter '{self.key}': {name} must be a finite number, got {value!r}"
                )
        if self.std <= 0:
            raise ConfigurationError(
                f"Parameter '{self.key}': std must be positive, got {self.std}"
            )
        if self.ucl <= self.lcl:
            raise ConfigurationError(
                f"Parameter '{self.key}': UCL ({self.ucl}) must exceed LCL ({self.lcl})"
            )
        if not self.lcl < self.mean < self.ucl:
            raise ConfigurationError(
                f"Parameter '{self.key}': mean ({self.mean}) must lie between "
                f"LCL ({self.lcl}) and UCL ({self.ucl})"
            )

    @classmethod
    def from_sigma(cls, key: str, mean: float, std: float,
                   label: str = None, unit: str = "", k: float = SIGMA_LIMIT,
                   **kwargs) -> "ParameterDefinition":
        """
        Build a definition with limits at mean ± k·std.

        Args:
            key: Parameter identifier
            mean: Nominal mean
            std: Nominal standard deviation
            label: Display label (defaults to key)
            unit: Engineering unit
            k: Limit width in sigma units
        """
        return cls(
            key=key,
            label=label or key,
            unit=unit,
            mean=mean,
            std=std,
            ucl=mean + k * std,
            lcl=mean - k * std,
            **kwargs,
        )

    def z_score(self, value: float) -> float:
        """Standardized deviation (value - mean) / std."""
        return (value - self.mean) / self.std

    def format_value(self, value: float) -> str:
        """Format a reading with its unit (three decimals for mm)."""
        decimals = 3 if self.unit == "mm" else 1
        return f"{value:.{decimals}f}{self.unit}"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ParameterRegistry(Mapping):
    """
    Immutable ordered mapping of parameter key to ParameterDefinition.

    Iteration follows registration order, which is also the order used for
    summing the joint statistic and building contribution vectors.
    """

    def __init__(self, definitions: Iterable[ParameterDefinition]):
        params: Dict[str, ParameterDefinition] = {}
        for definition in definitions:
            if not isinstance(definition, ParameterDefinition):
                raise ConfigurationError(
                    f"Expected ParameterDefinition, got {type(definition).__name__}"
                )
            if definition.key in params:
                raise ConfigurationError(f"Duplicate parameter key: '{definition.key}'")
            params[definition.key] = definition

        if not params:
            raise ConfigurationError("Parameter registry must not be empty")

        self._params = params

    def __getitem__(self, key: str) -> ParameterDefinition:
        return self._params[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._params)

    def __len__(self) -> int:
        return len(self._params)

    def __repr__(self) -> str:
        return f"ParameterRegistry({list(self._params)})"

    @property
    def keys_list(self) -> List[str]:
        """Parameter keys in registry order."""
        return list(self._params)

    @property
    def degrees_of_freedom(self) -> int:
        """Degrees of freedom of the joint statistic."""
        return len(self._params)

    @classmethod
    def from_dict(cls, data: Mapping) -> "ParameterRegistry":
        """
        Build a registry from a mapping of key -> definition fields.

        Missing ``ucl``/``lcl`` default to mean ± 3σ.

        Example:
            >>> ParameterRegistry.from_dict({
            ...     "p1": {"mean": 0.0, "std": 1.0},
            ... })
            ParameterRegistry(['p1'])
        """
        definitions = []
        for key, fields in data.items():
            if not isinstance(fields, Mapping):
                raise ConfigurationError(f"Parameter '{key}' must be a mapping")
            try:
                mean = fields["mean"]
                std = fields["std"]
            except KeyError as e:
                raise ConfigurationError(
                    f"Parameter '{key}' is missing required field {e}"
                ) from e
            if not all(isinstance(v, (int, float)) for v in (mean, std)):
                raise ConfigurationError(
                    f"Parameter '{key}': mean and std must be numbers"
                )
            definitions.append(ParameterDefinition(
                key=key,
                label=fields.get("label", key),
                unit=fields.get("unit", ""),
                mean=mean,
                std=std,
                ucl=fields.get("ucl", mean + SIGMA_LIMIT * std),
                lcl=fields.get("lcl", mean - SIGMA_LIMIT * std),
                short=fields.get("short", ""),
                color=fields.get("color", ""),
            ))
        return cls(definitions)

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        """Serialize to the mapping accepted by from_dict()."""
        result = {}
        for key, definition in self._params.items():
            fields = definition.to_dict()
            del fields["key"]
            result[key] = fields
        return result


def default_registry() -> ParameterRegistry:
    """Registry for the six monitored extrusion line variables."""
    return ParameterRegistry(
        ParameterDefinition(
            key=key, label=label, unit=unit, mean=mean, std=std,
            ucl=ucl, lcl=lcl, short=short, color=color,
        )
        for key, (label, unit, mean, std, ucl, lcl, short, color)
        in PARAMETER_TABLE.items()
    )
