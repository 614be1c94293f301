"""
Snapshot of multivariate sensor readings.

A Snapshot is one sample of every monitored parameter plus a monotonically
increasing sequence index (logical time). Snapshots are immutable once
produced; derived values (z-scores, flags, joint statistic) are computed by
the evaluators and never stored on the input.
"""

import math
import numbers
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Dict, Any

from .exceptions import MissingReadingError, InvalidReadingError


@dataclass(frozen=True)
class Snapshot:
    """
    One multivariate sample.

    Attributes:
        sequence: Logical time index, increasing along the stream
        readings: Read-only mapping of parameter key -> reading
    """
    sequence: int
    readings: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self):
        # Freeze the readings so callers cannot mutate a recorded snapshot
        object.__setattr__(self, "readings", MappingProxyType(dict(self.readings)))

    def __getitem__(self, key: str) -> float:
        return self.readings[key]

    def __contains__(self, key: str) -> bool:
        return key in self.readings

    def reading(self, key: str) -> float:
        """
        Get a validated reading.

        Raises:
            MissingReadingError: If no reading exists for key
            InvalidReadingError: If the reading is not a finite number
        """
        if key not in self.readings:
            raise MissingReadingError(key, self.sequence)
        value = self.readings[key]
        if isinstance(value, bool) or not isinstance(value, numbers.Real):
            raise InvalidReadingError(key, value, self.sequence)
        if not math.isfinite(value):
            raise InvalidReadingError(key, value, self.sequence)
        return float(value)

    def replace(self, key: str, value: float) -> "Snapshot":
        """Return a copy with one reading replaced."""
        readings = dict(self.readings)
        readings[key] = value
        return Snapshot(self.sequence, readings)

    def to_dict(self) -> Dict[str, Any]:
        return {"sequence": self.sequence, "readings": dict(self.readings)}
