"""
Decomposition of the joint statistic into per-parameter contributions.

Each parameter contributes its squared standardized deviation zᵢ², so the
contributions sum to the joint statistic exactly (Mason, Tracy & Young,
1995, under a diagonal covariance model).

Example:
    >>> vector = decompose(snapshot, registry)
    >>> vector.total == joint_statistic(snapshot, registry)
    True
    >>> vector.top(1)[0].key
    'die_pressure'
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional

from .parameters import ParameterRegistry
from .snapshot import Snapshot
from .multivariate import standardized_deviations


@dataclass(frozen=True)
class Contribution:
    """
    One parameter's share of the joint statistic.

    Attributes:
        key: Parameter identifier
        label: Display label
        value: Contribution zᵢ² (non-negative)
        z: Signed standardized deviation, None when built from raw values
    """
    key: str
    label: str
    value: float
    z: Optional[float] = None

    @property
    def direction(self) -> Optional[str]:
        """HIGH if the reading is above nominal, LOW otherwise, None if unknown."""
        if self.z is None:
            return None
        return "HIGH" if self.z > 0 else "LOW"


class ContributionVector(Mapping):
    """
    Mapping of parameter key -> contribution value.

    Iteration follows registry order. Use ranked() for the descending
    ordering used by top-contributor displays.
    """

    def __init__(self, contributions: List[Contribution]):
        self._entries: Dict[str, Contribution] = {c.key: c for c in contributions}

    @classmethod
    def from_values(cls, values: Dict[str, float]) -> "ContributionVector":
        """
        Build a vector from raw values.

        The sign of the deviation cannot be recovered from zᵢ², so entries
        carry ``z=None`` and no direction.
        """
        entries = []
        for key, value in values.items():
            if value < 0:
                raise ValueError(f"Contribution for '{key}' must be non-negative, got {value}")
            entries.append(Contribution(key=key, label=key, value=float(value)))
        return cls(entries)

    def __getitem__(self, key: str) -> float:
        return self._entries[key].value

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        inner = ", ".join(f"{k}={c.value:.4f}" for k, c in self._entries.items())
        return f"ContributionVector({inner})"

    def entry(self, key: str) -> Contribution:
        """Full Contribution record for a parameter."""
        return self._entries[key]

    @property
    def entries(self) -> List[Contribution]:
        """Contributions in registry order."""
        return list(self._entries.values())

    @property
    def total(self) -> float:
        """Sum of contributions (equals the joint statistic)."""
        return sum(c.value for c in self._entries.values())

    def normalized(self) -> Dict[str, float]:
        """
        Contributions divided by their sum.

        Returns all zeros when the sum is zero.
        """
        total = self.total
        if total == 0:
            return {key: 0.0 for key in self._entries}
        return {key: c.value / total for key, c in self._entries.items()}

    def ranked(self) -> List[Contribution]:
        """Contributions sorted descending by value (stable)."""
        return sorted(self._entries.values(), key=lambda c: c.value, reverse=True)

    def top(self, n: int = 3) -> List[Contribution]:
        """The n largest contributors."""
        return self.ranked()[:n]

    def to_dict(self) -> Dict[str, float]:
        return {key: c.value for key, c in self._entries.items()}


def decompose(snapshot: Snapshot, registry: ParameterRegistry) -> ContributionVector:
    """
    Split the joint statistic of a snapshot into per-parameter contributions.

    Args:
        snapshot: Snapshot to decompose
        registry: Parameter registry

    Returns:
        ContributionVector in registry order

    Raises:
        InputError: If a registered parameter has no valid reading
    """
    z_scores = standardized_deviations(snapshot, registry)
    return ContributionVector([
        Contribution(key=key, label=registry[key].label, value=z * z, z=z)
        for key, z in z_scores.items()
    ])
