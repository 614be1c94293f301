"""
Joint (T²-equivalent) out-of-control statistic.

The joint statistic is the sum of squared standardized deviations over all
monitored parameters:

    S = Σᵢ zᵢ²,   zᵢ = (xᵢ - μᵢ) / σᵢ

This is the generalized squared distance from the nominal operating point
under a diagonal covariance model, i.e. it assumes the parameters are
uncorrelated. Under that model S follows a chi-squared distribution with
one degree of freedom per parameter, which is where the joint control
limit comes from.

Example:
    >>> from extrusion_mspc.parameters import default_registry
    >>> from extrusion_mspc.snapshot import Snapshot
    >>> registry = default_registry()
    >>> nominal = Snapshot(1, {k: p.mean for k, p in registry.items()})
    >>> joint_statistic(nominal, registry)
    0.0
"""

from dataclasses import dataclass
from typing import Dict, List

from scipy import stats

from .constants import T2_UCL
from .parameters import ParameterRegistry
from .snapshot import Snapshot
from .univariate import UnivariateResult, evaluate_reading


def standardized_deviations(snapshot: Snapshot,
                            registry: ParameterRegistry) -> Dict[str, float]:
    """
    Compute z for every registered parameter, in registry order.

    Raises:
        MissingReadingError: If the snapshot lacks a registered parameter
        InvalidReadingError: If a reading is not a finite number
    """
    return {
        key: definition.z_score(snapshot.reading(key))
        for key, definition in registry.items()
    }


def squared_deviations(snapshot: Snapshot,
                       registry: ParameterRegistry) -> Dict[str, float]:
    """Compute z² for every registered parameter, in registry order."""
    return {
        key: z * z
        for key, z in standardized_deviations(snapshot, registry).items()
    }


def joint_statistic(snapshot: Snapshot, registry: ParameterRegistry) -> float:
    """
    Joint statistic S = Σ zᵢ² for a snapshot.

    Terms are summed in registry order so the total matches the sum of a
    contribution vector built from the same snapshot exactly.
    """
    return sum(squared_deviations(snapshot, registry).values())


def chi2_control_limit(dof: int, confidence: float = 0.95) -> float:
    """
    Chi-squared upper control limit for the joint statistic.

    Args:
        dof: Degrees of freedom (number of monitored parameters)
        confidence: Confidence level, e.g. 0.95 for alpha = 0.05

    Returns:
        The chi-squared quantile at the given confidence
    """
    if dof < 1:
        raise ValueError(f"Degrees of freedom must be >= 1, got {dof}")
    if not 0.0 < confidence < 1.0:
        raise ValueError(f"Confidence must be in (0, 1), got {confidence}")
    return float(stats.chi2.ppf(confidence, dof))


@dataclass(frozen=True)
class SnapshotEvaluation:
    """
    Derived view of a snapshot.

    Attributes:
        snapshot: The evaluated snapshot (after any fault bias)
        univariate: Per-parameter results, in registry order
        t2: Joint statistic
        t2_ucl: Joint control limit used
        t2_anomaly: True if t2 > t2_ucl
    """
    snapshot: Snapshot
    univariate: Dict[str, UnivariateResult]
    t2: float
    t2_ucl: float
    t2_anomaly: bool

    @property
    def sequence(self) -> int:
        return self.snapshot.sequence

    @property
    def out_of_control(self) -> List[str]:
        """Keys of parameters outside their control limits."""
        return [key for key, r in self.univariate.items() if r.out_of_control]

    @property
    def is_anomalous(self) -> bool:
        """True if any univariate or the joint check failed."""
        return self.t2_anomaly or bool(self.out_of_control)

    def z(self, key: str) -> float:
        return self.univariate[key].z

    def to_dict(self) -> Dict:
        return {
            "sequence": self.sequence,
            "readings": dict(self.snapshot.readings),
            "z": {key: r.z for key, r in self.univariate.items()},
            "anomaly": {key: r.out_of_control for key, r in self.univariate.items()},
            "t2": self.t2,
            "t2_ucl": self.t2_ucl,
            "t2_anomaly": self.t2_anomaly,
        }


def evaluate_snapshot(snapshot: Snapshot, registry: ParameterRegistry,
                      joint_ucl: float = T2_UCL) -> SnapshotEvaluation:
    """
    Run the univariate checks and the joint statistic on one snapshot.

    Args:
        snapshot: Snapshot to evaluate
        registry: Parameter registry
        joint_ucl: Joint control limit

    Returns:
        SnapshotEvaluation

    Raises:
        InputError: If a registered parameter has no valid reading
    """
    univariate = {
        key: evaluate_reading(snapshot.reading(key), definition)
        for key, definition in registry.items()
    }
    t2 = sum(r.z * r.z for r in univariate.values())
    return SnapshotEvaluation(
        snapshot=snapshot,
        univariate=univariate,
        t2=t2,
        t2_ucl=joint_ucl,
        t2_anomaly=t2 > joint_ucl,
    )
