"""
Reconstruction-based contribution (RBC) analysis.

For each parameter k, the reading xₖ is reconstructed to its nominal mean μₖ
with every other reading unchanged, and the joint statistic is recomputed.
The RBC is the resulting drop:

    RBCₖ = S(x) - S(x with xₖ := μₖ)

With the diagonal covariance model in :mod:`extrusion_mspc.multivariate`,
RBCₖ reduces algebraically to zₖ², the same value the contribution
decomposition reports. Computed as a difference of two sums it agrees with
zₖ² to floating-point rounding, not bit for bit. The
recompute-with-substitution form is kept so that a correlated statistic
can be passed in through ``statistic`` without changing this module.
"""

from dataclasses import dataclass
from typing import Callable, List, Dict

from .parameters import ParameterRegistry
from .snapshot import Snapshot
from .multivariate import joint_statistic

StatisticFn = Callable[[Snapshot, ParameterRegistry], float]


@dataclass(frozen=True)
class ReconstructionEntry:
    """
    Counterfactual drop in the joint statistic for one parameter.

    Attributes:
        key: Parameter identifier
        label: Display label
        rbc: t2_full - t2_without
        t2_full: Joint statistic of the original snapshot
        t2_without: Joint statistic with this parameter at nominal
    """
    key: str
    label: str
    rbc: float
    t2_full: float
    t2_without: float


def reconstruct(snapshot: Snapshot, registry: ParameterRegistry,
                statistic: StatisticFn = joint_statistic) -> List[ReconstructionEntry]:
    """
    Compute the RBC of every parameter.

    Args:
        snapshot: Snapshot to analyze
        registry: Parameter registry
        statistic: Joint statistic function (defaults to the diagonal model)

    Returns:
        ReconstructionEntry list sorted descending by RBC (stable)

    Raises:
        InputError: If a registered parameter has no valid reading
    """
    t2_full = statistic(snapshot, registry)

    entries = []
    for key, definition in registry.items():
        reconstructed = snapshot.replace(key, definition.mean)
        t2_without = statistic(reconstructed, registry)
        entries.append(ReconstructionEntry(
            key=key,
            label=definition.label,
            rbc=t2_full - t2_without,
            t2_full=t2_full,
            t2_without=t2_without,
        ))

    return sorted(entries, key=lambda e: e.rbc, reverse=True)


def reconstruction_vector(snapshot: Snapshot, registry: ParameterRegistry,
                          statistic: StatisticFn = joint_statistic) -> Dict[str, float]:
    """RBC values keyed by parameter, in registry order."""
    by_key = {e.key: e.rbc for e in reconstruct(snapshot, registry, statistic)}
    return {key: by_key[key] for key in registry}
