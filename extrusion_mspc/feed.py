"""
Simulated snapshot producer for demonstrations and tests.

Readings are drawn around each parameter's nominal mean with uniform noise
of ±1σ. The feed never applies faults itself; fault bias is added by the
stream controller when a fault is injected.

Example:
    >>> feed = SimulatedFeed(default_registry(), seed=42)
    >>> snapshot = feed()
    >>> snapshot.sequence
    1
"""

from typing import Optional, Iterator

import numpy as np

from .parameters import ParameterRegistry, default_registry
from .snapshot import Snapshot


class SimulatedFeed:
    """
    Callable producer of in-control snapshots.

    Args:
        registry: Parameter registry (defaults to the extrusion line)
        seed: Random seed for reproducibility
        noise: Noise half-width in sigma units
        decimals: Readings are rounded to this many decimals
    """

    def __init__(self, registry: ParameterRegistry = None,
                 seed: Optional[int] = None, noise: float = 1.0,
                 decimals: int = 3):
        self.registry = registry or default_registry()
        self.noise = noise
        self.decimals = decimals
        self._seed = seed
        self._rng = np.random.default_rng(seed)
        self._sequence = 0

        keys = self.registry.keys_list
        self._keys = keys
        self._means = np.array([self.registry[k].mean for k in keys])
        self._stds = np.array([self.registry[k].std for k in keys])

    @property
    def sequence(self) -> int:
        """Sequence index of the last produced snapshot."""
        return self._sequence

    def sample(self) -> np.ndarray:
        """Draw one vector of readings in registry order."""
        u = self._rng.uniform(-1.0, 1.0, size=len(self._keys))
        values = self._means + u * self.noise * self._stds
        return np.round(values, self.decimals)

    def __call__(self) -> Snapshot:
        self._sequence += 1
        values = self.sample()
        return Snapshot(self._sequence, {k: float(v) for k, v in zip(self._keys, values)})

    def __iter__(self) -> Iterator[Snapshot]:
        while True:
            yield self()

    def reset(self, seed: Optional[int] = None):
        """Restart the sequence and reseed the generator."""
        self._sequence = 0
        self._rng = np.random.default_rng(self._seed if seed is None else seed)
