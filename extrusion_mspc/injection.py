"""
Simulated fault injection.

An injected fault biases the next N snapshots fed to the stream controller.
The bias is deterministic: the signature's expected shift, scaled by a
magnitude factor, is added to the driver parameter. It is a test and
demonstration aid, not part of detection.
"""

from dataclasses import dataclass, field
from typing import Dict, Any

from .signatures import FaultSignature
from .snapshot import Snapshot


@dataclass
class FaultInjection:
    """
    An armed fault and its countdown.

    Attributes:
        signature: Fault being simulated
        duration: Number of snapshots the fault biases
        magnitude: Scale applied to the signature's expected shift
        remaining: Snapshots still to be biased
        injected_at: Controller tick count when the fault was armed
    """
    signature: FaultSignature
    duration: int
    magnitude: float = 1.0
    remaining: int = field(default=0)
    injected_at: int = 0

    def __post_init__(self):
        if self.duration < 1:
            raise ValueError(f"Fault duration must be >= 1, got {self.duration}")
        if self.remaining == 0:
            self.remaining = self.duration

    @property
    def name(self) -> str:
        return self.signature.name

    @property
    def bias(self) -> float:
        """Additive shift applied to the driver parameter."""
        return self.signature.delta * self.magnitude

    @property
    def is_expired(self) -> bool:
        return self.remaining <= 0

    def apply(self, snapshot: Snapshot) -> Snapshot:
        """
        Return a copy of snapshot with the bias added to the driver reading.

        The driver reading is validated before it is biased, so a fault
        never turns an invalid reading into a valid one.

        Raises:
            MissingReadingError: If the snapshot has no driver reading
            InvalidReadingError: If the driver reading is not a finite number
        """
        param = self.signature.param
        return snapshot.replace(param, snapshot.reading(param) + self.bias)

    def get_info(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "param": self.signature.param,
            "severity": self.signature.severity.name,
            "bias": self.bias,
            "duration": self.duration,
            "remaining": self.remaining,
            "injected_at": self.injected_at,
        }
