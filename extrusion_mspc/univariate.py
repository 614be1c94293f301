"""
Univariate Shewhart evaluation of a single reading.

A reading is out of control when it lies strictly beyond its control
limits. A reading exactly at UCL or LCL is in control.
"""

from dataclasses import dataclass

from .parameters import ParameterDefinition


@dataclass(frozen=True)
class UnivariateResult:
    """
    Outcome of a univariate limit check.

    Attributes:
        key: Parameter identifier
        value: Reading that was evaluated
        z: Standardized deviation (value - mean) / std
        out_of_control: True if value > UCL or value < LCL
    """
    key: str
    value: float
    z: float
    out_of_control: bool

    @property
    def direction(self) -> str:
        """HIGH for a positive deviation, LOW otherwise."""
        return "HIGH" if self.z > 0 else "LOW"


def is_out_of_control(value: float, definition: ParameterDefinition) -> bool:
    """True if value lies strictly outside the control limits."""
    return value > definition.ucl or value < definition.lcl


def evaluate_reading(value: float, definition: ParameterDefinition) -> UnivariateResult:
    """
    Evaluate one reading against its parameter definition.

    Args:
        value: Sensor reading
        definition: Parameter definition (std > 0 guaranteed at load time)

    Returns:
        UnivariateResult with z-score and out-of-control flag
    """
    return UnivariateResult(
        key=definition.key,
        value=value,
        z=definition.z_score(value),
        out_of_control=is_out_of_control(value, definition),
    )
