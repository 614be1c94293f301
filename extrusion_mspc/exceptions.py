"""
Exception hierarchy for the extrusion process monitor.

All monitor-specific exceptions inherit from :class:`MonitorError`, so
callers can catch the broad base class or narrow subtypes.

Configuration errors are fatal and raised while loading the parameter
registry or the fault signature library. Input errors are raised per
snapshot and are recoverable: the stream controller rejects the tick and
keeps its previous state.
"""


class MonitorError(Exception):
    """Base exception for all monitor errors."""


class ConfigurationError(MonitorError, ValueError):
    """Invalid parameter definitions, signatures or monitor settings."""


class InputError(MonitorError, ValueError):
    """A snapshot that cannot be evaluated."""


class MissingReadingError(InputError):
    """A snapshot lacks a reading for a registered parameter."""

    def __init__(self, parameter: str, sequence: int = None):
        self.parameter = parameter
        self.sequence = sequence
        where = f" (sequence {sequence})" if sequence is not None else ""
        super().__init__(f"Missing reading for parameter '{parameter}'{where}")


class InvalidReadingError(InputError):
    """A reading is not a finite number."""

    def __init__(self, parameter: str, value, sequence: int = None):
        self.parameter = parameter
        self.value = value
        self.sequence = sequence
        super().__init__(
            f"Invalid reading for parameter '{parameter}': {value!r}"
        )


class SequenceError(InputError):
    """A snapshot sequence index does not increase."""

    def __init__(self, sequence: int, last_sequence: int):
        self.sequence = sequence
        self.last_sequence = last_sequence
        super().__init__(
            f"Snapshot sequence {sequence} does not follow {last_sequence}"
        )


class ControllerStateError(MonitorError, RuntimeError):
    """An operation is not legal in the controller's current state."""


__all__ = [
    "MonitorError",
    "ConfigurationError",
    "InputError",
    "MissingReadingError",
    "InvalidReadingError",
    "SequenceError",
    "ControllerStateError",
]
