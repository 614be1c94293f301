"""
Stream controller for live process monitoring.

The StreamController owns the monitoring state: the bounded history window,
the bounded alarm log, the tick counter and the simulated fault countdown.
It is advanced by a single externally driven tick() call per snapshot; any
timer or clock that sets the cadence lives outside (see
:mod:`extrusion_mspc.runner`).

States:
    IDLE          no data yet, or stopped
    RUNNING       accepting snapshots
    FAULT_ACTIVE  accepting snapshots while a simulated fault biases them

Each accepted tick is atomic: the univariate checks, the joint statistic and
the alarm events are computed first and committed together. A snapshot
that cannot be evaluated is rejected as a whole; the controller keeps its
previous state and tick counter and returns a TickResult with
``accepted=False``.

Example:
    >>> controller = StreamController()
    >>> controller.start()
    >>> controller.inject("Die Wear")
    >>> result = controller.tick(feed())
    >>> controller.diagnose()[0].name
    'Die Wear'
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Optional, List, Tuple, Dict, Any, Callable, Mapping, Union

import numpy as np

from .config import MonitorConfig
from .constants import JOINT_KEY, JOINT_LABEL
from .contribution import ContributionVector, decompose
from .diagnosis import DiagnosisResult, diagnose
from .exceptions import ControllerStateError, InputError, SequenceError
from .injection import FaultInjection
from .multivariate import SnapshotEvaluation, evaluate_snapshot
from .parameters import ParameterRegistry, default_registry
from .reconstruction import ReconstructionEntry, reconstruct
from .signatures import FaultSignature, SignatureLibrary, default_library
from .snapshot import Snapshot

logger = logging.getLogger(__name__)


class ControllerState(Enum):
    """Stream controller states."""
    IDLE = "idle"
    RUNNING = "running"
    FAULT_ACTIVE = "fault_active"


@dataclass(frozen=True)
class AlarmEvent:
    """
    One alarm log entry.

    Attributes:
        sequence: Sequence index of the offending snapshot
        parameter: Parameter key, or JOINT_KEY for the joint statistic
        label: Display label
        value: Offending value (reading or joint statistic)
        formatted: Value formatted for display
    """
    sequence: int
    parameter: str
    label: str
    value: float
    formatted: str

    @property
    def is_joint(self) -> bool:
        return self.parameter == JOINT_KEY

    @property
    def id(self) -> str:
        return f"{self.sequence}-{self.parameter}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sequence": self.sequence,
            "parameter": self.parameter,
            "label": self.label,
            "value": self.value,
            "formatted": self.formatted,
        }


@dataclass(frozen=True)
class TickResult:
    """
    Outcome of one tick() call.

    Attributes:
        accepted: False if the snapshot was rejected
        sequence: Sequence index of the snapshot (None if unknown)
        evaluation: Derived view of the accepted snapshot
        alarms: Alarm events raised by this tick
        fault: Name of the fault that biased this snapshot, if any
        error: The input error for a rejected tick
    """
    accepted: bool
    sequence: Optional[int] = None
    evaluation: Optional[SnapshotEvaluation] = None
    alarms: Tuple[AlarmEvent, ...] = ()
    fault: Optional[str] = None
    error: Optional[InputError] = None

    @property
    def rejected(self) -> bool:
        return not self.accepted

    @property
    def is_anomalous(self) -> bool:
        return self.evaluation is not None and self.evaluation.is_anomalous

    def __repr__(self) -> str:
        if not self.accepted:
            return f"TickResult(rejected, error={self.error})"
        status = "alarm" if self.is_anomalous else "normal"
        return f"TickResult({status}, seq={self.sequence}, alarms={len(self.alarms)})"


class StreamController:
    """
    Single-writer owner of the live monitoring state.

    All state-changing calls (start, stop, reset, inject, tick) are
    serialized by a lock, so at most one tick is in flight at a time.

    Args:
        registry: Parameter registry (defaults to the extrusion line)
        library: Fault signature library (defaults to the built-in catalog)
        config: Monitor settings
    """

    def __init__(self, registry: ParameterRegistry = None,
                 library: SignatureLibrary = None,
                 config: MonitorConfig = None):
        if registry is None:
            registry = library.registry if library is not None else default_registry()
        if library is None:
            library = default_library(registry)
        self.registry = registry
        self.library = library
        self.config = config or MonitorConfig()

        self._lock = threading.RLock()
        self._state = ControllerState.IDLE
        self._history: deque = deque(maxlen=self.config.history_capacity)
        self._alarms: deque = deque(maxlen=self.config.alarm_capacity)
        self._fault: Optional[FaultInjection] = None
        self._tick_count = 0
        self._last_sequence: Optional[int] = None

        # Statistics
        self._alarm_total = 0
        self._rejected_count = 0
        self._last_result: Optional[TickResult] = None

        self._result_callback: Optional[Callable[[TickResult], None]] = None

    # --- State ---

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is not ControllerState.IDLE

    @property
    def tick_count(self) -> int:
        """Number of accepted ticks since the last reset."""
        return self._tick_count

    @property
    def rejected_count(self) -> int:
        return self._rejected_count

    @property
    def active_fault(self) -> Optional[FaultInjection]:
        return self._fault

    @property
    def fault_remaining(self) -> int:
        """Ticks left on the active fault (0 when none)."""
        return self._fault.remaining if self._fault is not None else 0

    # --- Transitions ---

    def start(self):
        """
        IDLE -> RUNNING, or FAULT_ACTIVE if a fault is still armed.

        No-op if already running.
        """
        with self._lock:
            if self._state is not ControllerState.IDLE:
                return
            if self._fault is not None:
                self._state = ControllerState.FAULT_ACTIVE
                logger.info("Resuming fault '%s' with %d ticks remaining",
                            self._fault.name, self._fault.remaining)
            else:
                self._state = ControllerState.RUNNING
            logger.info("Monitoring started at tick %d", self._tick_count)

    def stop(self):
        """
        RUNNING/FAULT_ACTIVE -> IDLE.

        History, alarm log, tick counter and an armed fault with its
        countdown are kept until reset().
        """
        with self._lock:
            if self._state is ControllerState.IDLE:
                return
            self._state = ControllerState.IDLE
            logger.info("Monitoring stopped at tick %d", self._tick_count)

    def reset(self):
        """Any state -> IDLE with history, alarms, fault and counters cleared."""
        with self._lock:
            self._state = ControllerState.IDLE
            self._history.clear()
            self._alarms.clear()
            self._fault = None
            self._tick_count = 0
            self._last_sequence = None
            self._alarm_total = 0
            self._rejected_count = 0
            self._last_result = None
            logger.info("Monitor reset")

    def inject(self, fault: Union[str, FaultSignature], duration: int = None,
               magnitude: float = None) -> FaultInjection:
        """
        Arm a simulated fault for the next snapshots.

        Re-injecting while a fault is active replaces it and restarts the
        countdown.

        Args:
            fault: Signature or signature name from the library
            duration: Number of snapshots to bias (defaults to signature.duration)
            magnitude: Scale of the shift (defaults to config.fault_magnitude_scale)

        Returns:
            The armed FaultInjection

        Raises:
            ControllerStateError: If the controller is IDLE
            KeyError: If the fault name is not in the library
        """
        with self._lock:
            if self._state is ControllerState.IDLE:
                raise ControllerStateError("Cannot inject a fault while IDLE; call start() first")

            signature = self.library.get(fault) if isinstance(fault, str) else fault
            injection = FaultInjection(
                signature=signature,
                duration=duration if duration is not None else signature.duration,
                magnitude=(magnitude if magnitude is not None
                           else self.config.fault_magnitude_scale),
                injected_at=self._tick_count,
            )
            if self._fault is not None:
                logger.info("Fault '%s' overridden by '%s'", self._fault.name, injection.name)
            self._fault = injection
            self._state = ControllerState.FAULT_ACTIVE
            logger.info(
                "Injected fault '%s' on %s (bias %+g) for %d ticks",
                injection.name, signature.param, injection.bias, injection.duration,
            )
            return injection

    # --- Tick ---

    def _coerce(self, readings: Union[Snapshot, Mapping[str, float]]) -> Snapshot:
        if isinstance(readings, Snapshot):
            snapshot = readings
        else:
            next_sequence = (self._last_sequence or 0) + 1
            snapshot = Snapshot(next_sequence, readings)
        if self._last_sequence is not None and snapshot.sequence <= self._last_sequence:
            raise SequenceError(snapshot.sequence, self._last_sequence)
        return snapshot

    def _build_alarms(self, evaluation: SnapshotEvaluation) -> List[AlarmEvent]:
        alarms = []
        for key, result in evaluation.univariate.items():
            if result.out_of_control:
                definition = self.registry[key]
                alarms.append(AlarmEvent(
                    sequence=evaluation.sequence,
                    parameter=key,
                    label=definition.label,
                    value=result.value,
                    formatted=definition.format_value(result.value),
                ))
        if evaluation.t2_anomaly:
            alarms.append(AlarmEvent(
                sequence=evaluation.sequence,
                parameter=JOINT_KEY,
                label=JOINT_LABEL,
                value=evaluation.t2,
                formatted=f"{evaluation.t2:.2f}",
            ))
        return alarms

    def tick(self, readings: Union[Snapshot, Mapping[str, float]]) -> TickResult:
        """
        Evaluate one snapshot and record it.

        A plain mapping is wrapped in a Snapshot with the next sequence
        index. An active fault biases the snapshot before evaluation and its
        countdown is decremented after the tick is recorded.

        Args:
            readings: Snapshot or mapping of parameter key -> reading

        Returns:
            TickResult; ``accepted`` is False if the snapshot was rejected

        Raises:
            ControllerStateError: If the controller is IDLE
        """
        with self._lock:
            if self._state is ControllerState.IDLE:
                raise ControllerStateError("Cannot tick while IDLE; call start() first")

            fault = self._fault
            try:
                snapshot = self._coerce(readings)
                if fault is not None:
                    snapshot = fault.apply(snapshot)
                evaluation = evaluate_snapshot(snapshot, self.registry, self.config.joint_ucl)
                alarms = self._build_alarms(evaluation)
            except InputError as e:
                self._rejected_count += 1
                logger.warning("Rejected tick: %s", e)
                result = TickResult(
                    accepted=False,
                    sequence=getattr(e, "sequence", None),
                    error=e,
                )
                self._last_result = result
            else:
                self._commit(evaluation, alarms)
                result = TickResult(
                    accepted=True,
                    sequence=evaluation.sequence,
                    evaluation=evaluation,
                    alarms=tuple(alarms),
                    fault=fault.name if fault is not None else None,
                )
                self._last_result = result
                self._advance_fault()

            callback = self._result_callback

        if callback is not None:
            callback(result)
        return result

    def _commit(self, evaluation: SnapshotEvaluation, alarms: List[AlarmEvent]):
        self._tick_count += 1
        self._last_sequence = evaluation.sequence
        self._history.append(evaluation)
        # Most recent first; within a tick, parameters precede the joint alarm
        for alarm in reversed(alarms):
            self._alarms.appendleft(alarm)
        self._alarm_total += len(alarms)
        for alarm in alarms:
            logger.debug("Alarm at %d: %s = %s", alarm.sequence, alarm.label, alarm.formatted)

    def _advance_fault(self):
        if self._fault is None:
            return
        self._fault.remaining -= 1
        if self._fault.is_expired:
            logger.info("Fault '%s' cleared at tick %d", self._fault.name, self._tick_count)
            self._fault = None
            self._state = ControllerState.RUNNING

    # --- Read-only views ---

    @property
    def latest(self) -> Optional[SnapshotEvaluation]:
        """Evaluation of the most recent accepted snapshot."""
        return self._history[-1] if self._history else None

    @property
    def last_result(self) -> Optional[TickResult]:
        """Result of the most recent tick() call, accepted or not."""
        return self._last_result

    @property
    def history(self) -> Tuple[SnapshotEvaluation, ...]:
        """Bounded history window, oldest first."""
        with self._lock:
            return tuple(self._history)

    @property
    def snapshots(self) -> Tuple[Snapshot, ...]:
        with self._lock:
            return tuple(e.snapshot for e in self._history)

    @property
    def alarm_log(self) -> Tuple[AlarmEvent, ...]:
        """Bounded alarm log, most recent first."""
        with self._lock:
            return tuple(self._alarms)

    def history_array(self) -> np.ndarray:
        """History readings as an (n_snapshots, n_parameters) array."""
        history = self.history
        keys = self.registry.keys_list
        if not history:
            return np.empty((0, len(keys)))
        return np.array([[e.snapshot[k] for k in keys] for e in history])

    def t2_series(self) -> np.ndarray:
        """Joint statistic of each snapshot in the history window."""
        return np.array([e.t2 for e in self.history])

    def contributions(self) -> Optional[ContributionVector]:
        """Contribution vector of the latest snapshot."""
        latest = self.latest
        if latest is None:
            return None
        return decompose(latest.snapshot, self.registry)

    def reconstruction(self) -> List[ReconstructionEntry]:
        """RBC entries of the latest snapshot, descending."""
        latest = self.latest
        if latest is None:
            return []
        return reconstruct(latest.snapshot, self.registry)

    def diagnose(self) -> List[DiagnosisResult]:
        """Ranked fault hypotheses for the latest snapshot."""
        contributions = self.contributions()
        if contributions is None:
            return []
        return diagnose(contributions, self.library)

    @property
    def alarm_rate(self) -> float:
        """Percent of snapshots in the history window with a joint alarm."""
        history = self.history
        if not history:
            return 0.0
        return 100.0 * sum(1 for e in history if e.t2_anomaly) / len(history)

    @property
    def status(self) -> str:
        """ALARM, NORMAL or IDLE, as shown on the operator KPI row."""
        latest = self.latest
        if latest is not None and latest.t2_anomaly:
            return "ALARM"
        return "NORMAL" if self.is_running else "IDLE"

    # --- Callbacks ---

    def set_result_callback(self, callback: Optional[Callable[[TickResult], None]]):
        """
        Set a callback invoked with each TickResult.

        The callback runs after the tick is recorded, outside the lock.
        """
        self._result_callback = callback

    # --- Info ---

    def get_stats(self) -> Dict[str, Any]:
        """Controller statistics."""
        latest = self.latest
        return {
            "state": self._state.value,
            "status": self.status,
            "tick_count": self._tick_count,
            "samples": len(self._history),
            "alarm_events": len(self._alarms),
            "alarm_total": self._alarm_total,
            "alarm_rate": self.alarm_rate,
            "rejected_count": self._rejected_count,
            "t2": latest.t2 if latest is not None else 0.0,
            "active_fault": self._fault.name if self._fault is not None else None,
            "fault_remaining": self.fault_remaining,
        }
