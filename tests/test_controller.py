"""
Tests for the stream controller.

This module tests:
1. State transitions (IDLE, RUNNING, FAULT_ACTIVE)
2. Rejected ticks leave the state untouched
3. Bounded history window and alarm log
4. Fault injection countdown and override
5. Derived views (contributions, diagnosis, KPIs)
"""

import math
import threading

import numpy as np
import pytest

from extrusion_mspc.config import MonitorConfig
from extrusion_mspc.constants import JOINT_KEY, JOINT_LABEL
from extrusion_mspc.controller import (
    AlarmEvent,
    ControllerState,
    StreamController,
    TickResult,
)
from extrusion_mspc.exceptions import (
    ControllerStateError,
    InvalidReadingError,
    MissingReadingError,
    SequenceError,
)
from extrusion_mspc.parameters import default_registry
from extrusion_mspc.snapshot import Snapshot


def nominal_readings():
    return {k: p.mean for k, p in default_registry().items()}


def running_controller(**config):
    controller = StreamController(config=MonitorConfig(**config))
    controller.start()
    return controller


# =============================================================================
# STATE TRANSITION TESTS
# =============================================================================

class TestStateTransitions:
    """Tests for controller state transitions."""

    def test_starts_idle(self):
        controller = StreamController()
        assert controller.state is ControllerState.IDLE
        assert not controller.is_running
        assert controller.status == "IDLE"
        assert controller.latest is None

    def test_tick_while_idle_raises(self):
        controller = StreamController()
        with pytest.raises(ControllerStateError):
            controller.tick(nominal_readings())

    def test_inject_while_idle_raises(self):
        controller = StreamController()
        with pytest.raises(ControllerStateError):
            controller.inject("Die Wear")

    def test_start(self):
        controller = running_controller()
        assert controller.state is ControllerState.RUNNING
        assert controller.is_running

    def test_start_twice_is_noop(self):
        controller = running_controller()
        controller.tick(nominal_readings())
        controller.start()
        assert controller.state is ControllerState.RUNNING
        assert controller.tick_count == 1

    def test_inject_enters_fault_active(self):
        controller = running_controller()
        injection = controller.inject("Die Wear")
        assert controller.state is ControllerState.FAULT_ACTIVE
        assert controller.active_fault is injection
        assert controller.fault_remaining == 10

    def test_stop_keeps_history(self):
        """Stopping keeps history, alarms and the tick counter."""
        controller = running_controller()
        controller.inject("Die Wear")
        controller.tick(nominal_readings())
        controller.stop()
        assert controller.state is ControllerState.IDLE
        assert controller.tick_count == 1
        assert len(controller.history) == 1
        assert len(controller.alarm_log) == 2

    def test_fault_survives_stop_and_start(self):
        """An armed fault and its countdown are kept across a pause."""
        controller = running_controller()
        controller.inject("Die Wear")
        controller.tick(nominal_readings())
        controller.stop()
        assert controller.state is ControllerState.IDLE
        assert controller.active_fault.name == "Die Wear"
        assert controller.fault_remaining == 9
        controller.start()
        assert controller.state is ControllerState.FAULT_ACTIVE
        result = controller.tick(nominal_readings())
        assert result.fault == "Die Wear"
        assert result.evaluation.snapshot["die_pressure"] == 152.0
        assert controller.fault_remaining == 8

    def test_reset_after_stop_clears_fault(self):
        controller = running_controller()
        controller.inject("Die Wear")
        controller.stop()
        controller.reset()
        controller.start()
        assert controller.state is ControllerState.RUNNING
        assert controller.tick(nominal_readings()).fault is None

    def test_restart_continues_sequence(self):
        controller = running_controller()
        controller.tick(nominal_readings())
        controller.stop()
        controller.start()
        assert controller.tick(nominal_readings()).sequence == 2

    def test_stop_while_idle_is_noop(self):
        controller = StreamController()
        controller.stop()
        assert controller.state is ControllerState.IDLE

    def test_reset_clears_everything(self):
        controller = running_controller()
        controller.inject("Die Wear")
        for _ in range(3):
            controller.tick(nominal_readings())
        controller.tick({"barrel_temp": 200.0})
        controller.reset()
        assert controller.state is ControllerState.IDLE
        assert controller.tick_count == 0
        assert controller.rejected_count == 0
        assert controller.history == ()
        assert controller.alarm_log == ()
        assert controller.active_fault is None
        assert controller.last_result is None
        controller.start()
        assert controller.tick(nominal_readings()).sequence == 1


# =============================================================================
# TICK TESTS
# =============================================================================

class TestTick:
    """Tests for accepted and rejected ticks."""

    def test_nominal_tick(self):
        controller = running_controller()
        result = controller.tick(nominal_readings())
        assert isinstance(result, TickResult)
        assert result.accepted
        assert result.sequence == 1
        assert result.alarms == ()
        assert result.evaluation.t2 == 0.0
        assert controller.tick_count == 1
        assert controller.status == "NORMAL"

    def test_mapping_sequences_increase(self):
        controller = running_controller()
        sequences = [controller.tick(nominal_readings()).sequence for _ in range(4)]
        assert sequences == [1, 2, 3, 4]

    def test_snapshot_sequence_kept(self):
        controller = running_controller()
        result = controller.tick(Snapshot(42, nominal_readings()))
        assert result.sequence == 42
        assert controller.tick(nominal_readings()).sequence == 43

    def test_non_increasing_sequence_rejected(self):
        controller = running_controller()
        controller.tick(Snapshot(5, nominal_readings()))
        result = controller.tick(Snapshot(5, nominal_readings()))
        assert result.rejected
        assert isinstance(result.error, SequenceError)
        assert controller.tick_count == 1
        assert controller.rejected_count == 1
        assert len(controller.history) == 1

    def test_missing_reading_rejected(self):
        """A snapshot missing a parameter is rejected without state change."""
        controller = running_controller()
        controller.tick(nominal_readings())
        readings = nominal_readings()
        del readings["line_speed"]
        result = controller.tick(readings)
        assert not result.accepted
        assert isinstance(result.error, MissingReadingError)
        assert result.error.parameter == "line_speed"
        assert controller.tick_count == 1
        assert controller.latest.sequence == 1
        assert controller.last_result is result

    def test_nan_reading_rejected(self):
        controller = running_controller()
        readings = nominal_readings()
        readings["melt_pressure"] = math.nan
        result = controller.tick(readings)
        assert result.rejected
        assert isinstance(result.error, InvalidReadingError)
        assert controller.history == ()
        assert controller.alarm_log == ()

    def test_rejected_tick_does_not_consume_sequence(self):
        controller = running_controller()
        controller.tick({"barrel_temp": 200.0})
        assert controller.tick(nominal_readings()).sequence == 1

    def test_univariate_and_joint_alarms(self):
        """An out-of-control reading raises its own alarm and the joint alarm."""
        controller = running_controller()
        readings = nominal_readings()
        readings["die_pressure"] = 152.0
        result = controller.tick(readings)
        assert [a.parameter for a in result.alarms] == ["die_pressure", JOINT_KEY]
        die, joint = result.alarms
        assert die.label == "Die Pressure"
        assert die.formatted == "152.0bar"
        assert not die.is_joint
        assert joint.is_joint
        assert joint.label == JOINT_LABEL
        assert joint.value == pytest.approx(31.36)
        assert joint.formatted == "31.36"
        assert controller.status == "ALARM"

    def test_reading_at_limit_no_alarm(self):
        controller = running_controller()
        readings = nominal_readings()
        readings["die_pressure"] = 195.0
        result = controller.tick(readings)
        assert result.alarms == ()

    def test_joint_only_alarm(self):
        controller = running_controller()
        registry = default_registry()
        readings = {k: p.mean + 2.5 * p.std for k, p in registry.items()}
        result = controller.tick(readings)
        assert [a.parameter for a in result.alarms] == [JOINT_KEY]

    def test_custom_joint_limit(self):
        controller = running_controller(joint_ucl=40.0)
        readings = nominal_readings()
        readings["die_pressure"] = 152.0
        result = controller.tick(readings)
        assert [a.parameter for a in result.alarms] == ["die_pressure"]

    def test_result_callback(self):
        controller = running_controller()
        seen = []
        controller.set_result_callback(seen.append)
        controller.tick(nominal_readings())
        controller.tick({})
        assert len(seen) == 2
        assert seen[0].accepted
        assert seen[1].rejected

    def test_concurrent_ticks_serialized(self):
        """Ticks from several threads are applied one at a time."""
        controller = running_controller(history_capacity=500)

        def worker():
            for _ in range(50):
                controller.tick(nominal_readings())

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert controller.tick_count == 200
        sequences = [e.sequence for e in controller.history]
        assert sequences == list(range(1, 201))


# =============================================================================
# BOUNDED STORAGE TESTS
# =============================================================================

class TestBoundedStorage:
    """Tests for the history window and alarm log."""

    def test_history_bounded(self):
        controller = running_controller(history_capacity=5)
        for _ in range(8):
            controller.tick(nominal_readings())
        history = controller.history
        assert len(history) == 5
        assert [e.sequence for e in history] == [4, 5, 6, 7, 8]
        assert controller.tick_count == 8

    def test_default_capacities(self):
        controller = running_controller()
        for _ in range(130):
            controller.tick(nominal_readings())
        assert len(controller.history) == 120

    def test_alarm_log_bounded_most_recent_first(self):
        controller = running_controller(alarm_capacity=3)
        controller.inject("Die Wear")
        for _ in range(3):
            controller.tick(nominal_readings())
        log = controller.alarm_log
        assert len(log) == 3
        assert [(a.sequence, a.parameter) for a in log] == [
            (3, "die_pressure"), (3, JOINT_KEY), (2, "die_pressure"),
        ]

    def test_alarm_log_default_capacity(self):
        controller = running_controller()
        for _ in range(5):
            controller.inject("Die Wear", duration=10)
            for _ in range(10):
                controller.tick(nominal_readings())
        assert len(controller.alarm_log) == 80
        assert controller.get_stats()["alarm_total"] == 100

    def test_alarm_event_to_dict(self):
        event = AlarmEvent(3, "die_pressure", "Die Pressure", 152.0, "152.0bar")
        assert event.id == "3-die_pressure"
        assert event.to_dict()["formatted"] == "152.0bar"

    def test_history_array(self):
        controller = running_controller()
        assert controller.history_array().shape == (0, 6)
        for _ in range(3):
            controller.tick(nominal_readings())
        array = controller.history_array()
        assert array.shape == (3, 6)
        np.testing.assert_allclose(array[0], list(nominal_readings().values()))

    def test_t2_series(self):
        controller = running_controller()
        controller.tick(nominal_readings())
        controller.inject("Die Wear", duration=1)
        controller.tick(nominal_readings())
        np.testing.assert_allclose(controller.t2_series(), [0.0, 31.36])

    def test_snapshots_are_biased(self):
        """Recorded snapshots include the fault bias."""
        controller = running_controller()
        controller.inject("Die Wear")
        controller.tick(nominal_readings())
        assert controller.snapshots[0]["die_pressure"] == 152.0


# =============================================================================
# FAULT INJECTION TESTS
# =============================================================================

class TestFaultInjection:
    """Tests for simulated fault countdown."""

    def test_countdown_biases_n_snapshots(self):
        """A fault of duration N biases exactly N accepted snapshots."""
        controller = running_controller()
        controller.inject("Die Wear")
        faulted = []
        for _ in range(12):
            result = controller.tick(nominal_readings())
            faulted.append(result.fault)
        assert faulted == ["Die Wear"] * 10 + [None] * 2
        assert controller.state is ControllerState.RUNNING
        assert controller.active_fault is None

    def test_returns_to_running_on_last_tick(self):
        controller = running_controller()
        controller.inject("Temp Spike", duration=2)
        controller.tick(nominal_readings())
        assert controller.state is ControllerState.FAULT_ACTIVE
        assert controller.fault_remaining == 1
        controller.tick(nominal_readings())
        assert controller.state is ControllerState.RUNNING
        assert controller.fault_remaining == 0

    def test_rejected_tick_keeps_countdown(self):
        controller = running_controller()
        controller.inject("Die Wear", duration=2)
        controller.tick({})
        assert controller.fault_remaining == 2
        assert controller.state is ControllerState.FAULT_ACTIVE

    @pytest.mark.parametrize("value", ["abc", True, math.inf])
    def test_invalid_driver_reading_rejected(self, value):
        """The driver reading is validated before the fault bias is added."""
        controller = running_controller()
        controller.inject("Die Wear", duration=2)
        readings = nominal_readings()
        readings["die_pressure"] = value
        result = controller.tick(readings)
        assert result.rejected
        assert isinstance(result.error, InvalidReadingError)
        assert result.error.parameter == "die_pressure"
        assert controller.tick_count == 0
        assert controller.history == ()
        assert controller.fault_remaining == 2

    def test_missing_driver_reading_rejected(self):
        controller = running_controller()
        controller.inject("Die Wear")
        readings = nominal_readings()
        del readings["die_pressure"]
        result = controller.tick(readings)
        assert isinstance(result.error, MissingReadingError)
        assert controller.fault_remaining == 10

    def test_override_restarts_countdown(self):
        """Injecting during a fault replaces it."""
        controller = running_controller()
        controller.inject("Die Wear")
        for _ in range(3):
            controller.tick(nominal_readings())
        controller.inject("Temp Spike")
        assert controller.active_fault.name == "Temp Spike"
        assert controller.fault_remaining == 5
        result = controller.tick(nominal_readings())
        assert result.fault == "Temp Spike"
        assert result.evaluation.snapshot["die_pressure"] == 180.0
        assert result.evaluation.snapshot["barrel_temp"] == 222.0

    def test_magnitude_override(self):
        controller = running_controller()
        controller.inject("Die Wear", magnitude=0.5)
        result = controller.tick(nominal_readings())
        assert result.evaluation.snapshot["die_pressure"] == 166.0

    def test_config_magnitude_scale(self):
        controller = running_controller(fault_magnitude_scale=2.0)
        injection = controller.inject("Line Slowdown")
        assert injection.bias == -16.0

    def test_unknown_fault(self):
        controller = running_controller()
        with pytest.raises(KeyError):
            controller.inject("Nozzle Clog")
        assert controller.state is ControllerState.RUNNING

    def test_inject_signature_object(self):
        controller = running_controller()
        sig = controller.library.get("Screw Slip")
        injection = controller.inject(sig, duration=1)
        assert injection.signature is sig
        assert injection.injected_at == 0

    @pytest.mark.parametrize("name", [
        "Die Wear", "Screw Slip", "Temp Spike",
        "Pressure Surge", "Line Slowdown", "Thin Wall",
    ])
    def test_injected_fault_is_diagnosed(self, name):
        """Each injected fault alarms and ranks first in the diagnosis."""
        controller = running_controller()
        controller.inject(name)
        result = controller.tick(nominal_readings())
        assert result.evaluation.t2_anomaly
        assert controller.diagnose()[0].name == name


# =============================================================================
# DERIVED VIEW TESTS
# =============================================================================

class TestDerivedViews:
    """Tests for contributions, reconstruction and KPIs."""

    def test_empty_views(self):
        controller = StreamController()
        assert controller.contributions() is None
        assert controller.reconstruction() == []
        assert controller.diagnose() == []
        assert controller.alarm_rate == 0.0

    def test_contributions_latest(self):
        controller = running_controller()
        controller.inject("Die Wear")
        controller.tick(nominal_readings())
        contributions = controller.contributions()
        assert contributions.top(1)[0].key == "die_pressure"
        assert contributions.total == pytest.approx(controller.latest.t2)

    def test_reconstruction_latest(self):
        controller = running_controller()
        controller.inject("Pressure Surge")
        controller.tick(nominal_readings())
        entries = controller.reconstruction()
        assert entries[0].key == "melt_pressure"
        assert entries[0].rbc == pytest.approx(controller.contributions()["melt_pressure"])

    def test_alarm_rate(self):
        controller = running_controller()
        controller.tick(nominal_readings())
        controller.tick(nominal_readings())
        controller.inject("Die Wear", duration=2)
        controller.tick(nominal_readings())
        controller.tick(nominal_readings())
        assert controller.alarm_rate == 50.0

    def test_get_stats(self):
        controller = running_controller()
        controller.inject("Die Wear")
        controller.tick(nominal_readings())
        stats = controller.get_stats()
        assert stats["state"] == "fault_active"
        assert stats["status"] == "ALARM"
        assert stats["tick_count"] == 1
        assert stats["samples"] == 1
        assert stats["alarm_events"] == 2
        assert stats["active_fault"] == "Die Wear"
        assert stats["fault_remaining"] == 9
        assert stats["t2"] == pytest.approx(31.36)

    def test_custom_registry_library(self):
        """A controller built from a library uses that library's registry."""
        from extrusion_mspc.signatures import default_library
        library = default_library()
        controller = StreamController(library=library)
        assert controller.registry is library.registry
