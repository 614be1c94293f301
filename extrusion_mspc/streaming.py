"""
Streaming monitor server for the extrusion process monitor.

Provides a ZeroMQ PUB socket that streams monitoring results to multiple
remote consumers. The server runs the simulated feed through a stream
controller continuously, injecting randomly scheduled faults.

Usage:
    from extrusion_mspc.streaming import MonitorServer

    server = MonitorServer(port=5556)
    server.run()  # Runs forever

Consumers connect via ZMQ SUB socket:
    import zmq
    socket = zmq.Context().socket(zmq.SUB)
    socket.connect("tcp://hostname:5556")
    socket.setsockopt_string(zmq.SUBSCRIBE, "")
    while True:
        msg = socket.recv_json()
        print(msg["type"], msg.get("t2"))

Message types: run_start, tick, alarm, rejected, fault_on, fault_off.
"""

import logging
import random
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

try:
    import zmq
    HAS_ZMQ = True
except ImportError:
    HAS_ZMQ = False

from .config import MonitorSetup, default_setup, load_config
from .controller import StreamController, TickResult, AlarmEvent
from .diagnosis import DiagnosisResult
from .feed import SimulatedFeed
from .injection import FaultInjection
from .runner import MonitorRunner

logger = logging.getLogger(__name__)


@dataclass
class StreamingConfig:
    """Configuration for the streaming server."""
    port: int = 5556
    bind_address: str = "tcp://*"

    # Fault scheduling, in ticks
    min_fault_gap: int = 20
    max_fault_gap: int = 60
    allowed_faults: Optional[List[str]] = None  # signature names (None=all)

    # Simulation
    random_seed: Optional[int] = None
    interval: Optional[float] = None  # seconds per tick (None=monitor config)
    diagnosis_top_k: int = 3


# =============================================================================
# Message builders
# =============================================================================

def build_tick_message(run_id: str, result: TickResult,
                       diagnosis: List[DiagnosisResult] = None,
                       fault_remaining: int = 0) -> Dict[str, Any]:
    """Build the message published for an accepted tick."""
    evaluation = result.evaluation
    msg = {
        "type": "tick",
        "run_id": run_id,
        "sequence": result.sequence,
        "readings": dict(evaluation.snapshot.readings),
        "z": {key: r.z for key, r in evaluation.univariate.items()},
        "out_of_control": evaluation.out_of_control,
        "t2": evaluation.t2,
        "t2_ucl": evaluation.t2_ucl,
        "t2_anomaly": evaluation.t2_anomaly,
        "fault": result.fault,
        "fault_remaining": fault_remaining,
    }
    if diagnosis is not None:
        msg["diagnosis"] = [d.to_dict() for d in diagnosis]
    return msg


def build_alarm_message(run_id: str, alarm: AlarmEvent) -> Dict[str, Any]:
    """Build the message published for one alarm event."""
    return {"type": "alarm", "run_id": run_id, **alarm.to_dict()}


def build_rejected_message(run_id: str, result: TickResult) -> Dict[str, Any]:
    """Build the message published for a rejected tick."""
    error = result.error
    return {
        "type": "rejected",
        "run_id": run_id,
        "sequence": result.sequence,
        "error": type(error).__name__ if error is not None else None,
        "message": str(error) if error is not None else "",
        "parameter": getattr(error, "parameter", None),
    }


def build_fault_message(run_id: str, kind: str, injection: FaultInjection,
                        tick: int) -> Dict[str, Any]:
    """Build a fault_on / fault_off message."""
    return {
        "type": kind,
        "run_id": run_id,
        "tick": tick,
        "fault": injection.name,
        "param": injection.signature.param,
        "severity": injection.signature.severity.name,
        "bias": injection.bias,
        "duration": injection.duration,
    }


# =============================================================================
# Server
# =============================================================================

class MonitorServer:
    """
    ZeroMQ streaming server for live monitoring results.

    Runs the simulated feed through a stream controller with random fault
    injection, publishing every tick and event to connected subscribers.
    """

    def __init__(self, config: Optional[StreamingConfig] = None,
                 setup: Optional[MonitorSetup] = None, **kwargs):
        """
        Initialize the streaming server.

        Args:
            config: StreamingConfig object, or pass individual params as kwargs
            setup: Registry, signatures and monitor settings (defaults built in)
        """
        if not HAS_ZMQ:
            raise ImportError(
                "pyzmq is required for streaming. Install with: pip install pyzmq"
            )

        if config is None:
            config = StreamingConfig(**kwargs)
        self.config = config
        self.setup = setup or default_setup()

        self.context = zmq.Context()
        self.socket = self.context.socket(zmq.PUB)

        seed = config.random_seed
        if seed is None:
            seed = self.setup.config.random_seed
        self._rng = random.Random(seed)
        self.controller: StreamController = self.setup.create_controller()
        self.feed = SimulatedFeed(self.setup.registry, seed=seed)
        self.run_id: Optional[str] = None
        self.next_fault_tick: int = 0
        self._previous_fault: Optional[FaultInjection] = None

        # Statistics
        self.total_messages: int = 0

    def _generate_run_id(self) -> str:
        return uuid.uuid4().hex[:8]

    def _schedule_fault(self) -> int:
        """Tick at which the next fault is injected."""
        gap = self._rng.randint(self.config.min_fault_gap, self.config.max_fault_gap)
        return self.controller.tick_count + gap

    def _pick_fault(self) -> str:
        names = self.config.allowed_faults or self.controller.library.list_available()
        return self._rng.choice(names)

    def _publish(self, msg: Dict[str, Any]):
        """Publish a message to all subscribers."""
        self.socket.send_json(msg)
        self.total_messages += 1

    def _start_run(self):
        self.run_id = self._generate_run_id()
        self.controller.reset()
        self.controller.start()
        self.next_fault_tick = self._schedule_fault()
        self._publish({
            "type": "run_start",
            "run_id": self.run_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "parameters": self.setup.registry.keys_list,
            "faults": self.controller.library.list_available(),
            "joint_ucl": self.controller.config.joint_ucl,
        })

    def _on_tick(self, result: TickResult):
        if result.rejected:
            self._publish(build_rejected_message(self.run_id, result))
            return

        diagnosis = None
        if result.evaluation.t2_anomaly:
            diagnosis = self.controller.diagnose()[:self.config.diagnosis_top_k]
        self._publish(build_tick_message(
            self.run_id, result, diagnosis, self.controller.fault_remaining,
        ))
        for alarm in result.alarms:
            self._publish(build_alarm_message(self.run_id, alarm))

        if self._previous_fault is not None and self.controller.active_fault is None:
            self._publish(build_fault_message(
                self.run_id, "fault_off", self._previous_fault, self.controller.tick_count,
            ))
            self._previous_fault = None
            self.next_fault_tick = self._schedule_fault()

    def _before_tick(self):
        if (self.controller.active_fault is None
                and self.controller.tick_count >= self.next_fault_tick):
            injection = self.controller.inject(self._pick_fault())
            self._previous_fault = injection
            self._publish(build_fault_message(
                self.run_id, "fault_on", injection, self.controller.tick_count,
            ))

    def _produce(self):
        self._before_tick()
        return self.feed()

    def run(self, ticks: Optional[int] = None):
        """
        Run the streaming server.

        Args:
            ticks: Optional number of ticks to run (None=run forever)
        """
        bind_addr = f"{self.config.bind_address}:{self.config.port}"
        self.socket.bind(bind_addr)
        logger.info("Streaming server listening on %s", bind_addr)

        # Allow subscribers time to connect
        time.sleep(0.5)

        self._start_run()
        runner = MonitorRunner(
            self.controller, self._produce,
            interval=self.config.interval, callback=self._on_tick,
        )

        try:
            if ticks is not None:
                runner.run(ticks)
            else:
                runner.start()
                runner.join()
        except KeyboardInterrupt:
            logger.info("Shutting down...")
        finally:
            runner.stop()
            self.socket.close()
            self.context.term()
            logger.info("Total messages: %d", self.total_messages)

    def get_stats(self) -> Dict[str, Any]:
        """Get server statistics."""
        return {
            "total_messages": self.total_messages,
            "current_run_id": self.run_id,
            **self.controller.get_stats(),
        }


def main():
    """CLI entry point for the streaming server."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Extrusion Monitor Streaming Server - streams monitoring results via ZeroMQ"
    )
    parser.add_argument(
        "--port", "-p", type=int, default=5556,
        help="Port to bind to (default: 5556)"
    )
    parser.add_argument(
        "--bind", "-b", default="tcp://*",
        help="Bind address (default: tcp://*)"
    )
    parser.add_argument(
        "--seed", type=int, default=None,
        help="Random seed for reproducibility"
    )
    parser.add_argument(
        "--interval", type=float, default=None,
        help="Seconds between ticks (default: monitor config, 0.8)"
    )
    parser.add_argument(
        "--faults", nargs="+", default=None,
        help='Allowed fault names, e.g., --faults "Die Wear" "Temp Spike" (default: all)'
    )
    parser.add_argument(
        "--min-fault-gap", type=int, default=20,
        help="Minimum ticks between faults (default: 20)"
    )
    parser.add_argument(
        "--max-fault-gap", type=int, default=60,
        help="Maximum ticks between faults (default: 60)"
    )
    parser.add_argument(
        "--ticks", type=int, default=None,
        help="Stop after N ticks (default: run forever)"
    )
    parser.add_argument(
        "--config", "-c", default=None,
        help="JSON configuration file"
    )

    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    setup = load_config(args.config) if args.config else default_setup()
    config = StreamingConfig(
        port=args.port,
        bind_address=args.bind,
        random_seed=args.seed,
        interval=args.interval,
        allowed_faults=args.faults,
        min_fault_gap=args.min_fault_gap,
        max_fault_gap=args.max_fault_gap,
    )

    print("Extrusion Monitor Streaming Server")
    print(f"  Port: {config.port}")
    print(f"  Parameters: {', '.join(setup.registry.keys_list)}")
    print(f"  Fault gap: {config.min_fault_gap}-{config.max_fault_gap} ticks")
    if config.allowed_faults:
        print(f"  Allowed faults: {', '.join(config.allowed_faults)}")
    print()

    server = MonitorServer(config, setup=setup)
    server.run(ticks=args.ticks)


if __name__ == "__main__":
    main()
