"""
Command-line interface for running monitoring sessions.

Runs the simulated extrusion feed through a stream controller for a fixed
number of ticks, optionally injecting a fault, then prints a session
summary, the alarm log and the ranked fault diagnosis for the final
snapshot.

Evaluated snapshots can be written as JSON lines (one object per tick) for
offline analysis.
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from .config import MonitorSetup, default_setup, load_config
from .constants import DEFAULT_RANDOM_SEED
from .controller import StreamController
from .diagnosis import DiagnosisResult
from .feed import SimulatedFeed
from .runner import MonitorRunner
from .signatures import SignatureLibrary


def parse_fault_name(name: str, library: SignatureLibrary) -> str:
    """
    Resolve a fault name case-insensitively.

    Accepts the catalog name ("Die Wear") or a snake/kebab form
    ("die_wear", "die-wear").

    Raises:
        ValueError: If no signature matches
    """
    wanted = name.strip().lower().replace("_", " ").replace("-", " ")
    for available in library.list_available():
        if available.lower() == wanted:
            return available
    raise ValueError(
        f"Unknown fault '{name}'. Available: {', '.join(library.list_available())}"
    )


def list_faults(library: SignatureLibrary):
    """Print the fault signature catalog."""
    print("\nAvailable Fault Signatures:")
    print("-" * 60)
    for sig in library:
        print(f"  {sig.name:16s} {sig.severity.name:9s} driver={sig.param} "
              f"delta={sig.delta:+g} duration={sig.duration}")
    print()


def list_parameters(setup: MonitorSetup):
    """Print the monitored parameters and their limits."""
    print("\nMonitored Parameters:")
    print("-" * 70)
    for key, p in setup.registry.items():
        print(f"  {key:16s} {p.label:16s} mean={p.mean:g}{p.unit} std={p.std:g} "
              f"LCL={p.lcl:g} UCL={p.ucl:g}")
    print(f"\n  Joint UCL (T²): {setup.config.joint_ucl:g}")
    print()


def format_diagnosis(results: List[DiagnosisResult], top: int = 3,
                     details: bool = True) -> str:
    """
    Format a ranked diagnosis for terminal output.

    The top hypothesis is shown with its mechanism and corrective actions
    when details is True.
    """
    if not results:
        return "No diagnosis available (no data)."

    lines = ["Fault Hypothesis Ranking:"]
    for rank, r in enumerate(results[:top], 1):
        lines.append(f"  {rank}. {r.name:16s} {r.score:5.1f}%  [{r.severity.name}]")

    if details:
        best = results[0].signature
        lines.append("")
        lines.append(f"Most likely cause: {best.name}")
        lines.append(f"  Mechanism: {best.mechanism}")
        lines.append("  Corrective actions:")
        for i, action in enumerate(best.actions, 1):
            lines.append(f"    {i}. {action}")
        if best.references:
            lines.append(f"  Reference: {best.references}")
    return "\n".join(lines)


def write_history(path: str, controller: StreamController) -> int:
    """
    Write the history window as JSON lines.

    Returns:
        Number of records written
    """
    history = controller.history
    with open(path, "w", encoding="utf-8") as f:
        for evaluation in history:
            f.write(json.dumps(evaluation.to_dict(), ensure_ascii=False) + "\n")
    return len(history)


def session_seed(setup: MonitorSetup, seed: Optional[int] = None) -> int:
    """Feed seed: the explicit one, else the configured one, else the default."""
    if seed is not None:
        return seed
    if setup.config.random_seed is not None:
        return setup.config.random_seed
    return DEFAULT_RANDOM_SEED


def run_session(
    setup: MonitorSetup,
    ticks: int = 60,
    inject: Optional[str] = None,
    inject_at: int = 10,
    duration: Optional[int] = None,
    magnitude: Optional[float] = None,
    seed: Optional[int] = None,
    interval: float = 0.0,
    output: Optional[str] = None,
    quiet: bool = False,
) -> StreamController:
    """
    Run a monitoring session on the simulated feed.

    Args:
        setup: Registry, signatures and monitor settings
        ticks: Number of ticks to run
        inject: Fault name to inject (None = normal operation)
        inject_at: Tick count after which the fault is injected
        duration: Fault duration override (ticks)
        magnitude: Fault magnitude override
        seed: Random seed for the feed (None = config.random_seed, then
            DEFAULT_RANDOM_SEED)
        interval: Seconds between ticks (0 = as fast as possible)
        output: JSON-lines file for the history window
        quiet: Suppress per-tick output

    Returns:
        The controller after the session, for inspection
    """
    controller = setup.create_controller()
    feed = SimulatedFeed(setup.registry, seed=session_seed(setup, seed))

    def produce():
        if inject is not None and controller.tick_count == inject_at:
            controller.inject(inject, duration=duration, magnitude=magnitude)
        return feed()

    def report(result):
        if quiet:
            return
        if result.rejected:
            print(f"  tick rejected: {result.error}")
            return
        e = result.evaluation
        flags = ", ".join(e.out_of_control) or "-"
        marker = "ALARM" if e.t2_anomaly else "ok"
        fault = f"  [{result.fault}]" if result.fault else ""
        print(f"  #{e.sequence:4d}  T²={e.t2:7.2f}  {marker:5s}  out: {flags}{fault}")

    runner = MonitorRunner(controller, produce, interval=interval, callback=report)
    runner.run(ticks)
    controller.stop()

    if output:
        n = write_history(output, controller)
        if not quiet:
            print(f"\nWritten {n} records to {output}")

    return controller


def contribution_highlight(controller: StreamController) -> float:
    """Contribution above which a parameter is flagged: joint UCL / p."""
    return controller.config.joint_ucl / len(controller.registry)


def print_summary(controller: StreamController):
    """Print session KPIs, recent alarms and the final diagnosis."""
    stats = controller.get_stats()
    print()
    print("Session summary:")
    print(f"  Samples:      {stats['samples']}")
    print(f"  Ticks:        {stats['tick_count']} ({stats['rejected_count']} rejected)")
    print(f"  Alarm events: {stats['alarm_total']}")
    print(f"  Alarm rate:   {stats['alarm_rate']:.1f}%")
    print(f"  Last T²:      {stats['t2']:.2f} (UCL {controller.config.joint_ucl:g})")

    alarms = controller.alarm_log[:10]
    if alarms:
        print("\nRecent alarms:")
        for a in alarms:
            print(f"  #{a.sequence:4d}  {a.label:16s} {a.formatted}")

    contributions = controller.contributions()
    if contributions is not None:
        highlight = contribution_highlight(controller)
        print("\nT² decomposition (latest):")
        for c in contributions.ranked():
            mark = " *" if c.value > highlight else ""
            print(f"  {c.label:16s} z={c.z:+7.3f} [{c.direction:4s}] {c.value:8.3f}{mark}")
        print(f"  (* above {highlight:.2f}, an equal share of the joint UCL)")

    print()
    print(format_diagnosis(controller.diagnose()))


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the monitoring CLI."""
    parser = argparse.ArgumentParser(
        description='Extrusion Process Monitor - explainable multivariate anomaly detection',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run 60 ticks of normal operation
  extrusion-mspc --ticks 60

  # Inject die wear after tick 10
  extrusion-mspc --ticks 30 --inject "Die Wear" --inject-at 10

  # Real-time cadence (0.8 s per tick) with a custom configuration
  extrusion-mspc --ticks 100 --interval 0.8 --config line2.json

  # Save the history window as JSON lines
  extrusion-mspc --ticks 120 --inject temp-spike --output session.jsonl

  # List available faults
  extrusion-mspc --list-faults
        """
    )

    parser.add_argument('--ticks', '-n', type=int, default=60,
                        help='Number of ticks to run (default: 60)')
    parser.add_argument('--interval', type=float, default=0.0,
                        help='Seconds between ticks (default: 0, no delay)')
    parser.add_argument('--seed', '-s', type=int, default=None,
                        help="Random seed for the simulated feed "
                             f"(default: config random_seed, else {DEFAULT_RANDOM_SEED})")
    parser.add_argument('--inject', '-f', type=str, default=None, metavar='FAULT',
                        help='Fault to inject (e.g., "Die Wear", die_wear)')
    parser.add_argument('--inject-at', '-t', type=int, default=10,
                        help='Tick after which the fault is injected (default: 10)')
    parser.add_argument('--duration', type=int, default=None,
                        help='Fault duration in ticks (default: from signature)')
    parser.add_argument('--magnitude', type=float, default=None,
                        help='Fault magnitude scale (default: from config, 1.0)')
    parser.add_argument('--config', '-c', type=str, default=None, metavar='FILE',
                        help='JSON configuration file (parameters, signatures, monitor)')
    parser.add_argument('--output', '-o', type=str, default=None, metavar='FILE',
                        help='Write the history window as JSON lines')
    parser.add_argument('--list-faults', action='store_true',
                        help='List available fault signatures and exit')
    parser.add_argument('--list-parameters', action='store_true',
                        help='List monitored parameters and exit')
    parser.add_argument('--quiet', '-q', action='store_true',
                        help='Suppress per-tick output')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Enable debug logging')

    args = parser.parse_args(argv)

    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.ERROR
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    try:
        setup = load_config(args.config) if args.config else default_setup()
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.list_faults:
        list_faults(setup.library)
        return 0

    if args.list_parameters:
        list_parameters(setup)
        return 0

    if args.ticks < 1:
        print("Error: --ticks must be >= 1", file=sys.stderr)
        return 1

    fault = None
    if args.inject:
        try:
            fault = parse_fault_name(args.inject, setup.library)
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

    if not args.quiet:
        print("Extrusion Process Monitor")
        print("=" * 40)
        print(f"Ticks: {args.ticks}")
        print(f"Random seed: {session_seed(setup, args.seed)}")
        if fault:
            print(f"Fault: {fault} after tick {args.inject_at}")
        else:
            print("Fault: None (normal operation)")
        print()

    try:
        controller = run_session(
            setup,
            ticks=args.ticks,
            inject=fault,
            inject_at=args.inject_at,
            duration=args.duration,
            magnitude=args.magnitude,
            seed=args.seed,
            interval=args.interval,
            output=args.output,
            quiet=args.quiet,
        )
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print_summary(controller)
    return 0


if __name__ == "__main__":
    sys.exit(main())
