#!/usr/bin/env python
"""
Example subscriber for the extrusion monitor streaming server.

Connects to a streaming server and prints received messages.

Usage:
    # In one terminal, start the server:
    extrusion-mspc-stream

    # In another terminal, run this subscriber:
    python examples/streaming_subscriber.py

    # Or connect to a remote server:
    python examples/streaming_subscriber.py --host 192.168.1.100 --port 5556
"""

import argparse
import sys
from collections import defaultdict

try:
    import zmq
except ImportError:
    print("pyzmq is required. Install with: pip install pyzmq")
    sys.exit(1)


def main():
    parser = argparse.ArgumentParser(description="Extrusion Monitor Streaming Subscriber")
    parser.add_argument("--host", default="localhost", help="Server hostname")
    parser.add_argument("--port", type=int, default=5556, help="Server port")
    parser.add_argument("--quiet", "-q", action="store_true",
                        help="Only show events, not tick messages")
    parser.add_argument("--stats-interval", type=int, default=25,
                        help="Show a tick every N tick messages (0=disable)")
    args = parser.parse_args()

    context = zmq.Context()
    socket = context.socket(zmq.SUB)
    socket.connect(f"tcp://{args.host}:{args.port}")
    socket.setsockopt_string(zmq.SUBSCRIBE, "")  # Subscribe to all messages

    print(f"Connected to tcp://{args.host}:{args.port}")
    print("Waiting for messages... (Ctrl+C to quit)\n")

    stats = defaultdict(int)
    last_sequence = 0

    try:
        while True:
            msg = socket.recv_json()
            msg_type = msg.get("type", "unknown")
            stats[msg_type] += 1

            if msg_type == "run_start":
                print(f"[RUN START] run={msg['run_id']} at {msg['timestamp']}")
                print(f"  Parameters: {', '.join(msg['parameters'])}")
                print(f"  Joint UCL: {msg['joint_ucl']:.2f}")
                print()

            elif msg_type == "tick":
                last_sequence = msg["sequence"]
                if msg.get("diagnosis"):
                    best = msg["diagnosis"][0]
                    print(f"[ALARM] #{msg['sequence']} T²={msg['t2']:.2f} "
                          f"out={msg['out_of_control'] or '-'}")
                    print(f"  Most likely: {best['name']} ({best['score']:.1f}%, {best['severity']})")
                    print()
                elif not args.quiet and args.stats_interval > 0 \
                        and stats["tick"] % args.stats_interval == 0:
                    print(f"[TICK] #{msg['sequence']} T²={msg['t2']:.2f} "
                          f"fault={msg['fault'] or 'none'}")

            elif msg_type == "alarm":
                if not args.quiet:
                    print(f"  alarm {msg['label']}: {msg['formatted']}")

            elif msg_type == "fault_on":
                print(f"[FAULT ON] {msg['fault']} at tick {msg['tick']}")
                print(f"  {msg['param']} bias {msg['bias']:+g} for {msg['duration']} ticks "
                      f"[{msg['severity']}]")
                print()

            elif msg_type == "fault_off":
                print(f"[FAULT OFF] {msg['fault']} at tick {msg['tick']}")
                print()

            elif msg_type == "rejected":
                print(f"[REJECTED] {msg['error']}: {msg['message']}")

            else:
                print(f"[{msg_type.upper()}] {msg}")
                print()

    except KeyboardInterrupt:
        print("\n\nSubscriber statistics:")
        for msg_type, count in sorted(stats.items()):
            print(f"  {msg_type}: {count}")
        print(f"\nLast sequence: {last_sequence}")

    finally:
        socket.close()
        context.term()


if __name__ == "__main__":
    main()
