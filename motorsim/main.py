#!/usr/bin/env python3
"""
Motor Simulation - Controller

Runs the motor simulation, applies operator commands read from the shared
command log and records telemetry. There is exactly one controller.
"""

import argparse
import sys
import threading

from motorsim.controllers import MotorController
from motorsim.errors import StoreUnavailable
from motorsim.settings import load_settings

CONTROLLER_HELP = """
==================================================
  MOTOR CONTROLLER
==================================================
  s - Status          h - Help            q - Quit
=================================================="""


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Motor simulation controller")
    parser.add_argument("--settings", default="settings.json",
                        help="settings file (relative paths resolve inside the package)")
    parser.add_argument("--headless", action="store_true",
                        help="no console menu; run until interrupted")
    return parser.parse_args(argv)


def run_loop(controller):
    """Console menu. Returns when the user quits or input ends."""
    print(CONTROLLER_HELP)
    while True:
        try:
            cmd = input("\n> ").strip().lower()
        except (KeyboardInterrupt, EOFError):
            print("\n\nExiting...")
            return

        if not cmd:
            continue
        elif cmd == 'q':
            print("\nExiting...")
            return
        elif cmd == 'h':
            print(CONTROLLER_HELP)
        elif cmd == 's':
            controller.show_status()
        else:
            print("Unknown command. Press 'h' for help.")


def wait_forever():
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        print("\n\nExiting...")


def main(argv=None):
    args = parse_args(argv)
    settings = load_settings(args.settings)

    print("\n" + "=" * 50)
    print("  MOTOR SIMULATION - Controller")
    print("=" * 50 + "\n")

    controller = MotorController(settings)
    try:
        controller.open()
    except StoreUnavailable as exc:
        print(f"[CONTROLLER] Database connection failed: {exc}")
        controller.cleanup()
        return 1

    controller.start()
    if args.headless:
        wait_forever()
    else:
        run_loop(controller)

    controller.cleanup()
    print("[SYSTEM] Done.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
