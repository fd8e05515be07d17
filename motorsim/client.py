#!/usr/bin/env python3
"""
Motor Simulation - Operator Client

Reads speed-change commands from the console and appends them to the shared
command log, while a background duty reports commands issued by other
operators.
"""

import argparse
import sys

from motorsim.command_log import SQLiteCommandLog
from motorsim.controllers.operator_client import CLIENT_HELP, OperatorClient
from motorsim.errors import StoreUnavailable
from motorsim.settings import load_settings, resolve_store_path


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Motor simulation operator client")
    parser.add_argument("identity", nargs="?", default=None,
                        help="operator name (defaults to client.default_id)")
    parser.add_argument("--settings", default="settings.json")
    return parser.parse_args(argv)


def run_loop(client, read_line=input):
    """Blocking prompt loop on the calling thread."""
    while True:
        try:
            line = read_line(client.prompt())
        except (KeyboardInterrupt, EOFError):
            print("\n\nExiting...")
            return
        if not line.strip():
            continue
        if not client.handle_line(line):
            print("\nExiting...")
            return


def main(argv=None):
    args = parse_args(argv)
    settings = load_settings(args.settings)
    store_cfg = settings.get("store", {})
    client_cfg = settings.get("client", {})

    identity = args.identity or client_cfg.get("default_id")
    if not identity or not identity.strip():
        print("Please run with a client ID, e.g. 'motorsim-client ClientA'")
        return 1

    command_log = SQLiteCommandLog(
        resolve_store_path(settings),
        table=store_cfg.get("commands_table", "commands"),
        timeout=store_cfg.get("timeout", 5.0),
    )
    try:
        command_log.ensure_schema()
    except StoreUnavailable as exc:
        print(f"[CLIENT] Database connection failed: {exc}")
        command_log.close()
        return 1

    client = OperatorClient(
        command_log,
        identity,
        peer_poll_interval=client_cfg.get("peer_poll_interval", 0.25),
        history_size=client_cfg.get("history_size", 10),
    )
    print(f"Client {client.identity} connected to {command_log.path}.")
    print(CLIENT_HELP)

    client.start()
    print(f"Client {client.identity} running: polling peers every "
          f"{client_cfg.get('peer_poll_interval', 0.25)}s.")
    try:
        run_loop(client)
    finally:
        client.stop()
        command_log.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
