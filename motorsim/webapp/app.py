"""
HTTP ingress for operator commands.

Posting a command here appends it to the shared command log exactly like the
console client does (issued_via='http'); the controller never learns where a
command came from.
"""

import argparse

from flask import Flask, jsonify, request

from motorsim.command_log import SQLiteCommandLog
from motorsim.controllers.operator_client import SPEED, parse_command
from motorsim.errors import InvalidInput, StoreUnavailable
from motorsim.settings import load_settings, resolve_store_path
from motorsim.telemetry import SQLiteTelemetrySink

MAX_HISTORY = 100


def create_app(settings):
    store_cfg = settings.get("store", {})
    path = resolve_store_path(settings)
    timeout = store_cfg.get("timeout", 5.0)

    command_log = SQLiteCommandLog(
        path, table=store_cfg.get("commands_table", "commands"), timeout=timeout,
    )
    telemetry = SQLiteTelemetrySink(
        path, table=store_cfg.get("telemetry_table", "telemetry"), timeout=timeout,
    )

    app = Flask(__name__)
    app.config["COMMAND_LOG"] = command_log
    app.config["TELEMETRY"] = telemetry
    schema = {"ready": False}

    @app.before_request
    def ensure_schema():
        if not schema["ready"]:
            command_log.ensure_schema()
            telemetry.ensure_schema()
            schema["ready"] = True

    @app.errorhandler(StoreUnavailable)
    def store_unavailable(exc):
        print(f"[WEB] Store unavailable: {exc}")
        return jsonify({"ok": False, "error": "store unavailable"}), 503

    @app.route("/api/status")
    def api_status():
        latest = command_log.latest()
        return jsonify({
            "telemetry": telemetry.latest_snapshot(),
            "last_command": latest.to_dict() if latest else None,
        })

    @app.route("/api/commands/latest")
    def api_latest_command():
        latest = command_log.latest()
        return jsonify({"command": latest.to_dict() if latest else None})

    @app.route("/api/commands")
    def api_commands():
        limit = request.args.get("limit", default=10, type=int)
        limit = max(1, min(MAX_HISTORY, limit))
        return jsonify({"commands": [r.to_dict() for r in command_log.recent(limit)]})

    @app.route("/api/command", methods=["POST"])
    def api_command():
        payload = request.get_json(silent=True) or {}
        issuer = str(payload.get("issuer", "")).strip()
        if not issuer:
            return jsonify({"ok": False, "error": "issuer is required"}), 400
        try:
            command = parse_command(str(payload.get("percent_change", "")))
        except InvalidInput as exc:
            return jsonify({"ok": False, "error": str(exc)}), 400
        if command.kind != SPEED:
            return jsonify({"ok": False, "error": "percent_change must be a nonzero integer"}), 400

        record = command_log.append(issuer, command.value, issued_via="http")
        print(f"[WEB] Command {command.value:+d}% from {issuer} appended (id={record.command_id})")
        return jsonify({"ok": True, "command": record.to_dict()}), 201

    return app


def main(argv=None):
    parser = argparse.ArgumentParser(description="Motor simulation HTTP ingress")
    parser.add_argument("--settings", default="settings.json")
    args = parser.parse_args(argv)

    settings = load_settings(args.settings)
    web_cfg = settings.get("webapp", {})
    app = create_app(settings)
    app.run(host=web_cfg.get("host", "0.0.0.0"), port=int(web_cfg.get("port", 5000)))


if __name__ == "__main__":
    main()
