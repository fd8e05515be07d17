import random
import time

import pytest

from motorsim.command_log import SQLiteCommandLog
from motorsim.controllers import MotorController
from motorsim.errors import StoreUnavailable
from motorsim.main import main as controller_main
from motorsim.telemetry import SQLiteTelemetrySink


@pytest.fixture
def controller(settings):
    ctrl = MotorController(settings, rng=random.Random(0))
    ctrl.open()
    yield ctrl
    ctrl.cleanup()


def test_duties_drive_the_simulation(controller, settings):
    operator_log = SQLiteCommandLog(settings["store"]["path"])
    try:
        operator_log.append("A", -50)
        controller.poller.poll()
        controller.writer.write()
    finally:
        operator_log.close()

    status = controller.get_status()
    assert status["mode"] == "NORMAL"
    assert status["setpoint"] == pytest.approx(50.0)
    assert status["speed"] > 0

    sink = SQLiteTelemetrySink(settings["store"]["path"])
    try:
        assert sink.latest_snapshot()["setpoint"] == pytest.approx(50.0)
    finally:
        sink.close()


def test_start_skips_backlog_and_runs_timers(settings):
    settings["controller"]["telemetry_interval"] = 0.02
    settings["controller"]["command_poll_interval"] = 0.01
    operator_log = SQLiteCommandLog(settings["store"]["path"])
    operator_log.ensure_schema()
    operator_log.append("old", -90)

    ctrl = MotorController(settings, rng=random.Random(0))
    ctrl.open()
    ctrl.start()
    sink = SQLiteTelemetrySink(settings["store"]["path"])
    try:
        deadline = time.monotonic() + 3.0
        while time.monotonic() < deadline and sink.latest_snapshot() is None:
            time.sleep(0.01)
        assert sink.latest_snapshot() is not None
        assert ctrl.get_status()["setpoint"] == pytest.approx(100.0)

        time.sleep(0.3)
        operator_log.append("new", -20)
        deadline = time.monotonic() + 3.0
        while time.monotonic() < deadline and ctrl.get_status()["setpoint"] == 100.0:
            time.sleep(0.01)
        assert ctrl.get_status()["setpoint"] == pytest.approx(80.0)
    finally:
        ctrl.cleanup()
        sink.close()
        operator_log.close()


def test_show_status(controller, capsys):
    controller.show_status()
    out = capsys.readouterr().out
    assert "MOTOR STATUS" in out
    assert "NORMAL" in out


def test_mqtt_sink_added_when_enabled(settings):
    settings["mqtt"]["enabled"] = True
    ctrl = MotorController(settings)
    try:
        assert ctrl.publisher is not None
        assert len(ctrl.writer.sinks) == 2
    finally:
        ctrl.cleanup()


def test_open_fails_on_unreachable_store(settings, tmp_path):
    settings["store"]["path"] = str(tmp_path / "missing" / "motor.db")
    ctrl = MotorController(settings)
    with pytest.raises(StoreUnavailable):
        ctrl.open()
    ctrl.cleanup()


def test_controller_main_exits_nonzero_without_store(tmp_path, monkeypatch):
    settings_file = tmp_path / "settings.json"
    settings_file.write_text(
        '{"store": {"path": "%s"}}' % (tmp_path / "missing" / "motor.db").as_posix()
    )
    assert controller_main(["--settings", str(settings_file)]) == 1


def test_controller_main_quits_from_menu(tmp_path, monkeypatch, capsys):
    settings_file = tmp_path / "settings.json"
    settings_file.write_text('{"store": {"path": "%s"}}' % (tmp_path / "motor.db").as_posix())
    answers = iter(["s", "x", "q"])
    monkeypatch.setattr("builtins.input", lambda prompt="": next(answers))

    assert controller_main(["--settings", str(settings_file)]) == 0
    out = capsys.readouterr().out
    assert "MOTOR STATUS" in out
    assert "Unknown command" in out
