import json

from motorsim.collector.mqtt_influx_server import MEASUREMENT, build_points, parse_payload


def test_parse_batch_payload():
    raw = json.dumps({
        "source": "motor_controller",
        "batch": True,
        "items": [{"value": {"speed": 1}}, "junk", {"value": {"speed": 2}}],
    })
    assert parse_payload(raw) == [{"value": {"speed": 1}}, {"value": {"speed": 2}}]


def test_parse_single_and_garbage_payloads():
    assert parse_payload('{"value": {"speed": 3}}') == [{"value": {"speed": 3}}]
    assert parse_payload("not json") == []
    assert parse_payload("[1, 2]") == []


def test_build_points_from_snapshot():
    items = [{
        "source": "motor_controller",
        "sensor": "MOTOR",
        "value": {"speed": 42.0, "setpoint": 50, "depleted": False, "note": "x"},
        "ts": 1.5,
    }]

    points = build_points(items)

    assert len(points) == 1
    line = points[0].to_line_protocol()
    assert line.startswith(MEASUREMENT + ",")
    assert "source=motor_controller" in line
    assert "sensor=MOTOR" in line
    assert "speed=42" in line
    assert "setpoint=50" in line
    assert "depleted=0" in line
    assert "note" not in line
    assert line.endswith(" 1500000000")


def test_build_points_skips_items_without_numeric_values():
    items = [{"value": 12}, {"value": {"note": "x"}}, {}]
    assert build_points(items) == []
