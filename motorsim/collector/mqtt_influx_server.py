"""Subscribes to the controller's MQTT telemetry and stores it in InfluxDB."""

import argparse
import json

import paho.mqtt.client as mqtt
from influxdb_client import InfluxDBClient, Point, WriteOptions

from motorsim.settings import load_settings

MEASUREMENT = "motor_telemetry"


def _normalize_value(value):
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    return None


def parse_payload(raw):
    """Return the list of telemetry items carried by one MQTT message."""
    try:
        data = json.loads(raw)
    except ValueError:
        return []
    if isinstance(data, dict) and data.get("batch") and "items" in data:
        items = data["items"]
        return [item for item in items if isinstance(item, dict)]
    if isinstance(data, dict):
        return [data]
    return []


def build_points(items):
    points = []
    for item in items:
        value = item.get("value")
        if not isinstance(value, dict):
            continue

        point = Point(MEASUREMENT)\
            .tag("source", item.get("source") or "unknown")\
            .tag("sensor", item.get("sensor") or "unknown")

        has_field = False
        for key, raw in value.items():
            norm = _normalize_value(raw)
            if norm is not None:
                point.field(key, norm)
                has_field = True
        if not has_field:
            continue

        ts = item.get("ts")
        if ts:
            point.time(int(ts * 1_000_000_000))
        points.append(point)
    return points


def main(argv=None):
    parser = argparse.ArgumentParser(description="MQTT to InfluxDB telemetry collector")
    parser.add_argument("--settings", default="settings.json")
    args = parser.parse_args(argv)

    all_settings = load_settings(args.settings)
    mqtt_cfg = all_settings.get("mqtt", {})
    influx_cfg = all_settings.get("influx", {})

    host = mqtt_cfg.get("host", "localhost")
    port = int(mqtt_cfg.get("port", 1883))
    username = mqtt_cfg.get("username")
    password = mqtt_cfg.get("password")
    topic = mqtt_cfg.get("topic", "motor/telemetry")

    org = influx_cfg.get("org", "motor")
    bucket = influx_cfg.get("bucket", "motor")

    client = InfluxDBClient(
        url=influx_cfg.get("url", "http://localhost:8086"),
        token=influx_cfg.get("token", ""),
        org=org,
    )
    write_api = client.write_api(write_options=WriteOptions(batch_size=500, flush_interval=1000))

    def on_connect(client, userdata, flags, reason_code, properties):
        if reason_code.is_failure:
            print(f"[SERVER] MQTT connection failed: {reason_code}")
            return
        print("[SERVER] MQTT connected")
        client.subscribe(topic)

    def on_message(client, userdata, msg):
        points = build_points(parse_payload(msg.payload.decode("utf-8", errors="replace")))
        if points:
            write_api.write(bucket=bucket, org=org, record=points)

    mqtt_client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2)
    if username:
        mqtt_client.username_pw_set(username, password)

    mqtt_client.on_connect = on_connect
    mqtt_client.on_message = on_message

    mqtt_client.connect(host, port, 60)
    print("[SERVER] Listening for motor telemetry...")
    try:
        mqtt_client.loop_forever()
    except KeyboardInterrupt:
        pass
    finally:
        mqtt_client.disconnect()
        write_api.flush()
        client.close()


if __name__ == "__main__":
    main()
