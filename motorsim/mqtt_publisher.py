import json
import queue
import time
import multiprocessing

import paho.mqtt.client as mqtt

STOP = "__STOP__"


def is_depleted(item):
    """True when a motor snapshot shows gas or battery exhausted."""
    value = item.get("value")
    if not isinstance(value, dict):
        return False
    gas = value.get("gas")
    battery = value.get("battery")
    return (gas is not None and gas <= 0) or (battery is not None and battery <= 0)


class TelemetryBatch:
    """
    Snapshots waiting to be published by one controller.

    A batch is due once `max_batch` snapshots are waiting or `batch_interval`
    seconds have passed since the last flush. A snapshot that flips a sensor
    into or out of depletion makes the batch due at once, so the shutdown
    reaches subscribers without waiting out the interval.
    The newest snapshot per sensor is kept after a flush for the retained
    "latest" message.
    """

    def __init__(self, source_id, batch_interval=2.0, max_batch=50, clock=time.monotonic):
        self.source_id = source_id
        self.batch_interval = float(batch_interval)
        self.max_batch = int(max_batch)
        self.clock = clock
        self.items = []
        self.latest = {}
        self._urgent = False
        self._last_flush = clock()

    def add(self, item):
        """Queue a snapshot. Returns True when the batch should be flushed now."""
        sensor = item.get("sensor") or "unknown"
        previous = self.latest.get(sensor)
        if previous is not None and is_depleted(previous) != is_depleted(item):
            self._urgent = True
        self.latest[sensor] = item
        self.items.append(item)
        return self.due()

    def due(self):
        if not self.items:
            return False
        if self._urgent or len(self.items) >= self.max_batch:
            return True
        return self.clock() - self._last_flush >= self.batch_interval

    def drain(self):
        """Return the batch payload and start a new batch, or None if empty."""
        self._last_flush = self.clock()
        if not self.items:
            return None
        payload = {
            "source": self.source_id,
            "batch": True,
            "items": self.items,
        }
        self.items = []
        self._urgent = False
        return payload


def _publisher_process(config, source_info, q):
    topic = config.get("topic", "motor/telemetry")
    qos = int(config.get("qos", 1))
    retain_latest = bool(config.get("retain_latest", True))

    client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2)
    if config.get("username"):
        client.username_pw_set(config.get("username"), config.get("password"))

    try:
        client.connect(config.get("host", "localhost"), int(config.get("port", 1883)), 60)
    except (OSError, ValueError) as exc:
        print(f"[MQTT] Connection failed: {exc}")
        return
    client.loop_start()

    batch = TelemetryBatch(
        source_info.get("id"),
        batch_interval=config.get("batch_interval", 2.0),
        max_batch=config.get("max_batch", 50),
    )

    def flush():
        payload = batch.drain()
        if payload is None:
            return
        client.publish(topic, json.dumps(payload), qos=qos)
        if retain_latest:
            for sensor, item in batch.latest.items():
                client.publish(f"{topic}/{sensor.lower()}/latest", json.dumps(item),
                               qos=qos, retain=True)

    try:
        while True:
            try:
                item = q.get(timeout=0.2)
            except queue.Empty:
                if batch.due():
                    flush()
                continue

            if item == STOP:
                flush()
                break
            if batch.add(item):
                flush()
    finally:
        client.loop_stop()
        client.disconnect()


class MQTTBatchPublisher:
    """
    Publishes queued telemetry snapshots to MQTT from a separate process.

    Batches go to `topic`. With `retain_latest` set, the newest snapshot per
    sensor is also kept on `<topic>/<sensor>/latest` as a retained message,
    so a dashboard that subscribes later sees the current motor state. A
    full queue drops the snapshot rather than stalling the telemetry duty.
    """

    def __init__(self, config, source_info):
        self.config = config or {}
        self.source_info = source_info or {}
        self.enabled = bool(self.config.get("enabled", True))
        self._queue = multiprocessing.Queue(maxsize=1000)
        self._process = None
        self.dropped = 0

    def start(self):
        if not self.enabled:
            return
        self._process = multiprocessing.Process(
            target=_publisher_process,
            args=(self.config, self.source_info, self._queue),
            daemon=True
        )
        self._process.start()

    def enqueue(self, item):
        if not self.enabled:
            return
        try:
            self._queue.put_nowait(item)
        except queue.Full:
            self.dropped += 1
            if self.dropped == 1 or self.dropped % 100 == 0:
                print(f"[MQTT] Publisher queue full, {self.dropped} snapshots dropped")

    def stop(self):
        if self._process and self._process.is_alive():
            try:
                self._queue.put_nowait(STOP)
            except queue.Full:
                self._process.terminate()
            self._process.join(timeout=2)
