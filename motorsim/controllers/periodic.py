"""Fixed-interval background duties, one daemon thread each."""

import threading
import time


class PeriodicTask:
    """
    Calls `target` every `interval` seconds on its own daemon thread.

    The schedule is anchored to the start time, so a slow call shortens the
    following wait instead of pushing every later run back. Runs that would
    already be overdue are skipped. An exception from `target` is logged and
    the timer keeps going.
    """

    def __init__(self, name, interval, target):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self.interval = float(interval)
        self.target = target
        self.runs = 0
        self._stop_event = threading.Event()
        self._thread = None

    @property
    def running(self):
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name=self.name, daemon=True)
        self._thread.start()

    def _loop(self):
        next_run = time.monotonic()
        while not self._stop_event.is_set():
            try:
                self.target()
            except Exception as exc:
                print(f"[{self.name}] Unexpected error: {exc!r}")
            self.runs += 1

            next_run += self.interval
            now = time.monotonic()
            if next_run < now:
                skipped = int((now - next_run) // self.interval) + 1
                next_run += skipped * self.interval
            self._stop_event.wait(next_run - now)

    def stop(self, timeout=1):
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=timeout)
