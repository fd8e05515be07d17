import threading
from datetime import timezone

import pytest

from motorsim.command_log import SQLiteCommandLog
from motorsim.errors import StoreUnavailable


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "motor.db")


@pytest.fixture
def log(db_path):
    command_log = SQLiteCommandLog(db_path)
    command_log.ensure_schema()
    yield command_log
    command_log.close()


def test_empty_log_has_no_latest(log):
    assert log.latest() is None
    assert log.recent() == []


def test_append_returns_store_assigned_record(log):
    record = log.append("A", 25)

    assert record.issuer == "A"
    assert record.percent_change == 25.0
    assert record.issued_via == "cli"
    assert record.command_id is not None
    assert record.timestamp.tzinfo == timezone.utc
    assert log.latest() == record


def test_timestamps_strictly_increase(log):
    records = [log.append("A" if i % 2 else "B", i + 1) for i in range(25)]

    stamps = [r.timestamp for r in records]
    assert all(later > earlier for earlier, later in zip(stamps, stamps[1:]))


def test_latest_is_newest_across_issuers(log):
    log.append("A", 50)
    last = log.append("B", -10, issued_via="http")

    latest = log.latest()
    assert latest == last
    assert latest.issued_via == "http"


def test_recent_is_newest_first(log):
    appended = [log.append("A", n) for n in (1, 2, 3, 4)]

    assert log.recent(2) == [appended[3], appended[2]]
    assert log.recent(10) == list(reversed(appended))


def test_second_process_sees_appends(db_path, log):
    other = SQLiteCommandLog(db_path)
    try:
        record = other.append("peer", 15)
        assert log.latest() == record
    finally:
        other.close()


def test_append_from_worker_thread(log):
    results = []
    thread = threading.Thread(target=lambda: results.append(log.append("T", 5)))
    thread.start()
    thread.join()

    assert log.latest() == results[0]


def test_finished_threads_release_their_connections(log):
    for _ in range(50):
        thread = threading.Thread(target=log.latest)
        thread.start()
        thread.join()

    # only the fixture thread still holds one
    assert log._store.open_connections == 1
    assert log.latest() is None


def test_configurable_table_name(db_path):
    js_log = SQLiteCommandLog(db_path, table="commandsJS")
    js_log.ensure_schema()
    js_log.append("A", 10)

    plain = SQLiteCommandLog(db_path, table="commands")
    plain.ensure_schema()
    try:
        assert js_log.latest().issuer == "A"
        assert plain.latest() is None
    finally:
        js_log.close()
        plain.close()


@pytest.mark.parametrize("table", ["", "1commands", "commands; DROP TABLE x", "a-b", None])
def test_rejects_unsafe_table_names(db_path, table):
    with pytest.raises(ValueError):
        SQLiteCommandLog(db_path, table=table)


def test_unreachable_store_raises_store_unavailable(tmp_path):
    command_log = SQLiteCommandLog(str(tmp_path / "missing" / "motor.db"))
    with pytest.raises(StoreUnavailable):
        command_log.ensure_schema()
    with pytest.raises(StoreUnavailable):
        command_log.latest()


def test_missing_table_raises_store_unavailable(db_path):
    command_log = SQLiteCommandLog(db_path)
    try:
        with pytest.raises(StoreUnavailable):
            command_log.latest()
        with pytest.raises(StoreUnavailable):
            command_log.append("A", 1)
    finally:
        command_log.close()


def test_to_dict(log):
    data = log.append("A", -3, issued_via="http").to_dict()

    assert data["issuer"] == "A"
    assert data["percent_change"] == -3.0
    assert data["issued_via"] == "http"
    assert data["ts"].endswith("+00:00")
