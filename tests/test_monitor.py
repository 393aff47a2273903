"""Tests for the ingestion pipeline and the metric name directory."""
import pytest

from monitor.monitor import MetricMonitor
from utils.errors import StorageError, ValidationError


# ── Ingestion ──────────────────────────────────────────

def test_ingest_without_rules_still_persists(temp_db, monitor):
    summary = monitor.ingest("u1", "cpu", 42)
    assert (summary.evaluated, summary.triggered, summary.cooldown_skipped) == (0, 0, 0)
    assert summary.triggered_alerts == []
    assert summary.message == "Metric processed"
    samples = temp_db.get_recent_metrics("u1")
    assert len(samples) == 1
    assert samples[0].recorded_at == "2024-01-15T10:30:00.000Z"


def test_ingest_fires_matching_rule(temp_db, monitor, cpu_rule):
    summary = monitor.ingest("u1", "cpu", 95)
    assert summary.triggered == 1
    assert summary.to_dict()["triggered_alerts"] == [
        {"id": cpu_rule.id, "metric_name": "cpu", "message": "CPU high"}
    ]
    events = temp_db.list_events("u1")
    assert len(events) == 1
    assert events[0].metric_value == 95
    assert temp_db.get_rule(cpu_rule.id, "u1").last_triggered_at == events[0].timestamp


def test_reingest_within_cooldown_is_suppressed(temp_db, monitor, clock, cpu_rule):
    monitor.ingest("u1", "cpu", 95)
    clock.advance(30)
    summary = monitor.ingest("u1", "cpu", 95)
    assert (summary.evaluated, summary.triggered, summary.cooldown_skipped) == (1, 0, 1)
    assert len(temp_db.list_events("u1")) == 1


def test_reingest_after_cooldown_fires_again(temp_db, monitor, clock, cpu_rule):
    monitor.ingest("u1", "cpu", 95)
    clock.advance(60)
    summary = monitor.ingest("u1", "cpu", 96)
    assert summary.triggered == 1
    assert len(temp_db.list_events("u1")) == 2


def test_non_matching_value_is_not_a_cooldown_skip(monitor, cpu_rule):
    summary = monitor.ingest("u1", "cpu", 80)
    assert (summary.evaluated, summary.triggered, summary.cooldown_skipped) == (1, 0, 0)


def test_metric_name_match_is_case_insensitive(monitor, cpu_rule):
    summary = monitor.ingest("u1", "  CPU ", 95)
    assert summary.evaluated == 1
    assert summary.triggered == 1


def test_metric_name_match_is_not_substring(monitor, cpu_rule):
    assert monitor.ingest("u1", "cpu_load", 95).evaluated == 0


def test_explicit_timestamp_is_used_for_event_and_rule(temp_db, monitor, cpu_rule):
    monitor.ingest("u1", "cpu", 95, timestamp="2024-01-15T12:00:00+02:00")
    event = temp_db.list_events("u1")[0]
    assert event.timestamp == "2024-01-15T10:00:00.000Z"
    assert temp_db.get_rule(cpu_rule.id, "u1").last_triggered_at == "2024-01-15T10:00:00.000Z"


def test_backdated_firing_is_measured_against_now(monitor, cpu_rule):
    # Rule state takes the sample time; the gate compares it with the clock.
    monitor.ingest("u1", "cpu", 95, timestamp="2024-01-15T09:00:00Z")
    assert monitor.ingest("u1", "cpu", 95).triggered == 1


@pytest.mark.parametrize("name,value,timestamp,field", [
    ("", 1, None, "metric_name"),
    ("   ", 1, None, "metric_name"),
    (None, 1, None, "metric_name"),
    ("cpu", "abc", None, "value"),
    ("cpu", None, None, "value"),
    ("cpu", True, None, "value"),
    ("cpu", float("nan"), None, "value"),
    ("cpu", float("inf"), None, "value"),
    ("cpu", 1, "not-a-date", "timestamp"),
])
def test_invalid_input_rejected_before_persisting(temp_db, monitor, name, value, timestamp, field):
    with pytest.raises(ValidationError) as exc_info:
        monitor.ingest("u1", name, value, timestamp)
    assert exc_info.value.field == field
    assert temp_db.get_recent_metrics("u1") == []


def test_numeric_string_value_accepted(temp_db, monitor):
    monitor.ingest("u1", "cpu", "12.5")
    assert temp_db.get_recent_metrics("u1")[0].value == 12.5


def test_ingest_payload_requires_object(monitor):
    with pytest.raises(ValidationError):
        monitor.ingest_payload("u1", ["cpu", 1])


def test_sample_write_failure_stops_everything(temp_db, monitor, cpu_rule, monkeypatch):
    def fail(*args, **kwargs):
        raise StorageError("disk full")
    monkeypatch.setattr(temp_db, "insert_metric", fail)
    with pytest.raises(StorageError):
        monitor.ingest("u1", "cpu", 95)
    assert temp_db.list_events("u1") == []
    assert temp_db.get_rule(cpu_rule.id, "u1").last_triggered_at is None


def test_rule_write_failure_keeps_earlier_firings(temp_db, monitor, rules, monkeypatch):
    for msg in ("first", "second"):
        rules.create_rule("u1", {"metric_name": "cpu", "comparator": "GT",
                                 "threshold": 50, "message": msg, "cooldown_seconds": 60})

    real_insert = temp_db.insert_event
    calls = {"n": 0}

    def flaky_insert(**kwargs):
        calls["n"] += 1
        if calls["n"] == 2:
            raise StorageError("disk full")
        return real_insert(**kwargs)

    monkeypatch.setattr(temp_db, "insert_event", flaky_insert)
    with pytest.raises(StorageError):
        monitor.ingest("u1", "cpu", 95)

    # The sample and the first rule's firing stay; the second rule's pair rolled back.
    assert len(temp_db.get_recent_metrics("u1")) == 1
    events = temp_db.list_events("u1")
    assert len(events) == 1
    fired = [r for r in temp_db.list_rules("u1") if r.last_triggered_at]
    assert [r.id for r in fired] == [events[0].alert_id]


# ── Metric Name Directory ──────────────────────────────

def test_names_union_sorted_deduplicated(monitor, rules):
    monitor.ingest("u1", "memory", 1)
    monitor.ingest("u1", "cpu", 1)
    monitor.ingest("u1", "cpu", 2)
    rules.create_rule("u1", {"metric_name": "disk", "comparator": "GT", "threshold": 1, "message": "d"})
    rules.create_rule("u1", {"metric_name": "cpu", "comparator": "GT", "threshold": 1, "message": "c"})
    assert monitor.list_metric_names("u1") == ["cpu", "disk", "memory"]


def test_names_keep_case_as_stored(monitor):
    monitor.ingest("u1", "CPU", 1)
    monitor.ingest("u1", "cpu", 1)
    assert monitor.list_metric_names("u1") == ["CPU", "cpu"]


def test_names_search_is_case_insensitive_containment(monitor):
    for name in ("cpu.user", "CPU.system", "memory"):
        monitor.ingest("u1", name, 1)
    assert monitor.list_metric_names("u1", search="Cpu") == ["CPU.system", "cpu.user"]
    assert monitor.list_metric_names("u1", search="  ") == ["CPU.system", "cpu.user", "memory"]
    assert monitor.list_metric_names("u1", search="disk") == []


def test_names_scoped_by_user(monitor):
    monitor.ingest("u1", "cpu", 1)
    assert monitor.list_metric_names("u2") == []


def test_names_scan_is_bounded(temp_db, engine, clock):
    monitor = MetricMonitor(temp_db, engine, clock=clock, name_scan_limit=2)
    for name in ("a", "b", "c"):
        monitor.ingest("u1", name, 1)
    assert len(monitor.list_metric_names("u1")) == 2


def test_recent_samples(monitor, clock):
    monitor.ingest("u1", "cpu", 1)
    clock.advance(5)
    monitor.ingest("u1", "cpu", 2)
    monitor.ingest("u1", "memory", 3)
    assert [s.value for s in monitor.recent_samples("u1", metric_name="CPU")] == [2, 1]


def test_names_scan_takes_most_recent_samples(temp_db, engine, clock):
    monitor = MetricMonitor(temp_db, engine, clock=clock, name_scan_limit=2)
    for name in ("a", "b", "c"):
        monitor.ingest("u1", name, 1)
        clock.advance(1)
    assert monitor.list_metric_names("u1") == ["b", "c"]


# ── Edge Inputs ────────────────────────────────────────

def test_ancient_timestamp_is_zero_padded_and_rule_keeps_working(temp_db, monitor, cpu_rule):
    monitor.ingest("u1", "cpu", 95, timestamp="0999-06-01T00:00:00Z")
    assert temp_db.get_recent_metrics("u1")[0].recorded_at == "0999-06-01T00:00:00.000Z"
    assert temp_db.get_rule(cpu_rule.id, "u1").last_triggered_at == "0999-06-01T00:00:00.000Z"

    summary = monitor.ingest("u1", "cpu", 95)
    assert summary.triggered == 1
    # Newest first, so the year-999 event sorts after the 2024 one.
    assert [e.timestamp for e in temp_db.list_events("u1")] == [
        "2024-01-15T10:30:00.000Z", "0999-06-01T00:00:00.000Z",
    ]


@pytest.mark.parametrize("value", [10 ** 400, -(10 ** 400), "1e400"])
def test_out_of_range_value_rejected(temp_db, monitor, value):
    with pytest.raises(ValidationError) as exc_info:
        monitor.ingest("u1", "cpu", value)
    assert exc_info.value.message == "value must be a finite number"
    assert temp_db.get_recent_metrics("u1") == []
