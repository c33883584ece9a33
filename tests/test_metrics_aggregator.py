import pytest

from telemetry import MetricsAggregator


def test_haiku_latencies_build_running_average():
    agg = MetricsAggregator()
    agg.record_outcome("first", 100)
    agg.record_outcome("second", 300)
    assert agg.series("latency", "get") == [100.0, 200.0]
    assert agg.average("latency", "get") == 200.0
    assert agg.raw("latency", "get") == [100.0, 300.0]


def test_average_matches_mean_of_inputs():
    agg = MetricsAggregator(path_length_source="events")
    values = [3, 1, 4, 1, 5, 9, 2, 6]
    for v in values:
        agg.record_event("pathLength", "set", v)
    assert agg.average("pathLength", "set") == pytest.approx(sum(values) / len(values))
    assert len(agg.series("pathLength", "set")) == len(values)


def test_no_data_reads_zero():
    agg = MetricsAggregator()
    assert agg.average("latency", "set") == 0.0
    assert agg.average("pathLength", "get") == 0.0
    assert agg.series("latency", "set") == []


def test_zero_count_totals_append_nothing():
    agg = MetricsAggregator()
    agg.apply_snapshot([], totals={"get": (0, 0), "set": None})
    assert agg.series("pathLength", "get") == []
    assert agg.average("pathLength", "get") == 0.0


def test_snapshot_totals_replace_instead_of_accumulating():
    agg = MetricsAggregator()
    agg.apply_snapshot([1, 2], totals={"get": (30, 10), "set": (8, 4)})
    agg.apply_snapshot([1, 2], totals={"get": (40, 20), "set": (8, 4)})
    assert agg.average("pathLength", "get") == 2.0
    assert agg.series("pathLength", "get") == [3.0, 2.0]
    assert agg.snapshot_totals["get"] == (40, 20)
    assert agg.total_items == 3


def test_snapshot_averages_used_without_totals():
    agg = MetricsAggregator()
    agg.apply_snapshot([], averages={"get": 2.5, "set": None})
    assert agg.average("pathLength", "get") == 2.5
    assert agg.series("pathLength", "set") == []


def test_total_items_replaced_each_snapshot():
    agg = MetricsAggregator()
    agg.apply_snapshot([3, 5])
    assert agg.total_items == 8
    agg.apply_snapshot([1])
    assert agg.total_items == 1


def test_snapshot_source_ignores_path_length_events():
    agg = MetricsAggregator(path_length_source="snapshot")
    assert agg.record_event("pathLength", "get", 7) is None
    agg.apply_snapshot([], totals={"get": (9, 3)})
    assert agg.series("pathLength", "get") == [3.0]
    # latency is always event driven
    assert agg.record_event("latency", "get", 12) == 12.0


def test_events_source_ignores_snapshot_path_lengths():
    agg = MetricsAggregator(path_length_source="events")
    agg.record_event("pathLength", "get", 4)
    agg.apply_snapshot([2], totals={"get": (100, 1)})
    assert agg.series("pathLength", "get") == [4.0]
    assert agg.average("pathLength", "get") == 4.0
    assert agg.total_items == 2


def test_recent_outcomes_bounded():
    agg = MetricsAggregator()
    for i in range(7):
        agg.record_outcome(f"haiku {i}")
    assert agg.recent_outcomes() == [f"haiku {i}" for i in range(2, 7)]
    assert agg.series("latency", "get") == []


def test_series_limit_truncates():
    agg = MetricsAggregator(series_limit=2)
    for v in (1, 2, 3):
        agg.record_event("latency", "set", v)
    assert agg.series("latency", "set") == [1.5, 2.0]
    assert agg.average("latency", "set") == 2.0


def test_unknown_key_and_bad_source():
    agg = MetricsAggregator()
    with pytest.raises(KeyError):
        agg.record_event("throughput", "get", 1)
    with pytest.raises(ValueError):
        MetricsAggregator(path_length_source="both")


def test_reset_forgets_everything():
    agg = MetricsAggregator()
    agg.record_outcome("x", 10)
    agg.apply_snapshot([4], totals={"get": (2, 1)})
    agg.reset()
    assert agg.recent_outcomes() == []
    assert agg.total_items == 0
    assert agg.series("latency", "get") == []
    assert agg.average("pathLength", "get") == 0.0
