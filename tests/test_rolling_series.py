import pytest

from telemetry import CumulativeAverage, RollingSeries


def test_bounded_series_keeps_newest():
    series = RollingSeries(maxlen=3)
    for i in range(5):
        series.append(float(i))
    assert series.as_list() == [2.0, 3.0, 4.0]
    # indices keep counting past truncation
    assert series.points()[0] == (2, 2.0)
    assert series.last() == 4.0


def test_unbounded_series():
    series = RollingSeries()
    for i in range(100):
        series.append(i)
    assert len(series) == 100


def test_invalid_maxlen():
    with pytest.raises(ValueError):
        RollingSeries(maxlen=0)


def test_summary_empty_and_filled():
    series = RollingSeries()
    assert series.summary() == {"mean": 0.0, "p50": 0.0, "p95": 0.0, "count": 0.0}
    for v in (1.0, 2.0, 3.0, 4.0):
        series.append(v)
    stats = series.summary()
    assert stats["mean"] == pytest.approx(2.5)
    assert stats["p50"] == pytest.approx(2.5)
    assert stats["count"] == 4.0


def test_clear_restarts_index():
    series = RollingSeries()
    series.append(1.0)
    series.clear()
    assert series.last() is None
    assert series.append(5.0) == 0


def test_cumulative_average():
    avg = CumulativeAverage()
    assert avg.average == 0.0
    assert avg.add(100) == 100.0
    assert avg.add(300) == 200.0
    avg.reset()
    assert avg.count == 0
