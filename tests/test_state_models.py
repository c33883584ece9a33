import pytest

pytest.importorskip("PySide6")
from Chord_Scope.graph import Quote, SnapshotNode
from Chord_Scope.stream.protocol import HaikuEvent, PathAggregates, PollData, ScalarEvent
from scope_ui.ipc import ConnectionState
from scope_ui.state import (
    ConnectionModel,
    HaikusModel,
    MetricsModel,
    QuotesModel,
    TopologyModel,
)
from telemetry import MetricsAggregator


def test_topology_counts_and_arrays():
    model = TopologyModel()
    counts = []
    model.nodeCountChanged.connect(counts.append)
    model.apply_snapshot(
        [
            SnapshotNode("a", neighbors=("b",), item_count=3),
            SnapshotNode("b", neighbors=("a",), item_count=5),
        ]
    )
    assert model.nodeCount == 2
    assert model.edgeCount == 2
    assert model.totalItems == 8
    arrays = model.graph_arrays()
    assert arrays["labels"] == ["a", "b"]
    assert sorted(arrays["edges"]) == [(0, 1), (1, 0)]
    assert arrays["itemCounts"] == [3, 5]
    assert model.get_node("a")["successors"] == ["b"]
    assert model.get_node("zzz") == {}

    model.clear()
    assert model.nodeCount == 0
    assert counts == [2, 0]


def test_quotes_replaced_and_ranked():
    model = QuotesModel(limit=2)
    model.replace([Quote("a", access_count=1), Quote("b", access_count=9), Quote("c", access_count=4)])
    assert [q.text for q in model.items] == ["b", "c"]
    model.replace([Quote("d", access_count=2)])
    assert model.quotes == [{"text": "d", "author": "", "accessCount": 2}]
    model.clear()
    assert model.items == []


def test_haikus_entries():
    model = HaikusModel()
    model.set_entries(["one", "two"])
    assert model.stringList() == ["one", "two"]
    model.clear()
    assert model.stringList() == []


def test_connection_model_signals():
    model = ConnectionModel()
    opened = []
    model.openChanged.connect(opened.append)
    model.update(ConnectionState.CONNECTING)
    model.update(ConnectionState.OPEN)
    model.update(ConnectionState.CLOSED)
    assert model.status == "Closed"
    assert opened == [True, False]


def test_metrics_model_routes_events():
    model = MetricsModel()
    averages = []
    model.averagesChanged.connect(averages.append)
    model.record_haiku(HaikuEvent("h1", 100.0))
    model.record_haiku(HaikuEvent("h2", 300.0))
    assert model.series["latency/get"] == [100.0, 200.0]
    assert model.recentOutcomes == ["h1", "h2"]
    assert averages[-1]["latency/get"] == 200.0

    model.record_event(ScalarEvent("latency", "set", 50.0))
    assert model.averages["latency/set"] == 50.0


def test_metrics_model_poll_and_topology():
    model = MetricsModel(MetricsAggregator(path_length_source="snapshot"))
    nodes = (SnapshotNode("a", item_count=3), SnapshotNode("b", item_count=5))
    model.apply_topology(nodes)
    assert model.totalItems == 8
    poll = PollData(nodes=nodes[:1], aggregates=PathAggregates(total_get_len=10, total_gets=5))
    model.apply_poll(poll)
    assert model.totalItems == 3
    assert model.averages["pathLength/get"] == 2.0
    model.reset()
    assert model.totalItems == 0
    assert model.series["pathLength/get"] == []
