import asyncio
import json

import pytest

pytest.importorskip("PySide6")
import websockets

from Chord_Scope.config import SimulationConfig
from Chord_Scope.stream.protocol import decode_frame
from scope_ui import core
from scope_ui.ipc import ConnectError
from scope_ui.state import (
    ConnectionModel,
    ControlModel,
    HaikusModel,
    Lifecycle,
    MetricsModel,
    PendingAction,
    QuotesModel,
    TopologyModel,
)


class View:
    def __init__(self) -> None:
        self.graphs = []

    def set_graph(self, nodes, edges, labels, sizes):
        self.graphs.append((labels, edges))


def _models():
    return {
        "topology": TopologyModel(),
        "metrics": MetricsModel(),
        "control": ControlModel(),
        "connection": ConnectionModel(),
        "quotes": QuotesModel(),
        "haikus": HaikusModel(),
    }


def _run(handler, models, **kwargs):
    async def main():
        async with websockets.serve(handler, "127.0.0.1", 0) as server:
            port = server.sockets[0].getsockname()[1]
            await asyncio.wait_for(
                core.run(f"ws://127.0.0.1:{port}", ping_interval=0, **models, **kwargs),
                5,
            )

    asyncio.run(main())


def test_messages_routed_to_models():
    frames = [
        {"NodeData": [{"addr": "A", "succ": "B", "len": 3}, {"addr": "B", "succ": "A", "len": 5}]},
        {"Haiku": ["first", 100]},
        "not json",
        {"Haiku": ["second", 300]},
        {"Metric": {"metric": "latency", "kind": "set", "value": 20}},
        {
            "PollData": {
                "nodes": [
                    {"addr": "A", "succ": "C", "len": 1},
                    {"addr": "C", "succ": "A", "len": 1},
                ],
                "total_get_len": 9,
                "total_gets": 3,
                "popular_quotes": [["q", "anon", 4]],
            }
        },
    ]

    async def handler(ws):
        for frame in frames:
            await ws.send(frame if isinstance(frame, str) else json.dumps(frame))

    models = _models()
    view = View()
    _run(handler, models, view=view, clear_on_disconnect=False)

    topology = models["topology"]
    metrics = models["metrics"]
    assert topology.graph.nodes() == ["A", "C"]
    assert topology.graph.edges() == [("A", "C"), ("C", "A")]
    assert metrics.totalItems == 2
    assert metrics.series["latency/get"] == [100.0, 200.0]
    assert metrics.averages["latency/set"] == 20.0
    assert metrics.averages["pathLength/get"] == 3.0
    assert models["haikus"].stringList() == ["first", "second"]
    assert [q.text for q in models["quotes"].items] == ["q"]
    assert [labels for labels, _ in view.graphs] == [["A", "B"], ["A", "C"]]
    assert models["connection"].status == "Closed"


def test_disconnect_clears_topology():
    async def handler(ws):
        await ws.send(json.dumps({"NodeData": [{"addr": "A", "succ": "A"}]}))

    models = _models()
    _run(handler, models)
    assert models["topology"].nodeCount == 0
    assert models["quotes"].items == []


def test_start_on_open_and_ack():
    received = []

    async def handler(ws):
        received.append(json.loads(await ws.recv()))
        await ws.send(json.dumps({"Ctrl": "Started"}))

    models = _models()
    control = models["control"]
    cfg = SimulationConfig(nodes=3)
    _run(handler, models, on_open=lambda: control.start(cfg))
    assert received == [{"Start": cfg.to_wire()}]
    assert control.lifecycle is Lifecycle.STARTED
    assert control.last_applied_config == cfg


def test_disconnect_rolls_back_pending_start():
    async def handler(ws):
        await ws.recv()

    models = _models()
    control = models["control"]
    _run(handler, models, on_open=control.start)
    assert control.lifecycle is Lifecycle.STOPPED
    assert control.pending_action is PendingAction.NONE
    # detached from the closed client
    assert not control.start()


def test_connect_error_propagates():
    models = _models()
    with pytest.raises(ConnectError):
        asyncio.run(core.run("ws://127.0.0.1:1", ping_interval=0, **models))


def test_nested_frame_does_not_end_session():
    async def handler(ws):
        await ws.send(json.dumps({"NodeData": [{"addr": "A", "fingers": ["A"], "len": 2}]}))
        await ws.send("[" * 100000 + "]" * 100000)
        await ws.send(json.dumps({"Haiku": ["after", 50]}))

    models = _models()
    _run(handler, models, clear_on_disconnect=False)
    assert models["topology"].graph.nodes() == ["A"]
    assert models["haikus"].stringList() == ["after"]


def test_node_data_fingers_scenario():
    models = _models()
    dispatch = core.make_dispatcher(
        models["topology"], models["metrics"], models["control"], models["quotes"], models["haikus"]
    )
    frame = json.dumps(
        {
            "NodeData": [
                {"addr": "A", "fingers": ["B"], "len": 3},
                {"addr": "B", "fingers": [], "len": 5},
            ]
        }
    )
    dispatch(decode_frame(frame))
    graph = models["topology"].graph
    assert set(graph.nodes()) == {"A", "B"}
    assert graph.edges() == [("A", "B")]
    assert models["metrics"].totalItems == 8
    assert models["topology"].totalItems == 8
