"""Core loop wiring WebSocket messages to the ring models."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Callable, Optional

from Chord_Scope.stream.protocol import (
    ControlAck,
    HaikuEvent,
    Message,
    PollData,
    ScalarEvent,
    TopologySnapshot,
)
from .ipc import Client
from .state import (
    ConnectionModel,
    ControlModel,
    HaikusModel,
    MetricsModel,
    QuotesModel,
    TopologyModel,
)

logger = logging.getLogger(__name__)


def make_dispatcher(
    topology: TopologyModel,
    metrics: MetricsModel,
    control: ControlModel,
    quotes: QuotesModel,
    haikus: HaikusModel,
    view: Any = None,
) -> Callable[[Message], None]:
    """Return a handler routing each decoded message to its models.

    ``view`` is the optional rendering collaborator; it must expose
    :meth:`set_graph` and is only called once a snapshot has been fully
    reconciled and laid out.
    """

    def push_view() -> None:
        if view is None:
            return
        arrays = topology.graph_arrays()
        view.set_graph(arrays["nodes"], arrays["edges"], arrays["labels"], arrays["sizes"])

    def dispatch(msg: Message) -> None:
        if isinstance(msg, TopologySnapshot):
            result = topology.apply_snapshot(msg.nodes)
            metrics.apply_topology(msg.nodes)
            if result.changed:
                logger.debug("topology %s", result)
            push_view()
        elif isinstance(msg, PollData):
            topology.apply_snapshot(msg.nodes)
            metrics.apply_poll(msg)
            quotes.replace(msg.quotes)
            push_view()
        elif isinstance(msg, HaikuEvent):
            metrics.record_haiku(msg)
            haikus.set_entries(metrics.aggregator.recent_outcomes())
        elif isinstance(msg, ScalarEvent):
            metrics.record_event(msg)
        elif isinstance(msg, ControlAck):
            control.handle_ack(msg.status)
        else:  # pragma: no cover - decode_frame only yields the types above
            logger.warning("no route for %s", type(msg).__name__)

    return dispatch


async def _pending_watchdog(control: ControlModel, interval: float) -> None:
    """Periodically expire control commands the backend never acknowledged."""
    while True:
        await asyncio.sleep(interval)
        control.expire_pending()


async def run(
    url: str,
    topology: TopologyModel,
    metrics: MetricsModel,
    control: ControlModel,
    connection: ConnectionModel,
    quotes: QuotesModel,
    haikus: HaikusModel,
    view: Any = None,
    *,
    ping_interval: float = 30.0,
    accept_legacy: bool = True,
    clear_on_disconnect: bool = True,
    on_open: Optional[Callable[[], None]] = None,
    client: Optional[Client] = None,
) -> None:
    """Connect to ``url`` and forward backend messages to the models.

    Returns once the connection is closed. Connection failures propagate as
    :class:`~scope_ui.ipc.ConnectError`; the caller decides whether to retry.
    ``on_open`` runs once the link is up and the control model can send.
    """

    client = client or Client(url, ping_interval=ping_interval, accept_legacy=accept_legacy)
    client.on_state(connection.update)
    client.on_state(control.set_connection_state)
    client.on_message(make_dispatcher(topology, metrics, control, quotes, haikus, view))

    metrics.reset()
    haikus.clear()
    await client.connect()
    control.set_client(client)
    if on_open is not None:
        on_open()

    interval = max(0.05, min(1.0, control.pending_timeout / 4))
    watchdog = asyncio.create_task(_pending_watchdog(control, interval))
    try:
        await client.wait_closed()
    finally:
        watchdog.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await watchdog
        control.set_client(None)
        if clear_on_disconnect:
            topology.clear()
            quotes.clear()
        await client.close()
        logger.info("session with %s ended", url)
