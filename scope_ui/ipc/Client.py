"""WebSocket client exchanging JSON frames with the simulation backend."""

from __future__ import annotations

from typing import Any, Callable, List, Optional, Set

import asyncio
import contextlib
import enum
import json
import logging

import websockets
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI

from Chord_Scope.stream.protocol import Message, ProtocolError, decode_frame

logger = logging.getLogger(__name__)

MessageHandler = Callable[[Message], None]
StateHandler = Callable[["ConnectionState"], None]


class ConnectionState(enum.Enum):
    """Transport state of the backend connection."""

    UNINSTANTIATED = "Uninstantiated"
    CONNECTING = "Connecting"
    OPEN = "Open"
    CLOSING = "Closing"
    CLOSED = "Closed"


class ConnectError(Exception):
    """Raised when the client fails to establish a connection."""


class Client:
    """Persistent WebSocket session delivering decoded messages in order.

    Inbound frames are decoded by :func:`decode_frame` and passed to every
    handler registered with :meth:`on_message`, one frame at a time. Frames
    that fail to decode are logged and dropped. Outbound messages are dropped
    while the connection is not open; :meth:`send` and :meth:`post` report
    this by returning ``False`` instead of raising.

    Reconnection is left to the caller: create a new :meth:`connect` call
    after :meth:`wait_closed` returns.
    """

    def __init__(
        self,
        url: str,
        ping_interval: float = 30.0,
        accept_legacy: bool = True,
    ) -> None:
        """Initialize the client.

        Parameters
        ----------
        url:
            WebSocket server URL.
        ping_interval:
            Seconds between heartbeat pings.
        accept_legacy:
            Migrate ``{"kind", "data"}`` frames from older backends.
        """
        self.url = url
        self.ping_interval = ping_interval
        self.accept_legacy = accept_legacy
        self.connection: Optional[Any] = None
        self._state = ConnectionState.UNINSTANTIATED
        self._ping_task: Optional[asyncio.Task] = None
        self._recv_task: Optional[asyncio.Task] = None
        self._send_tasks: Set[asyncio.Task] = set()
        self._message_handlers: List[MessageHandler] = []
        self._state_handlers: List[StateHandler] = []
        self._closed = asyncio.Event()
        self.dropped_frames = 0

    # ------------------------------------------------------------------
    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is ConnectionState.OPEN

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        logger.info("connection %s -> %s", self._state.value, state.value)
        self._state = state
        for handler in list(self._state_handlers):
            try:
                handler(state)
            except Exception:
                logger.exception("connection state handler failed")

    def on_message(self, handler: MessageHandler) -> None:
        """Register ``handler`` to receive every decoded message."""
        self._message_handlers.append(handler)

    def on_state(self, handler: StateHandler) -> None:
        """Register ``handler`` to observe connection state changes."""
        self._state_handlers.append(handler)

    # ------------------------------------------------------------------
    async def connect(self) -> None:
        """Open the WebSocket connection and start the background tasks."""
        if self._state in (ConnectionState.CONNECTING, ConnectionState.OPEN):
            raise ConnectError(f"already {self._state.value.lower()}")
        self._closed = asyncio.Event()
        self._set_state(ConnectionState.CONNECTING)
        try:
            self.connection = await websockets.connect(self.url, ping_interval=None)
        except (OSError, InvalidHandshake, InvalidURI, asyncio.TimeoutError) as e:
            self.connection = None
            self._set_state(ConnectionState.CLOSED)
            self._closed.set()
            raise ConnectError(str(e)) from e
        self._set_state(ConnectionState.OPEN)
        self._recv_task = asyncio.create_task(self._receiver())
        if self.ping_interval > 0:
            self._ping_task = asyncio.create_task(self._heartbeat())

    def _dispatch(self, raw: Any) -> None:
        try:
            msg = decode_frame(raw, accept_legacy=self.accept_legacy)
        except ProtocolError as e:
            self.dropped_frames += 1
            logger.warning("dropping frame: %s", e)
            return
        for handler in list(self._message_handlers):
            try:
                handler(msg)
            except Exception:
                logger.exception("message handler failed for %s", type(msg).__name__)

    async def _receiver(self) -> None:
        """Background task pulling frames from the connection."""
        assert self.connection is not None
        try:
            async for raw in self.connection:
                self._dispatch(raw)
        except ConnectionClosed as e:
            logger.info("connection closed by peer: %s", e)
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("receiver failed; dropping connection")
        finally:
            await self._teardown()

    async def _heartbeat(self) -> None:
        """Issue periodic ping frames and close when unanswered."""
        try:
            while self.connection is not None:
                await asyncio.sleep(self.ping_interval)
                if self.connection is None:
                    break
                try:
                    waiter = await self.connection.ping()
                    await asyncio.wait_for(waiter, timeout=self.ping_interval)
                except (asyncio.TimeoutError, ConnectionClosed):
                    logger.warning("heartbeat missed; dropping connection")
                    if self._recv_task is not None:
                        self._recv_task.cancel()
                    break
        except asyncio.CancelledError:
            pass

    async def _teardown(self) -> None:
        if self._ping_task is not None and self._ping_task is not asyncio.current_task():
            self._ping_task.cancel()
        connection, self.connection = self.connection, None
        if connection is not None:
            if self._state is ConnectionState.OPEN:
                self._set_state(ConnectionState.CLOSING)
            with contextlib.suppress(ConnectionClosed, OSError):
                await connection.close()
        self._set_state(ConnectionState.CLOSED)
        self._closed.set()

    # ------------------------------------------------------------------
    async def send(self, message: Any) -> bool:
        """Serialize and send ``message``; return ``False`` if it was dropped."""
        if self._state is not ConnectionState.OPEN or self.connection is None:
            logger.debug("dropping outbound %r; connection %s", message, self._state.value)
            return False
        try:
            await self.connection.send(json.dumps(message))
        except ConnectionClosed as e:
            logger.warning("send failed: %s", e)
            return False
        return True

    def post(self, message: Any) -> bool:
        """Schedule ``message`` for sending without waiting for it."""
        if self._state is not ConnectionState.OPEN:
            logger.debug("dropping outbound %r; connection %s", message, self._state.value)
            return False
        task = asyncio.get_running_loop().create_task(self.send(message))
        self._send_tasks.add(task)
        task.add_done_callback(self._send_tasks.discard)
        return True

    async def wait_closed(self) -> None:
        """Block until the connection has been closed."""
        await self._closed.wait()

    async def close(self) -> None:
        """Close the WebSocket connection."""
        if self._ping_task is not None:
            self._ping_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._ping_task
            self._ping_task = None
        if self.connection is not None and self._state is ConnectionState.OPEN:
            self._set_state(ConnectionState.CLOSING)
        if self._recv_task is not None:
            self._recv_task.cancel()
            try:
                await self._recv_task
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.exception("receiver task failed")
            self._recv_task = None
        if self.connection is not None:
            await self._teardown()
        elif self._state is not ConnectionState.UNINSTANTIATED:
            self._set_state(ConnectionState.CLOSED)
            self._closed.set()
