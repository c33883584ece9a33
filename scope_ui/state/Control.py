from __future__ import annotations

"""Simulation lifecycle model exposed to QML panels."""

import enum
import logging
import time
from dataclasses import replace
from typing import Any, Callable, Dict, Optional

from PySide6.QtCore import QObject, Property, Signal, Slot

from Chord_Scope.config import SimulationConfig
from Chord_Scope.stream.protocol import command_payload
from ..ipc import Client, ConnectionState

logger = logging.getLogger(__name__)


class Lifecycle(enum.Enum):
    """Lifecycle of the backend simulation as seen by the client."""

    STOPPED = "stopped"
    STARTING = "starting"
    STARTED = "started"
    STOPPING = "stopping"
    UPDATING = "updating"


class PendingAction(enum.Enum):
    """Command awaiting a backend acknowledgement."""

    NONE = "none"
    STARTING = "starting"
    STOPPING = "stopping"
    UPDATING = "updating"


# Lifecycle restored when a pending action times out or the link drops
_ROLLBACK = {
    PendingAction.STARTING: Lifecycle.STOPPED,
    PendingAction.STOPPING: Lifecycle.STARTED,
    PendingAction.UPDATING: Lifecycle.STARTED,
}


class ControlModel(QObject):
    """Gate control commands on lifecycle and track their acknowledgements.

    Only one command may be pending at a time. Issuing ``Start``, ``Stop`` or
    ``Update`` while another one awaits its acknowledgement, while the
    lifecycle forbids it, or while the connection is not open is rejected
    locally: nothing is sent and no state changes. ``Update`` keeps the
    visible lifecycle at ``started``; :attr:`state` reports ``updating``
    while it is pending.

    A pending command older than ``pending_timeout`` seconds is rolled back by
    :meth:`expire_pending`, and any pending command is rolled back when the
    connection is lost.
    """

    lifecycleChanged = Signal(str)
    pendingActionChanged = Signal(str)
    appliedConfigChanged = Signal(dict)
    draftConfigChanged = Signal(dict)
    commandRejected = Signal(str)

    def __init__(
        self,
        pending_timeout: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
        legacy_commands: bool = False,
    ) -> None:
        super().__init__()
        self.pending_timeout = pending_timeout
        self.legacy_commands = legacy_commands
        self._clock = clock
        self._client: Optional[Client] = None
        self._connection = ConnectionState.UNINSTANTIATED
        self._lifecycle = Lifecycle.STOPPED
        self._pending = PendingAction.NONE
        self._pending_config: Optional[SimulationConfig] = None
        self._pending_since: Optional[float] = None
        self._last_applied: Optional[SimulationConfig] = None
        self._draft = SimulationConfig()

    # ------------------------------------------------------------------
    def set_client(self, client: Client | None) -> None:
        """Attach a WebSocket ``client`` for sending control messages."""
        self._client = client

    def set_connection_state(self, state: ConnectionState) -> None:
        """Track the transport state; losing the link rolls back pending work."""
        self._connection = state
        if state is not ConnectionState.OPEN and self._pending is not PendingAction.NONE:
            self._rollback(f"connection {state.value.lower()}")

    # ------------------------------------------------------------------
    @property
    def lifecycle(self) -> Lifecycle:
        """Externally visible lifecycle; never ``UPDATING``."""
        return self._lifecycle

    @property
    def state(self) -> Lifecycle:
        """Lifecycle including the ``UPDATING`` overlay."""
        if self._pending is PendingAction.UPDATING:
            return Lifecycle.UPDATING
        return self._lifecycle

    @property
    def pending_action(self) -> PendingAction:
        return self._pending

    @property
    def last_applied_config(self) -> Optional[SimulationConfig]:
        return self._last_applied

    @property
    def draft_config(self) -> SimulationConfig:
        return self._draft

    def _set_lifecycle(self, value: Lifecycle) -> None:
        if self._lifecycle is not value:
            logger.info("lifecycle %s -> %s", self._lifecycle.value, value.value)
            self._lifecycle = value
            self.lifecycleChanged.emit(value.value)

    def _set_pending(
        self, value: PendingAction, config: Optional[SimulationConfig] = None
    ) -> None:
        self._pending_config = config
        self._pending_since = None if value is PendingAction.NONE else self._clock()
        if self._pending is not value:
            self._pending = value
            self.pendingActionChanged.emit(value.value)

    def _set_applied(self, config: Optional[SimulationConfig]) -> None:
        if config is not None and config != self._last_applied:
            self._last_applied = config
            self.appliedConfigChanged.emit(config.to_wire())

    # ------------------------------------------------------------------
    def _get_lifecycle_name(self) -> str:
        return self._lifecycle.value

    lifecycleName = Property(str, _get_lifecycle_name, notify=lifecycleChanged)

    def _get_pending_name(self) -> str:
        return self._pending.value

    pendingActionName = Property(str, _get_pending_name, notify=pendingActionChanged)

    def _get_applied(self) -> Dict[str, Any]:
        return self._last_applied.to_wire() if self._last_applied else {}

    appliedConfig = Property(dict, _get_applied, notify=appliedConfigChanged)

    def _get_draft(self) -> Dict[str, Any]:
        return self._draft.to_wire()

    draftConfig = Property(dict, _get_draft, notify=draftConfigChanged)

    # ------------------------------------------------------------------
    def _reject(self, reason: str) -> bool:
        logger.warning("command rejected: %s", reason)
        self.commandRejected.emit(reason)
        return False

    def _check(self, command: str, allowed: Lifecycle) -> Optional[str]:
        if self._client is None or self._connection is not ConnectionState.OPEN:
            return f"{command}: connection is {self._connection.value.lower()}"
        if self._pending is not PendingAction.NONE:
            return f"{command}: {self._pending.value} still pending"
        if self._lifecycle is not allowed:
            return f"{command}: simulation is {self._lifecycle.value}"
        return None

    def _issue(
        self,
        command: str,
        pending: PendingAction,
        config: Optional[SimulationConfig] = None,
    ) -> bool:
        assert self._client is not None
        if config is not None:
            errors = config.validate()
            if errors:
                return self._reject(f"{command}: " + "; ".join(errors))
        if not self._client.post(command_payload(command, config)):
            return self._reject(f"{command}: send failed")
        logger.info("sent %s", command)
        self._set_pending(pending, config)
        return True

    @Slot(result=bool)
    def start(self, config: Optional[SimulationConfig] = None) -> bool:
        """Request the backend to start with ``config`` (default: the draft)."""
        reason = self._check("Start", Lifecycle.STOPPED)
        if reason:
            return self._reject(reason)
        if not self._issue("Start", PendingAction.STARTING, config or self._draft):
            return False
        self._set_lifecycle(Lifecycle.STARTING)
        return True

    @Slot(result=bool)
    def stop(self) -> bool:
        """Request the backend to halt the simulation."""
        reason = self._check("Stop", Lifecycle.STARTED)
        if reason:
            return self._reject(reason)
        if not self._issue("Stop", PendingAction.STOPPING):
            return False
        self._set_lifecycle(Lifecycle.STOPPING)
        return True

    @Slot(result=bool)
    def update_config(self, config: Optional[SimulationConfig] = None) -> bool:
        """Reconfigure a running simulation with ``config`` (default: the draft)."""
        reason = self._check("Update", Lifecycle.STARTED)
        if reason:
            return self._reject(reason)
        return self._issue("Update", PendingAction.UPDATING, config or self._draft)

    @Slot(result=bool)
    def add_node(self) -> bool:
        """Ask an older backend to spawn one extra node."""
        return self._one_off("AddNode")

    @Slot(result=bool)
    def client_sim(self) -> bool:
        """Ask an older backend to run its simulated client."""
        return self._one_off("ClientSim")

    def _one_off(self, command: str) -> bool:
        if not self.legacy_commands:
            return self._reject(f"{command}: legacy commands disabled")
        if self._client is None or self._connection is not ConnectionState.OPEN:
            return self._reject(f"{command}: connection is {self._connection.value.lower()}")
        if not self._client.post(command_payload(command)):
            return self._reject(f"{command}: send failed")
        return True

    @Slot(str, int)
    def setDraftValue(self, name: str, value: int) -> None:
        """Set one field of the draft config edited by the control panel."""
        if name not in self._draft.to_wire():
            self._reject(f"unknown simulation field {name!r}")
            return
        draft = replace(self._draft, **{name: int(value)})
        if draft != self._draft:
            self._draft = draft
            self.draftConfigChanged.emit(draft.to_wire())

    # ------------------------------------------------------------------
    def handle_ack(self, status: str) -> None:
        """Apply a ``Ctrl`` acknowledgement from the backend."""
        pending = self._pending
        if status == "Started":
            if pending is PendingAction.STARTING:
                self._set_applied(self._pending_config)
                self._set_pending(PendingAction.NONE)
            elif pending is not PendingAction.NONE:
                logger.warning("Started received while %s pending", pending.value)
            self._set_lifecycle(Lifecycle.STARTED)
        elif status == "Stopped":
            if pending not in (PendingAction.NONE, PendingAction.STOPPING):
                logger.warning("Stopped received while %s pending", pending.value)
            self._set_pending(PendingAction.NONE)
            self._set_lifecycle(Lifecycle.STOPPED)
        elif status == "Updated":
            if pending is PendingAction.UPDATING:
                self._set_applied(self._pending_config)
                self._set_pending(PendingAction.NONE)
            else:
                logger.warning("Updated received while %s pending", pending.value)
        else:
            logger.warning("ignoring unknown acknowledgement %r", status)

    def expire_pending(self, now: Optional[float] = None) -> bool:
        """Roll back a pending command older than ``pending_timeout``."""
        if self._pending is PendingAction.NONE or self._pending_since is None:
            return False
        now = self._clock() if now is None else now
        if now - self._pending_since < self.pending_timeout:
            return False
        self._rollback(f"no acknowledgement after {self.pending_timeout:g}s")
        return True

    def _rollback(self, reason: str) -> None:
        pending = self._pending
        logger.warning("abandoning pending %s: %s", pending.value, reason)
        self._set_pending(PendingAction.NONE)
        self._set_lifecycle(_ROLLBACK[pending])
        self.commandRejected.emit(f"{pending.value} abandoned: {reason}")
