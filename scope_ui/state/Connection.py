from __future__ import annotations

"""Connection status model exposed to QML panels."""

from PySide6.QtCore import QObject, Property, Signal

from ..ipc import ConnectionState


class ConnectionModel(QObject):
    """Mirror the transport state of the backend connection."""

    statusChanged = Signal(str)
    openChanged = Signal(bool)

    def __init__(self) -> None:
        super().__init__()
        self._state = ConnectionState.UNINSTANTIATED

    # ------------------------------------------------------------------
    @property
    def state(self) -> ConnectionState:
        return self._state

    def update(self, state: ConnectionState) -> None:
        """Record ``state`` and notify listeners when it changed."""
        if state is self._state:
            return
        was_open = self._state is ConnectionState.OPEN
        self._state = state
        self.statusChanged.emit(state.value)
        if was_open != (state is ConnectionState.OPEN):
            self.openChanged.emit(state is ConnectionState.OPEN)

    # ------------------------------------------------------------------
    def _get_status(self) -> str:
        return self._state.value

    status = Property(str, _get_status, notify=statusChanged)

    # ------------------------------------------------------------------
    def _get_open(self) -> bool:
        return self._state is ConnectionState.OPEN

    isOpen = Property(bool, _get_open, notify=openChanged)
