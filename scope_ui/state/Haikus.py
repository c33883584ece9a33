from __future__ import annotations

"""Recent haiku list exposed to QML."""

from typing import Iterable

from PySide6.QtCore import QStringListModel, Slot


class HaikusModel(QStringListModel):
    """String list model showing the most recent generated haikus."""

    def __init__(self) -> None:
        super().__init__([])

    # ------------------------------------------------------------------
    def set_entries(self, entries: Iterable[str]) -> None:
        """Replace the displayed haikus with ``entries``."""
        entries = list(entries)
        if entries != self.stringList():
            self.setStringList(entries)

    @Slot()
    def clear(self) -> None:
        """Remove all haikus."""
        self.setStringList([])
