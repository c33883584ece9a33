from __future__ import annotations

"""Popular quotes model exposed to QML panels."""

from typing import Dict, Iterable, List, Union

from PySide6.QtCore import QObject, Property, Signal

from Chord_Scope.graph.types import Quote


class QuotesModel(QObject):
    """Hold the most accessed quotes from the latest snapshot.

    Every snapshot replaces the list wholesale; nothing is merged across
    snapshots.
    """

    quotesChanged = Signal()

    def __init__(self, limit: int = 10) -> None:
        super().__init__()
        self.limit = limit
        self._quotes: List[Quote] = []

    def replace(self, quotes: Iterable[Quote]) -> None:
        """Replace the stored quotes with the top ``limit`` of ``quotes``."""
        ranked = sorted(quotes, key=lambda q: q.access_count, reverse=True)
        ranked = ranked[: self.limit]
        if ranked != self._quotes:
            self._quotes = ranked
            self.quotesChanged.emit()

    def clear(self) -> None:
        self.replace([])

    @property
    def items(self) -> List[Quote]:
        return list(self._quotes)

    def _get_quotes(self) -> List[Dict[str, Union[str, int]]]:
        """Expose quotes as a list of mappings for QML."""
        return [
            {"text": q.text, "author": q.author, "accessCount": q.access_count}
            for q in self._quotes
        ]

    quotes = Property("QVariant", _get_quotes, notify=quotesChanged)
