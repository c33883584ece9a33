from __future__ import annotations

"""Ring topology model exposed to QML panels."""

from typing import Any, Dict, Iterable, List, Optional, Tuple

from PySide6.QtCore import QObject, Property, Signal, Slot

from Chord_Scope.graph import GraphModel, ReconcileResult, SnapshotNode


class TopologyModel(QObject):
    """Report the live ring graph and its node/edge/item counts."""

    nodeCountChanged = Signal(int)
    edgeCountChanged = Signal(int)
    totalItemsChanged = Signal(int)
    graphChanged = Signal()

    def __init__(self, graph: Optional[GraphModel] = None) -> None:
        super().__init__()
        self._graph = graph if graph is not None else GraphModel()
        self._node_count = 0
        self._edge_count = 0
        self._total_items = 0

    @property
    def graph(self) -> GraphModel:
        return self._graph

    # ------------------------------------------------------------------
    def _get_node_count(self) -> int:
        return self._node_count

    nodeCount = Property(int, _get_node_count, notify=nodeCountChanged)

    def _get_edge_count(self) -> int:
        return self._edge_count

    edgeCount = Property(int, _get_edge_count, notify=edgeCountChanged)

    def _get_total_items(self) -> int:
        return self._total_items

    totalItems = Property(int, _get_total_items, notify=totalItemsChanged)

    # ------------------------------------------------------------------
    def _refresh_counts(self) -> None:
        nodes = self._graph.node_count()
        edges = self._graph.edge_count()
        items = self._graph.total_items()
        if nodes != self._node_count:
            self._node_count = nodes
            self.nodeCountChanged.emit(nodes)
        if edges != self._edge_count:
            self._edge_count = edges
            self.edgeCountChanged.emit(edges)
        if items != self._total_items:
            self._total_items = items
            self.totalItemsChanged.emit(items)

    def apply_snapshot(self, nodes: Iterable[SnapshotNode]) -> ReconcileResult:
        """Reconcile the graph with ``nodes`` and notify the view."""
        result = self._graph.apply_snapshot(nodes)
        self._refresh_counts()
        self.graphChanged.emit()
        return result

    def clear(self) -> None:
        """Drop the whole topology, e.g. after a disconnect."""
        self._graph.clear()
        self._refresh_counts()
        self.graphChanged.emit()

    # ------------------------------------------------------------------
    @Slot(result=dict)
    def graph_arrays(self) -> Dict[str, Any]:
        """Return parallel arrays for the graph view.

        Edges reference nodes by their index in ``nodes``.
        """
        order = self._graph.nodes()
        index = {nid: i for i, nid in enumerate(order)}
        positions = self._graph.positions()
        nodes: List[Tuple[float, float]] = [positions[nid] for nid in order]
        labels: List[str] = []
        sizes: List[float] = []
        counts: List[int] = []
        for nid in order:
            attrs = self._graph.node_attributes(nid)
            labels.append(attrs.get("label", nid))
            sizes.append(attrs.get("size", 0.0))
            counts.append(attrs.get("item_count", 0))
        edges = [(index[a], index[b]) for a, b in self._graph.edges()]
        return {
            "nodes": nodes,
            "edges": edges,
            "labels": labels,
            "sizes": sizes,
            "itemCounts": counts,
        }

    @Slot(str, result=dict)
    def get_node(self, address: str) -> Dict[str, Any]:
        """Return attributes and successors for ``address`` or an empty dict."""
        attrs = self._graph.node_attributes(address)
        if not attrs:
            return {}
        attrs["successors"] = self._graph.successors(address)
        return attrs
