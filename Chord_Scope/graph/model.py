from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Sequence, Tuple

import networkx as nx

from .types import SnapshotNode

logger = logging.getLogger(__name__)

Position = Tuple[float, float]
LayoutFn = Callable[[nx.DiGraph, Sequence[str]], Dict[str, Position]]

BASE_NODE_SIZE = 15.0
SIZE_PER_LOG_ITEM = 4.0


def node_size(item_count: int) -> float:
    """Return the visual weight for a node storing ``item_count`` entries."""

    return BASE_NODE_SIZE + SIZE_PER_LOG_ITEM * math.log1p(max(item_count, 0))


def circular_layout(graph: nx.DiGraph, order: Sequence[str]) -> Dict[str, Position]:
    """Place nodes on a unit circle following ring ``order``."""

    if not order:
        return {}
    pos = nx.circular_layout(list(order))
    return {nid: (float(xy[0]), float(xy[1])) for nid, xy in pos.items()}


@dataclass(frozen=True)
class ReconcileResult:
    """Counts describing what a single :meth:`GraphModel.apply_snapshot` did."""

    nodes_added: int = 0
    nodes_removed: int = 0
    edges_added: int = 0
    edges_removed: int = 0
    dangling: int = 0

    @property
    def changed(self) -> bool:
        return bool(
            self.nodes_added or self.nodes_removed or self.edges_added or self.edges_removed
        )


class GraphModel:
    """Directed ring topology rebuilt in place from full snapshots.

    Each snapshot supersedes the previous one. Reconciliation diffs the
    current :class:`networkx.DiGraph` against the snapshot so surviving nodes
    keep their attributes, while nodes and edges missing from the snapshot are
    removed before the call returns.

    Neighbor addresses that are not part of the same snapshot are dropped;
    no placeholder nodes are created for them.
    """

    def __init__(self, layout: LayoutFn | None = circular_layout) -> None:
        self._graph = nx.DiGraph()
        self._order: List[str] = []
        self._layout = layout

    # ------------------------------------------------------------------
    def apply_snapshot(self, nodes: Iterable[SnapshotNode]) -> ReconcileResult:
        """Make the model match ``nodes`` exactly and refresh the layout."""

        snapshot: Dict[str, SnapshotNode] = {}
        for node in nodes:
            if node.address in snapshot:
                logger.debug("duplicate address %s in snapshot", node.address)
            snapshot[node.address] = node

        g = self._graph
        stale = [nid for nid in g.nodes if nid not in snapshot]
        g.remove_nodes_from(stale)
        added = 0
        for address, node in snapshot.items():
            if address not in g:
                g.add_node(address, label=address, x=0.0, y=0.0)
                added += 1
            attrs = g.nodes[address]
            attrs["item_count"] = node.item_count
            attrs["size"] = node_size(node.item_count)
            attrs["predecessor"] = node.predecessor

        wanted: set[Tuple[str, str]] = set()
        dangling = 0
        for address, node in snapshot.items():
            for target in node.neighbors:
                if not target:
                    continue
                if target not in snapshot:
                    dangling += 1
                    continue
                wanted.add((address, target))
        if dangling:
            logger.debug("dropped %d edges to unknown addresses", dangling)

        old_edges = [e for e in g.edges if e not in wanted]
        g.remove_edges_from(old_edges)
        new_edges = [e for e in wanted if not g.has_edge(*e)]
        g.add_edges_from(new_edges)

        self._order = list(snapshot)
        self._relayout()
        return ReconcileResult(
            nodes_added=added,
            nodes_removed=len(stale),
            edges_added=len(new_edges),
            edges_removed=len(old_edges),
            dangling=dangling,
        )

    def _relayout(self) -> None:
        if self._layout is None:
            return
        positions = self._layout(self._graph, self._order)
        for nid, (x, y) in positions.items():
            if nid in self._graph:
                self._graph.nodes[nid]["x"] = x
                self._graph.nodes[nid]["y"] = y

    def clear(self) -> None:
        """Remove every node and edge."""

        self._graph.clear()
        self._order = []

    # ------------------------------------------------------------------
    def nodes(self) -> List[str]:
        """Return node addresses in snapshot order."""

        return list(self._order)

    def edges(self) -> List[Tuple[str, str]]:
        """Return directed edges sorted by ``(source, target)``."""

        return sorted(self._graph.edges)

    def node_attributes(self, address: str) -> Dict[str, Any]:
        """Return a copy of the attributes for ``address`` or an empty dict."""

        if address not in self._graph:
            return {}
        return dict(self._graph.nodes[address])

    def item_counts(self) -> Dict[str, int]:
        """Return the item count of every node."""

        return {nid: self._graph.nodes[nid]["item_count"] for nid in self._order}

    def total_items(self) -> int:
        return sum(self.item_counts().values())

    def positions(self) -> Dict[str, Position]:
        return {
            nid: (self._graph.nodes[nid]["x"], self._graph.nodes[nid]["y"])
            for nid in self._order
        }

    def successors(self, address: str) -> List[str]:
        if address not in self._graph:
            return []
        return sorted(self._graph.successors(address))

    def node_count(self) -> int:
        return self._graph.number_of_nodes()

    def edge_count(self) -> int:
        return self._graph.number_of_edges()

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the model to plain lists for the rendering layer."""

        return {
            "nodes": [
                {"id": nid, **self._graph.nodes[nid]} for nid in self._order
            ],
            "edges": [{"from": a, "to": b} for a, b in self.edges()],
        }
