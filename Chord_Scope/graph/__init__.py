"""Topology model rebuilt from ring snapshots."""

from .model import GraphModel, ReconcileResult, circular_layout, node_size
from .types import NodeData, Quote, QuoteData, SnapshotNode

__all__ = [
    "GraphModel",
    "ReconcileResult",
    "circular_layout",
    "node_size",
    "NodeData",
    "Quote",
    "QuoteData",
    "SnapshotNode",
]
