from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple, TypedDict

# Reusable typed mappings for snapshot JSON payloads

NodeData = TypedDict(
    "NodeData",
    {
        "addr": str,
        "pred": Optional[str],
        "succ": str,
        "hash": List[int],
        "fingers": List[str],
        "len": int,
    },
    total=False,
)

QuoteData = TypedDict(
    "QuoteData",
    {
        "text": str,
        "author": str,
        "access_count": int,
    },
    total=False,
)


@dataclass(frozen=True)
class SnapshotNode:
    """One ring node as described by a topology snapshot."""

    address: str
    neighbors: Tuple[str, ...] = ()
    item_count: int = 0
    predecessor: Optional[str] = None
    key_hash: Tuple[int, ...] = field(default=(), repr=False)


@dataclass(frozen=True)
class Quote:
    """A stored quote and how often it has been read."""

    text: str
    author: str = ""
    access_count: int = 0
