"""JSON helpers for the simulation stream.

Frames are UTF-8 JSON values using an externally tagged layout: every inbound
message is an object with exactly one key naming its type (``NodeData``,
``PollData``, ``Haiku``, ``Metric`` or ``Ctrl``). Older backends emitted
``{"kind": ..., "data": ...}`` objects; those are migrated to the same types
when ``accept_legacy`` is set. Frames that match no known shape raise a
``ProtocolError`` so callers can drop them without touching any model.

Outbound commands are encoded the same way: bare strings for commands without
a payload (``"Stop"``) and single-key objects otherwise (``{"Start": {...}}``).
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from ..config import SimulationConfig
from ..graph.types import Quote, SnapshotNode

METRICS = ("latency", "pathLength")
OP_KINDS = ("get", "set")
CONTROL_ACKS = ("Started", "Stopped", "Updated")
COMMANDS = ("Start", "Stop", "Update", "AddNode", "ClientSim")
CONFIG_COMMANDS = ("Start", "Update")


class ProtocolError(ValueError):
    """Raised when a frame cannot be decoded into a known message."""


@dataclass(frozen=True)
class TopologySnapshot:
    """Full node list superseding every earlier snapshot."""

    nodes: Tuple[SnapshotNode, ...]


@dataclass(frozen=True)
class PathAggregates:
    """Backend-side path length statistics carried by ``PollData``.

    Either the averages or the totals may be present depending on backend
    revision; absent fields are ``None``.
    """

    avg_get_path_len: Optional[float] = None
    avg_set_path_len: Optional[float] = None
    total_get_len: Optional[int] = None
    total_set_len: Optional[int] = None
    total_gets: Optional[int] = None
    total_sets: Optional[int] = None

    def average(self, kind: str) -> Optional[float]:
        """Return the average path length for ``kind`` or ``None``.

        Totals take precedence over pre-computed averages. A zero operation
        count yields ``None`` rather than a division by zero.
        """

        total = self.total_get_len if kind == "get" else self.total_set_len
        count = self.total_gets if kind == "get" else self.total_sets
        if total is not None and count is not None:
            return total / count if count > 0 else None
        avg = self.avg_get_path_len if kind == "get" else self.avg_set_path_len
        return avg

    def totals(self, kind: str) -> Optional[Tuple[int, int]]:
        """Return ``(total_len, count)`` for ``kind`` when both are present."""

        total = self.total_get_len if kind == "get" else self.total_set_len
        count = self.total_gets if kind == "get" else self.total_sets
        if total is None or count is None:
            return None
        return total, count


@dataclass(frozen=True)
class PollData:
    """Periodic snapshot with topology, aggregates and the top quotes."""

    nodes: Tuple[SnapshotNode, ...]
    aggregates: PathAggregates = field(default_factory=PathAggregates)
    quotes: Tuple[Quote, ...] = ()


@dataclass(frozen=True)
class HaikuEvent:
    """A generated haiku, optionally with the latency of the operation."""

    text: str
    latency_ms: Optional[float] = None


@dataclass(frozen=True)
class ScalarEvent:
    """A single completed operation measurement."""

    metric: str
    kind: str
    value: float


@dataclass(frozen=True)
class ControlAck:
    """Backend acknowledgement of a control command."""

    status: str


Message = Union[TopologySnapshot, PollData, HaikuEvent, ScalarEvent, ControlAck]


# ----------------------------------------------------------------------
def _number(value: Any, name: str, *, integer: bool = False) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ProtocolError(f"{name} must be a number, got {value!r}")
    if isinstance(value, float) and not math.isfinite(value):
        raise ProtocolError(f"{name} must be finite")
    if value < 0:
        raise ProtocolError(f"{name} must be non-negative")
    if integer:
        if isinstance(value, float) and not value.is_integer():
            raise ProtocolError(f"{name} must be an integer, got {value!r}")
        return int(value)
    return float(value)


def _optional_number(
    data: Mapping[str, Any], key: str, *, integer: bool = False
) -> Optional[float]:
    if data.get(key) is None:
        return None
    return _number(data[key], key, integer=integer)


def parse_node(raw: Any) -> SnapshotNode:
    """Decode one node record from any protocol revision."""

    if not isinstance(raw, Mapping):
        raise ProtocolError(f"node must be an object, got {type(raw).__name__}")
    addr = raw.get("addr")
    if not isinstance(addr, str) or not addr:
        raise ProtocolError("node is missing 'addr'")

    fingers = raw.get("fingers")
    if fingers is not None:
        if not isinstance(fingers, list) or not all(isinstance(f, str) for f in fingers):
            raise ProtocolError(f"fingers of {addr} must be a list of addresses")
        neighbors = tuple(fingers)
    else:
        succ = raw.get("succ") or ""
        if not isinstance(succ, str):
            raise ProtocolError(f"succ of {addr} must be an address")
        neighbors = (succ,) if succ else ()

    pred = raw.get("pred")
    if pred is not None and not isinstance(pred, str):
        raise ProtocolError(f"pred of {addr} must be an address")

    key_hash = raw.get("hash") or ()
    if not isinstance(key_hash, (list, tuple)):
        raise ProtocolError(f"hash of {addr} must be a byte list")

    item_count = 0
    if raw.get("len") is not None:
        item_count = _number(raw["len"], "len", integer=True)

    return SnapshotNode(
        address=addr,
        neighbors=neighbors,
        item_count=item_count,
        predecessor=pred or None,
        key_hash=tuple(key_hash),
    )


def parse_nodes(raw: Any) -> Tuple[SnapshotNode, ...]:
    if not isinstance(raw, list):
        raise ProtocolError("node list must be an array")
    return tuple(parse_node(n) for n in raw)


def parse_quote(raw: Any) -> Quote:
    """Decode a quote from an object or a ``[text, author, count]`` triple."""

    if isinstance(raw, (list, tuple)):
        if len(raw) != 3:
            raise ProtocolError("quote triple must have three entries")
        text, author, count = raw
    elif isinstance(raw, Mapping):
        text = raw.get("text", raw.get("quote"))
        author = raw.get("author", "")
        count = raw.get("access_count", raw.get("accessCount", raw.get("count", 0)))
    else:
        raise ProtocolError(f"quote must be an object, got {type(raw).__name__}")
    if not isinstance(text, str):
        raise ProtocolError("quote is missing its text")
    if not isinstance(author, str):
        raise ProtocolError("quote author must be a string")
    access_count = _number(count, "access_count", integer=True)
    return Quote(text=text, author=author, access_count=access_count)


def _parse_poll(raw: Any) -> PollData:
    if not isinstance(raw, Mapping):
        raise ProtocolError("PollData payload must be an object")
    aggregates = PathAggregates(
        avg_get_path_len=_optional_number(raw, "avg_get_path_len"),
        avg_set_path_len=_optional_number(raw, "avg_set_path_len"),
        total_get_len=_optional_number(raw, "total_get_len", integer=True),
        total_set_len=_optional_number(raw, "total_set_len", integer=True),
        total_gets=_optional_number(raw, "total_gets", integer=True),
        total_sets=_optional_number(raw, "total_sets", integer=True),
    )
    quotes_raw = raw.get("popular_quotes") or []
    if not isinstance(quotes_raw, list):
        raise ProtocolError("popular_quotes must be an array")
    return PollData(
        nodes=parse_nodes(raw.get("nodes", [])),
        aggregates=aggregates,
        quotes=tuple(parse_quote(q) for q in quotes_raw),
    )


def _parse_haiku(raw: Any) -> HaikuEvent:
    if isinstance(raw, str):
        return HaikuEvent(text=raw)
    if isinstance(raw, list) and len(raw) == 2 and isinstance(raw[0], str):
        latency = None if raw[1] is None else _number(raw[1], "latency")
        return HaikuEvent(text=raw[0], latency_ms=latency)
    raise ProtocolError("Haiku payload must be [text, latency_ms]")


def _parse_metric(raw: Any) -> ScalarEvent:
    if not isinstance(raw, Mapping):
        raise ProtocolError("Metric payload must be an object")
    metric = raw.get("metric")
    kind = raw.get("kind")
    if metric not in METRICS:
        raise ProtocolError(f"unknown metric {metric!r}")
    if kind not in OP_KINDS:
        raise ProtocolError(f"unknown operation kind {kind!r}")
    value = _number(raw.get("value"), "value")
    return ScalarEvent(metric=metric, kind=kind, value=value)


def _parse_ctrl(raw: Any) -> ControlAck:
    if raw not in CONTROL_ACKS:
        raise ProtocolError(f"unknown control acknowledgement {raw!r}")
    return ControlAck(status=raw)


_PARSERS = {
    "NodeData": lambda raw: TopologySnapshot(nodes=parse_nodes(raw)),
    "PollData": _parse_poll,
    "Haiku": _parse_haiku,
    "Metric": _parse_metric,
    "Ctrl": _parse_ctrl,
}


def _migrate_legacy(msg: Mapping[str, Any]) -> Message:
    kind = msg.get("kind")
    data = msg.get("data")
    if kind == "node data":
        return TopologySnapshot(nodes=parse_nodes(data))
    if kind == "haiku":
        return _parse_haiku(data)
    raise ProtocolError(f"unknown legacy kind {kind!r}")


def decode_message(msg: Any, accept_legacy: bool = True) -> Message:
    """Convert a parsed JSON value into a typed message."""

    if not isinstance(msg, Mapping):
        raise ProtocolError(f"frame must be an object, got {type(msg).__name__}")
    if "kind" in msg and "data" in msg:
        if not accept_legacy:
            raise ProtocolError(f"legacy frame rejected: kind={msg.get('kind')!r}")
        return _migrate_legacy(msg)
    if len(msg) != 1:
        raise ProtocolError(f"expected one tag, got {sorted(msg)}")
    ((tag, payload),) = msg.items()
    parser = _PARSERS.get(tag)
    if parser is None:
        raise ProtocolError(f"unknown tag {tag!r}")
    return parser(payload)


def decode_frame(raw: Union[str, bytes], accept_legacy: bool = True) -> Message:
    """Decode a UTF-8 JSON frame into a typed message."""

    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ProtocolError(f"frame is not UTF-8: {exc}") from exc
    try:
        msg = json.loads(raw)
    except (ValueError, RecursionError) as exc:
        raise ProtocolError(f"frame is not JSON: {exc}") from exc
    return decode_message(msg, accept_legacy=accept_legacy)


# ----------------------------------------------------------------------
def command_payload(
    command: str, config: Optional[SimulationConfig] = None
) -> Union[str, Dict[str, Any]]:
    """Return the JSON value for ``command``."""

    if command not in COMMANDS:
        raise ProtocolError(f"unknown command {command!r}")
    if command in CONFIG_COMMANDS:
        if config is None:
            raise ProtocolError(f"{command} requires a simulation config")
        return {command: config.to_wire()}
    if config is not None:
        raise ProtocolError(f"{command} takes no config")
    return command


def encode_command(command: str, config: Optional[SimulationConfig] = None) -> str:
    """Return the JSON text frame for ``command``."""

    return json.dumps(command_payload(command, config))
