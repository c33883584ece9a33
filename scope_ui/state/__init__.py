"""State management for the ring observability UI."""

from .Connection import ConnectionModel
from .Control import ControlModel, Lifecycle, PendingAction
from .Haikus import HaikusModel
from .Metrics import MetricsModel
from .Quotes import QuotesModel
from .Topology import TopologyModel

__all__ = [
    "ConnectionModel",
    "ControlModel",
    "Lifecycle",
    "PendingAction",
    "HaikusModel",
    "MetricsModel",
    "QuotesModel",
    "TopologyModel",
]
