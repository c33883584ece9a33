"""Transport layer for the backend connection."""

from .Client import Client, ConnectError, ConnectionState

__all__ = ["Client", "ConnectError", "ConnectionState"]
