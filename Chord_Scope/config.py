# config.py

"""Client configuration and simulation parameter validation."""

from __future__ import annotations

import copy
import json
import os
from dataclasses import asdict, dataclass, fields
from typing import Any

import yaml


class ConfigError(ValueError):
    """Raised when a configuration file or simulation config is invalid."""


# Inclusive ranges enforced on every Start / Update command
SIMULATION_LIMITS: dict[str, tuple[int, int]] = {
    "nodes": (1, 50),
    "poll_rate": (10, 1000),
    "activity_level": (10, 1000),
    "get_affinity": (0, 100),
    "stabilize_freq": (10, 1000),
    "fix_finger_freq": (10, 1000),
}


@dataclass(frozen=True)
class SimulationConfig:
    """Parameters sent with ``Start`` and ``Update`` commands.

    Attributes
    ----------
    nodes:
        Number of ring nodes the backend should spawn.
    poll_rate:
        Milliseconds between ``PollData`` snapshots.
    activity_level:
        Milliseconds between simulated client operations.
    get_affinity:
        Percentage of simulated operations that are ``get`` requests.
    stabilize_freq:
        Milliseconds between successor stabilisation rounds.
    fix_finger_freq:
        Milliseconds between finger table repair rounds.
    """

    nodes: int = 10
    poll_rate: int = 200
    activity_level: int = 100
    get_affinity: int = 50
    stabilize_freq: int = 100
    fix_finger_freq: int = 100

    def validate(self) -> list[str]:
        """Return a list of range violations (empty when valid)."""

        errors: list[str] = []
        for name, (low, high) in SIMULATION_LIMITS.items():
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                errors.append(f"{name} must be an integer, got {value!r}")
            elif not low <= value <= high:
                errors.append(f"{name}={value} outside [{low}, {high}]")
        return errors

    def to_wire(self) -> dict[str, int]:
        """Return the payload used inside ``Start`` / ``Update`` messages."""

        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SimulationConfig":
        """Build a config from ``data``; unknown keys raise :class:`ConfigError`."""

        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"unknown simulation keys: {sorted(unknown)}")
        return cls(**data)


class Config:
    """Global client configuration.

    Values are plain class attributes so the CLI can expose each of them as a
    flag. Call :meth:`load_from_file` to merge a JSON or YAML file on top of
    the defaults.

    Attributes
    ----------
    ws_url:
        Full WebSocket URL of the simulation backend. When empty the URL is
        assembled from ``ws_host`` and ``ws_port``.
    ping_interval:
        Seconds between heartbeat pings; an unanswered ping drops the link.
    reconnect_delay:
        Seconds to wait between connection attempts.
    reconnect_attempts:
        Number of connection attempts before giving up; ``0`` retries forever.
    pending_timeout:
        Seconds a control command may stay unacknowledged before the client
        rolls its lifecycle back.
    history_limit:
        Number of recent event outcomes (haikus) retained for display.
    series_limit:
        Maximum points per metric series; ``0`` keeps every point.
    path_length_source:
        ``"snapshot"`` trusts backend ``PollData`` aggregates, ``"events"``
        trusts per-operation ``Metric`` events. Only one is ever displayed.
    accept_legacy:
        Migrate ``{"kind": ..., "data": ...}`` frames instead of dropping them.
    legacy_commands:
        Enable the auxiliary ``AddNode`` and ``ClientSim`` commands.
    clear_on_disconnect:
        Empty the topology when the connection is lost.
    simulation:
        Default :class:`SimulationConfig` values used by ``--start``.
    """

    config_file: str | None = None

    ws_url = ""
    ws_host = "127.0.0.1"
    ws_port = 3000
    ws_path = "/ws"
    ping_interval = 30.0
    reconnect_delay = 1.0
    reconnect_attempts = 10

    pending_timeout = 10.0
    history_limit = 5
    series_limit = 0
    top_quotes = 10
    path_length_source = "snapshot"
    accept_legacy = True
    legacy_commands = False
    clear_on_disconnect = True

    log_level = "INFO"
    log_file = "chord_scope.log"

    simulation = asdict(SimulationConfig())

    @classmethod
    def defaults(cls) -> dict[str, Any]:
        """Return a copy of the public attributes and their current values."""

        out: dict[str, Any] = {}
        for key, value in vars(cls).items():
            if key.startswith("_") or key == "config_file":
                continue
            if callable(value) or isinstance(value, (classmethod, staticmethod)):
                continue
            out[key] = copy.deepcopy(value)
        return out

    @classmethod
    def restore(cls, values: dict[str, Any]) -> None:
        """Reassign every attribute in ``values``."""

        for key, value in values.items():
            setattr(cls, key, copy.deepcopy(value))

    @classmethod
    def simulation_config(cls) -> SimulationConfig:
        """Return the configured default :class:`SimulationConfig`."""

        return SimulationConfig.from_dict(cls.simulation)

    @classmethod
    def validate(cls) -> list[str]:
        """Return configuration errors (empty when valid)."""

        errors: list[str] = []
        if cls.path_length_source not in {"snapshot", "events"}:
            errors.append(
                f"path_length_source must be 'snapshot' or 'events', "
                f"got {cls.path_length_source!r}"
            )
        if cls.pending_timeout <= 0:
            errors.append("pending_timeout must be > 0")
        if cls.history_limit < 1:
            errors.append("history_limit must be >= 1")
        if cls.series_limit < 0:
            errors.append("series_limit must be >= 0")
        try:
            errors.extend(cls.simulation_config().validate())
        except (ConfigError, TypeError) as exc:
            errors.append(str(exc))
        return errors

    @classmethod
    def load_from_file(cls, path: str) -> None:
        """Load configuration values from a JSON or YAML file.

        Only keys that already exist as attributes on ``Config`` are
        assigned. Nested dictionaries are merged when the existing attribute
        is also a ``dict``.
        """

        if not os.path.exists(path):
            raise FileNotFoundError(path)
        with open(path) as f:
            text = f.read()
        try:
            if path.endswith(".json"):
                data = json.loads(text)
            else:
                data = yaml.safe_load(text) or {}
        except (json.JSONDecodeError, yaml.YAMLError) as exc:
            raise ConfigError(f"cannot parse {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"{path} must contain a mapping")

        previous = cls.defaults()
        merged = copy.deepcopy(previous)
        for key, value in data.items():
            if key not in merged:
                continue
            if isinstance(merged[key], dict) and isinstance(value, dict):
                merged[key].update(value)
            else:
                merged[key] = value

        # previous values come back when validation fails
        cls.restore(merged)
        try:
            errors = cls.validate()
        except TypeError as exc:
            errors = [str(exc)]
        if errors:
            cls.restore(previous)
            raise ConfigError("; ".join(errors))
        cls.config_file = os.path.abspath(path)


def load_config(path: str | None = None) -> dict[str, Any]:
    """Load ``path`` into :class:`Config` and return the resulting values."""

    if path is not None:
        Config.load_from_file(path)
    return Config.defaults()
