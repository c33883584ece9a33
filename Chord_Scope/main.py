# main.py

"""Entry point for launching the Chord ring observability client."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from dataclasses import dataclass
from typing import Any

from Chord_Scope.config import Config, ConfigError

# Config attributes that should not be exposed as CLI flags
_PRIVATE_KEYS = {"config_file", "log_file"}

logger = logging.getLogger(__name__)


def _configure_logging() -> None:
    """Configure application logging and capture uncaught exceptions."""

    logging.basicConfig(
        level=getattr(logging, str(Config.log_level).upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        filename=Config.log_file,
        filemode="a",
    )

    def _log_excepthook(exc_type, exc, tb) -> None:
        logging.getLogger(__name__).exception(
            "Uncaught exception", exc_info=(exc_type, exc, tb)
        )

    sys.excepthook = _log_excepthook


def _parse_bool(text: str) -> bool:
    return text.lower() in {"1", "true", "yes", "on"}


def _add_config_args(
    parser: argparse.ArgumentParser, data: dict[str, Any], prefix: str = ""
) -> None:
    """Recursively add CLI flags based on ``data`` keys."""
    for key, value in data.items():
        if key in _PRIVATE_KEYS:
            continue
        arg_name = f"--{prefix}{key}"
        dest = f"{prefix}{key}".replace(".", "_")
        if isinstance(value, dict):
            _add_config_args(parser, value, prefix=f"{prefix}{key}.")
            continue
        if dest == "path_length_source":
            parser.add_argument(arg_name, choices=["snapshot", "events"], dest=dest)
        elif isinstance(value, bool):
            parser.add_argument(arg_name, type=_parse_bool, dest=dest)
        else:
            parser.add_argument(arg_name, type=type(value), dest=dest)


def _apply_overrides(
    args: argparse.Namespace, data: dict[str, Any], prefix: str = ""
) -> None:
    """Apply CLI overrides back onto :class:`Config`."""
    for key, value in data.items():
        full = f"{prefix}{key}"
        dest = full.replace(".", "_")
        if isinstance(value, dict):
            _apply_overrides(args, value, prefix=f"{full}.")
            continue
        override = getattr(args, dest, None)
        if override is None:
            continue
        parts = full.split(".")
        if len(parts) == 1:
            setattr(Config, key, override)
        else:
            getattr(Config, parts[0])[parts[-1]] = override


@dataclass
class MainService:
    """Handle CLI parsing and start the client session."""

    argv: list[str] | None = None

    def run(self) -> int:
        try:
            args = self._parse_args()
        except ConfigError as exc:
            print(f"configuration error: {exc}", file=sys.stderr)
            return 2
        _configure_logging()
        errors = Config.validate()
        if errors:
            for err in errors:
                print(f"configuration error: {err}", file=sys.stderr)
            return 2
        return self._launch(args)

    # ------------------------------------------------------------------
    def _parse_args(self) -> argparse.Namespace:
        initial = argparse.ArgumentParser(add_help=False)
        initial.add_argument(
            "--config",
            default=os.getenv("CHORD_SCOPE_CONFIG"),
            help="Path to JSON or YAML configuration file",
        )
        known, _ = initial.parse_known_args(self.argv)
        if known.config:
            Config.load_from_file(known.config)

        parser = argparse.ArgumentParser(
            parents=[initial], description="Observe a Chord ring simulation"
        )
        defaults = Config.defaults()
        _add_config_args(parser, defaults)
        parser.add_argument("--ws-url", default=None, help="WebSocket URL of backend")
        parser.add_argument("--ws-host", default=None, help="Backend host override")
        parser.add_argument(
            "--ws-port", type=int, default=None, help="Backend port override"
        )
        parser.add_argument(
            "--start",
            action="store_true",
            help="Send Start with the configured simulation once connected",
        )
        parser.add_argument(
            "--log-file", default=None, help="Append logs to this file"
        )
        args = parser.parse_args(self.argv)
        _apply_overrides(args, defaults)
        if args.log_file:
            Config.log_file = args.log_file
        return args

    # ------------------------------------------------------------------
    @staticmethod
    def _launch(args: argparse.Namespace) -> int:
        """Run the client inside a Qt event loop until the session ends."""

        from PySide6.QtCore import QCoreApplication
        from qasync import QEventLoop

        from scope_ui import core
        from scope_ui.endpoint import resolve_endpoint
        from scope_ui.ipc import ConnectError
        from scope_ui.state import (
            ConnectionModel,
            ControlModel,
            HaikusModel,
            MetricsModel,
            QuotesModel,
            TopologyModel,
        )
        from telemetry import MetricsAggregator

        app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
        connection = ConnectionModel()
        control = ControlModel(
            pending_timeout=Config.pending_timeout,
            legacy_commands=Config.legacy_commands,
        )
        topology = TopologyModel()
        metrics = MetricsModel(
            MetricsAggregator(
                path_length_source=Config.path_length_source,
                series_limit=Config.series_limit or None,
                history_limit=Config.history_limit,
            )
        )
        quotes = QuotesModel(limit=Config.top_quotes)
        haikus = HaikusModel()

        connection.statusChanged.connect(lambda s: logger.info("connection %s", s))
        control.lifecycleChanged.connect(lambda s: logger.info("simulation %s", s))
        control.commandRejected.connect(lambda r: logger.warning("rejected: %s", r))
        topology.nodeCountChanged.connect(lambda n: logger.info("ring has %d nodes", n))

        url = resolve_endpoint(args.ws_url, args.ws_host, args.ws_port)
        on_open = None
        if args.start:
            sim = Config.simulation_config()
            on_open = lambda: control.start(sim)  # noqa: E731

        loop = QEventLoop(app)
        asyncio.set_event_loop(loop)
        status = {"code": 0}

        async def runner() -> None:
            attempt = 0
            limit = Config.reconnect_attempts
            while not limit or attempt < limit:
                attempt += 1
                try:
                    await core.run(
                        url,
                        topology,
                        metrics,
                        control,
                        connection,
                        quotes,
                        haikus,
                        ping_interval=Config.ping_interval,
                        accept_legacy=Config.accept_legacy,
                        clear_on_disconnect=Config.clear_on_disconnect,
                        on_open=on_open,
                    )
                    attempt = 0
                except ConnectError as exc:
                    logger.warning("attempt %d to reach %s failed: %s", attempt, url, exc)
                await asyncio.sleep(Config.reconnect_delay)
            logger.error("giving up on %s after %d attempts", url, attempt)
            print(f"Couldn't reach ring backend at {url}", file=sys.stderr)
            status["code"] = 1
            loop.stop()

        task = loop.create_task(runner())
        with loop:
            try:
                loop.run_forever()
            except KeyboardInterrupt:
                pass
            finally:
                task.cancel()
        return status["code"]


def main() -> None:
    """Entry point for external callers."""
    sys.exit(MainService().run())


if __name__ == "__main__":
    main()
