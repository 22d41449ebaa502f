"""blphttp command-line entry point.

Usage::

    blphttp -c config.yaml                      # validate and summarise
    blphttp -c config.yaml --port 8080 validate
    blphttp -c config.yaml show serverOptions
    blphttp -c config.yaml show https.enable
    blphttp -c config.yaml watch                # follow CRL reloads
    blphttp schema
    python -m blphttp -c config.yaml
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
import time
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

log = logging.getLogger(__name__)


def _get_version() -> str:
    from blphttp import __version__

    return __version__


def _build_parser(registry) -> argparse.ArgumentParser:
    from blphttp.config.gateway_config import build_source_parser

    parser = argparse.ArgumentParser(
        prog="blphttp",
        description="BLPAPI HTTP gateway configuration resolver",
        parents=[build_source_parser(registry, add_help=False)],
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Enable debug output (full tracebacks, verbose logging).",
    )
    parser.add_argument(
        "--base-dir",
        metavar="DIR",
        default=None,
        help="Directory that relative TLS file paths are resolved against.",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("validate", help="Resolve and validate the configuration")
    show_parser = subparsers.add_parser("show", help="Print a setting or option bundle")
    show_parser.add_argument("name", help="Dotted setting name or bundle name")
    subparsers.add_parser("schema", help="List every setting with its documentation")
    subparsers.add_parser("watch", help="Follow revocation list reloads until interrupted")
    return parser


def _print_error(message: str) -> None:
    """Print a user-facing error to stderr."""
    print(f"error: {message}", file=sys.stderr)  # noqa: T201


def _to_plain(value: Any) -> Any:  # noqa: ANN401, PLR0911
    """Convert bundles and store sections into YAML-friendly data."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: _to_plain(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, (bytes, bytearray)):
        return f"<{len(value)} bytes>"
    if isinstance(value, Mapping):
        return {str(k): _to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_plain(v) for v in value]
    if isinstance(value, Path):
        return str(value)
    if callable(value):
        return getattr(value, "__name__", repr(value))
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    return repr(value)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.  Parses arguments, loads config, runs a command."""
    from blphttp.config.definitions import gateway_registry

    registry = gateway_registry()
    parser = _build_parser(registry)
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    command = args.command or "validate"
    if command == "schema":
        _print_schema(registry)
        return

    try:
        from blphttp.config import ConfigError, GatewayConfig
        from blphttp.config.sources import schema_args

        config = GatewayConfig.initialize(
            args=schema_args(args, registry),
            config_file=args.config_file,
            base_dir=args.base_dir,
            registry=registry,
            watch=command == "watch",
        )
    except ConfigError as exc:
        if args.debug:
            raise
        _print_error(str(exc))
        sys.exit(1)

    if command == "show":
        try:
            value = config.get(args.name)
        except KeyError as exc:
            _print_error(str(exc))
            sys.exit(1)
        print(yaml.safe_dump(_to_plain(value), default_flow_style=False, sort_keys=False), end="")  # noqa: T201
    elif command == "watch":
        _run_watch(config)
    else:
        _print_settings_summary(config)


def _run_watch(config) -> None:
    """Configure logging from the bundle and block until interrupted."""
    from blphttp.logging import configure_logging

    if config.watcher is None:
        _print_error("https.enable and https.crl must be set to watch a revocation list")
        sys.exit(1)

    configure_logging(config.logger_options)

    def _announce(setting: str) -> None:
        print(f"changed: {setting}", flush=True)  # noqa: T201

    config.subscribe(_announce)
    log.info("Watching %s, press Ctrl-C to stop", config.watcher.path)
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        log.info("Interrupted")
    finally:
        config.watcher.stop()


def _print_schema(registry) -> None:
    """Print every schema entry with its bindings."""
    for key, doc, fmt, default, env, arg in registry.describe():
        print(f"{key} ({fmt}, default {default!r})")  # noqa: T201
        print(f"    {doc}")  # noqa: T201
        if arg:
            print(f"    flag: --{arg}")  # noqa: T201
        if env:
            print(f"    env:  {env}")  # noqa: T201


def _print_settings_summary(config) -> None:
    """Print a short summary of the loaded configuration."""
    server = config.server_options
    session = config.session_options
    lines = [
        f"config file:   {config.config_file or '-'}",
        f"service:       {server.name} {server.version}",
        f"listen port:   {config.get('port')}",
        f"https:         {'mutual TLS' if server.https else 'disabled'}",
        f"crl:           {server.https.crl_path if server.https and server.https.crl_path else '-'}",
        f"upstream:      {session.server_host}:{session.server_port}",
        f"authorize:     {session.authorize_on_startup}",
    ]
    print("\n".join(lines))  # noqa: T201
