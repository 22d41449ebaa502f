"""Gateway configuration: startup pipeline and single read entry point.

Lifecycle::

    # 1. The CLI (or a test) builds an instance explicitly
    config = GatewayConfig.initialize(argv=sys.argv[1:])

    # 2. Consumers read through one accessor
    config.get("https.enable")     # validated scalar
    config.get("https")            # read-only section view
    config.get("serverOptions")    # derived bundle

    # 3. Dependents react to runtime changes
    config.subscribe(lambda name: listener.swap_tls_context())

Nothing happens at import time; every instance owns its own store,
bundles, notifier and watcher.
"""

from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

from blphttp.config.definitions import gateway_registry
from blphttp.config.errors import UnknownSettingError
from blphttp.config.notifier import ChangeNotifier
from blphttp.config.options import (
    BodyParserOptions,
    LoggerOptions,
    ServerOptions,
    SessionOptions,
    ThrottleOptions,
    build_body_parser_options,
    build_logger_options,
    build_server_options,
    build_session_options,
    build_throttle_options,
)
from blphttp.config.sources import add_schema_arguments, resolve, schema_args
from blphttp.config.validation import validate
from blphttp.config.watcher import RevocationListWatcher

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from blphttp.config.schema import SchemaRegistry
    from blphttp.config.store import ValidatedStore

log = logging.getLogger(__name__)

BUNDLE_NAMES: frozenset[str] = frozenset(
    {
        "loggerOptions",
        "bodyParserOptions",
        "throttleOptions",
        "serverOptions",
        "sessionOptions",
    }
)


def build_source_parser(registry: SchemaRegistry, *, add_help: bool = True) -> argparse.ArgumentParser:
    """Parser for the config-file flag plus one flag per schema entry."""
    parser = argparse.ArgumentParser(add_help=add_help)
    parser.add_argument(
        "-c",
        "--config",
        "--cfg",
        dest="config_file",
        metavar="PATH",
        default=None,
        help="Path to a YAML or JSON configuration file.",
    )
    add_schema_arguments(parser, registry)
    return parser


class GatewayConfig:
    """Validated settings plus the derived option bundles.

    Use :meth:`initialize` rather than calling the constructor directly.
    """

    def __init__(
        self,
        *,
        registry: SchemaRegistry,
        store: ValidatedStore,
        logger_options: LoggerOptions,
        body_parser_options: BodyParserOptions,
        throttle_options: ThrottleOptions,
        server_options: ServerOptions,
        session_options: SessionOptions,
        notifier: ChangeNotifier,
        watcher: RevocationListWatcher | None,
        config_file: str | None = None,
    ) -> None:
        self._registry = registry
        self._store = store
        self._bundles: dict[str, Any] = {
            "loggerOptions": logger_options,
            "bodyParserOptions": body_parser_options,
            "throttleOptions": throttle_options,
            "serverOptions": server_options,
            "sessionOptions": session_options,
        }
        self._notifier = notifier
        self._watcher = watcher
        self._config_file = config_file

    # -- construction -------------------------------------------------------

    @classmethod
    def initialize(
        cls,
        *,
        argv: Sequence[str] | None = None,
        args: Mapping[str, Any] | None = None,
        config_file: str | Path | None = None,
        environ: Mapping[str, str] | None = None,
        base_dir: str | Path | None = None,
        registry: SchemaRegistry | None = None,
        watch: bool = True,
        observer_factory: Callable[[], Any] | None = None,
    ) -> GatewayConfig:
        """Resolve, validate and build everything, or raise.

        Parameters
        ----------
        argv:
            Raw command-line arguments, parsed with
            :func:`build_source_parser`.  ``-c/--config`` in *argv*
            overrides *config_file*.
        args:
            Already-parsed flag values keyed by flag name; merged over
            the values parsed from *argv*.
        config_file:
            Optional YAML/JSON file.
        environ:
            Environment lookup; defaults to :data:`os.environ`.
        base_dir:
            Directory that relative TLS paths are resolved against;
            defaults to the current working directory.
        registry:
            Schema to use; defaults to the gateway schema.
        watch:
            Arm the revocation list watcher when a CRL is configured.
        observer_factory:
            Alternative watchdog observer class for the watcher.

        Raises any :class:`~blphttp.config.errors.ConfigError` subclass;
        all of them are fatal.

        """
        registry = registry or gateway_registry()
        supplied: dict[str, Any] = {}
        if argv is not None:
            namespace = build_source_parser(registry).parse_args(list(argv))
            supplied.update(schema_args(namespace, registry))
            config_file = namespace.config_file or config_file
        if args:
            supplied.update(args)

        resolved = resolve(
            registry,
            config_file,
            os.environ if environ is None else environ,
            supplied,
        )
        store = validate(registry, resolved)

        # Every fail-fast builder runs before the watcher is armed.
        session_options = build_session_options(store)
        server_options = build_server_options(
            store,
            Path.cwd() if base_dir is None else Path(base_dir),
        )
        logger_options = build_logger_options(store)
        body_parser_options = build_body_parser_options(store)
        throttle_options = build_throttle_options(store)
        notifier = ChangeNotifier()

        watcher = None
        if server_options.https is not None and server_options.https.crl_path is not None:
            watcher_kwargs = {}
            if observer_factory is not None:
                watcher_kwargs["observer_factory"] = observer_factory
            watcher = RevocationListWatcher(server_options.https, notifier, **watcher_kwargs)
            if watch:
                watcher.arm()

        config = cls(
            registry=registry,
            store=store,
            logger_options=logger_options,
            body_parser_options=body_parser_options,
            throttle_options=throttle_options,
            server_options=server_options,
            session_options=session_options,
            notifier=notifier,
            watcher=watcher,
            config_file=str(config_file) if config_file else None,
        )
        log.info(
            "Configuration loaded (file=%s, https=%s)",
            config.config_file or "-",
            server_options.https is not None,
        )
        return config

    # -- access -------------------------------------------------------------

    def get(self, name: str) -> Any:  # noqa: ANN401
        """Return the bundle named *name*, else the schema value at *name*.

        Bundle names are matched exactly and take priority over schema
        keys.  Raises :class:`UnknownSettingError` when neither exists.
        """
        if name in BUNDLE_NAMES:
            return self._bundles[name]
        try:
            return self._store.get(name)
        except UnknownSettingError:
            log.error("Lookup of unknown configuration setting '%s'", name)
            raise

    def subscribe(self, callback: Callable[[str], None]) -> Callable[[], None]:
        """Call ``callback(setting_name)`` after each runtime change."""
        return self._notifier.subscribe(callback)

    # -- introspection ------------------------------------------------------

    @property
    def registry(self) -> SchemaRegistry:
        return self._registry

    @property
    def store(self) -> ValidatedStore:
        return self._store

    @property
    def notifier(self) -> ChangeNotifier:
        return self._notifier

    @property
    def watcher(self) -> RevocationListWatcher | None:
        return self._watcher

    @property
    def config_file(self) -> str | None:
        return self._config_file

    @property
    def logger_options(self) -> LoggerOptions:
        return self._bundles["loggerOptions"]

    @property
    def body_parser_options(self) -> BodyParserOptions:
        return self._bundles["bodyParserOptions"]

    @property
    def throttle_options(self) -> ThrottleOptions:
        return self._bundles["throttleOptions"]

    @property
    def server_options(self) -> ServerOptions:
        return self._bundles["serverOptions"]

    @property
    def session_options(self) -> SessionOptions:
        return self._bundles["sessionOptions"]

    def __repr__(self) -> str:
        return f"<GatewayConfig config_file={self._config_file or '-'}>"
