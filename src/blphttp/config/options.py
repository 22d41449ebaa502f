"""Typed option bundles derived from the validated store.

Each bundle is a ready-to-use structure handed to one subsystem:

* :class:`LoggerOptions`      -> log sinks + serializers
* :class:`BodyParserOptions`  -> request body parser
* :class:`ThrottleOptions`    -> per-client request throttling
* :class:`ServerOptions`      -> HTTP(S) listener, incl. mutual-TLS material
* :class:`SessionOptions`     -> upstream BLPAPI session bootstrap

Builders read only validated values and fail fast: missing TLS material
raises :class:`MaterialReadError`, an unsupported authentication mode
raises :class:`AuthConfigError`.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, TextIO

from blphttp.config.errors import AuthConfigError, MaterialReadError
from blphttp.config.watcher import read_revocation_list
from blphttp.logging.serializers import DEFAULT_SERIALIZERS

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from blphttp.config.store import ValidatedStore

log = logging.getLogger(__name__)

LOOPBACK_ADDRESS = "127.0.0.1"
JSON_CONTENT_TYPE = "application/json"

SUPPORTED_AUTHENTICATION_MODE = "APPLICATION_ONLY"
APPLICATION_AUTHENTICATION_TYPE = "APPNAME_AND_KEY"


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LogStream:
    """One log sink: a file (``path``) or an open text stream."""

    level: str
    path: str | None = None
    stream: TextIO | None = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class LoggerOptions:
    """Logger name, sinks and per-field serializers."""

    name: str
    streams: tuple[LogStream, ...]
    serializers: Mapping[str, Callable[[Any], Any]]


def build_logger_options(store: ValidatedStore) -> LoggerOptions:
    streams = [
        LogStream(
            level=store.get("logging.logfileLevel"),
            path=store.get("logging.logfile"),
        ),
    ]
    if store.get("logging.stdout"):
        streams.append(
            LogStream(level=store.get("logging.stdoutLevel"), stream=sys.stdout),
        )
    return LoggerOptions(
        name=store.get("service.name"),
        streams=tuple(streams),
        serializers=MappingProxyType(dict(DEFAULT_SERIALIZERS)),
    )


# ---------------------------------------------------------------------------
# Body parser
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BodyParserOptions:
    """Request body limits.

    ``map_params`` is always ``False``: parsed body fields are never
    merged into route parameters.
    """

    max_body_size: int
    map_params: bool = False


def build_body_parser_options(store: ValidatedStore) -> BodyParserOptions:
    return BodyParserOptions(max_body_size=store.get("maxBodySize"), map_params=False)


# ---------------------------------------------------------------------------
# Throttle
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ThrottleOverride:
    """Per-address limits; zero burst and zero rate mean unlimited."""

    rate: int
    burst: int


_UNLIMITED = ThrottleOverride(rate=0, burst=0)


@dataclass(frozen=True)
class ThrottleOptions:
    """Token-bucket limits keyed by client address."""

    burst: int
    rate: int
    ip: bool
    overrides: Mapping[str, ThrottleOverride]

    def __post_init__(self) -> None:
        if self.overrides.get(LOOPBACK_ADDRESS) != _UNLIMITED:
            msg = f"Throttle overrides must exempt {LOOPBACK_ADDRESS} (rate=0, burst=0)"
            raise ValueError(msg)


def build_throttle_options(
    store: ValidatedStore,
    overrides: Mapping[str, ThrottleOverride] | None = None,
) -> ThrottleOptions:
    """Build throttle limits; the loopback exemption always wins."""
    table = dict(overrides or {})
    table[LOOPBACK_ADDRESS] = _UNLIMITED
    return ThrottleOptions(
        burst=store.get("throttle.burst"),
        rate=store.get("throttle.rate"),
        ip=True,
        overrides=MappingProxyType(table),
    )


# ---------------------------------------------------------------------------
# Server / TLS
# ---------------------------------------------------------------------------


@dataclass
class HttpsServerOptions:
    """Mutual-TLS material for the listener.

    ``crl`` is the only field replaced after startup: the revocation
    list watcher rebinds it to a fresh ``bytes`` object on every reload.
    Readers must fetch it from here each time rather than caching it.
    """

    key: bytes = field(repr=False)
    cert: bytes = field(repr=False)
    ca: bytes = field(repr=False)
    request_cert: bool = True
    reject_unauthorized: bool = True
    crl: bytes | None = field(default=None, repr=False)
    crl_path: Path | None = None


@dataclass(frozen=True)
class ServerOptions:
    """Listener identity and, when HTTPS is enabled, its TLS material."""

    name: str
    version: str
    acceptable: tuple[str, ...] = (JSON_CONTENT_TYPE,)
    https: HttpsServerOptions | None = None


def _read_material(setting: str, path: Path) -> bytes:
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise MaterialReadError(setting, str(path), exc.strerror or str(exc)) from exc
    if not data:
        raise MaterialReadError(setting, str(path), "file is empty")
    return data


def build_server_options(store: ValidatedStore, base_dir: str | Path) -> ServerOptions:
    """Build listener options, reading TLS material when HTTPS is on.

    Relative paths are resolved against *base_dir*.  The revocation list
    is loaded only when ``https.crl`` is non-empty.
    """
    https = None
    if store.get("https.enable"):
        root = Path(base_dir)
        https = HttpsServerOptions(
            key=_read_material("https.key", (root / store.get("https.key")).resolve()),
            cert=_read_material("https.cert", (root / store.get("https.cert")).resolve()),
            ca=_read_material("https.ca", (root / store.get("https.ca")).resolve()),
        )

        crl_setting = store.get("https.crl")
        if crl_setting:
            crl_path = (root / crl_setting).resolve()
            try:
                https.crl = read_revocation_list(crl_path)
            except OSError as exc:
                raise MaterialReadError(
                    "https.crl",
                    str(crl_path),
                    exc.strerror or str(exc),
                ) from exc
            except ValueError as exc:
                raise MaterialReadError("https.crl", str(crl_path), str(exc)) from exc
            https.crl_path = crl_path
        else:
            log.info("https.crl not set; client certificates are not checked for revocation")

    return ServerOptions(
        name=store.get("service.name"),
        version=store.get("service.version"),
        acceptable=(JSON_CONTENT_TYPE,),
        https=https,
    )


# ---------------------------------------------------------------------------
# Upstream session
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SessionOptions:
    """Parameters for establishing the upstream BLPAPI session."""

    server_host: str
    server_port: int
    authorize_on_startup: bool = False
    authentication_options: str | None = None


def build_authentication_options(mode: str, app_name: str) -> str:
    """Encode the semicolon-delimited authentication options string."""
    return (
        f"AuthenticationMode={mode};"
        f"ApplicationAuthenticationType={APPLICATION_AUTHENTICATION_TYPE};"
        f"ApplicationName={app_name}"
    )


def build_session_options(store: ValidatedStore) -> SessionOptions:
    """Build session options, synthesising authentication when configured.

    An application name requires ``api.authenticationMode`` to be
    ``APPLICATION_ONLY``; any other mode is rejected with
    :class:`AuthConfigError` rather than silently ignored.
    """
    host = store.get("api.host")
    port = store.get("api.port")

    app_name = store.get("api.authenticationAppName")
    if not app_name:
        return SessionOptions(server_host=host, server_port=port)

    mode = store.get("api.authenticationMode")
    # TODO: support USER_AND_APPLICATION and user-only modes.
    if mode != SUPPORTED_AUTHENTICATION_MODE:
        raise AuthConfigError(mode)

    return SessionOptions(
        server_host=host,
        server_port=port,
        authorize_on_startup=True,
        authentication_options=build_authentication_options(mode, app_name),
    )
