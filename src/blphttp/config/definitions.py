"""Every configuration key recognised by the gateway.

This module is the **single source of truth** for defaults, environment
variable names and command-line flags.  Only the upstream API endpoint,
its authentication settings and the listen port can be set from the
environment (``BLPAPI_HTTP_*``); everything else comes from the config
file or the command line.
"""

from __future__ import annotations

from typing import Any

from blphttp.config.schema import (
    BOOLEAN,
    INTEGER,
    IPADDRESS,
    PORT,
    STRING,
    Format,
    SchemaEntry,
    SchemaRegistry,
    setting,
)

ENV_PREFIX = "BLPAPI_HTTP_"

# Bunyan-style level names accepted by the log sinks.
LOG_LEVEL_NAMES: tuple[str, ...] = ("trace", "debug", "info", "warn", "error", "fatal")


def _is_log_level(value: Any) -> bool:  # noqa: ANN401
    return isinstance(value, str) and value.lower() in LOG_LEVEL_NAMES


LOG_LEVEL = Format.custom(
    "log-level",
    _is_log_level,
    "one of " + ", ".join(LOG_LEVEL_NAMES),
)


GATEWAY_SCHEMA: tuple[SchemaEntry, ...] = (
    # -- upstream API -------------------------------------------------------
    setting(
        "api.host",
        doc="The Bloomberg Open API server address",
        format=IPADDRESS,
        default="127.0.0.1",
        env=ENV_PREFIX + "API_HOST",
        arg="api-host",
    ),
    setting(
        "api.port",
        doc="The Bloomberg Open API server port",
        format=PORT,
        default=8194,
        env=ENV_PREFIX + "API_PORT",
        arg="api-port",
    ),
    setting(
        "api.authenticationMode",
        doc="The authentication mode to use for B-PIPE Authorization",
        format=STRING,
        default="APPLICATION_ONLY",
        env=ENV_PREFIX + "API_AUTHENTICATION_MODE",
        arg="api-authenticationMode",
    ),
    setting(
        "api.authenticationAppName",
        doc="The application name for authentication purposes",
        format=STRING,
        default="",
        env=ENV_PREFIX + "API_AUTHENTICATION_APPNAME",
        arg="api-authenticationAppName",
    ),
    # -- listener -----------------------------------------------------------
    setting(
        "port",
        doc="The http port to listen on",
        format=PORT,
        default=80,
        env=ENV_PREFIX + "PORT",
        arg="port",
    ),
    setting(
        "expiration",
        doc="Auto-expiration period of blpSession in seconds",
        format=INTEGER,
        default=5,
        arg="session-expiration",
    ),
    # -- https --------------------------------------------------------------
    setting(
        "https.enable",
        doc="Boolean option to control whether the server runs on https mode",
        format=BOOLEAN,
        default=False,
        arg="https-enable",
    ),
    setting(
        "https.ca",
        doc="HTTPS server ca",
        format=STRING,
        default="keys/bloomberg-ca-crt.pem",
        arg="https-ca",
    ),
    setting(
        "https.cert",
        doc="HTTPS server certification",
        format=STRING,
        default="keys/hackathon-crt.pem",
        arg="https-cert",
    ),
    setting(
        "https.key",
        doc="HTTPS server key",
        format=STRING,
        default="keys/hackathon-key.pem",
        arg="https-key",
    ),
    setting(
        "https.crl",
        doc="HTTPS server certificate revocation list",
        format=STRING,
        default="",
        arg="https-crl",
    ),
    # -- logging ------------------------------------------------------------
    setting(
        "logging.stdout",
        doc="Boolean option to control whether to log to stdout",
        format=BOOLEAN,
        default=True,
        arg="logging-stdout",
    ),
    setting(
        "logging.stdoutLevel",
        doc="Log level for stdout",
        format=LOG_LEVEL,
        default="info",
        arg="logging-stdoutLevel",
    ),
    setting(
        "logging.logfile",
        doc="Log file path",
        format=STRING,
        default="blpapi-http.log",
        arg="logging-logfile",
    ),
    setting(
        "logging.logfileLevel",
        doc="Log level for log file",
        format=LOG_LEVEL,
        default="trace",
        arg="logging-logfileLevel",
    ),
    setting(
        "logging.reqBody",
        doc="Boolean option to control whether to log request body",
        format=BOOLEAN,
        default=False,
        arg="logging-reqBody",
    ),
    setting(
        "logging.clientDetail",
        doc="Boolean option to control whether to log client details",
        format=BOOLEAN,
        default=False,
        arg="logging-clientDetail",
    ),
    # -- service identity ---------------------------------------------------
    setting(
        "service.name",
        doc="The service name",
        format=STRING,
        default="BLPAPI-HTTP",
        arg="service-name",
    ),
    setting(
        "service.version",
        doc="The service version",
        format=STRING,
        default="1.0.0",
        arg="service-version",
    ),
    # -- request limits -----------------------------------------------------
    setting(
        "maxBodySize",
        doc="Maximum size of the request body in byte",
        format=INTEGER,
        default=1024,
        arg="maxBodySize",
    ),
    setting(
        "throttle.burst",
        doc="Throttle burst",
        format=INTEGER,
        default=100,
        arg="throttle-burst",
    ),
    setting(
        "throttle.rate",
        doc="Throttle rate",
        format=INTEGER,
        default=50,
        arg="throttle-rate",
    ),
    # -- websocket transports -----------------------------------------------
    setting(
        "websocket.socket-io.enable",
        doc="Boolean option to control whether to run socket.io server",
        format=BOOLEAN,
        default=True,
        arg="websocket-socket-io-enable",
    ),
    setting(
        "websocket.socket-io.port",
        doc="The socket io port to listen on",
        format=PORT,
        default=3001,
        arg="websocket-socket-io-port",
    ),
    setting(
        "websocket.ws.enable",
        doc="Boolean option to control whether to run ws server",
        format=BOOLEAN,
        default=True,
        arg="websocket-ws-enable",
    ),
    setting(
        "websocket.ws.port",
        doc="The ws port to listen on",
        format=PORT,
        default=3002,
        arg="websocket-ws-port",
    ),
    # -- long polling -------------------------------------------------------
    setting(
        "longpoll.maxbuffersize",
        doc="Maximum buffer size for subscription data",
        format=INTEGER,
        default=50,
        arg="longpoll-maxbuffersize",
    ),
    setting(
        "longpoll.pollfrequency",
        doc="Data checking frequency when poll request arrives",
        format=INTEGER,
        default=100,
        arg="longpoll-pollfrequency",
    ),
    setting(
        "longpoll.polltimeout",
        doc="Server side poll request timeout in ms",
        format=INTEGER,
        default=30000,
        arg="longpoll-polltimeout",
    ),
)


def gateway_registry() -> SchemaRegistry:
    """Return a fresh registry holding :data:`GATEWAY_SCHEMA`."""
    return SchemaRegistry().define(GATEWAY_SCHEMA)
