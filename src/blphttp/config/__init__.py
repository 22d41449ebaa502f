"""Configuration subsystem for the BLPAPI HTTP gateway.

Public API::

    from blphttp.config import GatewayConfig

    config = GatewayConfig.initialize(argv=sys.argv[1:])
    port     = config.get("port")             # validated scalar
    server   = config.get("serverOptions")    # derived bundle
    config.subscribe(on_change)               # runtime change events
"""

from blphttp.config.errors import (
    AuthConfigError,
    ConfigError,
    ConfigValidationError,
    MaterialReadError,
    ReloadReadError,
    SchemaDefinitionError,
    SourceParseError,
    UnknownSettingError,
)
from blphttp.config.events import CHANGE_EVENTS, CRL_CHANGED
from blphttp.config.gateway_config import BUNDLE_NAMES, GatewayConfig
from blphttp.config.options import (
    BodyParserOptions,
    HttpsServerOptions,
    LoggerOptions,
    LogStream,
    ServerOptions,
    SessionOptions,
    ThrottleOptions,
    ThrottleOverride,
)
from blphttp.config.schema import Format, SchemaEntry, SchemaRegistry

__all__ = [
    "BUNDLE_NAMES",
    "CHANGE_EVENTS",
    "CRL_CHANGED",
    "AuthConfigError",
    "BodyParserOptions",
    "ConfigError",
    "ConfigValidationError",
    "Format",
    "GatewayConfig",
    "HttpsServerOptions",
    "LogStream",
    "LoggerOptions",
    "MaterialReadError",
    "ReloadReadError",
    "SchemaDefinitionError",
    "SchemaEntry",
    "SchemaRegistry",
    "ServerOptions",
    "SessionOptions",
    "SourceParseError",
    "ThrottleOptions",
    "ThrottleOverride",
    "UnknownSettingError",
]
