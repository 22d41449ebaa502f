"""Logging subsystem for the gateway.

Public API::

    from blphttp.logging import configure_logging

    configure_logging(config.get("loggerOptions"))
"""

from blphttp.logging.serializers import serialize_certificate, serialize_response
from blphttp.logging.setup import configure_logging

__all__ = ["configure_logging", "serialize_certificate", "serialize_response"]
