"""Log serializers that trim bulky objects before they are logged.

:func:`serialize_response` reduces an outgoing response to its status
code and headers; :func:`serialize_certificate` reduces a peer
certificate to its subject common name and fingerprint.  Neither ever
raises on unexpected input, so a logging call can't break a request.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.x509.oid import NameOID


def _field(obj: Any, attr: str, key: str) -> Any:  # noqa: ANN401
    if isinstance(obj, Mapping):
        return obj.get(key, obj.get(attr))
    return getattr(obj, attr, None)


def serialize_response(res: Any) -> Any:  # noqa: ANN401
    """Return ``{"statusCode", "header"}`` for a response, else *res* as-is.

    Accepts response objects exposing ``status_code``/``headers`` and
    mappings using the ``statusCode``/``header`` keys.
    """
    if not res:
        return res
    status = _field(res, "status_code", "statusCode")
    if not status:
        return res
    headers = _field(res, "headers", "header")
    return {
        "statusCode": status,
        "header": dict(headers) if headers is not None else None,
    }


def _fingerprint(cert: x509.Certificate) -> str:
    digest = cert.fingerprint(hashes.SHA1())  # noqa: S303
    return ":".join(f"{b:02X}" for b in digest)


def _peercert_cn(subject: Any) -> str | None:  # noqa: ANN401
    # ssl.getpeercert() shape: ((("commonName", "x"),), ...)
    if isinstance(subject, Mapping):
        return subject.get("CN")
    for rdn in subject or ():
        for name, value in rdn:
            if name == "commonName":
                return value
    return None


def serialize_certificate(cert: Any) -> dict[str, Any] | None:  # noqa: ANN401
    """Return ``{"CN", "fingerprint"}`` for a peer certificate.

    *cert* may be a :class:`cryptography.x509.Certificate`, the DER bytes
    from ``ssl.SSLSocket.getpeercert(binary_form=True)``, or a mapping
    from ``getpeercert()``.  A missing certificate yields ``None``.
    """
    if not cert:
        return None

    if isinstance(cert, (bytes, bytearray)):
        try:
            cert = x509.load_der_x509_certificate(bytes(cert))
        except ValueError:
            return {"CN": None, "fingerprint": None}

    if isinstance(cert, x509.Certificate):
        names = cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
        return {
            "CN": names[0].value if names else None,
            "fingerprint": _fingerprint(cert),
        }

    if isinstance(cert, Mapping):
        return {
            "CN": _peercert_cn(cert.get("subject")),
            "fingerprint": cert.get("fingerprint"),
        }

    return {"CN": None, "fingerprint": None}


DEFAULT_SERIALIZERS = MappingProxyType(
    {
        "res": serialize_response,
        "cert": serialize_certificate,
    }
)
