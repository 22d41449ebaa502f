"""Root conftest for the blphttp test suite."""

from __future__ import annotations

import logging
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path
from types import SimpleNamespace

import pytest
import yaml
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

# ---------------------------------------------------------------------------
# Make ``src/`` importable without installing the package
# ---------------------------------------------------------------------------
_SRC = str(Path(__file__).resolve().parent.parent / "src")
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)


# ---------------------------------------------------------------------------
# Logger cleanup: configure_logging detaches ``blphttp`` from the root
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def fresh_logging():
    """Restore the ``blphttp`` logger so caplog sees every record."""
    yield
    root = logging.getLogger("blphttp")
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.propagate = True
    root.setLevel(logging.NOTSET)


# ---------------------------------------------------------------------------
# Test PKI: one self-signed CA that also serves as the server certificate
# ---------------------------------------------------------------------------


class TestPki:
    """Key, certificate and CRL factory for TLS-related tests."""

    __test__ = False

    def __init__(self, common_name: str = "blphttp-test") -> None:
        self.key = ec.generate_private_key(ec.SECP256R1())
        self.name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
        now = datetime.now(UTC)
        self.cert = (
            x509.CertificateBuilder()
            .subject_name(self.name)
            .issuer_name(self.name)
            .public_key(self.key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now)
            .not_valid_after(now + timedelta(days=30))
            .sign(self.key, hashes.SHA256())
        )

    @property
    def key_pem(self) -> bytes:
        return self.key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )

    @property
    def cert_pem(self) -> bytes:
        return self.cert.public_bytes(serialization.Encoding.PEM)

    def crl(self, *serials: int, encoding: str = "pem") -> bytes:
        """Return a signed CRL revoking *serials*."""
        now = datetime.now(UTC)
        builder = (
            x509.CertificateRevocationListBuilder()
            .issuer_name(self.name)
            .last_update(now)
            .next_update(now + timedelta(days=1))
        )
        for serial in serials:
            builder = builder.add_revoked_certificate(
                x509.RevokedCertificateBuilder()
                .serial_number(serial)
                .revocation_date(now)
                .build(),
            )
        crl = builder.sign(self.key, hashes.SHA256())
        fmt = serialization.Encoding.DER if encoding == "der" else serialization.Encoding.PEM
        return crl.public_bytes(fmt)


@pytest.fixture(scope="session")
def pki() -> TestPki:
    return TestPki()


@pytest.fixture()
def tls_dir(tmp_path: Path, pki: TestPki) -> SimpleNamespace:
    """Write key/cert/ca/crl files under ``tmp_path/keys``.

    Returns the base directory plus the relative path and contents of
    each file, ready to be plugged into ``https.*`` settings.
    """
    keys = tmp_path / "keys"
    keys.mkdir()
    files = {
        "key": ("keys/server-key.pem", pki.key_pem),
        "cert": ("keys/server-crt.pem", pki.cert_pem),
        "ca": ("keys/ca-crt.pem", pki.cert_pem),
        "crl": ("keys/ca.crl", pki.crl(1001)),
    }
    for rel, data in files.values():
        (tmp_path / rel).write_bytes(data)
    return SimpleNamespace(
        base_dir=tmp_path,
        paths={name: rel for name, (rel, _) in files.items()},
        contents={name: data for name, (_, data) in files.items()},
    )


@pytest.fixture()
def https_args(tls_dir: SimpleNamespace) -> dict[str, str]:
    """Command-line values enabling mutual TLS with the ``tls_dir`` files."""
    return {
        "https-enable": "true",
        "https-key": tls_dir.paths["key"],
        "https-cert": tls_dir.paths["cert"],
        "https-ca": tls_dir.paths["ca"],
    }


# ---------------------------------------------------------------------------
# Config files
# ---------------------------------------------------------------------------


@pytest.fixture()
def write_config(tmp_path: Path):
    """Return a helper that writes *data* as YAML and returns the path."""

    def _write(data: dict, name: str = "config.yaml") -> Path:
        path = tmp_path / name
        path.write_text(
            yaml.safe_dump(data, default_flow_style=False, sort_keys=False),
            encoding="utf-8",
        )
        return path

    return _write
