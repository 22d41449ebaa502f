"""Tests for blphttp.config.gateway_config: initialize() and the accessor."""

from __future__ import annotations

import functools
from types import MappingProxyType
from unittest.mock import MagicMock

import pytest
from watchdog.observers.polling import PollingObserver

from blphttp.config import (
    BUNDLE_NAMES,
    CRL_CHANGED,
    AuthConfigError,
    ConfigValidationError,
    GatewayConfig,
    MaterialReadError,
    ServerOptions,
    SessionOptions,
    SourceParseError,
    ThrottleOptions,
    UnknownSettingError,
)
from blphttp.config.schema import BOOLEAN, STRING, SchemaRegistry, setting


class TestInitialize:
    def test_defaults_only(self, tmp_path):
        config = GatewayConfig.initialize(environ={}, base_dir=tmp_path)
        assert config.get("port") == 80
        assert config.get("api.host") == "127.0.0.1"
        assert config.config_file is None
        assert config.watcher is None

    def test_argv_config_file_and_flags(self, write_config, tmp_path):
        path = write_config({"port": 8080, "service": {"name": "GW"}})
        config = GatewayConfig.initialize(
            argv=["--cfg", str(path), "--service-name", "CLI-GW"],
            environ={},
            base_dir=tmp_path,
        )
        assert config.get("port") == 8080
        assert config.get("service.name") == "CLI-GW"
        assert config.config_file == str(path)

    def test_environment_layer(self, tmp_path):
        config = GatewayConfig.initialize(
            environ={"BLPAPI_HTTP_API_HOST": "10.9.8.7", "BLPAPI_HTTP_PORT": "81"},
            base_dir=tmp_path,
        )
        assert config.get("api.host") == "10.9.8.7"
        assert config.get("port") == 81

    def test_uses_process_environment_by_default(self, monkeypatch, tmp_path):
        monkeypatch.setenv("BLPAPI_HTTP_API_PORT", "8295")
        config = GatewayConfig.initialize(base_dir=tmp_path)
        assert config.get("api.port") == 8295

    def test_validation_failure_is_fatal(self, tmp_path):
        with pytest.raises(ConfigValidationError, match="port"):
            GatewayConfig.initialize(args={"port": "0"}, environ={}, base_dir=tmp_path)

    def test_bad_config_file_is_fatal(self, tmp_path):
        with pytest.raises(SourceParseError):
            GatewayConfig.initialize(
                config_file=tmp_path / "absent.yaml",
                environ={},
                base_dir=tmp_path,
            )

    def test_auth_misconfiguration_is_fatal(self, tmp_path):
        with pytest.raises(AuthConfigError, match="USER_AND_APPLICATION"):
            GatewayConfig.initialize(
                environ={
                    "BLPAPI_HTTP_API_AUTHENTICATION_APPNAME": "app",
                    "BLPAPI_HTTP_API_AUTHENTICATION_MODE": "USER_AND_APPLICATION",
                },
                base_dir=tmp_path,
            )

    def test_auth_error_raised_before_watcher_starts(self, tls_dir, https_args):
        factory = MagicMock()
        args = dict(
            https_args,
            **{
                "https-crl": tls_dir.paths["crl"],
                "api-authenticationAppName": "app",
                "api-authenticationMode": "USER_ONLY",
            },
        )
        with pytest.raises(AuthConfigError):
            GatewayConfig.initialize(
                args=args,
                environ={},
                base_dir=tls_dir.base_dir,
                observer_factory=factory,
            )
        factory.assert_not_called()

    def test_missing_tls_material_is_fatal(self, tls_dir, https_args):
        args = dict(https_args, **{"https-key": "keys/absent.pem"})
        with pytest.raises(MaterialReadError, match="https.key"):
            GatewayConfig.initialize(args=args, environ={}, base_dir=tls_dir.base_dir)

    def test_instances_are_independent(self, tmp_path):
        first = GatewayConfig.initialize(args={"port": "81"}, environ={}, base_dir=tmp_path)
        second = GatewayConfig.initialize(args={"port": "82"}, environ={}, base_dir=tmp_path)
        assert first.get("port") == 81
        assert second.get("port") == 82
        assert first.notifier is not second.notifier

    def test_crl_configured_without_watch(self, tls_dir, https_args):
        args = dict(https_args, **{"https-crl": tls_dir.paths["crl"]})
        config = GatewayConfig.initialize(
            args=args,
            environ={},
            base_dir=tls_dir.base_dir,
            watch=False,
        )
        assert config.watcher is not None
        assert config.watcher.state == "idle"


class TestAccessor:
    @pytest.fixture()
    def config(self, tmp_path):
        return GatewayConfig.initialize(environ={}, base_dir=tmp_path)

    def test_schema_scalar(self, config):
        assert config.get("https.enable") is False

    def test_schema_section_is_read_only(self, config):
        https = config.get("https")
        assert isinstance(https, MappingProxyType)
        assert https["enable"] is False
        with pytest.raises(TypeError):
            https["enable"] = True

    def test_nested_section(self, config):
        assert config.get("websocket.socket-io")["port"] == 3001

    @pytest.mark.parametrize(
        ("name", "kind"),
        [
            ("serverOptions", ServerOptions),
            ("sessionOptions", SessionOptions),
            ("throttleOptions", ThrottleOptions),
        ],
    )
    def test_bundles_by_name(self, config, name, kind):
        assert isinstance(config.get(name), kind)

    def test_every_bundle_name_resolves(self, config):
        for name in BUNDLE_NAMES:
            assert config.get(name) is not None

    def test_bundle_names_are_not_traversed(self, config):
        with pytest.raises(UnknownSettingError):
            config.get("serverOptions.name")

    def test_unknown_name(self, config):
        with pytest.raises(KeyError, match="no.such.key"):
            config.get("no.such.key")

    def test_bundle_shadows_schema_key_of_same_name(self, tmp_path):
        registry = SchemaRegistry().define(
            [
                setting("serverOptions", doc="collides", format=STRING, default="schema"),
                setting("https.enable", doc="", format=BOOLEAN, default=False),
                setting("https.key", doc="", format=STRING, default=""),
                setting("https.cert", doc="", format=STRING, default=""),
                setting("https.ca", doc="", format=STRING, default=""),
                setting("https.crl", doc="", format=STRING, default=""),
                setting("service.name", doc="", format=STRING, default="S"),
                setting("service.version", doc="", format=STRING, default="1"),
                setting("api.host", doc="", format=STRING, default="127.0.0.1"),
                setting("api.port", doc="", format=STRING, default="1"),
                setting("api.authenticationMode", doc="", format=STRING, default=""),
                setting("api.authenticationAppName", doc="", format=STRING, default=""),
                setting("maxBodySize", doc="", format=STRING, default="1"),
                setting("throttle.burst", doc="", format=STRING, default="1"),
                setting("throttle.rate", doc="", format=STRING, default="1"),
                setting("logging.stdout", doc="", format=BOOLEAN, default=False),
                setting("logging.stdoutLevel", doc="", format=STRING, default="info"),
                setting("logging.logfile", doc="", format=STRING, default="x.log"),
                setting("logging.logfileLevel", doc="", format=STRING, default="info"),
            ]
        )
        config = GatewayConfig.initialize(registry=registry, environ={}, base_dir=tmp_path)
        assert isinstance(config.get("serverOptions"), ServerOptions)
        assert config.store.get("serverOptions") == "schema"


class TestLiveReload:
    def test_subscribe_receives_crl_change(self, tls_dir, https_args, pki):
        args = dict(https_args, **{"https-crl": tls_dir.paths["crl"]})
        config = GatewayConfig.initialize(
            args=args,
            environ={},
            base_dir=tls_dir.base_dir,
            watch=False,
        )
        received = []
        config.subscribe(received.append)

        new_crl = pki.crl(4242)
        (tls_dir.base_dir / tls_dir.paths["crl"]).write_bytes(new_crl)
        config.watcher.reload()

        assert config.get("serverOptions").https.crl == new_crl
        assert received == [CRL_CHANGED]

    def test_armed_watcher_with_polling_observer(self, tls_dir, https_args, pki):
        import time

        args = dict(https_args, **{"https-crl": tls_dir.paths["crl"]})
        config = GatewayConfig.initialize(
            args=args,
            environ={},
            base_dir=tls_dir.base_dir,
            observer_factory=functools.partial(PollingObserver, timeout=0.1),
        )
        received = []
        config.subscribe(received.append)
        try:
            assert config.watcher.state == "armed"
            new_crl = pki.crl(*range(1, 30))
            (tls_dir.base_dir / tls_dir.paths["crl"]).write_bytes(new_crl)

            deadline = time.monotonic() + 10
            while not received and time.monotonic() < deadline:
                time.sleep(0.05)

            assert received == [CRL_CHANGED]
            assert config.get("serverOptions").https.crl == new_crl
        finally:
            config.watcher.stop()
