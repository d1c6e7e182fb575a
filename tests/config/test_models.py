"""Tests for config section models — defaults and validation."""

import pytest
from pydantic import ValidationError

from stackctl.config.models import (
    BackendConfig,
    CertsConfig,
    DatabaseConfig,
    ProxyConfig,
    SecretsConfig,
)


class TestDefaults:
    def test_backend(self) -> None:
        cfg = BackendConfig()
        assert cfg.port == 8000
        assert cfg.publish_port is True
        assert cfg.go_version == "1.18"

    def test_database(self) -> None:
        cfg = DatabaseConfig()
        assert cfg.image == "mysql:8.0"
        assert cfg.port == 3306
        assert cfg.data_volume == "db-data"

    def test_proxy(self) -> None:
        cfg = ProxyConfig()
        assert cfg.port == 443
        assert cfg.cert_dir == "/etc/nginx/certs"

    def test_certs(self) -> None:
        cfg = CertsConfig()
        assert cfg.days == 365
        assert cfg.renew_before_days == 30

    def test_frozen(self) -> None:
        cfg = ProxyConfig()
        with pytest.raises(ValidationError):
            cfg.port = 8443  # type: ignore[misc]


class TestValidation:
    def test_database_user_cannot_be_root(self) -> None:
        with pytest.raises(ValidationError, match="root"):
            DatabaseConfig(user="root")

    def test_data_volume_can_be_disabled(self) -> None:
        assert DatabaseConfig(data_volume=None).data_volume is None

    def test_secret_length_has_a_floor(self) -> None:
        with pytest.raises(ValidationError):
            SecretsConfig(length=8)

    def test_certificate_days_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            CertsConfig(days=0)
