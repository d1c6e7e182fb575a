"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, stackctl.toml only contains overrides.
A fresh project needs no config file at all.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

# --- stackctl.toml sections ---


class ProjectConfig(BaseModel):
    """[project] section."""

    model_config = {"frozen": True}

    name: str = "gostack"
    output_dir: str = "."


class BackendConfig(BaseModel):
    """[backend] section."""

    model_config = {"frozen": True}

    service_name: str = "backend"
    port: int = 8000
    publish_port: bool = True
    build_context: str = "./backend"
    go_version: str = "1.18"
    binary_name: str = "main"


class DatabaseConfig(BaseModel):
    """[database] section."""

    model_config = {"frozen": True}

    service_name: str = "db"
    image: str = "mysql:8.0"
    port: int = 3306
    name: str = "app"
    user: str = "app"
    data_volume: str | None = "db-data"

    @field_validator("user")
    @classmethod
    def _not_root(cls, value: str) -> str:
        # MYSQL_USER=root makes the image entrypoint abort
        if value == "root":
            msg = "database.user must not be 'root'; the root account uses db_root_password"
            raise ValueError(msg)
        return value


class ProxyConfig(BaseModel):
    """[proxy] section."""

    model_config = {"frozen": True}

    service_name: str = "proxy"
    image: str = "nginx:alpine"
    port: int = 443
    server_name: str = "localhost"
    cert_dir: str = "/etc/nginx/certs"
    connect_timeout: int = 5
    read_timeout: int = 60


class SecretsConfig(BaseModel):
    """[secrets] section."""

    model_config = {"frozen": True}

    dir: str = "secrets"
    root_password_file: str = "db_root_password.txt"
    app_password_file: str = "db_password.txt"
    length: int = Field(default=32, ge=16)


class CertsConfig(BaseModel):
    """[certs] section."""

    model_config = {"frozen": True}

    dir: str = "nginx/certs"
    cert_file: str = "cert.pem"
    key_file: str = "key.pem"
    common_name: str = "localhost"
    days: int = Field(default=365, gt=0)
    key_size: int = 2048
    renew_before_days: int = 30


class ComposeConfig(BaseModel):
    """[compose] section."""

    model_config = {"frozen": True}

    file: str = "docker-compose.yml"
    binary: str = "docker"
    timeout: int = 300


class ProbeConfig(BaseModel):
    """[probe] section."""

    model_config = {"frozen": True}

    host: str = "localhost"
    timeout: float = 5.0

