"""Service roles and issue classification enums."""

from __future__ import annotations

from enum import StrEnum


class ServiceRole(StrEnum):
    """The three logical components of the deployment."""

    PROXY = "proxy"
    BACKEND = "backend"
    DATABASE = "database"


class Severity(StrEnum):
    """Issue severity. Errors make a deployment unhealthy."""

    ERROR = "error"
    WARNING = "warning"


class Category(StrEnum):
    """Issue categories reported by topology validation and project checks."""

    SEGMENTATION = "segmentation"
    NETWORKS = "networks"
    SECRETS = "secrets"
    CERTIFICATES = "certificates"
    DURABILITY = "durability"
    EXPOSURE = "exposure"
    PROXY = "proxy"
    FILES = "files"


# Network names fixed by the deployment layout.
PROXY_NETWORK = "proxy-network"
BACKEND_NETWORK = "backend-network"
DB_NETWORK = "db-network"
# Compose attaches services without a `networks:` key to this one.
DEFAULT_NETWORK = "default"

SECRETS_MOUNT_ROOT = "/run/secrets"
MYSQL_DATA_DIR = "/var/lib/mysql"
