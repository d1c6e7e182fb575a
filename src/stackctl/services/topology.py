"""TopologyService — the desired deployment graph and its reachability report.

``build_topology`` is the single place that decides which service joins
which network:

    proxy-network    proxy            (published 443)
    backend-network  proxy, backend
    db-network       backend, db

so the proxy and the database never share a network.
"""

from __future__ import annotations

from typing import Any

from stackctl.config.settings import StackSettings
from stackctl.domain.topology import (
    CertificatePair,
    Mount,
    Network,
    Secret,
    Service,
    Topology,
    validate_topology,
)
from stackctl.domain.types import (
    BACKEND_NETWORK,
    DB_NETWORK,
    MYSQL_DATA_DIR,
    PROXY_NETWORK,
    ServiceRole,
    Severity,
)
from stackctl.infrastructure.rendering import NGINX_CONF_TARGET, load_compose
from stackctl.services.base import BaseService
from stackctl.services.result import ServiceResult, fail
from stackctl.services.telemetry import traced

ROOT_SECRET = "db_root_password"
APP_SECRET = "db_password"


def build_topology(settings: StackSettings) -> Topology:
    """The three-service, three-network topology for *settings*."""
    backend_cfg = settings.backend
    db_cfg = settings.database
    proxy_cfg = settings.proxy
    secrets_cfg = settings.secrets
    certs_cfg = settings.certs

    root_secret = Secret(
        name=ROOT_SECRET,
        file=f"./{secrets_cfg.dir}/{secrets_cfg.root_password_file}",
        privileged=True,
    )
    app_secret = Secret(
        name=APP_SECRET,
        file=f"./{secrets_cfg.dir}/{secrets_cfg.app_password_file}",
    )
    certificate = CertificatePair(
        source_dir=f"./{certs_cfg.dir}",
        target_dir=proxy_cfg.cert_dir,
        cert_file=certs_cfg.cert_file,
        key_file=certs_cfg.key_file,
    )

    backend = Service(
        name=backend_cfg.service_name,
        role=ServiceRole.BACKEND,
        build=backend_cfg.build_context,
        port=backend_cfg.port,
        published=(f"{backend_cfg.port}:{backend_cfg.port}",) if backend_cfg.publish_port else (),
        networks=(BACKEND_NETWORK, DB_NETWORK),
        environment={
            "DB_HOST": db_cfg.service_name,
            "DB_PORT": str(db_cfg.port),
            "DB_NAME": db_cfg.name,
            "DB_USER": db_cfg.user,
            "DB_PASSWORD_FILE": app_secret.target,
        },
        secrets=(app_secret.name,),
    )

    db_mounts: tuple[Mount, ...] = ()
    volumes: tuple[str, ...] = ()
    if db_cfg.data_volume:
        db_mounts = (Mount(source=db_cfg.data_volume, target=MYSQL_DATA_DIR, kind="volume"),)
        volumes = (db_cfg.data_volume,)
    database = Service(
        name=db_cfg.service_name,
        role=ServiceRole.DATABASE,
        image=db_cfg.image,
        port=db_cfg.port,
        networks=(DB_NETWORK,),
        environment={
            "MYSQL_ROOT_PASSWORD_FILE": root_secret.target,
            "MYSQL_DATABASE": db_cfg.name,
            "MYSQL_USER": db_cfg.user,
            "MYSQL_PASSWORD_FILE": app_secret.target,
        },
        secrets=(root_secret.name, app_secret.name),
        mounts=db_mounts,
    )

    proxy = Service(
        name=proxy_cfg.service_name,
        role=ServiceRole.PROXY,
        image=proxy_cfg.image,
        port=proxy_cfg.port,
        published=(f"{proxy_cfg.port}:{proxy_cfg.port}",),
        networks=(PROXY_NETWORK, BACKEND_NETWORK),
        mounts=(
            Mount(source="./nginx/nginx.conf", target=NGINX_CONF_TARGET, read_only=True),
            Mount(source=certificate.source_dir, target=certificate.target_dir, read_only=True),
        ),
    )

    return Topology(
        services=(backend, database, proxy),
        networks=tuple(Network(name=n) for n in (PROXY_NETWORK, BACKEND_NETWORK, DB_NETWORK)),
        secrets=(root_secret, app_secret),
        certificate=certificate,
        volumes=volumes,
        required_paths=(
            (proxy.name, backend.name),
            (backend.name, database.name),
        ),
    )


def roles_for(settings: StackSettings) -> dict[str, ServiceRole]:
    """Service-name -> role mapping used when reading a compose file back."""
    return {
        settings.backend.service_name: ServiceRole.BACKEND,
        settings.database.service_name: ServiceRole.DATABASE,
        settings.proxy.service_name: ServiceRole.PROXY,
    }


def topology_from_file(settings: StackSettings) -> Topology:
    """Reconstruct the topology actually written to the compose file.

    Raises RenderError if the file is missing or unparsable, or a pydantic
    ValidationError if its contents do not fit the topology model.
    """
    document = load_compose(settings.compose_path)
    desired = build_topology(settings)
    topology = Topology.from_compose(
        document,
        roles=roles_for(settings),
        cert_dir=settings.proxy.cert_dir,
        required_paths=desired.required_paths,
    )
    if topology.certificate is not None:
        pair = topology.certificate.model_copy(
            update={"cert_file": settings.certs.cert_file, "key_file": settings.certs.key_file}
        )
        topology = topology.model_copy(update={"certificate": pair})
    return topology


def describe(topology: Topology) -> dict[str, Any]:
    """Serializable summary: services, networks, reachability, pivot paths."""
    pivots: dict[str, list[str] | None] = {}
    for proxy in topology.by_role(ServiceRole.PROXY):
        for db in topology.by_role(ServiceRole.DATABASE):
            pivots[f"{proxy.name}->{db.name}"] = topology.pivot_path(proxy.name, db.name)

    return {
        "services": [
            {
                "name": s.name,
                "role": str(s.role) if s.role else None,
                "networks": list(s.networks),
                "published": list(s.published),
                "secrets": list(s.secrets),
            }
            for s in topology.services
        ],
        "networks": [
            {"name": n.name, "driver": n.driver, "members": topology.members(n.name)}
            for n in topology.networks
        ],
        "reachability": topology.reachability(),
        "pivot_paths": pivots,
    }


class TopologyService(BaseService):
    """Report the desired (or rendered) topology and its trust boundaries."""

    @traced
    def show(self, *, from_file: bool = False) -> ServiceResult:
        op = "topology"
        if from_file:
            try:
                topology = topology_from_file(self.settings)
            except ValueError as exc:
                missing = not self.settings.compose_path.exists()
                code = "NOT_INITIALIZED" if missing else "PARSE_FAILED"
                return fail(op, code, str(exc), path=str(self.settings.compose_path))
        else:
            topology = self.topology

        issues = validate_topology(topology)
        errors = [i for i in issues if i.severity == Severity.ERROR]
        data = describe(topology)
        data["source"] = "file" if from_file else "settings"
        data["issues"] = [i.to_dict() for i in issues]
        data["healthy"] = not errors
        return ServiceResult(ok=True, op=op, data=data)
