"""Deployment topology — services, networks, secrets, and the certificate pair.

Reachability is purely a function of network membership: two services can
talk iff they are attached to at least one common network. Everything the
validator reports is derived from that rule plus the mount/secret layout.

Topologies come from two places: built from settings by the topology
service, or reconstructed from a parsed compose document with
:meth:`Topology.from_compose` so hand-edited files can be audited too.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

import networkx as nx
from pydantic import BaseModel, Field

from stackctl.domain.types import (
    DB_NETWORK,
    DEFAULT_NETWORK,
    MYSQL_DATA_DIR,
    PROXY_NETWORK,
    SECRETS_MOUNT_ROOT,
    Category,
    ServiceRole,
    Severity,
)

# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class Mount(BaseModel):
    """A bind mount or named volume attached to a service."""

    model_config = {"frozen": True}

    source: str
    target: str
    read_only: bool = False
    kind: Literal["bind", "volume"] = "bind"

    def to_compose(self) -> str:
        spec = f"{self.source}:{self.target}"
        return f"{spec}:ro" if self.read_only else spec


class Service(BaseModel):
    """One container in the deployment."""

    model_config = {"frozen": True}

    name: str
    role: ServiceRole | None = None
    image: str | None = None
    build: str | None = None
    port: int | None = None
    published: tuple[str, ...] = ()
    networks: tuple[str, ...] = ()
    environment: dict[str, str] = Field(default_factory=dict)
    secrets: tuple[str, ...] = ()
    mounts: tuple[Mount, ...] = ()


class Network(BaseModel):
    """A named isolation domain. Membership lives on the services."""

    model_config = {"frozen": True}

    name: str
    driver: str = "bridge"


class Secret(BaseModel):
    """A credential file mounted read-only at ``/run/secrets/<name>``.

    ``privileged`` marks the database root credential, which must reach
    the database container and nothing else.
    """

    model_config = {"frozen": True}

    name: str
    file: str
    privileged: bool = False

    @property
    def target(self) -> str:
        return f"{SECRETS_MOUNT_ROOT}/{self.name}"


class CertificatePair(BaseModel):
    """Host directory holding cert + key, mounted into the proxy."""

    model_config = {"frozen": True}

    source_dir: str
    target_dir: str
    cert_file: str = "cert.pem"
    key_file: str = "key.pem"

    @property
    def cert_target(self) -> str:
        return f"{self.target_dir}/{self.cert_file}"

    @property
    def key_target(self) -> str:
        return f"{self.target_dir}/{self.key_file}"


class Topology(BaseModel):
    """The complete deployment graph."""

    model_config = {"frozen": True}

    services: tuple[Service, ...]
    networks: tuple[Network, ...] = ()
    secrets: tuple[Secret, ...] = ()
    certificate: CertificatePair | None = None
    volumes: tuple[str, ...] = ()
    required_paths: tuple[tuple[str, str], ...] = ()

    # --- Lookup ---

    def service(self, name: str) -> Service:
        for svc in self.services:
            if svc.name == name:
                return svc
        msg = f"Unknown service: {name!r}"
        raise ValueError(msg)

    def by_role(self, role: ServiceRole) -> list[Service]:
        return [s for s in self.services if s.role == role]

    def network_names(self) -> set[str]:
        return {n.name for n in self.networks}

    def members(self, network: str) -> list[str]:
        """Names of the services attached to *network*."""
        return [s.name for s in self.services if network in s.networks]

    def consumers(self, secret: str) -> list[str]:
        """Names of the services that mount *secret*."""
        return [s.name for s in self.services if secret in s.secrets]

    def certificate_consumers(self) -> list[tuple[str, Mount]]:
        """``(service, mount)`` pairs that mount the certificate directory."""
        if self.certificate is None:
            return []
        return [
            (s.name, m)
            for s in self.services
            for m in s.mounts
            if m.kind == "bind" and m.target == self.certificate.target_dir
        ]

    # --- Reachability ---

    def shared_networks(self, a: str, b: str) -> list[str]:
        nets_a = set(self.service(a).networks)
        return sorted(nets_a.intersection(self.service(b).networks))

    def reachable(self, a: str, b: str) -> bool:
        """True iff *a* and *b* are attached to a common network."""
        if a == b:
            return True
        return bool(self.shared_networks(a, b))

    def reachability(self) -> dict[str, list[str]]:
        """Direct peers for every service."""
        names = [s.name for s in self.services]
        return {a: [b for b in names if b != a and self.reachable(a, b)] for a in names}

    def graph(self) -> nx.Graph:
        """Undirected service graph; edges carry the shared network names."""
        g = nx.Graph()
        g.add_nodes_from(s.name for s in self.services)
        for i, a in enumerate(self.services):
            for b in self.services[i + 1 :]:
                shared = self.shared_networks(a.name, b.name)
                if shared:
                    g.add_edge(a.name, b.name, networks=shared)
        return g

    def pivot_path(self, a: str, b: str) -> list[str] | None:
        """Shortest hop sequence from *a* to *b* through compromised peers.

        Returns None when no path exists at all.
        """
        self.service(a)
        self.service(b)
        try:
            return list(nx.shortest_path(self.graph(), a, b))
        except nx.NetworkXNoPath:
            return None

    # --- Compose import ---

    @classmethod
    def from_compose(
        cls,
        document: Mapping[str, Any],
        *,
        roles: Mapping[str, ServiceRole] | None = None,
        cert_dir: str | None = None,
        required_paths: Iterable[tuple[str, str]] = (),
    ) -> Topology:
        """Reconstruct a topology from a parsed compose mapping.

        *roles* maps service names to roles; unmapped services carry no role
        but still count for reachability. *cert_dir* is the in-container
        directory the proxy reads its certificate pair from.
        """
        roles = roles or {}
        raw_services = document.get("services") or {}
        services: list[Service] = []
        for name, body in raw_services.items():
            body = body or {}
            env = _parse_environment(body.get("environment"))
            services.append(
                Service(
                    name=str(name),
                    role=roles.get(str(name)),
                    image=body.get("image"),
                    build=_parse_build(body.get("build")),
                    port=_parse_expose(body.get("expose")),
                    published=tuple(_parse_port(p) for p in body.get("ports") or ()),
                    networks=_parse_service_networks(
                        body.get("networks"), body.get("network_mode")
                    ),
                    environment=env,
                    secrets=tuple(_parse_secret_ref(s) for s in body.get("secrets") or ()),
                    mounts=tuple(_parse_mount(v) for v in body.get("volumes") or ()),
                )
            )

        networks = tuple(
            Network(name=str(name), driver=str((body or {}).get("driver", "bridge")))
            for name, body in (document.get("networks") or {}).items()
        )
        if DEFAULT_NETWORK not in {n.name for n in networks} and any(
            DEFAULT_NETWORK in svc.networks for svc in services
        ):
            networks += (Network(name=DEFAULT_NETWORK),)

        privileged_targets = {
            value
            for svc in services
            for key, value in svc.environment.items()
            if key == "MYSQL_ROOT_PASSWORD_FILE"
        }
        secrets = tuple(
            Secret(
                name=str(name),
                file=str((body or {}).get("file", "")),
                privileged=f"{SECRETS_MOUNT_ROOT}/{name}" in privileged_targets,
            )
            for name, body in (document.get("secrets") or {}).items()
        )

        certificate = None
        if cert_dir is not None:
            for svc in services:
                for mount in svc.mounts:
                    if mount.kind == "bind" and mount.target == cert_dir:
                        certificate = CertificatePair(source_dir=mount.source, target_dir=cert_dir)
                        break
                if certificate is not None:
                    break

        return cls(
            services=tuple(services),
            networks=networks,
            secrets=secrets,
            certificate=certificate,
            volumes=tuple(str(v) for v in (document.get("volumes") or {})),
            required_paths=tuple(required_paths),
        )


# ---------------------------------------------------------------------------
# Compose parsing helpers (short and long syntax)
# ---------------------------------------------------------------------------


def _parse_environment(raw: Any) -> dict[str, str]:
    if not raw:
        return {}
    if isinstance(raw, Mapping):
        return {str(k): "" if v is None else str(v) for k, v in raw.items()}
    env: dict[str, str] = {}
    for item in raw:
        key, _, value = str(item).partition("=")
        env[key] = value
    return env


def _parse_build(raw: Any) -> str | None:
    if raw is None:
        return None
    if isinstance(raw, Mapping):
        return str(raw.get("context", "."))
    return str(raw)


def _parse_expose(raw: Any) -> int | None:
    if not raw:
        return None
    first = str(list(raw)[0]).split("/", 1)[0]
    return int(first) if first.isdigit() else None


def _parse_port(raw: Any) -> str:
    if isinstance(raw, Mapping):
        published = raw.get("published")
        target = raw.get("target")
        return f"{published}:{target}" if published is not None else str(target)
    return str(raw)


def _parse_service_networks(raw: Any, network_mode: Any = None) -> tuple[str, ...]:
    if network_mode:
        return ()
    if not raw:
        return (DEFAULT_NETWORK,)
    # Mapping form carries per-network options (aliases, ipv4_address, ...)
    return tuple(str(n) for n in raw)


def _parse_secret_ref(raw: Any) -> str:
    if isinstance(raw, Mapping):
        return str(raw.get("source", ""))
    return str(raw)


def _parse_mount(raw: Any) -> Mount:
    if isinstance(raw, Mapping):
        kind = "volume" if raw.get("type") == "volume" else "bind"
        return Mount(
            source=str(raw.get("source", "")),
            target=str(raw.get("target", "")),
            read_only=bool(raw.get("read_only", False)),
            kind=kind,
        )
    parts = str(raw).split(":")
    if len(parts) == 1:
        return Mount(source="", target=parts[0], kind="volume")
    source, target = parts[0], parts[1]
    mode = parts[2] if len(parts) > 2 else ""
    kind = "bind" if source.startswith((".", "/", "~")) else "volume"
    return Mount(source=source, target=target, read_only="ro" in mode.split(","), kind=kind)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


# MySQL image switches that look like credentials but are booleans.
_PASSWORD_FLAGS = frozenset({"MYSQL_ALLOW_EMPTY_PASSWORD", "MYSQL_RANDOM_ROOT_PASSWORD"})


@dataclass(frozen=True)
class Issue:
    """A single finding about a topology or project."""

    severity: Severity
    category: Category
    message: str
    services: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "severity": str(self.severity),
            "category": str(self.category),
            "message": self.message,
            "services": list(self.services),
        }


def validate_topology(topology: Topology) -> list[Issue]:
    """Check the trust boundaries of *topology*. Returns all issues found."""
    issues: list[Issue] = []
    issues.extend(_check_networks(topology))
    issues.extend(_check_segmentation(topology))
    issues.extend(_check_secrets(topology))
    issues.extend(_check_certificate(topology))
    issues.extend(_check_exposure(topology))
    issues.extend(_check_durability(topology))
    return issues


def _check_networks(topology: Topology) -> list[Issue]:
    issues: list[Issue] = []
    declared = topology.network_names()
    for svc in topology.services:
        for net in svc.networks:
            if net not in declared:
                issues.append(
                    Issue(
                        Severity.ERROR,
                        Category.NETWORKS,
                        f"Service '{svc.name}' joins undeclared network '{net}'",
                        (svc.name,),
                    )
                )
    for net in topology.networks:
        if not topology.members(net.name):
            issues.append(
                Issue(Severity.WARNING, Category.NETWORKS, f"Network '{net.name}' has no members")
            )
        if net.driver != "bridge":
            issues.append(
                Issue(
                    Severity.WARNING,
                    Category.NETWORKS,
                    f"Network '{net.name}' uses driver '{net.driver}', expected 'bridge'",
                )
            )
    return issues


def _check_segmentation(topology: Topology) -> list[Issue]:
    issues: list[Issue] = []
    proxies = topology.by_role(ServiceRole.PROXY)
    databases = topology.by_role(ServiceRole.DATABASE)

    for db in databases:
        if PROXY_NETWORK in db.networks:
            issues.append(
                Issue(
                    Severity.ERROR,
                    Category.SEGMENTATION,
                    f"Database '{db.name}' is attached to {PROXY_NETWORK}",
                    (db.name,),
                )
            )
    for proxy in proxies:
        if DB_NETWORK in proxy.networks:
            issues.append(
                Issue(
                    Severity.ERROR,
                    Category.SEGMENTATION,
                    f"Proxy '{proxy.name}' is attached to {DB_NETWORK}",
                    (proxy.name,),
                )
            )
        for db in databases:
            shared = topology.shared_networks(proxy.name, db.name)
            if shared:
                issues.append(
                    Issue(
                        Severity.ERROR,
                        Category.SEGMENTATION,
                        f"Proxy '{proxy.name}' can reach database '{db.name}' "
                        f"via {', '.join(shared)}",
                        (proxy.name, db.name),
                    )
                )

    names = {s.name for s in topology.services}
    for src, dst in topology.required_paths:
        if src not in names or dst not in names:
            missing = dst if src in names else src
            issues.append(
                Issue(
                    Severity.ERROR,
                    Category.SEGMENTATION,
                    f"Required service '{missing}' is not defined",
                    (missing,),
                )
            )
        elif not topology.reachable(src, dst):
            issues.append(
                Issue(
                    Severity.ERROR,
                    Category.SEGMENTATION,
                    f"'{src}' cannot reach '{dst}': no common network",
                    (src, dst),
                )
            )
    return issues


def _check_secrets(topology: Topology) -> list[Issue]:
    issues: list[Issue] = []
    declared = {s.name for s in topology.secrets}
    for svc in topology.services:
        for ref in svc.secrets:
            if ref not in declared:
                issues.append(
                    Issue(
                        Severity.ERROR,
                        Category.SECRETS,
                        f"Service '{svc.name}' mounts undeclared secret '{ref}'",
                        (svc.name,),
                    )
                )

    for secret in topology.secrets:
        consumers = topology.consumers(secret.name)
        if not consumers:
            msg = f"Secret '{secret.name}' is never mounted"
            issues.append(Issue(Severity.WARNING, Category.SECRETS, msg))
            continue
        roles = {topology.service(c).role for c in consumers}
        if ServiceRole.PROXY in roles:
            issues.append(
                Issue(
                    Severity.ERROR,
                    Category.SECRETS,
                    f"Secret '{secret.name}' is mounted into the proxy",
                    tuple(consumers),
                )
            )
        if secret.privileged and (len(consumers) != 1 or roles != {ServiceRole.DATABASE}):
            issues.append(
                Issue(
                    Severity.ERROR,
                    Category.SECRETS,
                    f"Root credential '{secret.name}' must be mounted into the database only "
                    f"(mounted into: {', '.join(consumers)})",
                    tuple(consumers),
                )
            )

    for svc in topology.services:
        for key, value in svc.environment.items():
            if key.endswith("PASSWORD") and key not in _PASSWORD_FLAGS and value:
                issues.append(
                    Issue(
                        Severity.ERROR,
                        Category.SECRETS,
                        f"Service '{svc.name}' receives {key} inline; use {key}_FILE",
                        (svc.name,),
                    )
                )
    return issues


def _check_certificate(topology: Topology) -> list[Issue]:
    issues: list[Issue] = []
    proxies = topology.by_role(ServiceRole.PROXY)
    if not proxies:
        return issues
    if topology.certificate is None:
        return [
            Issue(
                Severity.ERROR,
                Category.CERTIFICATES,
                "No certificate pair is mounted into the proxy",
                tuple(p.name for p in proxies),
            )
        ]

    mounted = topology.certificate_consumers()
    proxy_names = {p.name for p in proxies}
    for name, mount in mounted:
        if name not in proxy_names:
            issues.append(
                Issue(
                    Severity.ERROR,
                    Category.CERTIFICATES,
                    f"Certificate directory is mounted into non-proxy service '{name}'",
                    (name,),
                )
            )
        if not mount.read_only:
            issues.append(
                Issue(
                    Severity.ERROR,
                    Category.CERTIFICATES,
                    f"Certificate directory is mounted writable into '{name}'",
                    (name,),
                )
            )
    for proxy in proxies:
        if proxy.name not in {name for name, _ in mounted}:
            issues.append(
                Issue(
                    Severity.ERROR,
                    Category.CERTIFICATES,
                    f"Proxy '{proxy.name}' does not mount the certificate pair",
                    (proxy.name,),
                )
            )
    return issues


def _check_exposure(topology: Topology) -> list[Issue]:
    issues: list[Issue] = []
    for proxy in topology.by_role(ServiceRole.PROXY):
        if not proxy.published:
            issues.append(
                Issue(
                    Severity.ERROR,
                    Category.EXPOSURE,
                    f"Proxy '{proxy.name}' publishes no port",
                    (proxy.name,),
                )
            )
    for backend in topology.by_role(ServiceRole.BACKEND):
        if backend.published:
            issues.append(
                Issue(
                    Severity.WARNING,
                    Category.EXPOSURE,
                    f"Backend '{backend.name}' is published on {', '.join(backend.published)} "
                    "and bypasses the proxy",
                    (backend.name,),
                )
            )
    for db in topology.by_role(ServiceRole.DATABASE):
        if db.published:
            issues.append(
                Issue(
                    Severity.ERROR,
                    Category.EXPOSURE,
                    f"Database '{db.name}' is published on {', '.join(db.published)}",
                    (db.name,),
                )
            )
    return issues


def _check_durability(topology: Topology) -> list[Issue]:
    issues: list[Issue] = []
    for db in topology.by_role(ServiceRole.DATABASE):
        if not any(m.target == MYSQL_DATA_DIR for m in db.mounts):
            issues.append(
                Issue(
                    Severity.WARNING,
                    Category.DURABILITY,
                    f"Database '{db.name}' has no volume at {MYSQL_DATA_DIR}; "
                    "data is lost when the container is replaced",
                    (db.name,),
                )
            )
    return issues
