"""Render the deployable files from a topology, and read them back.

* ``docker-compose.yml`` is built as an ordered mapping and dumped with
  ruamel.yaml, so the output is stable and diffable between renders.
* ``nginx.conf`` and the backend ``Dockerfile`` come from Jinja2 templates
  (overridable per project, see :mod:`stackctl.infrastructure.templates`).
"""

from __future__ import annotations

import re
from io import StringIO
from pathlib import Path
from typing import Any

from jinja2 import TemplateError
from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap
from ruamel.yaml.error import YAMLError

from stackctl.config.models import BackendConfig, ProxyConfig
from stackctl.domain.forwarding import FORWARDED_HEADERS, missing_forwarded_headers
from stackctl.domain.topology import Topology
from stackctl.domain.types import ServiceRole
from stackctl.infrastructure.templates import build_template_environment

COMPOSE_HEADER = "Generated by stackctl. Edit stackctl.toml and re-run `stackctl render`."
NGINX_CONF_TARGET = "/etc/nginx/conf.d/default.conf"


class RenderError(ValueError):
    """A deployment file could not be rendered or parsed."""


def _render_template(group: str, name: str, *, project_root: Path | None, **context: Any) -> str:
    env = build_template_environment(group, project_root=project_root)
    try:
        return env.get_template(name).render(**context)
    except TemplateError as exc:
        msg = f"Template {group}/{name} failed to render: {exc}"
        raise RenderError(msg) from exc


def _new_yaml() -> YAML:
    """Fresh round-trip YAML instance (ruamel's YAML object is stateful)."""
    y = YAML()
    y.default_flow_style = False
    y.indent(mapping=2, sequence=4, offset=2)
    return y


# ---------------------------------------------------------------------------
# docker-compose.yml
# ---------------------------------------------------------------------------


def compose_document(topology: Topology, *, project_name: str) -> CommentedMap:
    """Build the compose mapping for *topology*, keys in canonical order."""
    doc = CommentedMap()
    doc.yaml_set_start_comment(COMPOSE_HEADER)
    doc["name"] = project_name

    services = CommentedMap()
    for svc in topology.services:
        body = CommentedMap()
        if svc.build is not None:
            body["build"] = svc.build
        if svc.image is not None:
            body["image"] = svc.image
        if svc.port is not None:
            body["expose"] = [str(svc.port)]
        if svc.published:
            body["ports"] = list(svc.published)
        if svc.environment:
            body["environment"] = CommentedMap(svc.environment)
        if svc.secrets:
            body["secrets"] = list(svc.secrets)
        if svc.mounts:
            body["volumes"] = [m.to_compose() for m in svc.mounts]
        body["networks"] = list(svc.networks)
        services[svc.name] = body
    doc["services"] = services

    networks = CommentedMap()
    for net in topology.networks:
        networks[net.name] = CommentedMap(driver=net.driver)
    doc["networks"] = networks

    if topology.secrets:
        secrets = CommentedMap()
        for secret in topology.secrets:
            secrets[secret.name] = CommentedMap(file=secret.file)
        doc["secrets"] = secrets

    if topology.volumes:
        doc["volumes"] = CommentedMap((name, CommentedMap()) for name in topology.volumes)
    return doc


def dump_compose(document: CommentedMap) -> str:
    buf = StringIO()
    _new_yaml().dump(document, buf)
    return buf.getvalue()


def render_compose(topology: Topology, *, project_name: str) -> str:
    return dump_compose(compose_document(topology, project_name=project_name))


def load_compose(path: Path) -> dict[str, Any]:
    """Parse an existing compose file into plain Python containers."""
    try:
        data = YAML(typ="safe").load(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeError, YAMLError) as exc:
        msg = f"Cannot parse {path}: {exc}"
        raise RenderError(msg) from exc
    if not isinstance(data, dict) or not isinstance(data.get("services"), dict):
        msg = f"{path} has no 'services' mapping"
        raise RenderError(msg)
    return data


# ---------------------------------------------------------------------------
# nginx.conf
# ---------------------------------------------------------------------------


def upstream_address(topology: Topology) -> str:
    """``host:port`` of the single backend the proxy forwards to."""
    backends = topology.by_role(ServiceRole.BACKEND)
    if len(backends) != 1 or backends[0].port is None:
        msg = "The proxy needs exactly one backend with an internal port"
        raise RenderError(msg)
    return f"{backends[0].name}:{backends[0].port}"


def render_nginx_conf(
    topology: Topology,
    proxy: ProxyConfig,
    *,
    project_root: Path | None = None,
) -> str:
    if topology.certificate is None:
        msg = "Cannot render nginx.conf without a certificate pair"
        raise RenderError(msg)
    return _render_template(
        "nginx",
        "nginx.conf.j2",
        project_root=project_root,
        listen_port=proxy.port,
        server_name=proxy.server_name,
        cert_path=topology.certificate.cert_target,
        key_path=topology.certificate.key_target,
        upstream=upstream_address(topology),
        headers=FORWARDED_HEADERS,
        connect_timeout=proxy.connect_timeout,
        read_timeout=proxy.read_timeout,
    )


_COMMENT = re.compile(r"#.*$", re.MULTILINE)
# A statement starts a line or follows another statement or a brace.
_STATEMENT_START = r"(?:^|(?<=[;{}]))\s*"
_DIRECTIVE = re.compile(_STATEMENT_START + r"([a-z_]+)\s+([^;{}]*);", re.MULTILINE)
_UPSTREAM_BLOCK = re.compile(_STATEMENT_START + r"upstream\s+\S+\s*\{", re.MULTILINE)


def nginx_directives(text: str) -> list[tuple[str, str]]:
    """Flat ``(name, args)`` list of the simple directives in *text*."""
    body = _COMMENT.sub("", text)
    return [(m.group(1), " ".join(m.group(2).split())) for m in _DIRECTIVE.finditer(body)]


def _listens_tls(args: str, port: int) -> bool:
    parts = args.split()
    if not parts or "ssl" not in parts[1:]:
        return False
    address = parts[0]
    return address == str(port) or address.endswith(f":{port}")


def lint_nginx_conf(text: str, topology: Topology, proxy: ProxyConfig) -> list[str]:
    """Problems that break the proxy contract. Empty means the config conforms."""
    problems: list[str] = []
    directives = nginx_directives(text)

    def values(name: str) -> list[str]:
        return [args for key, args in directives if key == name]

    if not any(_listens_tls(args, proxy.port) for args in values("listen")):
        problems.append(f"no 'listen {proxy.port} ssl' directive")

    if topology.certificate is not None:
        if topology.certificate.cert_target not in values("ssl_certificate"):
            problems.append(f"ssl_certificate is not {topology.certificate.cert_target}")
        if topology.certificate.key_target not in values("ssl_certificate_key"):
            problems.append(f"ssl_certificate_key is not {topology.certificate.key_target}")

    passes = values("proxy_pass")
    expected = f"http://{upstream_address(topology)}"
    if len(passes) != 1:
        problems.append(f"expected exactly one proxy_pass, found {len(passes)}")
    elif passes[0].rstrip("/") != expected:
        problems.append(f"proxy_pass targets {passes[0]}, expected {expected}")

    set_headers: dict[str, str] = {}
    for args in values("proxy_set_header"):
        name, _, variable = args.partition(" ")
        set_headers[name.lower()] = variable
    missing = missing_forwarded_headers(set_headers)
    for header, variable in FORWARDED_HEADERS.items():
        seen = set_headers.get(header.lower())
        if header in missing:
            problems.append(f"missing proxy_set_header {header}")
        elif seen != variable:
            problems.append(f"proxy_set_header {header} is {seen}, expected {variable}")

    if _UPSTREAM_BLOCK.search(_COMMENT.sub("", text)):
        problems.append("upstream blocks are not supported; the proxy has a single backend")
    return problems


# ---------------------------------------------------------------------------
# Backend Dockerfile
# ---------------------------------------------------------------------------


def render_backend_dockerfile(backend: BackendConfig, *, project_root: Path | None = None) -> str:
    """Two-stage Go build: compile on golang-alpine, run on plain alpine."""
    return _render_template(
        "backend",
        "Dockerfile.j2",
        project_root=project_root,
        go_version=backend.go_version,
        binary_name=backend.binary_name,
        port=backend.port,
    )
