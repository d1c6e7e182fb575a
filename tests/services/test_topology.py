"""Tests for TopologyService and the settings-driven topology."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

from stackctl.config.settings import StackSettings
from stackctl.domain.types import ServiceRole
from stackctl.services.topology import (
    TopologyService,
    build_topology,
    describe,
    roles_for,
    topology_from_file,
)


class TestBuildTopology:
    def test_names_follow_settings(self, project_root: Path) -> None:
        settings = StackSettings.from_cli(
            project_root=project_root,
            backend={"service_name": "api", "port": 9000},
            database={"service_name": "mysql"},
        )
        topo = build_topology(settings)
        api = topo.service("api")
        assert api.environment["DB_HOST"] == "mysql"
        assert api.published == ("9000:9000",)
        assert topo.pivot_path("proxy", "mysql") == ["proxy", "api", "mysql"]
        assert roles_for(settings)["mysql"] == ServiceRole.DATABASE

    def test_unpublished_backend(self, project_root: Path) -> None:
        settings = StackSettings.from_cli(
            project_root=project_root, backend={"publish_port": False}
        )
        assert build_topology(settings).service("backend").published == ()

    def test_ephemeral_database(self, project_root: Path) -> None:
        settings = StackSettings.from_cli(
            project_root=project_root, database={"data_volume": None}
        )
        topo = build_topology(settings)
        assert topo.volumes == ()
        assert topo.service("db").mounts == ()

    def test_describe(self, settings: StackSettings) -> None:
        data = describe(build_topology(settings))
        assert data["pivot_paths"] == {"proxy->db": ["proxy", "backend", "db"]}
        assert data["reachability"]["proxy"] == ["backend"]
        roles = {s["name"]: s["role"] for s in data["services"]}
        assert roles == {"backend": "backend", "db": "database", "proxy": "proxy"}


class TestTopologyService:
    def test_show_desired(self, settings: StackSettings) -> None:
        result = TopologyService(settings).show()
        assert result.ok
        assert result.data["source"] == "settings"
        assert result.data["healthy"] is True
        assert [i["category"] for i in result.data["issues"]] == ["exposure"]

    def test_from_file_not_initialized(self, settings: StackSettings) -> None:
        result = TopologyService(settings).show(from_file=True)
        assert not result.ok
        assert result.code == "NOT_INITIALIZED"

    def test_from_file_unparsable(self, settings: StackSettings) -> None:
        settings.compose_path.write_text("services: [oops\n", encoding="utf-8")
        result = TopologyService(settings).show(from_file=True)
        assert result.code == "PARSE_FAILED"

    def test_from_file_detects_hand_edit(
        self, rendered_project: StackSettings, edit_compose: Callable[..., None]
    ) -> None:
        edit_compose(lambda doc: doc["services"]["db"]["networks"].append("proxy-network"))
        result = TopologyService(rendered_project).show(from_file=True)
        assert result.ok
        assert result.data["source"] == "file"
        assert result.data["healthy"] is False
        assert result.data["pivot_paths"]["proxy->db"] == ["proxy", "db"]

    def test_from_file_matches_settings(self, rendered_project: StackSettings) -> None:
        topo = topology_from_file(rendered_project)
        desired = build_topology(rendered_project)
        assert {s.name: set(s.networks) for s in topo.services} == {
            s.name: set(s.networks) for s in desired.services
        }
        assert topo.certificate == desired.certificate

    def test_from_file_without_networks_reports_breach(
        self, rendered_project: StackSettings, edit_compose: Callable[..., None]
    ) -> None:
        def _flatten(doc: Any) -> None:
            for body in doc["services"].values():
                del body["networks"]
            del doc["networks"]

        edit_compose(_flatten)
        topo = topology_from_file(rendered_project)
        assert topo.reachable("proxy", "db")
        result = TopologyService(rendered_project).show(from_file=True)
        assert result.data["healthy"] is False
        assert result.data["pivot_paths"]["proxy->db"] == ["proxy", "db"]
