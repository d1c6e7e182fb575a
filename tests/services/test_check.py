"""Tests for CheckService — static audit of a rendered project."""

from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path

from stackctl.config.settings import StackSettings
from stackctl.services.check import CheckService, summarize
from stackctl.services.init import InitService
from stackctl.services.result import ServiceResult


def _messages(result: ServiceResult, category: str) -> list[str]:
    return [i["message"] for i in result.data["issues"] if i["category"] == category]


class TestHealthyProject:
    def test_only_expected_warnings(self, rendered_project: StackSettings) -> None:
        result = CheckService(rendered_project).check()
        assert result.ok
        assert result.data["healthy"] is True
        assert result.data["error_count"] == 0
        assert result.data["by_category"] == {"exposure": 1, "certificates": 1}
        assert "self-signed" in _messages(result, "certificates")[0]

    def test_min_severity_error(self, rendered_project: StackSettings) -> None:
        result = CheckService(rendered_project).check(min_severity="error")
        assert result.data["count"] == 0
        assert result.data["healthy"] is True

    def test_unpublished_backend_is_quieter(self, project_root: Path) -> None:
        settings = StackSettings.from_cli(
            project_root=project_root, backend={"publish_port": False}
        )
        InitService(settings).init_project()
        result = CheckService(settings).check()
        assert result.data["by_category"] == {"certificates": 1}


class TestFindings:
    def test_not_rendered(self, settings: StackSettings) -> None:
        result = CheckService(settings).check()
        assert result.data["healthy"] is False
        assert "docker-compose.yml not found" in _messages(result, "files")[0]
        assert len(_messages(result, "secrets")) == 2
        assert len(_messages(result, "certificates")) == 1

    def test_missing_secret(self, rendered_project: StackSettings) -> None:
        rendered_project.root_password_path.unlink()
        result = CheckService(rendered_project).check()
        assert result.data["healthy"] is False
        assert any("Secret file not found" in m for m in _messages(result, "secrets"))

    def test_hand_edited_segmentation(
        self, rendered_project: StackSettings, edit_compose: Callable[..., None]
    ) -> None:
        edit_compose(lambda doc: doc["services"]["db"]["networks"].append("proxy-network"))
        result = CheckService(rendered_project).check()
        assert result.data["healthy"] is False
        assert _messages(result, "segmentation")
        assert any("differ from" in m for m in _messages(result, "networks"))

    def test_unmanaged_service(
        self, rendered_project: StackSettings, edit_compose: Callable[..., None]
    ) -> None:
        edit_compose(
            lambda doc: doc["services"].update({"cache": {"image": "redis", "networks": []}})
        )
        result = CheckService(rendered_project).check()
        assert "Service 'cache' is not managed by stackctl" in _messages(result, "files")

    def test_removed_service(
        self, rendered_project: StackSettings, edit_compose: Callable[..., None]
    ) -> None:
        edit_compose(lambda doc: doc["services"].pop("backend"))
        result = CheckService(rendered_project).check()
        assert "Service 'backend' is missing from the compose file" in _messages(result, "files")
        assert result.data["healthy"] is False

    def test_inline_password(
        self, rendered_project: StackSettings, edit_compose: Callable[..., None]
    ) -> None:
        edit_compose(
            lambda doc: doc["services"]["db"]["environment"].update(MYSQL_PASSWORD="hunter2")
        )
        result = CheckService(rendered_project).check()
        assert any("MYSQL_PASSWORD inline" in m for m in _messages(result, "secrets"))

    def test_nginx_header_removed(self, rendered_project: StackSettings) -> None:
        path = rendered_project.nginx_conf_path
        text = path.read_text(encoding="utf-8")
        path.write_text(text.replace("proxy_set_header Host $host;", ""), encoding="utf-8")
        result = CheckService(rendered_project).check()
        assert _messages(result, "proxy") == ["nginx.conf: missing proxy_set_header Host"]

    def test_nginx_missing(self, rendered_project: StackSettings) -> None:
        rendered_project.nginx_conf_path.unlink()
        result = CheckService(rendered_project).check()
        assert "not found" in _messages(result, "proxy")[0]

    def test_open_secrets_dir(self, rendered_project: StackSettings) -> None:
        os.chmod(rendered_project.root_password_path.parent, 0o755)
        result = CheckService(rendered_project).check()
        assert any("chmod 700" in m for m in _messages(result, "secrets"))
        assert result.data["healthy"] is True

    def test_expiring_certificate(self, project_root: Path) -> None:
        settings = StackSettings.from_cli(project_root=project_root, certs={"days": 10})
        InitService(settings).init_project()
        result = CheckService(settings).check()
        assert any("stackctl secrets rotate" in m for m in _messages(result, "certificates"))


def test_summarize_counts_by_category(rendered_project: StackSettings) -> None:
    from stackctl.domain.topology import validate_topology
    from stackctl.services.topology import build_topology

    assert summarize(validate_topology(build_topology(rendered_project))) == {"exposure": 1}
