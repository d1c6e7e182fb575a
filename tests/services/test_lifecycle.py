"""Tests for LifecycleService — preflight, up/down, logs, status."""

from __future__ import annotations

from collections.abc import Callable
from unittest.mock import MagicMock

from stackctl.config.settings import StackSettings
from stackctl.infrastructure.artifacts import read_secret
from stackctl.infrastructure.compose import ComposeError
from stackctl.services.lifecycle import LifecycleService


class TestUp:
    def test_starts_detached_with_build(
        self, rendered_project: StackSettings, mock_runner: MagicMock
    ) -> None:
        result = LifecycleService(rendered_project, runner=mock_runner).up()
        assert result.ok, result.error
        mock_runner.up.assert_called_once_with(detach=True, build=True)
        assert result.data["endpoint"] == "https://localhost:443/"
        assert result.data["services"] == ["backend", "db", "proxy"]

    def test_no_build(self, rendered_project: StackSettings, mock_runner: MagicMock) -> None:
        LifecycleService(rendered_project, runner=mock_runner).up(build=False)
        mock_runner.up.assert_called_once_with(detach=True, build=False)

    def test_restart_keeps_credentials(
        self, rendered_project: StackSettings, mock_runner: MagicMock
    ) -> None:
        service = LifecycleService(rendered_project, runner=mock_runner)
        before = read_secret(rendered_project.root_password_path)
        cert = rendered_project.cert_path.read_bytes()
        service.up()
        service.down()
        service.up()
        assert read_secret(rendered_project.root_password_path) == before
        assert rendered_project.cert_path.read_bytes() == cert

    def test_not_initialized(self, settings: StackSettings, mock_runner: MagicMock) -> None:
        result = LifecycleService(settings, runner=mock_runner).up()
        assert result.code == "NOT_INITIALIZED"
        mock_runner.up.assert_not_called()

    def test_missing_secret_is_fatal(
        self, rendered_project: StackSettings, mock_runner: MagicMock
    ) -> None:
        rendered_project.app_password_path.unlink()
        result = LifecycleService(rendered_project, runner=mock_runner).up()
        assert result.op == "up"
        assert result.code == "MISSING_ARTIFACT"
        assert not rendered_project.app_password_path.exists()
        mock_runner.up.assert_not_called()

    def test_missing_certificate_is_fatal(
        self, rendered_project: StackSettings, mock_runner: MagicMock
    ) -> None:
        rendered_project.key_path.unlink()
        result = LifecycleService(rendered_project, runner=mock_runner).up()
        assert result.code == "MISSING_ARTIFACT"
        mock_runner.up.assert_not_called()

    def test_topology_violation(
        self,
        rendered_project: StackSettings,
        mock_runner: MagicMock,
        edit_compose: Callable[..., None],
    ) -> None:
        edit_compose(lambda doc: doc["services"]["db"].update(ports=["3306:3306"]))
        result = LifecycleService(rendered_project, runner=mock_runner).up()
        assert result.code == "TOPOLOGY_VIOLATION"
        assert "published" in result.error.message  # type: ignore[union-attr]
        mock_runner.up.assert_not_called()

    def test_unparsable_compose(
        self, rendered_project: StackSettings, mock_runner: MagicMock
    ) -> None:
        rendered_project.compose_path.write_text("services: [oops\n", encoding="utf-8")
        result = LifecycleService(rendered_project, runner=mock_runner).up()
        assert result.code == "PARSE_FAILED"

    def test_compose_failure(self, rendered_project: StackSettings, mock_runner: MagicMock) -> None:
        mock_runner.up.side_effect = ComposeError(
            "docker compose up exited with status 1", returncode=1, stderr="pull denied\n"
        )
        result = LifecycleService(rendered_project, runner=mock_runner).up()
        assert result.code == "COMPOSE_FAILED"
        assert result.error is not None
        assert result.error.detail == {"returncode": 1, "stderr": "pull denied"}


class TestDown:
    def test_keeps_volumes_by_default(
        self, rendered_project: StackSettings, mock_runner: MagicMock
    ) -> None:
        result = LifecycleService(rendered_project, runner=mock_runner).down()
        assert result.ok
        assert result.warnings == []
        mock_runner.down.assert_called_once_with(volumes=False)

    def test_volumes_warns(self, rendered_project: StackSettings, mock_runner: MagicMock) -> None:
        result = LifecycleService(rendered_project, runner=mock_runner).down(volumes=True)
        assert result.data["volumes_removed"] is True
        assert "database contents are gone" in result.warnings[0]

    def test_docker_missing(self, rendered_project: StackSettings, mock_runner: MagicMock) -> None:
        mock_runner.down.side_effect = ComposeError("no docker", code="COMPOSE_UNAVAILABLE")
        result = LifecycleService(rendered_project, runner=mock_runner).down()
        assert result.code == "COMPOSE_UNAVAILABLE"


class TestLogs:
    def test_streams(self, rendered_project: StackSettings, mock_runner: MagicMock) -> None:
        result = LifecycleService(rendered_project, runner=mock_runner).logs(
            "backend", follow=True, tail=10
        )
        assert result.data == {"service": "backend", "exit_code": 0}
        mock_runner.logs.assert_called_once_with("backend", follow=True, tail=10)

    def test_unknown_service(self, rendered_project: StackSettings, mock_runner: MagicMock) -> None:
        result = LifecycleService(rendered_project, runner=mock_runner).logs("cache")
        assert result.code == "UNKNOWN_SERVICE"
        assert result.error is not None
        assert result.error.detail["known"] == ["backend", "db", "proxy"]
        mock_runner.logs.assert_not_called()


class TestStatus:
    def test_maps_rows_to_services(
        self, rendered_project: StackSettings, mock_runner: MagicMock
    ) -> None:
        mock_runner.ps.return_value = [
            {"Service": "db", "State": "running", "Status": "Up 2 minutes", "Name": "shop-db-1"},
            {"Service": "proxy", "State": "exited", "Status": "Exited (1)", "Name": "shop-proxy-1"},
        ]
        result = LifecycleService(rendered_project, runner=mock_runner).status()
        states = {i["service"]: i["state"] for i in result.data["items"]}
        assert states == {"backend": "absent", "db": "running", "proxy": "exited"}
        assert result.data["running"] == 1
        assert result.data["count"] == 3

    def test_not_initialized(self, settings: StackSettings, mock_runner: MagicMock) -> None:
        assert LifecycleService(settings, runner=mock_runner).status().code == "NOT_INITIALIZED"
