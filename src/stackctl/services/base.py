"""BaseService — shared foundation for all stackctl services.

Every service receives the resolved :class:`StackSettings`. The desired
topology is built from those settings on first use; the compose runner
is created per service so tests can swap it out.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from stackctl.config.settings import StackSettings
    from stackctl.domain.topology import Topology
    from stackctl.infrastructure.compose import ComposeRunner


class BaseService:
    """Base for all service-layer classes.

    Usage::

        class LifecycleService(BaseService):
            def up(self) -> ServiceResult:
                self.runner.up()
                ...
    """

    def __init__(self, settings: StackSettings, *, runner: ComposeRunner | None = None) -> None:
        self._settings = settings
        self._runner = runner
        self._topology: Topology | None = None

    @property
    def settings(self) -> StackSettings:
        return self._settings

    @property
    def topology(self) -> Topology:
        """Desired topology for these settings (built lazily)."""
        if self._topology is None:
            from stackctl.services.topology import build_topology

            self._topology = build_topology(self._settings)
        return self._topology

    @property
    def runner(self) -> ComposeRunner:
        if self._runner is None:
            from stackctl.infrastructure.compose import ComposeRunner

            self._runner = ComposeRunner(
                self._settings.compose_path,
                project_name=self._settings.project.name,
                binary=self._settings.compose.binary,
                timeout=self._settings.compose.timeout,
            )
        return self._runner
