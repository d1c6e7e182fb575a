"""Unified settings — CLI flags, env vars, and TOML config in one object.

Priority chain (highest to lowest):
  1. Init kwargs  — CLI flags passed by Click
  2. Env vars     — ``STACKCTL_*`` prefix
  3. TOML file    — ``stackctl.toml`` discovered via walk-up
  4. Code defaults — baked into the section models

Uses Pydantic Settings v2 with a custom :class:`TomlSettingsSource` that
reuses the ``find_config`` walk-up discovery from
:mod:`stackctl.config.discovery`.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, ClassVar

from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from stackctl.config.discovery import find_config, read_config
from stackctl.config.models import (
    BackendConfig,
    CertsConfig,
    ComposeConfig,
    DatabaseConfig,
    ProbeConfig,
    ProjectConfig,
    ProxyConfig,
    SecretsConfig,
)


class TomlSettingsSource(PydanticBaseSettingsSource):
    """Read settings from a ``stackctl.toml`` file discovered via walk-up."""

    def __init__(self, settings_cls: type[BaseSettings], toml_path: Path | None) -> None:
        super().__init__(settings_cls)
        self._data: dict[str, Any] = {}
        if toml_path and toml_path.is_file():
            self._data = read_config(toml_path)

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        """Return ``(value, field_name, value_is_complex)``."""
        val = self._data.get(field_name)
        return val, field_name, field_name in self._data

    def __call__(self) -> dict[str, Any]:
        """Return the full TOML data dict for Pydantic to merge."""
        return self._data


# Thread-local storage for TOML path during construction.
_tls = threading.local()


class StackSettings(BaseSettings):
    """Unified settings for the entire stackctl CLI.

    Merges CLI flags, environment variables, TOML config sections,
    and code-baked defaults into a single frozen object.  Stored in
    ``click.Context.obj`` at the CLI root level.

    Attributes:
        project_root: Resolved project directory (parent of ``stackctl.toml``,
            or CWD if no config found).
        config_path: Explicit ``--config`` override, or None for discovery.
    """

    model_config = {
        "frozen": True,
        "env_prefix": "STACKCTL_",
        "env_nested_delimiter": "__",
    }

    # --- Resolved paths, derived from the config location ---
    project_root: Path = Field(default_factory=Path.cwd)
    config_path: Path | None = None

    # --- CLI flags ---
    json_output: bool = False
    quiet: bool = False
    verbose: bool = False
    log_json: bool = False
    no_interact: bool = False

    # --- TOML sections ---
    project: ProjectConfig = Field(default_factory=ProjectConfig)
    backend: BackendConfig = Field(default_factory=BackendConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    proxy: ProxyConfig = Field(default_factory=ProxyConfig)
    secrets: SecretsConfig = Field(default_factory=SecretsConfig)
    certs: CertsConfig = Field(default_factory=CertsConfig)
    compose: ComposeConfig = Field(default_factory=ComposeConfig)
    probe: ProbeConfig = Field(default_factory=ProbeConfig)

    # Retained for type-checker visibility; not used at runtime.
    _toml_path: ClassVar[Path | None] = None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Insert TOML source between env vars and defaults."""
        toml_path = getattr(_tls, "toml_path", None)
        return (
            init_settings,
            env_settings,
            TomlSettingsSource(settings_cls, toml_path),
        )

    @classmethod
    def from_cli(
        cls,
        *,
        config_path: str | None = None,
        project_root: Path | None = None,
        **cli_flags: Any,
    ) -> StackSettings:
        """Construct settings from CLI invocation.

        Discovers ``stackctl.toml`` via walk-up (or explicit *config_path*),
        resolves *project_root* from the config file's parent directory,
        and merges CLI flags as highest-priority overrides.
        """
        toml_path: Path | None = None
        if config_path:
            p = Path(config_path)
            if p.is_file():
                toml_path = p
        else:
            toml_path = find_config(project_root)

        resolved_root = project_root
        if resolved_root is None:
            resolved_root = toml_path.parent if toml_path else Path.cwd()

        _tls.toml_path = toml_path
        try:
            return cls(
                project_root=resolved_root,
                config_path=toml_path,
                **cli_flags,
            )
        finally:
            _tls.toml_path = None

    # --- Derived host-side paths ---

    @property
    def output_root(self) -> Path:
        """Directory the deployment files are rendered into."""
        return (self.project_root / self.project.output_dir).resolve()

    @property
    def compose_path(self) -> Path:
        return self.output_root / self.compose.file

    @property
    def nginx_conf_path(self) -> Path:
        return self.output_root / "nginx" / "nginx.conf"

    @property
    def dockerfile_path(self) -> Path:
        return self.output_root / self.backend.build_context / "Dockerfile"

    @property
    def root_password_path(self) -> Path:
        return self.output_root / self.secrets.dir / self.secrets.root_password_file

    @property
    def app_password_path(self) -> Path:
        return self.output_root / self.secrets.dir / self.secrets.app_password_file

    @property
    def cert_path(self) -> Path:
        return self.output_root / self.certs.dir / self.certs.cert_file

    @property
    def key_path(self) -> Path:
        return self.output_root / self.certs.dir / self.certs.key_file
