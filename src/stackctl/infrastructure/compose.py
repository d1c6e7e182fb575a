"""Thin wrapper over the ``docker compose`` CLI.

Every call goes through :meth:`ComposeRunner._run`, which turns a missing
binary, a non-zero exit, or a timeout into :class:`ComposeError`. Nothing
here retries: recovery is the operator fixing configuration and running
the command again.
"""

from __future__ import annotations

import json
import subprocess
from pathlib import Path
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class ComposeError(Exception):
    """A compose invocation failed. ``code`` maps to ServiceError codes."""

    def __init__(
        self,
        message: str,
        *,
        code: str = "COMPOSE_FAILED",
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.code = code
        self.returncode = returncode
        self.stderr = stderr

    def detail(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.returncode is not None:
            out["returncode"] = self.returncode
        if self.stderr:
            out["stderr"] = self.stderr.strip()[-2000:]
        return out


class ComposeRunner:
    """Runs ``docker compose -f <file> -p <project> ...`` in the file's directory."""

    def __init__(
        self,
        compose_file: Path,
        *,
        project_name: str,
        binary: str = "docker",
        timeout: int = 300,
    ) -> None:
        self.compose_file = compose_file
        self.project_name = project_name
        self.binary = binary
        self.timeout = timeout

    def _argv(self, *args: str) -> list[str]:
        return [
            self.binary,
            "compose",
            "-f",
            str(self.compose_file),
            "-p",
            self.project_name,
            *args,
        ]

    def _run(
        self,
        *args: str,
        capture: bool = True,
        check: bool = True,
        timeout: float | None = -1,
    ) -> subprocess.CompletedProcess[str]:
        """Run one compose subcommand. ``timeout=-1`` means the runner default."""
        argv = self._argv(*args)
        logger.debug("compose.run", argv=argv)
        try:
            return subprocess.run(
                argv,
                cwd=self.compose_file.parent,
                capture_output=capture,
                text=True,
                check=check,
                timeout=self.timeout if timeout == -1 else timeout,
            )
        except FileNotFoundError as exc:
            msg = f"'{self.binary}' executable not found; is Docker installed?"
            raise ComposeError(msg, code="COMPOSE_UNAVAILABLE") from exc
        except subprocess.CalledProcessError as exc:
            msg = f"docker compose {args[0]} exited with status {exc.returncode}"
            logger.warning("compose.failed", subcommand=args[0], returncode=exc.returncode)
            raise ComposeError(msg, returncode=exc.returncode, stderr=exc.stderr or "") from exc
        except subprocess.TimeoutExpired as exc:
            msg = f"docker compose {args[0]} timed out after {exc.timeout}s"
            raise ComposeError(msg) from exc

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def up(self, *, detach: bool = True, build: bool = True) -> str:
        args = ["up"]
        if detach:
            args.append("-d")
        if build:
            args.append("--build")
        return self._run(*args).stdout

    def down(self, *, volumes: bool = False) -> str:
        args = ["down", "--remove-orphans"]
        if volumes:
            args.append("--volumes")
        return self._run(*args).stdout

    def stop(self, service: str) -> None:
        self._run("stop", service)

    def start(self, service: str) -> None:
        self._run("start", service)

    def logs(
        self,
        service: str | None = None,
        *,
        follow: bool = False,
        tail: int | None = None,
    ) -> int:
        """Stream logs straight to the terminal. Returns the exit status."""
        args = ["logs"]
        if follow:
            args.append("--follow")
        if tail is not None:
            args.extend(["--tail", str(tail)])
        if service:
            args.append(service)
        return self._run(*args, capture=False, timeout=None).returncode

    def ps(self) -> list[dict[str, Any]]:
        """Container states. Handles both the array and the line-per-object JSON formats."""
        out = self._run("ps", "--all", "--format", "json").stdout.strip()
        if not out:
            return []
        if out.startswith("["):
            return list(json.loads(out))
        return [json.loads(line) for line in out.splitlines() if line.strip()]

    def exec(
        self,
        service: str,
        *command: str,
        timeout: float | None = -1,
    ) -> subprocess.CompletedProcess[str]:
        """Run *command* inside *service*; a non-zero exit is returned, not raised."""
        return self._run("exec", "-T", service, *command, check=False, timeout=timeout)
