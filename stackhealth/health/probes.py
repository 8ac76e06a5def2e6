"""Probe clients — the only place that touches Docker, the network and the host.

The engine talks to a ProbeClient. DockerProbeClient shells out to the
docker CLI, uses httpx for HTTP endpoints and psutil for host resources.
Every method raises ProbeError when it cannot determine an answer; callers
decide what status that maps to.
"""

from __future__ import annotations

import json
import logging
import os
import socket
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

import httpx
import psutil

logger = logging.getLogger(__name__)


class ProbeError(Exception):
    """Raised when a probe cannot reach or query its target."""


# ── Readings ─────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ComposeStatus:
    running: int
    total: int


@dataclass(frozen=True)
class ContainerState:
    """Engine view of one container."""

    found: bool
    up: bool = False
    health: str | None = None  # None = no health check configured
    status: str = ""  # raw status text, e.g. "Up 3 hours (healthy)"


@dataclass(frozen=True)
class Usage:
    """Used/total reading in bytes."""

    used: int
    total: int
    free: int = 0  # disk only


class ProbeClient(Protocol):
    def engine_info(self) -> str: ...

    def compose_status(self) -> ComposeStatus: ...

    def container_state(self, name: str) -> ContainerState: ...

    def networks(self) -> list[str]: ...

    def tcp_connect(self, host: str, port: int, via: str | None = None) -> bool: ...

    def http_get(self, url: str, timeout: float) -> int: ...

    def mem_usage(self) -> Usage: ...

    def disk_usage(self, path: Path) -> Usage: ...

    def directory_size(self, path: Path) -> int | None: ...


# ── Docker CLI client ────────────────────────────────────────────────────────


class DockerProbeClient:
    """Production ProbeClient backed by the docker CLI, httpx and psutil."""

    def __init__(
        self,
        docker_bin: str = "docker",
        project_dir: Path | None = None,
        command_timeout: float = 30.0,
    ) -> None:
        self._docker = docker_bin
        self._project_dir = project_dir or Path(".")
        self._timeout = command_timeout

    def _run(self, args: list[str], check: bool = True) -> subprocess.CompletedProcess[str]:
        """Run a docker subcommand (no shell) and return the completed process."""
        cmd = [self._docker, *args]
        logger.debug("exec: %s", " ".join(cmd))
        try:
            result = subprocess.run(
                cmd,
                cwd=str(self._project_dir),
                capture_output=True,
                text=True,
                timeout=self._timeout,
                encoding="utf-8",
                errors="replace",
            )
        except FileNotFoundError as e:
            raise ProbeError(f"Command not found: {self._docker}") from e
        except subprocess.TimeoutExpired as e:
            raise ProbeError(f"Command timed out after {self._timeout}s: {' '.join(args[:2])}") from e

        if check and result.returncode != 0:
            stderr = result.stderr.strip() or f"exit code {result.returncode}"
            raise ProbeError(stderr)
        return result

    # -- engine ----------------------------------------------------------------

    def engine_info(self) -> str:
        result = self._run(["info", "--format", "{{.ServerVersion}}"])
        return result.stdout.strip()

    def compose_status(self) -> ComposeStatus:
        result = self._run(["compose", "ps", "--all", "--format", "json"])
        services = parse_compose_ps(result.stdout)
        running = sum(1 for s in services if str(s.get("State", "")).lower() == "running")
        return ComposeStatus(running=running, total=len(services))

    def container_state(self, name: str) -> ContainerState:
        result = self._run(["ps", "--format", "{{json .}}"])
        row = _find_container(result.stdout, name)
        if row is None:
            return ContainerState(found=False)

        status = row.get("Status", "")
        health: str | None = None
        inspect = self._run(["inspect", "--format", "{{json .State}}", name], check=False)
        if inspect.returncode == 0:
            try:
                state = json.loads(inspect.stdout)
                health = (state.get("Health") or {}).get("Status")
            except json.JSONDecodeError:
                logger.debug("Unparseable inspect output for %s", name)

        return ContainerState(found=True, up=status.startswith("Up"), health=health, status=status)

    def networks(self) -> list[str]:
        result = self._run(["network", "ls", "--format", "{{.Name}}"])
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    # -- network ---------------------------------------------------------------

    def tcp_connect(self, host: str, port: int, via: str | None = None) -> bool:
        if via:
            result = self._run(["exec", via, "nc", "-z", host, str(port)], check=False)
            return result.returncode == 0

        try:
            sock = socket.create_connection((host, port), timeout=self._timeout)
            sock.close()
            return True
        except OSError as e:
            logger.debug("TCP connect %s:%d failed: %s", host, port, e)
            return False

    def http_get(self, url: str, timeout: float) -> int:
        try:
            with httpx.Client(timeout=timeout, follow_redirects=True) as client:
                resp = client.get(url)
        except httpx.TimeoutException as e:
            raise ProbeError(f"Timed out after {timeout:g}s") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise ProbeError(f"Connection error: {e}") from e
        return resp.status_code

    # -- host ------------------------------------------------------------------

    def mem_usage(self) -> Usage:
        try:
            vm = psutil.virtual_memory()
        except OSError as e:
            raise ProbeError(f"Cannot read memory usage: {e}") from e
        return Usage(used=vm.used, total=vm.total)

    def disk_usage(self, path: Path) -> Usage:
        try:
            du = psutil.disk_usage(str(path))
        except OSError as e:
            raise ProbeError(f"Cannot read disk usage for {path}: {e}") from e
        # df-style: blocks reserved for root count as neither used nor free
        return Usage(used=du.used, total=du.used + du.free, free=du.free)

    def directory_size(self, path: Path) -> int | None:
        if not path.is_dir():
            return None
        total = 0
        for root, _dirs, files in os.walk(path):
            for f in files:
                try:
                    total += os.lstat(os.path.join(root, f)).st_size
                except OSError:
                    continue  # vanished or unreadable, like du 2>/dev/null
        return total


# ── Parsers ──────────────────────────────────────────────────────────────────


def parse_compose_ps(output: str) -> list[dict[str, Any]]:
    """Parse `docker compose ps --format json` output.

    Compose v2.21+ prints one JSON object per line; older releases print a
    single JSON array.
    """
    text = output.strip()
    if not text:
        return []
    if text.startswith("["):
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ProbeError(f"Unparseable compose output: {e}") from e
        return [d for d in data if isinstance(d, dict)]

    services = []
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            item = json.loads(line)
        except json.JSONDecodeError as e:
            raise ProbeError(f"Unparseable compose output: {e}") from e
        if isinstance(item, dict):
            services.append(item)
    return services


def _find_container(ps_output: str, name: str) -> dict[str, Any] | None:
    """Return the `docker ps` row whose name matches exactly."""
    for line in ps_output.splitlines():
        if not line.strip():
            continue
        try:
            row = json.loads(line)
        except json.JSONDecodeError:
            continue
        names = [n.strip().lstrip("/") for n in str(row.get("Names", "")).split(",")]
        if name in names:
            return row
    return None
