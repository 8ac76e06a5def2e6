"""Shared test fixtures."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import pytest

from stackhealth.health.probes import ComposeStatus, ContainerState, ProbeError, Usage
from stackhealth.stack.registry import StackDefinition, default_stack

GIB = 1024 ** 3


@dataclass
class FakeProbeClient:
    """Canned ProbeClient. Defaults describe a fully healthy stack."""

    engine_up: bool = True
    compose: ComposeStatus | None = field(default_factory=lambda: ComposeStatus(running=6, total=6))
    containers: dict[str, ContainerState] = field(default_factory=dict)
    default_health: str | None = "healthy"
    network_names: list[str] = field(default_factory=lambda: ["bridge", "mcp_internal"])
    tcp_ok: bool = True
    http_codes: dict[str, int | None] = field(default_factory=dict)
    memory: Usage | None = field(default_factory=lambda: Usage(used=8 * GIB, total=16 * GIB))
    disk: Usage | None = field(default_factory=lambda: Usage(used=50 * GIB, total=100 * GIB, free=50 * GIB))
    dirs: dict[str, int | None] = field(default_factory=dict)
    default_dir_size: int | None = 4096
    calls: list[str] = field(default_factory=list)

    def engine_info(self) -> str:
        self.calls.append("engine_info")
        if not self.engine_up:
            raise ProbeError("Cannot connect to the Docker daemon")
        return "27.0.3"

    def compose_status(self) -> ComposeStatus:
        self.calls.append("compose_status")
        if self.compose is None:
            raise ProbeError("no configuration file provided: not found")
        return self.compose

    def container_state(self, name: str) -> ContainerState:
        self.calls.append(f"container_state:{name}")
        if name in self.containers:
            return self.containers[name]
        return ContainerState(found=True, up=True, health=self.default_health, status="Up 2 hours")

    def networks(self) -> list[str]:
        self.calls.append("networks")
        return self.network_names

    def tcp_connect(self, host: str, port: int, via: str | None = None) -> bool:
        self.calls.append(f"tcp_connect:{host}:{port}")
        return self.tcp_ok

    def http_get(self, url: str, timeout: float) -> int:
        self.calls.append(f"http_get:{url}")
        code = self.http_codes.get(url, 200)
        if code is None:
            raise ProbeError("Connection error: connection refused")
        return code

    def mem_usage(self) -> Usage:
        self.calls.append("mem_usage")
        if self.memory is None:
            raise ProbeError("Cannot read memory usage")
        return self.memory

    def disk_usage(self, path: Path) -> Usage:
        self.calls.append("disk_usage")
        if self.disk is None:
            raise ProbeError("Cannot read disk usage")
        return self.disk

    def directory_size(self, path: Path) -> int | None:
        self.calls.append(f"directory_size:{path.as_posix()}")
        for suffix, size in self.dirs.items():
            if path.as_posix().endswith(suffix):
                return size
        return self.default_dir_size


@pytest.fixture
def fake_client() -> FakeProbeClient:
    return FakeProbeClient()


@pytest.fixture
def stack() -> StackDefinition:
    return default_stack()
