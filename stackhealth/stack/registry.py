"""Stack registry — loads stack.yaml and provides typed probe descriptors.

The probe list is data, not code: one ordered list of ProbeDef entries
consumed top to bottom by the health engine. When no stack file exists the
built-in MCP client stack is used.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

PROBE_KINDS = (
    "engine", "compose", "container", "network", "tcp",
    "http", "memory", "disk", "directory",
)


class StackConfigError(Exception):
    """Raised when a stack file exists but cannot be read or parsed."""


# ── Data models ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ProbeDef:
    """Definition of a single probe in the stack."""

    id: str
    name: str
    kind: str  # engine | compose | container | network | tcp | http | memory | disk | directory
    section: str = ""
    target: str = ""  # container name, network pattern, URL or path
    host: str = ""  # tcp only
    port: int = 0  # tcp only
    via: str = ""  # tcp: run the connect from inside this container
    timeout_seconds: float = 5.0
    warn_percent: int = 80
    critical_percent: int = 90
    quick: bool = False  # included in --quick runs
    fatal: bool = False  # UNHEALTHY sets the run-level failure flag


@dataclass
class StackDefinition:
    """A deployable stack and the ordered probes that verify it."""

    name: str
    title: str = ""
    probes: list[ProbeDef] = field(default_factory=list)

    def quick_probes(self) -> list[ProbeDef]:
        return [p for p in self.probes if p.quick]


# ── Default stack ────────────────────────────────────────────────────────────

_SERVICES = "Individual Service Health"
_NETWORK = "Network Connectivity Tests"
_HTTP = "HTTP Endpoint Tests"
_RESOURCES = "Resource Usage"
_DATA = "Data Persistence"

DEFAULT_STACK: dict[str, Any] = {
    "name": "mcp-client",
    "title": "MCP Client Health Check",
    "probes": [
        {"id": "engine", "name": "Docker Engine", "kind": "engine", "quick": True, "fatal": True},
        {"id": "compose", "name": "Docker Compose Stack", "kind": "compose", "quick": True, "fatal": True},
        {"id": "mcp-client", "name": "MCP Client", "kind": "container", "target": "mcp-client-app",
         "section": _SERVICES, "quick": True},
        {"id": "knowledge-graph", "name": "Knowledge Graph", "kind": "container",
         "target": "knowledge-graph-db", "section": _SERVICES, "quick": True},
        {"id": "auth-service", "name": "Auth Service", "kind": "container", "target": "auth-service",
         "section": _SERVICES, "quick": True},
        {"id": "load-balancer", "name": "Load Balancer", "kind": "container", "target": "load-balancer",
         "section": _SERVICES, "quick": True},
        {"id": "prometheus", "name": "Prometheus", "kind": "container",
         "target": "monitoring-prometheus", "section": _SERVICES, "quick": True},
        {"id": "grafana", "name": "Grafana", "kind": "container", "target": "monitoring-grafana",
         "section": _SERVICES, "quick": True},
        {"id": "internal-network", "name": "Internal Network", "kind": "network",
         "target": "mcp.*internal", "section": _NETWORK},
        {"id": "client-to-db", "name": "MCP Client → Database", "kind": "tcp",
         "host": "knowledge-graph-db", "port": 5432, "via": "mcp-client-app", "section": _NETWORK},
        {"id": "client-to-auth", "name": "MCP Client → Auth Service", "kind": "tcp",
         "host": "auth-service", "port": 4000, "via": "mcp-client-app", "section": _NETWORK},
        {"id": "mcp-client-http", "name": "MCP Client (HTTP)", "kind": "http",
         "target": "http://localhost/health", "section": _HTTP},
        {"id": "auth-http", "name": "Auth Service (HTTP)", "kind": "http",
         "target": "http://localhost:4000/health", "section": _HTTP},
        {"id": "prometheus-http", "name": "Prometheus (HTTP)", "kind": "http",
         "target": "http://localhost:8080/prometheus/-/healthy", "section": _HTTP},
        {"id": "grafana-http", "name": "Grafana (HTTP)", "kind": "http",
         "target": "http://localhost:8080/grafana/api/health", "section": _HTTP},
        {"id": "memory", "name": "Memory Usage", "kind": "memory", "section": _RESOURCES},
        {"id": "disk", "name": "Disk Usage", "kind": "disk", "target": ".", "section": _RESOURCES},
        {"id": "data-postgresql", "kind": "directory", "target": "data/postgresql", "section": _DATA},
        {"id": "data-auth-keys", "kind": "directory", "target": "data/auth-keys", "section": _DATA},
        {"id": "data-prometheus", "kind": "directory", "target": "data/prometheus", "section": _DATA},
        {"id": "data-grafana", "kind": "directory", "target": "data/grafana", "section": _DATA},
        {"id": "logs", "kind": "directory", "target": "logs", "section": _DATA},
    ],
}


def default_stack() -> StackDefinition:
    """The built-in MCP client stack."""
    return parse_stack(DEFAULT_STACK)


# ── Loader ───────────────────────────────────────────────────────────────────


def load_stack(path: Path | None) -> StackDefinition:
    """Parse a stack YAML file, falling back to the built-in stack if absent."""
    if path is None or not path.exists():
        if path is not None:
            logger.warning("Stack file not found: %s (using built-in stack)", path)
        return default_stack()

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise StackConfigError(f"Failed to read {path}: {e}") from e

    if not isinstance(raw, dict):
        raise StackConfigError(f"{path}: expected a mapping at top level")

    stack = parse_stack(raw)
    logger.info("Loaded %d probes for stack '%s' from %s", len(stack.probes), stack.name, path)
    return stack


# ── Parsers ──────────────────────────────────────────────────────────────────


def parse_stack(raw: dict[str, Any]) -> StackDefinition:
    probes = []
    for entry in raw.get("probes") or []:
        try:
            probes.append(_parse_probe(entry))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping malformed probe entry %r: %s", entry, e)

    name = raw.get("name", "stack")
    return StackDefinition(
        name=name,
        title=raw.get("title") or f"{name} Health Check",
        probes=probes,
    )


def _parse_probe(raw: dict[str, Any]) -> ProbeDef:
    kind = raw["kind"]
    if kind not in PROBE_KINDS:
        raise ValueError(f"unknown probe kind '{kind}'")

    target = str(raw.get("target", ""))
    name = raw.get("name") or _default_name(kind, target, raw["id"])

    return ProbeDef(
        id=raw["id"],
        name=name,
        kind=kind,
        section=raw.get("section", ""),
        target=target,
        host=raw.get("host", ""),
        port=int(raw.get("port", 0)),
        via=raw.get("via", ""),
        timeout_seconds=float(raw.get("timeout_seconds", 5.0)),
        warn_percent=int(raw.get("warn_percent", 80)),
        critical_percent=int(raw.get("critical_percent", 90)),
        quick=bool(raw.get("quick", False)),
        fatal=bool(raw.get("fatal", False)),
    )


def _default_name(kind: str, target: str, probe_id: str) -> str:
    # Data directories are labelled after their last path component
    if kind == "directory" and target:
        return f"{Path(target).name} Data"
    return probe_id
