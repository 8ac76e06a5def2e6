"""Health check engine — runs stack probes and aggregates their results.

Supports: engine, compose, container, network, TCP, HTTP, memory, disk and
data-directory probes. Each probe produces exactly one CheckResult; the run
as a whole produces a HealthRun with an overall status and exit code.
"""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from stackhealth.health.probes import ContainerState, ProbeClient, ProbeError
from stackhealth.stack.registry import ProbeDef, StackDefinition

logger = logging.getLogger(__name__)


# ── Models ───────────────────────────────────────────────────────────────────


class Status(str, Enum):
    HEALTHY = "healthy"
    WARNING = "warning"
    UNHEALTHY = "unhealthy"
    INFO = "info"


_SEVERITY = {Status.INFO: 0, Status.HEALTHY: 0, Status.WARNING: 1, Status.UNHEALTHY: 2}

# Smallest size du reports for a directory (its own block)
DIR_BLOCK_BYTES = 4096


@dataclass(frozen=True)
class CheckResult:
    """Result of a single probe execution."""

    name: str
    status: Status
    detail: str = ""
    probe_id: str = ""
    kind: str = ""
    section: str = ""
    latency_ms: float = 0.0
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


@dataclass
class HealthRun:
    """Ordered results of one pass over a stack, plus the run-level failure flag."""

    results: list[CheckResult] = field(default_factory=list)
    fatal: bool = False

    def counts(self) -> dict[Status, int]:
        tally = {s: 0 for s in Status}
        for r in self.results:
            tally[r.status] += 1
        return tally

    @property
    def overall(self) -> Status:
        return overall_status(self.results)

    @property
    def exit_code(self) -> int:
        return 1 if self.fatal or self.overall == Status.UNHEALTHY else 0


# ── Pure helpers ─────────────────────────────────────────────────────────────


def usage_percent(used: int, total: int, round_up: bool = False) -> int:
    """Integer percent used.

    Truncated like shell arithmetic by default; ``round_up`` matches the
    Use% column of df.
    """
    if total <= 0:
        raise ValueError(f"total must be positive, got {total}")
    if round_up:
        return -(-used * 100 // total)
    return used * 100 // total


def classify_usage(percent: float, warn: int = 80, critical: int = 90) -> Status:
    if percent < warn:
        return Status.HEALTHY
    if percent < critical:
        return Status.WARNING
    return Status.UNHEALTHY


def map_container_health(state: ContainerState) -> tuple[Status, str]:
    """Map the engine-reported container health to a status + detail."""
    if not state.found:
        return Status.UNHEALTHY, "Container not found or not running"

    health = state.health
    if health is None:
        if state.up:
            return Status.HEALTHY, "Container running (no health check)"
        detail = "Container not running properly"
        return Status.UNHEALTHY, f"{detail} ({state.status})" if state.status else detail
    if health == "healthy":
        return Status.HEALTHY, "Container healthy"
    if health == "unhealthy":
        return Status.UNHEALTHY, "Health check failing"
    if health == "starting":
        return Status.WARNING, "Health check starting"
    return Status.WARNING, f"Unknown health status: {health}"


def overall_status(results: list[CheckResult]) -> Status:
    """Worst-case wins: UNHEALTHY > WARNING > HEALTHY. INFO never counts."""
    worst = Status.HEALTHY
    for r in results:
        if _SEVERITY[r.status] > _SEVERITY[worst]:
            worst = r.status
    return worst


def human_size(num_bytes: float) -> str:
    """Format a byte count like `du -h` (4.0K, 120M, 1.5G)."""
    if num_bytes < 1024:
        return str(int(num_bytes))
    size = float(num_bytes)
    for unit in ("K", "M", "G", "T"):
        size /= 1024
        if size < 1024 or unit == "T":
            break
    return f"{size:.1f}{unit}" if size < 10 else f"{size:.0f}{unit}"


def _gib(num_bytes: int) -> int:
    return num_bytes // (1024 ** 3)


# ── Probe runners ────────────────────────────────────────────────────────────
#
# Each runner returns (status, detail). ProbeError and any other exception
# are handled by execute_probe, so runners only deal with successful reads
# unless a failure has a specific meaning for that kind.


def run_engine_probe(probe: ProbeDef, client: ProbeClient, base_dir: Path) -> tuple[Status, str]:
    try:
        version = client.engine_info()
    except ProbeError as e:
        logger.warning("Docker engine not responding: %s", e)
        return Status.UNHEALTHY, "Docker engine not responding"
    detail = "Docker engine running"
    return Status.HEALTHY, f"{detail} ({version})" if version else detail


def run_compose_probe(probe: ProbeDef, client: ProbeClient, base_dir: Path) -> tuple[Status, str]:
    try:
        compose = client.compose_status()
    except ProbeError as e:
        logger.warning("Docker Compose not responding: %s", e)
        return Status.UNHEALTHY, "Docker Compose not responding"

    detail = f"{compose.running}/{compose.total} services running"
    if compose.total > 0 and compose.running == compose.total:
        return Status.HEALTHY, detail
    return Status.WARNING, detail


def run_container_probe(probe: ProbeDef, client: ProbeClient, base_dir: Path) -> tuple[Status, str]:
    return map_container_health(client.container_state(probe.target))


def run_network_probe(probe: ProbeDef, client: ProbeClient, base_dir: Path) -> tuple[Status, str]:
    pattern = re.compile(probe.target)
    matches = [n for n in client.networks() if pattern.search(n)]
    if matches:
        return Status.HEALTHY, f"Network exists ({matches[0]})"
    return Status.WARNING, f"No network matching '{probe.target}'"


def run_tcp_probe(probe: ProbeDef, client: ProbeClient, base_dir: Path) -> tuple[Status, str]:
    target = f"{probe.host}:{probe.port}"
    if probe.via:
        try:
            state = client.container_state(probe.via)
        except ProbeError as e:
            logger.warning("Cannot look up %s, skipping %s: %s", probe.via, probe.id, e)
            return Status.INFO, f"Skipped: cannot query {probe.via}"
        if not state.found:
            return Status.INFO, f"Skipped: {probe.via} not running"

    if client.tcp_connect(probe.host, probe.port, via=probe.via or None):
        return Status.HEALTHY, f"Connection to {target} successful"
    return Status.UNHEALTHY, f"Cannot connect to {target}"


def run_http_probe(probe: ProbeDef, client: ProbeClient, base_dir: Path) -> tuple[Status, str]:
    try:
        code = client.http_get(probe.target, timeout=probe.timeout_seconds)
    except ProbeError as e:
        return Status.WARNING, f"Endpoint not responding ({e})"
    if 200 <= code < 300:
        return Status.HEALTHY, f"Endpoint responding ({code})"
    return Status.WARNING, f"Endpoint returned {code}"


def run_memory_probe(probe: ProbeDef, client: ProbeClient, base_dir: Path) -> tuple[Status, str]:
    usage = client.mem_usage()
    pct = usage_percent(usage.used, usage.total)
    status = classify_usage(pct, probe.warn_percent, probe.critical_percent)
    return status, f"{pct}% used ({_gib(usage.used)}G/{_gib(usage.total)}G)"


def run_disk_probe(probe: ProbeDef, client: ProbeClient, base_dir: Path) -> tuple[Status, str]:
    usage = client.disk_usage(_resolve(probe.target or ".", base_dir))
    pct = usage_percent(usage.used, usage.total, round_up=True)
    status = classify_usage(pct, probe.warn_percent, probe.critical_percent)
    return status, f"{pct}% used ({human_size(usage.free)} free)"


def run_directory_probe(probe: ProbeDef, client: ProbeClient, base_dir: Path) -> tuple[Status, str]:
    size = client.directory_size(_resolve(probe.target, base_dir))
    if size is None:
        return Status.WARNING, f"Directory not found: {probe.target}"
    return Status.HEALTHY, f"Directory exists ({human_size(max(size, DIR_BLOCK_BYTES))})"


def _resolve(target: str, base_dir: Path) -> Path:
    path = Path(target)
    return path if path.is_absolute() else base_dir / path


# Dispatcher
PROBE_RUNNERS: dict[str, Callable[[ProbeDef, ProbeClient, Path], tuple[Status, str]]] = {
    "engine": run_engine_probe,
    "compose": run_compose_probe,
    "container": run_container_probe,
    "network": run_network_probe,
    "tcp": run_tcp_probe,
    "http": run_http_probe,
    "memory": run_memory_probe,
    "disk": run_disk_probe,
    "directory": run_directory_probe,
}

# Kinds whose failures are treated as hard failures rather than best-effort
_STRICT_KINDS = {"engine", "compose", "container", "tcp"}


def _failure_status(probe: ProbeDef) -> Status:
    return Status.UNHEALTHY if probe.fatal or probe.kind in _STRICT_KINDS else Status.WARNING


def execute_probe(probe: ProbeDef, client: ProbeClient, base_dir: Path | None = None) -> CheckResult:
    """Run one probe by kind. Always returns exactly one CheckResult."""
    base = base_dir or Path(".")
    t0 = time.perf_counter()

    runner = PROBE_RUNNERS.get(probe.kind)
    if runner is None:
        status, detail = Status.WARNING, f"Unknown probe kind: {probe.kind}"
    else:
        try:
            status, detail = runner(probe, client, base)
        except ProbeError as e:
            logger.warning("Probe %s failed: %s", probe.id, e)
            status, detail = _failure_status(probe), str(e)
        except Exception as e:
            logger.exception("Probe %s raised unexpectedly", probe.id)
            status, detail = _failure_status(probe), f"Error: {type(e).__name__}: {e}"

    latency = (time.perf_counter() - t0) * 1000
    result = CheckResult(
        name=probe.name, status=status, detail=detail,
        probe_id=probe.id, kind=probe.kind, section=probe.section,
        latency_ms=round(latency, 1),
    )
    logger.debug("Probe %s: %s (%.0fms)", probe.id, status.value, result.latency_ms)
    return result


def run_checks(
    stack: StackDefinition,
    client: ProbeClient,
    quick: bool = False,
    base_dir: Path | None = None,
    on_result: Callable[[CheckResult], Any] | None = None,
) -> HealthRun:
    """Run the stack's probes top to bottom and collect a HealthRun.

    ``quick`` restricts the run to probes marked quick (engine, compose and
    per-container checks in the default stack). ``on_result`` is called after
    each probe so callers can stream output; it never affects the run.
    """
    probes = stack.quick_probes() if quick else stack.probes
    run = HealthRun()

    for probe in probes:
        result = execute_probe(probe, client, base_dir)
        run.results.append(result)
        if probe.fatal and result.status == Status.UNHEALTHY:
            run.fatal = True

        if on_result:
            try:
                on_result(result)
            except Exception:
                logger.exception("Result callback error")

    logger.info(
        "Health run finished: %d checks, overall %s",
        len(run.results), run.overall.value,
    )
    return run
