"""Health subsystem — probe clients, check engine, aggregation."""

from .engine import CheckResult, HealthRun, Status, execute_probe, run_checks
from .probes import DockerProbeClient, ProbeClient, ProbeError
