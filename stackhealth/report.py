"""Report rendering — turns CheckResults into the colored terminal report.

Kept apart from the engine: the engine only returns data, this module only
prints it. ReportPrinter.print_result is passed to run_checks as the
on_result callback so lines appear as each probe finishes.
"""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from stackhealth.health.engine import CheckResult, HealthRun, Status

NAME_WIDTH = 30

STATUS_STYLES = {
    Status.HEALTHY: "green",
    Status.WARNING: "yellow",
    Status.UNHEALTHY: "red",
    Status.INFO: "blue",
}

_OVERALL_MARKS = {
    Status.HEALTHY: "✅",
    Status.WARNING: "⚠️",
    Status.UNHEALTHY: "❌",
}

SUGGESTIONS = [
    "Check service logs: docker compose logs [service-name]",
    "Restart unhealthy services: docker compose restart [service-name]",
    "Verify configuration files and environment variables",
    "Check system resources and available disk space",
]


def display_status(run: HealthRun) -> Status:
    """Status shown to the user; the run-level failure flag forces UNHEALTHY."""
    return Status.UNHEALTHY if run.exit_code else run.overall


class ReportPrinter:
    """Streams one line per result and prints the closing summary."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()
        self._section: str | None = None

    def print_header(self, title: str) -> None:
        self.console.print(Panel(Text(title, justify="center"), style="bold blue", expand=False, width=40))
        self.console.print()

    def print_result(self, result: CheckResult) -> None:
        if result.section and result.section != self._section:
            self.console.print()
            self.console.print(Text(result.section, style="bold blue"))
            self.console.print("-" * 40)
        self._section = result.section or self._section

        line = Text(f"{result.name:<{NAME_WIDTH}}")
        line.append("[")
        line.append(result.status.name, style=STATUS_STYLES[result.status])
        line.append("] ")
        line.append(result.detail)
        self.console.print(line, overflow="fold")

    def print_summary(self, run: HealthRun) -> None:
        counts = run.counts()
        self.console.print()
        self.console.print(Panel(Text("Health Summary", justify="center"), style="bold blue", expand=False, width=40))
        self.console.print()

        self.console.print(f"Total Checks: {len(run.results)}")
        self.console.print(Text.assemble("Healthy: ", (str(counts[Status.HEALTHY]), "green")))
        self.console.print(Text.assemble("Warnings: ", (str(counts[Status.WARNING]), "yellow")))
        self.console.print(Text.assemble("Unhealthy: ", (str(counts[Status.UNHEALTHY]), "red")))
        if counts[Status.INFO]:
            self.console.print(Text.assemble("Info: ", (str(counts[Status.INFO]), "blue")))
        self.console.print()

        shown = display_status(run)
        self.console.print(Text.assemble(
            "Overall Status: ",
            (shown.name, STATUS_STYLES[shown]),
            f" {_OVERALL_MARKS[shown]}",
        ))

        if counts[Status.WARNING] or counts[Status.UNHEALTHY]:
            self.console.print()
            self.console.print("Suggestions:")
            for s in SUGGESTIONS:
                self.console.print(Text(f"• {s}"))


def report_to_dict(run: HealthRun, stack_name: str = "") -> dict[str, Any]:
    """JSON-serializable form of a run."""
    counts = run.counts()
    return {
        "stack": stack_name,
        "overall": display_status(run).value,
        "fatal": run.fatal,
        "exit_code": run.exit_code,
        "counts": {s.value: n for s, n in counts.items()},
        "total": len(run.results),
        "results": [
            {
                "id": r.probe_id,
                "name": r.name,
                "kind": r.kind,
                "section": r.section,
                "status": r.status.value,
                "detail": r.detail,
                "latency_ms": r.latency_ms,
                "timestamp": r.timestamp,
            }
            for r in run.results
        ],
    }
