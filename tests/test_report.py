"""Tests for report rendering."""

from __future__ import annotations

import io
import json

from rich.console import Console

from stackhealth.health.engine import CheckResult, HealthRun, Status
from stackhealth.report import ReportPrinter, display_status, report_to_dict


def _console() -> tuple[Console, io.StringIO]:
    buf = io.StringIO()
    return Console(file=buf, width=120, color_system=None), buf


def _run(*statuses: Status, fatal: bool = False) -> HealthRun:
    return HealthRun(
        results=[
            CheckResult(name=f"Check {i}", status=s, detail="ok", probe_id=f"c{i}", kind="container")
            for i, s in enumerate(statuses)
        ],
        fatal=fatal,
    )


class TestResultLines:
    def test_line_format(self) -> None:
        console, buf = _console()
        ReportPrinter(console).print_result(
            CheckResult(name="Docker Engine", status=Status.HEALTHY, detail="Docker engine running"),
        )
        line = buf.getvalue().rstrip("\n")
        assert line == f"{'Docker Engine':<30}[HEALTHY] Docker engine running"

    def test_detail_with_brackets_is_literal(self) -> None:
        console, buf = _console()
        ReportPrinter(console).print_result(
            CheckResult(name="Grafana", status=Status.WARNING, detail="Unknown health status: [bold]x"),
        )
        assert "[WARNING] Unknown health status: [bold]x" in buf.getvalue()

    def test_section_heading_once(self) -> None:
        console, buf = _console()
        printer = ReportPrinter(console)
        for name in ("MCP Client", "Auth Service"):
            printer.print_result(CheckResult(
                name=name, status=Status.HEALTHY, section="Individual Service Health",
            ))
        printer.print_result(CheckResult(name="Memory Usage", status=Status.HEALTHY, section="Resource Usage"))

        out = buf.getvalue()
        assert out.count("Individual Service Health") == 1
        assert out.count("Resource Usage") == 1
        assert out.index("Individual Service Health") < out.index("MCP Client")


class TestSummary:
    def test_healthy_summary(self) -> None:
        console, buf = _console()
        ReportPrinter(console).print_summary(_run(Status.HEALTHY, Status.HEALTHY))
        out = buf.getvalue()
        assert "Total Checks: 2" in out
        assert "Healthy: 2" in out
        assert "Warnings: 0" in out
        assert "Unhealthy: 0" in out
        assert "Overall Status: HEALTHY" in out
        assert "Suggestions" not in out

    def test_warning_summary_has_suggestions(self) -> None:
        console, buf = _console()
        ReportPrinter(console).print_summary(_run(Status.HEALTHY, Status.WARNING))
        out = buf.getvalue()
        assert "Overall Status: WARNING" in out
        assert "Suggestions:" in out
        assert "docker compose logs" in out

    def test_info_counted_separately(self) -> None:
        console, buf = _console()
        ReportPrinter(console).print_summary(_run(Status.HEALTHY, Status.INFO))
        out = buf.getvalue()
        assert "Info: 1" in out
        assert "Overall Status: HEALTHY" in out

    def test_fatal_flag_shows_unhealthy(self) -> None:
        console, buf = _console()
        ReportPrinter(console).print_summary(_run(Status.HEALTHY, fatal=True))
        assert "Overall Status: UNHEALTHY" in buf.getvalue()


class TestReportToDict:
    def test_serializable(self) -> None:
        data = report_to_dict(_run(Status.HEALTHY, Status.UNHEALTHY), "mcp-client")
        json.dumps(data)
        assert data["stack"] == "mcp-client"
        assert data["overall"] == "unhealthy"
        assert data["exit_code"] == 1
        assert data["counts"]["unhealthy"] == 1
        assert data["total"] == 2
        assert data["results"][1]["status"] == "unhealthy"

    def test_display_status(self) -> None:
        assert display_status(_run(Status.WARNING)) == Status.WARNING
        assert display_status(_run(Status.WARNING, fatal=True)) == Status.UNHEALTHY
