"""Diagnostic and setup CLI for the clinical search cluster.

Usage:
    clinical-search check-env
    clinical-search check-cluster
    clinical-search check-indices [--allow-empty]
    clinical-search check-all [--allow-empty]
    clinical-search setup [--seed]

Every check command prints a pass/fail table and exits 1 if any check failed.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from rich.console import Console
from rich.table import Table

from clinical_search.config import Settings
from clinical_search.dependencies import Services, build_services
from clinical_search.errors import ClinicalSearchError
from clinical_search.logging_config import configure_logging
from clinical_search.models.health import HealthReport
from clinical_search.seed import seed

logger = logging.getLogger(__name__)

STATUS_LABELS = {
    "pass": "[green]PASS[/green]",
    "warn": "[yellow]WARN[/yellow]",
    "fail": "[red]FAIL[/red]",
}


def render_report(console: Console, report: HealthReport, title: str) -> None:
    table = Table(title=title)
    table.add_column("Check")
    table.add_column("Status")
    table.add_column("Details")
    for check in report.checks:
        table.add_row(check.name, STATUS_LABELS[check.status], check.message)
    console.print(table)
    counts = report.counts
    console.print(
        f"{counts['pass']} passed, {counts['warn']} warnings, {counts['fail']} failed"
    )


def print_missing(console: Console, report: HealthReport) -> None:
    for check in report.failures():
        for key in check.details.get("missing", []):
            console.print(f"missing: {key}")


async def _run_checks(args: argparse.Namespace, services: Services) -> HealthReport:
    checker = services.health
    require_data = not getattr(args, "allow_empty", False)
    if args.command == "check-env":
        return await checker.check_configuration()
    if args.command == "check-cluster":
        return await checker.check_cluster()
    if args.command == "check-indices":
        return await checker.check_indices(require_data=require_data)
    return await checker.run_all(require_data=require_data)


async def _setup(args: argparse.Namespace, services: Services, console: Console) -> int:
    services.require()
    created = await services.schema_manager.ensure_all()
    table = Table(title="Indices")
    table.add_column("Index")
    table.add_column("Result")
    for name, was_created in created.items():
        table.add_row(name, "created" if was_created else "verified")
    console.print(table)
    if args.seed:
        counts = await seed(services.writer)
        for name, count in counts.items():
            console.print(f"Seeded {count} documents into {name}")
    return 0


async def _main(args: argparse.Namespace, cfg: Settings, console: Console) -> int:
    services = build_services(cfg)
    try:
        if args.command == "setup":
            try:
                return await _setup(args, services, console)
            except ClinicalSearchError as e:
                console.print(f"[red]Setup failed:[/red] {e.message}")
                return 1
        report = await _run_checks(args, services)
        render_report(console, report, title=args.command)
        if args.command == "check-env":
            print_missing(console, report)
        return 0 if report.passed else 1
    finally:
        if services.client is not None:
            await services.client.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clinical-search",
        description="Readiness checks and setup for the clinical search indices",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("check-env", help="Verify required configuration is present")
    sub.add_parser("check-cluster", help="Verify cluster reachability and health")
    for name, help_text in [
        ("check-indices", "Verify indices, mappings and document counts"),
        ("check-all", "Run every readiness check"),
    ]:
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument(
            "--allow-empty",
            action="store_true",
            help="Report empty indices as warnings instead of failures",
        )
    setup = sub.add_parser("setup", help="Create missing indices and verify mappings")
    setup.add_argument("--seed", action="store_true", help="Also write sample data")
    return parser


def main(argv: list[str] | None = None, settings: Settings | None = None) -> int:
    args = build_parser().parse_args(argv)
    cfg = settings or Settings()
    configure_logging(args.debug or cfg.debug)
    console = Console()
    return asyncio.run(_main(args, cfg, console))


if __name__ == "__main__":
    sys.exit(main())
