"""
CLI for the Pingdom → Graphite sync
"""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

import click
from rich import box
from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn
from rich.table import Table

from pingsync.config import Settings, load_settings
from pingsync.core.errors import PingsyncError, SyncAbortedError
from pingsync.core.logging import set_level
from pingsync.engine.catalog import DAILY_API_LIMIT, DEFAULT_INTERVAL_MINUTES
from pingsync.engine.orchestrator import SyncOrchestrator
from pingsync.models.sync_models import SyncOptions, SyncReport
from pingsync.scheduler.jobs import start_scheduler, stop_scheduler

console = Console()

T = TypeVar("T")


def build_orchestrator(config: Settings) -> SyncOrchestrator:
    return SyncOrchestrator(config=config)


def _run(config: Settings, action: Callable[[SyncOrchestrator], Awaitable[T]]) -> T:
    """Run an async action against a fresh orchestrator, closing it afterwards.

    Domain errors become a red message and exit code 1.
    """

    async def _main() -> T:
        orchestrator = build_orchestrator(config)
        try:
            return await action(orchestrator)
        finally:
            await orchestrator.close()

    try:
        return asyncio.run(_main())
    except SyncAbortedError as e:
        console.print(f"[red]Sync aborted: {e}[/]")
        if e.report is not None:
            _display_report(e.report)
        raise SystemExit(1)
    except PingsyncError as e:
        console.print(f"[red]Error: {e}[/]")
        raise SystemExit(1)


def _require(check: Callable[[], None]) -> None:
    try:
        check()
    except PingsyncError as e:
        console.print(f"[red]{e}[/]")
        raise SystemExit(1)


@click.group()
@click.option("--config", "config_file", type=click.Path(dir_okay=False), default=None, help="JSON config file")
@click.option("--log-level", default=None, help="Override LOG_LEVEL")
@click.pass_context
def main(ctx, config_file, log_level):
    """Pingdom → Graphite incremental sync"""
    try:
        config = load_settings(config_file)
    except PingsyncError as e:
        console.print(f"[red]{e}[/]")
        raise SystemExit(1)
    if log_level:
        config.log_level = log_level
    set_level(config.log_level)
    ctx.obj = config


@main.command("list")
@click.pass_obj
def list_entities(config: Settings):
    """List checks and transaction monitors with their current status"""
    _require(config.validate_for_pingdom)
    entities = _run(config, lambda o: o.catalog.list_entities())
    if not entities:
        console.print("[yellow]No check or TM matches the configured tags and regex[/]")
        return

    table = Table(title="Pingdom entities", box=box.ROUNDED)
    table.add_column("Kind", style="cyan", no_wrap=True)
    table.add_column("ID", justify="right")
    table.add_column("Name", style="bold")
    table.add_column("Group")
    table.add_column("Status")
    for entity in entities:
        healthy = entity.status in ("up", "SUCCESSFUL")
        color = "green" if healthy else "red"
        table.add_row(
            entity.kind.value,
            entity.id,
            entity.name,
            entity.group or "",
            f"[{color}]{entity.status or 'unknown'}[/]",
        )
    console.print(table)


@main.command()
@click.pass_obj
def probes(config: Settings):
    """List Pingdom probe servers"""
    _require(config.validate_for_pingdom)
    probe_list = _run(config, lambda o: o.catalog.list_probes())

    table = Table(title="Pingdom probes", box=box.ROUNDED)
    table.add_column("ID", justify="right")
    table.add_column("Name", style="bold")
    table.add_column("Location", style="cyan")
    table.add_column("Region")
    for probe in probe_list:
        table.add_row(probe.id, probe.name or "", probe.location, probe.region or "")
    console.print(table)


@main.command()
@click.option("--interval", default=DEFAULT_INTERVAL_MINUTES, type=click.IntRange(min=1), help="Polling interval in minutes")
@click.option("--limit", default=DAILY_API_LIMIT, type=click.IntRange(min=1), help="Daily API call limit")
@click.pass_obj
def advice(config: Settings, interval, limit):
    """Check how a polling interval fits the daily API limit"""

    async def _advice(orchestrator: SyncOrchestrator):
        return orchestrator.catalog.quota_advice(interval, limit)

    result = _run(config, _advice)
    console.print(f"{result.check_count} checks, {result.tm_count} TMs: {result.calls_per_run} calls per run")
    console.print(f"{result.daily_calls} calls per day every {result.interval_minutes} min (limit {result.daily_limit})")
    if result.fits:
        console.print("[green]The schedule fits the daily limit[/]")
    else:
        console.print("[red]The schedule exceeds the daily limit, poll less often or use --summary[/]")


@main.command()
@click.pass_obj
def init(config: Settings):
    """Discover checks, TMs and probes and store them in the manifest"""
    _require(config.validate_for_pingdom)
    console.print("[yellow]Refreshing the catalog from Pingdom...[/]")
    catalog = _run(config, lambda o: o.catalog.refresh_catalog())
    console.print(
        f"[green]Catalog saved: {len(catalog.checks)} checks, "
        f"{len(catalog.tms)} TMs, {len(catalog.probes)} probes[/]"
    )


@main.command()
@click.option("--summary", is_flag=True, help="Skip raw per-probe results")
@click.pass_obj
def update(config: Settings, summary: bool):
    """Send everything new since the last run to Graphite"""
    _require(config.validate_for_sync)
    summary_only = summary or config.sync_summary_only

    with Progress(
        TextColumn("[cyan]Fetching"),
        BarColumn(),
        MofNCompleteColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("fetch", total=None)

        def _on_progress(done: int, total: int) -> None:
            progress.update(task, completed=done, total=total)

        options = SyncOptions(summary_only=summary_only, on_progress=_on_progress)
        report = _run(config, lambda o: o.run_sync(options=options))

    _display_report(report)


@main.command("update-current-status")
@click.pass_obj
def update_current_status(config: Settings):
    """Send the current status of every check and TM to Graphite"""
    _require(config.validate_for_sync)
    points = _run(config, lambda o: o.update_current_status())
    console.print(f"[green]{len(points)} status metrics sent[/]")


@main.command()
@click.option("--interval", default=None, type=click.IntRange(min=1), help="Minutes between runs")
@click.option("--summary", is_flag=True, help="Skip raw per-probe results")
@click.pass_obj
def schedule(config: Settings, interval: Optional[int], summary: bool):
    """Run a sync now and then every few minutes until interrupted"""
    _require(config.validate_for_sync)
    if interval is not None:
        config.sync_interval_minutes = interval
    if summary:
        config.sync_summary_only = True
    config.scheduler_enabled = True

    async def _forever(orchestrator: SyncOrchestrator) -> None:
        start_scheduler(orchestrator, config, run_now=True)
        console.print(f"[cyan]Syncing every {config.sync_interval_minutes} min, Ctrl+C to stop[/]")
        try:
            await asyncio.Event().wait()
        finally:
            stop_scheduler()

    try:
        _run(config, _forever)
    except KeyboardInterrupt:
        console.print("[yellow]Stopped[/]")


def _display_report(report: SyncReport) -> None:
    """Print a sync report as a table"""
    table = Table(title="Sync report", box=box.ROUNDED, show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Points delivered", str(report.delivered_count))
    table.add_row("Checkpoints committed", str(report.committed_count))
    table.add_row("Skipped fetches", str(len(report.skipped)))
    failed = report.failed_entity_ids
    table.add_row("Failed entities", f"[red]{len(failed)}[/]" if failed else "0")
    if report.aborted:
        table.add_row("Aborted", f"[red]{report.abort_reason}[/]")
    console.print(table)

    for failure in report.failures:
        console.print(
            f"[red]✗ {failure.kind.value} {failure.entity_id} "
            f"{failure.category.value} ({failure.stage}): {failure.error}[/]"
        )


if __name__ == "__main__":
    main()
