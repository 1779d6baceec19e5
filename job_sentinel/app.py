"""Typer CLI entrypoint for Job Sentinel."""

from __future__ import annotations

import sys
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Sequence

import typer
from pydantic import ValidationError
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigRepository
from .engine import HtmlExtractor, SourceScanner, build_fetcher
from .infra import SQLiteManager, StateStore
from .logging_conf import available_source_logs, configure_logging, main_log_path, tail_log
from .models import JobRecord, LogEntry, LogLevel, MonitorSettings, Source, SourceStatus
from .notify import ConsoleNotifier, DeliveryPool, HttpWebhookSender, NotificationDispatcher
from .orchestrator import ScanOrchestrator
from .scheduler import APSchedulerAdapter

app = typer.Typer(help="Job Sentinel command line", no_args_is_help=True, rich_markup_mode=None)
source_app = typer.Typer(name="source", help="Manage monitored career pages.", no_args_is_help=True)
jobs_app = typer.Typer(name="jobs", help="Inspect detected job postings.", no_args_is_help=True)
settings_app = typer.Typer(name="settings", help="Show or change monitor settings.", no_args_is_help=True)
log_app = typer.Typer(name="log", help="Inspect log files.", no_args_is_help=True)

console = Console()

_LEVEL_STYLES = {
    LogLevel.INFO: "white",
    LogLevel.SUCCESS: "green",
    LogLevel.ERROR: "red",
}
_STATUS_STYLES = {
    SourceStatus.ACTIVE: "green",
    SourceStatus.INACTIVE: "dim",
    SourceStatus.ERROR: "red",
}


@dataclass
class AppState:
    repository: ConfigRepository
    store: StateStore
    orchestrator: ScanOrchestrator
    scheduler: APSchedulerAdapter
    delivery_pool: DeliveryPool


def _interactive() -> bool:
    return bool(getattr(sys.stdout, "isatty", lambda: False)())


def build_state(verbose: bool) -> AppState:
    repository = ConfigRepository()
    global_config = repository.load_global_config()
    configure_logging(verbose=verbose)
    store = StateStore(SQLiteManager(), repository.state_path())
    delivery_pool = DeliveryPool(global_config.notify_workers)

    scanner = SourceScanner(
        build_fetcher(global_config.fetch),
        HtmlExtractor(global_config.extraction, max_chars=global_config.fetch.max_content_chars),
    )
    dispatcher = NotificationDispatcher(
        delivery_pool,
        notifier=ConsoleNotifier(permission="granted" if _interactive() else "denied"),
        webhook_sender=HttpWebhookSender(timeout=global_config.webhook_timeout_seconds),
    )
    orchestrator = ScanOrchestrator(scanner, dispatcher, store=store, global_config=global_config)

    def _tick() -> None:
        orchestrator.reload_settings()
        orchestrator.run_cycle()

    scheduler = APSchedulerAdapter(_tick)
    orchestrator.subscribe_settings(scheduler.apply_settings)
    return AppState(
        repository=repository,
        store=store,
        orchestrator=orchestrator,
        scheduler=scheduler,
        delivery_pool=delivery_pool,
    )


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _format_time(value: datetime | None) -> str:
    if value is None:
        return "-"
    return value.astimezone().strftime("%Y-%m-%d %H:%M")


def _resolve_source(state: AppState, ref: str) -> Source:
    source = state.orchestrator.find_source(ref)
    if source is None:
        console.print(f"No source matches '{ref}'.", style="red")
        raise typer.Exit(code=1)
    return source


def _render_sources_table(sources: Sequence[Source]) -> Table:
    table = Table(title=f"Monitored sources · {len(sources)}", box=box.SIMPLE_HEAD)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("URL", overflow="fold")
    table.add_column("Status")
    table.add_column("Jobs", justify="right")
    table.add_column("Last checked", style="yellow")
    table.add_column("Last error", style="red", overflow="fold")
    for source in sources:
        table.add_row(
            source.id[:8],
            source.name,
            source.url,
            f"[{_STATUS_STYLES[source.status]}]{source.status.value}[/]",
            str(source.job_count),
            _format_time(source.last_checked),
            source.last_error or "",
        )
    return table


def _render_jobs_table(jobs: Sequence[JobRecord]) -> Table:
    table = Table(title=f"Detected jobs · {len(jobs)}", box=box.SIMPLE_HEAD)
    table.add_column("", no_wrap=True)
    table.add_column("Title", style="cyan", overflow="fold")
    table.add_column("Source", style="magenta")
    table.add_column("Location")
    table.add_column("Posted")
    table.add_column("Detected", style="yellow")
    table.add_column("URL", overflow="fold")
    for job in jobs:
        table.add_row(
            "[green]●[/]" if job.is_new else "",
            job.title,
            job.source_name,
            job.location or "-",
            job.date or "-",
            _format_time(job.detected_at),
            job.url,
        )
    return table


def _print_log_entries(entries: Iterable[LogEntry]) -> None:
    for entry in entries:
        stamp = entry.timestamp.astimezone().strftime("%H:%M:%S")
        console.print(f"[dim][{stamp}][/] {entry.message}", style=_LEVEL_STYLES[entry.level])


app.add_typer(source_app, name="source")
app.add_typer(jobs_app, name="jobs")
app.add_typer(settings_app, name="settings")
app.add_typer(log_app, name="log")


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
) -> None:
    ctx.obj = build_state(verbose)


# ----------------------------------------------------------------------
# sources
# ----------------------------------------------------------------------
@source_app.command("list", help="List monitored sources.")
def source_list(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    sources = state.orchestrator.sources
    if not sources:
        console.print("No sources yet; add one with `job-sentinel source add NAME URL`.", style="yellow")
        raise typer.Exit(code=0)
    console.print(_render_sources_table(sources))


@source_app.command("add", help="Start monitoring a career page.")
def source_add(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Display name, e.g. the company."),
    url: str = typer.Argument(..., help="Career page URL."),
) -> None:
    state = _get_state(ctx)
    try:
        source = state.orchestrator.add_source(name, url)
    except ValidationError as exc:
        console.print(f"Invalid source: {exc.errors()[0]['msg']}", style="red")
        raise typer.Exit(code=1) from exc
    console.print(f"Added {source.name} ({source.id[:8]}).", style="green")


@source_app.command("remove", help="Stop monitoring a source (by id or name).")
def source_remove(ctx: typer.Context, ref: str = typer.Argument(..., help="Source id or name.")) -> None:
    state = _get_state(ctx)
    source = _resolve_source(state, ref)
    state.orchestrator.remove_source(source.id)
    console.print(f"Removed {source.name}.", style="green")


# ----------------------------------------------------------------------
# scanning
# ----------------------------------------------------------------------
@app.command("scan", help="Run one scan cycle over every source now.")
def scan(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    try:
        summary = state.orchestrator.run_cycle()
    finally:
        state.delivery_pool.shutdown(wait=True)
    if summary is None:
        console.print("Nothing to scan: no sources configured.", style="yellow")
        raise typer.Exit(code=0)
    _print_log_entries(summary.log_entries)
    console.print(
        f"Scanned {summary.sources_scanned} source(s): "
        f"{summary.new_records} new job(s), {summary.errors} error(s).",
        style="bold",
    )


@app.command("watch", help="Scan periodically until interrupted.")
def watch(
    ctx: typer.Context,
    scan_now: bool = typer.Option(False, "--scan-now", help="Run a scan immediately on start."),
) -> None:
    state = _get_state(ctx)
    orchestrator = state.orchestrator
    scheduler = state.scheduler
    settings = orchestrator.settings
    scheduler.apply_settings(settings)
    scheduler.start()
    if scan_now:
        scheduler.request_scan()
    console.print(
        f"Watching {len(orchestrator.sources)} source(s) every "
        f"{settings.check_interval_minutes} minute(s). Press Ctrl+C to stop.",
        style="cyan",
    )
    poll_seconds = orchestrator.global_config.settings_poll_seconds
    try:
        while True:
            time.sleep(poll_seconds)
            # pick up `settings set` run from another shell
            if orchestrator.reload_settings():
                console.print(
                    f"Settings changed: scanning every "
                    f"{orchestrator.settings.check_interval_minutes} minute(s).",
                    style="cyan",
                )
    except KeyboardInterrupt:
        console.print("Stopping…", style="dim")
    finally:
        scheduler.shutdown()
        state.delivery_pool.shutdown(wait=True)


# ----------------------------------------------------------------------
# jobs
# ----------------------------------------------------------------------
@jobs_app.command("list", help="Show detected jobs, most recent first.")
def jobs_list(
    ctx: typer.Context,
    new_only: bool = typer.Option(False, "--new-only", help="Only unseen postings."),
    limit: int = typer.Option(50, "--limit", min=1, help="Maximum rows to show."),
) -> None:
    state = _get_state(ctx)
    jobs = [job for job in state.orchestrator.jobs if job.is_new or not new_only]
    if not jobs:
        console.print("No jobs detected yet.", style="yellow")
        raise typer.Exit(code=0)
    console.print(_render_jobs_table(jobs[:limit]))


@jobs_app.command("clear", help="Forget every detected job.")
def jobs_clear(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    state.orchestrator.clear_jobs()
    console.print("Job history cleared.", style="green")


@jobs_app.command("mark-seen", help="Drop the 'new' marker from every job.")
def jobs_mark_seen(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    count = state.orchestrator.mark_all_seen()
    console.print(f"Marked {count} job(s) as seen.", style="green")


# ----------------------------------------------------------------------
# settings
# ----------------------------------------------------------------------
@settings_app.command("show", help="Print current settings.")
def settings_show(ctx: typer.Context) -> None:
    settings = _get_state(ctx).orchestrator.settings
    table = Table(box=box.MINIMAL, show_header=False)
    table.add_column("Setting", style="dim")
    table.add_column("Value", style="cyan")
    table.add_row("checkIntervalMinutes", str(settings.check_interval_minutes))
    table.add_row("enableBrowserNotifications", str(settings.enable_browser_notifications).lower())
    table.add_row("webhookUrl", settings.webhook_url or "-")
    console.print(table)


@settings_app.command("set", help="Change one or more settings.")
def settings_set(
    ctx: typer.Context,
    interval: Optional[int] = typer.Option(None, "--interval", min=1, help="Minutes between scans."),
    webhook: Optional[str] = typer.Option(None, "--webhook", help="Webhook URL for alerts."),
    no_webhook: bool = typer.Option(False, "--no-webhook", help="Remove the webhook."),
    browser_notifications: Optional[bool] = typer.Option(
        None,
        "--browser-notifications/--no-browser-notifications",
        help="Toggle local alerts.",
    ),
) -> None:
    state = _get_state(ctx)
    update: dict[str, object] = {}
    if interval is not None:
        update["check_interval_minutes"] = interval
    if no_webhook:
        update["webhook_url"] = None
    elif webhook is not None:
        update["webhook_url"] = webhook
    if browser_notifications is not None:
        update["enable_browser_notifications"] = browser_notifications
    if not update:
        console.print("Nothing to change.", style="yellow")
        raise typer.Exit(code=0)
    current = state.orchestrator.settings
    try:
        settings = MonitorSettings.model_validate({**current.model_dump(), **update})
    except ValidationError as exc:
        console.print(f"Invalid settings: {exc.errors()[0]['msg']}", style="red")
        raise typer.Exit(code=1) from exc
    state.orchestrator.update_settings(settings)
    console.print("Settings saved.", style="green")


# ----------------------------------------------------------------------
# logs
# ----------------------------------------------------------------------
@log_app.command("list", help="List available log files.")
def log_list() -> None:
    logs = list(available_source_logs())
    if not logs:
        console.print("No per-source logs yet.", style="yellow")
        raise typer.Exit(code=0)
    for path in logs:
        console.print(path.stem)


@log_app.command("show", help="Show the tail of the main log or of a source log.")
def log_show(
    name: Optional[str] = typer.Argument(None, help="Source log name; omit for the main log."),
    lines: int = typer.Option(50, "--lines", min=1, help="Number of lines."),
) -> None:
    paths = {path.stem: path for path in available_source_logs()}
    if name is None:
        path = main_log_path()
    elif name in paths:
        path = paths[name]
    else:
        console.print(f"No log named '{name}'.", style="red")
        raise typer.Exit(code=1)
    for line in tail_log(path, lines):
        console.print(line.rstrip("\n"), markup=False, highlight=False)


def cli() -> None:
    app()


__all__ = ["AppState", "app", "build_state", "cli"]
