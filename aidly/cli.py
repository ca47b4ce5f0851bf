"""
AidlY analytics job runner.

Usage:
    aidly run-scheduled              Run scheduled reports that are due
    aidly run-scheduled --limit 5    Process at most 5 due reports
    aidly cleanup-exports            Delete export files past the retention window
"""

import asyncio
from typing import Optional

import typer

from .core.config import get_settings
from .core.logging import setup_logging
from .db.database import close_db, get_sessionmaker, init_db
from .services.report_execution import ReportExecutionService
from .services.scheduler import run_due_reports
from .services.storage import LocalStorage

app = typer.Typer(
    name="aidly",
    help="AidlY analytics job runner",
    no_args_is_help=True,
)


async def _run_scheduled(limit: int) -> None:
    settings = get_settings()
    try:
        await init_db()
        Session = get_sessionmaker()
        async with Session() as session:
            engine = ReportExecutionService(
                session,
                LocalStorage(settings.storage_path),
                query_timeout_seconds=settings.query_timeout_seconds,
            )
            summary = await run_due_reports(
                session,
                engine,
                limit=limit,
                max_failures=settings.schedule_max_failures,
            )
    finally:
        await close_db()
    if summary.due == 0:
        typer.echo("No scheduled reports are due.")
        return
    typer.echo(f"Processed {summary.due} scheduled report(s): {summary.succeeded} succeeded, {summary.failed} failed.")


async def _cleanup(retention_days: int) -> int:
    settings = get_settings()
    try:
        await init_db()
        Session = get_sessionmaker()
        async with Session() as session:
            service = ReportExecutionService(session, LocalStorage(settings.storage_path))
            return await service.cleanup_old_executions(retention_days)
    finally:
        await close_db()


@app.command("run-scheduled")
def run_scheduled(
    limit: Optional[int] = typer.Option(None, "--limit", help="Maximum number of reports to process"),
) -> None:
    """Run due scheduled reports."""
    setup_logging()
    asyncio.run(_run_scheduled(limit or get_settings().scheduled_reports_limit))


@app.command("cleanup-exports")
def cleanup_exports(
    retention_days: Optional[int] = typer.Option(None, "--retention-days", help="Keep exports newer than this"),
) -> None:
    """Delete report export files older than the retention window."""
    setup_logging()
    deleted = asyncio.run(_cleanup(retention_days or get_settings().report_retention_days))
    typer.echo(f"Deleted {deleted} export file(s).")


if __name__ == "__main__":
    app()
