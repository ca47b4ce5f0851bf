from __future__ import annotations
from datetime import timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple
import re
import time

from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.logging import get_logger
from ..db.models import Report, ReportExecution
from ..schemas import ExecutionStats
from ..util.timestamps import utc_now
from .export_formats import render_csv, render_json
from .storage import LocalStorage

logger = get_logger(__name__)

EXPORT_DIR = "exports"
STATS_PERIOD_DAYS = 30

_SELECT_ONLY = re.compile(r"^SELECT\s+", re.IGNORECASE)
_FORBIDDEN = re.compile(r"\b(DROP|DELETE|UPDATE|INSERT|ALTER|CREATE)\b", re.IGNORECASE)
_PLACEHOLDER = re.compile(r"\$(\d+)")

# Dialects already warned about running without a statement timeout
_TIMEOUT_SKIPPED: set = set()

class ReportQueryError(Exception):
    pass

class ReportExportError(Exception):
    pass

def validate_query(sql: str) -> str:
    """Best-effort read-only check. This is a keyword filter, not a SQL parser."""
    sql = (sql or "").strip()
    if not _SELECT_ONLY.match(sql) or _FORBIDDEN.search(sql):
        raise ReportQueryError("Only SELECT queries are allowed")
    return sql

def bind_placeholders(sql: str, parameters: Sequence[Any]) -> Tuple[str, Dict[str, Any]]:
    """Rewrite $1, $2, ... into driver bind parameters (:p1, :p2, ...)."""
    binds: Dict[str, Any] = {}

    def _repl(m: re.Match) -> str:
        idx = int(m.group(1))
        if idx < 1 or idx > len(parameters):
            raise ReportQueryError(f"No value supplied for placeholder ${idx}")
        name = f"p{idx}"
        binds[name] = parameters[idx - 1]
        return f":{name}"

    return _PLACEHOLDER.sub(_repl, sql), binds

def _elapsed_ms(started: float) -> int:
    return round((time.monotonic() - started) * 1000)

class ReportExecutionService:
    """Runs admin-authored read-only report queries and records each run as a ReportExecution."""

    def __init__(self, session: AsyncSession, storage: LocalStorage, query_timeout_seconds: int = 30):
        self.session = session
        self.storage = storage
        self.query_timeout_seconds = query_timeout_seconds

    async def execute_report(self, report: Report, parameters: Optional[Sequence[Any]] = None,
                             execution_type: str = ReportExecution.TYPE_MANUAL,
                             user_id: Optional[str] = None) -> ReportExecution:
        return await self._run(report, parameters or [], execution_type, user_id, export_format=None)

    async def execute_report_with_export(self, report: Report, parameters: Optional[Sequence[Any]] = None,
                                         format: str = "csv",
                                         execution_type: str = ReportExecution.TYPE_MANUAL,
                                         user_id: Optional[str] = None) -> ReportExecution:
        return await self._run(report, parameters or [], execution_type, user_id, export_format=format or "csv")

    async def _run(self, report: Report, parameters: Sequence[Any], execution_type: str,
                   user_id: Optional[str], export_format: Optional[str]) -> ReportExecution:
        started = time.monotonic()
        report_id = report.id

        execution = ReportExecution(
            report_id=report_id,
            executed_by=user_id,
            execution_type=execution_type,
            status=ReportExecution.STATUS_PENDING,
        )
        execution.start()
        self.session.add(execution)
        # Committed up front so a running execution is visible to other workers
        await self.session.commit()
        logger.info(f"Report {report_id} execution {execution.id} started ({execution_type})")

        try:
            rows = await self.run_query(report.query_sql, parameters)
            file_path = None
            if export_format is not None:
                file_path = self._export(rows, report.columns or [], export_format, execution)
        except Exception as e:
            await self._fail(execution, str(e), _elapsed_ms(started))
            raise

        execution.mark_completed(record_count=len(rows), execution_time_ms=_elapsed_ms(started), file_path=file_path)
        report.last_executed_at = utc_now()
        await self.session.commit()
        logger.info(
            f"Report {report_id} execution {execution.id} completed: "
            f"{execution.record_count} rows in {execution.execution_time_ms}ms"
        )
        return execution

    async def _fail(self, execution: ReportExecution, message: str, elapsed_ms: int) -> None:
        await self.session.rollback()
        await self.session.refresh(execution)
        execution.mark_failed(message, elapsed_ms)
        await self.session.commit()
        logger.error(f"Report {execution.report_id} execution {execution.id} failed: {message}")

    async def run_query(self, sql: str, parameters: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        sql = validate_query(sql)
        sql, binds = bind_placeholders(sql, parameters)
        await self._apply_statement_timeout()
        try:
            res = await self.session.execute(text(sql), binds)
            return [dict(row._mapping) for row in res]
        except SQLAlchemyError as e:
            raise ReportQueryError(f"Query execution failed: {e}") from e

    async def _apply_statement_timeout(self) -> None:
        dialect = self.session.get_bind().dialect.name
        if dialect != "postgresql":
            if dialect not in _TIMEOUT_SKIPPED:
                _TIMEOUT_SKIPPED.add(dialect)
                logger.warning(f"Statement timeout is not supported on {dialect}; report queries run without a time limit")
            return
        timeout_ms = int(self.query_timeout_seconds) * 1000
        await self.session.execute(text(f"SET LOCAL statement_timeout = {timeout_ms}"))

    def _export(self, rows: List[Dict[str, Any]], columns: List[str], format: str, execution: ReportExecution) -> str:
        if not rows:
            raise ReportExportError("No data to export")
        format = format.lower()
        if format == "json":
            content = render_json(rows)
        else:
            format = "csv"
            content = render_csv(rows, columns)
        timestamp = utc_now().strftime("%Y-%m-%d_%H-%M-%S")
        path = f"{EXPORT_DIR}/report_{execution.id}_{timestamp}.{format}"
        return self.storage.put(path, content)

    async def get_execution_stats(self, report: Report) -> ExecutionStats:
        since = utc_now() - timedelta(days=STATS_PERIOD_DAYS)
        res = await self.session.execute(
            select(ReportExecution).where(
                ReportExecution.report_id == report.id,
                ReportExecution.created_at >= since,
            )
        )
        executions = res.scalars().all()
        successful = [e for e in executions if e.is_successful]
        failed = [e for e in executions if e.status == ReportExecution.STATUS_FAILED]

        def _avg(values: List[Optional[int]]) -> Optional[float]:
            values = [v for v in values if v is not None]
            return round(sum(values) / len(values), 2) if values else None

        return ExecutionStats(
            total_executions=len(executions),
            successful_executions=len(successful),
            failed_executions=len(failed),
            success_rate=round(len(successful) / len(executions) * 100, 2) if executions else 0,
            avg_execution_time_ms=_avg([e.execution_time_ms for e in successful]),
            avg_record_count=_avg([e.record_count for e in successful]),
            last_execution_at=max((e.created_at for e in executions), default=None),
            last_successful_execution_at=max((e.created_at for e in successful), default=None),
            period_days=STATS_PERIOD_DAYS,
        )

    async def cleanup_old_executions(self, retention_days: int = 90) -> int:
        """Delete export files of executions older than the retention window.

        A file that cannot be removed is logged and left for the next run.
        """
        cutoff = utc_now() - timedelta(days=retention_days)
        res = await self.session.execute(
            select(ReportExecution).where(
                ReportExecution.created_at < cutoff,
                ReportExecution.file_path.is_not(None),
            )
        )
        deleted = 0
        for execution in res.scalars().all():
            try:
                if self.storage.exists(execution.file_path):
                    self.storage.delete(execution.file_path)
            except (OSError, ValueError) as e:
                logger.warning(f"Failed to cleanup execution file {execution.file_path}: {e}")
                continue
            execution.file_path = None
            deleted += 1
        await self.session.commit()
        logger.info(f"Cleaned up {deleted} export file(s) older than {retention_days} days")
        return deleted
