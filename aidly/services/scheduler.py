from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

from apscheduler.triggers.cron import CronTrigger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.logging import get_logger
from ..db.models import ReportExecution, ScheduledReport
from ..util.timestamps import to_naive_utc, utc_now
from .business_time import parse_hhmm
from .report_execution import ReportExecutionService

logger = get_logger(__name__)

RETRY_DELAY = timedelta(hours=1)

CRON_WEEKDAYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")

# Shortest length of each month (February outside leap years)
SHORTEST_MONTH_LENGTH = {1: 31, 2: 28, 3: 31, 4: 30, 5: 31, 6: 30, 7: 31, 8: 31, 9: 30, 10: 31, 11: 30, 12: 31}

@dataclass
class ScheduleRunSummary:
    due: int = 0
    succeeded: int = 0
    failed: int = 0

def _cron_fields(schedule: ScheduledReport, now: datetime) -> List[Dict[str, Any]]:
    """CronTrigger arguments for a schedule; a monthly day past the month end needs a second trigger."""
    if schedule.time_of_day:
        t = parse_hhmm(schedule.time_of_day)
        clock: Dict[str, Any] = {"hour": t.hour, "minute": t.minute, "second": 0}
    else:
        clock = {"hour": now.hour, "minute": now.minute, "second": now.second}

    if schedule.frequency == "hourly":
        return [{"minute": now.minute, "second": now.second}]
    if schedule.frequency == "weekly":
        weekday = now.weekday() if schedule.day_of_week is None else schedule.day_of_week
        return [dict(clock, day_of_week=CRON_WEEKDAYS[weekday])]
    if schedule.frequency == "monthly":
        day = schedule.day_of_month or now.day
        fields = [dict(clock, day=day)]
        short = [str(m) for m, length in SHORTEST_MONTH_LENGTH.items() if length < day]
        if short:
            # Months without that day run on their last day
            fields.append(dict(clock, day="last", month=",".join(short)))
        return fields
    # daily, and anything unrecognised
    return [clock]

def calculate_next_run(schedule: ScheduledReport, now: Optional[datetime] = None) -> datetime:
    """Next fire time of the schedule strictly after `now`, as naive UTC.

    `now` is naive UTC; the cron fields are matched in the schedule's timezone.
    Without a time_of_day the schedule keeps the clock time of `now`.
    """
    tz = ZoneInfo(schedule.timezone or "UTC")
    now = (now or utc_now()).replace(tzinfo=timezone.utc).astimezone(tz)
    after = now + timedelta(microseconds=1)

    fire_times = [
        CronTrigger(timezone=tz, start_time=after, **fields).next()
        for fields in _cron_fields(schedule, now)
    ]
    return to_naive_utc(min(t for t in fire_times if t is not None))

def mark_run(schedule: ScheduledReport, now: Optional[datetime] = None) -> None:
    now = now or utc_now()
    schedule.last_run_at = now
    schedule.next_run_at = calculate_next_run(schedule, now)
    schedule.failure_count = 0
    schedule.run_count = (schedule.run_count or 0) + 1

def mark_failed(schedule: ScheduledReport, max_failures: int = 5, now: Optional[datetime] = None) -> None:
    now = now or utc_now()
    schedule.failure_count = (schedule.failure_count or 0) + 1
    if schedule.failure_count >= max_failures:
        schedule.is_active = False
        logger.critical(
            f"Scheduled report {schedule.id} (report {schedule.report_id}) disabled "
            f"after {schedule.failure_count} consecutive failures"
        )
    else:
        schedule.next_run_at = now + RETRY_DELAY

async def run_due_reports(session: AsyncSession, engine: ReportExecutionService, limit: int = 10,
                          max_failures: int = 5, now: Optional[datetime] = None) -> ScheduleRunSummary:
    """Run every active schedule whose next_run_at has passed."""
    now = now or utc_now()
    res = await session.execute(
        select(ScheduledReport.id)
        .where(ScheduledReport.is_active.is_(True), ScheduledReport.next_run_at <= now)
        .order_by(ScheduledReport.next_run_at)
        .limit(limit)
    )
    schedule_ids = list(res.scalars().all())
    summary = ScheduleRunSummary(due=len(schedule_ids))
    if not schedule_ids:
        logger.info("No scheduled reports are due")
        return summary

    logger.info(f"Found {len(schedule_ids)} due scheduled report(s)")
    for schedule_id in schedule_ids:
        # A failed run rolls the session back, so every schedule is loaded fresh
        res = await session.execute(
            select(ScheduledReport)
            .options(selectinload(ScheduledReport.report))
            .where(ScheduledReport.id == schedule_id)
            .execution_options(populate_existing=True)
        )
        schedule = res.scalar_one()
        report = schedule.report
        try:
            execution = await engine.execute_report_with_export(
                report,
                parameters=[],
                format=schedule.export_format or report.output_format or "csv",
                execution_type=ReportExecution.TYPE_SCHEDULED,
                user_id=None,
            )
        except Exception as e:
            logger.error(f"Scheduled report {schedule_id} failed: {e}")
            await session.refresh(schedule)
            mark_failed(schedule, max_failures=max_failures, now=now)
            summary.failed += 1
        else:
            mark_run(schedule, now)
            summary.succeeded += 1
            logger.info(f"Scheduled report {schedule_id} completed as execution {execution.id}")
        await session.commit()

    return summary
