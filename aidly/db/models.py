from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, Integer, Boolean, DateTime, ForeignKey, Text, JSON
from datetime import datetime
import uuid

from .database import Base
from ..util.timestamps import utc_now

def new_uuid() -> str:
    return str(uuid.uuid4())

class InvalidStatusTransition(Exception):
    pass

class Report(Base):
    __tablename__ = "reports"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    report_type: Mapped[str] = mapped_column(String(32), default="custom")  # dashboard|performance|satisfaction|sla|activity|custom
    query_sql: Mapped[str] = mapped_column(Text)
    columns: Mapped[list] = mapped_column(JSON, default=list)
    output_format: Mapped[str] = mapped_column(String(8), default="csv")  # csv|json
    created_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    last_executed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, onupdate=utc_now)

    executions: Mapped[list["ReportExecution"]] = relationship(back_populates="report", cascade="all, delete-orphan")
    schedule: Mapped["ScheduledReport | None"] = relationship(back_populates="report", uselist=False, cascade="all, delete-orphan")

class ReportExecution(Base):
    __tablename__ = "report_executions"

    TYPE_MANUAL = "manual"
    TYPE_SCHEDULED = "scheduled"
    TYPE_EXPORT = "export"

    STATUS_PENDING = "pending"
    STATUS_RUNNING = "running"
    STATUS_COMPLETED = "completed"
    STATUS_FAILED = "failed"

    # Statuses only move forward; completed and failed are terminal.
    TRANSITIONS = {
        STATUS_PENDING: {STATUS_RUNNING, STATUS_FAILED},
        STATUS_RUNNING: {STATUS_COMPLETED, STATUS_FAILED},
    }

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    report_id: Mapped[str] = mapped_column(ForeignKey("reports.id", ondelete="CASCADE"), index=True)
    executed_by: Mapped[str | None] = mapped_column(String(36), nullable=True)  # null for scheduled runs
    execution_type: Mapped[str] = mapped_column(String(16), default=TYPE_MANUAL)
    status: Mapped[str] = mapped_column(String(16), default=STATUS_PENDING)
    record_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    execution_time_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    file_path: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, index=True)

    report: Mapped["Report"] = relationship(back_populates="executions")

    def _transition(self, status: str) -> None:
        current = self.status or self.STATUS_PENDING
        if status not in self.TRANSITIONS.get(current, set()):
            raise InvalidStatusTransition(f"Execution {self.id} cannot move from {current} to {status}")
        self.status = status

    def start(self) -> None:
        self._transition(self.STATUS_RUNNING)
        self.started_at = utc_now()

    def mark_completed(self, record_count: int, execution_time_ms: int, file_path: str | None = None) -> None:
        self._transition(self.STATUS_COMPLETED)
        self.record_count = record_count
        self.execution_time_ms = execution_time_ms
        self.file_path = file_path
        self.completed_at = utc_now()

    def mark_failed(self, error_message: str, execution_time_ms: int) -> None:
        self._transition(self.STATUS_FAILED)
        self.error_message = error_message
        self.execution_time_ms = execution_time_ms
        self.completed_at = utc_now()

    @property
    def is_successful(self) -> bool:
        return self.status == self.STATUS_COMPLETED

    @property
    def has_file(self) -> bool:
        return bool(self.file_path)

    @property
    def execution_time_seconds(self) -> float | None:
        return round(self.execution_time_ms / 1000, 2) if self.execution_time_ms is not None else None

class ScheduledReport(Base):
    __tablename__ = "scheduled_reports"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    report_id: Mapped[str] = mapped_column(ForeignKey("reports.id", ondelete="CASCADE"), unique=True)
    frequency: Mapped[str] = mapped_column(String(16), default="daily")  # hourly|daily|weekly|monthly
    time_of_day: Mapped[str | None] = mapped_column(String(5), nullable=True)  # HH:MM in `timezone`
    day_of_week: Mapped[int | None] = mapped_column(Integer, nullable=True)  # 0=Mon..6=Sun
    day_of_month: Mapped[int | None] = mapped_column(Integer, nullable=True)
    timezone: Mapped[str] = mapped_column(String(64), default="UTC")
    export_format: Mapped[str | None] = mapped_column(String(8), nullable=True)  # falls back to report.output_format
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    last_run_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    next_run_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, index=True)
    failure_count: Mapped[int] = mapped_column(Integer, default=0)
    run_count: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)

    report: Mapped["Report"] = relationship(back_populates="schedule")
