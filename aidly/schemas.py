from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Literal, Any
from datetime import datetime

class ExecuteReportIn(BaseModel):
    parameters: List[Any] = Field(default_factory=list)

class ExportReportIn(BaseModel):
    parameters: List[Any] = Field(default_factory=list)
    format: Optional[Literal["csv", "json"]] = None  # defaults to the report's output_format

class ExecutionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    report_id: str
    executed_by: Optional[str] = None
    execution_type: str
    status: str
    record_count: Optional[int] = None
    execution_time_ms: Optional[int] = None
    execution_time_seconds: Optional[float] = None
    file_path: Optional[str] = None
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime

class ExecutionStats(BaseModel):
    total_executions: int = 0
    successful_executions: int = 0
    failed_executions: int = 0
    success_rate: float = 0
    avg_execution_time_ms: Optional[float] = None
    avg_record_count: Optional[float] = None
    last_execution_at: Optional[datetime] = None
    last_successful_execution_at: Optional[datetime] = None
    period_days: int = 30

class BusinessHoursIn(BaseModel):
    start: datetime
    end: datetime

class BusinessHoursOut(BaseModel):
    start: datetime
    end: datetime
    business_hours: float

class BusinessHoursStatus(BaseModel):
    business_days: List[str]
    business_hours_start: str
    business_hours_end: str
    timezone: str
    is_business_hours: bool
    next_business_hours_start: datetime

class RawEmailMessage(BaseModel):
    subject: str = ""
    body: str = ""
    is_html: bool = False
    from_address: str = ""
    attachment_count: int = 0

class TicketContent(BaseModel):
    title: str
    description: str
    ticket_number: Optional[str] = None
    normalized_subject: str = ""
    requester_name: str = ""
