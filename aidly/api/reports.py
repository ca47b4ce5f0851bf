from __future__ import annotations
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import FileResponse
from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import Settings, get_settings
from .deps import current_admin, get_report_service, get_storage
from ..db.database import get_session
from ..db.models import Report, ReportExecution
from ..schemas import ExecuteReportIn, ExportReportIn, ExecutionOut, ExecutionStats
from ..services.report_execution import ReportExecutionService, ReportExportError, ReportQueryError
from ..services.storage import LocalStorage

router = APIRouter(prefix="/reports", tags=["reports"])

async def _get_report(session: AsyncSession, report_id: str) -> Report:
    res = await session.execute(select(Report).where(Report.id == report_id))
    r = res.scalar_one_or_none()
    if not r:
        raise HTTPException(status_code=404, detail="Report not found")
    return r

@router.post("/{report_id}/execute", response_model=ExecutionOut)
async def execute_report(
    report_id: str,
    req: ExecuteReportIn,
    user=Depends(current_admin),
    session: AsyncSession = Depends(get_session),
    service: ReportExecutionService = Depends(get_report_service),
):
    report = await _get_report(session, report_id)
    try:
        execution = await service.execute_report(report, req.parameters, ReportExecution.TYPE_MANUAL, str(user["uid"]))
    except ReportQueryError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return ExecutionOut.model_validate(execution)

@router.post("/{report_id}/export", response_model=ExecutionOut)
async def export_report(
    report_id: str,
    req: ExportReportIn,
    user=Depends(current_admin),
    session: AsyncSession = Depends(get_session),
    service: ReportExecutionService = Depends(get_report_service),
):
    report = await _get_report(session, report_id)
    try:
        execution = await service.execute_report_with_export(
            report,
            req.parameters,
            format=req.format or report.output_format or "csv",
            execution_type=ReportExecution.TYPE_EXPORT,
            user_id=str(user["uid"]),
        )
    except (ReportQueryError, ReportExportError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    return ExecutionOut.model_validate(execution)

@router.get("/{report_id}/stats", response_model=ExecutionStats)
async def report_stats(
    report_id: str,
    _=Depends(current_admin),
    session: AsyncSession = Depends(get_session),
    service: ReportExecutionService = Depends(get_report_service),
):
    report = await _get_report(session, report_id)
    return await service.get_execution_stats(report)

@router.get("/executions/{execution_id}/download")
async def download_export(
    execution_id: str,
    _=Depends(current_admin),
    session: AsyncSession = Depends(get_session),
    storage: LocalStorage = Depends(get_storage),
):
    res = await session.execute(select(ReportExecution).where(ReportExecution.id == execution_id))
    execution = res.scalar_one_or_none()
    if not execution or not execution.has_file:
        raise HTTPException(status_code=404, detail="Execution or export file not found")
    if not storage.exists(execution.file_path):
        raise HTTPException(status_code=404, detail="Export file missing on disk")
    p = storage.full_path(execution.file_path)
    media_type = "application/json" if p.suffix == ".json" else "text/csv"
    return FileResponse(path=str(p), filename=p.name, media_type=media_type)

@router.post("/executions/cleanup")
async def cleanup_exports(
    retention_days: Optional[int] = Query(default=None, ge=1),
    _=Depends(current_admin),
    service: ReportExecutionService = Depends(get_report_service),
    settings: Settings = Depends(get_settings),
):
    deleted = await service.cleanup_old_executions(retention_days or settings.report_retention_days)
    return {"ok": True, "deleted": deleted}
