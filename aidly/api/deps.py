from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession
from starlette import status

from ..core.config import Settings, get_settings
from ..core.security import verify_session
from ..db.database import get_session
from ..services.business_time import BusinessHoursCalculator
from ..services.report_execution import ReportExecutionService
from ..services.storage import LocalStorage

def _extract_token(request: Request) -> str | None:
    # Browser sessions use the cookie; jobs and scripts send a Bearer token
    token = request.cookies.get("session")
    if token:
        return token
    auth = request.headers.get("Authorization", "")
    scheme, _, credentials = auth.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None

async def current_user(request: Request) -> dict:
    token = _extract_token(request)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    data = verify_session(token)
    if not data or 'uid' not in data:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid session")
    return data

async def current_admin(user: dict = Depends(current_user)) -> dict:
    if user.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Admin only")
    return user

def get_storage(settings: Settings = Depends(get_settings)) -> LocalStorage:
    return LocalStorage(settings.storage_path)

def get_report_service(
    session: AsyncSession = Depends(get_session),
    storage: LocalStorage = Depends(get_storage),
    settings: Settings = Depends(get_settings),
) -> ReportExecutionService:
    return ReportExecutionService(session, storage, query_timeout_seconds=settings.query_timeout_seconds)

def get_business_hours(settings: Settings = Depends(get_settings)) -> BusinessHoursCalculator:
    return BusinessHoursCalculator(settings.business_hours_config())
