from fastapi import APIRouter, Depends

from .deps import current_user, get_business_hours
from ..schemas import BusinessHoursIn, BusinessHoursOut, BusinessHoursStatus
from ..services.business_time import BusinessHoursCalculator, WEEKDAY_MAP

router = APIRouter(prefix="/business-hours", tags=["business-hours"])

_DAY_NAMES = {v: k for k, v in WEEKDAY_MAP.items()}

@router.get("/status", response_model=BusinessHoursStatus)
async def business_hours_status(
    _=Depends(current_user),
    calc: BusinessHoursCalculator = Depends(get_business_hours),
):
    cfg = calc.config
    return BusinessHoursStatus(
        business_days=[_DAY_NAMES[d] for d in sorted(cfg.business_days)],
        business_hours_start=cfg.start.strftime("%H:%M"),
        business_hours_end=cfg.end.strftime("%H:%M"),
        timezone=cfg.timezone,
        is_business_hours=calc.is_business_hours(),
        next_business_hours_start=calc.next_business_hours_start(),
    )

@router.post("/calculate", response_model=BusinessHoursOut)
async def calculate_business_hours(
    req: BusinessHoursIn,
    _=Depends(current_user),
    calc: BusinessHoursCalculator = Depends(get_business_hours),
):
    return BusinessHoursOut(
        start=req.start,
        end=req.end,
        business_hours=calc.calculate_business_hours(req.start, req.end),
    )
