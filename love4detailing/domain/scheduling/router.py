"""Schedule router - admin endpoints backing the schedule manager"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from ...auth import require_admin
from ...database import get_db
from ...models import User
from ...shared.errors import ScheduleError
from .schemas import CheckUpdatesRequest, ScheduleActionRequest, ScheduleQuery
from .service import ScheduleService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/schedule", tags=["Schedule"])


def get_schedule_service(db: Session = Depends(get_db)) -> ScheduleService:
    """Dependency injection for ScheduleService"""
    return ScheduleService(db)


@router.get("")
async def get_schedule(
    action: ScheduleQuery = Query(...),
    week_start: Optional[date] = Query(None),
    date_: Optional[date] = Query(None, alias="date"),
    _admin: User = Depends(require_admin),
    service: ScheduleService = Depends(get_schedule_service),
):
    """Week overview or one day's slots, selected by `action`"""
    if action == ScheduleQuery.GET_WEEK_OVERVIEW:
        days = service.get_week_overview(week_start)
        return {"data": [d.model_dump(mode="json") for d in days]}

    if date_ is None:
        raise ScheduleError("date is required for get_day_slots")
    slots = service.get_day_slots(date_)
    return {"data": [s.model_dump(mode="json") for s in slots]}


@router.post("")
async def schedule_action(
    request: ScheduleActionRequest = Body(..., discriminator="action"),
    admin: User = Depends(require_admin),
    service: ScheduleService = Depends(get_schedule_service),
):
    """Apply one schedule mutation; the body's `action` selects the handler"""
    result = service.handle_action(request, admin)
    return {"data": result.model_dump(exclude_none=True)}


@router.post("/check-updates")
async def check_updates(
    data: CheckUpdatesRequest,
    _admin: User = Depends(require_admin),
    service: ScheduleService = Depends(get_schedule_service),
):
    """Has anything in the week changed since the caller's last sync?"""
    return service.check_updates(data.lastSync, data.weekStart).model_dump()
