"""Schedule domain schemas - Pydantic models for validation"""

import datetime as dt
from datetime import date
from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import parse_clock_time


class ScheduleAction(str, Enum):
    TOGGLE_WORKING_DAY = "toggle_working_day"
    ADD_SLOT = "add_slot"
    DELETE_SLOT = "delete_slot"
    BLOCK_SLOT = "block_slot"


class ScheduleQuery(str, Enum):
    GET_WEEK_OVERVIEW = "get_week_overview"
    GET_DAY_SLOTS = "get_day_slots"


class DayOverview(BaseModel):
    day_date: date
    day_name: str
    is_working_day: bool
    total_slots: int
    available_slots: int
    booked_slots: int


class DaySlot(BaseModel):
    slot_id: str
    slot_date: date
    start_time: str
    end_time: str
    duration_minutes: int
    max_bookings: int
    current_bookings: int
    is_available: bool
    is_blocked: bool
    block_reason: Optional[str] = None


# POST /api/admin/schedule bodies, discriminated by "action"


class ToggleWorkingDayRequest(BaseModel):
    action: Literal["toggle_working_day"]
    date: dt.date
    is_working: bool


class AddSlotRequest(BaseModel):
    action: Literal["add_slot"]
    slot_date: date
    start_time: str
    duration_minutes: int = Field(90, gt=0, le=12 * 60)
    max_bookings: int = Field(1, ge=1, le=20)

    @field_validator("start_time")
    @classmethod
    def validate_start_time(cls, v):
        return parse_clock_time(v).strftime("%H:%M:%S")


class DeleteSlotRequest(BaseModel):
    action: Literal["delete_slot"]
    slot_id: str = Field(..., min_length=1)


class BlockSlotRequest(BaseModel):
    action: Literal["block_slot"]
    slot_id: str = Field(..., min_length=1)
    is_blocked: bool = True


# Discriminated on "action" at the endpoint
ScheduleActionRequest = Union[
    ToggleWorkingDayRequest, AddSlotRequest, DeleteSlotRequest, BlockSlotRequest
]


class ActionResult(BaseModel):
    success: bool = True
    message: str
    slot_id: Optional[str] = None
    affected_slots: Optional[int] = None


class CheckUpdatesRequest(BaseModel):
    lastSync: int = Field(0, ge=0, description="Client's last sync time, epoch milliseconds")
    weekStart: Optional[date] = None


class CheckUpdatesResponse(BaseModel):
    hasUpdates: bool
    serverTime: int
