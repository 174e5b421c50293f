"""Async client for the admin schedule API"""

import logging
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)


class ScheduleApiError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def _error_message(body: Any, fallback: str) -> str:
    if isinstance(body, dict):
        message = body.get("error") or body.get("detail")
        if message:
            return message if isinstance(message, str) else str(message)
    return fallback


class ScheduleApiClient:
    """
    Thin wrapper over /api/admin/schedule.

    The caller owns the httpx.AsyncClient (base URL, auth header, transport).
    Every failure, including transport errors, surfaces as ScheduleApiError.
    """

    SCHEDULE_PATH = "/api/admin/schedule"

    def __init__(self, http: httpx.AsyncClient):
        self.http = http

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self.http.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"⚠️ Schedule API {method} {path} failed: {e}")
            raise ScheduleApiError(f"Network error: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.status_code >= 400:
            raise ScheduleApiError(
                _error_message(body, f"HTTP {response.status_code}"), response.status_code
            )
        if isinstance(body, dict) and body.get("error"):
            raise ScheduleApiError(_error_message(body, "Request failed"), response.status_code)
        return body

    async def _action(self, payload: dict, failure_message: str) -> dict:
        body = await self._request("POST", self.SCHEDULE_PATH, json=payload)
        result = (body or {}).get("data") or {}
        if not result.get("success"):
            raise ScheduleApiError(result.get("message") or failure_message)
        return result

    async def get_week_overview(self, week_start: Optional[str] = None) -> list[dict]:
        params = {"action": "get_week_overview"}
        if week_start:
            params["week_start"] = week_start
        body = await self._request("GET", self.SCHEDULE_PATH, params=params)
        return (body or {}).get("data") or []

    async def get_day_slots(self, date: str) -> list[dict]:
        params = {"action": "get_day_slots", "date": date}
        body = await self._request("GET", self.SCHEDULE_PATH, params=params)
        return (body or {}).get("data") or []

    async def toggle_working_day(self, date: str, is_working: bool) -> dict:
        return await self._action(
            {"action": "toggle_working_day", "date": date, "is_working": is_working},
            "Failed to toggle working day",
        )

    async def add_slot(
        self, slot_date: str, start_time: str, duration_minutes: int, max_bookings: int = 1
    ) -> dict:
        return await self._action(
            {
                "action": "add_slot",
                "slot_date": slot_date,
                "start_time": start_time,
                "duration_minutes": duration_minutes,
                "max_bookings": max_bookings,
            },
            "Failed to add slot",
        )

    async def delete_slot(self, slot_id: str) -> dict:
        return await self._action({"action": "delete_slot", "slot_id": slot_id}, "Failed to delete slot")

    async def check_updates(self, last_sync: int, week_start: Optional[str]) -> bool:
        body = await self._request(
            "POST",
            f"{self.SCHEDULE_PATH}/check-updates",
            json={"lastSync": last_sync, "weekStart": week_start},
        )
        return bool((body or {}).get("hasUpdates"))
