"""In-process stand-in for /api/admin/schedule, served through httpx.MockTransport"""

import json
from datetime import date, datetime, timedelta

import httpx


def _end_time(start: str, minutes: int) -> str:
    fmt = "%H:%M:%S" if start.count(":") == 2 else "%H:%M"
    return (datetime.strptime(start, fmt) + timedelta(minutes=minutes)).strftime("%H:%M:%S")


class FakeScheduleServer:
    def __init__(self, week_start: date):
        self.week_start = week_start
        self.days = {}
        for offset in range(7):
            day = week_start + timedelta(days=offset)
            working = offset < 5
            self.days[day.isoformat()] = {
                "day_date": day.isoformat(),
                "day_name": day.strftime("%A"),
                "is_working_day": working,
                "total_slots": 2 if working else 0,
                "available_slots": 1 if working else 0,
                "booked_slots": 1 if working else 0,
            }
        self.slots = {}
        self.next_id = 1
        self.fail_actions = set()
        self.fail_loads = 0
        self.fail_loads_after_action = False
        self.has_updates = False
        self.requests = []
        self.on_action = None

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def add_slot(self, day: str, start: str, minutes: int = 90, **fields) -> dict:
        slot = {
            "slot_id": f"srv_{self.next_id}",
            "slot_date": day,
            "start_time": start,
            "end_time": _end_time(start, minutes),
            "duration_minutes": minutes,
            "max_bookings": 1,
            "current_bookings": 0,
            "is_available": True,
            "is_blocked": False,
            "block_reason": None,
        }
        slot.update(fields)
        self.next_id += 1
        self.slots.setdefault(day, []).append(slot)
        self.slots[day].sort(key=lambda s: s["start_time"])
        return slot

    def count(self, method: str, marker: str) -> int:
        return sum(
            1 for r in self.requests if r.method == method and marker in (str(r.url) + r.content.decode())
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.method == "GET":
            if self.fail_loads:
                self.fail_loads -= 1
                return httpx.Response(500, json={"error": "Database unavailable"})
            if request.url.params["action"] == "get_week_overview":
                return httpx.Response(200, json={"data": list(self.days.values())})
            return httpx.Response(200, json={"data": list(self.slots.get(request.url.params["date"], []))})

        body = json.loads(request.content)
        if request.url.path.endswith("/check-updates"):
            return httpx.Response(200, json={"hasUpdates": self.has_updates, "serverTime": 0})

        if self.on_action:
            self.on_action(body)

        action = body["action"]
        if action in self.fail_actions:
            return httpx.Response(409, json={"error": f"{action} rejected"})

        result = {"success": True, "message": "ok"}
        if action == "toggle_working_day":
            day = self.days[body["date"]]
            day["is_working_day"] = body["is_working"]
            if not body["is_working"]:
                day.update(total_slots=0, available_slots=0, booked_slots=0)
        elif action == "add_slot":
            slot = self.add_slot(body["slot_date"], body["start_time"], body["duration_minutes"],
                                 max_bookings=body["max_bookings"])
            result["slot_id"] = slot["slot_id"]
        elif action == "delete_slot":
            for day_slots in self.slots.values():
                day_slots[:] = [s for s in day_slots if s["slot_id"] != body["slot_id"]]

        if self.fail_loads_after_action:
            self.fail_loads = 2
        return httpx.Response(200, json={"data": result})
