import unittest
import uuid
from datetime import date, time, timedelta
from unittest import mock

from love4detailing.domain.bookings.schemas import BookingResponse
from love4detailing.models import BLOCK_REASON_FULLY_BOOKED, BLOCK_REASON_NON_WORKING_DAY, AvailableSlot, Booking, User

from .support import ApiTestCase, add_service, add_slot, next_weekday


class BookingLifecycleTestCase(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.service_id = add_service(self.db, {"medium": 7500}).id
        self.slot_date = next_weekday(3)
        self.slot_id = add_slot(self.db, self.slot_date).id

    def book(self, email="jane@example.com", slot_id=None):
        response = self.client.post(
            "/api/bookings/enhanced/create",
            json={
                "bookingData": {
                    "customer_email": email,
                    "customer_name": "Jane Smith",
                    "slot_id": slot_id or self.slot_id,
                    "service_id": self.service_id,
                    "vehicle_size": "medium",
                }
            },
        )
        self.assertEqual(response.status_code, 201)
        return response.json()["data"]["booking_id"]

    def cancel(self, booking_id, reason="Car sold"):
        return self.client.post(f"/api/bookings/{booking_id}/cancel", json={"reason": reason})

    def set_status(self, booking_id, status, reason=None):
        body = {"status": status}
        if reason:
            body["reason"] = reason
        return self.client.patch(f"/api/admin/bookings/{booking_id}/status", json=body)

    def available(self, day):
        response = self.client.get("/api/bookings/available-slots", params={"date": day.isoformat()})
        self.assertEqual(response.status_code, 200)
        return response.json()["data"]


class CancelBookingTests(BookingLifecycleTestCase):
    def test_owner_cancels_and_slot_reopens(self):
        booking_id = self.book()
        self.current_user_id = self.customer_id

        response = self.cancel(booking_id)

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["status"], "cancelled")
        self.assertEqual(body["cancellation_reason"], "Car sold")
        self.assertIsNotNone(body["cancelled_at"])

        slot = self.fresh(AvailableSlot, self.slot_id)
        self.assertEqual(slot.current_bookings, 0)
        self.assertFalse(slot.is_blocked)
        self.assertIsNone(slot.block_reason)

    def test_released_slot_can_be_booked_again(self):
        booking_id = self.book()
        self.cancel(booking_id)

        self.book(email="someone@example.com")

        self.assertEqual(self.fresh(AvailableSlot, self.slot_id).current_bookings, 1)

    def test_cancelling_twice_is_rejected(self):
        booking_id = self.book()
        self.cancel(booking_id)

        response = self.cancel(booking_id)

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Booking is already cancelled")
        self.assertEqual(self.fresh(AvailableSlot, self.slot_id).current_bookings, 0)

    def test_other_customer_sees_not_found(self):
        booking_id = self.book()
        stranger = User(id=str(uuid.uuid4()), email="stranger@example.com")
        self.db.add(stranger)
        self.db.commit()
        self.current_user_id = stranger.id

        response = self.cancel(booking_id)

        self.assertEqual(response.status_code, 404)
        self.assertEqual(self.fresh(Booking, booking_id).status, "confirmed")

    def test_reason_is_required(self):
        booking_id = self.book()
        response = self.cancel(booking_id, reason="   ")
        self.assertEqual(response.status_code, 422)


class StatusTransitionTests(BookingLifecycleTestCase):
    def test_confirmed_booking_moves_to_completed(self):
        booking_id = self.book()

        self.assertEqual(self.set_status(booking_id, "in_progress").status_code, 200)
        response = self.set_status(booking_id, "completed")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "completed")
        self.assertIsNotNone(response.json()["completed_at"])

    def test_skipping_a_step_is_rejected(self):
        booking_id = self.book()

        response = self.set_status(booking_id, "completed")

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["error"], "Invalid status transition")

    def test_completed_booking_cannot_be_cancelled(self):
        booking_id = self.book()
        self.set_status(booking_id, "in_progress")
        self.set_status(booking_id, "completed")

        response = self.set_status(booking_id, "cancelled")

        self.assertEqual(response.status_code, 409)

    def test_admin_cancellation_releases_capacity(self):
        booking_id = self.book()

        response = self.set_status(booking_id, "cancelled", reason="Weather")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["cancellation_reason"], "Weather")
        self.assertEqual(self.fresh(AvailableSlot, self.slot_id).current_bookings, 0)

    def test_unknown_status_value(self):
        booking_id = self.book()
        self.assertEqual(self.set_status(booking_id, "archived").status_code, 422)

    def test_unknown_booking(self):
        response = self.set_status("missing", "confirmed")
        self.assertEqual(response.status_code, 404)

    def test_customers_cannot_change_status(self):
        booking_id = self.book()
        self.current_user_id = self.customer_id
        self.assertEqual(self.set_status(booking_id, "in_progress").status_code, 403)


class AvailableSlotsTests(BookingLifecycleTestCase):
    def test_lists_open_slots_with_spaces_left(self):
        add_slot(self.db, self.slot_date, time(13, 0), time(14, 30), max_bookings=3, current_bookings=1)

        slots = self.available(self.slot_date)

        self.assertEqual([s["start_time"] for s in slots], ["10:00:00", "13:00:00"])
        self.assertEqual([s["spaces_left"] for s in slots], [1, 2])

    def test_booked_slot_disappears(self):
        self.book()
        self.assertEqual(self.available(self.slot_date), [])

    def test_past_dates_have_no_slots(self):
        yesterday = date.today() - timedelta(days=1)
        add_slot(self.db, yesterday)
        self.assertEqual(self.available(yesterday), [])


class NonWorkingDayCapacityTests(BookingLifecycleTestCase):
    def close_day(self):
        response = self.client.post(
            "/api/admin/schedule",
            json={"action": "toggle_working_day", "date": self.slot_date.isoformat(), "is_working": False},
        )
        self.assertEqual(response.status_code, 200)

    def test_cancellation_on_a_closed_day_does_not_reopen_the_slot(self):
        booking_id = self.book()
        self.close_day()

        self.assertEqual(self.cancel(booking_id).status_code, 200)

        slot = self.fresh(AvailableSlot, self.slot_id)
        self.assertEqual(slot.current_bookings, 0)
        self.assertTrue(slot.is_blocked)
        self.assertEqual(slot.block_reason, BLOCK_REASON_NON_WORKING_DAY)
        self.assertEqual(self.available(self.slot_date), [])

    def test_closed_day_cannot_be_booked(self):
        self.close_day()

        response = self.client.post(
            "/api/bookings/enhanced/create",
            json={
                "bookingData": {
                    "customer_email": "jane@example.com",
                    "customer_name": "Jane Smith",
                    "slot_id": self.slot_id,
                    "service_id": self.service_id,
                    "vehicle_size": "medium",
                }
            },
        )

        self.assertEqual(response.status_code, 409)

    def test_cancellation_after_reopening_frees_the_slot(self):
        booking_id = self.book()
        self.close_day()
        self.client.post(
            "/api/admin/schedule",
            json={"action": "toggle_working_day", "date": self.slot_date.isoformat(), "is_working": True},
        )

        self.cancel(booking_id)

        slot = self.fresh(AvailableSlot, self.slot_id)
        self.assertFalse(slot.is_blocked)
        self.assertIsNone(slot.block_reason)
        self.assertEqual(len(self.available(self.slot_date)), 1)


class RescheduleBookingTests(BookingLifecycleTestCase):
    def setUp(self):
        super().setUp()
        self.other_slot_id = add_slot(self.db, self.slot_date, time(13, 0), time(14, 30)).id

    def reschedule(self, booking_id, slot_id, reason=None):
        body = {"new_slot_id": slot_id}
        if reason:
            body["reason"] = reason
        return self.client.post(f"/api/bookings/{booking_id}/reschedule", json=body)

    def test_owner_moves_booking_to_another_slot(self):
        booking_id = self.book()
        self.current_user_id = self.customer_id

        response = self.reschedule(booking_id, self.other_slot_id, reason="Working late")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["slot_id"], self.other_slot_id)
        self.assertEqual(body["reschedule_count"], 1)
        self.assertIsNotNone(body["rescheduled_at"])
        self.assertEqual(body["status"], "confirmed")

        old = self.fresh(AvailableSlot, self.slot_id)
        self.assertEqual(old.current_bookings, 0)
        self.assertFalse(old.is_blocked)
        new = self.fresh(AvailableSlot, self.other_slot_id)
        self.assertEqual(new.current_bookings, 1)
        self.assertTrue(new.is_blocked)
        self.assertEqual(new.block_reason, BLOCK_REASON_FULLY_BOOKED)

    def test_full_target_conflicts_and_nothing_moves(self):
        booking_id = self.book()
        full_id = add_slot(self.db, self.slot_date, time(15, 0), time(16, 30), current_bookings=1,
                           is_blocked=True, block_reason=BLOCK_REASON_FULLY_BOOKED).id

        response = self.reschedule(booking_id, full_id)

        self.assertEqual(response.status_code, 409)
        booking = self.fresh(Booking, booking_id)
        self.assertEqual(booking.slot_id, self.slot_id)
        self.assertEqual(booking.reschedule_count, 0)
        self.assertEqual(self.fresh(AvailableSlot, self.slot_id).current_bookings, 1)
        self.assertEqual(self.fresh(AvailableSlot, full_id).current_bookings, 1)

    def test_slot_on_a_closed_day_conflicts(self):
        booking_id = self.book()
        other_day = self.slot_date + timedelta(days=1)
        closed_id = add_slot(self.db, other_day).id
        self.client.post(
            "/api/admin/schedule",
            json={"action": "toggle_working_day", "date": other_day.isoformat(), "is_working": False},
        )

        response = self.reschedule(booking_id, closed_id)

        self.assertEqual(response.status_code, 409)
        self.assertEqual(self.fresh(Booking, booking_id).slot_id, self.slot_id)

    def test_other_customer_sees_not_found(self):
        booking_id = self.book()
        stranger = User(id=str(uuid.uuid4()), email="stranger@example.com")
        self.db.add(stranger)
        self.db.commit()
        self.current_user_id = stranger.id

        response = self.reschedule(booking_id, self.other_slot_id)

        self.assertEqual(response.status_code, 404)
        self.assertEqual(self.fresh(AvailableSlot, self.other_slot_id).current_bookings, 0)

    def test_cancelled_booking_cannot_move(self):
        booking_id = self.book()
        self.cancel(booking_id)

        response = self.reschedule(booking_id, self.other_slot_id)

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Booking cannot be rescheduled - current status: cancelled")

    def test_same_slot_is_rejected(self):
        booking_id = self.book()
        response = self.reschedule(booking_id, self.slot_id)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Booking is already in that slot")

    def test_unknown_slot(self):
        booking_id = self.book()

        response = self.reschedule(booking_id, "missing")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(self.fresh(AvailableSlot, self.slot_id).current_bookings, 1)

    def test_reschedule_limit(self):
        booking_id = self.book()
        targets = [self.other_slot_id, self.slot_id, self.other_slot_id]
        for target in targets:
            self.assertEqual(self.reschedule(booking_id, target).status_code, 200)

        response = self.reschedule(booking_id, self.slot_id)

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Maximum reschedule limit reached")
        self.assertEqual(self.fresh(Booking, booking_id).reschedule_count, 3)

    def test_customer_is_told_about_the_move(self):
        booking_id = self.book()

        with mock.patch("love4detailing.domain.bookings.service.queue_booking_rescheduled") as queue:
            self.reschedule(booking_id, self.other_slot_id, reason="Working late")

        data = queue.call_args.args[1]
        self.assertEqual(data["reason"], "Working late")
        self.assertEqual(data["previous_time"], "10:00 - 11:30")
        self.assertEqual(data["booking_time"], "13:00 - 14:30")

    def test_response_model_reads_orm_rows(self):
        booking_id = self.book()

        response = BookingResponse.model_validate(self.fresh(Booking, booking_id))

        self.assertTrue(BookingResponse.model_config["from_attributes"])
        self.assertEqual(response.id, booking_id)
        self.assertEqual(response.reschedule_count, 0)
        self.assertIsNone(response.rescheduled_at)


if __name__ == "__main__":
    unittest.main()
