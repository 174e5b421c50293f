import re
import unittest
from datetime import date, time, timedelta
from unittest import mock

from love4detailing import config
from love4detailing.domain.bookings.service import BookingService, generate_booking_reference
from love4detailing.models import AvailableSlot, Booking, CustomerRewards, Vehicle

from .support import ApiTestCase, add_service, add_slot, next_weekday

CREATE_URL = "/api/bookings/enhanced/create"
REFERENCE_PATTERN = re.compile(r"^L4D\d{8}[A-Z0-9]{4}$")


class BookingCreateTestCase(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.service = add_service(self.db, {"medium": 7500, "large": 9000})
        self.service_id = self.service.id
        self.slot_date = next_weekday(1)
        self.slot = add_slot(self.db, self.slot_date)
        self.slot_id = self.slot.id

    def booking_data(self, **overrides):
        data = {
            "customer_email": "guest@example.com",
            "customer_name": "Sam Guest",
            "customer_phone": "07700 900123",
            "slot_id": self.slot_id,
            "service_id": self.service_id,
            "vehicle_size": "medium",
            "vehicle_registration": "ab12 cde",
            "vehicle_make": "Ford",
            "vehicle_model": "Focus",
            "vehicle_year": 2019,
            "vehicle_color": "Blue",
            "service_address": "1 High Street, Leeds",
            "special_instructions": "Side gate is open",
            "payment_method": "cash",
        }
        data.update(overrides)
        return {k: v for k, v in data.items() if v is not None}

    def create(self, **overrides):
        return self.client.post(CREATE_URL, json={"bookingData": self.booking_data(**overrides)})


class CreateBookingTests(BookingCreateTestCase):
    def test_books_a_medium_vehicle_and_closes_single_capacity_slot(self):
        response = self.create()

        self.assertEqual(response.status_code, 201)
        data = response.json()["data"]
        self.assertTrue(REFERENCE_PATTERN.match(data["booking_reference"]))
        self.assertEqual(data["status"], "confirmed")
        self.assertEqual(data["total_price_pence"], 7500)
        self.assertIn("booking_id", data)

        slot = self.fresh(AvailableSlot, self.slot_id)
        self.assertEqual(slot.current_bookings, 1)
        self.assertTrue(slot.is_blocked)
        self.assertEqual(slot.block_reason, "fully_booked")

    def test_booking_survives_email_failure(self):
        response = self.create()

        self.assertEqual(response.status_code, 201)
        data = response.json()["data"]
        self.assertEqual(data["email_error"], "Email service not configured")
        self.assertNotIn("email_triggered", data)
        self.assertIsNotNone(self.fresh(Booking, data["booking_id"]))

    def test_price_uses_vehicle_size(self):
        response = self.create(vehicle_size="large")
        self.assertEqual(response.json()["data"]["total_price_pence"], 9000)

    def test_unpriced_size_falls_back_to_medium(self):
        response = self.create(vehicle_size="extra_large")
        self.assertEqual(response.json()["data"]["total_price_pence"], 7500)

    def test_second_booking_for_full_slot_conflicts(self):
        self.assertEqual(self.create().status_code, 201)

        response = self.create(customer_email="late@example.com", vehicle_registration="XY99 ZZZ")

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["error"], "Slot is no longer available")
        self.assertEqual(self.fresh(AvailableSlot, self.slot_id).current_bookings, 1)
        self.assertEqual(self.db.query(Booking).count(), 1)

    def test_multi_capacity_slot_fills_up(self):
        slot = add_slot(self.db, self.slot_date, time(13, 0), time(14, 30), max_bookings=2)
        slot_id = slot.id

        first = self.create(slot_id=slot_id, vehicle_registration="AA11AAA")
        self.assertEqual(first.status_code, 201)
        opened = self.fresh(AvailableSlot, slot_id)
        self.assertEqual(opened.current_bookings, 1)
        self.assertFalse(opened.is_blocked)

        second = self.create(slot_id=slot_id, vehicle_registration="BB22BBB")
        self.assertEqual(second.status_code, 201)
        third = self.create(slot_id=slot_id, vehicle_registration="CC33CCC")
        self.assertEqual(third.status_code, 409)

        full = self.fresh(AvailableSlot, slot_id)
        self.assertEqual(full.current_bookings, 2)
        self.assertTrue(full.is_blocked)

    def test_blocked_slot_cannot_be_booked(self):
        slot = add_slot(self.db, self.slot_date, time(15, 0), time(16, 30), is_blocked=True, block_reason="admin")
        response = self.create(slot_id=slot.id)
        self.assertEqual(response.status_code, 409)


class CreateBookingValidationTests(BookingCreateTestCase):
    def test_missing_fields_are_listed(self):
        response = self.create(customer_name="", slot_id=None)

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Missing required fields: customer_name, slot_id")
        self.assertEqual(self.db.query(Booking).count(), 0)

    def test_invalid_email(self):
        response = self.create(customer_email="not-an-email")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Invalid email format")

    def test_invalid_vehicle_size(self):
        response = self.create(vehicle_size="lorry")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Invalid vehicle size")

    def test_unknown_slot(self):
        response = self.create(slot_id="no-such-slot")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"], "Slot not found")

    def test_unknown_service_releases_nothing(self):
        response = self.create(service_id="no-such-service")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(self.fresh(AvailableSlot, self.slot_id).current_bookings, 0)

    def test_slot_in_the_past(self):
        past = add_slot(self.db, date.today() - timedelta(days=1))
        response = self.create(slot_id=past.id)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Cannot book a slot in the past")

    def test_out_of_range_vehicle_year(self):
        response = self.create(vehicle_year=1800)
        self.assertEqual(response.status_code, 422)

    def test_unexpected_failure_returns_500_body(self):
        with mock.patch.object(BookingService, "_persist_booking", side_effect=RuntimeError("boom")):
            response = self.create()

        self.assertEqual(response.status_code, 500)
        body = response.json()
        self.assertEqual(body["error"], "Internal server error")
        self.assertEqual(body["details"], "boom")
        self.assertIn("timestamp", body)


class BookingEnrichmentTests(BookingCreateTestCase):
    def test_guest_gets_an_account_and_points(self):
        response = self.create(vehicle_size="large")

        data = response.json()["data"]
        self.assertTrue(data["account_created"])
        self.assertEqual(len(self.auth_admin.created), 1)
        self.assertEqual(data["user_id"], self.auth_admin.created[0]["id"])
        self.assertEqual(data["points_awarded"], 90 + config.BOOKING_COMPLETION_BONUS_POINTS)
        self.assertEqual(data["new_tier"], "bronze")

        booking = self.fresh(Booking, data["booking_id"])
        self.assertEqual(booking.user_id, data["user_id"])
        self.assertEqual(booking.vehicle.user_id, data["user_id"])

    def test_existing_customer_email_is_linked(self):
        response = self.create(customer_email="Jane@Example.com")

        data = response.json()["data"]
        self.assertTrue(data["existing_user_linked"])
        self.assertEqual(data["user_id"], self.customer_id)
        self.assertEqual(self.auth_admin.created, [])
        ledger = self.db.query(CustomerRewards).filter_by(user_id=self.customer_id).one()
        self.assertEqual(ledger.total_points, 75 + config.BOOKING_COMPLETION_BONUS_POINTS)

    def test_signed_in_customer_books_for_themselves(self):
        self.optional_user_id = self.customer_id

        data = self.create(customer_email="jane@example.com").json()["data"]

        self.assertEqual(data["user_id"], self.customer_id)
        self.assertNotIn("account_created", data)
        self.assertNotIn("existing_user_linked", data)

    def test_account_failure_does_not_fail_booking(self):
        self.auth_admin.fail = True

        response = self.create()

        self.assertEqual(response.status_code, 201)
        data = response.json()["data"]
        self.assertNotIn("user_id", data)
        self.assertNotIn("points_awarded", data)
        self.assertIsNone(self.fresh(Booking, data["booking_id"]).user_id)

    def test_vehicle_is_stored_once_per_registration(self):
        other = add_slot(self.db, self.slot_date, time(13, 0), time(14, 30))
        other_id = other.id

        self.create()
        self.create(slot_id=other_id, vehicle_registration="AB12CDE")

        vehicles = self.db.query(Vehicle).all()
        self.assertEqual(len(vehicles), 1)
        self.assertEqual(vehicles[0].registration, "AB12CDE")
        self.assertTrue(vehicles[0].size_confirmed)
        self.assertEqual(self.db.query(Booking).filter_by(vehicle_id=vehicles[0].id).count(), 2)

    def test_booking_without_vehicle_details(self):
        response = self.create(vehicle_registration=None, vehicle_make=None, vehicle_model=None)

        self.assertEqual(response.status_code, 201)
        self.assertIsNone(self.fresh(Booking, response.json()["data"]["booking_id"]).vehicle_id)

    def test_confirmation_email_is_queued_when_configured(self):
        with mock.patch.object(config, "RESEND_API_KEY", "re_test"), mock.patch(
            "love4detailing.email_service.send_email", new_callable=mock.AsyncMock
        ) as send_email:
            response = self.create()

        data = response.json()["data"]
        self.assertTrue(data["email_triggered"])
        self.assertNotIn("email_error", data)
        recipients = [c.kwargs["to"] for c in send_email.await_args_list]
        self.assertEqual(recipients, ["guest@example.com", config.ADMIN_EMAIL])


class BookingReferenceTests(unittest.TestCase):
    def test_references_in_the_same_millisecond_differ(self):
        with mock.patch("love4detailing.domain.bookings.service.time.time", return_value=1_700_000_123.0):
            references = {generate_booking_reference() for _ in range(20)}

        self.assertEqual(len(references), 20)
        for reference in references:
            self.assertLessEqual(len(reference), 20)
            self.assertTrue(REFERENCE_PATTERN.match(reference))
            self.assertTrue(reference.startswith("L4D00123000"))

    def test_long_prefix_is_truncated(self):
        reference = generate_booking_reference(prefix="LOVE4DETAIL")
        self.assertEqual(len(reference), 20)


if __name__ == "__main__":
    unittest.main()
