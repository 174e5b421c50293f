import asyncio
import os
import tempfile
import threading
import unittest

from fastapi import BackgroundTasks
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from love4detailing.database import Base
from love4detailing.domain.bookings.schemas import BookingData
from love4detailing.domain.bookings.service import BookingService
from love4detailing.models import AvailableSlot, Booking
from love4detailing.shared.errors import SlotUnavailableError

from .support import FakeAuthAdmin, add_service, add_slot, next_weekday

CAPACITY = 3
CUSTOMERS = 8


class ConcurrentBookingTests(unittest.TestCase):
    """Many customers racing for one slot, each on its own connection"""

    def setUp(self):
        self.directory = tempfile.TemporaryDirectory()
        path = os.path.join(self.directory.name, "bookings.db")
        self.engine = create_engine(
            f"sqlite:///{path}", connect_args={"check_same_thread": False, "timeout": 30}
        )
        Base.metadata.create_all(bind=self.engine)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

        db = self.SessionLocal()
        try:
            self.service_id = add_service(db, {"medium": 7500}).id
            self.slot_id = add_slot(db, next_weekday(2), max_bookings=CAPACITY).id
        finally:
            db.close()

    def tearDown(self):
        self.engine.dispose()
        self.directory.cleanup()

    def book(self, index, barrier, outcomes):
        data = BookingData(
            customer_email=f"racer{index}@example.com",
            customer_name=f"Racer {index}",
            slot_id=self.slot_id,
            service_id=self.service_id,
            vehicle_size="medium",
        )
        db = self.SessionLocal()
        try:
            # Account linking fails fast so only the booking transaction touches the database
            service = BookingService(db, FakeAuthAdmin(fail=True))
            barrier.wait()
            asyncio.run(service.create_booking(data, None, BackgroundTasks()))
            outcomes.append("booked")
        except SlotUnavailableError:
            outcomes.append("full")
        except Exception as e:
            outcomes.append(repr(e))
        finally:
            db.close()

    def test_capacity_is_never_exceeded(self):
        barrier = threading.Barrier(CUSTOMERS, timeout=30)
        outcomes = []
        threads = [
            threading.Thread(target=self.book, args=(i, barrier, outcomes)) for i in range(CUSTOMERS)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=60)

        self.assertEqual(sorted(outcomes), ["booked"] * CAPACITY + ["full"] * (CUSTOMERS - CAPACITY))

        db = self.SessionLocal()
        try:
            slot = db.get(AvailableSlot, self.slot_id)
            self.assertEqual(slot.current_bookings, CAPACITY)
            self.assertTrue(slot.is_blocked)
            self.assertEqual(db.query(Booking).filter(Booking.slot_id == self.slot_id).count(), CAPACITY)
        finally:
            db.close()


if __name__ == "__main__":
    unittest.main()
