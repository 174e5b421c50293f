"""Shared fixtures for the API tests: in-memory database, fake collaborators, seed helpers"""

import unittest
import uuid
from datetime import date, time, timedelta

from fastapi import Depends
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from love4detailing.auth import get_current_user, get_optional_user
from love4detailing.database import Base, get_db
from love4detailing.domain.accounts.auth_admin import AccountProvisioningError, get_auth_admin_client
from love4detailing.domain.bookings.router import booking_rate_limit
from love4detailing.main import app
from love4detailing.models import AvailableSlot, Service, ServicePricing, User


def make_session_factory():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    return engine, sessionmaker(autocommit=False, autoflush=False, bind=engine)


def next_weekday(weekday: int, min_days_ahead: int = 7) -> date:
    """First date at least min_days_ahead from today falling on `weekday` (Monday=0)"""
    day = date.today() + timedelta(days=min_days_ahead)
    return day + timedelta(days=(weekday - day.weekday()) % 7)


def add_service(db: Session, prices=None, name="Full Valet") -> Service:
    service = Service(id=str(uuid.uuid4()), name=name)
    db.add(service)
    db.flush()
    for size, price in (prices or {}).items():
        db.add(ServicePricing(service_id=service.id, vehicle_size=size, price_pence=price))
    db.commit()
    return service


def add_slot(
    db: Session,
    slot_date: date,
    start: time = time(10, 0),
    end: time = time(11, 30),
    max_bookings: int = 1,
    current_bookings: int = 0,
    is_blocked: bool = False,
    block_reason=None,
) -> AvailableSlot:
    slot = AvailableSlot(
        slot_date=slot_date,
        start_time=start,
        end_time=end,
        max_bookings=max_bookings,
        current_bookings=current_bookings,
        is_blocked=is_blocked,
        block_reason=block_reason,
        day_of_week=slot_date.isoweekday(),
    )
    db.add(slot)
    db.commit()
    return slot


class FakeAuthAdmin:
    """Stands in for the Supabase admin API"""

    def __init__(self, existing=None, fail=False):
        self.existing = existing or {}
        self.fail = fail
        self.created = []

    async def find_user_by_email(self, email):
        if self.fail:
            raise AccountProvisioningError("Supabase admin API not configured")
        return self.existing.get(email)

    async def create_user(self, email, full_name, phone):
        user = {"id": str(uuid.uuid4()), "email": email}
        self.created.append(user)
        return user


class ApiTestCase(unittest.TestCase):
    """TestClient against the app with a private in-memory database"""

    def setUp(self):
        self.engine, self.SessionLocal = make_session_factory()
        self.db = self.SessionLocal()

        self.admin = User(id=str(uuid.uuid4()), email="admin@love4detailing.com", role="admin")
        self.customer = User(id=str(uuid.uuid4()), email="jane@example.com", full_name="Jane Smith")
        self.db.add_all([self.admin, self.customer])
        self.db.commit()
        self.admin_id = self.admin.id
        self.customer_id = self.customer.id

        self.current_user_id = self.admin_id
        self.optional_user_id = None
        self.auth_admin = FakeAuthAdmin()

        def override_get_db():
            db = self.SessionLocal()
            try:
                yield db
            finally:
                db.close()

        def override_current_user(db: Session = Depends(get_db)):
            return db.query(User).filter(User.id == self.current_user_id).first()

        def override_optional_user(db: Session = Depends(get_db)):
            if self.optional_user_id is None:
                return None
            return db.query(User).filter(User.id == self.optional_user_id).first()

        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_current_user] = override_current_user
        app.dependency_overrides[get_optional_user] = override_optional_user
        app.dependency_overrides[get_auth_admin_client] = lambda: self.auth_admin
        app.dependency_overrides[booking_rate_limit] = lambda: None

        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()
        self.db.close()
        self.engine.dispose()

    def fresh(self, model, id_):
        """Re-read a row, bypassing this session's identity map"""
        self.db.expire_all()
        return self.db.get(model, id_)
