import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .database import Base


def generate_uuid():
    return str(uuid.uuid4())


VEHICLE_SIZES = ("small", "medium", "large", "extra_large")
BOOKING_STATUSES = ("pending", "confirmed", "in_progress", "completed", "cancelled")
PAYMENT_STATUSES = ("pending", "paid", "failed", "refunded")

# block_reason values
BLOCK_REASON_ADMIN = "admin"
BLOCK_REASON_NON_WORKING_DAY = "non_working_day"
BLOCK_REASON_FULLY_BOOKED = "fully_booked"


class User(Base):
    """Customer/admin profile; id mirrors the auth provider identity"""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)
    phone = Column(String(20), nullable=True)
    role = Column(String(20), default="customer", nullable=False)  # customer, admin
    is_active = Column(Boolean, default=True, nullable=False)
    email_verified_at = Column(DateTime, nullable=True)
    marketing_opt_in = Column(Boolean, default=False, nullable=False)
    preferred_communication = Column(String(20), default="email", nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    bookings = relationship("Booking", back_populates="user")
    vehicles = relationship("Vehicle", back_populates="user")
    rewards = relationship("CustomerRewards", back_populates="user", uselist=False)


class AvailableSlot(Base):
    __tablename__ = "available_slots"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    slot_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    max_bookings = Column(Integer, default=1, nullable=False)
    current_bookings = Column(Integer, default=0, nullable=False)
    is_blocked = Column(Boolean, default=False, nullable=False)
    block_reason = Column(String(50), nullable=True)  # admin, non_working_day, fully_booked
    day_of_week = Column(Integer, nullable=True)  # ISO weekday, Monday=1
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, index=True)

    bookings = relationship("Booking", back_populates="slot")

    __table_args__ = (
        # Double-booking guard at the storage level
        CheckConstraint(
            "current_bookings >= 0 AND current_bookings <= max_bookings",
            name="ck_slot_capacity_bounds",
        ),
        CheckConstraint("max_bookings >= 1", name="ck_slot_max_bookings_positive"),
        UniqueConstraint("slot_date", "start_time", name="uq_slot_date_start"),
    )

    @property
    def duration_minutes(self) -> int:
        start = self.start_time.hour * 60 + self.start_time.minute
        end = self.end_time.hour * 60 + self.end_time.minute
        return end - start

    @property
    def is_available(self) -> bool:
        return self.current_bookings < self.max_bookings and not self.is_blocked


class Service(Base):
    __tablename__ = "services"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    pricing = relationship("ServicePricing", back_populates="service")


class ServicePricing(Base):
    __tablename__ = "service_pricing"

    id = Column(Integer, primary_key=True, index=True)
    service_id = Column(String(36), ForeignKey("services.id", ondelete="CASCADE"), nullable=False)
    vehicle_size = Column(String(20), nullable=False)  # small, medium, large, extra_large
    price_pence = Column(Integer, nullable=False)

    service = relationship("Service", back_populates="pricing")

    __table_args__ = (
        UniqueConstraint("service_id", "vehicle_size", name="uq_service_pricing_size"),
    )


class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)  # null for guests
    registration = Column(String(20), unique=True, index=True, nullable=False)
    make = Column(String(100), nullable=False)
    model = Column(String(100), nullable=False)
    year = Column(Integer, nullable=True)
    color = Column(String(50), nullable=True)
    size = Column(String(20), default="medium", nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    size_confirmed = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="vehicles")
    bookings = relationship("Booking", back_populates="vehicle")


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    booking_reference = Column(String(20), unique=True, index=True, nullable=False)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    vehicle_id = Column(String(36), ForeignKey("vehicles.id"), nullable=True)
    slot_id = Column(String(36), ForeignKey("available_slots.id"), nullable=False, index=True)
    service_id = Column(String(36), ForeignKey("services.id"), nullable=True)
    customer_name = Column(String(100), nullable=False)
    customer_email = Column(String(100), nullable=False, index=True)
    customer_phone = Column(String(20), nullable=True)
    service_location = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    payment_method = Column(String(20), default="cash", nullable=False)
    status = Column(String(20), default="pending", nullable=False)
    payment_status = Column(String(20), default="pending", nullable=False)
    service_price_pence = Column(Integer, nullable=False)
    total_price_pence = Column(Integer, nullable=False)
    cancellation_reason = Column(String(500), nullable=True)
    reschedule_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    confirmed_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    rescheduled_at = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="bookings")
    vehicle = relationship("Vehicle", back_populates="bookings")
    slot = relationship("AvailableSlot", back_populates="bookings")
    service = relationship("Service")


class CustomerRewards(Base):
    __tablename__ = "customer_rewards"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), unique=True, nullable=False)
    customer_email = Column(String(255), nullable=True)
    total_points = Column(Integer, default=0, nullable=False)
    points_lifetime = Column(Integer, default=0, nullable=False)
    points_pending = Column(Integer, default=0, nullable=False)
    current_tier = Column(String(20), default="bronze", nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="rewards")
    transactions = relationship("RewardTransaction", back_populates="customer_reward")


class RewardTransaction(Base):
    __tablename__ = "reward_transactions"

    id = Column(Integer, primary_key=True, index=True)
    customer_reward_id = Column(Integer, ForeignKey("customer_rewards.id"), nullable=False)
    booking_id = Column(String(36), ForeignKey("bookings.id"), nullable=True)
    transaction_type = Column(String(20), nullable=False)  # earned, redeemed
    points_amount = Column(Integer, nullable=False)
    description = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    customer_reward = relationship("CustomerRewards", back_populates="transactions")


class ScheduleChange(Base):
    """Append-only log of admin schedule mutations, read by the update check"""

    __tablename__ = "schedule_changes"

    id = Column(Integer, primary_key=True, index=True)
    action = Column(String(50), nullable=False)
    slot_date = Column(Date, nullable=False, index=True)
    entity_id = Column(String(36), nullable=True)
    changed_by = Column(String(36), nullable=True)
    changed_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)


class NonWorkingDay(Base):
    """A date the admin has closed; slot generation and capacity release respect it"""

    __tablename__ = "non_working_days"

    day_date = Column(Date, primary_key=True)
    marked_by = Column(String(36), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
