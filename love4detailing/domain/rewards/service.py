"""Rewards service - points for bookings and tier banding"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from ... import config
from ...models import Booking
from .repository import RewardsRepository

logger = logging.getLogger(__name__)

# (threshold, tier), highest first
TIER_THRESHOLDS = [(2000, "platinum"), (1000, "gold"), (500, "silver")]


def tier_for_points(points: int) -> str:
    for threshold, tier in TIER_THRESHOLDS:
        if points >= threshold:
            return tier
    return "bronze"


def points_for_price(price_pence: int) -> int:
    """One point per whole pound plus the booking bonus"""
    return price_pence // 100 + config.BOOKING_COMPLETION_BONUS_POINTS


@dataclass
class PointsAward:
    points_awarded: int
    total_points: int
    new_tier: str
    tier_changed: bool


class RewardsService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = RewardsRepository()

    def award_booking_points(
        self, user_id: str, email: Optional[str], booking: Booking, price_pence: int
    ) -> PointsAward:
        """Credit the ledger for a booking; commits, or rolls back its own changes and re-raises"""
        points = points_for_price(price_pence)
        try:
            ledger = self.repo.get_ledger(self.db, user_id)
            if ledger is None:
                ledger = self.repo.create_ledger(self.db, user_id, email)

            previous_tier = ledger.current_tier
            ledger.total_points += points
            ledger.points_lifetime += points
            ledger.current_tier = tier_for_points(ledger.total_points)

            self.repo.add_transaction(
                self.db,
                ledger,
                booking_id=booking.id,
                transaction_type="earned",
                points_amount=points,
                description=f"Booking completion: {booking.booking_reference}",
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"🎁 {points} points to user {user_id} for {booking.booking_reference} "
            f"(total {ledger.total_points}, tier {ledger.current_tier})"
        )
        return PointsAward(
            points_awarded=points,
            total_points=ledger.total_points,
            new_tier=ledger.current_tier,
            tier_changed=ledger.current_tier != previous_tier,
        )
