"""Account service - link guest bookings to customer accounts"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Booking, User, Vehicle
from .auth_admin import AccountProvisioningError, SupabaseAuthAdminClient

logger = logging.getLogger(__name__)


@dataclass
class AccountOutcome:
    user_id: str
    account_created: bool = False
    existing_user_linked: bool = False


class AccountService:
    """Find or provision the account behind a booking's email"""

    def __init__(self, db: Session, auth_admin: SupabaseAuthAdminClient):
        self.db = db
        self.auth_admin = auth_admin

    def _ensure_profile(self, user_id: str, email: str, full_name: Optional[str], phone: Optional[str]) -> User:
        profile = self.db.query(User).filter(User.id == user_id).first()
        if profile:
            return profile
        profile = User(
            id=user_id,
            email=email,
            full_name=full_name,
            phone=phone,
            role="customer",
            is_active=True,
            email_verified_at=datetime.utcnow(),
        )
        self.db.add(profile)
        self.db.flush()
        return profile

    def _link(self, booking: Booking, vehicle: Optional[Vehicle], user_id: str) -> None:
        booking.user_id = user_id
        if vehicle is not None and vehicle.user_id is None:
            vehicle.user_id = user_id

    async def reconcile(self, booking: Booking, vehicle: Optional[Vehicle]) -> AccountOutcome:
        """
        Attach a guest booking (and its vehicle) to an account for its email.

        An existing profile is linked directly. Otherwise an auth identity is
        looked up or created through the admin API, a local profile row is
        written, and the booking is linked. Commits on success, rolls back its
        own changes and re-raises on failure.
        """
        email = booking.customer_email.lower()
        try:
            profile = self.db.query(User).filter(User.email == email).first()
            if profile:
                self._link(booking, vehicle, profile.id)
                self.db.commit()
                logger.info(f"🔗 Booking {booking.booking_reference} linked to existing user {profile.id}")
                return AccountOutcome(user_id=profile.id, existing_user_linked=True)

            identity = await self.auth_admin.find_user_by_email(email)
            created = identity is None
            if created:
                identity = await self.auth_admin.create_user(
                    email, booking.customer_name, booking.customer_phone
                )
            if not identity.get("id"):
                raise AccountProvisioningError("Auth API returned a user without an id")

            self._ensure_profile(identity["id"], email, booking.customer_name, booking.customer_phone)
            self._link(booking, vehicle, identity["id"])
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        if created:
            logger.info(f"🆕 Account created for {email} from booking {booking.booking_reference}")
            return AccountOutcome(user_id=identity["id"], account_created=True)
        logger.info(f"🔗 Booking {booking.booking_reference} linked to auth user {identity['id']}")
        return AccountOutcome(user_id=identity["id"], existing_user_linked=True)
