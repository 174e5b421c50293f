"""Price lookup by (service, vehicle size)"""

import logging

from sqlalchemy.orm import Session

from ... import config
from ...cache import get_price_cached, set_price_cached
from ...models import ServicePricing

logger = logging.getLogger(__name__)


class PricingResolver:
    """
    Resolve a service price in pence.

    Lookup order: the exact (service, size) row, then the service's medium row,
    then DEFAULT_PRICE_PENCE. Never raises; a database failure degrades to the
    default so a booking is not blocked by missing pricing data.
    """

    def __init__(self, db: Session):
        self.db = db

    def _lookup(self, service_id: str, vehicle_size: str):
        row = (
            self.db.query(ServicePricing.price_pence)
            .filter(
                ServicePricing.service_id == service_id,
                ServicePricing.vehicle_size == vehicle_size,
            )
            .first()
        )
        return row[0] if row else None

    def resolve_price(self, service_id: str, vehicle_size: str) -> int:
        cached = get_price_cached(service_id, vehicle_size)
        if cached is not None:
            return int(cached)

        try:
            price = self._lookup(service_id, vehicle_size)
            if price is None and vehicle_size != config.DEFAULT_VEHICLE_SIZE:
                logger.info(
                    f"ℹ️ No {vehicle_size} price for service {service_id}, using {config.DEFAULT_VEHICLE_SIZE}"
                )
                price = self._lookup(service_id, config.DEFAULT_VEHICLE_SIZE)
        except Exception as e:
            logger.error(f"❌ Price lookup failed for {service_id}/{vehicle_size}: {e}")
            return config.DEFAULT_PRICE_PENCE

        if price is None:
            logger.warning(
                f"⚠️ No pricing rows for service {service_id}, using default {config.DEFAULT_PRICE_PENCE}p"
            )
            return config.DEFAULT_PRICE_PENCE

        set_price_cached(service_id, vehicle_size, price)
        return price
