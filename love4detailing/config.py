import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./love4detailing.db")

# Supabase (auth identities and JWT verification)
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
SUPABASE_JWT_SECRET = os.getenv("SUPABASE_JWT_SECRET")
SUPABASE_JWT_AUDIENCE = os.getenv("SUPABASE_JWT_AUDIENCE", "authenticated")

# Frontend base URL for links in emails
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "Love4Detailing <bookings@love4detailing.com>")
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "zell@love4detailing.com")
ADMIN_PHONE = os.getenv("ADMIN_PHONE", "07123 456789")

# Redis (rate limiting, pricing cache, arq)
REDIS_ENABLED = os.getenv("REDIS_ENABLED", "true").lower() == "true"
CACHE_ENABLED = os.getenv("CACHE_ENABLED", "true").lower() == "true"

# Booking rules
# "decrement": a booking consumes one unit of capacity, the slot closes when full
# "close": a booking closes the slot outright (single-vehicle operation)
SLOT_CAPACITY_POLICY = os.getenv("SLOT_CAPACITY_POLICY", "decrement").lower()
if SLOT_CAPACITY_POLICY not in ("decrement", "close"):
    import warnings

    warnings.warn(
        f"Unknown SLOT_CAPACITY_POLICY={SLOT_CAPACITY_POLICY!r}, using 'decrement'",
        RuntimeWarning,
        stacklevel=2,
    )
    SLOT_CAPACITY_POLICY = "decrement"

BOOKING_REFERENCE_PREFIX = os.getenv("BOOKING_REFERENCE_PREFIX", "L4D")
BOOKING_REFERENCE_MAX_LENGTH = 20
DEFAULT_PRICE_PENCE = int(os.getenv("DEFAULT_PRICE_PENCE", "7500"))  # £75
DEFAULT_VEHICLE_SIZE = "medium"
BOOKING_COMPLETION_BONUS_POINTS = int(os.getenv("BOOKING_COMPLETION_BONUS_POINTS", "50"))

# Customer-initiated moves to another slot
MAX_RESCHEDULES_PER_BOOKING = int(os.getenv("MAX_RESCHEDULES_PER_BOOKING", "3"))

BOOKING_RATE_LIMIT = int(os.getenv("BOOKING_RATE_LIMIT", "10"))
BOOKING_RATE_WINDOW_SECONDS = int(os.getenv("BOOKING_RATE_WINDOW_SECONDS", "60"))

# Default day template used when a working day has no slots yet
DEFAULT_SLOT_TIMES = os.getenv("DEFAULT_SLOT_TIMES", "10:00,11:30,13:00,14:30,16:00").split(",")
DEFAULT_SLOT_DURATION_MINUTES = int(os.getenv("DEFAULT_SLOT_DURATION_MINUTES", "90"))
DEFAULT_SLOT_MAX_BOOKINGS = int(os.getenv("DEFAULT_SLOT_MAX_BOOKINGS", "1"))
# ISO weekday numbers, Monday=1
DEFAULT_WORKING_WEEKDAYS = [
    int(d) for d in os.getenv("DEFAULT_WORKING_WEEKDAYS", "1,2,3,4,5").split(",") if d.strip()
]
SLOT_GENERATION_DAYS_AHEAD = int(os.getenv("SLOT_GENERATION_DAYS_AHEAD", "14"))
