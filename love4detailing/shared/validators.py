"""Shared validation utilities"""

import re
from datetime import datetime, time
from typing import Optional


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Args:
        email: Email address string

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    # Basic email validation pattern
    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email


def normalize_registration(registration: Optional[str]) -> Optional[str]:
    """Uppercase a UK number plate and strip whitespace ("ab12 cde" -> "AB12CDE")"""
    if not registration:
        return registration
    return re.sub(r"\s+", "", registration).upper()


def truncate(value: Optional[str], max_length: int) -> Optional[str]:
    """Trim a free-text value to its column width"""
    if value is None:
        return None
    value = value.strip()
    return value[:max_length]


def parse_clock_time(value: str) -> time:
    """Parse "HH:MM" or "HH:MM:SS" wall-clock time"""
    for fmt in ("%H:%M:%S", "%H:%M"):
        try:
            return datetime.strptime(value, fmt).time()
        except ValueError:
            continue
    raise ValueError(f"Invalid time format: {value!r} (expected HH:MM)")
