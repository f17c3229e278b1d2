"""Utility functions for the contentgate application."""

import math
from datetime import datetime, timezone
from typing import Optional

# Floor applied to month-aligned TTLs so a key created in the last second
# of a month never gets a zero or negative expiry.
MIN_MONTH_TTL_SECONDS = 60


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(moment: Optional[datetime]) -> datetime:
    if moment is None:
        return utc_now()
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def month_key_utc(moment: Optional[datetime] = None) -> str:
    """Return the UTC year and zero-padded month as ``YYYYMM``.

    Examples:
        >>> month_key_utc(datetime(2026, 3, 9, tzinfo=timezone.utc))
        '202603'
    """
    moment = _as_utc(moment)
    return f"{moment.year:04d}{moment.month:02d}"


def start_of_next_month_utc(moment: Optional[datetime] = None) -> datetime:
    moment = _as_utc(moment)
    if moment.month == 12:
        return datetime(moment.year + 1, 1, 1, tzinfo=timezone.utc)
    return datetime(moment.year, moment.month + 1, 1, tzinfo=timezone.utc)


def seconds_until_next_month_utc(moment: Optional[datetime] = None) -> int:
    """Seconds from ``moment`` until the next UTC month begins.

    Rounded up and never below MIN_MONTH_TTL_SECONDS.

    Examples:
        >>> seconds_until_next_month_utc(datetime(2026, 1, 31, 23, 0, tzinfo=timezone.utc))
        3600
    """
    moment = _as_utc(moment)
    remaining = (start_of_next_month_utc(moment) - moment).total_seconds()
    return max(MIN_MONTH_TTL_SECONDS, math.ceil(remaining))


def normalize_email(email: str) -> str:
    return email.strip().lower()


def mask_email(email: str) -> str:
    """Mask the local part of an e-mail for log output.

    Examples:
        >>> mask_email("Alice@Example.com")
        'a***@example.com'
    """
    normalized = normalize_email(email)
    local, sep, domain = normalized.partition("@")
    if not sep:
        return "***"
    return f"{local[:1]}***@{domain}"
