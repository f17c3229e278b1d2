"""Reader roles and the per-role rules derived from them."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

UNLIMITED = -1

DEFAULT_FREE_LIMIT = 15
DEFAULT_ANONYMOUS_LIMIT = 3


class Role(str, Enum):
    ANONYMOUS = "ANONYMOUS"
    FREE_USER = "FREE_USER"
    AUTHOR = "AUTHOR"
    PREMIUM_USER = "PREMIUM_USER"
    ADMIN = "ADMIN"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "Role":
        """Map a stored role string to a Role; unknown values read as ANONYMOUS."""
        try:
            return cls(str(raw or "").upper())
        except ValueError:
            return cls.ANONYMOUS


def monthly_limit(
    role: Role,
    free_limit: int = DEFAULT_FREE_LIMIT,
    anonymous_limit: int = DEFAULT_ANONYMOUS_LIMIT,
) -> int:
    """Full-content reads allowed per calendar month; UNLIMITED is -1."""
    if role in (Role.PREMIUM_USER, Role.ADMIN):
        return UNLIMITED
    if role in (Role.FREE_USER, Role.AUTHOR):
        return free_limit
    return anonymous_limit


def can_view_unpublished(role: Role, is_owner: bool) -> bool:
    return role is Role.ADMIN or is_owner


def can_read_premium(role: Role, is_owner: bool) -> bool:
    return role in (Role.ADMIN, Role.PREMIUM_USER) or is_owner


def effective_role(
    stored_role: Optional[str],
    premium_expires: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> Role:
    """Role to apply right now, downgrading lapsed premium subscriptions.

    A PREMIUM_USER without an expiry date is premium indefinitely; one whose
    expiry has passed reads as FREE_USER.
    """
    role = Role.parse(stored_role)
    if role is not Role.PREMIUM_USER or premium_expires is None:
        return role
    now = now or datetime.now(timezone.utc)
    if premium_expires.tzinfo is None:
        premium_expires = premium_expires.replace(tzinfo=timezone.utc)
    return role if now < premium_expires else Role.FREE_USER
