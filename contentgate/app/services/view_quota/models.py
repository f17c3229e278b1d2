"""Data models for view metering and access decisions."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class LockReason(str, Enum):
    NONE = "none"
    AUTHENTICATION_REQUIRED = "authentication_required"
    PREMIUM_REQUIRED = "premium_required"
    LIMIT_REACHED = "limit_reached"


class AccessOutcome(str, Enum):
    GRANTED = "granted"
    LOCKED = "locked"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class ArticleAccess:
    """The article attributes access control depends on."""
    published: bool
    premium: bool
    author_id: Optional[str] = None


@dataclass
class AccessDecision:
    """Result of evaluating one content read.

    Attributes:
        outcome: granted, locked or not_found
        lock_reason: Why full content was withheld (LockReason.NONE if not)
        include_content: Whether the article body may be returned
        monthly_limit: Role allowance (-1 unlimited); None when not enforced
        views_this_month: Counter after this read; None when not metered
        remaining_articles: Reads left this month; None when not metered
        metered: True when this read incremented the counter
    """
    outcome: AccessOutcome
    lock_reason: LockReason = LockReason.NONE
    include_content: bool = False
    monthly_limit: Optional[int] = None
    views_this_month: Optional[int] = None
    remaining_articles: Optional[int] = None
    metered: bool = False

    @property
    def locked(self) -> bool:
        return self.outcome is AccessOutcome.LOCKED

    @property
    def not_found(self) -> bool:
        return self.outcome is AccessOutcome.NOT_FOUND

    @classmethod
    def hidden(cls) -> "AccessDecision":
        return cls(outcome=AccessOutcome.NOT_FOUND)
