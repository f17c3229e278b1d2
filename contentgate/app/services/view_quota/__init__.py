"""View metering and access control for article reads."""

from .models import AccessDecision, AccessOutcome, ArticleAccess, LockReason
from .roles import (
    UNLIMITED,
    Role,
    can_read_premium,
    can_view_unpublished,
    effective_role,
    monthly_limit,
)
from .service import ViewQuotaService

__all__ = [
    "AccessDecision",
    "AccessOutcome",
    "ArticleAccess",
    "LockReason",
    "Role",
    "UNLIMITED",
    "ViewQuotaService",
    "can_read_premium",
    "can_view_unpublished",
    "effective_role",
    "monthly_limit",
]
