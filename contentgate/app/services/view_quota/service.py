"""Monthly view metering and access control for article reads.

Counters live at ``views:{identity}:{YYYYMM}`` (UTC month). A new month is a
new key, so counts never reset mid-month; the TTL only reclaims old keys.

Consistency is relaxed on purpose: two reads racing at ``limit - 1`` can
both pass the limit check before either increments, so a quota can be
overshot by the number of racing requests. The increment itself is atomic
and never loses a count.
"""

from datetime import datetime
from typing import Optional

from contentgate.app.core.kv_store import KVStore
from contentgate.app.core.logging import get_log_context, get_logger
from contentgate.app.core.utils import month_key_utc, seconds_until_next_month_utc, utc_now
from contentgate.app.exceptions import ViewLimitsUnavailableError

from .models import AccessDecision, AccessOutcome, ArticleAccess, LockReason
from .roles import (
    DEFAULT_ANONYMOUS_LIMIT,
    DEFAULT_FREE_LIMIT,
    UNLIMITED,
    Role,
    can_read_premium,
    can_view_unpublished,
    monthly_limit,
)

logger = get_logger(__name__)


class ViewQuotaService:
    """Decides whether a reader gets full content and meters the read.

    Enforcement and the shared-store requirement are explicit so every
    combination can be exercised without touching the environment:

    - enforce=False: no metering, quota fields are None
    - enforce=True, require_remote_store=True, in-memory store: every
      evaluation raises ViewLimitsUnavailableError (fail closed)
    - enforce=True otherwise: reads are metered against the store
    """

    KEY_PREFIX_VIEWS = "views"

    def __init__(
        self,
        store: KVStore,
        enforce: bool,
        require_remote_store: bool = False,
        free_limit: int = DEFAULT_FREE_LIMIT,
        anonymous_limit: int = DEFAULT_ANONYMOUS_LIMIT,
    ) -> None:
        self._store = store
        self._enforce = enforce
        self._require_remote_store = require_remote_store
        self._free_limit = free_limit
        self._anonymous_limit = anonymous_limit

    @property
    def enforced(self) -> bool:
        return self._enforce

    def monthly_limit(self, role: Role) -> int:
        return monthly_limit(role, self._free_limit, self._anonymous_limit)

    def views_key(self, identity_key: str, now: Optional[datetime] = None) -> str:
        return f"{self.KEY_PREFIX_VIEWS}:{identity_key}:{month_key_utc(now)}"

    async def get_views_this_month(
        self, identity_key: str, now: Optional[datetime] = None
    ) -> int:
        raw = await self._store.get(self.views_key(identity_key, now))
        return int(raw) if raw else 0

    async def evaluate(
        self,
        *,
        role: Role,
        article: ArticleAccess,
        identity_key: str,
        is_owner: bool = False,
        now: Optional[datetime] = None,
    ) -> AccessDecision:
        """Evaluate one content read.

        Order matters: drafts are hidden before anything else, the quota
        check runs before the premium check so an exhausted reader sees the
        limit message, and only unlocked reads are counted.

        Raises:
            ViewLimitsUnavailableError: enforcement is on but the store is
                process-local where a shared store is required.
        """
        if not article.published and not can_view_unpublished(role, is_owner):
            return AccessDecision.hidden()

        if self._enforce and self._require_remote_store and not self._store.is_remote:
            logger.error("View limits enforced without a shared store; refusing read")
            raise ViewLimitsUnavailableError()

        now = now or utc_now()
        limit = self.monthly_limit(role)
        metering = self._enforce and limit != UNLIMITED
        premium_ok = can_read_premium(role, is_owner)
        views_key = self.views_key(identity_key, now)

        views: Optional[int] = None
        if metering:
            views = await self.get_views_this_month(identity_key, now)
            if views >= limit:
                logger.info(
                    "Monthly view limit reached",
                    extra=get_log_context(identity=identity_key, role=role.value, views=views),
                )
                return AccessDecision(
                    outcome=AccessOutcome.LOCKED,
                    lock_reason=LockReason.LIMIT_REACHED,
                    include_content=False,
                    monthly_limit=limit,
                    views_this_month=views,
                    remaining_articles=0,
                )

        if article.premium and not premium_ok:
            reason = (
                LockReason.AUTHENTICATION_REQUIRED
                if role is Role.ANONYMOUS
                else LockReason.PREMIUM_REQUIRED
            )
            return AccessDecision(
                outcome=AccessOutcome.LOCKED,
                lock_reason=reason,
                include_content=False,
                monthly_limit=limit if self._enforce else None,
                views_this_month=views,
                remaining_articles=max(0, limit - views) if views is not None else None,
            )

        remaining: Optional[int] = None
        if metering:
            views = await self._store.incr(views_key)
            if await self._store.ttl(views_key) < 0:
                # First view of the month: expire when the next UTC month starts.
                await self._store.expire(views_key, seconds_until_next_month_utc(now))
            remaining = max(0, limit - views)

        return AccessDecision(
            outcome=AccessOutcome.GRANTED,
            lock_reason=LockReason.NONE,
            include_content=premium_ok or not article.premium,
            monthly_limit=limit if self._enforce else None,
            views_this_month=views,
            remaining_articles=remaining,
            metered=metering,
        )
