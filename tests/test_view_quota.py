"""Tests for monthly view metering and article access decisions."""

from datetime import datetime, timezone

import pytest

from contentgate.app.core.kv_store import TTL_NO_KEY
from contentgate.app.exceptions import ViewLimitsUnavailableError
from contentgate.app.services.view_quota import (
    AccessOutcome,
    ArticleAccess,
    LockReason,
    Role,
    ViewQuotaService,
)

NOW = datetime(2026, 3, 14, 12, 0, 0, tzinfo=timezone.utc)

FREE_ARTICLE = ArticleAccess(published=True, premium=False, author_id="author-1")
PREMIUM_ARTICLE = ArticleAccess(published=True, premium=True, author_id="author-1")
DRAFT = ArticleAccess(published=False, premium=False, author_id="author-1")


@pytest.fixture
def quota(store):
    return ViewQuotaService(store, enforce=True)


async def read(quota, role, article=FREE_ARTICLE, identity="anon:reader", **kwargs):
    kwargs.setdefault("now", NOW)
    return await quota.evaluate(role=role, article=article, identity_key=identity, **kwargs)


class TestMetering:

    @pytest.mark.asyncio
    async def test_anonymous_first_read(self, quota):
        decision = await read(quota, Role.ANONYMOUS)
        assert decision.outcome is AccessOutcome.GRANTED
        assert decision.lock_reason is LockReason.NONE
        assert decision.include_content is True
        assert decision.monthly_limit == 3
        assert decision.views_this_month == 1
        assert decision.remaining_articles == 2
        assert decision.metered is True

    @pytest.mark.asyncio
    async def test_anonymous_fourth_read_is_locked(self, quota):
        for _ in range(3):
            assert not (await read(quota, Role.ANONYMOUS)).locked

        decision = await read(quota, Role.ANONYMOUS)
        assert decision.outcome is AccessOutcome.LOCKED
        assert decision.lock_reason is LockReason.LIMIT_REACHED
        assert decision.include_content is False
        assert decision.views_this_month == 3
        assert decision.remaining_articles == 0

    @pytest.mark.asyncio
    async def test_free_user_allowance(self, quota):
        for n in range(1, 16):
            decision = await read(quota, Role.FREE_USER, identity="user:u1")
            assert decision.outcome is AccessOutcome.GRANTED
            assert decision.views_this_month == n
            assert decision.remaining_articles == 15 - n

        locked = await read(quota, Role.FREE_USER, identity="user:u1")
        assert locked.lock_reason is LockReason.LIMIT_REACHED
        assert locked.remaining_articles == 0
        assert locked.monthly_limit == 15

    @pytest.mark.asyncio
    async def test_locked_reads_do_not_increment(self, quota):
        for _ in range(3):
            await read(quota, Role.ANONYMOUS)
        for _ in range(5):
            await read(quota, Role.ANONYMOUS)
        assert await quota.get_views_this_month("anon:reader", NOW) == 3

    @pytest.mark.asyncio
    async def test_author_shares_free_allowance(self, quota):
        decision = await read(quota, Role.AUTHOR, identity="user:a1")
        assert decision.monthly_limit == 15
        assert decision.remaining_articles == 14

    @pytest.mark.asyncio
    @pytest.mark.parametrize("role", [Role.PREMIUM_USER, Role.ADMIN])
    async def test_unlimited_roles_are_not_metered(self, quota, store, role):
        decision = await read(quota, role, identity="user:vip")
        assert decision.outcome is AccessOutcome.GRANTED
        assert decision.monthly_limit == -1
        assert decision.views_this_month is None
        assert decision.remaining_articles is None
        assert decision.metered is False
        assert await store.ttl(quota.views_key("user:vip", NOW)) == TTL_NO_KEY

    @pytest.mark.asyncio
    async def test_identities_are_counted_separately(self, quota):
        await read(quota, Role.ANONYMOUS, identity="anon:a")
        decision = await read(quota, Role.ANONYMOUS, identity="anon:b")
        assert decision.views_this_month == 1

    @pytest.mark.asyncio
    async def test_counter_expires_at_next_month(self, quota, store):
        await read(quota, Role.ANONYMOUS)
        key = quota.views_key("anon:reader", NOW)
        assert key == "views:anon:reader:202603"
        # 2026-03-14 12:00 to 2026-04-01 00:00
        assert await store.ttl(key) == (17 * 24 + 12) * 3600

    @pytest.mark.asyncio
    async def test_month_boundary(self, quota, store):
        last_second = datetime(2026, 1, 31, 23, 59, 59, tzinfo=timezone.utc)
        for _ in range(3):
            await read(quota, Role.ANONYMOUS, now=last_second)

        old_key = quota.views_key("anon:reader", last_second)
        assert 0 < await store.ttl(old_key) <= 60

        new_month = datetime(2026, 2, 1, 0, 0, 0, tzinfo=timezone.utc)
        assert await quota.get_views_this_month("anon:reader", new_month) == 0
        decision = await read(quota, Role.ANONYMOUS, now=new_month)
        assert decision.outcome is AccessOutcome.GRANTED
        assert decision.views_this_month == 1


class TestPremiumGate:

    @pytest.mark.asyncio
    async def test_free_user_premium_read_is_locked_without_counting(self, quota):
        await read(quota, Role.FREE_USER, identity="user:u1")
        decision = await read(quota, Role.FREE_USER, PREMIUM_ARTICLE, identity="user:u1")

        assert decision.outcome is AccessOutcome.LOCKED
        assert decision.lock_reason is LockReason.PREMIUM_REQUIRED
        assert decision.include_content is False
        assert decision.views_this_month == 1
        assert decision.remaining_articles == 14
        assert await quota.get_views_this_month("user:u1", NOW) == 1

    @pytest.mark.asyncio
    async def test_anonymous_premium_read_requires_authentication(self, quota):
        decision = await read(quota, Role.ANONYMOUS, PREMIUM_ARTICLE)
        assert decision.lock_reason is LockReason.AUTHENTICATION_REQUIRED
        assert await quota.get_views_this_month("anon:reader", NOW) == 0

    @pytest.mark.asyncio
    async def test_limit_message_wins_over_premium(self, quota):
        for _ in range(3):
            await read(quota, Role.ANONYMOUS)
        decision = await read(quota, Role.ANONYMOUS, PREMIUM_ARTICLE)
        assert decision.lock_reason is LockReason.LIMIT_REACHED

    @pytest.mark.asyncio
    async def test_premium_user_reads_premium(self, quota):
        decision = await read(quota, Role.PREMIUM_USER, PREMIUM_ARTICLE, identity="user:p")
        assert decision.include_content is True
        assert decision.locked is False

    @pytest.mark.asyncio
    async def test_author_reads_own_premium_and_is_metered(self, quota):
        decision = await read(
            quota, Role.AUTHOR, PREMIUM_ARTICLE, identity="user:author-1", is_owner=True
        )
        assert decision.include_content is True
        assert decision.views_this_month == 1


class TestVisibility:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("role", [Role.ANONYMOUS, Role.FREE_USER, Role.AUTHOR, Role.PREMIUM_USER])
    async def test_draft_hidden_from_non_owners(self, quota, role):
        decision = await read(quota, role, DRAFT)
        assert decision.outcome is AccessOutcome.NOT_FOUND
        assert decision.not_found is True
        assert decision.locked is False
        assert decision.lock_reason is LockReason.NONE

    @pytest.mark.asyncio
    async def test_draft_visible_to_owner(self, quota):
        decision = await read(quota, Role.FREE_USER, DRAFT, identity="user:author-1", is_owner=True)
        assert decision.outcome is AccessOutcome.GRANTED

    @pytest.mark.asyncio
    async def test_draft_visible_to_admin(self, quota):
        decision = await read(quota, Role.ADMIN, DRAFT, identity="user:admin")
        assert decision.outcome is AccessOutcome.GRANTED

    @pytest.mark.asyncio
    async def test_hidden_drafts_are_not_counted(self, quota):
        await read(quota, Role.ANONYMOUS, DRAFT)
        assert await quota.get_views_this_month("anon:reader", NOW) == 0


class TestEnforcementModes:

    @pytest.mark.asyncio
    async def test_unenforced_reads_are_free(self, store):
        quota = ViewQuotaService(store, enforce=False)
        for _ in range(10):
            decision = await read(quota, Role.ANONYMOUS)
        assert decision.outcome is AccessOutcome.GRANTED
        assert decision.monthly_limit is None
        assert decision.views_this_month is None
        assert decision.remaining_articles is None
        assert await store.ttl(quota.views_key("anon:reader", NOW)) == TTL_NO_KEY

    @pytest.mark.asyncio
    async def test_unenforced_premium_lock_still_applies(self, store):
        quota = ViewQuotaService(store, enforce=False)
        decision = await read(quota, Role.FREE_USER, PREMIUM_ARTICLE)
        assert decision.lock_reason is LockReason.PREMIUM_REQUIRED
        assert decision.monthly_limit is None
        assert decision.remaining_articles is None

    @pytest.mark.asyncio
    async def test_fails_closed_without_shared_store(self, store):
        quota = ViewQuotaService(store, enforce=True, require_remote_store=True)
        with pytest.raises(ViewLimitsUnavailableError) as exc_info:
            await read(quota, Role.ANONYMOUS)
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_not_found_precedes_store_requirement(self, store):
        quota = ViewQuotaService(store, enforce=True, require_remote_store=True)
        decision = await read(quota, Role.ANONYMOUS, DRAFT)
        assert decision.not_found is True

    @pytest.mark.asyncio
    async def test_unenforced_ignores_store_requirement(self, store):
        quota = ViewQuotaService(store, enforce=False, require_remote_store=True)
        decision = await read(quota, Role.ANONYMOUS)
        assert decision.outcome is AccessOutcome.GRANTED

    @pytest.mark.asyncio
    async def test_custom_limits(self, store):
        quota = ViewQuotaService(store, enforce=True, free_limit=2, anonymous_limit=1)
        assert quota.monthly_limit(Role.FREE_USER) == 2
        await read(quota, Role.ANONYMOUS)
        decision = await read(quota, Role.ANONYMOUS)
        assert decision.lock_reason is LockReason.LIMIT_REACHED
