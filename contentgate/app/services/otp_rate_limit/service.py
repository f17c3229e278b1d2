"""Attempt tracking, lockout and one-time code storage for OTP sign-in.

State per normalized e-mail lives in four keys:

- otp:attempts:{email} - failed verifications in the current window
- otp:block:{email} - block marker, present while the identity is locked
- otp:request_cooldown:{email} - present while a new code may not be issued
- otp:email:{email} - the outstanding one-time code

Hitting a threshold is a normal outcome reported through RateLimitInfo;
only store failures raise.
"""

import asyncio

from contentgate.app.core.kv_store import KVStore
from contentgate.app.core.logging import get_logger
from contentgate.app.core.security import constant_time_equals
from contentgate.app.core.utils import mask_email, normalize_email

from .models import RateLimitInfo, RequestAllowance

logger = get_logger(__name__)


class OTPRateLimiter:
    """Rate limiter and code store for e-mail one-time codes.

    Escalation: the fifth failure inside a 15-minute window blocks the
    identity for 30 minutes. When the window count returned by the atomic
    increment is above 10 (concurrent callers raced past the first block),
    the block is 24 hours instead. An active block is never shortened.
    """

    KEY_PREFIX_ATTEMPTS = "otp:attempts"
    KEY_PREFIX_BLOCK = "otp:block"
    KEY_PREFIX_COOLDOWN = "otp:request_cooldown"
    KEY_PREFIX_CODE = "otp:email"

    MAX_ATTEMPTS = 5
    SPAM_THRESHOLD = 10
    ATTEMPT_WINDOW_SECONDS = 15 * 60
    BLOCK_SECONDS = 30 * 60
    SPAM_BLOCK_SECONDS = 24 * 60 * 60
    REQUEST_COOLDOWN_SECONDS = 30
    CODE_TTL_SECONDS = 5 * 60

    def __init__(self, store: KVStore) -> None:
        self._store = store

    def _key(self, prefix: str, email: str) -> str:
        return f"{prefix}:{normalize_email(email)}"

    async def get_rate_limit_info(self, email: str) -> RateLimitInfo:
        """Read-only snapshot of attempts, block and cooldown state."""
        raw_attempts, block_ttl, cooldown_ttl = await asyncio.gather(
            self._store.get(self._key(self.KEY_PREFIX_ATTEMPTS, email)),
            self._store.ttl(self._key(self.KEY_PREFIX_BLOCK, email)),
            self._store.ttl(self._key(self.KEY_PREFIX_COOLDOWN, email)),
        )
        is_blocked = block_ttl > 0
        return RateLimitInfo(
            attempts=int(raw_attempts) if raw_attempts else 0,
            is_blocked=is_blocked,
            block_expires_in=block_ttl if is_blocked else None,
            next_attempt_in=cooldown_ttl if cooldown_ttl > 0 else None,
        )

    async def record_failed_attempt(self, email: str) -> RateLimitInfo:
        """Count a failed verification and block once the threshold is hit."""
        attempts_key = self._key(self.KEY_PREFIX_ATTEMPTS, email)
        block_key = self._key(self.KEY_PREFIX_BLOCK, email)

        attempts = await self._store.incr(attempts_key)
        if attempts == 1:
            # Window starts on the first failure and is not extended later.
            await self._store.expire(attempts_key, self.ATTEMPT_WINDOW_SECONDS)

        if attempts < self.MAX_ATTEMPTS:
            return RateLimitInfo(attempts=attempts, is_blocked=False)

        block_seconds = (
            self.SPAM_BLOCK_SECONDS
            if attempts > self.SPAM_THRESHOLD
            else self.BLOCK_SECONDS
        )
        existing_ttl = await self._store.ttl(block_key)
        if existing_ttl >= block_seconds:
            block_seconds = existing_ttl
        else:
            await self._store.set(block_key, "1", ttl_seconds=block_seconds)
            logger.warning(
                f"OTP verification blocked for {mask_email(email)} "
                f"({attempts} failed attempts, {block_seconds}s)"
            )

        return RateLimitInfo(
            attempts=attempts,
            is_blocked=True,
            block_expires_in=block_seconds,
        )

    async def reset_attempts(self, email: str) -> None:
        await asyncio.gather(
            self._store.delete(self._key(self.KEY_PREFIX_ATTEMPTS, email)),
            self._store.delete(self._key(self.KEY_PREFIX_BLOCK, email)),
        )

    async def is_request_allowed(self, email: str) -> RequestAllowance:
        """Enforce the cooldown between code issuances.

        An allowed call arms the cooldown for the next one.
        """
        cooldown_key = self._key(self.KEY_PREFIX_COOLDOWN, email)
        remaining = await self._store.ttl(cooldown_key)
        if remaining > 0:
            return RequestAllowance(allowed=False, next_attempt_in=remaining)

        await self._store.set(
            cooldown_key, "1", ttl_seconds=self.REQUEST_COOLDOWN_SECONDS
        )
        return RequestAllowance(allowed=True)

    async def store_code(
        self, email: str, code: str, ttl_seconds: int = CODE_TTL_SECONDS
    ) -> None:
        """Store the outstanding code, replacing any earlier one."""
        await self._store.set(
            self._key(self.KEY_PREFIX_CODE, email), code, ttl_seconds=ttl_seconds
        )

    async def verify_code(self, email: str, candidate: str) -> bool:
        """Check ``candidate`` against the stored code in constant time.

        Fails closed when no code is outstanding.
        """
        stored = await self._store.get(self._key(self.KEY_PREFIX_CODE, email))
        if not stored:
            return False
        return constant_time_equals(stored, candidate)

    async def delete_code(self, email: str) -> None:
        await self._store.delete(self._key(self.KEY_PREFIX_CODE, email))
