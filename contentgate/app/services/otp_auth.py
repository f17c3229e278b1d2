"""E-mail one-time code sign-in.

Flow:
1. request_code: honeypot and captcha checks, issuance cooldown, lockout
   check, then a fresh 6-digit code is stored and e-mailed.
2. verify_code: lockout check, constant-time comparison, failed attempts
   counted; on success the user is provisioned and a single-use login token
   is returned.
3. consume_login_token: exchanges the login token for the user record so
   the caller can establish a session.

Responses never reveal whether an e-mail is registered.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from contentgate.app.core.kv_store import KVStore
from contentgate.app.core.logging import get_logger
from contentgate.app.core.security import constant_time_equals, generate_login_token, generate_otp
from contentgate.app.core.utils import mask_email, normalize_email
from contentgate.app.db import crud
from contentgate.app.db.models import User
from contentgate.app.exceptions import EmailDeliveryError, OTPServiceUnavailableError
from contentgate.app.services.captcha import CaptchaVerifier
from contentgate.app.services.email import EmailSender
from contentgate.app.services.otp_rate_limit import OTPRateLimiter

logger = get_logger(__name__)

OTP_LENGTH = 6
LOGIN_TOKEN_TTL_SECONDS = 5 * 60
LOGIN_TOKEN_KEY_PREFIX = "otp:login_token"


class OTPRequestStatus(str, Enum):
    SENT = "sent"
    SPAM = "spam"
    CAPTCHA_FAILED = "captcha_failed"
    COOLDOWN = "cooldown"
    BLOCKED = "blocked"


@dataclass
class OTPRequestResult:
    status: OTPRequestStatus
    next_attempt_in: Optional[int] = None
    block_expires_in: Optional[int] = None

    @property
    def allowed(self) -> bool:
        return self.status is OTPRequestStatus.SENT


class OTPVerifyStatus(str, Enum):
    VERIFIED = "verified"
    INVALID = "invalid"
    BLOCKED = "blocked"


@dataclass
class OTPVerifyResult:
    status: OTPVerifyStatus
    login_token: Optional[str] = None
    user: Optional[User] = None
    block_expires_in: Optional[int] = None


class OTPAuthService:
    """Orchestrates code issuance, verification and login-token hand-off."""

    def __init__(
        self,
        store: KVStore,
        captcha: CaptchaVerifier,
        email_sender: EmailSender,
        require_remote_store: bool = False,
        limiter: Optional[OTPRateLimiter] = None,
    ) -> None:
        self._store = store
        self._captcha = captcha
        self._email_sender = email_sender
        self._require_remote_store = require_remote_store
        self._limiter = limiter or OTPRateLimiter(store)

    @property
    def limiter(self) -> OTPRateLimiter:
        return self._limiter

    def _ensure_store(self) -> None:
        # Per-process TTLs would let code limits be bypassed across instances.
        if self._require_remote_store and not self._store.is_remote:
            raise OTPServiceUnavailableError()

    async def request_code(
        self,
        email: str,
        captcha_token: Optional[str] = None,
        honeypot: Optional[str] = None,
        remote_ip: Optional[str] = None,
    ) -> OTPRequestResult:
        """Issue and e-mail a new code.

        Raises:
            OTPServiceUnavailableError: a shared store is required but missing
            EmailDeliveryError: the e-mail could not be sent
        """
        self._ensure_store()

        if honeypot and honeypot.strip():
            return OTPRequestResult(OTPRequestStatus.SPAM)

        if not await self._captcha.validate(captcha_token, remote_ip):
            return OTPRequestResult(OTPRequestStatus.CAPTCHA_FAILED)

        allowance = await self._limiter.is_request_allowed(email)
        if not allowance.allowed:
            return OTPRequestResult(
                OTPRequestStatus.COOLDOWN, next_attempt_in=allowance.next_attempt_in
            )

        info = await self._limiter.get_rate_limit_info(email)
        if info.is_blocked:
            return OTPRequestResult(
                OTPRequestStatus.BLOCKED, block_expires_in=info.block_expires_in
            )

        code = generate_otp(OTP_LENGTH)
        await self._limiter.store_code(email, code)

        expires_minutes = OTPRateLimiter.CODE_TTL_SECONDS // 60
        try:
            await self._email_sender.send(
                to=normalize_email(email),
                subject="Your sign-in code",
                text=(
                    f"Your one-time code is {code}. It expires in {expires_minutes} minutes.\n\n"
                    "If you did not request this, you can ignore this email."
                ),
                html=(
                    "<div style=\"font-family: system-ui, Arial; line-height: 1.4;\">"
                    "<h2>Your sign-in code</h2>"
                    f"<div style=\"font-size: 28px; font-weight: 700; letter-spacing: 6px;\">{code}</div>"
                    f"<p>This code expires in {expires_minutes} minutes.</p>"
                    "<p style=\"color:#666;font-size:12px;\">If you did not request this, "
                    "you can safely ignore this email.</p>"
                    "</div>"
                ),
            )
        except Exception as e:
            raise EmailDeliveryError() from e

        logger.info(f"Sign-in code issued for {mask_email(email)}")
        return OTPRequestResult(OTPRequestStatus.SENT)

    async def verify_code(
        self, session: AsyncSession, email: str, code: str
    ) -> OTPVerifyResult:
        """Verify a code and provision the user on success.

        Raises:
            OTPServiceUnavailableError: a shared store is required but missing
        """
        self._ensure_store()

        info = await self._limiter.get_rate_limit_info(email)
        if info.is_blocked:
            return OTPVerifyResult(
                OTPVerifyStatus.BLOCKED, block_expires_in=info.block_expires_in
            )

        if not await self._limiter.verify_code(email, code):
            info = await self._limiter.record_failed_attempt(email)
            if info.is_blocked:
                return OTPVerifyResult(
                    OTPVerifyStatus.BLOCKED, block_expires_in=info.block_expires_in
                )
            return OTPVerifyResult(OTPVerifyStatus.INVALID)

        user = await crud.find_user_by_email(session, email)
        if user is None:
            user = await crud.create_user(session, email, email_verified=True)
            logger.info(f"Created user for {mask_email(email)}")

        await self._limiter.delete_code(email)
        await self._limiter.reset_attempts(email)
        await crud.mark_email_verified(session, user)

        login_token = generate_login_token()
        await self._store.set(
            self._login_token_key(email), login_token, ttl_seconds=LOGIN_TOKEN_TTL_SECONDS
        )
        return OTPVerifyResult(OTPVerifyStatus.VERIFIED, login_token=login_token, user=user)

    async def consume_login_token(
        self, session: AsyncSession, email: str, token: str
    ) -> Optional[User]:
        """Exchange a login token for its user. Tokens are single-use."""
        key = self._login_token_key(email)
        stored = await self._store.get(key)
        if not stored or not constant_time_equals(stored, token):
            return None
        await self._store.delete(key)
        return await crud.find_user_by_email(session, email)

    @staticmethod
    def _login_token_key(email: str) -> str:
        return f"{LOGIN_TOKEN_KEY_PREFIX}:{normalize_email(email)}"
