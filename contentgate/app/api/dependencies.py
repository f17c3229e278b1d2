"""FastAPI dependency providers.

These are the only place request handlers meet settings: each provider
turns configuration into explicit constructor arguments. Tests replace
them through ``app.dependency_overrides``.
"""

from dataclasses import dataclass
from typing import Annotated, Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from contentgate.app.core.config import settings
from contentgate.app.core.http_client import get_http_client
from contentgate.app.core.kv_store import KVStore, get_kv_store
from contentgate.app.core.logging import get_logger
from contentgate.app.db import crud
from contentgate.app.db.async_session import get_db
from contentgate.app.db.models import User
from contentgate.app.services.anon_identity import AnonymousIdentityResolver
from contentgate.app.services.captcha import CaptchaVerifier
from contentgate.app.services.email import EmailSender
from contentgate.app.services.otp_auth import OTPAuthService
from contentgate.app.services.view_quota import Role, ViewQuotaService, effective_role

logger = get_logger(__name__)

SESSION_USER_KEY = "user_id"

SessionDep = Annotated[AsyncSession, Depends(get_db)]


def get_store() -> KVStore:
    return get_kv_store()


StoreDep = Annotated[KVStore, Depends(get_store)]


def get_view_quota_service(store: StoreDep) -> ViewQuotaService:
    return ViewQuotaService(
        store,
        enforce=settings.view_limits_enforced,
        require_remote_store=settings.is_production,
        free_limit=settings.view_limit_free,
        anonymous_limit=settings.view_limit_anonymous,
    )


def get_identity_resolver() -> AnonymousIdentityResolver:
    return AnonymousIdentityResolver(secure_cookies=settings.secure_cookies)


def get_email_sender() -> EmailSender:
    return EmailSender(settings)


def get_captcha_verifier() -> CaptchaVerifier:
    return CaptchaVerifier(
        secret_key=settings.turnstile_secret_key,
        verify_url=settings.turnstile_verify_url,
        client_factory=get_http_client,
    )


def get_otp_auth_service(
    store: StoreDep,
    captcha: Annotated[CaptchaVerifier, Depends(get_captcha_verifier)],
    email_sender: Annotated[EmailSender, Depends(get_email_sender)],
) -> OTPAuthService:
    return OTPAuthService(
        store,
        captcha=captcha,
        email_sender=email_sender,
        require_remote_store=settings.is_production,
    )


@dataclass
class CurrentReader:
    """The caller as seen by access control."""
    user: Optional[User]
    role: Role

    @property
    def user_id(self) -> Optional[str]:
        return self.user.id if self.user is not None else None


async def get_current_reader(request: Request, session: SessionDep) -> CurrentReader:
    """Resolve the signed-in user from the session cookie.

    A session pointing at a deleted user is cleared and the caller is
    treated as anonymous.
    """
    user_id = request.session.get(SESSION_USER_KEY)
    if not user_id:
        return CurrentReader(user=None, role=Role.ANONYMOUS)

    user = await crud.get_user_by_id(session, str(user_id))
    if user is None:
        logger.info("Session refers to an unknown user; clearing it")
        request.session.pop(SESSION_USER_KEY, None)
        return CurrentReader(user=None, role=Role.ANONYMOUS)

    return CurrentReader(user=user, role=effective_role(user.role, user.premium_expires))


ViewQuotaDep = Annotated[ViewQuotaService, Depends(get_view_quota_service)]
IdentityResolverDep = Annotated[AnonymousIdentityResolver, Depends(get_identity_resolver)]
OTPAuthDep = Annotated[OTPAuthService, Depends(get_otp_auth_service)]
CurrentReaderDep = Annotated[CurrentReader, Depends(get_current_reader)]
