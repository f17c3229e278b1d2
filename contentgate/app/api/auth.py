"""E-mail one-time code sign-in endpoints.

Flow:
1. POST /api/auth/request-otp    e-mails a 6-digit code
2. POST /api/auth/verify-otp     checks the code, returns a login token
3. POST /api/auth/session        exchanges the login token for a session
4. DELETE /api/auth/session      signs out
"""

from typing import Optional

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from contentgate.app.api.dependencies import SESSION_USER_KEY, OTPAuthDep, SessionDep
from contentgate.app.api.schemas import (
    RequestOTPRequest,
    RequestOTPResponse,
    SessionCreateRequest,
    SessionResponse,
    UserPublic,
    VerifyOTPRequest,
    VerifyOTPResponse,
)
from contentgate.app.core.logging import get_logger
from contentgate.app.core.utils import mask_email
from contentgate.app.db.models import User
from contentgate.app.exceptions import AuthenticationError
from contentgate.app.services.otp_auth import OTPRequestStatus, OTPVerifyStatus

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = get_logger(__name__)

BLOCKED_MESSAGE = "Account temporarily blocked due to too many failed attempts."


def _client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def _user_public(user: User) -> UserPublic:
    return UserPublic(
        id=user.id,
        email=user.email,
        name=user.name,
        role=user.role,
        is_premium=user.is_premium,
    )


@router.post("/request-otp", response_model=RequestOTPResponse)
async def request_otp(data: RequestOTPRequest, request: Request, otp_auth: OTPAuthDep):
    """Send a sign-in code.

    The response is the same whether or not the address has an account.
    """
    result = await otp_auth.request_code(
        data.email,
        captcha_token=data.captcha_token,
        honeypot=data.honeypot,
        remote_ip=_client_ip(request),
    )

    if result.status is OTPRequestStatus.SPAM:
        logger.warning(f"Honeypot triggered for {mask_email(data.email)}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Spam detected"},
        )
    if result.status is OTPRequestStatus.CAPTCHA_FAILED:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Captcha verification failed"},
        )
    if result.status is OTPRequestStatus.COOLDOWN:
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={
                "allowed": False,
                "error": "Too many requests. Please wait before trying again.",
                "nextAttemptIn": result.next_attempt_in,
            },
        )
    if result.status is OTPRequestStatus.BLOCKED:
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={"error": BLOCKED_MESSAGE, "blockExpiresIn": result.block_expires_in},
        )

    return RequestOTPResponse(allowed=True, message="Code sent successfully")


@router.post("/verify-otp", response_model=VerifyOTPResponse)
async def verify_otp(data: VerifyOTPRequest, session: SessionDep, otp_auth: OTPAuthDep):
    """Verify a sign-in code and return a single-use login token."""
    result = await otp_auth.verify_code(session, data.email, data.otp)

    if result.status is OTPVerifyStatus.BLOCKED:
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={"error": BLOCKED_MESSAGE, "blockExpiresIn": result.block_expires_in},
        )
    if result.status is OTPVerifyStatus.INVALID:
        # Same message for wrong, expired and never-issued codes.
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid or expired code. Please try again."},
        )

    return VerifyOTPResponse(
        success=True,
        login_token=result.login_token,
        user=_user_public(result.user),
    )


@router.post("/session", response_model=SessionResponse)
async def create_session(
    data: SessionCreateRequest,
    request: Request,
    session: SessionDep,
    otp_auth: OTPAuthDep,
) -> SessionResponse:
    """Establish a signed session cookie from a login token.

    Raises:
        AuthenticationError: token missing, expired, already used or wrong
    """
    user = await otp_auth.consume_login_token(session, data.email, data.login_token)
    if user is None:
        raise AuthenticationError()

    request.session[SESSION_USER_KEY] = user.id
    logger.info(f"Session established for {mask_email(user.email)}")
    return SessionResponse(success=True, user=_user_public(user))


@router.delete("/session", response_model=SessionResponse)
async def delete_session(request: Request) -> SessionResponse:
    request.session.clear()
    return SessionResponse(success=True)
