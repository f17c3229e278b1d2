"""Services package for contentgate.

This package provides:
- OTP attempt counting, lockouts and request cooldowns
- Monthly view metering and article access decisions
- Anonymous reader identities
- The e-mail code sign-in flow and its collaborators (e-mail, captcha)
"""

from contentgate.app.services.otp_rate_limit import (
    OTPRateLimiter,
    RateLimitInfo,
    RequestAllowance,
)
from contentgate.app.services.view_quota import (
    AccessDecision,
    AccessOutcome,
    ArticleAccess,
    LockReason,
    Role,
    ViewQuotaService,
)
from contentgate.app.services.anon_identity import (
    AnonymousIdentityResolver,
    ReaderIdentity,
)
from contentgate.app.services.otp_auth import (
    OTPAuthService,
    OTPRequestResult,
    OTPRequestStatus,
    OTPVerifyResult,
    OTPVerifyStatus,
)

__all__ = [
    # OTP rate limiting
    "OTPRateLimiter",
    "RateLimitInfo",
    "RequestAllowance",
    # View quota
    "AccessDecision",
    "AccessOutcome",
    "ArticleAccess",
    "LockReason",
    "Role",
    "ViewQuotaService",
    # Anonymous identity
    "AnonymousIdentityResolver",
    "ReaderIdentity",
    # Sign-in flow
    "OTPAuthService",
    "OTPRequestResult",
    "OTPRequestStatus",
    "OTPVerifyResult",
    "OTPVerifyStatus",
]
