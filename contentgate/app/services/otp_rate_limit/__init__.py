"""OTP attempt tracking and lockout backed by the key-value store."""

from .models import RateLimitInfo, RequestAllowance
from .service import OTPRateLimiter

__all__ = [
    "OTPRateLimiter",
    "RateLimitInfo",
    "RequestAllowance",
]
