"""Data models for OTP rate limiting."""

from dataclasses import dataclass
from typing import Optional


@dataclass
class RateLimitInfo:
    """Snapshot of an identity's verification attempts.

    Attributes:
        attempts: Failed verifications in the current 15-minute window
        is_blocked: Whether a block marker is active
        block_expires_in: Seconds until the block lifts (only when blocked)
        next_attempt_in: Seconds until a new code may be requested
    """
    attempts: int
    is_blocked: bool
    block_expires_in: Optional[int] = None
    next_attempt_in: Optional[int] = None


@dataclass
class RequestAllowance:
    """Result of a code-issuance cooldown check."""
    allowed: bool
    next_attempt_in: Optional[int] = None
