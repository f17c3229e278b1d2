"""Request and response models shared by the API routers.

JSON bodies use camelCase; Python attributes stay snake_case.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from contentgate.app.core.utils import normalize_email


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _validate_email(v: str) -> str:
    v = normalize_email(v)
    # Lightweight validation without adding extra dependencies.
    if "@" not in v or v.startswith("@") or v.endswith("@"):
        raise ValueError("Valid email is required")
    return v


class RequestOTPRequest(CamelModel):
    email: str = Field(..., min_length=3, max_length=320)
    captcha_token: Optional[str] = None
    honeypot: Optional[str] = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return _validate_email(v)


class RequestOTPResponse(CamelModel):
    allowed: bool = True
    message: str


class VerifyOTPRequest(CamelModel):
    email: str = Field(..., min_length=3, max_length=320)
    otp: str = Field(..., min_length=1, max_length=32)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return _validate_email(v)

    @field_validator("otp")
    @classmethod
    def strip_otp(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Email and OTP are required")
        return v


class UserPublic(CamelModel):
    id: str
    email: str
    name: Optional[str] = None
    role: str
    is_premium: bool


class VerifyOTPResponse(CamelModel):
    success: bool = True
    login_token: str
    user: UserPublic


class SessionCreateRequest(CamelModel):
    email: str = Field(..., min_length=3, max_length=320)
    login_token: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return _validate_email(v)


class SessionResponse(CamelModel):
    success: bool = True
    user: Optional[UserPublic] = None


class ArticleAuthor(CamelModel):
    name: Optional[str] = None
    avatar: Optional[str] = None


class ArticleResponse(CamelModel):
    """An article as delivered to readers.

    ``content`` is empty whenever the read is locked; every other field is
    returned regardless so the client can render a teaser.
    """

    id: str
    title: str
    excerpt: Optional[str] = None
    content: str
    author: ArticleAuthor
    published_at: datetime
    updated_at: datetime
    category: str
    tags: List[str]
    read_time: Optional[int] = None
    likes: int
    comments: int
    featured: bool
    trending: bool
    cover_image: Optional[str] = None
    is_premium: bool
    locked: bool
    lock_reason: str
    monthly_limit: Optional[int] = None
    views_this_month: Optional[int] = None
    remaining_articles: Optional[int] = None
