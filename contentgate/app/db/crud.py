"""User and article lookups used by the auth and article routes."""

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from contentgate.app.core.utils import normalize_email
from contentgate.app.db.models import Article, User


async def find_user_by_email(session: AsyncSession, email: str) -> Optional[User]:
    result = await session.execute(
        select(User).where(User.email == normalize_email(email))
    )
    return result.scalar_one_or_none()


async def get_user_by_id(session: AsyncSession, user_id: str) -> Optional[User]:
    result = await session.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def create_user(
    session: AsyncSession,
    email: str,
    name: Optional[str] = None,
    role: str = "FREE_USER",
    email_verified: bool = False,
) -> User:
    """Create a user. The name defaults to the e-mail's local part.

    Args:
        session: Database session
        email: E-mail address (normalized before storing)
        name: Display name
        role: Stored role string
        email_verified: Whether the address is already verified

    Returns:
        The flushed User (id populated)
    """
    email = normalize_email(email)
    user = User(
        id=str(uuid.uuid4()),
        email=email,
        name=name or email.split("@")[0],
        role=role,
        email_verified=email_verified,
    )
    session.add(user)
    await session.flush()
    return user


async def mark_email_verified(session: AsyncSession, user: User) -> User:
    if not user.email_verified:
        user.email_verified = True
        await session.flush()
    return user


async def find_article_by_slug(session: AsyncSession, slug: str) -> Optional[Article]:
    result = await session.execute(select(Article).where(Article.slug == slug))
    return result.scalar_one_or_none()


async def get_article_by_id(session: AsyncSession, article_id: str) -> Optional[Article]:
    result = await session.execute(select(Article).where(Article.id == article_id))
    return result.scalar_one_or_none()
