"""Pseudonymous reader identities for unauthenticated callers.

The ``anon_id`` cookie is the identity: no server-side table exists. A
client that loses the cookie starts with a fresh quota, which is accepted.
The value is never interpreted, only used verbatim as part of the key.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

from starlette.responses import Response

ANON_COOKIE_NAME = "anon_id"
ANON_COOKIE_MAX_AGE = 365 * 24 * 60 * 60
VIEWS_COOKIE_NAME = "article_views"
VIEWS_COOKIE_MAX_AGE = 30 * 24 * 60 * 60


@dataclass(frozen=True)
class ReaderIdentity:
    """Who is reading, as used for quota keys.

    Attributes:
        key: ``user:<id>`` or ``anon:<uuid>``
        user_id: Authenticated user id, if any
        anon_id: Anonymous token, if unauthenticated
        issued: True when anon_id was minted for this request
    """
    key: str
    user_id: Optional[str] = None
    anon_id: Optional[str] = None
    issued: bool = False

    @property
    def is_anonymous(self) -> bool:
        return self.user_id is None


class AnonymousIdentityResolver:
    """Resolves reader identities and persists anonymous tokens."""

    def __init__(self, secure_cookies: bool = False) -> None:
        self._secure = secure_cookies

    def resolve(
        self, user_id: Optional[str], anon_token: Optional[str]
    ) -> ReaderIdentity:
        if user_id:
            return ReaderIdentity(key=f"user:{user_id}", user_id=str(user_id))
        if anon_token:
            return ReaderIdentity(key=f"anon:{anon_token}", anon_id=anon_token)
        minted = str(uuid.uuid4())
        return ReaderIdentity(key=f"anon:{minted}", anon_id=minted, issued=True)

    def persist(self, response: Response, identity: ReaderIdentity) -> None:
        """Ask the client to keep a freshly minted anonymous token."""
        if not identity.issued or identity.anon_id is None:
            return
        response.set_cookie(
            ANON_COOKIE_NAME,
            identity.anon_id,
            max_age=ANON_COOKIE_MAX_AGE,
            path="/",
            httponly=True,
            secure=self._secure,
            samesite="lax",
        )

    def publish_view_snapshot(self, response: Response, views: int) -> None:
        """Mirror the server-side count in a script-readable cookie.

        Descriptive only; the store remains the source of truth.
        """
        response.set_cookie(
            VIEWS_COOKIE_NAME,
            str(views),
            max_age=VIEWS_COOKIE_MAX_AGE,
            path="/",
            httponly=False,
            secure=self._secure,
            samesite="lax",
        )
