"""API endpoints package for contentgate."""

from contentgate.app.api.articles import router as articles_router
from contentgate.app.api.auth import router as auth_router

__all__ = [
    "articles_router",
    "auth_router",
]
