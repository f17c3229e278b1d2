"""Article read endpoints with draft, premium and monthly-quota gating."""

from typing import Optional

from fastapi import APIRouter, Request, Response

from contentgate.app.api.dependencies import (
    CurrentReaderDep,
    IdentityResolverDep,
    SessionDep,
    ViewQuotaDep,
)
from contentgate.app.api.schemas import ArticleAuthor, ArticleResponse
from contentgate.app.core.logging import get_log_context, get_logger
from contentgate.app.db import crud
from contentgate.app.db.models import Article
from contentgate.app.exceptions import ArticleNotFoundError
from contentgate.app.middleware.request_id import get_request_id
from contentgate.app.services.anon_identity import ANON_COOKIE_NAME
from contentgate.app.services.view_quota import AccessDecision, ArticleAccess

router = APIRouter(prefix="/api/articles", tags=["articles"])
logger = get_logger(__name__)


def _to_response(article: Article, decision: AccessDecision) -> ArticleResponse:
    author = article.author
    return ArticleResponse(
        id=article.slug,
        title=article.title,
        excerpt=article.excerpt,
        content=article.content if decision.include_content else "",
        author=ArticleAuthor(
            name=author.name if author else None,
            avatar=author.avatar if author else None,
        ),
        published_at=article.published_at or article.created_at,
        updated_at=article.updated_at,
        category=article.category or "Uncategorized",
        tags=list(article.tags or []),
        read_time=article.read_time,
        likes=article.likes_count,
        comments=article.comments_count,
        featured=article.featured,
        trending=article.trending,
        cover_image=article.cover_image,
        is_premium=article.premium,
        locked=decision.locked,
        lock_reason=decision.lock_reason.value,
        monthly_limit=decision.monthly_limit,
        views_this_month=decision.views_this_month,
        remaining_articles=decision.remaining_articles,
    )


async def _serve(
    article: Optional[Article],
    request: Request,
    response: Response,
    reader: CurrentReaderDep,
    quota: ViewQuotaDep,
    resolver: IdentityResolverDep,
) -> ArticleResponse:
    if article is None:
        raise ArticleNotFoundError()

    identity = resolver.resolve(reader.user_id, request.cookies.get(ANON_COOKIE_NAME))
    is_owner = reader.user_id is not None and reader.user_id == article.author_id

    decision = await quota.evaluate(
        role=reader.role,
        article=ArticleAccess(
            published=article.published,
            premium=article.premium,
            author_id=article.author_id,
        ),
        identity_key=identity.key,
        is_owner=is_owner,
    )
    if decision.not_found:
        raise ArticleNotFoundError()

    resolver.persist(response, identity)
    if decision.views_this_month is not None:
        resolver.publish_view_snapshot(response, decision.views_this_month)

    logger.debug(
        f"Article {article.slug} served (locked={decision.locked})",
        extra=get_log_context(
            request_id=get_request_id(request),
            identity=identity.key,
            role=reader.role.value,
            lock_reason=decision.lock_reason.value,
        ),
    )
    return _to_response(article, decision)


@router.get("/by-slug/{slug}", response_model=ArticleResponse)
async def get_article_by_slug(
    slug: str,
    request: Request,
    response: Response,
    session: SessionDep,
    reader: CurrentReaderDep,
    quota: ViewQuotaDep,
    resolver: IdentityResolverDep,
) -> ArticleResponse:
    article = await crud.find_article_by_slug(session, slug)
    return await _serve(article, request, response, reader, quota, resolver)


@router.get("/{article_id}", response_model=ArticleResponse)
async def get_article(
    article_id: str,
    request: Request,
    response: Response,
    session: SessionDep,
    reader: CurrentReaderDep,
    quota: ViewQuotaDep,
    resolver: IdentityResolverDep,
) -> ArticleResponse:
    """Same gating as the slug route, looked up by primary key."""
    article = await crud.get_article_by_id(session, article_id)
    return await _serve(article, request, response, reader, quota, resolver)
