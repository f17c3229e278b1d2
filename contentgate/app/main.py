from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from contentgate.app.api.articles import router as articles_router
from contentgate.app.api.auth import router as auth_router
from contentgate.app.core.config import settings
from contentgate.app.core.http_client import init_http_client
from contentgate.app.core.kv_store import get_kv_store
from contentgate.app.core.logging import get_logger, setup_logging
from contentgate.app.db.async_session import close_async_engine, init_async_db, verify_connection
from contentgate.app.exceptions import ContentGateException
from contentgate.app.middleware.request_id import RequestIdMiddleware, get_request_id

SESSION_COOKIE_NAME = "contentgate_session"
_HEALTH_PROBE_KEY = "_health_check_test"

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[Dict[str, Any]]:
    """Startup: HTTP client, database check and schema. Shutdown: store and engine."""
    async with init_http_client() as http_client:
        if not await verify_connection():
            raise RuntimeError("Cannot connect to database")
        await init_async_db()

        logger.info(
            "contentgate started",
            extra={
                "store_backend": get_kv_store().backend.value,
                "view_limits_enforced": settings.view_limits_enforced,
                "app_env": settings.app_env,
            },
        )
        yield {"http_client": http_client}

    await get_kv_store().close()
    await close_async_engine()
    logger.info("contentgate stopped")


async def _probe_store() -> Dict[str, Any]:
    store = get_kv_store()
    try:
        await store.set(_HEALTH_PROBE_KEY, "ping", ttl_seconds=5)
        echoed = await store.get(_HEALTH_PROBE_KEY)
        await store.delete(_HEALTH_PROBE_KEY)
    except Exception as e:
        return {"status": "error", "error": str(e)[:100]}
    return {"status": "ok" if echoed == "ping" else "error", "type": store.backend.value}


async def health() -> Dict[str, Any]:
    """Database and key-value store status; "degraded" if either fails."""
    components = {
        "database": {"status": "ok" if await verify_connection() else "error"},
        "store": await _probe_store(),
    }
    degraded = any(c["status"] != "ok" for c in components.values())
    return {"status": "degraded" if degraded else "ok", "components": components}


async def _handle_app_error(request: Request, exc: ContentGateException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error_code, "message": exc.message},
    )


async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Malformed bodies are a 400 here, not FastAPI's default 422.
    detail = "; ".join(str(err["msg"]) for err in exc.errors() if err.get("msg"))
    return JSONResponse(status_code=400, content={"error": "invalid_request", "message": detail})


async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    request_id = get_request_id(request)
    logger.exception(
        f"Unhandled {type(exc).__name__}",
        extra={"request_id": request_id, "exception_type": type(exc).__name__},
    )

    content: Dict[str, Any] = {
        "error": "internal_error",
        "message": "Internal server error",
        "request_id": request_id,
    }
    if settings.debug:
        content.update(message=str(exc), exception_type=type(exc).__name__)
    return JSONResponse(status_code=500, content=content)


def _register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ContentGateException, _handle_app_error)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)
    app.add_exception_handler(Exception, _handle_unexpected)


def create_app() -> FastAPI:
    """Build the application: logging, middleware, routers, health and error handlers."""
    setup_logging()

    app = FastAPI(
        title="contentgate",
        description="Article access control with monthly view quotas and e-mail code sign-in",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Added last runs first: the request id is bound before the session is decoded.
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret_key,
        session_cookie=SESSION_COOKIE_NAME,
        max_age=settings.session_max_age,
        same_site="lax",
        https_only=settings.secure_cookies,
    )
    app.add_middleware(RequestIdMiddleware)

    app.include_router(auth_router)
    app.include_router(articles_router)
    app.add_api_route("/health", health, methods=["GET"])

    _register_exception_handlers(app)
    return app


app = create_app()
