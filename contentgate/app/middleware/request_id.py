"""Request correlation.

Every request gets an id: the caller's ``X-Request-ID`` if supplied, else a
fresh UUID. The id is stored on ``request.state``, bound into the logging
context together with the path and method, and echoed on the response.
"""

import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from contentgate.app.core.logging import bind_request_context, clear_request_context

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIdMiddleware(BaseHTTPMiddleware):

    def __init__(self, app, header_name: str = REQUEST_ID_HEADER):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(self.header_name) or str(uuid.uuid4())
        request.state.request_id = request_id

        bind_request_context(
            request_id=request_id,
            path=request.url.path,
            method=request.method,
        )
        try:
            response = await call_next(request)
        finally:
            clear_request_context()

        response.headers[self.header_name] = request_id
        return response


def get_request_id(request: Request) -> str:
    """The id assigned by RequestIdMiddleware, or "unknown" outside it."""
    return getattr(request.state, "request_id", "unknown")
