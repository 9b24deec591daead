"""Request context middleware.

Gives every request an id (taken from ``X-Request-ID`` when the caller sends
one), makes it the active logging context while the request is served, and
echoes it back in the response headers.
"""

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from nexa_search.observability.logging import (
    RequestContext,
    bind_request_context,
    reset_request_context,
)

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 128


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a RequestContext around each request."""

    async def dispatch(self, request: Request, call_next):
        incoming = request.headers.get(REQUEST_ID_HEADER, "").strip()

        context = RequestContext(method=request.method, path=request.url.path)
        if incoming:
            context.request_id = incoming[:MAX_REQUEST_ID_LENGTH]

        token = bind_request_context(context)
        try:
            response = await call_next(request)
        finally:
            reset_request_context(token)

        response.headers[REQUEST_ID_HEADER] = context.request_id
        return response
