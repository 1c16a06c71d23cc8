import uuid
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from spendly.utils.request_ctx import request_id as rid_ctx


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Incoming X-Request-ID wins, else a fresh UUID4.

    The id lives in a contextvar for log lines and usage diagnostics and is
    echoed back on the response.
    """

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        token = rid_ctx.set(rid)
        try:
            response: Response = await call_next(request)
        finally:
            rid_ctx.reset(token)
        response.headers["X-Request-ID"] = rid
        return response
