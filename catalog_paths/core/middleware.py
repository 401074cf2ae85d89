from starlette.middleware.base import BaseHTTPMiddleware

from .observability import CORRELATION_HEADER, correlation_context


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        incoming = request.headers.get(CORRELATION_HEADER)
        with correlation_context(incoming, prefix="req") as correlation_id:
            response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response
