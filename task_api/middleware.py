import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def _level_for(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id and log one line when it finishes."""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        start = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            # the catch-all handler answers outside this middleware
            self._log(request, request_id, start, 500, None)
            raise

        self._log(request, request_id, start, response.status_code, response.headers.get("content-length"))
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    @staticmethod
    def _log(request: Request, request_id: str, start: float, status_code: int, content_length):
        duration_ms = (time.perf_counter() - start) * 1000
        url = request.url.path
        if request.url.query:
            url = f"{url}?{request.url.query}"

        logger.log(
            _level_for(status_code),
            "HTTP request",
            extra={
                "method": request.method,
                "url": url,
                "status": status_code,
                "content_length": content_length,
                "user_agent": request.headers.get("user-agent"),
                "ip": request.client.host if request.client else None,
                "duration": f"{duration_ms:.1f}ms",
                "request_id": request_id,
            },
        )
