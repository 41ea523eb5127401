import time
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from fastapi import Request

from ..core.database import async_session_maker
from ..models.db_models import AccessLog

logger = logging.getLogger("Gawin.AccessLog")

EXCLUDED_PATHS = {"/health", "/favicon.ico", "/docs", "/redoc", "/openapi.json"}


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class AccessLogMiddleware(BaseHTTPMiddleware):
    """One AccessLog row per request. A failed write is logged, never raised."""

    def __init__(self, app, session_maker=async_session_maker):
        super().__init__(app)
        self.session_maker = session_maker

    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()
        response = await call_next(request)
        process_time_ms = (time.perf_counter() - start_time) * 1000

        path = request.url.path
        if path in EXCLUDED_PATHS or path.startswith("/static"):
            return response

        try:
            async with self.session_maker() as session:
                session.add(AccessLog(
                    ip_address=client_ip(request),
                    path=path,
                    method=request.method,
                    status_code=response.status_code,
                    process_time_ms=round(process_time_ms, 2),
                    user_agent=request.headers.get("user-agent", ""),
                ))
                await session.commit()
        except Exception as e:
            logger.error(f"Failed to write access log for {request.method} {path}: {e}")

        return response
