"""
Middleware
"""
from .access_logging import AccessLogMiddleware

__all__ = [
    "AccessLogMiddleware",
]
