"""
API Module
"""
from .middleware import RequestLoggingMiddleware
from .responses import QueryFailed, register_exception_handlers, success

__all__ = [
    "RequestLoggingMiddleware",
    "QueryFailed",
    "register_exception_handlers",
    "success",
]
