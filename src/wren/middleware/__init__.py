"""Middleware: Protocol-based, no inheritance required.

A middleware is any callable matching:
    async def mw(request: Request, next: Next) -> Response

Built-in middleware:
    RequestTrace -- Log method, path, status and elapsed time per request
"""

from wren.middleware.protocol import Middleware, Next
from wren.middleware.trace import RequestTrace

__all__ = [
    "Middleware",
    "Next",
    "RequestTrace",
]
