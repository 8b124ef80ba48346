"""Request tracing middleware.

Logs one line per request on the ``wren.access`` logger::

    GET /query?foo=1&bar=x 200 1.4ms

5xx responses are logged at WARNING, everything else at INFO.
"""

import logging
import time

from wren.http.request import Request
from wren.http.response import Response
from wren.middleware.protocol import Next


class RequestTrace:
    """Middleware that logs method, path, status and elapsed time.

    Usage::

        app.add_middleware(RequestTrace())
    """

    __slots__ = ("_logger",)

    def __init__(self, logger_name: str = "wren.access") -> None:
        self._logger = logging.getLogger(logger_name)

    async def __call__(self, request: Request, next: Next) -> Response:
        start = time.perf_counter()
        try:
            response = await next(request)
        except Exception:
            elapsed = (time.perf_counter() - start) * 1000
            self._logger.warning("%s %s failed after %.1fms", request.method, request.url, elapsed)
            raise

        elapsed = (time.perf_counter() - start) * 1000
        if response.status >= 500:
            self._logger.warning(
                "%s %s %d %.1fms", request.method, request.url, response.status, elapsed
            )
        else:
            self._logger.info(
                "%s %s %d %.1fms", request.method, request.url, response.status, elapsed
            )
        return response
