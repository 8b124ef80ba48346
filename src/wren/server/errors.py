"""Error handling pipeline for wren requests.

Maps the errors that can escape a handler to Response objects. Every
error is recovered here; none propagates out of the ASGI call.

- ``HTTPError``      -> its status, detail as plain text
- ``DecodeFailure``  -> the failure's status, detail as plain text
- ``DatabaseError``  -> 500 with the error text
- anything else     -> 500 ``Internal Server Error``, logged with traceback
"""

import logging
import traceback

from wren.data.errors import DatabaseError
from wren.decoding import DecodeFailure
from wren.errors import HTTPError, NotFound
from wren.http.request import Request
from wren.http.response import Response

logger = logging.getLogger("wren.server")

NOT_FOUND_BODY = "Nothing to see here!"


def handle_http_error(exc: HTTPError, request: Request) -> Response:
    """Map an HTTPError to a plain-text Response."""
    logger.debug("%d %s %s: %s", exc.status, request.method, request.path, exc.detail)
    body = NOT_FOUND_BODY if isinstance(exc, NotFound) else exc.detail or f"Error {exc.status}"
    return Response.plain(body, status=exc.status).with_headers(dict(exc.headers))


def handle_decode_failure(failure: DecodeFailure, request: Request) -> Response:
    """Map an unhandled decode failure to its status with a short text body."""
    logger.debug(
        "%d %s %s: %s from %s",
        failure.status,
        request.method,
        request.path,
        failure.kind.value,
        failure.source.value,
    )
    return Response.plain(failure.detail, status=failure.status)


def handle_database_error(exc: DatabaseError, request: Request) -> Response:
    """Map a data layer failure to 500 carrying the error text."""
    logger.error("500 %s %s: %s: %s", request.method, request.path, type(exc).__name__, exc)
    return Response.plain(str(exc), status=500)


def handle_internal_error(exc: Exception, request: Request, *, debug: bool = False) -> Response:
    """Handle unexpected exceptions as 500 errors."""
    logger.exception("500 %s %s", request.method, request.path)
    body = "Internal Server Error"
    if debug:
        body = f"{body}\n\n{''.join(traceback.format_exception(exc))}"
    return Response.plain(body, status=500)
