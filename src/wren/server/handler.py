"""ASGI handler: translates ASGI scope/messages to wren types.

The only component that touches raw ASGI directly. Converts scope dicts
to typed Request objects, dispatches through middleware, routing and the
static fallback chain, and sends the Response back through ASGI send().

Per request::

    Matching -> Decoding -> Handling -> Responded
    Matching -> Resolving-Static -> Responded | NotFound -> Responded
"""

import inspect
import logging
from collections.abc import Callable
from typing import Any

from kida import Environment

from wren._internal.asgi import Receive, Scope, Send
from wren._internal.invoke import invoke
from wren.data.database import Database
from wren.data.errors import DatabaseError
from wren.decoding import DecodeFailure, decode, decode_target
from wren.errors import ConfigurationError, HTTPError, NotFound
from wren.http.request import Request
from wren.http.response import Response
from wren.middleware.protocol import Next
from wren.routing.route import RouteMatch
from wren.routing.router import Router
from wren.server.errors import (
    handle_database_error,
    handle_decode_failure,
    handle_http_error,
    handle_internal_error,
)
from wren.server.negotiation import negotiate
from wren.server.sender import send_response
from wren.static import DirectoryRedirect, FileHit, StaticResolver, file_response, redirect_response

logger = logging.getLogger("wren.server")

_STATIC_METHODS = frozenset({"GET", "HEAD"})


async def handle_request(
    scope: Scope,
    receive: Receive,
    send: Send,
    *,
    router: Router,
    resolver: StaticResolver | None,
    middleware: tuple[Callable[..., Any], ...],
    kida_env: Environment | None = None,
    db: Database | None = None,
    debug: bool = False,
    max_body_size: int | None = None,
) -> None:
    """Process a single HTTP request through the full pipeline."""
    if scope["type"] != "http":
        return

    request = Request.from_asgi(scope, receive, max_body_size=max_body_size)

    # Innermost handler: route errors become responses here so middleware
    # always sees the final status.
    async def dispatch(req: Request) -> Response:
        try:
            return await _dispatch(req, router=router, resolver=resolver, kida_env=kida_env, db=db)
        except DecodeFailure as failure:
            return handle_decode_failure(failure, req)
        except HTTPError as exc:
            return handle_http_error(exc, req)
        except DatabaseError as exc:
            return handle_database_error(exc, req)
        except Exception as exc:
            return handle_internal_error(exc, req, debug=debug)

    # Wrap middleware around the dispatch
    handler: Next = dispatch
    for mw in reversed(middleware):
        outer = handler

        async def make_next(req: Request, _mw: Any = mw, _next: Next = outer) -> Response:
            return await _mw(req, _next)

        handler = make_next

    try:
        response = await handler(request)
    except HTTPError as exc:
        response = handle_http_error(exc, request)
    except Exception as exc:
        response = handle_internal_error(exc, request, debug=debug)

    await send_response(response, send, head=request.method == "HEAD")


async def _dispatch(
    request: Request,
    *,
    router: Router,
    resolver: StaticResolver | None,
    kida_env: Environment | None,
    db: Database | None,
) -> Response:
    try:
        match = router.match(request.method, request.path)
    except NotFound:
        if resolver is None or request.method not in _STATIC_METHODS:
            raise
        return await _serve_static(resolver, request)
    return await _invoke_handler(match, request, kida_env=kida_env, db=db)


async def _serve_static(resolver: StaticResolver, request: Request) -> Response:
    """Resolve an unrouted GET/HEAD through the static chain, or raise NotFound."""
    match await resolver.resolve(request.path):
        case FileHit() as hit:
            logger.debug("static %s -> %s", request.path, hit.path)
            return await file_response(hit)
        case DirectoryRedirect() as redirect:
            return redirect_response(redirect)
        case _:
            raise NotFound()


async def _invoke_handler(
    match: RouteMatch,
    request: Request,
    *,
    kida_env: Environment | None = None,
    db: Database | None = None,
) -> Response:
    """Call the matched route handler, converting path params and return value."""
    handler = match.route.handler

    # Carry over the body cache so bytes read by middleware aren't lost
    request = request.with_path_params(match.path_params)

    kwargs = await _build_handler_kwargs(handler, request, match.path_params, db)

    # Call the handler (sync or async; invoke() handles both)
    result = await invoke(handler, **kwargs)

    return negotiate(result, kida_env=kida_env)


async def _build_handler_kwargs(
    handler: Callable[..., Any],
    request: Request,
    path_params: dict[str, str],
    db: Database | None,
) -> dict[str, Any]:
    """Inspect handler signature and build kwargs from the request.

    Resolution order:
    1. ``request`` parameter (by name or ``Request`` annotation)
    2. ``Database`` annotation -> the app's database
    3. Path parameters (by name, with scalar conversion)
    4. Typed decoding (dataclass annotation -> query string or body)
    """
    sig = inspect.signature(handler, eval_str=True)
    kwargs: dict[str, Any] = {}

    for name, param in sig.parameters.items():
        annotation = param.annotation
        if name == "request" or annotation is Request:
            kwargs[name] = request
        elif annotation is Database:
            if db is None:
                msg = (
                    f"Handler {handler.__name__!r} asks for a Database but none is "
                    "configured. Set AppConfig.database_url or pass db= to App."
                )
                raise ConfigurationError(msg)
            kwargs[name] = db
        elif name in path_params:
            kwargs[name] = _convert_path_param(name, path_params[name], annotation)
        elif (target := decode_target(annotation)) is not None:
            try:
                kwargs[name] = await decode(target.cls, request, target.source)
            except DecodeFailure as failure:
                if not target.accepts_failure:
                    raise
                kwargs[name] = failure

    return kwargs


def _convert_path_param(name: str, value: str, annotation: Any) -> Any:
    if annotation in (int, float):
        try:
            return annotation(value)
        except ValueError:
            msg = f"Invalid value for path parameter {name!r}: {value!r}"
            raise HTTPError(status=400, detail=msg) from None
    return value
