"""Route table with exact, segment-by-segment matching.

A path pattern is a sequence of literal segments and named variables.
Variables are written ``{name}`` or ``:name`` and match exactly one
non-empty segment. Patterns are tried in registration order; a literal
pattern registered for the same shape always wins over a variable one
because literals are tried first.
"""

import re

from wren.errors import ConfigurationError, MethodNotAllowed, NotFound
from wren.routing.route import PathSegment, Route, RouteMatch

_PARAM_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def parse_path(path: str) -> tuple[PathSegment, ...]:
    """Parse a route path string into segments.

    Examples::

        "/"                     -> ()
        "/query"                -> (PathSegment("query"),)
        "/returnTemplate/{name}" -> (PathSegment("returnTemplate"),
                                     PathSegment("{name}", param_name="name"))
        "/returnTemplate/:name"  -> same as above

    Raises ``ConfigurationError`` for malformed variable segments.
    """
    if not path.startswith("/"):
        msg = f"Route path must start with '/': {path!r}"
        raise ConfigurationError(msg)

    segments: list[PathSegment] = []
    for part in path.strip("/").split("/"):
        if not part:
            continue
        name: str | None = None
        if part.startswith("{") and part.endswith("}"):
            name = part[1:-1]
        elif part.startswith(":"):
            name = part[1:]
        elif "<" in part or "{" in part or "}" in part:
            msg = (
                f"Invalid route segment {part!r} in {path!r}. "
                "Use {name} or :name for path variables."
            )
            raise ConfigurationError(msg)

        if name is not None and not _PARAM_NAME.match(name):
            msg = f"Invalid path variable name {name!r} in {path!r}"
            raise ConfigurationError(msg)
        segments.append(PathSegment(value=part, param_name=name))
    return tuple(segments)


def _split(path: str) -> list[str]:
    # ASGI delivers scope["path"] already percent-decoded
    return [p for p in path.strip("/").split("/") if p]


class Router:
    """Route table matched segment by segment.

    Usage::

        router = Router()
        router.add(Route("/users/{name}", handler, frozenset({"GET"})))
        router.compile()
        match = router.match("GET", "/users/alice")
    """

    __slots__ = ("_compiled", "_entries")

    def __init__(self) -> None:
        self._entries: list[tuple[tuple[PathSegment, ...], Route]] = []
        self._compiled = False

    def add(self, route: Route) -> None:
        """Add a route. Must be called before ``compile()``."""
        if self._compiled:
            msg = "Cannot add routes after compilation."
            raise RuntimeError(msg)

        segments = parse_path(route.path)
        for existing, other in self._entries:
            if _same_shape(existing, segments) and route.methods & other.methods:
                clash = ", ".join(sorted(route.methods & other.methods))
                msg = (
                    f"Duplicate route {clash} {route.path!r} "
                    f"(already registered as {other.path!r})"
                )
                raise ConfigurationError(msg)
        self._entries.append((segments, route))

    def compile(self) -> None:
        """Freeze the table and order literal patterns before variable ones."""
        self._entries.sort(key=lambda entry: [seg.is_param for seg in entry[0]])
        self._compiled = True

    @property
    def routes(self) -> list[Route]:
        """All registered routes, in match order once compiled."""
        return [route for _, route in self._entries]

    def match(self, method: str, path: str) -> RouteMatch:
        """Match a request method and path.

        Returns a ``RouteMatch`` on success.
        Raises ``NotFound`` if no pattern matches the path.
        Raises ``MethodNotAllowed`` if patterns match the path but none
        accepts the method.
        """
        parts = _split(path)
        allowed: set[str] = set()

        for segments, route in self._entries:
            params = _match_segments(segments, parts)
            if params is None:
                continue
            if method in route.methods or (method == "HEAD" and "GET" in route.methods):
                return RouteMatch(route=route, path_params=params)
            allowed.update(route.methods)

        if allowed:
            raise MethodNotAllowed(frozenset(allowed))
        raise NotFound(f"No route matches {method} {path!r}")


def _match_segments(segments: tuple[PathSegment, ...], parts: list[str]) -> dict[str, str] | None:
    if len(segments) != len(parts):
        return None
    params: dict[str, str] = {}
    for seg, part in zip(segments, parts, strict=True):
        if seg.param_name is not None:
            params[seg.param_name] = part
        elif seg.value != part:
            return None
    return params


def _same_shape(a: tuple[PathSegment, ...], b: tuple[PathSegment, ...]) -> bool:
    if len(a) != len(b):
        return False
    return all(
        (x.is_param and y.is_param) or (not x.is_param and not y.is_param and x.value == y.value)
        for x, y in zip(a, b, strict=True)
    )
