"""Wren: a small ASGI web layer.

Routes requests, decodes typed payloads, falls back to static assets and
reads from a bounded database pool.

Basic usage::

    from wren import App

    app = App()

    @app.route("/")
    def index():
        return "<h1>Hello, World!</h1>"

    app.run()

Typed decoding::

    @dataclass(frozen=True, slots=True)
    class Submission:
        name: str
        email: str

    @app.route("/json", methods=["POST"])
    async def post_json(submission: Annotated[Submission, JSON]):
        ...

Data access (``pip install wren[pg]`` for PostgreSQL)::

    @app.route("/count")
    async def count(db: Database):
        return str(await db.fetch_val("SELECT COUNT(*) FROM users"))
"""

__version__ = "0.1.0"
__all__ = [
    "FORM",
    "JSON",
    "QUERY",
    "App",
    "AppConfig",
    "ConfigurationError",
    "Database",
    "DecodeFailure",
    "DecodeFailureKind",
    "HTTPError",
    "MethodNotAllowed",
    "Middleware",
    "Next",
    "NotFound",
    "Redirect",
    "Request",
    "Response",
    "Template",
    "WrenError",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import wren`` fast while providing a clean top-level API.
    """
    if name == "App":
        from wren.app import App

        return App

    if name == "AppConfig":
        from wren.config import AppConfig

        return AppConfig

    if name == "Database":
        from wren.data.database import Database

        return Database

    if name == "Request":
        from wren.http.request import Request

        return Request

    if name in ("Response", "Redirect"):
        from wren.http import response as _resp

        return getattr(_resp, name)

    if name == "Template":
        from wren.templating.returns import Template

        return Template

    if name in ("DecodeFailure", "DecodeFailureKind", "QUERY", "FORM", "JSON"):
        from wren import decoding as _decoding

        return getattr(_decoding, name)

    if name in ("Middleware", "Next"):
        from wren.middleware import protocol as _mw

        return getattr(_mw, name)

    if name in ("WrenError", "ConfigurationError", "HTTPError", "MethodNotAllowed", "NotFound"):
        from wren import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
