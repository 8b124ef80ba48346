"""Wren application class.

Mutable during setup (route registration, static mounts, middleware).
Frozen at runtime when app.run() or __call__() is first invoked.
"""

import inspect
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from kida import Environment

from wren._internal.asgi import Receive, Scope, Send
from wren.config import AppConfig
from wren.data.database import Database
from wren.errors import ConfigurationError
from wren.middleware.protocol import Middleware
from wren.routing.route import Route
from wren.routing.router import Router
from wren.server.handler import handle_request
from wren.static import StaticMount, StaticResolver
from wren.templating.integration import create_environment

logger = logging.getLogger("wren.server")

type Handler = Callable[..., Any]


@dataclass(slots=True)
class _PendingRoute:
    """A route waiting to be compiled."""

    path: str
    handler: Handler
    methods: list[str] | None
    name: str | None


class App:
    """The wren application.

    Mutable during setup (routes, mounts, middleware, hooks).
    Frozen at runtime when ``app.run()`` or ``__call__()`` is first invoked.

    Thread safety:
        The setup phase is single-threaded (decorators at import time).
        The freeze transition uses a Lock + double-check so exactly one
        thread compiles the route table and the static chain.

    Usage::

        app = App(AppConfig(database_url="sqlite:///app.db"))
        app.mount("/assets", "assets")
        app.fallback("assets2", not_found_file="index.html")

        @app.route("/")
        def index():
            return "<h1>Hello, World!</h1>"
    """

    __slots__ = (
        "_db",
        "_fallback",
        "_freeze_lock",
        "_frozen",
        "_kida_env",
        "_middleware",
        "_middleware_list",
        "_mounts",
        "_pending_routes",
        "_resolver",
        # Compiled state (populated by _freeze)
        "_router",
        "_shutdown_hooks",
        "_startup_hooks",
        "config",
    )

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        db: Database | str | None = None,
    ) -> None:
        self.config: AppConfig = config or AppConfig()
        self._pending_routes: list[_PendingRoute] = []
        self._middleware_list: list[Middleware] = []
        self._mounts: list[StaticMount] = []
        self._fallback: StaticMount | None = None
        self._startup_hooks: list[Callable[..., Any]] = []
        self._shutdown_hooks: list[Callable[..., Any]] = []
        self._frozen: bool = False
        self._freeze_lock: threading.Lock = threading.Lock()

        # Database: a Database instance, a URL, or config.database_url.
        # When set, lifespan connects it at startup and disconnects it at shutdown.
        url = db if isinstance(db, str) else self.config.database_url
        if isinstance(db, Database):
            self._db: Database | None = db
        elif url is not None:
            self._db = Database(
                url,
                pool_size=self.config.pool_size,
                acquire_timeout=self.config.pool_acquire_timeout,
                echo=self.config.db_echo,
            )
        else:
            self._db = None

        # Compiled state, set during _freeze()
        self._router: Router | None = None
        self._resolver: StaticResolver | None = None
        self._middleware: tuple[Callable[..., Any], ...] = ()
        self._kida_env: Environment | None = None

    # -- Route registration --

    def route(
        self,
        path: str,
        *,
        methods: list[str] | None = None,
        name: str | None = None,
    ) -> Callable[[Handler], Handler]:
        """Register a route handler via decorator.

        Args:
            path: URL path pattern. Use ``{param}`` or ``:param`` for path
                parameters.
            methods: HTTP methods. Defaults to ``["GET"]``.
            name: Optional route name.
        """

        def decorator(func: Handler) -> Handler:
            self._check_not_frozen()
            self._pending_routes.append(_PendingRoute(path, func, methods, name))
            return func

        return decorator

    # -- Static files --

    def mount(
        self,
        prefix: str,
        directory: str | Path,
        *,
        not_found_file: str | None = None,
        index: str = "index.html",
    ) -> StaticMount:
        """Serve *directory* under *prefix*.

        Mounts are consulted in registration order, after routes. When a
        file is missing, *not_found_file* (if given) is served with 200;
        otherwise the request ends in a 404.
        """
        self._check_not_frozen()
        mount = StaticMount(
            prefix,
            Path(directory),
            not_found_file=not_found_file,
            index=index,
            cache_control=self.config.static_cache_control,
        )
        if any(m.prefix == mount.prefix for m in self._mounts):
            msg = f"A static mount is already registered for {mount.prefix or '/'!r}"
            raise ConfigurationError(msg)
        self._mounts.append(mount)
        return mount

    def fallback(
        self,
        directory: str | Path,
        *,
        not_found_file: str | None = None,
        index: str = "index.html",
    ) -> StaticMount:
        """Serve *directory* for paths no route or mount matched.

        The full request path is looked up under *directory*. Always
        consulted last.
        """
        self._check_not_frozen()
        self._fallback = StaticMount(
            "/",
            Path(directory),
            not_found_file=not_found_file,
            index=index,
            cache_control=self.config.static_cache_control,
        )
        return self._fallback

    # -- Database --

    @property
    def db(self) -> Database:
        """The database instance, if configured.

        Handlers normally receive it by annotating a parameter ``Database``.
        Raises ``RuntimeError`` if no database was configured on this app.
        """
        if self._db is None:
            msg = (
                "No database configured. Pass db= to App() or set "
                "AppConfig.database_url (WREN_DATABASE_URL)."
            )
            raise RuntimeError(msg)
        return self._db

    @property
    def has_db(self) -> bool:
        return self._db is not None

    # -- Middleware --

    def add_middleware(self, middleware: Middleware) -> None:
        """Add a middleware to the pipeline."""
        self._check_not_frozen()
        self._middleware_list.append(middleware)

    # -- Lifecycle hooks --

    def on_startup(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register an async or sync startup hook via decorator.

        Hooks run in registration order during ASGI lifespan startup,
        after the database pool is built.
        """
        self._check_not_frozen()
        self._startup_hooks.append(func)
        return func

    def on_shutdown(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register an async or sync shutdown hook via decorator.

        Hooks run in registration order during ASGI lifespan shutdown,
        before the database pool is closed.
        """
        self._check_not_frozen()
        self._shutdown_hooks.append(func)
        return func

    # -- Server --

    def run(
        self,
        host: str | None = None,
        port: int | None = None,
        *,
        app_path: str | None = None,
    ) -> None:
        """Configure logging, compile the app and serve it on pounce.

        Args:
            host: Override bind host.
            port: Override bind port.
            app_path: ``"module:attribute"`` import string, used for reload.
        """
        from wren.logs import configure_logging
        from wren.server.run import run_server

        configure_logging(self.config.log_level)
        self._ensure_frozen()

        _host = host or self.config.host
        _port = port or self.config.port
        logger.info("serving on http://%s:%d", _host, _port)
        run_server(self, _host, _port, reload=self.config.debug, app_path=app_path)

    # -- ASGI interface --

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point.

        Handles the lifespan scope directly, then delegates HTTP scopes to
        the request handler pipeline.
        """
        if scope["type"] == "lifespan":
            await self._handle_lifespan(scope, receive, send)
            return

        self._ensure_frozen()

        assert self._router is not None

        await handle_request(
            scope,
            receive,
            send,
            router=self._router,
            resolver=self._resolver,
            middleware=self._middleware,
            kida_env=self._kida_env,
            db=self._db,
            debug=self.config.debug,
            max_body_size=self.config.max_content_length,
        )

    async def _handle_lifespan(
        self,
        scope: Scope,
        receive: Receive,
        send: Send,
    ) -> None:
        """Run the ASGI lifespan protocol.

        Freezes the app at startup (before first HTTP request), then
        connects the database, runs registered hooks and signals completion
        back to the server. A startup failure is reported as
        ``lifespan.startup.failed`` and aborts the server.
        """
        self._ensure_frozen()

        while True:
            message = await receive()
            msg_type = message["type"]

            if msg_type == "lifespan.startup":
                try:
                    await self.startup()
                except Exception as exc:
                    logger.error("startup failed: %s", exc)
                    await send({"type": "lifespan.startup.failed", "message": str(exc)})
                    return
                await send({"type": "lifespan.startup.complete"})

            elif msg_type == "lifespan.shutdown":
                await self.shutdown()
                await send({"type": "lifespan.shutdown.complete"})
                return

    async def startup(self) -> None:
        """Connect the database and run startup hooks."""
        self._ensure_frozen()
        if self._db is not None:
            await self._db.connect()
        for hook in self._startup_hooks:
            result = hook()
            if inspect.isawaitable(result):
                await result

    async def shutdown(self) -> None:
        """Run shutdown hooks and close the database pool."""
        for hook in self._shutdown_hooks:
            result = hook()
            if inspect.isawaitable(result):
                await result
        if self._db is not None:
            await self._db.disconnect()

    # -- Internal --

    def _ensure_frozen(self) -> None:
        """Thread-safe freeze with double-check locking.

        Multiple ASGI worker threads could call __call__() concurrently on
        first request. This ensures exactly one thread performs compilation.
        """
        if self._frozen:
            return
        with self._freeze_lock:
            if self._frozen:
                return
            self._freeze()

    def _freeze(self) -> None:
        """Compile the app into its frozen runtime state.

        MUST only be called while holding _freeze_lock.
        """
        # 1. Compile route table
        router = Router()
        for pending in self._pending_routes:
            methods = frozenset(m.upper() for m in (pending.methods or ["GET"]))
            router.add(
                Route(
                    path=pending.path,
                    handler=pending.handler,
                    methods=methods,
                    name=pending.name,
                )
            )
        router.compile()
        self._router = router

        # 2. Static chain: mounts in registration order, fallback last
        if self._mounts or self._fallback is not None:
            self._resolver = StaticResolver(self._mounts, self._fallback)

        # 3. Capture middleware as immutable tuple
        self._middleware = tuple(self._middleware_list)

        # 4. Initialize kida environment
        self._kida_env = create_environment(self.config)

        self._frozen = True
        logger.debug(
            "app frozen: %d routes, %d mounts, fallback=%s",
            len(router.routes),
            len(self._mounts),
            self._fallback is not None,
        )

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = (
                "Cannot modify the app after it has started serving requests. "
                "Register routes, mounts and middleware before calling app.run()."
            )
            raise RuntimeError(msg)
