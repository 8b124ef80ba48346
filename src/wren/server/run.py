"""Serve a wren App on pounce.

Pounce's ``run()`` takes an import string (e.g., ``"myapp:app"``), but
wren has a live ``App`` object. We use ``pounce.Server`` directly with the
ASGI callable.

One worker: the connection pool and its semaphore belong to a single
event loop.
"""


def run_server(
    app: object,
    host: str,
    port: int,
    *,
    reload: bool = False,
    app_path: str | None = None,
) -> None:
    """Start a pounce server with the given wren App.

    Args:
        app: ASGI callable (wren App instance).
        host: Bind host address.
        port: Bind port number.
        reload: Enable auto-reload on file changes (debug mode).
        app_path: Optional ``"module:attribute"`` import string. When
            provided, pounce reimports the app on each reload cycle.
    """
    from pounce.config import ServerConfig
    from pounce.server import Server

    config = ServerConfig(host=host, port=port, workers=1, reload=reload)
    server = Server(config, app, app_path=app_path)
    server.run()
