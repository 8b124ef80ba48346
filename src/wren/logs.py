"""Logging setup for wren processes.

Library modules only create loggers (``wren.server``, ``wren.decoding``,
``wren.data``, ``wren.static``, ``wren.access``, ``wren.demo``). Handlers
are installed here, once, by the CLI or ``App.run()``.
"""

import logging
import sys

_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
_HANDLER_NAME = "wren"


def configure_logging(level: str | int = "info") -> logging.Logger:
    """Install a stream handler on the ``wren`` logger and set its level.

    Idempotent: calling it again only updates the level.
    Raises ``ValueError`` for an unknown level name.
    """
    if isinstance(level, str):
        resolved = logging.getLevelNamesMapping().get(level.upper())
        if resolved is None:
            msg = f"Unknown log level: {level!r}"
            raise ValueError(msg)
        level = resolved

    root = logging.getLogger("wren")
    root.setLevel(level)
    if not any(h.get_name() == _HANDLER_NAME for h in root.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.set_name(_HANDLER_NAME)
        handler.setFormatter(logging.Formatter(_FORMAT))
        root.addHandler(handler)
    return root
