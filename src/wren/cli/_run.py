"""``wren run``: resolve an app and serve it on pounce.

Configuration precedence: AppConfig defaults < ``WREN_*`` environment
variables < command-line flags.
"""

import argparse
import sys

from wren.cli._resolve import resolve_app
from wren.config import AppConfig
from wren.errors import ConfigurationError
from wren.logs import configure_logging


def run_command(args: argparse.Namespace) -> None:
    """Build the config, configure logging, resolve the app and serve it."""
    try:
        config = AppConfig.from_env(
            host=args.host,
            port=args.port,
            database_url=args.database_url,
            log_level=args.log_level,
        )
        configure_logging(config.log_level)
        app = resolve_app(args.app, config)
    except (ConfigurationError, ValueError, ModuleNotFoundError, AttributeError, TypeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    app.run(args.host or app.config.host, args.port or app.config.port, app_path=args.app)
