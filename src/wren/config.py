"""Application configuration.

AppConfig is a frozen dataclass. It is immutable after creation and read
through attributes rather than string keys.

Values come from three layers, later layers winning::

    hardcoded defaults < WREN_* environment variables < explicit overrides

The CLI passes its flags as overrides, so a ``--port`` always beats
``WREN_PORT``.
"""

import dataclasses
import os
import types
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, get_args, get_origin

from wren.errors import ConfigurationError

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off", ""})


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = AppConfig(port=8080, database_url="sqlite:///app.db")
    """

    # Server
    host: str = "127.0.0.1"
    port: int = 3000
    debug: bool = False
    log_level: str = "info"

    # Templates
    template_dir: str | Path = "templates"
    autoescape: bool = True

    # Database
    database_url: str | None = None
    pool_size: int = 10
    pool_acquire_timeout: float = 30.0
    db_echo: bool = False

    # Limits
    max_content_length: int = 2 * 1024 * 1024  # 2 MiB

    # Static assets
    assets_dir: str | Path = "assets"
    fallback_dir: str | Path = "assets2"
    fallback_file: str = "index.html"
    static_cache_control: str = "public, max-age=3600"

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        *,
        prefix: str = "WREN_",
        **overrides: Any,
    ) -> AppConfig:
        """Build a config from ``WREN_*`` environment variables plus overrides.

        ``WREN_PORT=8080`` sets ``port``, ``WREN_DATABASE_URL=...`` sets
        ``database_url``, and so on. Values are coerced by the field's
        annotation. Overrides whose value is ``None`` are ignored so CLI
        flags that were not given fall through to the environment.

        Raises ``ConfigurationError`` for unknown override keys or values
        that cannot be coerced.
        """
        env = os.environ if environ is None else environ
        known = {f.name: f for f in dataclasses.fields(cls)}

        unknown = sorted(set(overrides) - set(known))
        if unknown:
            msg = f"Unknown config option(s): {', '.join(unknown)}"
            raise ConfigurationError(msg)

        values: dict[str, Any] = {}
        for name, f in known.items():
            raw = env.get(f"{prefix}{name.upper()}")
            if raw is not None:
                values[name] = _coerce(name, raw, f.type)

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


def _coerce(name: str, raw: str, annotation: Any) -> Any:
    """Coerce an environment string to the field's annotated type."""
    allows_none = False
    if get_origin(annotation) is types.UnionType:
        args = get_args(annotation)
        allows_none = type(None) in args
        # str | Path fields keep the string; Path() is applied by consumers
        annotation = str if str in args else next(a for a in args if a is not type(None))

    if allows_none and raw == "":
        return None

    try:
        if annotation is bool:
            lowered = raw.strip().lower()
            if lowered in _TRUE:
                return True
            if lowered in _FALSE:
                return False
            raise ValueError(raw)
        if annotation is int:
            return int(raw)
        if annotation is float:
            return float(raw)
    except ValueError:
        msg = f"Invalid value for {name}: {raw!r} is not a valid {annotation.__name__}"
        raise ConfigurationError(msg) from None
    return raw
