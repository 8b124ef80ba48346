"""Shared fixtures: on-disk asset trees and a demo app wired to SQLite."""

import logging

import pytest

from wren.config import AppConfig
from wren.demo.app import create_app


@pytest.fixture
def asset_dirs(tmp_path):
    """Create ``assets/`` and ``assets2/`` trees like the demo expects."""
    assets = tmp_path / "assets"
    assets.mkdir()
    (assets / "style.css").write_text("body { color: red; }")
    (assets / "data.bin").write_bytes(b"\x00\x01\x02\x03")
    docs = assets / "docs"
    docs.mkdir()
    (docs / "index.html").write_text("<h1>Docs</h1>")

    assets2 = tmp_path / "assets2"
    assets2.mkdir()
    (assets2 / "index.html").write_text("<h1>Override</h1>")
    (assets2 / "app.js").write_text("console.log('hello');")
    (assets2 / "about.html").write_text("<h1>About</h1>")

    return assets, assets2


@pytest.fixture
def sqlite_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'demo.db'}"


@pytest.fixture
def demo_config(asset_dirs, sqlite_url) -> AppConfig:
    assets, assets2 = asset_dirs
    return AppConfig(
        database_url=sqlite_url,
        assets_dir=assets,
        fallback_dir=assets2,
        pool_size=2,
        pool_acquire_timeout=5.0,
    )


@pytest.fixture
def demo_app(demo_config):
    return create_app(demo_config)


@pytest.fixture(autouse=True)
def _restore_wren_logger():
    """``configure_logging`` mutates the ``wren`` logger; undo it after each test."""
    logger = logging.getLogger("wren")
    saved_level, saved_handlers = logger.level, list(logger.handlers)
    yield
    logger.setLevel(saved_level)
    logger.handlers[:] = saved_handlers
