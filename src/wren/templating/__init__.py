"""Kida template integration.

Handlers return ``Template("name.html", **context)``; the negotiation
layer renders it through the app's kida ``Environment``.
"""

from wren.templating.integration import create_environment, render_template
from wren.templating.returns import Template

__all__ = ["Template", "create_environment", "render_template"]
