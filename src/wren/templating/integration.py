"""Kida environment setup.

Creates a kida Environment from wren's AppConfig. The environment is
created once during App._freeze() and passed through the request pipeline.
"""

from kida import Environment, FileSystemLoader

from wren.config import AppConfig
from wren.templating.returns import Template


def create_environment(config: AppConfig) -> Environment:
    """Create a kida Environment from app configuration.

    Called once during ``App._freeze()``. The returned environment
    is immutable for the lifetime of the app.
    """
    return Environment(
        loader=FileSystemLoader(str(config.template_dir)),
        autoescape=config.autoescape,
        auto_reload=config.debug,
    )


def render_template(env: Environment, tpl: Template) -> str:
    """Render a full template to string."""
    template = env.get_template(tpl.name)
    return template.render(tpl.context)
