"""
Template engine configuration for outgoing emails.
"""
from functools import lru_cache
from jinja2 import Environment, PackageLoader, select_autoescape


@lru_cache
def get_jinja_env() -> Environment:
    """
    Create the Jinja2 environment for the bundled templates.

    Returns:
        Jinja2 Environment loading from ``library_admin/templates``
    """
    return Environment(
        loader=PackageLoader("library_admin", "templates"),
        autoescape=select_autoescape(['html', 'xml']),
        trim_blocks=True,
        lstrip_blocks=True
    )


def render_template(name: str, **context) -> str:
    """
    Render a bundled template with the given context.

    Args:
        name: Template path relative to the templates directory
        context: Variables to use in the template

    Returns:
        Rendered string
    """
    return get_jinja_env().get_template(name).render(**context)
