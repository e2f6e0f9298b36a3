"""
Simple Jinja2 loader for message templates.

Translations hold message templates as plain strings; this module compiles
them with a shared Environment and renders them with interpolation values.
"""

from functools import lru_cache

from jinja2 import Environment, StrictUndefined, Template, select_autoescape


@lru_cache(maxsize=1)
def _get_environment() -> Environment:
    """Create and cache the Jinja2 environment."""
    return Environment(
        autoescape=select_autoescape(default=False, default_for_string=False),
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
    )


@lru_cache(maxsize=256)
def _compile(source: str) -> Template:
    return _get_environment().from_string(source)


def render(source: str, **context) -> str:
    """
    Render a message template.

    Args:
        source: Template text, e.g. 'cannot transition via "{{ event }}"'
        **context: Variables to pass to the template

    Returns:
        Rendered message string
    """
    return _compile(source).render(**context)
