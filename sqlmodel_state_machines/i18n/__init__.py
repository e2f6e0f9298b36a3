"""
Internationalization - Human Names and Error Messages

Defines the Translations store, the per-machine MessageResolver and the
Jinja2 rendering used for validation error messages.
"""

from sqlmodel_state_machines.i18n.defaults import DEFAULT_MESSAGES, MessageKey
from sqlmodel_state_machines.i18n.translations import (
    MessageResolver,
    Translations,
    default_translations,
)

__all__ = [
    "DEFAULT_MESSAGES",
    "MessageKey",
    "MessageResolver",
    "Translations",
    "default_translations",
]
