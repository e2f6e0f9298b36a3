"""
Default translations.

Pure constants - no I/O or template rendering. Messages are Jinja2 templates;
`state` and `event` are human names, `value` is the attribute's stored value.
"""

from types import MappingProxyType


class MessageKey:
    """Message key constants. Use these instead of raw strings."""

    INVALID = "invalid"
    INVALID_EVENT = "invalid_event"
    INVALID_TRANSITION = "invalid_transition"


DEFAULT_MESSAGES = MappingProxyType({
    MessageKey.INVALID: "is invalid",
    MessageKey.INVALID_EVENT: "cannot transition when {{ state }}",
    MessageKey.INVALID_TRANSITION: 'cannot transition via "{{ event }}"',
})

DEFAULT_TRANSLATIONS = MappingProxyType({
    "en": {
        "errors": {
            "messages": dict(DEFAULT_MESSAGES),
        },
    },
})
