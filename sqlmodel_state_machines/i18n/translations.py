"""
Translations - Human Names and Error Messages

Translations are plain nested dicts keyed by locale and loaded once at
startup. A MessageResolver is bound to one machine and walks a fixed chain of
candidate keys (most specific first) to find a state/event label or an error
message template.
"""

import logging
import re
from types import MappingProxyType
from typing import Any, Iterable, List, Mapping, Optional

from ..config import settings
from .defaults import DEFAULT_TRANSLATIONS
from .loader import render

logger = logging.getLogger(__name__)

NAMESPACE = "state_machines"


def underscore(name: str) -> str:
    """TrafficLight -> traffic_light"""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def _deep_merge(base: Mapping, extra: Mapping) -> dict:
    merged = dict(base)
    for key, value in extra.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({key: _freeze(item) for key, item in value.items()})
    return value


class Translations:
    """Immutable locale -> nested key tree, with the package defaults underneath."""

    def __init__(self, data: Optional[Mapping] = None, locale: Optional[str] = None):
        merged = _deep_merge(DEFAULT_TRANSLATIONS, data or {})
        self._data = _freeze(merged)
        self.locale = locale or settings.LOCALE

    def lookup(self, key: str, locale: Optional[str] = None) -> Optional[Any]:
        node: Any = self._data.get(locale or self.locale)
        for part in key.split("."):
            if not isinstance(node, Mapping) or part not in node:
                return None
            node = node[part]
        return node

    def first(self, keys: Iterable[str]) -> Optional[Any]:
        for key in keys:
            value = self.lookup(key)
            if value is not None and not isinstance(value, Mapping):
                return value
        return None


default_translations = Translations()


class MessageResolver:
    """
    Resolves labels and error messages for one machine.

    Human-name chain for a state (events use "events" instead of "states"):
      state_machines.<model>.<machine>.states.<state>
      state_machines.<model>.states.<state>
      state_machines.<machine>.states.<state>
      state_machines.states.<state>

    Error-message chain for a key:
      machine `messages` option (a template, or an alias for another key)
      errors.models.<model>.<key>
      errors.messages.<key>
    """

    def __init__(
        self,
        model_name: str,
        machine_name: str,
        translations: Optional[Translations] = None,
        messages: Optional[Mapping[str, str]] = None,
    ):
        self.model_name = model_name
        self.machine_name = machine_name
        self.translations = translations or default_translations
        self.messages = dict(messages or {})

    def _name_keys(self, kind: str, name: Optional[str]) -> List[str]:
        name = "nil" if name is None else name
        return [
            f"{NAMESPACE}.{self.model_name}.{self.machine_name}.{kind}.{name}",
            f"{NAMESPACE}.{self.model_name}.{kind}.{name}",
            f"{NAMESPACE}.{self.machine_name}.{kind}.{name}",
            f"{NAMESPACE}.{kind}.{name}",
        ]

    def human_state_name(self, name: Optional[str], default: str) -> str:
        return self.translations.first(self._name_keys("states", name)) or default

    def human_event_name(self, name: str, default: str) -> str:
        return self.translations.first(self._name_keys("events", name)) or default

    def _message_keys(self, key: str) -> List[str]:
        return [
            f"errors.models.{self.model_name}.{key}",
            f"errors.messages.{key}",
        ]

    def template_for(self, key: str) -> str:
        override = self.messages.get(key)
        if override is not None:
            # An override that names a translation key is an alias; anything
            # else is used as the template itself.
            aliased = self.translations.first(self._message_keys(override))
            if aliased is not None:
                return aliased
            return override

        template = self.translations.first(self._message_keys(key))
        if template is None:
            logger.warning(f"No message template for '{key}' on {self.model_name}.{self.machine_name}")
            return key.replace("_", " ")
        return template

    def message(self, key: str, **interpolation) -> str:
        return render(self.template_for(key), **interpolation)
