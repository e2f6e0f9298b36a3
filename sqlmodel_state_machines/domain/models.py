"""
Domain Layer - Static Machine Definitions

This module defines the static structure of a state machine: the States a
subject's attribute may hold, the Events that move between them, and the
TransitionRules each event declares. These objects are created at definition
time and are read-only afterwards.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from .matchers import Matcher, coerce


class _Same:
    """Destination marker for loopback rules ("stay in whatever state you are in")."""

    def __repr__(self) -> str:
        return "same"


same = _Same()

_UNSET: Any = object()


def humanize(name: Optional[str]) -> str:
    if name is None:
        return "nil"
    return str(name).replace("_", " ")


@dataclass(frozen=True)
class State:
    """
    A named value the machine's attribute may hold.

    Attributes:
        name: Unique name within the machine. None represents the "unset" state.
        value: Stored value written to the column. Defaults to the name
            (None for the nil state). May be a zero-argument callable which
            is resolved every time the value is needed.
        human_name: Label for UIs and error messages.
        initial: Whether this is the machine's initial state.
    """
    name: Optional[str]
    value: Any = _UNSET
    human_name: Optional[str] = None
    initial: bool = False

    def __post_init__(self):
        if self.value is _UNSET:
            object.__setattr__(self, "value", None if self.name is None else str(self.name))
        if self.human_name is None:
            object.__setattr__(self, "human_name", humanize(self.name))

    @property
    def stored_value(self) -> Any:
        if callable(self.value):
            return self.value()
        return self.value

    def matches_value(self, value: Any) -> bool:
        return self.stored_value == value


@dataclass
class TransitionRule:
    """
    One "sources => destination" declaration of an event.

    Attributes:
        sources: Matcher over source state names.
        to: Destination state name, or `same` for a loopback.
        guard: Optional predicate on the subject; the rule only applies when it returns truthy.
    """
    sources: Matcher
    to: Any
    guard: Optional[Callable[[Any], bool]] = None

    def matches(self, from_name: Optional[str], subject: Any = None) -> bool:
        if not self.sources.matches(from_name):
            return False
        if self.guard is not None and not self.guard(subject):
            return False
        return True

    def destination(self, from_name: Optional[str]) -> Optional[str]:
        return from_name if self.to is same else self.to


class Event:
    """
    A named trigger holding an ordered list of transition rules.

    Rules are evaluated in the order they were added; the first one whose
    sources (and guard) match the subject's current state wins.
    """

    def __init__(self, name: str, human_name: Optional[str] = None, registry=None):
        self.name = name
        self.human_name = human_name or humanize(name)
        self.rules: List[TransitionRule] = []
        self._registry = registry

    def add_transition(self, sources, to, guard: Optional[Callable[[Any], bool]] = None) -> TransitionRule:
        """
        Declares that this event moves `sources` to `to`.

        `sources` may be a name, a list of names, or a matcher such as
        any_state / all_except(...). `to` may be a name or `same`.
        """
        rule = TransitionRule(sources=coerce(sources), to=to, guard=guard)
        self.rules.append(rule)

        # States referenced by rules become known states of the machine.
        if self._registry is not None:
            for name in rule.sources.values:
                self._registry.ensure_state(name)
            if to is not same:
                self._registry.ensure_state(to)
        return rule

    # Shorthand used in definition blocks: event.transition(parked="idling")
    def transition(self, sources=None, to=None, guard=None, **pairs) -> "Event":
        if sources is not None or to is not None:
            self.add_transition(sources, to, guard=guard)
        for source, destination in pairs.items():
            self.add_transition(source, destination, guard=guard)
        return self

    def transition_for(self, from_name: Optional[str], subject: Any = None) -> Optional[TransitionRule]:
        return next((rule for rule in self.rules if rule.matches(from_name, subject)), None)

    def can_fire_from(self, from_name: Optional[str], subject: Any = None) -> bool:
        return self.transition_for(from_name, subject) is not None

    def __repr__(self) -> str:
        return f"Event(name={self.name!r}, rules={len(self.rules)})"
