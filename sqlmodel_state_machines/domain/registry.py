"""
Registry - State and Event Lookup

One Registry exists per (owner class, machine). It is populated while the
machine is being defined and only read afterwards, so concurrent readers need
no synchronisation.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..exceptions import UnknownEventError, UnknownStateError
from .models import _UNSET, Event, State, TransitionRule

logger = logging.getLogger(__name__)


class Registry:
    def __init__(self, machine_name: str, default_value: Optional[Callable[[Optional[str]], Any]] = None):
        self.machine_name = machine_name
        # name -> stored value for states defined without an explicit value
        self.default_value = default_value
        # Insertion order is the definition order
        self._states: Dict[Optional[str], State] = {}
        self._events: Dict[str, Event] = {}

    # ==========================================================================
    # Definition
    # ==========================================================================

    def define_state(
        self,
        name: Optional[str],
        value: Any = _UNSET,
        human_name: Optional[str] = None,
        initial: Optional[bool] = None,
    ) -> State:
        """Defines (or redefines) a state. Redefinition keeps unspecified attributes."""
        existing = self._states.get(name)
        if existing is not None:
            value = existing.value if value is _UNSET else value
            human_name = human_name or existing.human_name
            initial = existing.initial if initial is None else initial
        elif value is _UNSET and self.default_value is not None:
            value = self.default_value(name)

        state = State(name=name, value=value, human_name=human_name, initial=bool(initial))
        self._states[name] = state
        return state

    def ensure_state(self, name: Optional[str]) -> State:
        if name in self._states:
            return self._states[name]
        return self.define_state(name)

    def define_event(self, name: str, human_name: Optional[str] = None) -> Event:
        event = self._events.get(name)
        if event is None:
            event = Event(name, human_name=human_name, registry=self)
            self._events[name] = event
        elif human_name:
            event.human_name = human_name
        return event

    def mark_initial(self, name: Optional[str]) -> State:
        for other in list(self._states.values()):
            if other.initial and other.name != name:
                self._states[other.name] = State(
                    name=other.name, value=other.value, human_name=other.human_name
                )
        return self.define_state(name, initial=True)

    # ==========================================================================
    # Lookup
    # ==========================================================================

    @property
    def states(self) -> List[State]:
        return list(self._states.values())

    @property
    def events(self) -> List[Event]:
        return list(self._events.values())

    @property
    def state_names(self) -> List[Optional[str]]:
        return list(self._states.keys())

    def state_by_name(self, name: Optional[str]) -> State:
        if name not in self._states:
            raise UnknownStateError(self.machine_name, name, by="name")
        return self._states[name]

    def state_by_value(self, value: Any) -> State:
        """
        Finds the state whose stored value equals `value`.
        Raises UnknownStateError so callers can surface the mismatch as a validation error.
        """
        for state in self._states.values():
            if state.matches_value(value):
                return state
        raise UnknownStateError(self.machine_name, value, by="value")

    def event_by_name(self, name: str) -> Event:
        if name not in self._events:
            raise UnknownEventError(self.machine_name, name)
        return self._events[name]

    def find_transition(
        self, event_name: str, from_name: Optional[str], subject: Any = None
    ) -> Optional[Tuple[TransitionRule, Optional[str]]]:
        """
        Returns (rule, destination name) for the first rule of `event_name`
        matching `from_name`, or None when the event cannot fire.
        """
        event = self.event_by_name(event_name)
        rule = event.transition_for(from_name, subject)
        if rule is None:
            logger.debug(f"No '{event_name}' rule from {from_name!r} on '{self.machine_name}'")
            return None
        return rule, rule.destination(from_name)

    def stored_values(self, names) -> List[Any]:
        return [self.state_by_name(name).stored_value for name in names]
