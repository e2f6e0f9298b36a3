"""
Runtime Layer - Validation Errors

This module defines the per-subject validation error collection that the
executor writes to when a transition is invalid, and that persistence
validations write to before a save. Errors live on the subject itself so they
travel with it through callbacks and raised exceptions.
"""

from typing import Any, Dict, Iterator, List, Optional, Tuple

from sqlmodel import SQLModel

# Stored directly in the instance __dict__; SQLModel keeps its own bookkeeping
# (e.g. _sa_instance_state) there the same way.
_ERRORS_KEY = "_sm_errors"


def humanize_attribute(attribute: str) -> str:
    return attribute.replace("_", " ").capitalize()


class Errors:
    """
    Ordered mapping attribute -> messages.
    Adding the same message twice to the same attribute is a no-op.
    """

    def __init__(self):
        self._messages: Dict[str, List[str]] = {}

    def add(self, attribute: str, message: str) -> None:
        messages = self._messages.setdefault(attribute, [])
        if message not in messages:
            messages.append(message)

    def get(self, attribute: str) -> List[str]:
        return list(self._messages.get(attribute, []))

    def clear(self, attribute: Optional[str] = None) -> None:
        if attribute is None:
            self._messages.clear()
        else:
            self._messages.pop(attribute, None)

    def items(self) -> Iterator[Tuple[str, str]]:
        for attribute, messages in self._messages.items():
            for message in messages:
                yield attribute, message

    @property
    def full_messages(self) -> List[str]:
        return [f"{humanize_attribute(attribute)} {message}" for attribute, message in self.items()]

    def __len__(self) -> int:
        return sum(len(messages) for messages in self._messages.values())

    def __bool__(self) -> bool:
        return len(self) > 0

    def __contains__(self, attribute: str) -> bool:
        return bool(self._messages.get(attribute))

    def __repr__(self) -> str:
        return f"Errors({self.full_messages!r})"


def errors_of(subject: Any) -> Errors:
    """Returns (creating on first use) the error collection attached to `subject`."""
    errors = subject.__dict__.get(_ERRORS_KEY)
    if errors is None:
        errors = Errors()
        object.__setattr__(subject, _ERRORS_KEY, errors)
    return errors


class StateMachineModel(SQLModel):
    """
    Optional mixin for SQLModel tables governed by a state machine.

    Adds an `errors` collection and a `run_validations()` hook that the save
    action calls before writing. Subclasses add messages to `self.errors` to
    make the save (and therefore the transition) fail.
    """

    @property
    def errors(self) -> Errors:
        return errors_of(self)

    def run_validations(self) -> None:
        pass
