"""
Transition Descriptor.

A Transition records one proposed state change of one subject. It is built by
the executor for a single perform() call and dropped afterwards; it is never
persisted. Two transitions are only equal if they are the same object.
"""

import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)


class Transition:
    """
    Attributes:
        subject: The object whose attribute changes (borrowed, not owned).
        machine: The machine the transition belongs to.
        attribute: Name of the subject attribute holding the state value.
        event: Event name.
        from_name / to_name: Source and destination state names.
        from_value / to_value: The corresponding stored values.
        result: Set once the pipeline finishes (True on success).
        error: Exception raised while running, if any.
    """

    def __init__(
        self,
        subject: Any,
        machine,
        event: str,
        from_name: Optional[str],
        to_name: Optional[str],
        from_value: Any = None,
    ):
        self._subject = subject
        self._machine = machine
        self._event = event
        self._from_name = from_name
        self._to_name = to_name
        self._from_value = from_value
        self._to_value = machine.registry.state_by_name(to_name).stored_value
        self.result: Optional[bool] = None
        self.error: Optional[BaseException] = None

    subject = property(lambda self: self._subject)
    machine = property(lambda self: self._machine)
    event = property(lambda self: self._event)
    from_name = property(lambda self: self._from_name)
    to_name = property(lambda self: self._to_name)
    from_value = property(lambda self: self._from_value)
    to_value = property(lambda self: self._to_value)

    @property
    def attribute(self) -> str:
        return self._machine.attribute

    @property
    def loopback(self) -> bool:
        return self._from_name == self._to_name

    @property
    def human_event(self) -> str:
        return self._machine.human_event_name(self._event)

    @property
    def human_from_name(self) -> str:
        return self._machine.human_state_name(self._from_name)

    @property
    def human_to_name(self) -> str:
        return self._machine.human_state_name(self._to_name)

    def persist(self) -> None:
        """
        Writes the destination value to the subject.
        Loopbacks write nothing so dirty tracking never sees a change.
        """
        if self.loopback:
            return
        setattr(self._subject, self.attribute, self._to_value)

    def rollback(self) -> None:
        """Restores the source value after a failed attempt."""
        if self.loopback:
            return
        setattr(self._subject, self.attribute, self._from_value)

    def __repr__(self) -> str:
        return (
            f"<Transition attribute={self.attribute!r} event={self._event!r} "
            f"from={self._from_name!r} to={self._to_name!r}>"
        )
