"""
State Machine Exceptions

Custom exceptions raised by the registry, the transition executor and the
machine facade. Only UnknownEventError, ConcurrentTransitionError and (for the
raising event variant) InvalidTransitionError are expected to escape perform().
"""


class StateMachineError(Exception):
    """Base class for every error raised by this package."""
    pass


class UnknownEventError(StateMachineError, KeyError):
    """Raised when an event name is not registered on the machine at all."""

    def __init__(self, machine_name: str, event_name: str):
        self.machine_name = machine_name
        self.event_name = event_name
        super().__init__(f"{event_name!r} is an unknown state machine event for '{machine_name}'")

    def __str__(self) -> str:
        return self.args[0]


class UnknownStateError(StateMachineError, KeyError):
    """Raised when a state lookup by name or stored value finds nothing."""

    def __init__(self, machine_name: str, key: object, by: str = "name"):
        self.machine_name = machine_name
        self.key = key
        self.by = by
        super().__init__(f"{key!r} is an unknown state {by} for '{machine_name}'")

    def __str__(self) -> str:
        return self.args[0]


class InvalidTransitionError(StateMachineError):
    """
    Raised by the raising event variant when a transition fails, either
    because no rule matched or because callbacks / the action failed.
    Carries the subject's current validation errors as 'reasons'.
    """

    def __init__(self, subject, machine, event: str, from_name, reasons: str):
        self.subject = subject
        self.machine = machine
        self.event = event
        self.from_name = from_name
        self.reasons = reasons
        message = f"Cannot transition {machine.name} via :{event} from :{from_name}"
        if reasons:
            message += f" (Reason(s): {reasons})"
        super().__init__(message)


class ConcurrentTransitionError(StateMachineError):
    """Raised when perform() is re-entered for a subject/attribute already in flight."""
    pass


class HaltTransition(Exception):
    """
    Raised by a before or around callback to halt the chain.
    Equivalent to a before callback returning False.
    """
    pass


class Rollback(Exception):
    """
    Signals that the current transaction must be discarded.
    Caught by the transaction adapter only; perform() reports it as False.
    """
    pass
