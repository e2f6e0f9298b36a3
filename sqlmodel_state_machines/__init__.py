"""
SQLModel State Machines

Binds finite state machines to SQLModel / SQLAlchemy models: state attributes
map to table columns, transitions run inside the session's transactional
boundary, and query scopes and human names come from the machine's registry.
"""

from sqlmodel_state_machines.domain import (
    Event,
    State,
    all_except,
    any_state,
    same,
)
from sqlmodel_state_machines.exceptions import (
    ConcurrentTransitionError,
    HaltTransition,
    InvalidTransitionError,
    Rollback,
    StateMachineError,
    UnknownEventError,
    UnknownStateError,
)
from sqlmodel_state_machines.execution import AroundCallback, Transition
from sqlmodel_state_machines.i18n import Translations
from sqlmodel_state_machines.machine import Machine, machines_for, state_machine
from sqlmodel_state_machines.repositories.persistence import (
    InMemoryPersistence,
    Persistence,
    SessionPersistence,
)
from sqlmodel_state_machines.runtime import Errors, StateMachineModel, errors_of

__all__ = [
    # Domain Layer
    "Event",
    "State",
    "all_except",
    "any_state",
    "same",
    # Errors
    "ConcurrentTransitionError",
    "HaltTransition",
    "InvalidTransitionError",
    "Rollback",
    "StateMachineError",
    "UnknownEventError",
    "UnknownStateError",
    # Execution Layer
    "AroundCallback",
    "Transition",
    # Machine
    "Machine",
    "machines_for",
    "state_machine",
    # Persistence
    "InMemoryPersistence",
    "Persistence",
    "SessionPersistence",
    # Runtime
    "Errors",
    "StateMachineModel",
    "errors_of",
    # i18n
    "Translations",
]
