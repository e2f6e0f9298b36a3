"""
Runtime Layer - Per-Subject State

Defines the validation error collection attached to subjects at runtime.
"""

from sqlmodel_state_machines.runtime.errors import (
    Errors,
    StateMachineModel,
    errors_of,
)

__all__ = [
    "Errors",
    "StateMachineModel",
    "errors_of",
]
