"""
Schemas - Machine Configuration Models

Defines the Pydantic models used to validate machine definition options.
"""

from sqlmodel_state_machines.schemas.options import MachineOptions

__all__ = [
    "MachineOptions",
]
