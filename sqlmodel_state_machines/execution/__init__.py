"""
Execution Layer - Transition Orchestration

Defines the Transition descriptor, the CallbackPipeline that runs
before/around/after/failure callbacks, and the TransitionExecutor that
performs one event inside a transactional boundary.
"""

from sqlmodel_state_machines.execution.callbacks import (
    AroundCallback,
    CallbackFilter,
    CallbackPipeline,
)
from sqlmodel_state_machines.execution.executor import TransitionExecutor
from sqlmodel_state_machines.execution.transition import Transition


__all__ = [
    "AroundCallback",
    "CallbackFilter",
    "CallbackPipeline",
    "TransitionExecutor",
    "Transition",
]
