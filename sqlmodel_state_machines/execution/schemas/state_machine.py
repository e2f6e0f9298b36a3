"""
Perform Types - Executor State Definitions

Type definitions for the transition executor's own state machine and for
callback phases. Used by the executor (to classify outcomes) and the callback
pipeline (to select callbacks).
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Optional


class PerformPhase(Enum):
    """
    Where a single perform() call is, or ended.

    IDLE -> VALIDATING -> INVALID
    IDLE -> VALIDATING -> RUNNING -> SUCCEEDED | FAILED
    """

    IDLE = auto()
    VALIDATING = auto()  # Looking up the current state and a matching rule.
    INVALID = auto()  # No rule (or unknown current value). Terminal, not an error.
    RUNNING = auto()  # Callbacks and the action are executing.
    SUCCEEDED = auto()  # Action succeeded, boundary committed.
    FAILED = auto()  # Halted, action failed or raised. Boundary rolled back.

    @property
    def terminal(self) -> bool:
        return self in (PerformPhase.INVALID, PerformPhase.SUCCEEDED, PerformPhase.FAILED)


class CallbackKind(str, Enum):
    BEFORE = "before"
    AFTER = "after"
    AROUND = "around"
    FAILURE = "failure"


@dataclass
class PerformOutcome:
    """
    Result of one perform() call.

    The transition is None when validation failed before one could be built.
    """

    phase: PerformPhase
    transition: Optional[Any] = None
    error: Optional[BaseException] = None

    @property
    def succeeded(self) -> bool:
        return self.phase is PerformPhase.SUCCEEDED
