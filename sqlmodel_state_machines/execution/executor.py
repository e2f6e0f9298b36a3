"""
Executor - Transition Commit Protocol

The TransitionExecutor runs one event for one subject:

    IDLE -> VALIDATING -> INVALID                  (no rule: error recorded, False)
    IDLE -> VALIDATING -> RUNNING -> SUCCEEDED     (boundary committed, True)
                                  -> FAILED        (boundary rolled back, False)

RUNNING happens inside the machine's transactional boundary: before
callbacks, the around nest wrapping the core action (write the destination
value, then run the persistence action), and after or failure callbacks.
Only one transition per subject and attribute may be in flight; the guard is
released once the action has finished so after callbacks can fire follow-up
events.
"""

import logging
import threading
from typing import Any, Optional, Set, Tuple

from ..domain.models import Event
from ..exceptions import (
    ConcurrentTransitionError,
    InvalidTransitionError,
    Rollback,
    UnknownStateError,
)
from ..i18n.defaults import MessageKey
from ..infrastructure.database.transaction import within_transaction
from .schemas.state_machine import PerformOutcome, PerformPhase
from .transition import Transition

logger = logging.getLogger(__name__)


class _InFlight:
    """Process-wide set of (subject id, attribute) pairs currently RUNNING."""

    def __init__(self):
        self._lock = threading.Lock()
        self._keys: Set[Tuple[int, str]] = set()

    def acquire(self, subject: Any, attribute: str) -> Tuple[int, str]:
        key = (id(subject), attribute)
        with self._lock:
            if key in self._keys:
                raise ConcurrentTransitionError(
                    f"A transition on {type(subject).__name__}.{attribute} is already in flight"
                )
            self._keys.add(key)
        return key

    def release(self, key: Tuple[int, str]) -> None:
        with self._lock:
            self._keys.discard(key)


_in_flight = _InFlight()


class TransitionExecutor:
    def __init__(self, machine):
        self.machine = machine

    def perform(
        self,
        subject: Any,
        event_name: str,
        run_action: bool = True,
        raise_on_failure: bool = False,
        session: Optional[Any] = None,
    ) -> bool:
        """
        Fires `event_name` on `subject`.

        Returns True on success and False otherwise. With raise_on_failure an
        InvalidTransitionError (carrying the subject's errors) is raised
        instead of returning False. Unknown events always raise.
        """
        outcome = self.execute(subject, event_name, run_action=run_action, session=session)
        if outcome.succeeded:
            return True

        if raise_on_failure:
            from_name = outcome.transition.from_name if outcome.transition else self.machine.read(subject)
            raise InvalidTransitionError(
                subject, self.machine, event_name, from_name, self.machine.errors_for(subject)
            ) from outcome.error
        return False

    def execute(
        self,
        subject: Any,
        event_name: str,
        run_action: bool = True,
        session: Optional[Any] = None,
    ) -> PerformOutcome:
        """Like perform() but reports the terminal phase and the transition built."""
        machine = self.machine
        # Unknown events are a programming error: fail before touching anything
        event = machine.registry.event_by_name(event_name)

        key = _in_flight.acquire(subject, machine.attribute)
        guard = {"held": True}

        def release():
            if guard["held"]:
                _in_flight.release(key)
                guard["held"] = False

        try:
            logger.debug(f"{machine.name}: {PerformPhase.VALIDATING.name} '{event_name}' on {type(subject).__name__}")
            transition = self._validate(subject, event)
            if transition is None:
                return PerformOutcome(phase=PerformPhase.INVALID)

            logger.debug(f"{machine.name}: {PerformPhase.RUNNING.name} {transition!r}")
            persistence = machine.persistence_for(subject, session) if self._needs_persistence(run_action) else None

            try:
                result = within_transaction(
                    persistence,
                    lambda: self._run(transition, persistence, run_action, release),
                    use_transactions=machine.use_transactions,
                )
            except Rollback:
                # Only reaches here when transactions are disabled
                logger.debug(f"{machine.name}: rollback requested without a transaction")
                result = False
            except Exception as exc:
                logger.error(f"{machine.name}: transition {transition!r} raised: {exc}")
                transition.error = exc
                result = False
            finally:
                if persistence is not None:
                    persistence.close()

            transition.result = bool(result)
            phase = PerformPhase.SUCCEEDED if result else PerformPhase.FAILED
            logger.debug(f"{machine.name}: {phase.name} {transition!r}")
            return PerformOutcome(phase=phase, transition=transition, error=transition.error)
        finally:
            release()

    # ==========================================================================
    # Phases
    # ==========================================================================

    def _validate(self, subject: Any, event: Event) -> Optional[Transition]:
        """Builds the transition, or records why there is none and returns None."""
        machine = self.machine
        value = machine.read(subject)

        try:
            from_state = machine.registry.state_by_value(value)
        except UnknownStateError:
            logger.info(f"{machine.name}: {value!r} is not a known state value")
            machine.invalidate(subject, machine.attribute, MessageKey.INVALID)
            return None

        found = machine.registry.find_transition(event.name, from_state.name, subject)
        if found is None:
            machine.invalidate(
                subject,
                machine.attribute,
                MessageKey.INVALID_TRANSITION,
                [("event", machine.human_event_name(event.name)), ("state", machine.human_state_name(from_state.name))],
            )
            return None

        _, to_name = found
        return Transition(subject, machine, event.name, from_state.name, to_name, from_value=value)

    def _needs_persistence(self, run_action: bool) -> bool:
        return self.machine.use_transactions or (run_action and self.machine.action == "save")

    def _run(self, transition: Transition, persistence, run_action: bool, release) -> bool:
        """The block executed inside the transactional boundary."""
        pipeline = self.machine.callbacks

        def core_action() -> bool:
            transition.persist()
            if not run_action:
                return True
            return bool(self.machine.run_action(transition.subject, persistence))

        try:
            succeeded = pipeline.run_before(transition) and pipeline.run_around(transition, core_action)
        except BaseException as exc:
            transition.error = exc
            transition.rollback()
            release()
            pipeline.run_failure(transition)
            raise

        release()
        if not succeeded:
            transition.rollback()
            pipeline.run_failure(transition)
            return False

        try:
            pipeline.run_after(transition)
        except BaseException:
            transition.rollback()
            raise
        return True
