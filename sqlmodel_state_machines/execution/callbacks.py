"""
Callback Pipeline - Transition Callback Orchestration

Callbacks are registered per phase (before / around / after / failure) with a
filter on event, source and destination. For one transition the pipeline runs:

1. before callbacks in registration order. An explicit False (not None) or a
   HaltTransition stops everything and jumps to the failure callbacks.
2. around callbacks, nested: the first one wraps the second, ..., the last one
   wraps the core action. The chain is built right-to-left as continuations,
   so one pass runs the whole nest and every entered callback is exited,
   whatever the action did.
3. after callbacks when the action succeeded (an explicit False stops the
   remaining after callbacks but does not change the result), failure
   callbacks otherwise.

Every user callable is normalised at registration to one canonical signature
(subject, transition) -> result; the pipeline never inspects arity at run time.
"""

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from ..domain.matchers import BlacklistMatcher, Matcher, any_state, coerce
from ..exceptions import HaltTransition
from .schemas.state_machine import CallbackKind

logger = logging.getLogger(__name__)

CanonicalCallback = Callable[[Any, Any], Any]

# enter() result meaning "the around callback never reached its yield"
NOT_ENTERED = object()


# ==========================================================================
# Filters
# ==========================================================================

@dataclass(frozen=True)
class CallbackFilter:
    """All given predicates must hold; omitted ones match everything."""

    from_: Matcher = any_state
    to: Matcher = any_state
    on: Matcher = any_state
    except_from: Optional[Matcher] = None
    except_to: Optional[Matcher] = None
    except_on: Optional[Matcher] = None

    @classmethod
    def build(cls, from_=None, to=None, on=None, except_from=None, except_to=None, except_on=None):
        def excluding(value):
            return None if value is None else BlacklistMatcher(coerce(value).values)

        return cls(
            from_=coerce(from_),
            to=coerce(to),
            on=coerce(on),
            except_from=excluding(except_from),
            except_to=excluding(except_to),
            except_on=excluding(except_on),
        )

    def matches(self, transition) -> bool:
        checks = (
            (self.from_, transition.from_name),
            (self.to, transition.to_name),
            (self.on, transition.event),
            (self.except_from, transition.from_name),
            (self.except_to, transition.to_name),
            (self.except_on, transition.event),
        )
        return all(matcher is None or matcher.matches(name) for matcher, name in checks)

    @property
    def state_names(self) -> List[Any]:
        """State names referenced explicitly by this filter."""
        names = []
        for matcher in (self.from_, self.to, self.except_from, self.except_to):
            if matcher is not None:
                names.extend(matcher.values)
        return names


# ==========================================================================
# Calling conventions
# ==========================================================================

def _positional_arity(fn: Callable) -> int:
    """Number of positional parameters, or -1 for *args."""
    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError):
        return -1

    count = 0
    for parameter in signature.parameters.values():
        if parameter.kind is inspect.Parameter.VAR_POSITIONAL:
            return -1
        if parameter.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD):
            count += 1
    return count


def canonical(fn) -> CanonicalCallback:
    """
    Wraps a user callback into (subject, transition) -> result.

    - fn()                      zero arguments
    - fn(subject)               one argument
    - fn(subject, transition)   two or variadic arguments
    - "method_name"             subject.method_name(transition) or subject.method_name()
    """
    if isinstance(fn, str):
        method_name = fn

        def call_method(subject, transition):
            method = getattr(subject, method_name)
            if _positional_arity(method) == 0:
                return method()
            return method(transition)

        call_method.__name__ = method_name
        return call_method

    if not callable(fn):
        raise TypeError(f"Callback must be callable or a method name, got {fn!r}")

    arity = _positional_arity(fn)
    if arity == 0:
        return lambda subject, transition: fn()
    if arity == 1:
        return lambda subject, transition: fn(subject)
    return fn


class AroundCallback:
    """
    Two-phase around callback.

    enter() runs the part before the wrapped work and returns a token (or
    NOT_ENTERED to halt). exit(token, succeeded) runs the part after it and is
    always called for an entered callback.
    """

    def enter(self, subject, transition) -> Any:
        raise NotImplementedError

    def exit(self, token, succeeded: bool) -> None:
        raise NotImplementedError


class GeneratorAroundCallback(AroundCallback):
    """
    Adapts a generator function:

        def audit(vehicle, transition):
            started = time.monotonic()      # enter
            succeeded = yield               # wrapped work runs here
            log(transition, succeeded)      # exit

    Returning before the yield halts the chain.
    """

    def __init__(self, fn: Callable):
        self.fn = canonical(fn)
        self.name = getattr(fn, "__name__", repr(fn))

    def enter(self, subject, transition):
        generator = self.fn(subject, transition)
        try:
            next(generator)
        except StopIteration:
            return NOT_ENTERED
        return generator

    def exit(self, token, succeeded: bool) -> None:
        try:
            token.send(succeeded)
        except StopIteration:
            return
        token.close()
        raise RuntimeError(f"around callback {self.name!r} yielded more than once")


def adapt_around(fn) -> AroundCallback:
    if isinstance(fn, AroundCallback):
        return fn
    if hasattr(fn, "enter") and hasattr(fn, "exit"):
        return fn
    if inspect.isgeneratorfunction(fn) or inspect.isgeneratorfunction(getattr(fn, "__call__", None)):
        return GeneratorAroundCallback(fn)
    raise TypeError(
        f"around callbacks must be generator functions or define enter()/exit(), got {fn!r}"
    )


@dataclass
class Callback:
    kind: CallbackKind
    filter: CallbackFilter
    fn: Any
    name: str = ""

    def matches(self, transition) -> bool:
        return self.filter.matches(transition)


# ==========================================================================
# Pipeline
# ==========================================================================

class CallbackPipeline:
    def __init__(self):
        self._callbacks: Dict[CallbackKind, List[Callback]] = {kind: [] for kind in CallbackKind}

    def register(self, kind: CallbackKind, fn, callback_filter: Optional[CallbackFilter] = None) -> Callback:
        callback_filter = callback_filter or CallbackFilter()
        adapted = adapt_around(fn) if kind is CallbackKind.AROUND else canonical(fn)
        callback = Callback(
            kind=kind,
            filter=callback_filter,
            fn=adapted,
            name=fn if isinstance(fn, str) else getattr(fn, "__name__", repr(fn)),
        )
        self._callbacks[kind].append(callback)
        return callback

    def register_before(self, fn, callback_filter: Optional[CallbackFilter] = None) -> Callback:
        return self.register(CallbackKind.BEFORE, fn, callback_filter)

    def register_after(self, fn, callback_filter: Optional[CallbackFilter] = None) -> Callback:
        return self.register(CallbackKind.AFTER, fn, callback_filter)

    def register_around(self, fn, callback_filter: Optional[CallbackFilter] = None) -> Callback:
        return self.register(CallbackKind.AROUND, fn, callback_filter)

    def register_failure(self, fn, callback_filter: Optional[CallbackFilter] = None) -> Callback:
        return self.register(CallbackKind.FAILURE, fn, callback_filter)

    def matching(self, kind: CallbackKind, transition) -> List[Callback]:
        return [callback for callback in self._callbacks[kind] if callback.matches(transition)]

    # --------------------------------------------------------------------------
    # Phases
    # --------------------------------------------------------------------------

    def run_before(self, transition) -> bool:
        """Returns False when a before callback halted the chain."""
        for callback in self.matching(CallbackKind.BEFORE, transition):
            try:
                result = callback.fn(transition.subject, transition)
            except HaltTransition:
                result = False
            if result is False:
                logger.debug(f"Before callback {callback.name!r} halted {transition!r}")
                return False
        return True

    def run_around(self, transition, action: Callable[[], Any]) -> bool:
        """
        Runs the around nest with `action` innermost.
        Returns True only if every callback entered and the action succeeded.
        """
        def core() -> bool:
            return bool(action())

        chain = core
        for callback in reversed(self.matching(CallbackKind.AROUND, transition)):
            chain = self._wrap(callback, transition, chain)

        try:
            return chain()
        except HaltTransition:
            logger.debug(f"Around callback halted {transition!r}")
            return False

    @staticmethod
    def _wrap(callback: Callback, transition, inner: Callable[[], bool]) -> Callable[[], bool]:
        def step() -> bool:
            token = callback.fn.enter(transition.subject, transition)
            if token is NOT_ENTERED:
                logger.debug(f"Around callback {callback.name!r} did not yield for {transition!r}")
                return False

            succeeded = False
            try:
                succeeded = inner()
            finally:
                callback.fn.exit(token, succeeded)
            return succeeded

        return step

    def run_after(self, transition) -> None:
        for callback in self.matching(CallbackKind.AFTER, transition):
            if callback.fn(transition.subject, transition) is False:
                logger.debug(f"After callback {callback.name!r} stopped the after chain")
                break

    def run_failure(self, transition) -> None:
        for callback in self.matching(CallbackKind.FAILURE, transition):
            callback.fn(transition.subject, transition)
