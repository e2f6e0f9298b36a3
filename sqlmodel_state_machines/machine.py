"""
Machine - Binding a State Machine to an Owner Class

A Machine ties one attribute of an owner class (usually a SQLModel table) to
a Registry of states and events, a CallbackPipeline and a TransitionExecutor.
It is the only object application code talks to:

    vehicle_state = state_machine(Vehicle, "state", initial="parked")
    vehicle_state.event("ignite").transition(parked="idling")

    @vehicle_state.before_transition(on="ignite")
    def check_fuel(vehicle, transition):
        return vehicle.fuel > 0

    vehicle_state.fire(vehicle, "ignite")

Machines are kept per owner class and name so several machines (including
aliased names over one attribute) can live on the same class.
"""

import enum
import logging
from typing import Any, Callable, Dict, List, Optional, Union

from sqlalchemy import event as sa_event, inspect
from sqlalchemy.orm import object_session

from .config import settings
from .domain.models import _UNSET, Event, State
from .domain.registry import Registry
from .exceptions import InvalidTransitionError, StateMachineError, UnknownStateError
from .execution.callbacks import CallbackFilter, CallbackPipeline
from .execution.executor import TransitionExecutor
from .execution.transition import Transition
from .i18n.defaults import MessageKey
from .i18n.translations import MessageResolver, Translations, underscore
from .infrastructure.database import scopes
from .infrastructure.database.connection import get_session
from .infrastructure.database.schema import column_default, enum_class_for, enum_mapping
from .infrastructure.database.transaction import within_transaction
from .naming import EnumIntegration, MethodKind, NamingTable, detect_original_methods
from .repositories.persistence import Persistence, SessionPersistence
from .runtime.errors import errors_of
from .schemas.options import MachineOptions

logger = logging.getLogger(__name__)

# owner class -> machine name -> Machine
_MACHINES: Dict[type, Dict[str, "Machine"]] = {}

DEFAULT_CONFLICT_WARNING = (
    'Both {owner} and its {name!r} machine have defined a different default for "{attribute}". '
    "Use only one or the other for defining defaults to avoid unexpected behaviors."
)


class _ConstructorView:
    """Read-only view of constructor keywords handed to dynamic initial callables."""

    def __init__(self, owner_class: type, values: Dict[str, Any]):
        self._owner_class = owner_class
        self._values = values

    def __getattr__(self, name: str) -> Any:
        if name in self._values:
            return self._values[name]
        field = getattr(self._owner_class, "model_fields", {}).get(name)
        if field is not None and not field.is_required():
            return field.get_default(call_default_factory=True)
        return None


class Machine:
    def __init__(
        self,
        owner_class: type,
        attribute: str = "state",
        name: Optional[str] = None,
        translations: Optional[Translations] = None,
        persistence: Optional[Persistence] = None,
        **options,
    ):
        self.owner_class = owner_class
        self.attribute = attribute
        self.name = name or attribute
        self.options = MachineOptions(**options)
        # Used for subjects that are neither attached to a session nor mapped
        self.persistence = persistence

        self.mapped = inspect(owner_class, raiseerr=False) is not None
        self.enum_class = enum_class_for(owner_class, attribute)
        self.enum_integration = self._build_enum_integration()

        self.registry = Registry(self.name, default_value=self._default_value)
        self.callbacks = CallbackPipeline()
        self.executor = TransitionExecutor(self)
        self.resolver = MessageResolver(
            underscore(owner_class.__name__), self.name, translations, self.options.messages
        )
        self.naming = NamingTable(attribute, self.options.namespace, self.enum_integration)

        self._dynamic_initial: Optional[Callable[[Any], Optional[str]]] = None
        self._state_validators: Dict[Optional[str], List[Callable[[Any], None]]] = {}
        self._define_initial(self.options.initial)

        if self.mapped:
            sa_event.listen(owner_class, "init", self._on_init, propagate=True)

        logger.info(f"Defined state machine '{self.name}' on {owner_class.__name__}.{attribute}")

    # ==========================================================================
    # Options
    # ==========================================================================

    @property
    def action(self) -> Optional[Union[str, Callable[[Any], Any]]]:
        return self.options.action

    @property
    def use_transactions(self) -> bool:
        return self.options.use_transactions

    @property
    def event_attribute(self) -> str:
        return f"{self.name}_event"

    def _build_enum_integration(self) -> Optional[EnumIntegration]:
        if self.enum_class is None:
            return None
        mapping = enum_mapping(self.enum_class)
        return EnumIntegration(
            enum_class=self.enum_class,
            mapping=mapping,
            prefix=self.options.enum_prefix,
            suffix=self.options.enum_suffix,
            scopes=self.options.enum_scopes,
            original_methods=detect_original_methods(self.owner_class, mapping),
        )

    def _default_value(self, name: Optional[str]) -> Any:
        """Enum columns store the enum member; everything else the name."""
        if self.enum_class is None or name is None:
            return _UNSET
        if name in self.enum_class.__members__:
            return self.enum_class[name]
        for member in self.enum_class:
            if member.value == name:
                return member
        return _UNSET

    # ==========================================================================
    # Definition
    # ==========================================================================

    def state(
        self,
        *names,
        value: Any = _UNSET,
        human_name: Optional[str] = None,
        validate: Optional[Callable[[Any], None]] = None,
    ) -> Union[State, List[State]]:
        """
        Defines one or more states. `value` and `human_name` only make sense for a single name.
        `validate(subject)` runs on save only while the subject is in one of these states;
        it reports problems through `errors_of(subject)`.
        """
        if len(names) != 1 and (value is not _UNSET or human_name is not None):
            raise StateMachineError("value/human_name can only be given when defining a single state")
        defined = [self.registry.define_state(name, value=value, human_name=human_name) for name in names]
        if validate is not None:
            for name in names:
                self._state_validators.setdefault(name, []).append(validate)
        return defined[0] if len(defined) == 1 else defined

    def other_states(self, *names) -> List[State]:
        """Registers states that are only reached by means other than events."""
        return [self.registry.ensure_state(name) for name in names]

    def event(self, name: str, human_name: Optional[str] = None) -> Event:
        return self.registry.define_event(name, human_name=human_name)

    def _register(self, register: Callable, fn, filters: Dict[str, Any]):
        callback_filter = CallbackFilter.build(**filters)
        # States named by callback filters are known states too
        for name in callback_filter.state_names:
            self.registry.ensure_state(name)

        if fn is None:
            def decorator(func):
                register(func, callback_filter)
                return func

            return decorator

        register(fn, callback_filter)
        return fn

    def before_transition(self, fn=None, **filters):
        return self._register(self.callbacks.register_before, fn, filters)

    def after_transition(self, fn=None, **filters):
        return self._register(self.callbacks.register_after, fn, filters)

    def around_transition(self, fn=None, **filters):
        return self._register(self.callbacks.register_around, fn, filters)

    def after_failure(self, fn=None, **filters):
        return self._register(self.callbacks.register_failure, fn, filters)

    # ==========================================================================
    # Initial state
    # ==========================================================================

    def _define_initial(self, initial) -> None:
        default = column_default(self.owner_class, self.attribute)

        if callable(initial):
            self._dynamic_initial = initial
            return

        if initial is not None:
            self._dynamic_initial = None
            state = self.registry.mark_initial(initial)
            if default is not None and state.stored_value != default:
                logger.warning(DEFAULT_CONFLICT_WARNING.format(
                    owner=self.owner_class.__name__, name=self.name, attribute=self.attribute
                ))
            return

        if default is None:
            return
        # No initial given: the column default names the initial state
        for state in self.registry.states:
            if state.matches_value(default):
                self.registry.mark_initial(state.name)
                return
        name = default.name if isinstance(default, enum.Enum) else str(default)
        self.registry.define_state(name, value=default)
        self.registry.mark_initial(name)

    @property
    def initial_state(self) -> Optional[State]:
        """The static initial state, if any."""
        return next((state for state in self.registry.states if state.initial), None)

    def initial_state_name(self, subject: Any) -> Optional[str]:
        if self._dynamic_initial is not None:
            return self._dynamic_initial(subject)
        state = self.initial_state
        return state.name if state is not None else None

    def _has_initial(self) -> bool:
        return self._dynamic_initial is not None or self.initial_state is not None

    def _on_init(self, target, args, kwargs) -> None:
        # Runs before the original __init__; editing kwargs in place is the
        # only way to hand it a value.
        if kwargs.get(self.attribute) is not None or not self._has_initial():
            return
        name = self.initial_state_name(_ConstructorView(type(target), kwargs))
        if name is None:
            return
        kwargs[self.attribute] = self.registry.state_by_name(name).stored_value

    def initialize_state(self, subject: Any, force: bool = False) -> Any:
        """
        Writes the initial state to a plain (unmapped) subject.
        Existing values are kept unless `force` is given.
        """
        if not self._has_initial():
            return subject
        if not force and self.read(subject) is not None:
            return subject
        name = self.initial_state_name(subject)
        if name is None:
            return subject
        setattr(subject, self.attribute, self.registry.state_by_name(name).stored_value)
        return subject

    # ==========================================================================
    # Reading state
    # ==========================================================================

    @property
    def states(self) -> List[State]:
        return self.registry.states

    @property
    def events(self) -> List[Event]:
        return self.registry.events

    def read(self, subject: Any) -> Any:
        return getattr(subject, self.attribute, None)

    def current_state(self, subject: Any) -> State:
        return self.registry.state_by_value(self.read(subject))

    def state_name(self, subject: Any) -> Optional[str]:
        return self.current_state(subject).name

    def matches(self, subject: Any, state_name: Optional[str]) -> bool:
        return self.registry.state_by_name(state_name).matches_value(self.read(subject))

    def human_state_name(self, name: Optional[str]) -> str:
        state = self.registry.state_by_name(name)
        return self.resolver.human_state_name(name, state.human_name)

    def human_event_name(self, name: str) -> str:
        event = self.registry.event_by_name(name)
        return self.resolver.human_event_name(name, event.human_name)

    def human_state_of(self, subject: Any) -> str:
        return self.human_state_name(self.state_name(subject))

    # ==========================================================================
    # Firing events
    # ==========================================================================

    def can_fire(self, subject: Any, event_name: str) -> bool:
        event = self.registry.event_by_name(event_name)
        try:
            from_state = self.current_state(subject)
        except UnknownStateError:
            return False
        return event.can_fire_from(from_state.name, subject)

    def transition_for(self, subject: Any, event_name: str) -> Optional[Transition]:
        """The transition `event_name` would perform now, without performing it."""
        self.registry.event_by_name(event_name)
        try:
            from_state = self.current_state(subject)
        except UnknownStateError:
            return None
        found = self.registry.find_transition(event_name, from_state.name, subject)
        if found is None:
            return None
        return Transition(subject, self, event_name, from_state.name, found[1], from_value=self.read(subject))

    def fire(self, subject: Any, event_name: str, session: Optional[Any] = None, run_action: bool = True) -> bool:
        return self.executor.perform(subject, event_name, run_action=run_action, session=session)

    def fire_or_raise(self, subject: Any, event_name: str, session: Optional[Any] = None, run_action: bool = True) -> bool:
        return self.executor.perform(
            subject, event_name, run_action=run_action, raise_on_failure=True, session=session
        )

    # ==========================================================================
    # Event attribute
    # ==========================================================================

    @property
    def _pending_key(self) -> str:
        return f"_sm_pending_{self.name}"

    def queue_event(self, subject: Any, event_name: Optional[str]) -> None:
        """Stores an event to fire on the next save(); None clears it."""
        object.__setattr__(subject, self._pending_key, event_name)

    def pending_event(self, subject: Any) -> Optional[str]:
        return subject.__dict__.get(self._pending_key)

    def save(self, subject: Any, session: Optional[Any] = None, raise_on_failure: bool = False) -> bool:
        """
        Saves the subject, firing its pending event around the save.
        Without a pending event this is a plain save.
        """
        event_name = self.pending_event(subject)
        if event_name is None:
            return self._plain_save(subject, session)

        errors_of(subject).clear(self.event_attribute)
        if event_name not in {event.name for event in self.registry.events}:
            self.invalidate(subject, self.event_attribute, MessageKey.INVALID)
            return self._event_failed(subject, event_name, raise_on_failure)

        if not self.can_fire(subject, event_name):
            try:
                label = self.human_state_of(subject)
            except UnknownStateError:
                label = str(self.read(subject))
            self.invalidate(subject, self.event_attribute, MessageKey.INVALID_EVENT, [("state", label)])
            return self._event_failed(subject, event_name, raise_on_failure)

        result = self.executor.perform(subject, event_name, raise_on_failure=raise_on_failure, session=session)
        if result:
            self.queue_event(subject, None)
        return result

    def _plain_save(self, subject: Any, session: Optional[Any]) -> bool:
        persistence = self.persistence_for(subject, session)
        if persistence is None:
            raise StateMachineError(f"No persistence available to save {type(subject).__name__}")
        try:
            return persistence.save(subject, self.state_validators())
        finally:
            persistence.close()

    def _event_failed(self, subject: Any, event_name: str, raise_on_failure: bool) -> bool:
        if raise_on_failure:
            raise InvalidTransitionError(
                subject, self, event_name, self._current_name_or_value(subject), self.errors_for(subject)
            )
        return False

    def _current_name_or_value(self, subject: Any) -> Any:
        try:
            return self.state_name(subject)
        except UnknownStateError:
            return self.read(subject)

    # ==========================================================================
    # Errors
    # ==========================================================================

    def validate_state(self, subject: Any) -> None:
        """Runs the validators defined for the subject's current state."""
        try:
            name = self.state_name(subject)
        except UnknownStateError:
            return
        for validator in self._state_validators.get(name, ()):
            validator(subject)

    def state_validators(self) -> List[Callable[[Any], None]]:
        """State-scoped validation hooks of this machine and the owner's other machines."""
        machines = list(machines_for(self.owner_class).values())
        if self not in machines:
            machines.append(self)
        return [machine.validate_state for machine in machines if machine._state_validators]

    def invalidate(self, subject: Any, attribute: str, reason: str, interpolation=()) -> None:
        """Adds the message for `reason` to the subject's errors on `attribute`."""
        message = self.resolver.message(reason, **dict(interpolation))
        errors_of(subject).add(attribute, message)

    def errors_for(self, subject: Any) -> str:
        messages = errors_of(subject).full_messages
        return ", ".join(messages) if messages else settings.HALTED_MESSAGE

    def reset(self, subject: Any) -> None:
        errors_of(subject).clear()

    # ==========================================================================
    # Persistence and transactions
    # ==========================================================================

    def persistence_for(self, subject: Any, session: Optional[Any] = None) -> Optional[Persistence]:
        """
        Picks the adapter a transition on `subject` writes through:
        an explicit Persistence or Session, the session the subject is
        attached to, the machine's configured adapter, or a fresh Session
        on the default engine for mapped classes.
        """
        if isinstance(session, Persistence):
            return session
        if session is not None:
            return SessionPersistence(session)

        if self.mapped:
            attached = object_session(subject)
            if attached is not None:
                return SessionPersistence(attached)

        if self.persistence is not None:
            return self.persistence

        if self.mapped:
            return SessionPersistence(get_session(), owned=True)
        return None

    def run_action(self, subject: Any, persistence: Optional[Persistence]) -> Any:
        action = self.action
        if action is None:
            return True
        if action == "save":
            if persistence is None:
                raise StateMachineError(f"No persistence available to save {type(subject).__name__}")
            return persistence.save(subject, self.state_validators())
        if callable(action):
            return action(subject)
        return getattr(subject, action)()

    def within_transaction(self, subject: Any, block: Callable[[], Any], session: Optional[Any] = None) -> Any:
        persistence = self.persistence_for(subject, session)
        try:
            return within_transaction(persistence, block, use_transactions=self.use_transactions)
        finally:
            if persistence is not None:
                persistence.close()

    # ==========================================================================
    # Scopes
    # ==========================================================================

    def _scope_values(self, names) -> List[Any]:
        flat = []
        for name in names:
            if isinstance(name, (list, tuple, set, frozenset)):
                flat.extend(name)
            else:
                flat.append(name)
        # nil names are dropped so an absent filter leaves the query untouched
        return self.registry.stored_values([name for name in flat if name is not None])

    def _require_mapped(self) -> None:
        if not self.mapped:
            raise StateMachineError(f"{self.owner_class.__name__} is not a mapped class; scopes need a table")

    def with_states(self, *names, statement=None):
        self._require_mapped()
        return scopes.with_values(self.owner_class, self.attribute, self._scope_values(names), statement)

    def with_state(self, *names, statement=None):
        return self.with_states(*names, statement=statement)

    def without_states(self, *names, statement=None):
        self._require_mapped()
        return scopes.without_values(self.owner_class, self.attribute, self._scope_values(names), statement)

    def without_state(self, *names, statement=None):
        return self.without_states(*names, statement=statement)

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @property
    def helper_names(self) -> Dict[Any, str]:
        return self.naming.build(self.registry.state_names)

    def helper(self, identifier: str) -> Callable:
        """
        Resolves a helper identifier from the naming table:

        - predicate: helper(subject) -> bool
        - scope / not_<scope>: helper(statement=None) -> select statement
        - bang: a placeholder that always raises
        """
        self.naming.build(self.registry.state_names)
        found = self.naming.lookup(identifier)
        if found is None:
            raise AttributeError(f"{self.owner_class.__name__}.{self.name} has no state helper {identifier!r}")
        state_name, kind, negated = found

        if kind is MethodKind.PREDICATE:
            return lambda subject: self.matches(subject, state_name)

        if kind is MethodKind.SCOPE:
            if negated:
                return lambda statement=None: self.without_state(state_name, statement=statement)
            return lambda statement=None: self.with_state(state_name, statement=statement)

        def placeholder(*args, **kwargs):
            raise StateMachineError(
                f"{identifier} is a conflict-resolution placeholder. "
                f"Use the original enum helper '{state_name}' or state machine events instead."
            )

        return placeholder

    def __repr__(self) -> str:
        return f"<Machine {self.owner_class.__name__}.{self.name} attribute={self.attribute!r}>"


def state_machine(owner_class: type, attribute: str = "state", name: Optional[str] = None, **options) -> Machine:
    """
    Returns the machine `name` (defaults to the attribute) of `owner_class`,
    defining it on first use. Calling again with `initial` moves the initial state.
    """
    name = name or attribute
    machines = _MACHINES.setdefault(owner_class, {})
    machine = machines.get(name)
    if machine is None:
        machine = Machine(owner_class, attribute, name=name, **options)
        machines[name] = machine
        return machine

    if options.get("initial") is not None:
        machine._define_initial(options["initial"])
    return machine


def machines_for(owner_class: type) -> Dict[str, Machine]:
    """All machines of `owner_class`, including inherited ones (subclasses win)."""
    found: Dict[str, Machine] = {}
    for klass in reversed(owner_class.__mro__):
        found.update(_MACHINES.get(klass, {}))
    return found
