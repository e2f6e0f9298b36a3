import copy
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, List, Tuple

from sqlalchemy.orm import SessionTransactionOrigin
from sqlmodel import Session

from ..runtime.errors import errors_of

logger = logging.getLogger(__name__)

# Kept in Session.info so every adapter bound to the same session agrees on it
DEPTH_KEY = "state_machines.transaction_depth"


def run_validations(subject: Any, validators: Iterable[Callable[[Any], None]] = ()) -> bool:
    """
    Clears the subject's errors, runs its validation hook and then any extra
    `validators` (state-scoped ones from the machines). Returns True when valid.
    """
    errors = errors_of(subject)
    errors.clear()
    hook = getattr(subject, "run_validations", None)
    if callable(hook):
        hook()
    for validator in validators:
        validator(subject)
    return not errors


class Boundary(ABC):
    """One open atomic-commit scope. Exactly one of commit()/rollback() is called."""

    @abstractmethod
    def commit(self):
        pass

    @abstractmethod
    def rollback(self):
        pass


class Persistence(ABC):
    """
    Defines how the state machine writes subjects.
    The executor only ever calls save() as the transition's action and
    begin() to open a transactional boundary, so the storage can change
    (Memory -> SQL) without touching the executor.
    """

    @abstractmethod
    def save(self, subject: Any, validators: Iterable[Callable[[Any], None]] = ()) -> bool:
        """Validates and writes the subject. Returns False when validation fails."""
        pass

    @abstractmethod
    def begin(self) -> Boundary:
        """Opens a (possibly nested) transactional boundary."""
        pass

    def close(self):
        """Releases resources the adapter opened itself. Borrowed ones stay open."""
        pass


class _SessionBoundary(Boundary):
    def __init__(self, session: Session):
        self.session = session
        self._joined = False
        current = session.get_transaction()
        if session.info.get(DEPTH_KEY, 0) or (
            current is not None and current.origin is not SessionTransactionOrigin.AUTOBEGIN
        ):
            # Inside one of our boundaries, or a transaction the caller began
            # explicitly: a SAVEPOINT so the outer scope decides the commit.
            self._transaction = session.begin_nested()
        elif current is not None:
            # Loads and refreshes autobegin a transaction nobody owns; take it over.
            self._transaction = current
            self._joined = True
        else:
            self._transaction = session.begin()
        session.info[DEPTH_KEY] = session.info.get(DEPTH_KEY, 0) + 1

    def _release(self):
        self.session.info[DEPTH_KEY] = max(self.session.info.get(DEPTH_KEY, 1) - 1, 0)

    def commit(self):
        try:
            if self._joined:
                self.session.commit()
            else:
                self._transaction.commit()
        finally:
            self._release()

    def rollback(self):
        try:
            if self._joined:
                self.session.rollback()
            else:
                self._transaction.rollback()
        finally:
            self._release()


class SessionPersistence(Persistence):
    """
    SQLModel Session storage.

    save() flushes when a boundary is open (the boundary commits) and commits
    straight away otherwise, matching a plain ORM save.
    """

    def __init__(self, session: Session, owned: bool = False):
        self.session = session
        self.owned = owned

    def close(self):
        if self.owned:
            self.session.close()

    @property
    def depth(self) -> int:
        return self.session.info.get(DEPTH_KEY, 0)

    def save(self, subject: Any, validators: Iterable[Callable[[Any], None]] = ()) -> bool:
        if not run_validations(subject, validators):
            logger.debug(f"Validation failed for {type(subject).__name__}: {errors_of(subject).full_messages}")
            return False

        self.session.add(subject)
        if self.depth:
            self.session.flush()
        else:
            self.session.commit()
        return True

    def begin(self) -> Boundary:
        return _SessionBoundary(self.session)


class _MemoryBoundary(Boundary):
    def __init__(self, persistence: "InMemoryPersistence"):
        self.persistence = persistence
        self._snapshot = dict(persistence._store)

    def commit(self):
        pass

    def rollback(self):
        # Restore both the store and the attributes of every subject it held
        self.persistence._store = self._snapshot
        for subject, attributes in self._snapshot.values():
            subject.__dict__.update(copy.copy(attributes))


class InMemoryPersistence(Persistence):
    """
    Uses an in-memory dictionary keyed by object identity for testing/dev
    purposes and for plain (non-ORM) subjects.
    """

    def __init__(self):
        self._store: Dict[int, Tuple[Any, Dict[str, Any]]] = {}

    def save(self, subject: Any, validators: Iterable[Callable[[Any], None]] = ()) -> bool:
        if not run_validations(subject, validators):
            return False
        attributes = {key: value for key, value in vars(subject).items() if not key.startswith("_")}
        self._store = {**self._store, id(subject): (subject, attributes)}
        return True

    def begin(self) -> Boundary:
        return _MemoryBoundary(self)

    @property
    def records(self) -> List[Any]:
        return [subject for subject, _ in self._store.values()]

    def stored_attributes(self, subject: Any) -> Dict[str, Any]:
        return dict(self._store[id(subject)][1])

    def __contains__(self, subject: Any) -> bool:
        return id(subject) in self._store
