"""
Matchers - State and Event Name Selection

Matchers answer "does this name belong to the set?" for transition rules and
callback filters. They mirror the usual rule shorthand:

- any_state: every state (the wildcard)
- all_except("parked"): every state except the listed ones
- a name or list of names: exactly those
"""

from dataclasses import dataclass, field
from typing import Any, FrozenSet, Iterable, Optional


class Matcher:
    """Base matcher. Subclasses implement matches()."""

    # Names this matcher refers to explicitly (used to auto-register states)
    values: FrozenSet[Any] = frozenset()

    def matches(self, name: Any) -> bool:
        raise NotImplementedError

    def filter(self, names: Iterable[Any]) -> list:
        return [name for name in names if self.matches(name)]


@dataclass(frozen=True)
class AllMatcher(Matcher):
    """Matches every name."""

    def matches(self, name: Any) -> bool:
        return True

    def __sub__(self, other) -> "BlacklistMatcher":
        return BlacklistMatcher(_as_names(other))

    def __repr__(self) -> str:
        return "any_state"


@dataclass(frozen=True)
class WhitelistMatcher(Matcher):
    """Matches only the listed names."""

    values: FrozenSet[Any] = field(default_factory=frozenset)

    def matches(self, name: Any) -> bool:
        return name in self.values


@dataclass(frozen=True)
class BlacklistMatcher(Matcher):
    """Matches every name except the listed ones."""

    values: FrozenSet[Any] = field(default_factory=frozenset)

    def matches(self, name: Any) -> bool:
        return name not in self.values


any_state = AllMatcher()


def all_except(*names) -> BlacklistMatcher:
    return BlacklistMatcher(_as_names(names))


def _as_names(value) -> FrozenSet[Any]:
    if isinstance(value, (list, tuple, set, frozenset)):
        return frozenset(value)
    return frozenset([value])


def coerce(value: Any, default: Optional[Matcher] = None) -> Matcher:
    """
    Turns a rule/filter argument into a Matcher.
    None means "not specified" and yields the default (any_state).
    """
    if value is None:
        return default if default is not None else any_state
    if isinstance(value, Matcher):
        return value
    return WhitelistMatcher(_as_names(value))
