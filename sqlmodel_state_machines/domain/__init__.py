"""
Domain Layer - Static Machine Definitions

Defines the States, Events, transition rules and matchers that make up a
machine, plus the Registry used to look them up.
"""

from sqlmodel_state_machines.domain.matchers import (
    AllMatcher,
    BlacklistMatcher,
    Matcher,
    WhitelistMatcher,
    all_except,
    any_state,
)
from sqlmodel_state_machines.domain.models import (
    Event,
    State,
    TransitionRule,
    same,
)
from sqlmodel_state_machines.domain.registry import Registry

__all__ = [
    "AllMatcher",
    "BlacklistMatcher",
    "Matcher",
    "WhitelistMatcher",
    "all_except",
    "any_state",
    "Event",
    "State",
    "TransitionRule",
    "same",
    "Registry",
]
