"""
Helper Naming - Static (state, kind) -> identifier Table

Machines expose per-state helpers (a predicate, a setter placeholder and a
query scope). Their identifiers are decided once at definition time and kept
in a lookup table; nothing is generated on the owner class.

When the state column is an SQLAlchemy Enum, the plain names would collide
with the enum-style helpers an application typically already defines
(`is_pending`, `pending`, ...), so the state part of every identifier gets the
attribute name as prefix: `is_status_pending`, `set_status_pending`,
`status_pending`.
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple, Type, Union


class MethodKind(str, enum.Enum):
    PREDICATE = "predicate"
    BANG = "bang"
    SCOPE = "scope"


PATTERNS = {
    MethodKind.PREDICATE: "is_{name}",
    MethodKind.BANG: "set_{name}",
    MethodKind.SCOPE: "{name}",
}

NEGATED_SCOPE_PREFIX = "not_"


@dataclass(frozen=True)
class EnumIntegration:
    """
    Attributes:
        enum_class: The Python Enum bound to the column.
        mapping: Member name -> member value.
        prefix: True (attribute name), a custom string, or False.
        suffix: True (attribute name), a custom string, or False.
        scopes: Whether scope helpers are part of the table.
        original_methods: Enum-style helper names already defined on the owner class.
    """
    enum_class: Type[enum.Enum]
    mapping: Dict[str, Any]
    prefix: Union[bool, str] = True
    suffix: Union[bool, str] = False
    scopes: bool = True
    original_methods: Tuple[str, ...] = field(default_factory=tuple)


def detect_original_methods(owner_class: type, mapping: Dict[str, Any]) -> Tuple[str, ...]:
    found = []
    for name in mapping:
        for kind in MethodKind:
            identifier = PATTERNS[kind].format(name=name)
            if hasattr(owner_class, identifier):
                found.append(identifier)
        negated = f"{NEGATED_SCOPE_PREFIX}{name}"
        if hasattr(owner_class, negated):
            found.append(negated)
    return tuple(found)


class NamingTable:
    def __init__(
        self,
        attribute: str,
        namespace: Optional[str] = None,
        enum_integration: Optional[EnumIntegration] = None,
    ):
        self.attribute = attribute
        self.namespace = namespace
        self.enum_integration = enum_integration
        self._table: Dict[Tuple[Optional[str], MethodKind], str] = {}
        self._reverse: Dict[str, Tuple[Optional[str], MethodKind, bool]] = {}

    @property
    def kinds(self) -> List[MethodKind]:
        if self.enum_integration is not None and not self.enum_integration.scopes:
            return [MethodKind.PREDICATE, MethodKind.BANG]
        return list(MethodKind)

    def _affix(self, value: Union[bool, str]) -> Optional[str]:
        if value is True:
            return self.attribute
        return value or None

    def method_name(self, state_name: str, kind: MethodKind) -> str:
        part = str(state_name)
        if self.enum_integration is not None:
            prefix = self._affix(self.enum_integration.prefix)
            suffix = self._affix(self.enum_integration.suffix)
            if prefix:
                part = f"{prefix}_{part}"
            if suffix:
                part = f"{part}_{suffix}"
        elif self.namespace:
            part = f"{self.namespace}_{part}"
        return PATTERNS[kind].format(name=part)

    def build(self, state_names: Iterable[Optional[str]]) -> Dict[Tuple[Optional[str], MethodKind], str]:
        """(Re)builds the table for the given states; the nil state gets no helpers."""
        self._table.clear()
        self._reverse.clear()
        for state_name in state_names:
            if state_name is None:
                continue
            for kind in self.kinds:
                identifier = self.method_name(state_name, kind)
                self._table[(state_name, kind)] = identifier
                self._reverse[identifier] = (state_name, kind, False)
                if kind is MethodKind.SCOPE:
                    self._reverse[f"{NEGATED_SCOPE_PREFIX}{identifier}"] = (state_name, kind, True)
        return dict(self._table)

    def lookup(self, identifier: str) -> Optional[Tuple[Optional[str], MethodKind, bool]]:
        """identifier -> (state name, kind, negated) or None."""
        return self._reverse.get(identifier)

    @property
    def generated(self) -> List[str]:
        """Identifiers that differ from the plain, unprefixed names."""
        return [
            identifier
            for (state_name, kind), identifier in self._table.items()
            if identifier != PATTERNS[kind].format(name=state_name)
        ]
