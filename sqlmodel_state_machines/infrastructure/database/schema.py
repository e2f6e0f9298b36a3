"""
Schema Introspection.

Read-only lookups against the SQLAlchemy mapping of an owner class. Only used
while a machine is being defined: to find the column default of the state
attribute (initial-state precedence) and to detect Enum columns (helper-name
conflict resolution). Never consulted while transitions run.
"""

import enum
from typing import Any, Dict, Optional, Type

from sqlalchemy import Column, Enum as SAEnum, inspect


def mapped_column_for(owner_class: type, attribute: str) -> Optional[Column]:
    """Returns the Column behind `attribute`, or None for unmapped classes/attributes."""
    mapper = inspect(owner_class, raiseerr=False)
    if mapper is None or not hasattr(mapper, "column_attrs"):
        return None
    if attribute not in mapper.column_attrs:
        return None
    return mapper.column_attrs[attribute].columns[0]


def column_default(owner_class: type, attribute: str) -> Any:
    """
    The default value the owner class declares for `attribute`, or None.

    Mapped columns are checked first (scalar Python-side default, then a
    literal server default); plain pydantic/SQLModel fields fall back to the
    field default.
    """
    column = mapped_column_for(owner_class, attribute)
    if column is not None:
        if column.default is not None and column.default.is_scalar:
            return column.default.arg
        server_default = getattr(column.server_default, "arg", None)
        if isinstance(server_default, str):
            return server_default

    field = getattr(owner_class, "model_fields", {}).get(attribute)
    if field is None or field.is_required() or field.default_factory is not None:
        return None
    return field.default


def enum_class_for(owner_class: type, attribute: str) -> Optional[Type[enum.Enum]]:
    """The Python Enum bound to the attribute's column, if the column is an Enum type."""
    column = mapped_column_for(owner_class, attribute)
    if column is None:
        return None
    column_type = column.type
    if isinstance(column_type, SAEnum) and column_type.enum_class is not None:
        return column_type.enum_class
    return None


def enum_mapping(enum_class: Type[enum.Enum]) -> Dict[str, Any]:
    """Status -> {'pending': Status.pending.value, ...}"""
    return {member.name: member.value for member in enum_class}
