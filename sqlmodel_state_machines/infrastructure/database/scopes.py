"""
Query Scopes.

Builds SELECT statements filtering an owner class by stored state values.
Callers translate state names to stored values first; an empty value list is
"transparent" and returns the statement unfiltered so scopes can be chained
straight from optional request parameters.
"""

from typing import Any, Optional, Sequence

from sqlalchemy import or_
from sqlmodel import col, select


def _base(owner_class: type, statement):
    return statement if statement is not None else select(owner_class)


def _column(owner_class: type, attribute: str):
    return col(getattr(owner_class, attribute))


def with_values(owner_class: type, attribute: str, values: Sequence[Any], statement: Optional[Any] = None):
    """SELECT ... WHERE attribute IN (values)"""
    statement = _base(owner_class, statement)
    if not values:
        return statement

    column = _column(owner_class, attribute)
    present = [value for value in values if value is not None]
    clauses = []
    if present:
        clauses.append(column.in_(present))
    if len(present) != len(values):
        clauses.append(column.is_(None))
    return statement.where(or_(*clauses))


def without_values(owner_class: type, attribute: str, values: Sequence[Any], statement: Optional[Any] = None):
    """SELECT ... WHERE attribute NOT IN (values)"""
    statement = _base(owner_class, statement)
    if not values:
        return statement

    column = _column(owner_class, attribute)
    present = [value for value in values if value is not None]
    if len(present) != len(values):
        statement = statement.where(column.is_not(None))
    if present:
        # NOT IN drops NULL rows, same as a plain SQL inequality would
        statement = statement.where(column.not_in(present))
    return statement
