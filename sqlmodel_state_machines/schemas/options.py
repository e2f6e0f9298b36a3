"""
Schemas - Machine Configuration

This module defines the Pydantic model that validates the keyword options
given when a machine is defined. Defaults come from the package Settings so a
deployment can flip e.g. transactions off globally via the environment.
"""
from typing import Any, Callable, Dict, Optional, Union
from pydantic import BaseModel, ConfigDict, Field

from ..config import settings

class MachineOptions(BaseModel):
    """
    Options accepted by state_machine(owner_class, attribute, **options).
    """
    model_config = ConfigDict(arbitrary_types_allowed=True, extra="forbid")

    initial: Optional[Union[str, Callable[[Any], Optional[str]]]] = Field(
        None,
        description="Initial state name, or a callable receiving the new subject and returning one."
    )
    action: Optional[Union[str, Callable[[Any], Any]]] = Field(
        default_factory=lambda: settings.DEFAULT_ACTION,
        description="'save' (session persistence), the name of a method on the subject, a callable, or None."
    )
    use_transactions: bool = Field(
        default_factory=lambda: settings.USE_TRANSACTIONS,
        description="Wrap each transition in a (nested) database transaction."
    )
    messages: Dict[str, str] = Field(
        default_factory=dict,
        description="Per-machine error message overrides: a template, or an alias for another message key."
    )
    namespace: Optional[str] = Field(
        None,
        description="Prefix applied to generated helper names (e.g. 'alarm' -> is_alarm_active)."
    )
    enum_prefix: Union[bool, str] = Field(
        True,
        description="Prefix for helper names when the column is an Enum: True uses the attribute name."
    )
    enum_suffix: Union[bool, str] = Field(
        False,
        description="Suffix for helper names when the column is an Enum: True uses the attribute name."
    )
    enum_scopes: bool = Field(
        True,
        description="Generate scope helpers for enum-integrated machines."
    )
