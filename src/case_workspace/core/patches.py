"""Partial-update markers for update commands.

Every field of an update command is one of:

  UNCHANGED    leave the stored value as it is (the default)
  CLEAR        reset an optional field to None
  <any value>  set the field to that value

Only fields documented as clearable accept CLEAR; the engine treats CLEAR on
a required field as UNCHANGED.
"""

from enum import Enum
from typing import Any, TypeVar

T = TypeVar("T")


class Patch(Enum):
    UNCHANGED = "unchanged"
    CLEAR = "clear"

    def __repr__(self) -> str:
        return f"Patch.{self.name}"


UNCHANGED = Patch.UNCHANGED
CLEAR = Patch.CLEAR


def is_set(update: Any) -> bool:
    """Return True if update carries a concrete value."""
    return not isinstance(update, Patch)


def resolve(update: Any, current: T) -> T:
    """Apply a clearable field update to the current value.

    Args:
        update: UNCHANGED, CLEAR or a new value.
        current: The stored value.

    Returns:
        current for UNCHANGED, None for CLEAR, otherwise update.
    """
    if update is UNCHANGED:
        return current
    if update is CLEAR:
        return None  # type: ignore[return-value]
    return update


def resolve_required(update: Any, current: T) -> T:
    """Apply a field update to a field that cannot be cleared."""
    if isinstance(update, Patch):
        return current
    return update
