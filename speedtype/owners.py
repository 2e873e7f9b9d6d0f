"""Who a test session or result belongs to: a registered user or a guest."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from speedtype.errors import InvalidOwner


@dataclass(frozen=True)
class UserOwner:
    user_id: int


@dataclass(frozen=True)
class GuestOwner:
    guest_session_id: int


Owner = Union[UserOwner, GuestOwner]


def resolve_owner(user_id: Optional[int], guest_session_id: Optional[int]) -> Owner:
    """Build an owner from the two nullable identity fields.

    Raises InvalidOwner when both or neither are given.
    """
    if (user_id is None) == (guest_session_id is None):
        raise InvalidOwner()
    if user_id is not None:
        return UserOwner(user_id)
    return GuestOwner(guest_session_id)


def owner_columns(owner: Owner) -> dict[str, Optional[int]]:
    """Map an owner onto the ``user_id`` / ``guest_session_id`` columns."""
    if isinstance(owner, UserOwner):
        return {"user_id": owner.user_id, "guest_session_id": None}
    if isinstance(owner, GuestOwner):
        return {"user_id": None, "guest_session_id": owner.guest_session_id}
    raise InvalidOwner()


def owner_from_row(row) -> Owner:
    """Read the owner back from any row carrying both owner columns."""
    return resolve_owner(row.user_id, row.guest_session_id)


def describe(owner: Owner) -> str:
    if isinstance(owner, UserOwner):
        return f"user:{owner.user_id}"
    return f"guest:{owner.guest_session_id}"
