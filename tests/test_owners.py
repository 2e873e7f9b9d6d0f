import pytest

from speedtype.errors import InvalidOwner
from speedtype.owners import (
    GuestOwner,
    UserOwner,
    owner_columns,
    owner_from_row,
    resolve_owner,
)


class _Row:
    def __init__(self, user_id, guest_session_id):
        self.user_id = user_id
        self.guest_session_id = guest_session_id


def test_resolve_user():
    assert resolve_owner(7, None) == UserOwner(7)


def test_resolve_guest():
    assert resolve_owner(None, 3) == GuestOwner(3)


@pytest.mark.parametrize("user_id,guest_session_id", [(None, None), (1, 2)])
def test_both_or_neither_is_invalid(user_id, guest_session_id):
    with pytest.raises(InvalidOwner):
        resolve_owner(user_id, guest_session_id)


def test_columns():
    assert owner_columns(UserOwner(4)) == {"user_id": 4, "guest_session_id": None}
    assert owner_columns(GuestOwner(9)) == {"user_id": None, "guest_session_id": 9}


def test_columns_reject_non_owner():
    with pytest.raises(InvalidOwner):
        owner_columns(None)


def test_from_row():
    assert owner_from_row(_Row(None, 5)) == GuestOwner(5)
    with pytest.raises(InvalidOwner):
        owner_from_row(_Row(None, None))
