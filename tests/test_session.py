import pytest

from kterminus.session import SessionId


def test_session_id_display():
    assert str(SessionId(42)) == "session-42"


def test_session_id_equality():
    assert SessionId(1) == SessionId(1)
    assert SessionId(1) != SessionId(2)


def test_session_id_int_and_hash():
    assert int(SessionId(7)) == 7
    assert len({SessionId(3), SessionId(3), SessionId(4)}) == 2


def test_control_is_zero():
    assert SessionId.CONTROL == SessionId(0)


@pytest.mark.parametrize("value", [-1, 2**32])
def test_out_of_range(value):
    with pytest.raises(ValueError):
        SessionId(value)


def test_ordering():
    assert sorted([SessionId(5), SessionId(2)]) == [SessionId(2), SessionId(5)]