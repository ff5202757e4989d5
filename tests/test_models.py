"""Tests for commands and vectors."""

import pytest

from metabot_fleet.core.models import Command, Vector3


def test_command_equality_is_structural():
    assert Command("dx", 50) == Command("dx", 50.0)
    assert Command("dx", 50) != Command("dx", 51)
    assert Command("dx", 50) != Command("dy", 50)
    assert Command("h") == Command("h", None)


def test_command_is_immutable():
    command = Command("dx", 5)

    with pytest.raises(AttributeError):
        command.name = "dy"  # type: ignore[misc]


@pytest.mark.parametrize(
    "command, expected",
    [
        (Command("h"), b"h\r\n"),
        (Command("dx", 50), b"dx 50\r\n"),
        (Command("dy", -30.0), b"dy -30\r\n"),
        (Command("freq", 1.5), b"freq 1.5\r\n"),
    ],
)
def test_command_encoding(command, expected):
    assert command.encode() == expected


def test_vector_arithmetic():
    a = Vector3(1, 2, 3)
    b = Vector3(4, 6, 8)

    assert a + b == Vector3(5, 8, 11)
    assert b - a == Vector3(3, 4, 5)
    assert -a == Vector3(-1, -2, -3)
    assert b / 2 == Vector3(2, 3, 4)
    assert a * 2 == Vector3(2, 4, 6)
    assert Vector3(3, 4, 0).norm() == 5


def test_vector_copy_is_independent():
    original = Vector3(1, 1, 1)
    clone = original.copy()

    clone.x = 9

    assert original.x == 1


def test_vector_parse():
    assert Vector3.parse("500, 250,100") == Vector3(500, 250, 100)
    with pytest.raises(ValueError):
        Vector3.parse("1,2")
