"""Domain models for kinematics and commands."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterator, Optional


@dataclass(slots=True)
class Vector3:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def copy(self) -> "Vector3":
        return Vector3(self.x, self.y, self.z)

    def norm(self) -> float:
        return math.sqrt(self.x * self.x + self.y * self.y + self.z * self.z)

    def __iter__(self) -> Iterator[float]:
        yield self.x
        yield self.y
        yield self.z

    def __add__(self, other: "Vector3") -> "Vector3":
        return Vector3(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: "Vector3") -> "Vector3":
        return Vector3(self.x - other.x, self.y - other.y, self.z - other.z)

    def __neg__(self) -> "Vector3":
        return Vector3(-self.x, -self.y, -self.z)

    def __mul__(self, factor: float) -> "Vector3":
        return Vector3(self.x * factor, self.y * factor, self.z * factor)

    def __truediv__(self, divisor: float) -> "Vector3":
        return Vector3(self.x / divisor, self.y / divisor, self.z / divisor)

    @classmethod
    def parse(cls, value: str) -> "Vector3":
        """Build a vector from an ``"x,y,z"`` string."""

        parts = [item.strip() for item in value.split(",") if item.strip()]
        if len(parts) != 3:
            raise ValueError(f"Expected three components, got {value!r}")
        x, y, z = (float(item) for item in parts)
        return cls(x, y, z)


@dataclass(frozen=True, slots=True)
class Command:
    """A robot command: a name and an optional numeric argument.

    Equality is structural, which is what duplicate suppression relies on.
    """

    name: str
    argument: Optional[float] = None

    def encode(self) -> bytes:
        """Serialize to the line-oriented wire form, e.g. ``b"dx 50\\r\\n"``."""

        if self.argument is None:
            return f"{self.name}\r\n".encode("ascii")
        return f"{self.name} {_format_argument(self.argument)}\r\n".encode("ascii")

    def __str__(self) -> str:
        if self.argument is None:
            return self.name
        return f"{self.name} {_format_argument(self.argument)}"


@dataclass(frozen=True, slots=True)
class EntityOrder:
    """A command addressed to one robot, received over its OSC link."""

    robot_id: str
    command: Command


def _format_argument(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))
