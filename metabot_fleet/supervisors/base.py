"""The supervisor contract shared by every control behavior.

A supervisor owns non-owning references to a subset of the fleet's robots
and a bounding volume. Once per tick ``step()`` reads every owned robot's
position and velocity and writes new velocities. Orders received by one of
its robots pass through ``on_entity_order()`` (a supervisor may veto them),
and messages addressed to the supervisor itself reach ``on_osc_message()``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ClassVar, Dict, Iterable, Optional

from ..core.models import EntityOrder, Vector3
from ..robot.entity import RobotEntity

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class KinematicState:
    position: Vector3
    velocity: Vector3


@dataclass(frozen=True, slots=True)
class AxisFlags:
    x: bool = False
    y: bool = False
    z: bool = False

    def any(self) -> bool:
        return self.x or self.y or self.z


Snapshot = Dict[str, KinematicState]


class Supervisor(ABC):
    kind: ClassVar[str] = "abstract"

    def __init__(
        self,
        name: str,
        bounding_volume: Vector3,
        robots: Iterable[RobotEntity] = (),
    ) -> None:
        self.name = name
        self.bounding_volume = bounding_volume
        self.robots: Dict[str, RobotEntity] = {}
        for robot in robots:
            self.add_robot(robot)

    def add_robot(self, robot: RobotEntity) -> None:
        self.robots[robot.id] = robot

    def remove_robot(self, robot_id: str) -> Optional[RobotEntity]:
        return self.robots.pop(robot_id, None)

    def owns(self, robot_id: str) -> bool:
        return robot_id in self.robots

    def snapshot(self) -> Snapshot:
        """Copy every owned robot's position and velocity."""
        return {
            robot_id: KinematicState(
                position=robot.position.copy(), velocity=robot.velocity.copy()
            )
            for robot_id, robot in self.robots.items()
        }

    def step(self) -> None:
        if not self.robots:
            return
        updates = self.compute(self.snapshot())
        for robot_id, velocity in updates.items():
            robot = self.robots.get(robot_id)
            if robot is not None:
                robot.velocity = velocity

    @abstractmethod
    def compute(self, snapshot: Snapshot) -> Dict[str, Vector3]:
        """Return the new velocity of each robot that changes this tick."""

    def out_of_bounds(self, position: Vector3) -> AxisFlags:
        bounds = self.bounding_volume
        return AxisFlags(
            x=abs(position.x) > bounds.x,
            y=abs(position.y) > bounds.y,
            z=abs(position.z) > bounds.z,
        )

    def accepts_order(self, order: EntityOrder) -> bool:
        return True

    def on_entity_order(self, order: EntityOrder) -> bool:
        """Forward an order to the owned robot unless vetoed; True if sent."""
        robot = self.robots.get(order.robot_id)
        if robot is None:
            return False
        if not self.accepts_order(order):
            LOGGER.debug("%s vetoed %s for %s", self.name, order.command, robot.id)
            return False
        return robot.execute_command(order.command, verify=True)

    def on_osc_message(self, message: str) -> None:
        return None

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(name={self.name!r}, robots={list(self.robots)})"
        )
