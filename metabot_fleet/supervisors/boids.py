"""Boid flocking supervisor.

Follows the classic pseudocode at http://www.kfish.org/boids/pseudocode.html:
each robot is pulled towards the centre of the others (cohesion), matches
their average velocity (alignment) and is pushed back inside the bounding
volume. Separation is computed but only added to the velocity when
``apply_separation`` is enabled.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from ..core.models import Vector3
from ..robot.entity import RobotEntity
from .base import Snapshot, Supervisor

LOGGER = logging.getLogger(__name__)

COHESION_DIVISOR = 10.0
ALIGNMENT_DIVISOR = 8.0
SEPARATION_DISTANCE = 100.0
BOUNDS_MARGIN = Vector3(25.0, 25.0, 25.0)
BOUNDS_CORRECTION = 10.0
PLACE_DIVISOR = 100.0


class BoidSupervisor(Supervisor):
    kind = "boids"

    def __init__(
        self,
        name: str,
        bounding_volume: Vector3,
        robots: Iterable[RobotEntity] = (),
        *,
        free_boids: bool = True,
        apply_separation: bool = False,
    ) -> None:
        super().__init__(name, bounding_volume, robots)
        self.free_boids = free_boids
        self.apply_separation = apply_separation

    def pause(self) -> None:
        self.free_boids = False

    def on_osc_message(self, message: str) -> None:
        if not self.free_boids:
            LOGGER.info("Flocking resumed for %s", self.name)
        self.free_boids = True

    def step(self) -> None:
        if not self.free_boids:
            return
        super().step()

    def compute(self, snapshot: Snapshot) -> Dict[str, Vector3]:
        updates: Dict[str, Vector3] = {}
        for robot_id, state in snapshot.items():
            v1 = self.move_towards_center(robot_id, snapshot)
            v3 = self.match_velocity(robot_id, snapshot)
            v4 = self.bounding_position(robot_id, snapshot)
            velocity = state.velocity + v1 + v3 + v4
            if self.apply_separation:
                velocity = velocity + self.keep_small_distance(robot_id, snapshot)
            updates[robot_id] = velocity
        return updates

    # ------------------------------------------------------------------
    # Rules. Each reads only the snapshot it is given.
    # ------------------------------------------------------------------
    def move_towards_center(
        self, robot_id: str, snapshot: Optional[Snapshot] = None
    ) -> Vector3:
        snapshot = snapshot if snapshot is not None else self.snapshot()
        others = _others(robot_id, snapshot)
        if not others:
            return Vector3()
        center = _sum(snapshot[key].position for key in others) / len(others)
        return (center - snapshot[robot_id].position) / COHESION_DIVISOR

    def keep_small_distance(
        self, robot_id: str, snapshot: Optional[Snapshot] = None
    ) -> Vector3:
        snapshot = snapshot if snapshot is not None else self.snapshot()
        position = snapshot[robot_id].position
        push = Vector3()
        for key in _others(robot_id, snapshot):
            offset = snapshot[key].position - position
            if offset.norm() < SEPARATION_DISTANCE:
                push = push - offset
        return push

    def match_velocity(
        self, robot_id: str, snapshot: Optional[Snapshot] = None
    ) -> Vector3:
        snapshot = snapshot if snapshot is not None else self.snapshot()
        others = _others(robot_id, snapshot)
        if not others:
            return Vector3()
        average = _sum(snapshot[key].velocity for key in others) / len(others)
        return (average - snapshot[robot_id].velocity) / ALIGNMENT_DIVISOR

    def bounding_position(
        self, robot_id: str, snapshot: Optional[Snapshot] = None
    ) -> Vector3:
        snapshot = snapshot if snapshot is not None else self.snapshot()
        position = snapshot[robot_id].position
        bounds = self.bounding_volume - BOUNDS_MARGIN
        return Vector3(
            _correction(position.x, bounds.x),
            _correction(position.y, bounds.y),
            _correction(position.z, bounds.z),
        )

    def tend_to_place(self, robot_id: str, place: Vector3) -> Vector3:
        return (place - self.robots[robot_id].position) / PLACE_DIVISOR


def _others(robot_id: str, snapshot: Snapshot) -> List[str]:
    # A lone robot has no peers: cohesion and alignment contribute nothing.
    return [key for key in snapshot if key != robot_id]


def _sum(vectors: Iterable[Vector3]) -> Vector3:
    total = Vector3()
    for vector in vectors:
        total = total + vector
    return total


def _correction(value: float, bound: float) -> float:
    if value < -bound:
        return BOUNDS_CORRECTION
    if value > bound:
        return -BOUNDS_CORRECTION
    return 0.0
