"""Bounce supervisor: reverse a robot's velocity on any axis it leaves."""

from __future__ import annotations

from typing import Dict

from ..core.models import Vector3
from .base import Snapshot, Supervisor


class SimpleSupervisor(Supervisor):
    kind = "simple"

    def compute(self, snapshot: Snapshot) -> Dict[str, Vector3]:
        updates: Dict[str, Vector3] = {}
        for robot_id, state in snapshot.items():
            out = self.out_of_bounds(state.position)
            if not out.any():
                continue
            velocity = state.velocity.copy()
            if out.x:
                velocity.x = -velocity.x
            if out.y:
                velocity.y = -velocity.y
            if out.z:
                velocity.z = -velocity.z
            updates[robot_id] = velocity
        return updates
