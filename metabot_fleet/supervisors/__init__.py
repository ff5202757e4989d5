"""Supervisors compute robot velocities once per control tick.

To add a behavior, subclass :class:`Supervisor`, give it a unique ``kind``
and implement ``compute()``; then add it to ``SUPERVISOR_TYPES`` so
configuration can select it by name.
"""

from .base import AxisFlags, KinematicState, Snapshot, Supervisor
from .boids import BoidSupervisor
from .registry import (
    SUPERVISOR_TYPES,
    SupervisorRegistry,
    UnknownSupervisorType,
    create_supervisor,
)
from .simple import SimpleSupervisor

__all__ = [
    "AxisFlags",
    "BoidSupervisor",
    "KinematicState",
    "SUPERVISOR_TYPES",
    "SimpleSupervisor",
    "Snapshot",
    "Supervisor",
    "SupervisorRegistry",
    "UnknownSupervisorType",
    "create_supervisor",
]
