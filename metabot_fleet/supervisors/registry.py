"""Supervisor registry: per-tick stepping and message routing."""

from __future__ import annotations

import logging
from collections import deque
from typing import Any, Deque, Dict, Iterator, List, Optional, Tuple, Type

from ..core.models import EntityOrder, Vector3
from ..core.protocols import OSCRegistry
from ..devices.channel import register_osc
from ..devices.links import OSCLink
from ..robot.entity import RobotEntity
from .base import Supervisor
from .boids import BoidSupervisor
from .simple import SimpleSupervisor

LOGGER = logging.getLogger(__name__)

SUPERVISOR_TYPES: Dict[str, Type[Supervisor]] = {
    SimpleSupervisor.kind: SimpleSupervisor,
    BoidSupervisor.kind: BoidSupervisor,
}


class UnknownSupervisorType(ValueError):
    """Raised when configuration names a supervisor type that does not exist."""


def create_supervisor(
    kind: str, name: str, bounding_volume: Vector3, **options: Any
) -> Supervisor:
    try:
        factory = SUPERVISOR_TYPES[kind]
    except KeyError as exc:
        raise UnknownSupervisorType(
            f"Unknown supervisor type {kind!r}; expected one of "
            f"{', '.join(sorted(SUPERVISOR_TYPES))}"
        ) from exc
    return factory(name, bounding_volume, **options)


class SupervisorRegistry:
    """Active supervisors, stepped once per control cycle in registration order."""

    def __init__(self) -> None:
        self._supervisors: Dict[str, Supervisor] = {}
        self._messages: Deque[Tuple[str, str]] = deque()
        self._listeners: Dict[str, Tuple[OSCLink, OSCRegistry]] = {}
        self.tick_count = 0
        self.last_failures: List[str] = []

    def register(self, supervisor: Supervisor) -> Supervisor:
        if supervisor.name in self._supervisors:
            raise ValueError(f"Supervisor {supervisor.name!r} already registered")
        self._supervisors[supervisor.name] = supervisor
        LOGGER.info(
            "Registered %s supervisor %s", supervisor.kind, supervisor.name
        )
        return supervisor

    def unregister(self, name: str) -> Optional[Supervisor]:
        self.stop_listening(name)
        return self._supervisors.pop(name, None)

    def get(self, name: str) -> Optional[Supervisor]:
        return self._supervisors.get(name)

    def supervisors_of(self, robot_id: str) -> List[Supervisor]:
        return [sup for sup in self._supervisors.values() if sup.owns(robot_id)]

    def detach_robot(self, robot_id: str) -> None:
        for supervisor in self._supervisors.values():
            supervisor.remove_robot(robot_id)

    def post_message(self, supervisor_name: str, message: str) -> None:
        """Queue a message for a supervisor; delivered at the next tick."""
        self._messages.append((supervisor_name, message))

    def listen_osc(
        self, name: str, pool: OSCRegistry, address: str, port: int
    ) -> OSCLink:
        """Give supervisor ``name`` its own OSC listener.

        Each non-empty line received is posted as a message for the next
        tick. The port is registered with ``pool`` like an entity's, with
        one retry on a reassigned port.
        """
        if name not in self._supervisors:
            raise KeyError(f"Unknown supervisor {name!r}")
        self.stop_listening(name)

        def received(buffer: bytes) -> None:
            text = buffer.decode("ascii", errors="replace")
            for line in text.splitlines():
                if line.strip():
                    self.post_message(name, line.strip())

        link = register_osc(pool, OSCLink(address, port), f"supervisor {name}")
        link.refresh(received)
        link.listen()
        self._listeners[name] = (link, pool)
        LOGGER.info("Supervisor %s listening on OSC port %s", name, link.port)
        return link

    def osc_link(self, name: str) -> Optional[OSCLink]:
        entry = self._listeners.get(name)
        return entry[0] if entry else None

    def stop_listening(self, name: Optional[str] = None) -> None:
        """Close the OSC listener of ``name``, or of every supervisor."""
        names = [name] if name is not None else list(self._listeners)
        for key in names:
            entry = self._listeners.pop(key, None)
            if entry is None:
                continue
            link, pool = entry
            link.close()
            pool.unregister(link)

    def route_order(self, order: EntityOrder, robot: RobotEntity) -> None:
        owners = self.supervisors_of(order.robot_id)
        if not owners:
            robot.execute_command(order.command, verify=True)
            return
        for supervisor in owners:
            supervisor.on_entity_order(order)

    def tick(self) -> None:
        self.tick_count += 1
        self._deliver_messages()

        failures: List[str] = []
        for supervisor in self._supervisors.values():
            try:
                supervisor.step()
            except Exception:
                LOGGER.exception("Supervisor %s failed to step", supervisor.name)
                failures.append(supervisor.name)
        self.last_failures = failures

    def _deliver_messages(self) -> None:
        while self._messages:
            name, message = self._messages.popleft()
            supervisor = self._supervisors.get(name)
            if supervisor is None:
                LOGGER.warning("Dropping message for unknown supervisor %s", name)
                continue
            try:
                supervisor.on_osc_message(message)
            except Exception:
                LOGGER.exception("Supervisor %s failed to handle message", name)

    def __iter__(self) -> Iterator[Supervisor]:
        return iter(list(self._supervisors.values()))

    def __len__(self) -> int:
        return len(self._supervisors)
