"""Fleet registry: owns robot entities and the shared link pools."""

from __future__ import annotations

import logging
from typing import Callable, Dict, Iterator, List, Optional, Union

from .core.models import EntityOrder
from .devices.channel import DeviceChannel, OSCOptions
from .devices.links import BluetoothLink, BluetoothLinkPool, OSCLinkPool
from .robot.entity import PollSettings, RobotEntity, RobotProfile

LOGGER = logging.getLogger(__name__)

OrderRouter = Callable[[EntityOrder, RobotEntity], None]
RemovalListener = Callable[[str], None]


class FleetConfigurationError(RuntimeError):
    """Raised when an entity cannot be created from the given options."""


class Fleet:
    """Owns every robot entity; supervisors only borrow references."""

    def __init__(
        self,
        *,
        bluetooth_pool: Optional[BluetoothLinkPool] = None,
        osc_pool: Optional[OSCLinkPool] = None,
        poll_settings: Optional[PollSettings] = None,
    ) -> None:
        self.bluetooth_pool = bluetooth_pool or BluetoothLinkPool()
        self.osc_pool = osc_pool or OSCLinkPool()
        self.poll_settings = poll_settings or PollSettings()
        self._entities: Dict[str, RobotEntity] = {}
        self._removal_listeners: List[RemovalListener] = []

    def create_entity(
        self,
        entity_id: str,
        *,
        profile: Optional[RobotProfile] = None,
        osc: Optional[OSCOptions] = None,
        bluetooth: Union[BluetoothLink, str, None] = None,
    ) -> RobotEntity:
        """Create an entity and bring up its links.

        Link faults (a claimed Bluetooth link, an unresolvable OSC port
        conflict, invalid options) propagate after the partially configured
        links have been released.
        """
        if entity_id in self._entities:
            raise FleetConfigurationError(f"Entity {entity_id!r} already exists")

        channel = DeviceChannel(
            entity_id, bluetooth_pool=self.bluetooth_pool, osc_pool=self.osc_pool
        )
        entity = RobotEntity(
            entity_id,
            channel,
            profile=profile,
            poll_settings=PollSettings(
                initial_delay_seconds=self.poll_settings.initial_delay_seconds,
                interval_seconds=self.poll_settings.interval_seconds,
                timeout_seconds=self.poll_settings.timeout_seconds,
            ),
        )

        try:
            if bluetooth is not None:
                channel.assign_bluetooth(self._resolve_link(bluetooth))
            if osc is not None:
                channel.set_up_osc(osc.address, osc.port)
                channel.enable_osc()
        except Exception:
            channel.disable()
            raise

        self._entities[entity_id] = entity
        LOGGER.info("Created entity %s (%s)", entity_id, entity.name)
        return entity

    def add_removal_listener(self, listener: RemovalListener) -> None:
        """Call ``listener(entity_id)`` whenever an entity is removed."""
        self._removal_listeners.append(listener)

    def remove_entity(self, entity_id: str) -> Optional[RobotEntity]:
        entity = self._entities.pop(entity_id, None)
        if entity is not None:
            for listener in list(self._removal_listeners):
                listener(entity_id)
            entity.destroy()
            LOGGER.info("Removed entity %s", entity_id)
        return entity

    def get(self, entity_id: str) -> Optional[RobotEntity]:
        return self._entities.get(entity_id)

    def apply_inbound(self, router: Optional[OrderRouter] = None) -> int:
        """Apply buffered link traffic for every entity; returns orders routed."""
        routed = 0
        for entity in list(self._entities.values()):
            for order in entity.apply_inbound():
                if router is None:
                    entity.execute_command(order.command, verify=True)
                else:
                    router(order, entity)
                routed += 1
        return routed

    def disable_all(self) -> None:
        for entity in self._entities.values():
            entity.disable_device()

    def _resolve_link(self, bluetooth: Union[BluetoothLink, str]) -> BluetoothLink:
        if isinstance(bluetooth, BluetoothLink):
            return bluetooth
        link = self.bluetooth_pool.get(bluetooth)
        if link is None:
            raise FleetConfigurationError(f"Unknown Bluetooth link {bluetooth!r}")
        return link

    def __iter__(self) -> Iterator[RobotEntity]:
        return iter(list(self._entities.values()))

    def __len__(self) -> int:
        return len(self._entities)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._entities
