"""Per-entity communication façade over a Bluetooth link and an OSC link."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ..core.protocols import OSCRegistry
from .links import (
    MAX_PORT,
    MIN_PORT,
    BluetoothLink,
    BluetoothLinkPool,
    OSCLink,
    PortConflict,
    TransportError,
)

LOGGER = logging.getLogger(__name__)


class LinkKind(str, Enum):
    BLUETOOTH = "bluetooth"
    OSC = "osc"


ReceiveHandler = Callable[[LinkKind, bytes], None]


class ChannelConfigurationError(ValueError):
    """Raised when link options are invalid."""


@dataclass(slots=True)
class OSCOptions:
    address: str
    port: int


@dataclass(slots=True)
class BluetoothOptions:
    """Bluetooth reassignment request; ``none=True`` detaches the current link."""

    link: Optional[BluetoothLink] = None
    none: bool = False


class DeviceChannel:
    """Routes outbound commands and inbound bytes for one entity.

    The Bluetooth link is optional and exclusive: it is claimed from and
    released to the shared pool. The OSC link is configured per entity and
    registered with the OSC pool, which may reassign its port once when
    the requested one is taken.
    """

    def __init__(
        self,
        owner_id: str,
        *,
        bluetooth_pool: BluetoothLinkPool,
        osc_pool: OSCRegistry,
        on_receive: Optional[ReceiveHandler] = None,
    ) -> None:
        self.owner_id = owner_id
        self._bluetooth_pool = bluetooth_pool
        self._osc_pool = osc_pool
        self._on_receive = on_receive
        self._bluetooth: Optional[BluetoothLink] = None
        self._osc: Optional[OSCLink] = None

    @property
    def bluetooth_link(self) -> Optional[BluetoothLink]:
        return self._bluetooth

    @property
    def osc_link(self) -> Optional[OSCLink]:
        return self._osc

    def set_receive_handler(self, handler: Optional[ReceiveHandler]) -> None:
        self._on_receive = handler

    # ------------------------------------------------------------------
    # Bluetooth
    # ------------------------------------------------------------------
    def assign_bluetooth(self, link: BluetoothLink) -> None:
        """Claim ``link`` for this entity.

        A link already held by the channel is released first, so a failed
        claim leaves the channel without Bluetooth.

        Raises:
            LinkUnavailable: If another entity holds the link.
        """
        if link is self._bluetooth:
            return
        self.release_bluetooth()
        self._bluetooth_pool.claim(link, self.owner_id)
        self._bluetooth = link
        link.set_listener(self._bluetooth_received)

    def release_bluetooth(self) -> None:
        link = self._bluetooth
        if link is None:
            return
        self._bluetooth = None
        self._bluetooth_pool.release(link, self.owner_id)

    # ------------------------------------------------------------------
    # OSC
    # ------------------------------------------------------------------
    def set_up_osc(self, address: str, port: int) -> OSCLink:
        _validate_osc(address, port)
        if self._osc is None:
            self._osc = OSCLink(address, port)
        else:
            self._osc.configure(address, port)
        return self._osc

    def enable_osc(self) -> OSCLink:
        """Register the OSC link with the pool and start listening.

        A port conflict is retried once with a port handed out by the pool;
        a conflict on that port propagates.
        """
        link = register_osc(self._osc_pool, self._require_osc(), self.owner_id)
        self._osc = link
        link.refresh(self._osc_received)
        link.listen()
        return link

    def is_osc_listening(self) -> bool:
        return self._osc is not None and self._osc.listening

    def switch_osc_state(self) -> bool:
        """Toggle the OSC link between listening and closed; returns the new state."""
        link = self._require_osc()
        if link.listening:
            link.close()
        else:
            link.refresh(self._osc_received)
            link.listen()
        return link.listening

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def disable(self) -> None:
        self.release_bluetooth()
        if self._osc is not None:
            self._osc.close()
            self._osc_pool.unregister(self._osc)

    def modify(
        self,
        osc: Optional[OSCOptions] = None,
        bluetooth: Optional[BluetoothOptions] = None,
    ) -> None:
        if osc is not None:
            _validate_osc(osc.address, osc.port)
            if self._osc is not None:
                self._osc.close()
                self._osc_pool.unregister(self._osc)
            self.set_up_osc(osc.address, osc.port)
            self.enable_osc()

        if bluetooth is not None:
            self.release_bluetooth()
            if not bluetooth.none and bluetooth.link is not None:
                self.assign_bluetooth(bluetooth.link)

    def send(self, data: bytes) -> None:
        if self._bluetooth is None:
            raise TransportError(f"No Bluetooth link assigned to {self.owner_id}")
        self._bluetooth.send(data)

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------
    def _bluetooth_received(self, buffer: bytes) -> None:
        if self._on_receive is not None:
            self._on_receive(LinkKind.BLUETOOTH, buffer)

    def _osc_received(self, buffer: bytes) -> None:
        if self._on_receive is not None:
            self._on_receive(LinkKind.OSC, buffer)

    def _require_osc(self) -> OSCLink:
        if self._osc is None:
            raise ChannelConfigurationError(
                f"OSC link for {self.owner_id} has not been set up"
            )
        return self._osc


def register_osc(pool: OSCRegistry, link: OSCLink, owner: str) -> OSCLink:
    """Register ``link`` with ``pool``, retrying once on a reassigned port.

    Returns the link that ended up registered. A second ``PortConflict``
    propagates.
    """
    try:
        pool.register(link)
    except PortConflict:
        previous_port = link.port
        link = pool.reassign_port(link)
        pool.register(link)
        LOGGER.warning(
            "OSC port %s busy for %s; now listening on %s",
            previous_port,
            owner,
            link.port,
        )
    return link


def _validate_osc(address: str, port: int) -> None:
    if not address or not address.strip():
        raise ChannelConfigurationError("OSC address cannot be empty")
    if isinstance(port, bool) or not isinstance(port, int):
        raise ChannelConfigurationError(f"OSC port must be an integer, got {port!r}")
    if not MIN_PORT <= port <= MAX_PORT:
        raise ChannelConfigurationError(f"OSC port out of range: {port}")
