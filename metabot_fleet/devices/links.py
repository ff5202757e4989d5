"""Bluetooth and OSC link objects and the pools that hand them out.

Radio and socket I/O live outside this package. A transport pushes inbound
bytes with ``deliver()`` and, for Bluetooth, provides the writer used by
``send()``. Everything here is bookkeeping: who owns which link, which
ports are bound, and where inbound bytes go.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable, List, Optional, Tuple

from ..constants import DEFAULT_OSC_PORT_RANGE
from ..core.protocols import InboundCallback, LinkWriter

LOGGER = logging.getLogger(__name__)

MIN_PORT = 1
MAX_PORT = 65535


class LinkUnavailable(RuntimeError):
    """Raised when a Bluetooth link is already claimed by another entity."""


class PortConflict(RuntimeError):
    """Raised when an OSC port is already bound in the pool."""


class TransportError(RuntimeError):
    """Raised when a link cannot carry outbound bytes."""


class BluetoothLink:
    """A point-to-point serial link shared across the fleet pool."""

    def __init__(
        self, name: str, address: str = "", *, writer: Optional[LinkWriter] = None
    ) -> None:
        self.name = name
        self.address = address
        self.available = True
        self.owner: Optional[str] = None
        self._writer = writer
        self._listener: Optional[InboundCallback] = None

    def attach_writer(self, writer: Optional[LinkWriter]) -> None:
        self._writer = writer

    @property
    def connected(self) -> bool:
        return self._writer is not None

    def set_listener(self, listener: Optional[InboundCallback]) -> None:
        self._listener = listener

    def send(self, data: bytes) -> None:
        if self._writer is None:
            raise TransportError(f"Bluetooth link {self.name} is not connected")
        try:
            self._writer(data)
        except (OSError, ValueError) as exc:
            raise TransportError(
                f"Bluetooth link {self.name} failed to send: {exc}"
            ) from exc

    def deliver(self, buffer: bytes) -> None:
        """Entry point for the transport to push inbound bytes."""
        listener = self._listener
        if listener is None:
            LOGGER.debug("Dropping %d bytes on unowned link %s", len(buffer), self.name)
            return
        listener(buffer)

    def __repr__(self) -> str:
        return (
            f"BluetoothLink(name={self.name!r}, address={self.address!r}, "
            f"available={self.available})"
        )


class BluetoothLinkPool:
    """Arena of Bluetooth links; the only place links are claimed or released.

    Claims are check-and-set under a lock so two entities racing for the same
    link cannot both win.
    """

    def __init__(self, links: Iterable[BluetoothLink] = ()) -> None:
        self._links: Dict[str, BluetoothLink] = {}
        self._lock = threading.Lock()
        for link in links:
            self.add(link)

    def add(self, link: BluetoothLink) -> BluetoothLink:
        with self._lock:
            existing = self._links.get(link.name)
            if existing is not None and existing is not link:
                raise ValueError(f"Duplicate Bluetooth link name: {link.name}")
            self._links[link.name] = link
        return link

    def get(self, name: str) -> Optional[BluetoothLink]:
        return self._links.get(name)

    def available_links(self) -> List[BluetoothLink]:
        with self._lock:
            return [link for link in self._links.values() if link.available]

    def claim(self, link: BluetoothLink, owner: str) -> BluetoothLink:
        with self._lock:
            self._links.setdefault(link.name, link)
            if not link.available:
                raise LinkUnavailable(
                    f"Bluetooth link {link.name} is held by {link.owner}"
                )
            link.available = False
            link.owner = owner
        LOGGER.info("Bluetooth link %s claimed by %s", link.name, owner)
        return link

    def release(self, link: BluetoothLink, owner: Optional[str] = None) -> None:
        with self._lock:
            if owner is not None and link.owner not in (None, owner):
                LOGGER.warning(
                    "Refusing to release link %s: held by %s, not %s",
                    link.name,
                    link.owner,
                    owner,
                )
                return
            previous = link.owner
            link.set_listener(None)
            link.owner = None
            link.available = True
        if previous is not None:
            LOGGER.info("Bluetooth link %s released by %s", link.name, previous)

    def __len__(self) -> int:
        return len(self._links)


class OSCLink:
    """Configuration and listening state of one OSC endpoint."""

    def __init__(self, address: str, port: int) -> None:
        self.address = address
        self.port = port
        self.listening = False
        self._callback: Optional[InboundCallback] = None

    def refresh(self, callback: Optional[InboundCallback]) -> None:
        self._callback = callback

    def listen(self) -> None:
        if not self.listening:
            LOGGER.debug("OSC link %s:%s listening", self.address, self.port)
        self.listening = True

    def close(self) -> None:
        if self.listening:
            LOGGER.debug("OSC link %s:%s closed", self.address, self.port)
        self.listening = False

    def configure(self, address: str, port: int) -> None:
        self.address = address
        self.port = port

    def with_port(self, port: int) -> "OSCLink":
        link = OSCLink(self.address, port)
        link.refresh(self._callback)
        return link

    def deliver(self, buffer: bytes) -> None:
        """Entry point for the transport; inbound bytes are dropped while closed."""
        if not self.listening or self._callback is None:
            return
        self._callback(buffer)

    def __repr__(self) -> str:
        return (
            f"OSCLink(address={self.address!r}, port={self.port}, "
            f"listening={self.listening})"
        )


class OSCLinkPool:
    """Tracks which local ports are bound by which OSC link."""

    def __init__(self, port_range: Tuple[int, int] = DEFAULT_OSC_PORT_RANGE) -> None:
        start, end = port_range
        if not (MIN_PORT <= start <= end <= MAX_PORT):
            raise ValueError(f"Invalid OSC port range: {port_range}")
        self._port_range = (start, end)
        self._bound: Dict[int, OSCLink] = {}
        self._lock = threading.Lock()

    def register(self, link: OSCLink) -> None:
        with self._lock:
            holder = self._bound.get(link.port)
            if holder is not None and holder is not link:
                raise PortConflict(f"OSC port {link.port} is already bound")
            self._bound[link.port] = link
        LOGGER.debug("Registered OSC link on port %s", link.port)

    def unregister(self, link: OSCLink) -> None:
        with self._lock:
            if self._bound.get(link.port) is link:
                del self._bound[link.port]

    def reassign_port(self, link: OSCLink) -> OSCLink:
        start, end = self._port_range
        with self._lock:
            for port in range(start, end + 1):
                if port != link.port and port not in self._bound:
                    LOGGER.info(
                        "Reassigning OSC link %s from port %s to %s",
                        link.address,
                        link.port,
                        port,
                    )
                    return link.with_port(port)
        raise PortConflict(f"No free OSC port in range {start}-{end}")

    def is_bound(self, port: int) -> bool:
        return port in self._bound
