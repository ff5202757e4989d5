"""Protocol definitions for link collaborators and callbacks."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Awaitable, Callable, Mapping, Protocol

if TYPE_CHECKING:
    from ..devices.links import OSCLink
    from ..robot.entity import RobotEntity


InboundCallback = Callable[[bytes], None]
LinkWriter = Callable[[bytes], None]
TelemetryListener = Callable[
    ["RobotEntity", Mapping[str, Any]], Awaitable[None] | None
]


class OSCRegistry(Protocol):
    """Shared pool that binds OSC links to local ports."""

    def register(self, link: "OSCLink") -> None:
        """Bind the link's port.

        Raises:
            PortConflict: If another link already holds the port.
        """
        ...

    def unregister(self, link: "OSCLink") -> None:
        """Release the link's port. Unknown links are ignored."""
        ...

    def reassign_port(self, link: "OSCLink") -> "OSCLink":
        """Return a copy of the link moved to a port the pool considers free."""
        ...


class MessagePublisher(Protocol):
    """Minimal publish contract satisfied by the MQTT adapter."""

    def publish(
        self, topic: str, payload: bytes, qos: int = 1, retain: bool = False
    ) -> None:
        ...
