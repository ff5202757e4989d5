"""Communication links and the per-entity device channel."""

from .channel import (
    BluetoothOptions,
    ChannelConfigurationError,
    DeviceChannel,
    LinkKind,
    OSCOptions,
)
from .links import (
    BluetoothLink,
    BluetoothLinkPool,
    LinkUnavailable,
    OSCLink,
    OSCLinkPool,
    PortConflict,
    TransportError,
)

__all__ = [
    "BluetoothLink",
    "BluetoothLinkPool",
    "BluetoothOptions",
    "ChannelConfigurationError",
    "DeviceChannel",
    "LinkKind",
    "LinkUnavailable",
    "OSCLink",
    "OSCLinkPool",
    "OSCOptions",
    "PortConflict",
    "TransportError",
]
