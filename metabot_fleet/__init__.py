"""Supervisory control and telemetry for a small fleet of metabots."""

from .core import Command, CommandHistory, EntityOrder, Vector3
from .devices import (
    BluetoothLink,
    BluetoothLinkPool,
    DeviceChannel,
    LinkUnavailable,
    OSCLink,
    OSCLinkPool,
    PortConflict,
    TransportError,
)
from .fleet import Fleet, FleetConfigurationError
from .robot import ParseError, RobotEntity, Telemetry, TelemetryTimeout
from .supervisors import (
    BoidSupervisor,
    SimpleSupervisor,
    Supervisor,
    SupervisorRegistry,
)

__all__ = [
    "BluetoothLink",
    "BluetoothLinkPool",
    "BoidSupervisor",
    "Command",
    "CommandHistory",
    "DeviceChannel",
    "EntityOrder",
    "Fleet",
    "FleetConfigurationError",
    "LinkUnavailable",
    "OSCLink",
    "OSCLinkPool",
    "ParseError",
    "PortConflict",
    "RobotEntity",
    "SimpleSupervisor",
    "Supervisor",
    "SupervisorRegistry",
    "Telemetry",
    "TelemetryTimeout",
    "TransportError",
    "Vector3",
]
