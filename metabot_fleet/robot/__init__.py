"""Robot entities and their telemetry."""

from .entity import PollSettings, RobotEntity, RobotProfile, parse_order
from .telemetry import (
    ParseError,
    RefreshState,
    Telemetry,
    TelemetryResponse,
    TelemetryTimeout,
    parse_response,
)

__all__ = [
    "ParseError",
    "PollSettings",
    "RefreshState",
    "RobotEntity",
    "RobotProfile",
    "Telemetry",
    "TelemetryResponse",
    "TelemetryTimeout",
    "parse_order",
    "parse_response",
]
