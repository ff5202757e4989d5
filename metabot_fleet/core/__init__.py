"""Core primitives for metabot-fleet."""

from .history import CommandHistory
from .models import Command, EntityOrder, Vector3
from .protocols import (
    InboundCallback,
    LinkWriter,
    MessagePublisher,
    OSCRegistry,
    TelemetryListener,
)

__all__ = [
    "Command",
    "CommandHistory",
    "EntityOrder",
    "InboundCallback",
    "LinkWriter",
    "MessagePublisher",
    "OSCRegistry",
    "TelemetryListener",
    "Vector3",
]
