"""Adapter modules for external integrations."""

from .mqtt import MQTTClient, MQTTConnectionError, TelemetryNotifier

__all__ = [
    "MQTTClient",
    "MQTTConnectionError",
    "TelemetryNotifier",
]
