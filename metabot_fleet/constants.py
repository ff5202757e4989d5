"""Constants used across the metabot-fleet package."""

from __future__ import annotations

from pathlib import Path

APP_NAME = "metabot-fleet"
DEFAULT_CONFIG_FILENAME = f"{APP_NAME}.cfg"
DEFAULT_CONFIG_PATH = Path.home() / ".metabot" / DEFAULT_CONFIG_FILENAME
DEFAULT_LOG_PATH = Path.home() / ".metabot" / "logs" / f"{APP_NAME}.log"

DEFAULT_TICK_HZ = 60.0

DEFAULT_OSC_ADDRESS = "127.0.0.1"
DEFAULT_OSC_PORT_RANGE = (9000, 9999)

DEFAULT_BROKER_HOST = "localhost"
DEFAULT_BROKER_PORT = 1883
DEFAULT_TOPIC_PREFIX = "metabot"

# Divides raw dx/dy command arguments into scene velocity units.
VELOCITY_FACTOR = 10

COMMAND_HISTORY_SIZE = 20
START_COMMAND = "start"
STOP_COMMAND = "stop"

TELEMETRY_FIELDS = ("h", "r", "dx", "dy", "alt", "freq")
TELEMETRY_VERSION_FIELD = "version"
TELEMETRY_QUERY_ORDER = ("h", "r", "alt", "freq", "dx", "dy", "version")
DEFAULT_FIRMWARE_VERSION = "1.1.1"

TELEMETRY_INITIAL_DELAY_SECONDS = 1.5
TELEMETRY_POLL_INTERVAL_SECONDS = 1.0
