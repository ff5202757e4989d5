"""Robot telemetry fields and the refresh-cycle state machine."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Union

from ..constants import (
    DEFAULT_FIRMWARE_VERSION,
    TELEMETRY_FIELDS,
    TELEMETRY_VERSION_FIELD,
)

LOGGER = logging.getLogger(__name__)

EXPECTED_RESPONSES = len(TELEMETRY_FIELDS) + 1


class ParseError(ValueError):
    """Raised when a device response does not match ``key=value``."""


class TelemetryTimeout(RuntimeError):
    """Raised when a telemetry refresh does not complete within its deadline."""


class RefreshState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"
    READY = "ready"


@dataclass(frozen=True, slots=True)
class TelemetryResponse:
    key: str
    value: str


def parse_response(raw: Union[str, bytes]) -> TelemetryResponse:
    """Parse a ``"<key>=<value>\\r\\n"`` device response.

    Raises:
        ParseError: When the line has no ``=``, an empty key, or an unknown key.
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("ascii")
        except UnicodeDecodeError as exc:
            raise ParseError(f"Response is not ASCII: {raw!r}") from exc

    line = raw.rstrip("\r\n")
    key, separator, value = line.partition("=")
    key = key.strip()
    value = value.strip()
    if not separator or not key:
        raise ParseError(f"Malformed response: {raw!r}")
    if key != TELEMETRY_VERSION_FIELD and key not in TELEMETRY_FIELDS:
        raise ParseError(f"Unknown telemetry field: {key!r}")
    if key != TELEMETRY_VERSION_FIELD:
        try:
            int(value)
        except ValueError as exc:
            raise ParseError(f"Non-integer value for {key}: {value!r}") from exc
    return TelemetryResponse(key=key, value=value)


class Telemetry:
    """Named numeric fields reported by a robot plus its firmware version.

    A refresh cycle expects one response per field (six numeric fields and
    the version). Each counted write decrements ``expected_remaining``; when
    it reaches zero the cycle is ``READY`` and the counter resets.
    ``has_been_updated()`` reports a completed cycle exactly once.
    """

    def __init__(self) -> None:
        self._values: Dict[str, int] = {name: 0 for name in TELEMETRY_FIELDS}
        self.version = DEFAULT_FIRMWARE_VERSION
        self.expected_remaining = EXPECTED_RESPONSES
        self.state = RefreshState.IDLE

    @property
    def values(self) -> Dict[str, int]:
        return dict(self._values)

    @property
    def is_polling(self) -> bool:
        return self.state is RefreshState.POLLING

    def get(self, name: str) -> Union[int, str]:
        if name == TELEMETRY_VERSION_FIELD:
            return self.version
        return self._values[name]

    def begin_refresh(self) -> None:
        self.expected_remaining = EXPECTED_RESPONSES
        self.state = RefreshState.POLLING

    def cancel_refresh(self) -> None:
        self.expected_remaining = EXPECTED_RESPONSES
        self.state = RefreshState.IDLE

    def record(self, name: str, value: Union[int, str]) -> None:
        """Store a device-reported value and count it towards the refresh."""
        self._store(name, value)
        self.expected_remaining -= 1
        if self.expected_remaining <= 0:
            self.expected_remaining = EXPECTED_RESPONSES
            self.state = RefreshState.READY
            LOGGER.debug("Telemetry refresh complete")

    def assign(self, name: str, value: Union[int, str]) -> None:
        """Store an operator-set value without touching the refresh counter."""
        self._store(name, value)

    def has_been_updated(self) -> bool:
        if self.state is RefreshState.READY:
            self.state = RefreshState.IDLE
            return True
        return False

    def snapshot(self) -> Dict[str, Union[int, str]]:
        payload: Dict[str, Union[int, str]] = dict(self._values)
        payload[TELEMETRY_VERSION_FIELD] = self.version
        return payload

    def _store(self, name: str, value: Union[int, str]) -> None:
        if name == TELEMETRY_VERSION_FIELD:
            self.version = str(value)
            return
        if name not in self._values:
            raise KeyError(f"Unknown telemetry field: {name}")
        self._values[name] = int(value)
