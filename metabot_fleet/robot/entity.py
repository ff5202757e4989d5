"""Robot entities: identity, kinematics, telemetry and command execution."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, List, Mapping, Optional, Tuple, Union

from ..constants import (
    START_COMMAND,
    STOP_COMMAND,
    TELEMETRY_INITIAL_DELAY_SECONDS,
    TELEMETRY_POLL_INTERVAL_SECONDS,
    TELEMETRY_QUERY_ORDER,
    VELOCITY_FACTOR,
)
from ..core.history import CommandHistory
from ..core.models import Command, EntityOrder, Vector3
from ..core.protocols import TelemetryListener
from ..devices.channel import BluetoothOptions, DeviceChannel, LinkKind, OSCOptions
from ..devices.links import TransportError
from .telemetry import ParseError, Telemetry, TelemetryTimeout, parse_response

LOGGER = logging.getLogger(__name__)

DEFAULT_ROBOT_NAME = "Jabberwockie"

# Unterminated bytes kept between reads before they are dropped.
MAX_PARTIAL_RESPONSE = 256


@dataclass(slots=True)
class RobotProfile:
    """Descriptive robot settings; none of these affect control."""

    name: str = DEFAULT_ROBOT_NAME
    size: float = 0.0
    circumference: float = 0.0
    legs: int = 0
    color: Optional[str] = None


@dataclass(slots=True)
class PollSettings:
    initial_delay_seconds: float = TELEMETRY_INITIAL_DELAY_SECONDS
    interval_seconds: float = TELEMETRY_POLL_INTERVAL_SECONDS
    timeout_seconds: Optional[float] = None


def parse_order(robot_id: str, line: str) -> EntityOrder:
    """Parse an OSC order line such as ``"/dx 50"`` or ``"start"``.

    Raises:
        ParseError: When the line is empty or the argument is not numeric.
    """
    parts = line.strip().split()
    if not parts:
        raise ParseError("Empty order")
    name = parts[0].lstrip("/")
    if not name:
        raise ParseError(f"Order without a command: {line!r}")
    if len(parts) > 2:
        raise ParseError(f"Too many arguments in order: {line!r}")
    argument: Optional[float] = None
    if len(parts) == 2:
        try:
            argument = float(parts[1])
        except ValueError as exc:
            raise ParseError(f"Non-numeric order argument: {line!r}") from exc
    return EntityOrder(robot_id=robot_id, command=Command(name, argument))


class RobotEntity:
    """A controllable robot and everything the fleet knows about it.

    Position and velocity are plain vectors. Supervisors write velocity on
    the tick path; an external physics or render consumer integrates
    position. Inbound link traffic is buffered and only applied when the
    fleet calls ``apply_inbound()`` at a tick boundary.
    """

    def __init__(
        self,
        entity_id: str,
        channel: DeviceChannel,
        *,
        profile: Optional[RobotProfile] = None,
        poll_settings: Optional[PollSettings] = None,
    ) -> None:
        self.id = entity_id
        self.profile = profile or RobotProfile()
        self.position = Vector3()
        self.velocity = Vector3()
        self.command_history = CommandHistory()
        self.telemetry = Telemetry()
        self.channel = channel
        self.started = False
        self.poll_settings = poll_settings or PollSettings()

        self._inbox: Deque[Tuple[LinkKind, bytes]] = deque()
        self._partial_response = ""
        self._telemetry_listeners: List[TelemetryListener] = []
        self._poll_task: Optional[asyncio.Task[Dict[str, Any]]] = None
        self._destroyed = False

        channel.set_receive_handler(self._receive)

    @property
    def name(self) -> str:
        return self.profile.name

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    def execute_command(
        self,
        command: Union[Command, str],
        argument: Optional[float] = None,
        *,
        verify: bool = False,
    ) -> bool:
        """Send a command to the robot and record it.

        With ``verify`` a command identical to the last executed one is
        skipped. Send failures are logged and leave history and velocity
        untouched. Returns True when the command was sent.
        """
        if isinstance(command, str):
            command = Command(command, argument)

        if verify and self.command_history.head() == command:
            LOGGER.debug("Skipping duplicate command %s for %s", command, self.id)
            return False

        try:
            self.channel.send(command.encode())
        except TransportError as exc:
            LOGGER.warning("Command %s to %s not sent: %s", command, self.id, exc)
            return False

        self.command_history.add(command)
        self._apply_kinematics(command)
        return True

    def toggle_robot_state(self) -> bool:
        if not self.started:
            self.execute_command(START_COMMAND)
            self.started = True
        else:
            self.execute_command(STOP_COMMAND)
            self.started = False
        return self.started

    def modify_robot_value(self, name: str, value: int) -> bool:
        """Set a telemetry value locally and push it to the robot."""
        self.telemetry.assign(name, value)
        return self.execute_command(name, value)

    def _apply_kinematics(self, command: Command) -> None:
        if command.argument is None:
            return
        if command.name == "dx":
            self.velocity.x = command.argument / VELOCITY_FACTOR
        elif command.name == "dy":
            self.velocity.z = command.argument / VELOCITY_FACTOR

    # ------------------------------------------------------------------
    # Inbound traffic
    # ------------------------------------------------------------------
    def _receive(self, kind: LinkKind, buffer: bytes) -> None:
        # Runs on the transport's thread; only the deque is touched here.
        self._inbox.append((kind, bytes(buffer)))

    @property
    def pending_inbound(self) -> int:
        return len(self._inbox)

    def apply_inbound(self) -> List[EntityOrder]:
        """Drain buffered traffic: apply responses, return received orders."""
        orders: List[EntityOrder] = []
        while self._inbox:
            kind, buffer = self._inbox.popleft()
            if self._destroyed:
                continue
            text = buffer.decode("ascii", errors="replace")
            if kind is LinkKind.BLUETOOTH:
                for line in self._split_responses(text):
                    self.update_from_response(line)
            else:
                orders.extend(self._parse_orders(text))
        return orders

    def _split_responses(self, text: str) -> List[str]:
        self._partial_response += text
        *lines, self._partial_response = self._partial_response.split("\n")
        if len(self._partial_response) > MAX_PARTIAL_RESPONSE:
            LOGGER.warning(
                "Dropping %d unterminated bytes from %s",
                len(self._partial_response),
                self.id,
            )
            self._partial_response = ""
        return [line for line in lines if line.strip()]

    def _parse_orders(self, text: str) -> List[EntityOrder]:
        orders = []
        for line in text.splitlines():
            if not line.strip():
                continue
            try:
                orders.append(parse_order(self.id, line))
            except ParseError as exc:
                LOGGER.warning("Dropping order for %s: %s", self.id, exc)
        return orders

    def update_from_response(self, raw: Union[str, bytes]) -> bool:
        """Apply one ``key=value`` response while a refresh is pending."""
        if not self.telemetry.is_polling:
            LOGGER.debug("Ignoring response outside refresh for %s: %r", self.id, raw)
            return False
        try:
            response = parse_response(raw)
        except ParseError as exc:
            LOGGER.warning("Dropping response from %s: %s", self.id, exc)
            return False
        self.telemetry.record(response.key, response.value)
        LOGGER.debug("Updated %s.%s = %s", self.id, response.key, response.value)
        return True

    # ------------------------------------------------------------------
    # Telemetry polling
    # ------------------------------------------------------------------
    def add_telemetry_listener(self, listener: TelemetryListener) -> None:
        self._telemetry_listeners.append(listener)

    def remove_telemetry_listener(self, listener: TelemetryListener) -> None:
        with contextlib.suppress(ValueError):
            self._telemetry_listeners.remove(listener)

    async def poll_telemetry(self) -> Dict[str, Any]:
        """Query every telemetry field and wait until all have answered.

        Without a configured timeout this waits indefinitely.

        Raises:
            TelemetryTimeout: When ``poll_settings.timeout_seconds`` elapses.
        """
        settings = self.poll_settings
        loop = asyncio.get_running_loop()
        deadline = (
            loop.time() + settings.timeout_seconds
            if settings.timeout_seconds is not None
            else None
        )

        self._partial_response = ""
        self.telemetry.begin_refresh()
        for name in TELEMETRY_QUERY_ORDER:
            self.execute_command(name)

        try:
            await asyncio.sleep(settings.initial_delay_seconds)
            while not self.telemetry.has_been_updated():
                if deadline is not None and loop.time() >= deadline:
                    raise TelemetryTimeout(
                        f"Telemetry refresh for {self.id} timed out after "
                        f"{settings.timeout_seconds}s"
                    )
                await asyncio.sleep(settings.interval_seconds)
        except (asyncio.CancelledError, TelemetryTimeout):
            self.telemetry.cancel_refresh()
            raise

        payload = self.telemetry.snapshot()
        LOGGER.info("Telemetry ready for %s", self.id)
        await self._notify_telemetry_ready(payload)
        return payload

    def start_telemetry_poll(self) -> "asyncio.Task[Dict[str, Any]]":
        """Run ``poll_telemetry`` as a task owned by this entity."""
        if self._poll_task is not None and not self._poll_task.done():
            return self._poll_task
        self._poll_task = asyncio.create_task(
            self.poll_telemetry(), name=f"telemetry-poll-{self.id}"
        )
        return self._poll_task

    def cancel_telemetry_poll(self) -> None:
        task = self._poll_task
        self._poll_task = None
        if task is not None and not task.done():
            task.cancel()
        if self.telemetry.is_polling:
            self.telemetry.cancel_refresh()

    async def _notify_telemetry_ready(self, payload: Mapping[str, Any]) -> None:
        for listener in list(self._telemetry_listeners):
            try:
                result = listener(self, payload)
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                LOGGER.exception("Telemetry listener failed for %s", self.id)

    # ------------------------------------------------------------------
    # Device lifecycle
    # ------------------------------------------------------------------
    def switch_osc_state(self) -> bool:
        return self.channel.switch_osc_state()

    def disable_device(self) -> None:
        self.cancel_telemetry_poll()
        self.channel.disable()

    def destroy(self) -> None:
        self.disable_device()
        self._destroyed = True
        self._inbox.clear()
        self._telemetry_listeners.clear()

    def modify(
        self,
        *,
        profile: Optional[RobotProfile] = None,
        osc: Optional[OSCOptions] = None,
        bluetooth: Optional[BluetoothOptions] = None,
    ) -> None:
        if profile is not None:
            self.profile = RobotProfile(
                name=profile.name or self.profile.name,
                size=profile.size or self.profile.size,
                circumference=profile.circumference or self.profile.circumference,
                legs=profile.legs or self.profile.legs,
                color=profile.color or self.profile.color,
            )
        if osc is not None or bluetooth is not None:
            self.channel.modify(osc=osc, bluetooth=bluetooth)

    def __repr__(self) -> str:
        return f"RobotEntity(id={self.id!r}, name={self.name!r})"
