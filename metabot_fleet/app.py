"""Main application entry-point for metabot-fleet."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Dict, Optional

from .adapters import MQTTClient, MQTTConnectionError, TelemetryNotifier
from .config import FleetConfig, load_config
from .control import ControlLoop
from .devices.channel import OSCOptions
from .devices.links import BluetoothLink, BluetoothLinkPool, OSCLinkPool
from .fleet import Fleet
from .health import HealthReporter, HealthServer
from .logging import configure_logging
from .robot.entity import PollSettings, RobotProfile
from .supervisors.registry import SupervisorRegistry, create_supervisor

LOGGER = logging.getLogger(__name__)


class FleetApp:
    """Builds the fleet from configuration and runs the control loop.

    Link transports are attached from outside: the app creates the
    Bluetooth links named in the configuration without writers, so
    commands fail (and are logged) until a transport calls
    ``BluetoothLink.attach_writer``.
    """

    def __init__(
        self,
        config: Optional[FleetConfig] = None,
        *,
        mqtt_client: Optional[MQTTClient] = None,
    ) -> None:
        self._config = config or load_config()
        self._mqtt_client = mqtt_client
        self._notifier: Optional[TelemetryNotifier] = None
        self._health = HealthReporter()
        self._health_server: Optional[HealthServer] = None
        self._fleet: Optional[Fleet] = None
        self._registry: Optional[SupervisorRegistry] = None
        self._control_loop: Optional[ControlLoop] = None
        self._stop_event: Optional[asyncio.Event] = None

    @property
    def fleet(self) -> Fleet:
        if self._fleet is None:
            self.build()
        assert self._fleet is not None
        return self._fleet

    @property
    def registry(self) -> SupervisorRegistry:
        if self._registry is None:
            self.build()
        assert self._registry is not None
        return self._registry

    @property
    def health(self) -> HealthReporter:
        return self._health

    def build(self) -> None:
        """Create pools, entities and supervisors from the configuration."""
        if self._fleet is not None:
            return

        config = self._config
        bluetooth_pool = BluetoothLinkPool(
            BluetoothLink(name, address)
            for name, address in config.bluetooth.links.items()
        )
        fleet = Fleet(
            bluetooth_pool=bluetooth_pool,
            osc_pool=OSCLinkPool(config.osc.port_range),
            poll_settings=PollSettings(
                initial_delay_seconds=config.telemetry.initial_delay_seconds,
                interval_seconds=config.telemetry.poll_interval_seconds,
                timeout_seconds=config.telemetry.poll_timeout_seconds,
            ),
        )

        for robot in config.robots:
            osc = None
            if robot.osc_port is not None:
                osc = OSCOptions(
                    address=robot.osc_address or config.osc.default_address,
                    port=robot.osc_port,
                )
            fleet.create_entity(
                robot.robot_id,
                profile=RobotProfile(
                    name=robot.name,
                    size=robot.size,
                    circumference=robot.circumference,
                    legs=robot.legs,
                    color=robot.color,
                ),
                osc=osc,
                bluetooth=robot.bluetooth,
            )

        registry = SupervisorRegistry()
        for entry in config.supervisors:
            options: Dict[str, Any] = {}
            if entry.apply_separation:
                options["apply_separation"] = True
            supervisor = create_supervisor(entry.kind, entry.name, entry.bounds, **options)
            for robot_id in entry.robots:
                entity = fleet.get(robot_id)
                if entity is not None:
                    supervisor.add_robot(entity)
            registry.register(supervisor)
            if entry.osc_port is not None:
                registry.listen_osc(
                    entry.name,
                    fleet.osc_pool,
                    entry.osc_address or config.osc.default_address,
                    entry.osc_port,
                )

        self._fleet = fleet
        self._registry = registry
        self._control_loop = ControlLoop(
            fleet, registry, tick_hz=config.control.tick_hz, health=self._health
        )
        LOGGER.info(
            "Fleet built with %d robots and %d supervisors", len(fleet), len(registry)
        )

    def fleet_view(self) -> Dict[str, Any]:
        robots = []
        for entity in self.fleet:
            bluetooth = entity.channel.bluetooth_link
            osc = entity.channel.osc_link
            robots.append(
                {
                    "id": entity.id,
                    "name": entity.name,
                    "started": entity.started,
                    "position": list(entity.position),
                    "velocity": list(entity.velocity),
                    "lastCommand": str(entity.command_history.head()),
                    "telemetry": entity.telemetry.snapshot(),
                    "bluetooth": bluetooth.name if bluetooth else None,
                    "osc": (
                        {"address": osc.address, "port": osc.port, "listening": osc.listening}
                        if osc
                        else None
                    ),
                }
            )
        supervisors = [
            {"name": sup.name, "type": sup.kind, "robots": sorted(sup.robots)}
            for sup in self.registry
        ]
        return {"robots": robots, "supervisors": supervisors}

    def request_telemetry(self, robot_id: str) -> Optional["asyncio.Task[Any]"]:
        entity = self.fleet.get(robot_id)
        if entity is None:
            return None
        task = entity.start_telemetry_poll()
        task.add_done_callback(self._poll_finished)
        return task

    def stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()

    async def run(self) -> None:
        self.build()
        assert self._control_loop is not None
        self._stop_event = asyncio.Event()

        LOGGER.info("metabot-fleet starting with config: %s", self._config.path)
        await self._start_services()
        try:
            if self._config.telemetry.poll_on_start:
                for entity in self.fleet:
                    self.request_telemetry(entity.id)
            await self._control_loop.run(self._stop_event)
        except asyncio.CancelledError:
            LOGGER.info("metabot-fleet received shutdown signal")
            raise
        finally:
            await self._stop_services()

    async def _start_services(self) -> None:
        health_config = self._config.health
        if health_config.enabled:
            self._health_server = HealthServer(
                self._health,
                health_config.host,
                health_config.port,
                fleet_view=self.fleet_view,
            )
            await self._health_server.start()

        mqtt_config = self._config.mqtt
        if not mqtt_config.enabled:
            return
        client = self._mqtt_client or MQTTClient(mqtt_config, client_id="metabot-fleet")
        try:
            await client.connect()
        except MQTTConnectionError as exc:
            LOGGER.warning("Telemetry notifications disabled: %s", exc)
            await self._health.update("mqtt", False, str(exc))
            return
        await self._health.update("mqtt", True)
        self._mqtt_client = client
        self._notifier = TelemetryNotifier(client, topic_prefix=mqtt_config.topic_prefix)
        for entity in self.fleet:
            entity.add_telemetry_listener(self._notifier.notify)

    async def _stop_services(self) -> None:
        if self._registry is not None:
            self._registry.stop_listening()
        if self._fleet is not None:
            self._fleet.disable_all()
        if self._notifier is not None and self._fleet is not None:
            for entity in self._fleet:
                entity.remove_telemetry_listener(self._notifier.notify)
        if self._mqtt_client is not None:
            with contextlib.suppress(MQTTConnectionError):
                await self._mqtt_client.disconnect()
        if self._health_server is not None:
            await self._health_server.stop()
            self._health_server = None

    @staticmethod
    def _poll_finished(task: "asyncio.Task[Any]") -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.warning("Telemetry poll ended with error: %s", exc)

    @classmethod
    def start(cls, config: FleetConfig) -> None:
        configure_logging(
            config.logging.level,
            log_path=config.logging.path,
            log_network=config.logging.log_network,
            link_level=config.logging.link_level,
        )
        app = cls(config)
        try:
            asyncio.run(app.run())
        except KeyboardInterrupt:
            LOGGER.info("metabot-fleet stopped")
