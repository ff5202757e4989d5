"""Fixed-cadence control loop driving the fleet and its supervisors."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .fleet import Fleet
from .health import HealthReporter
from .supervisors.registry import SupervisorRegistry

LOGGER = logging.getLogger(__name__)

HEALTH_COMPONENT = "control_loop"


class ControlLoop:
    """Runs one control cycle per tick.

    Each cycle first applies the traffic buffered since the previous tick
    (telemetry responses and robot orders), then steps every supervisor.
    A cycle never awaits, so supervisors always see a consistent state.
    Entities removed from the fleet are detached from every supervisor.
    """

    def __init__(
        self,
        fleet: Fleet,
        registry: SupervisorRegistry,
        *,
        tick_hz: float = 60.0,
        health: Optional[HealthReporter] = None,
    ) -> None:
        if tick_hz <= 0:
            raise ValueError("tick_hz must be positive")
        self._fleet = fleet
        self._registry = registry
        fleet.add_removal_listener(registry.detach_robot)
        self._interval = 1.0 / tick_hz
        self._health = health
        self._healthy: Optional[bool] = None
        self.overruns = 0

    @property
    def interval(self) -> float:
        return self._interval

    def tick_once(self) -> None:
        self._fleet.apply_inbound(self._registry.route_order)
        self._registry.tick()

    async def run(self, stop_event: asyncio.Event) -> None:
        loop = asyncio.get_running_loop()
        LOGGER.info("Control loop running every %.3fs", self._interval)

        while not stop_event.is_set():
            started = loop.time()
            healthy = True
            detail: Optional[str] = None
            try:
                self.tick_once()
            except Exception:
                LOGGER.exception("Control cycle failed")
                healthy = False
                detail = "control cycle failed"
            else:
                if self._registry.last_failures:
                    healthy = False
                    detail = "failing: " + ", ".join(self._registry.last_failures)
            await self._report(healthy, detail)

            remaining = self._interval - (loop.time() - started)
            if remaining <= 0:
                self.overruns += 1
                LOGGER.debug("Control cycle overran by %.4fs", -remaining)
                await asyncio.sleep(0)
                continue

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=remaining)
                break
            except asyncio.TimeoutError:
                continue

        LOGGER.info("Control loop stopped after %d ticks", self._registry.tick_count)

    async def _report(self, healthy: bool, detail: Optional[str]) -> None:
        if self._health is None or healthy == self._healthy:
            return
        self._healthy = healthy
        await self._health.update(HEALTH_COMPONENT, healthy, detail)
