from __future__ import annotations

from typing import Callable, List, Optional

import pytest

from metabot_fleet.core.models import Vector3
from metabot_fleet.devices.channel import DeviceChannel
from metabot_fleet.devices.links import BluetoothLink, BluetoothLinkPool, OSCLinkPool
from metabot_fleet.robot.entity import PollSettings, RobotEntity, RobotProfile


class RecordingWriter:
    """Link writer that keeps every frame it is asked to send."""

    def __init__(self, *, fail: bool = False) -> None:
        self.frames: List[bytes] = []
        self.fail = fail

    def __call__(self, data: bytes) -> None:
        if self.fail:
            raise OSError("radio unavailable")
        self.frames.append(data)


@pytest.fixture
def bluetooth_pool() -> BluetoothLinkPool:
    return BluetoothLinkPool()


@pytest.fixture
def osc_pool() -> OSCLinkPool:
    return OSCLinkPool((9000, 9010))


@pytest.fixture
def make_channel(bluetooth_pool, osc_pool) -> Callable[[str], DeviceChannel]:
    def factory(owner_id: str) -> DeviceChannel:
        return DeviceChannel(
            owner_id, bluetooth_pool=bluetooth_pool, osc_pool=osc_pool
        )

    return factory


@pytest.fixture
def make_robot(make_channel, bluetooth_pool) -> Callable[..., RobotEntity]:
    """Build a robot, optionally with a connected Bluetooth link."""

    def factory(
        robot_id: str,
        *,
        position: Optional[Vector3] = None,
        velocity: Optional[Vector3] = None,
        writer: Optional[RecordingWriter] = None,
        poll_settings: Optional[PollSettings] = None,
    ) -> RobotEntity:
        robot = RobotEntity(
            robot_id,
            make_channel(robot_id),
            profile=RobotProfile(name=f"bot-{robot_id}"),
            poll_settings=poll_settings,
        )
        if writer is not None:
            link = bluetooth_pool.add(BluetoothLink(f"bt-{robot_id}", writer=writer))
            robot.channel.assign_bluetooth(link)
        if position is not None:
            robot.position = position
        if velocity is not None:
            robot.velocity = velocity
        return robot

    return factory


@pytest.fixture
def writer() -> RecordingWriter:
    return RecordingWriter()
