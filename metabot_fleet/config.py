"""Configuration loader for metabot-fleet."""

from __future__ import annotations

import configparser
from configparser import ConfigParser
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from . import constants
from .core.models import Vector3

ROBOT_SECTION_PREFIX = "robot "
SUPERVISOR_SECTION_PREFIX = "supervisor "

DEFAULT_BOUNDS = "500,500,500"


class ConfigurationError(ValueError):
    """Raised when the configuration file holds invalid values."""


@dataclass(slots=True)
class ControlConfig:
    tick_hz: float = constants.DEFAULT_TICK_HZ


@dataclass(slots=True)
class TelemetryConfig:
    initial_delay_seconds: float = constants.TELEMETRY_INITIAL_DELAY_SECONDS
    poll_interval_seconds: float = constants.TELEMETRY_POLL_INTERVAL_SECONDS
    poll_timeout_seconds: Optional[float] = None
    poll_on_start: bool = False


@dataclass(slots=True)
class OSCConfig:
    default_address: str = constants.DEFAULT_OSC_ADDRESS
    port_range_start: int = constants.DEFAULT_OSC_PORT_RANGE[0]
    port_range_end: int = constants.DEFAULT_OSC_PORT_RANGE[1]

    @property
    def port_range(self) -> Tuple[int, int]:
        return (self.port_range_start, self.port_range_end)


@dataclass(slots=True)
class BluetoothConfig:
    # link name -> device address
    links: Dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class MQTTConfig:
    enabled: bool = False
    broker_host: str = constants.DEFAULT_BROKER_HOST
    broker_port: int = constants.DEFAULT_BROKER_PORT
    username: Optional[str] = None
    password: Optional[str] = None
    topic_prefix: str = constants.DEFAULT_TOPIC_PREFIX


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    path: Optional[Path] = constants.DEFAULT_LOG_PATH
    log_network: bool = False
    # level for link and transport traffic (metabot_fleet.devices)
    link_level: Optional[str] = None


@dataclass(slots=True)
class HealthConfig:
    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = 0


@dataclass(slots=True)
class RobotConfig:
    robot_id: str
    name: str
    size: float = 0.0
    circumference: float = 0.0
    legs: int = 0
    color: Optional[str] = None
    osc_address: Optional[str] = None
    osc_port: Optional[int] = None
    bluetooth: Optional[str] = None


@dataclass(slots=True)
class SupervisorConfig:
    name: str
    kind: str
    bounds: Vector3
    robots: List[str] = field(default_factory=list)
    apply_separation: bool = False
    # optional listener for supervisor messages such as "/free"
    osc_address: Optional[str] = None
    osc_port: Optional[int] = None


@dataclass(slots=True)
class FleetConfig:
    control: ControlConfig
    telemetry: TelemetryConfig
    osc: OSCConfig
    bluetooth: BluetoothConfig
    mqtt: MQTTConfig
    logging: LoggingConfig
    health: HealthConfig
    robots: List[RobotConfig]
    supervisors: List[SupervisorConfig]
    raw: ConfigParser
    path: Path


def _parse_list(value: str, *, default: Iterable[str] = ()) -> List[str]:
    if not value:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_links(value: str) -> Dict[str, str]:
    links: Dict[str, str] = {}
    for item in _parse_list(value):
        name, _, address = item.partition("=")
        name = name.strip()
        if not name:
            raise ConfigurationError(f"Invalid Bluetooth link entry: {item!r}")
        links[name] = address.strip()
    return links


def _optional_float(parser: ConfigParser, section: str, option: str) -> Optional[float]:
    value = parser.get(section, option, fallback="").strip()
    if not value:
        return None
    try:
        parsed = float(value)
    except ValueError as exc:
        raise ConfigurationError(f"[{section}] {option} must be a number") from exc
    return parsed if parsed > 0 else None


def _load_robot(parser: ConfigParser, section: str) -> RobotConfig:
    robot_id = section[len(ROBOT_SECTION_PREFIX):].strip()
    if not robot_id:
        raise ConfigurationError(f"Robot section without id: [{section}]")
    osc_port = parser.get(section, "osc_port", fallback="").strip()
    return RobotConfig(
        robot_id=robot_id,
        name=parser.get(section, "name", fallback=robot_id),
        size=parser.getfloat(section, "size", fallback=0.0),
        circumference=parser.getfloat(section, "circumference", fallback=0.0),
        legs=parser.getint(section, "legs", fallback=0),
        color=parser.get(section, "color", fallback=None),
        osc_address=parser.get(section, "osc_address", fallback=None),
        osc_port=int(osc_port) if osc_port else None,
        bluetooth=parser.get(section, "bluetooth", fallback=None) or None,
    )


def _load_supervisor(parser: ConfigParser, section: str) -> SupervisorConfig:
    name = section[len(SUPERVISOR_SECTION_PREFIX):].strip()
    if not name:
        raise ConfigurationError(f"Supervisor section without name: [{section}]")
    try:
        bounds = Vector3.parse(parser.get(section, "bounds", fallback=DEFAULT_BOUNDS))
    except ValueError as exc:
        raise ConfigurationError(f"[{section}] bounds: {exc}") from exc
    osc_port = parser.get(section, "osc_port", fallback="").strip()
    return SupervisorConfig(
        name=name,
        kind=parser.get(section, "type", fallback="simple").strip(),
        bounds=bounds,
        robots=_parse_list(parser.get(section, "robots", fallback="")),
        apply_separation=parser.getboolean(
            section, "apply_separation", fallback=False
        ),
        osc_address=parser.get(section, "osc_address", fallback=None),
        osc_port=int(osc_port) if osc_port else None,
    )


def load_config(path: Optional[Path] = None) -> FleetConfig:
    """Load configuration from disk, applying defaults where necessary."""

    config_path = path or constants.DEFAULT_CONFIG_PATH
    parser = ConfigParser()
    parser.read_dict(
        {
            "control": {"tick_hz": str(constants.DEFAULT_TICK_HZ)},
            "telemetry": {
                "initial_delay_seconds": str(constants.TELEMETRY_INITIAL_DELAY_SECONDS),
                "poll_interval_seconds": str(constants.TELEMETRY_POLL_INTERVAL_SECONDS),
                "poll_timeout_seconds": "",
                "poll_on_start": "false",
            },
            "osc": {
                "default_address": constants.DEFAULT_OSC_ADDRESS,
                "port_range_start": str(constants.DEFAULT_OSC_PORT_RANGE[0]),
                "port_range_end": str(constants.DEFAULT_OSC_PORT_RANGE[1]),
            },
            "bluetooth": {"links": ""},
            "mqtt": {
                "enabled": "false",
                "broker_host": constants.DEFAULT_BROKER_HOST,
                "broker_port": str(constants.DEFAULT_BROKER_PORT),
                "topic_prefix": constants.DEFAULT_TOPIC_PREFIX,
            },
            "logging": {
                "level": "INFO",
                "path": str(constants.DEFAULT_LOG_PATH),
                "log_network": "false",
                "link_level": "",
            },
            "health": {
                "enabled": "false",
                "host": "127.0.0.1",
                "port": "0",
            },
        }
    )

    if config_path.exists():
        try:
            parser.read(config_path)
        except configparser.Error as exc:
            raise ConfigurationError(f"Cannot parse {config_path}: {exc}") from exc

    try:
        return _parse_config(parser, config_path)
    except ConfigurationError:
        raise
    except ValueError as exc:
        # int()/getfloat()/getboolean() on a malformed value
        raise ConfigurationError(f"Invalid value in {config_path}: {exc}") from exc


def _parse_config(parser: ConfigParser, config_path: Path) -> FleetConfig:
    try:
        tick_hz = parser.getfloat("control", "tick_hz", fallback=constants.DEFAULT_TICK_HZ)
    except ValueError:
        tick_hz = constants.DEFAULT_TICK_HZ
    control = ControlConfig(
        tick_hz=tick_hz if tick_hz > 0 else constants.DEFAULT_TICK_HZ
    )

    telemetry = TelemetryConfig(
        initial_delay_seconds=max(
            0.0,
            parser.getfloat(
                "telemetry",
                "initial_delay_seconds",
                fallback=constants.TELEMETRY_INITIAL_DELAY_SECONDS,
            ),
        ),
        poll_interval_seconds=max(
            0.01,
            parser.getfloat(
                "telemetry",
                "poll_interval_seconds",
                fallback=constants.TELEMETRY_POLL_INTERVAL_SECONDS,
            ),
        ),
        poll_timeout_seconds=_optional_float(parser, "telemetry", "poll_timeout_seconds"),
        poll_on_start=parser.getboolean("telemetry", "poll_on_start", fallback=False),
    )

    osc = OSCConfig(
        default_address=parser.get(
            "osc", "default_address", fallback=constants.DEFAULT_OSC_ADDRESS
        ),
        port_range_start=parser.getint(
            "osc", "port_range_start", fallback=constants.DEFAULT_OSC_PORT_RANGE[0]
        ),
        port_range_end=parser.getint(
            "osc", "port_range_end", fallback=constants.DEFAULT_OSC_PORT_RANGE[1]
        ),
    )
    if osc.port_range_start > osc.port_range_end:
        raise ConfigurationError("[osc] port_range_start exceeds port_range_end")

    bluetooth = BluetoothConfig(
        links=_parse_links(parser.get("bluetooth", "links", fallback=""))
    )

    mqtt = MQTTConfig(
        enabled=parser.getboolean("mqtt", "enabled", fallback=False),
        broker_host=parser.get(
            "mqtt", "broker_host", fallback=constants.DEFAULT_BROKER_HOST
        ),
        broker_port=parser.getint(
            "mqtt", "broker_port", fallback=constants.DEFAULT_BROKER_PORT
        ),
        username=parser.get("mqtt", "username", fallback=None),
        password=parser.get("mqtt", "password", fallback=None),
        topic_prefix=parser.get(
            "mqtt", "topic_prefix", fallback=constants.DEFAULT_TOPIC_PREFIX
        ).strip("/"),
    )

    log_path_value = parser.get("logging", "path", fallback="").strip()
    logging_config = LoggingConfig(
        level=parser.get("logging", "level", fallback="INFO"),
        path=Path(log_path_value).expanduser() if log_path_value else None,
        log_network=parser.getboolean("logging", "log_network", fallback=False),
        link_level=parser.get("logging", "link_level", fallback="").strip() or None,
    )

    health = HealthConfig(
        enabled=parser.getboolean("health", "enabled", fallback=False),
        host=parser.get("health", "host", fallback="127.0.0.1"),
        port=parser.getint("health", "port", fallback=0),
    )

    robots = [
        _load_robot(parser, section)
        for section in parser.sections()
        if section.startswith(ROBOT_SECTION_PREFIX)
    ]
    supervisors = [
        _load_supervisor(parser, section)
        for section in parser.sections()
        if section.startswith(SUPERVISOR_SECTION_PREFIX)
    ]

    known_robots = {robot.robot_id for robot in robots}
    for supervisor in supervisors:
        missing = [rid for rid in supervisor.robots if rid not in known_robots]
        if missing:
            raise ConfigurationError(
                f"Supervisor {supervisor.name} references unknown robots: "
                f"{', '.join(missing)}"
            )

    return FleetConfig(
        control=control,
        telemetry=telemetry,
        osc=osc,
        bluetooth=bluetooth,
        mqtt=mqtt,
        logging=logging_config,
        health=health,
        robots=robots,
        supervisors=supervisors,
        raw=parser,
        path=config_path,
    )


def save_config(config: FleetConfig) -> None:
    """Persist the current configuration to disk."""

    config_path = config.path
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as stream:
        config.raw.write(stream)
