"""
Configuration schema for the tracking service.

Tracking thresholds, MQTT broker settings and topic templates. Loaded
from YAML and validated at startup; immutable afterwards.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import yaml

from territory_geo.analytics import NoiseFilter, SpeedGuard
from territory_geo.geometry import SelfIntersectionDetector
from territory_geo.session import ValidationRules


@dataclass(frozen=True)
class TrackingConfig:
    """
    Sampling, anti-cheat, closure and validation thresholds.

    Distances in meters, speeds in km/h, interval in seconds.
    """

    min_point_distance_m: float = 10.0
    advisory_speed_kmh: float = 15.0
    fatal_speed_kmh: float = 30.0
    closure_distance_m: float = 30.0
    min_closure_points: int = 10
    min_total_distance_m: float = 50.0
    min_area_m2: float = 100.0
    intersection_skip_head: int = 2
    intersection_skip_tail: int = 2
    sample_interval_s: float = 2.0
    event_log_size: int = 200

    def __post_init__(self):
        """Validate tracking configuration."""
        if self.min_point_distance_m < 0:
            raise ValueError(
                f"min_point_distance_m must be >= 0, got {self.min_point_distance_m}"
            )

        if self.advisory_speed_kmh <= 0 or self.fatal_speed_kmh <= 0:
            raise ValueError("speed thresholds must be > 0")

        if self.advisory_speed_kmh >= self.fatal_speed_kmh:
            raise ValueError(
                f"advisory_speed_kmh ({self.advisory_speed_kmh}) must be < "
                f"fatal_speed_kmh ({self.fatal_speed_kmh})"
            )

        if self.closure_distance_m <= 0:
            raise ValueError(
                f"closure_distance_m must be > 0, got {self.closure_distance_m}"
            )

        if self.min_closure_points < 3:
            raise ValueError(
                f"min_closure_points must be >= 3, got {self.min_closure_points}"
            )

        if self.intersection_skip_head < 0 or self.intersection_skip_tail < 0:
            raise ValueError("intersection skips must be >= 0")

        if self.sample_interval_s <= 0:
            raise ValueError(
                f"sample_interval_s must be > 0, got {self.sample_interval_s}"
            )

        if self.event_log_size <= 0:
            raise ValueError(f"event_log_size must be > 0, got {self.event_log_size}")

    def noise_filter(self) -> NoiseFilter:
        return NoiseFilter(min_distance_m=self.min_point_distance_m)

    def speed_guard(self) -> SpeedGuard:
        return SpeedGuard(advisory_kmh=self.advisory_speed_kmh, fatal_kmh=self.fatal_speed_kmh)

    def detector(self) -> SelfIntersectionDetector:
        return SelfIntersectionDetector(
            skip_head=self.intersection_skip_head,
            skip_tail=self.intersection_skip_tail
        )

    def rules(self) -> ValidationRules:
        return ValidationRules(
            min_points=self.min_closure_points,
            closure_distance_m=self.closure_distance_m,
            min_total_distance_m=self.min_total_distance_m,
            min_area_m2=self.min_area_m2
        )


@dataclass(frozen=True)
class MQTTConfig:
    """MQTT broker configuration."""

    broker: str = "localhost"
    port: int = 1883
    username: Optional[str] = None
    password: Optional[str] = None
    qos: int = 1

    fix_topic: str = "territory/data/fixes/{service_id}"
    territory_topic: str = "territory/data/territories/{service_id}"
    control_command_topic: str = "territory/control/{service_id}/commands"
    control_status_topic: str = "territory/control/{service_id}/status"

    def __post_init__(self):
        """Validate MQTT configuration."""
        if not 1 <= self.port <= 65535:
            raise ValueError(
                f"MQTT port must be in [1, 65535], got {self.port}"
            )

        if self.qos not in {0, 1, 2}:
            raise ValueError(
                f"MQTT QoS must be 0, 1, or 2, got {self.qos}"
            )

    def topic(self, template: str, service_id: str) -> str:
        return template.format(service_id=service_id)


@dataclass(frozen=True)
class ServiceConfig:
    """
    Main configuration for the tracking service.

    Loaded from YAML and validated at startup.
    """

    service_id: str
    tracking: TrackingConfig = field(default_factory=TrackingConfig)
    mqtt_config: MQTTConfig = field(default_factory=MQTTConfig)
    log_file: Optional[Path] = None

    def __post_init__(self):
        if not self.service_id:
            raise ValueError("service_id cannot be empty")

    @property
    def fix_topic(self) -> str:
        return self.mqtt_config.topic(self.mqtt_config.fix_topic, self.service_id)

    @property
    def territory_topic(self) -> str:
        return self.mqtt_config.topic(self.mqtt_config.territory_topic, self.service_id)

    @property
    def control_command_topic(self) -> str:
        return self.mqtt_config.topic(self.mqtt_config.control_command_topic, self.service_id)

    @property
    def control_status_topic(self) -> str:
        return self.mqtt_config.topic(self.mqtt_config.control_status_topic, self.service_id)

    @classmethod
    def from_dict(cls, data: dict) -> "ServiceConfig":
        """
        Build from a parsed YAML document.

        Raises:
            ValueError: On missing service_id, unknown keys or invalid values
        """
        try:
            tracking = TrackingConfig(**(data.get("tracking") or {}))
            mqtt_config = MQTTConfig(**(data.get("mqtt_config") or {}))
        except TypeError as e:
            raise ValueError(f"Invalid configuration: {e}")

        if "service_id" not in data:
            raise ValueError("Missing required field: service_id")

        log_file = data.get("log_file")
        return cls(
            service_id=str(data["service_id"]),
            tracking=tracking,
            mqtt_config=mqtt_config,
            log_file=Path(log_file) if log_file else None,
        )

    @classmethod
    def from_yaml(cls, yaml_path: Path) -> "ServiceConfig":
        """
        Load configuration from YAML file.

        Example YAML:
            service_id: "tracker-1"

            tracking:
              min_point_distance_m: 10.0
              advisory_speed_kmh: 15.0
              fatal_speed_kmh: 30.0
              closure_distance_m: 30.0
              min_closure_points: 10
              sample_interval_s: 2.0

            mqtt_config:
              broker: "localhost"
              port: 1883
        """
        with open(yaml_path) as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data)
