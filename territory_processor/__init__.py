"""
territory_processor - Tracking service for walk-to-claim territories

This package runs a TrackingSession as a long-lived service: it pulls the
freshest GPS fix on a fixed cadence, narrates the walk, publishes claimed
territories and answers control commands over MQTT.

Architecture:
- TrackingService: Main orchestrator (sampling thread + command handlers)
- LatestFixMailbox: Single-slot handoff from the position feed
- SessionNarrator: Session events → EventLog / structured logs
- ServiceConfig: Configuration management (YAML)

Threading Model:
- Position feed thread (paho-mqtt internal)
- Sampling thread (ours)
- Control Plane thread (paho-mqtt internal, command handlers)
"""

from territory_processor.config import ServiceConfig, TrackingConfig, MQTTConfig
from territory_processor.position import LatestFixMailbox
from territory_processor.narrator import SessionNarrator
from territory_processor.service import TrackingService

__all__ = [
    "ServiceConfig",
    "TrackingConfig",
    "MQTTConfig",
    "LatestFixMailbox",
    "SessionNarrator",
    "TrackingService",
]
