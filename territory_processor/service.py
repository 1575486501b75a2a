"""
Tracking Service - timer-driven sampling actor around a TrackingSession.

This module provides the TrackingService class which owns one
TrackingSession, samples it on a fixed cadence, narrates it into the
EventLog, publishes validated territories and answers control commands.

Threading Model:
- Position feed thread (paho-mqtt internal): writes LatestFixMailbox
- Sampling thread (ours): session.tick() every sample_interval_s
- Control Plane thread (paho-mqtt internal): start/cancel/reset/status

Thread Safety:
- One lock serializes every session call (tick and commands), so the
  session has a single logical writer
- Publishing happens outside the lock on immutable snapshots
"""

import threading
import logging
from typing import Any, Dict, Optional

from territory_geo.session import (
    CommandOutcome,
    SessionError,
    SessionEvent,
    SessionEventType,
    TrackingSession,
)
from territory_mqtt.logging import EventLog, LogEvent, StructuredLogger
from territory_mqtt.schemas import TerritoryMessage
from territory_processor.config import ServiceConfig
from territory_processor.narrator import SessionNarrator

logger = logging.getLogger(__name__)


class TrackingService:
    """
    Long-running tracking service.

    Usage:
        config = ServiceConfig.from_yaml("config/territory_service.yaml")
        mailbox = LatestFixMailbox()
        position_source = MQTTPositionSource(..., mailbox=mailbox)
        session = TrackingSession(position_source, **session_parts)

        service = TrackingService(
            config=config,
            session=session,
            control_plane=control_plane,
            territory_publisher=publisher,
            event_log=EventLog(config.tracking.event_log_size),
            structured_logger=create_logger("tracker"),
        )
        service.setup()
        service.start()
        service.wait()  # Blocks until stopped
    """

    def __init__(
        self,
        config: ServiceConfig,
        session: TrackingSession,
        control_plane,  # MQTTControlPlane
        territory_publisher,  # TerritoryPublisher
        event_log: EventLog,
        structured_logger: Optional[StructuredLogger] = None,
        position_source=None,  # MQTTPositionSource
    ):
        self.config = config
        self.session = session
        self.control_plane = control_plane
        self.territory_publisher = territory_publisher
        self.event_log = event_log
        self.structured_logger = structured_logger
        self.position_source = position_source

        self._session_lock = threading.Lock()
        self.sampling_thread: Optional[threading.Thread] = None
        self.stop_event = threading.Event()

        self._running = False
        self._stopped_event = threading.Event()
        self._published = 0

        logger.info(f"TrackingService initialized for service_id={config.service_id}")

    def setup(self):
        """Wire narration and control handlers. Must be called before start()."""
        self.session.subscribe(SessionNarrator(self.event_log, self.structured_logger))
        self.session.subscribe(self._on_session_event)
        self._setup_control_handlers()

    def _setup_control_handlers(self):
        registry = self.control_plane.command_registry

        registry.register("start", self.handle_start, "Start a tracking session")
        registry.register("cancel", self.handle_cancel, "Stop tracking and discard the path")
        registry.register("reset", self.handle_reset, "Return a finished session to idle")
        registry.register("status", self.handle_status, "Publish the session snapshot")
        registry.register("export_log", self.handle_export_log, "Publish the event log as text")
        registry.register(
            "request_permission",
            self.handle_request_permission,
            "Ask the position source for access"
        )

        logger.info("Control handlers registered")

    # ─────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────

    def start(self):
        """
        Start the service (non-blocking).

        Lifecycle:
        1. Connect control plane (required)
        2. Connect territory publisher and position feed
        3. Start the sampling thread
        """
        if self._running:
            logger.warning("Service already running")
            return

        logger.info("Starting tracking service")

        if not self.control_plane.connect(timeout=5.0):
            raise RuntimeError("Failed to connect to MQTT broker (control plane)")

        self.territory_publisher.connect()
        if self.position_source is not None:
            self.position_source.request_permission()

        self.stop_event.clear()
        self._stopped_event.clear()
        self.sampling_thread = threading.Thread(
            target=self._sample_loop,
            name="SamplingThread",
            daemon=True
        )
        self.sampling_thread.start()
        self._running = True

        self.control_plane.publish_status("running", self._status_details())
        logger.info("✅ Tracking service started")

    def wait(self):
        """Block until stop() is called."""
        if not self._running:
            logger.warning("Service not running")
            return

        try:
            self._stopped_event.wait()
        except KeyboardInterrupt:
            logger.info("Received KeyboardInterrupt, stopping...")
            self.stop()

    def stop(self):
        """Stop sampling, disconnect publishers and the control plane."""
        if not self._running:
            logger.warning("Service not running")
            return

        logger.info("Stopping tracking service")

        self.stop_event.set()
        if self.sampling_thread:
            self.sampling_thread.join(timeout=5.0)
            logger.info("Sampling thread stopped")

        if self.position_source is not None:
            self.position_source.disconnect()
        self.territory_publisher.disconnect()

        self.control_plane.publish_status("stopped", self._status_details())
        self.control_plane.disconnect()

        self._running = False
        self._stopped_event.set()
        logger.info("✅ Tracking service stopped")

    def is_running(self) -> bool:
        return self._running

    # ─────────────────────────────────────────────────────────────────────
    # Sampling (Sampling Thread)
    # ─────────────────────────────────────────────────────────────────────

    def _sample_loop(self):
        interval = self.config.tracking.sample_interval_s
        logger.info(f"Sampling loop started (interval={interval}s)")

        while not self.stop_event.wait(interval):
            try:
                self.tick_once()
            except Exception as e:
                logger.error(f"Error during sampling tick: {e}", exc_info=True)

        logger.info("Sampling loop stopped")

    def tick_once(self):
        """
        Run one sampling tick and publish the territory if the loop closed
        and passed validation.

        Returns:
            TickOutcome of the session
        """
        with self._session_lock:
            outcome = self.session.tick()
            message = None
            if outcome.result is not None and outcome.result.passed:
                message = TerritoryMessage.from_session(
                    self.session.snapshot(),
                    outcome.result,
                    service_id=self.config.service_id,
                    started_at=self.session.started_at,
                    completed_at=self.session.completed_at,
                )

        if message is not None:
            self._publish_territory(message)
        return outcome

    def _publish_territory(self, message: TerritoryMessage):
        if self.territory_publisher.publish_territory(message):
            self._published += 1
            self.event_log.success(f"Territory uploaded ({message.formatted_area})")
        else:
            self.event_log.error("Territory upload failed")
            if self.structured_logger is not None:
                self.structured_logger.error(
                    event=LogEvent.MQTT_PUBLISH_FAILED,
                    message="Territory upload failed",
                    metadata={'area_m2': message.area_m2, 'point_count': message.point_count}
                )

    def _on_session_event(self, event: SessionEvent):
        """Publish a status snapshot on every state transition."""
        if event.event_type in (
            SessionEventType.STARTED,
            SessionEventType.CLOSED,
            SessionEventType.CANCELLED,
            SessionEventType.RESET,
        ):
            self.control_plane.publish_status(event.state.value, self._status_details())

    def _status_details(self) -> Dict[str, Any]:
        details = {
            "service_id": self.config.service_id,
            "session": self.session.status().to_dict(),
            "territories_published": self._published,
        }
        if self.position_source is not None:
            details["position_source"] = self.position_source.get_stats()
        return details

    # ─────────────────────────────────────────────────────────────────────
    # Command Handlers (Control Plane Thread)
    # ─────────────────────────────────────────────────────────────────────

    def _run_command(self, name: str, outcome: CommandOutcome):
        if outcome.accepted:
            logger.info(f"Command {name} accepted, state={outcome.state.value}")
            if self.structured_logger is not None:
                self.structured_logger.info(
                    event=LogEvent.CONTROL_COMMAND_RECEIVED,
                    message=f"Command {name} accepted",
                    metadata={'command': name, 'state': outcome.state.value}
                )
            return

        logger.warning(f"Command {name} rejected: {outcome.error.value}")
        if self.structured_logger is not None:
            if outcome.error == SessionError.NOT_AUTHORIZED:
                self.structured_logger.warning(
                    event=LogEvent.SESSION_NOT_AUTHORIZED,
                    message="Start rejected: position source not authorized"
                )
            self.structured_logger.warning(
                event=LogEvent.CONTROL_COMMAND_REJECTED,
                message=f"Command {name} rejected",
                metadata={
                    'command': name,
                    'state': outcome.state.value,
                    'error': outcome.error.value,
                }
            )
        self.event_log.warning(f"Cannot {name}: {outcome.error.value.replace('_', ' ')}")
        self.control_plane.publish_status("command_rejected", {
            "command": name,
            "error": outcome.error.value,
            **self._status_details(),
        })

    def handle_start(self, command: Dict):
        with self._session_lock:
            outcome = self.session.start()
        self._run_command("start", outcome)

    def handle_cancel(self, command: Dict):
        with self._session_lock:
            outcome = self.session.cancel()
        self._run_command("cancel", outcome)

    def handle_reset(self, command: Dict):
        with self._session_lock:
            outcome = self.session.reset()
        self._run_command("reset", outcome)

    def handle_status(self, command: Dict):
        with self._session_lock:
            details = self._status_details()
        self.control_plane.publish_status(details["session"]["state"], details)

    def handle_export_log(self, command: Dict):
        self.control_plane.publish_status("event_log", {
            "service_id": self.config.service_id,
            "entry_count": len(self.event_log),
            "text": self.event_log.export(),
        })
        logger.info(f"Event log exported ({len(self.event_log)} entries)")

    def handle_request_permission(self, command: Dict):
        self.session.position_source.request_permission()
        authorized = self.session.position_source.is_authorized()
        self.control_plane.publish_status("permission", {"authorized": authorized})
