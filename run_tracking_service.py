#!/usr/bin/env python3
"""
Tracking Service - Entry Point
==============================

Runs one tracker: GPS fixes arrive on an MQTT topic, the freshest one is
sampled every sample_interval_s, and a closed, valid loop is published as a
claimed territory. Sessions are started and stopped over the control topic.

Usage:
    python run_tracking_service.py --config config/territory_service.yaml

Architecture:
    - TrackingService: Sampling actor + command handlers (territory_processor)
    - TrackingSession: State machine (territory_geo)
    - MQTTControlPlane: Command handler (territory_control)
    - MQTTPositionSource: Fix subscriber (territory_mqtt)
    - TerritoryPublisher: Publishes validated territories (territory_mqtt)

Signals:
    - SIGTERM / SIGINT (Ctrl+C): Graceful shutdown

Logs:
    stdout plus logs/tracker.log unless --no-log-file; structured events
    additionally go to log_file from the YAML when set
"""

import argparse
import signal
import sys
import logging
from pathlib import Path
from typing import Optional

from territory_geo import TrackingSession
from territory_processor import LatestFixMailbox, ServiceConfig, TrackingService
from territory_control import MQTTControlPlane
from territory_mqtt import EventLog, MQTTPositionSource, TerritoryPublisher, create_logger


# ─────────────────────────────────────────────────────────────────────────────
# Logging Setup
# ─────────────────────────────────────────────────────────────────────────────

def setup_logging(log_file: Optional[Path] = None) -> logging.Logger:
    """Console handler plus an optional file handler on the root logger."""
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            *(
                [logging.FileHandler(log_file)]
                if log_file
                else []
            )
        ]
    )

    return logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Main Service
# ─────────────────────────────────────────────────────────────────────────────

class TrackerApp:
    """
    Application wrapper for TrackingService.

    Handles configuration loading, component wiring, signals and shutdown.
    """

    def __init__(self, config_path: Path, log_file: Optional[Path] = None):
        self.config_path = config_path
        self.log_file = log_file
        self.logger = setup_logging(log_file)

        self.config: Optional[ServiceConfig] = None
        self.service: Optional[TrackingService] = None

        self._shutdown_requested = False

    def setup(self):
        """Load YAML config and wire every component into a TrackingService."""
        self.logger.info("=" * 80)
        self.logger.info("🚀 Territory Tracking Service - Starting")
        self.logger.info("=" * 80)

        self.logger.info(f"📄 Config: {self.config_path}")
        self.config = ServiceConfig.from_yaml(self.config_path)
        self.logger.info(f"🆔 service_id={self.config.service_id}")

        service_id = self.config.service_id
        mqtt_config = self.config.mqtt_config
        tracking = self.config.tracking

        structured_logger = create_logger(component="tracker", service_id=service_id)
        if self.config.log_file:
            structured_logger.add_file_sink(self.config.log_file)
            self.logger.info(f"📝 Structured events also written to {self.config.log_file}")
        event_log = EventLog(max_entries=tracking.event_log_size)

        self.logger.info("🔌 Creating MQTT control plane")
        control_plane = MQTTControlPlane(
            broker_host=mqtt_config.broker,
            broker_port=mqtt_config.port,
            command_topic=self.config.control_command_topic,
            status_topic=self.config.control_status_topic,
            client_id=f"tracker_{service_id}",
            username=mqtt_config.username,
            password=mqtt_config.password,
        )

        self.logger.info("📡 Creating position source")
        mailbox = LatestFixMailbox()
        position_source = MQTTPositionSource(
            broker_host=mqtt_config.broker,
            broker_port=mqtt_config.port,
            topic=self.config.fix_topic,
            mailbox=mailbox,
            logger=create_logger(component="position_source", service_id=service_id),
            client_id=f"fixes_{service_id}",
            username=mqtt_config.username,
            password=mqtt_config.password,
        )

        self.logger.info("📤 Creating territory publisher")
        territory_publisher = TerritoryPublisher(
            broker_host=mqtt_config.broker,
            broker_port=mqtt_config.port,
            topic=self.config.territory_topic,
            logger=create_logger(component="mqtt_publisher", service_id=service_id),
            client_id=f"publisher_territories_{service_id}",
            username=mqtt_config.username,
            password=mqtt_config.password,
            qos=mqtt_config.qos,
        )
        self.logger.info(f"  - Fix topic: {self.config.fix_topic}")
        self.logger.info(f"  - Territory topic: {self.config.territory_topic}")

        session = TrackingSession(
            position_source,
            noise_filter=tracking.noise_filter(),
            speed_guard=tracking.speed_guard(),
            detector=tracking.detector(),
            rules=tracking.rules(),
        )

        self.service = TrackingService(
            config=self.config,
            session=session,
            control_plane=control_plane,
            territory_publisher=territory_publisher,
            event_log=event_log,
            structured_logger=structured_logger,
            position_source=position_source,
        )
        self.service.setup()
        self.logger.info("✅ Tracker wired")
        self.logger.info("=" * 80)

    def run(self):
        """Run the service until a shutdown signal arrives."""
        if not self.service:
            raise RuntimeError("TrackerApp.setup() must run before run()")

        signal.signal(signal.SIGTERM, self._signal_handler)
        signal.signal(signal.SIGINT, self._signal_handler)

        try:
            self.service.start()

            self.logger.info("🚶 Waiting for a start command")
            self.logger.info("Ctrl+C stops the tracker")
            self.logger.info("=" * 80)

            self.service.wait()

        except KeyboardInterrupt:
            self.logger.info("⚠️  KeyboardInterrupt received")
            self.shutdown()

        except Exception as e:
            self.logger.error(f"❌ Service error: {e}", exc_info=True)
            self.shutdown()
            sys.exit(1)

    def shutdown(self):
        if self._shutdown_requested:
            self.logger.warning("⚠️  Already shutting down")
            return

        self._shutdown_requested = True

        self.logger.info("=" * 80)
        self.logger.info("🛑 Shutting down tracking service")

        if self.service and self.service.is_running():
            try:
                self.service.stop()
            except Exception as e:
                self.logger.error(f"❌ Error stopping service: {e}")

        self.logger.info("👋 Tracker stopped")
        self.logger.info("=" * 80)

    def _signal_handler(self, signum, frame):
        signal_name = signal.Signals(signum).name
        self.logger.info(f"⚠️  Received signal {signal_name} ({signum})")
        self.shutdown()
        sys.exit(0)


# ─────────────────────────────────────────────────────────────────────────────
# CLI
# ─────────────────────────────────────────────────────────────────────────────

def parse_args():
    parser = argparse.ArgumentParser(
        description="Territory Tracking Service - GPS fixes + loop validation + MQTT",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_tracking_service.py --config config/territory_service.yaml
  python run_tracking_service.py --config config/territory_service.yaml --no-log-file
        """
    )

    parser.add_argument(
        '--config',
        type=Path,
        required=True,
        help='Path to service configuration YAML file'
    )

    parser.add_argument(
        '--log-file',
        type=Path,
        default=Path('logs/tracker.log'),
        help='Path to log file (default: logs/tracker.log)'
    )

    parser.add_argument(
        '--no-log-file',
        action='store_true',
        help='Disable file logging (console only)'
    )

    return parser.parse_args()


def main():
    args = parse_args()

    log_file = None if args.no_log_file else args.log_file

    if not args.config.exists():
        print(f"❌ No such config file: {args.config}", file=sys.stderr)
        sys.exit(1)

    app = TrackerApp(config_path=args.config, log_file=log_file)

    try:
        app.setup()
        app.run()
    except Exception as e:
        print(f"❌ Tracker failed to start: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
