"""
Territory CLI - Main entry point.

Sends MQTT commands to the tracking service, replays recorded fixes
offline and prints display-frame coordinates.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Dict, Any

from territory_geo.geometry import GeoPoint
from territory_geo.rendering import CoordinateConverter
from territory_mqtt.schemas import format_area
from territory_processor.config import ServiceConfig, TrackingConfig

from .mqtt_client import MQTTCommandClient
from .replay import load_fixes, replay_fixes

SIMPLE_COMMANDS = {
    'start': 'start',
    'cancel': 'cancel',
    'reset': 'reset',
    'status': 'status',
    'export-log': 'export_log',
    'request-permission': 'request_permission',
    'commands': 'help',
}


def send_command(
    command: Dict[str, Any],
    service_id: str = "tracker-1",
    broker: str = "localhost",
    port: int = 1883
) -> None:
    """Send a command to the tracking service's control topic."""
    topic = f"territory/control/{service_id}/commands"

    client = MQTTCommandClient(broker=broker, port=port)
    client.send_command(topic, command, qos=1)


def run_replay(fixes_path: str, config_path: str = None, as_json: bool = False) -> None:
    tracking = ServiceConfig.from_yaml(Path(config_path)).tracking if config_path else TrackingConfig()
    report = replay_fixes(load_fixes(Path(fixes_path)), tracking)

    if as_json:
        print(json.dumps(report.to_dict(), indent=2))
        return

    print(report.log_text)
    print()
    print(f"State:  {report.state.value}")
    print(f"Points: {report.point_count} ({report.fixes_consumed} fixes consumed)")
    if report.result is None:
        print("Result: no closure")
    elif report.result.passed:
        print(f"Result: PASSED ({format_area(report.result.area_m2)})")
    else:
        print(f"Result: FAILED ({report.result.failure_reason.value})")


def run_convert(lat: float, lon: float) -> None:
    point = GeoPoint(latitude=lat, longitude=lon)
    converted = CoordinateConverter.convert(point)
    region = "inside" if CoordinateConverter.is_in_region(point) else "outside"
    print(f"{converted.latitude:.7f} {converted.longitude:.7f} ({region} correction region)")


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Territory CLI - Control the tracking service and replay walks",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Session control (via MQTT)
  territory-cli start
  territory-cli cancel
  territory-cli reset
  territory-cli status
  territory-cli export-log

  # Offline replay of recorded fixes
  territory-cli replay config/fixes/sample_walk.yaml
  territory-cli replay walk.yaml --config config/territory_service.yaml --json

  # Display-frame coordinate
  territory-cli convert 31.2304 121.4737
"""
    )

    parser.add_argument(
        "--service-id",
        default="tracker-1",
        help="Target service ID (default: tracker-1)"
    )
    parser.add_argument(
        "--broker",
        default="localhost",
        help="MQTT broker host (default: localhost)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=1883,
        help="MQTT broker port (default: 1883)"
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    subparsers.add_parser('start', help='Start a tracking session')
    subparsers.add_parser('cancel', help='Stop tracking and discard the path')
    subparsers.add_parser('reset', help='Return a finished session to idle')
    subparsers.add_parser('status', help='Publish the session status')
    subparsers.add_parser('export-log', help='Publish the event log as text')
    subparsers.add_parser('request-permission', help='Ask the service to connect its position feed')
    subparsers.add_parser('commands', help='Ask the service to publish its command list')

    replay = subparsers.add_parser('replay', help='Replay recorded fixes offline')
    replay.add_argument('fixes', help='Path to fixes YAML')
    replay.add_argument('--config', help='Service config YAML (tracking thresholds)')
    replay.add_argument('--json', action='store_true', help='Print the report as JSON')

    convert = subparsers.add_parser('convert', help='Print display-frame coordinates')
    convert.add_argument('lat', type=float, help='Latitude (degrees)')
    convert.add_argument('lon', type=float, help='Longitude (degrees)')

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        if args.command in SIMPLE_COMMANDS:
            command = {'command': SIMPLE_COMMANDS[args.command]}
            send_command(command, args.service_id, args.broker, args.port)

        elif args.command == 'replay':
            run_replay(args.fixes, args.config, args.json)

        elif args.command == 'convert':
            run_convert(args.lat, args.lon)

    except Exception as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
