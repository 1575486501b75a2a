"""
Test MQTT Messaging and Service Wiring (Without Real Broker)
============================================================

Exercises the wire schemas, the territory publisher, the position source,
the event log, the control plane dispatch and the tracking service with
fake MQTT endpoints, without requiring a running broker.

Usage:
    pytest test_mqtt_pubsub.py
"""

import json
import logging
import re
from datetime import datetime
from types import SimpleNamespace

import pytest

from territory_control import CommandNotAvailableError, CommandRegistry, MQTTControlPlane
from territory_geo import Fix, GeoPoint, SessionState, TrackingSession, ValidationResult
from territory_mqtt import (
    EventLog,
    FixMessage,
    GeoBBox,
    LogEvent,
    LogLevel,
    MQTTPositionSource,
    TerritoryMessage,
    TerritoryPublisher,
    Timestamp,
    create_logger,
    format_area,
    wkt_polygon,
)
from territory_processor import LatestFixMailbox, ServiceConfig, TrackingService

ORIGIN = GeoPoint(latitude=31.2304, longitude=121.4737)
T0 = 1_760_000_000.0

RECTANGLE = [
    (0, 0), (13.667, 0), (27.333, 0), (41, 0),
    (41, 13.333), (41, 26.667), (41, 40),
    (30.75, 40), (20.5, 40), (10.25, 40), (0, 40),
    (0, 20),
]


def rectangle_fixes():
    points = [ORIGIN.offset(east, north) for east, north in RECTANGLE]
    fixes = [Fix(point=points[0], timestamp=T0)]
    t = T0
    for a, b in zip(points, points[1:]):
        t += a.distance_to(b) / (5 / 3.6)
        fixes.append(Fix(point=b, timestamp=t))
    return fixes


# ─────────────────────────────────────────────────────────────────────────────
# Fakes
# ─────────────────────────────────────────────────────────────────────────────

class FakeControlPlane:
    """Records status publications instead of sending them."""

    def __init__(self):
        self.command_registry = CommandRegistry()
        self.statuses = []
        self.connected = False

    def connect(self, timeout: float = 5.0) -> bool:
        self.connected = True
        return True

    def disconnect(self):
        self.connected = False

    def publish_status(self, status, details=None):
        self.statuses.append((status, details or {}))

    def last(self, status):
        matches = [details for name, details in self.statuses if name == status]
        return matches[-1] if matches else None


class FakeTerritoryPublisher:
    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.published = []

    def connect(self) -> bool:
        return True

    def disconnect(self):
        pass

    def publish_territory(self, message: TerritoryMessage) -> bool:
        self.published.append(message)
        return self.succeed


def make_service(authorized: bool = True, publisher_succeeds: bool = True):
    config = ServiceConfig(service_id="tracker-test")
    mailbox = LatestFixMailbox(authorized=authorized)
    session = TrackingSession(
        mailbox,
        noise_filter=config.tracking.noise_filter(),
        speed_guard=config.tracking.speed_guard(),
        detector=config.tracking.detector(),
        rules=config.tracking.rules(),
    )
    control_plane = FakeControlPlane()
    publisher = FakeTerritoryPublisher(succeed=publisher_succeeds)
    event_log = EventLog(max_entries=config.tracking.event_log_size)

    service = TrackingService(
        config=config,
        session=session,
        control_plane=control_plane,
        territory_publisher=publisher,
        event_log=event_log,
        structured_logger=create_logger("test_service"),
    )
    service.setup()
    return service, mailbox, control_plane, publisher


# ─────────────────────────────────────────────────────────────────────────────
# Schemas
# ─────────────────────────────────────────────────────────────────────────────

def test_territory_message_serialization():
    """TerritoryMessage survives the JSON round trip the publisher performs."""
    print("\n" + "=" * 60)
    print("TEST: Territory Message Serialization/Deserialization")
    print("=" * 60)

    logger = create_logger("test")
    publisher = TerritoryPublisher(
        broker_host="localhost",
        topic="territory/data/territories/tracker-test",
        logger=logger,
    )
    print("\n✓ TerritoryPublisher created")

    points = [fix.point for fix in rectangle_fixes()]
    result = ValidationResult(
        passed=True, failure_reason=None, area_m2=1640.0, point_count=len(points)
    )
    message = TerritoryMessage.from_session(
        points, result, service_id="tracker-test", started_at=T0, completed_at=T0 + 120
    )
    print(f"✓ Created TerritoryMessage with {message.point_count} points")

    serialized = publisher.format_message(message)
    json_str = json.dumps(serialized, ensure_ascii=False)
    print(f"✓ Serialized to JSON ({len(json_str)} bytes)")

    reconstructed = TerritoryMessage.from_dict(json.loads(json_str))
    print("✓ Deserialized from JSON")

    assert reconstructed.service_id == "tracker-test"
    assert reconstructed.point_count == 12
    assert reconstructed.path == points
    assert reconstructed.polygon_wkt == message.polygon_wkt
    assert reconstructed.bbox == message.bbox
    assert reconstructed.area_m2 == 1640.0
    assert reconstructed.started_at.to_datetime().timestamp() == pytest.approx(T0)
    assert reconstructed.is_active
    print("✓ All fields preserved")


def test_publisher_refuses_without_connection():
    publisher = TerritoryPublisher(
        broker_host="localhost",
        topic="territory/data/territories/tracker-test",
        logger=create_logger("test_publisher"),
    )
    points = [fix.point for fix in rectangle_fixes()]
    result = ValidationResult(True, None, 1640.0, len(points))
    message = TerritoryMessage.from_session(points, result, service_id="tracker-test")

    assert not publisher.is_connected()
    assert not publisher.publish_territory(message)

    stats = publisher.get_stats()
    assert stats['failed'] == 1
    assert stats['delivered'] == 0
    assert stats['last_delivery'] is None


def test_wkt_polygon_is_closed():
    square = [ORIGIN, ORIGIN.offset(20, 0), ORIGIN.offset(20, 20), ORIGIN.offset(0, 20)]
    wkt = wkt_polygon(square)

    assert wkt.startswith("SRID=4326;POLYGON((")
    assert wkt.endswith("))")
    coords = wkt[len("SRID=4326;POLYGON(("):-2].split(", ")
    assert len(coords) == 5
    assert coords[0] == coords[-1] == f"{ORIGIN.longitude} {ORIGIN.latitude}"

    # Already closed ring is not closed twice
    assert wkt_polygon(square + [square[0]]) == wkt

    assert wkt_polygon(square[:2]) == ""


def test_bbox_and_area_formatting():
    points = [GeoPoint(31.0, 121.2), GeoPoint(31.1, 121.0), GeoPoint(30.9, 121.1)]
    bbox = GeoBBox.from_points(points)
    assert bbox.to_dict() == {'min_lat': 30.9, 'max_lat': 31.1, 'min_lon': 121.0, 'max_lon': 121.2}
    assert GeoBBox.from_points([]) is None
    with pytest.raises(ValueError):
        GeoBBox(min_lat=2.0, max_lat=1.0, min_lon=0.0, max_lon=1.0)

    assert format_area(1640.4) == "1640 m²"
    assert format_area(2_500_000) == "2.50 km²"


def test_territory_message_invariants():
    with pytest.raises(ValueError):
        TerritoryMessage(
            schema_version="1.0",
            timestamp=Timestamp.now(),
            service_id="tracker-test",
            path=[ORIGIN],
            point_count=2,
        )
    with pytest.raises(ValueError):
        TerritoryMessage.from_dict({'schema_version': '1.0'})


def test_fix_message_wire_format():
    fix = Fix(point=ORIGIN, timestamp=T0, accuracy_m=4.5)
    message = FixMessage(schema_version="1.0", source_id="phone-1", fix=fix)

    data = json.loads(json.dumps(message.to_dict()))
    assert data['fix'] == {'lat': ORIGIN.latitude, 'lon': ORIGIN.longitude,
                           'timestamp': T0, 'accuracy_m': 4.5}
    assert FixMessage.from_dict(data) == message

    with pytest.raises(ValueError):
        FixMessage.from_dict({'source_id': 'phone-1'})
    with pytest.raises(ValueError):
        FixMessage.from_dict({'fix': {'lat': 95.0, 'lon': 0.0, 'timestamp': T0}})


# ─────────────────────────────────────────────────────────────────────────────
# Position source
# ─────────────────────────────────────────────────────────────────────────────

def test_position_source_delivers_to_mailbox():
    """Simulates paho delivering fix messages to the subscriber callback."""
    print("\n" + "=" * 60)
    print("TEST: Position source callbacks")
    print("=" * 60)

    mailbox = LatestFixMailbox()
    source = MQTTPositionSource(
        broker_host="localhost",
        topic="territory/data/fixes/tracker-test",
        mailbox=mailbox,
        logger=create_logger("test_position"),
    )
    assert source.latest_fix() is None
    assert not source.is_authorized()

    fixes = rectangle_fixes()[:3]
    for fix in fixes:
        payload = json.dumps(FixMessage("1.0", "phone-1", fix).to_dict()).encode('utf-8')
        source._on_message(None, None, SimpleNamespace(topic=source.topic, payload=payload))

    # Single slot: only the freshest fix survives
    assert source.latest_fix() == fixes[-1]
    assert mailbox.offered_count == 3
    print("✓ Freshest fix available through latest_fix()")

    source._on_message(None, None, SimpleNamespace(topic=source.topic, payload=b"not json"))
    assert not source.handle_fix_message({'fix': {'lat': 'north'}})

    stats = source.get_stats()
    assert stats['fixes_received'] == 3
    assert stats['fixes_rejected'] == 1
    assert source.latest_fix() == fixes[-1]
    print("✓ Invalid payloads rejected without touching the mailbox")


class ExplodingMailbox(LatestFixMailbox):
    def offer(self, fix):
        raise RuntimeError("mailbox broken")


def test_position_source_rejects_malformed_payloads():
    """Wrong JSON shapes are counted as rejected, never raised."""
    print("\n" + "=" * 60)
    print("TEST: Malformed fix payloads")
    print("=" * 60)

    mailbox = LatestFixMailbox()
    source = MQTTPositionSource(
        broker_host="localhost",
        topic="territory/data/fixes/tracker-test",
        mailbox=mailbox,
        logger=create_logger("test_position_malformed"),
    )

    malformed = [
        [1, 2],
        42,
        "fix",
        {'fix': [31.2304, 121.4737, T0]},
        {'fix': "31.2304,121.4737"},
        {'fix': {'lat': 31.2304, 'lon': 121.4737, 'timestamp': float('nan')}},
        {'fix': {'lat': 31.2304, 'lon': 121.4737, 'timestamp': float('inf')}},
    ]
    for data in malformed:
        assert source.handle_fix_message(data) is False

    assert source.get_stats()['fixes_rejected'] == len(malformed)
    assert source.get_stats()['fixes_received'] == 0
    assert mailbox.latest_fix() is None
    print(f"✓ {len(malformed)} malformed payloads rejected")

    # Raw wire bytes, including the NaN literal Python's json accepts
    for payload in (b"[1, 2]", b"42", b'{"fix": {"lat": 31.2, "lon": 121.4, "timestamp": NaN}}'):
        source._on_message(None, None, SimpleNamespace(topic=source.topic, payload=payload))
    assert source.get_stats()['fixes_rejected'] == len(malformed) + 3
    assert mailbox.latest_fix() is None
    print("✓ Network callback survives malformed wire payloads")


def test_position_source_callback_contains_handler_errors():
    source = MQTTPositionSource(
        broker_host="localhost",
        topic="territory/data/fixes/tracker-test",
        mailbox=ExplodingMailbox(),
        logger=create_logger("test_position_exploding"),
    )
    payload = json.dumps(FixMessage("1.0", "phone-1", rectangle_fixes()[0]).to_dict()).encode('utf-8')

    # Must return normally so paho's network thread keeps running
    source._on_message(None, None, SimpleNamespace(topic=source.topic, payload=payload))
    assert source.get_stats()['fixes_received'] == 0


# ─────────────────────────────────────────────────────────────────────────────
# Event log
# ─────────────────────────────────────────────────────────────────────────────

def test_event_log_ring_buffer():
    log = EventLog(max_entries=3)
    for i in range(5):
        log.info(f"entry {i}")

    assert len(log) == 3
    assert [e.message for e in log.entries] == ["entry 2", "entry 3", "entry 4"]

    log.clear()
    assert len(log) == 0
    assert log.text == ""

    with pytest.raises(ValueError):
        EventLog(max_entries=0)


def test_event_log_formats():
    print("\n" + "=" * 60)
    print("TEST: Event log display and export")
    print("=" * 60)

    log = EventLog(title="Walk Log")
    log.info("Tracking started")
    log.success("Territory uploaded")
    log.warning("Speed 18.0 km/h, please slow down")
    log.error("Territory upload failed")

    lines = log.text.split("\n")
    assert len(lines) == 4
    assert re.fullmatch(r"\[\d{2}:\d{2}:\d{2}\] \[INFO\] Tracking started", lines[0])
    assert lines[1].endswith("[SUCCESS] Territory uploaded")
    assert "[WARNING]" in lines[2]
    assert "[ERROR]" in lines[3]

    report = log.export(now=datetime(2026, 10, 18, 9, 30, 0))
    report_lines = report.split("\n")
    assert report_lines[0] == "=== Walk Log ==="
    assert report_lines[1] == "Export time: 2026-10-18 09:30:00"
    assert report_lines[2] == "Entries: 4"
    assert report_lines[3] == ""
    assert re.fullmatch(
        r"\[\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\] \[INFO\] Tracking started", report_lines[4]
    )
    assert report.endswith("Territory upload failed\n")
    print("✓ Display and export formats")


def test_structured_logger_documents(caplog):
    logger = create_logger("test_structured", service_id="tracker-test")
    child = logger.bind(session="s-1")

    with caplog.at_level(logging.INFO, logger=logger.logger_name):
        child.info(LogEvent.SESSION_STARTED, "Tracking started", {'point_count': 0})
        logger.debug(LogEvent.SESSION_POINT_RECORDED, "filtered out at INFO")

    documents = [json.loads(r.getMessage()) for r in caplog.records if r.name == logger.logger_name]
    assert len(documents) == 1
    assert documents[0]['event'] == "session.started"
    assert documents[0]['level'] == "INFO"
    assert documents[0]['context'] == {'service_id': "tracker-test", 'session': "s-1"}
    assert documents[0]['metadata'] == {'point_count': 0}
    assert logger.context == {'service_id': "tracker-test"}


def test_event_log_subscribers():
    log = EventLog()
    received = []

    def broken(entry):
        raise RuntimeError("listener bug")

    log.subscribe(broken)
    log.subscribe(received.append)
    entry = log.error("boom")

    assert received == [entry]
    assert entry.level == LogLevel.ERROR
    assert entry.to_dict()['level'] == "ERROR"


# ─────────────────────────────────────────────────────────────────────────────
# Control plane
# ─────────────────────────────────────────────────────────────────────────────

def test_command_registry():
    registry = CommandRegistry()
    calls = []
    registry.register("status", calls.append, "Publish status")

    registry.execute("status")
    registry.execute("status", {"command": "status"})
    assert calls == [{}, {"command": "status"}]

    with pytest.raises(CommandNotAvailableError):
        registry.execute("launch")
    with pytest.raises(ValueError):
        registry.register("status", calls.append, "Duplicate")
    with pytest.raises(ValueError):
        registry.register("Bad Name", calls.append, "Invalid")

    assert registry.available_commands == {"status"}
    assert registry.get_help() == {"status": "Publish status"}


def test_control_plane_dispatch_without_broker():
    plane = MQTTControlPlane(
        broker_host="localhost",
        broker_port=1883,
        command_topic="territory/control/tracker-test/commands",
        status_topic="territory/control/tracker-test/status",
        client_id="tracker-test_control",
    )
    calls = []
    plane.command_registry.register("start", calls.append, "Start tracking")

    assert plane.handle_command({"command": " START "})
    assert calls == [{"command": " START "}]

    assert not plane.handle_command({"command": "fly"})
    assert not plane.handle_command({})
    assert not plane.is_connected()

    plane._on_message(None, None, SimpleNamespace(payload=b'{"command": "start"}'))
    plane._on_message(None, None, SimpleNamespace(payload=b'["start"]'))
    plane._on_message(None, None, SimpleNamespace(payload=b'{broken'))
    assert len(calls) == 2

    status = plane.build_status("tracking", {"point_count": 3})
    assert status["status"] == "tracking"
    assert status["client_id"] == "tracker-test_control"
    assert status["point_count"] == 3

    assert plane.handle_command({"command": "help"})
    assert plane.last_status["status"] == "help"
    assert plane.last_status["commands"] == {"start": "Start tracking"}

    stats = plane.get_stats()
    assert stats["commands_executed"] == 3
    assert stats["commands_rejected"] == 2


# ─────────────────────────────────────────────────────────────────────────────
# Tracking service
# ─────────────────────────────────────────────────────────────────────────────

def test_service_publishes_validated_territory():
    print("\n" + "=" * 60)
    print("TEST: Service end-to-end with fake MQTT endpoints")
    print("=" * 60)

    service, mailbox, control_plane, publisher = make_service()
    registry = control_plane.command_registry
    assert registry.available_commands == {
        "start", "cancel", "reset", "status", "export_log", "request_permission"
    }

    registry.execute("start", {"command": "start"})
    assert service.session.state == SessionState.TRACKING
    assert control_plane.last("tracking") is not None

    for fix in rectangle_fixes():
        mailbox.offer(fix)
        service.tick_once()

    assert service.session.state == SessionState.CLOSED
    assert len(publisher.published) == 1

    message = publisher.published[0]
    print(f"✓ Published territory: {message.formatted_area}, {message.point_count} points")
    assert message.service_id == "tracker-test"
    assert message.point_count == 12
    assert message.polygon_wkt.startswith("SRID=4326;POLYGON((")
    assert abs(message.area_m2 - 1640) / 1640 <= 0.02

    closed = control_plane.last("closed")
    assert closed["session"]["result"]["passed"] is True

    registry.execute("export_log", {})
    exported = control_plane.last("event_log")
    assert "Tracking started" in exported["text"]
    assert "Territory uploaded" in exported["text"]
    assert exported["entry_count"] == len(service.event_log)
    print("✓ Event log exported through the status topic")


def test_service_reports_upload_failure():
    service, mailbox, control_plane, publisher = make_service(publisher_succeeds=False)
    service.handle_start({})

    for fix in rectangle_fixes():
        mailbox.offer(fix)
        service.tick_once()

    assert len(publisher.published) == 1
    assert service.event_log.entries[-1].level == LogLevel.ERROR
    assert service.event_log.entries[-1].message == "Territory upload failed"
    assert service._status_details()["territories_published"] == 0


def test_service_rejects_start_without_permission():
    service, mailbox, control_plane, _ = make_service(authorized=False)

    service.handle_start({})
    rejected = control_plane.last("command_rejected")
    assert rejected["command"] == "start"
    assert rejected["error"] == "not_authorized"
    assert service.session.state == SessionState.IDLE
    assert "Cannot start: not authorized" in service.event_log.text

    mailbox.set_authorized(True)
    service.handle_request_permission({})
    assert control_plane.last("permission") == {"authorized": True}

    service.handle_start({})
    assert service.session.state == SessionState.TRACKING


def test_service_cancel_reset_and_status():
    service, mailbox, control_plane, publisher = make_service()

    service.handle_cancel({})
    assert control_plane.last("command_rejected")["error"] == "invalid_transition"

    service.handle_start({})
    for fix in rectangle_fixes()[:4]:
        mailbox.offer(fix)
        service.tick_once()

    service.handle_cancel({})
    assert service.session.state == SessionState.CANCELLED
    assert "Tracking stopped by user (4 points discarded)" in service.event_log.text

    service.handle_reset({})
    assert service.session.state == SessionState.IDLE
    assert control_plane.last("idle")["session"]["point_count"] == 0

    service.handle_status({})
    assert control_plane.statuses[-1][0] == "idle"
    assert publisher.published == []


def test_service_narration_logged_once(caplog):
    """Each narrated line has exactly one structured counterpart."""
    service, _, _, _ = make_service()
    logger_name = service.structured_logger.logger_name

    with caplog.at_level(logging.INFO, logger=logger_name):
        service.handle_start({})
        service.handle_cancel({})

    documents = [json.loads(r.getMessage()) for r in caplog.records if r.name == logger_name]
    messages = [doc['message'] for doc in documents]
    assert messages.count("Tracking started") == 1
    assert messages.count("Tracking stopped by user (0 points discarded)") == 1
    assert [doc['event'] for doc in documents if doc['message'] == "Tracking started"] == ["session.started"]
    assert "Tracking started" in service.event_log.text


def test_service_start_and_stop_lifecycle():
    service, _, control_plane, _ = make_service()

    service.start()
    assert service.is_running()
    assert control_plane.connected
    assert control_plane.last("running")["service_id"] == "tracker-test"

    service.stop()
    assert not service.is_running()
    assert not control_plane.connected
    assert control_plane.statuses[-1][0] == "stopped"


def main():
    """Run all tests."""
    print("\n" + "=" * 60)
    print("MQTT MESSAGING TESTS (No Broker Required)")
    print("=" * 60)

    for name, func in sorted(globals().items()):
        if name.startswith("test_") and callable(func) and func.__code__.co_argcount == 0:
            func()

    print("\n" + "=" * 60)
    print("✅ ALL TESTS PASSED!")
    print("=" * 60)


if __name__ == "__main__":
    main()
