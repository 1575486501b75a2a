"""
Offline replay of recorded fixes through an in-process TrackingSession.

No broker involved: each fix is offered to a LatestFixMailbox and the
session is ticked once per fix, as if the sampling timer fired right
after the fix arrived.

Fixes file format (YAML):

    fixes:
      - {lat: 31.2304, lon: 121.4737, timestamp: 1760000000.0}
      - {lat: 31.2305, lon: 121.4737, timestamp: 1760000008.0, accuracy_m: 5}
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from territory_geo.geometry import Fix
from territory_geo.session import SessionState, TrackingSession, ValidationResult
from territory_mqtt.logging import EventLog
from territory_processor.config import TrackingConfig
from territory_processor.narrator import SessionNarrator
from territory_processor.position import LatestFixMailbox


@dataclass(frozen=True)
class ReplayReport:
    """Outcome of a replay run."""

    state: SessionState
    point_count: int
    result: Optional[ValidationResult]
    fixes_consumed: int
    log_text: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'state': self.state.value,
            'point_count': self.point_count,
            'result': self.result.to_dict() if self.result else None,
            'fixes_consumed': self.fixes_consumed,
        }


def load_fixes(path: Path) -> List[Fix]:
    """
    Load fixes from a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the YAML or a fix entry is invalid
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Fixes file not found: {path}")

    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}")

    entries = data.get('fixes') if isinstance(data, dict) else data
    if not isinstance(entries, list):
        raise ValueError(f"{path} must contain a list of fixes")

    return [Fix.from_dict(entry) for entry in entries]


def replay_fixes(
    fixes: Sequence[Fix],
    tracking: Optional[TrackingConfig] = None,
    event_log: Optional[EventLog] = None
) -> ReplayReport:
    """
    Feed fixes through a fresh session until it leaves TRACKING or the
    fixes run out.
    """
    tracking = tracking or TrackingConfig()
    event_log = event_log or EventLog(max_entries=tracking.event_log_size)

    mailbox = LatestFixMailbox()
    session = TrackingSession(
        mailbox,
        noise_filter=tracking.noise_filter(),
        speed_guard=tracking.speed_guard(),
        detector=tracking.detector(),
        rules=tracking.rules(),
    )
    session.subscribe(SessionNarrator(event_log))
    session.start()

    consumed = 0
    for fix in fixes:
        if session.state != SessionState.TRACKING:
            break
        mailbox.offer(fix)
        session.tick()
        consumed += 1

    return ReplayReport(
        state=session.state,
        point_count=session.point_count,
        result=session.result,
        fixes_consumed=consumed,
        log_text=event_log.text,
    )
