"""
Position Fix Message Schema
===========================

Bounded Context: Position feed wire format.

One message per GPS fix, published by the device (or a simulator) and
consumed by MQTTPositionSource.

Wire format:
    {
        "schema_version": "1.0",
        "source_id": "phone-1",
        "fix": {"lat": 31.23, "lon": 121.47, "timestamp": 1760000000.0, "accuracy_m": 5.0}
    }
"""

from dataclasses import dataclass
from typing import Any, Dict

from territory_geo.geometry import Fix

SCHEMA_VERSION = "1.0"


@dataclass(frozen=True)
class FixMessage:
    """
    Single position fix on the wire.

    Attributes:
        schema_version: Message schema version
        source_id: Device identifier
        fix: Position sample (timestamp in epoch seconds)
    """
    schema_version: str
    source_id: str
    fix: Fix

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            'schema_version': self.schema_version,
            'source_id': self.source_id,
            'fix': self.fix.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FixMessage':
        """Deserialize from dict.

        Raises:
            ValueError: If required fields missing or invalid
        """
        if not isinstance(data, dict):
            raise ValueError(f"FixMessage must be an object, got {type(data).__name__}")
        try:
            return cls(
                schema_version=str(data.get('schema_version', SCHEMA_VERSION)),
                source_id=str(data.get('source_id', '')),
                fix=Fix.from_dict(data['fix'])
            )
        except KeyError as e:
            raise ValueError(f"Missing required FixMessage field: {e}")
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid FixMessage data: {e}")
