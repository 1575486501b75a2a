"""
Territory MQTT Schemas
======================

Bounded Context: Data Structures

Design:
- Frozen dataclasses (immutability)
- to_dict() / from_dict() for JSON
- Schema versioning for evolution

Public API
----------
Common Types:
    GeoBBox, Timestamp

Position Feed:
    FixMessage

Territory Upload:
    TerritoryMessage, wkt_polygon, format_area
"""

from .common import GeoBBox, Timestamp
from .position import FixMessage
from .territory import TerritoryMessage, wkt_polygon, format_area

__all__ = [
    # Common types
    'GeoBBox',
    'Timestamp',
    # Position feed
    'FixMessage',
    # Territory upload
    'TerritoryMessage',
    'wkt_polygon',
    'format_area',
]
