"""
Territory MQTT Publishers
=========================

Bounded Context: Message Production

Public API
----------
    BasePublisher: Abstract base for custom publishers
    TerritoryPublisher: Publishes TerritoryMessage payloads
"""

from .base import BasePublisher
from .territory import TerritoryPublisher

__all__ = [
    'BasePublisher',
    'TerritoryPublisher',
]
