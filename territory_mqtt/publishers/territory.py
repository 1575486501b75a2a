"""
Territory Publisher
===================

Bounded Context: Upload of validated loops.

Message Flow:
    TrackingService → TerritoryMessage → TerritoryPublisher → MQTT Broker → backend

Example:
    >>> logger = create_logger("tracker")
    >>> publisher = TerritoryPublisher(
    ...     broker_host="localhost",
    ...     topic="territory/tracker-1/territories",
    ...     logger=logger
    ... )
    >>> publisher.connect()
    >>> publisher.publish_territory(TerritoryMessage.from_session(points, result, "tracker-1"))
"""

from typing import Dict, Any, Optional
from .base import BasePublisher
from ..schemas import TerritoryMessage
from ..logging import StructuredLogger, LogEvent


class TerritoryPublisher(BasePublisher):
    """Publisher for TerritoryMessage payloads."""

    def __init__(
        self,
        broker_host: str,
        topic: str,
        logger: StructuredLogger,
        broker_port: int = 1883,
        client_id: str = "territory_publisher",
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = 1,
        confirm_timeout: Optional[float] = 5.0
    ):
        """
        Args:
            confirm_timeout: Seconds to wait for the broker acknowledgement of
                each territory (None: return once queued)
        """
        super().__init__(
            broker_host=broker_host,
            broker_port=broker_port,
            topic=topic,
            client_id=client_id,
            logger=logger,
            username=username,
            password=password,
            qos=qos
        )
        self.confirm_timeout = confirm_timeout

    def format_message(self, territory_msg: TerritoryMessage) -> Dict[str, Any]:
        """
        Format TerritoryMessage to a JSON-compatible dict.

        Raises:
            ValueError: If the message cannot be serialized
        """
        try:
            return territory_msg.to_dict()
        except Exception as e:
            self.logger.error(
                event=LogEvent.SERIALIZATION_ERROR,
                message="Failed to serialize territory message",
                exc_info=e,
                metadata={'service_id': getattr(territory_msg, 'service_id', None)}
            )
            raise ValueError(f"Failed to format territory message: {e}")

    def publish_territory(self, territory_msg: TerritoryMessage) -> bool:
        """
        Publish a validated territory.

        Returns:
            True if published successfully, False otherwise
        """
        try:
            message_data = self.format_message(territory_msg)
        except ValueError:
            return False

        success = self.publish(message_data, confirm_timeout=self.confirm_timeout)
        if success:
            self.logger.info(
                event=LogEvent.TERRITORY_PUBLISHED,
                message=f"Published territory ({territory_msg.formatted_area})",
                metadata={
                    'service_id': territory_msg.service_id,
                    'area_m2': territory_msg.area_m2,
                    'point_count': territory_msg.point_count
                }
            )
        return success
