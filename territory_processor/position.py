"""
Latest Fix Mailbox - single-slot handoff between the position feed and the
sampling thread.

Thread Safety:
- offer() runs on the producer thread (paho-mqtt network loop or replay)
- latest_fix() runs on the sampling thread
- One lock guards the slot; newer fixes overwrite older ones (no queue)
"""

import threading
from typing import Callable, Optional

from territory_geo.geometry import Fix


class LatestFixMailbox:
    """
    Holds only the freshest fix.

    Also satisfies the PositionSource protocol for in-process feeds
    (replay, tests), where authorization is a plain flag.

    Usage:
        mailbox = LatestFixMailbox()
        mailbox.offer(fix)          # producer
        fix = mailbox.latest_fix()  # consumer (same fix until overwritten)
    """

    def __init__(
        self,
        authorized: bool = True,
        on_permission_request: Optional[Callable[[], None]] = None
    ):
        self._lock = threading.Lock()
        self._fix: Optional[Fix] = None
        self._offered = 0
        self._authorized = authorized
        self._on_permission_request = on_permission_request

    def offer(self, fix: Fix) -> None:
        """Replace the slot content with a newer fix."""
        with self._lock:
            self._fix = fix
            self._offered += 1

    def latest_fix(self) -> Optional[Fix]:
        with self._lock:
            return self._fix

    def clear(self) -> None:
        with self._lock:
            self._fix = None

    @property
    def offered_count(self) -> int:
        with self._lock:
            return self._offered

    def is_authorized(self) -> bool:
        return self._authorized

    def set_authorized(self, authorized: bool) -> None:
        self._authorized = authorized

    def request_permission(self) -> None:
        if self._on_permission_request is not None:
            self._on_permission_request()
