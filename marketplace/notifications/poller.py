"""
Notification polling.
Refreshes the notification list every N seconds while the dropdown is open.
"""

import logging
import threading
from typing import Callable, Optional

from ..api.schemas import NotificationList
from ..auth.session import AuthRequired
from ..orders.client import ApiError

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 30.0


class NotificationPoller:
    """
    Polls only between open() and close().

    Each open() gets its own stop event, so a thread that outlived a
    close() timeout still sees its own event set and exits on its own.
    """

    def __init__(
        self,
        fetch: Callable[[], NotificationList],
        on_update: Callable[[NotificationList], None],
        interval: float = DEFAULT_INTERVAL,
    ):
        self.fetch = fetch
        self.on_update = on_update
        self.interval = interval
        self.stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.latest: Optional[NotificationList] = None

    @property
    def is_open(self) -> bool:
        return (
            self._thread is not None
            and self._thread.is_alive()
            and not self.stop_event.is_set()
        )

    def poll_once(self) -> Optional[NotificationList]:
        try:
            result = self.fetch()
        except (ApiError, AuthRequired) as e:
            logger.error(f"Failed to load notifications: {e.message}")
            return None

        self.latest = result
        self.on_update(result)
        return result

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.interval):
            self.poll_once()
        logger.debug("Notification polling stopped")

    def open(self) -> None:
        if self.is_open:
            return
        self.stop_event = threading.Event()
        self.poll_once()
        self._thread = threading.Thread(
            target=self._run,
            args=(self.stop_event,),
            name="notification-poller",
            daemon=True,
        )
        self._thread.start()
        logger.info(f"Notification polling every {self.interval:g}s")

    def close(self, timeout: Optional[float] = 5.0) -> None:
        self.stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning("Notification poller still busy; it will stop after the current poll")
            self._thread = None

    def __enter__(self) -> 'NotificationPoller':
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
