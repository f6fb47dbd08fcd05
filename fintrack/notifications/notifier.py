"""
Notifier

DESIGN DECISION: Every notification shown to the user is also written to
the structured log. This gives:
1. A trace of what the user saw (and when)
2. The raw backend error messages for debugging
3. One place where logging is configured

The notifier:
- Logs destructive notifications at error level, the rest at info
- Keeps a queue of notifications the view has not shown yet
- Never raises; a failing sink must not break a dialog
"""

import logging
from collections import deque
from typing import Callable, Optional

import structlog

from fintrack.models.notifications import Notification


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route stdlib logging (and so structlog) to stderr at the given level."""
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper(), logging.INFO),
    )


NotificationSink = Callable[[Notification], None]


class Notifier:
    """
    Central notification service.

    Sends each notification to:
    1. Structured local log (for debugging)
    2. The pending queue the view drains on its next render
    3. An optional sink (e.g. a toast function)
    """

    def __init__(
        self,
        sink: Optional[NotificationSink] = None,
        max_pending: int = 20,
    ):
        """
        Initialize notifier.

        Args:
            sink: Called with every notification. If None, notifications
                  are only logged and queued.
            max_pending: Oldest queued notifications are dropped past this.
        """
        self._sink = sink
        self._pending: deque[Notification] = deque(maxlen=max_pending)
        self._logger = structlog.get_logger("fintrack.notifications")

    def notify(self, notification: Notification) -> Notification:
        """
        Raise a notification.

        Always logs locally. Returns the notification for chaining.
        """
        log_dict = notification.to_log_dict()

        if notification.is_error:
            self._logger.error("notification", **log_dict)
        else:
            self._logger.info("notification", **log_dict)

        self._pending.append(notification)

        if self._sink:
            try:
                self._sink(notification)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "notification_sink_failed",
                    error=str(e),
                    notification_id=str(notification.notification_id),
                )

        return notification

    def drain(self) -> list[Notification]:
        """Return and clear the notifications not yet shown."""
        items = list(self._pending)
        self._pending.clear()
        return items

    @property
    def pending(self) -> list[Notification]:
        return list(self._pending)
