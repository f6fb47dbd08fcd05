"""Notification and logging package."""

from fintrack.notifications.notifier import Notifier, configure_logging

__all__ = ["Notifier", "configure_logging"]
