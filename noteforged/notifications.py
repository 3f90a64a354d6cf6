"""Transient user notifications."""

import logging
from typing import Any, Callable, List, Literal

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class Notification(BaseModel):
    """A short message shown to the user once."""

    title: str
    description: str
    variant: Literal["default", "destructive"] = "default"


class NotificationCenter:
    """Fans notifications out to registered observers."""

    def __init__(self):
        self._observers: List[Callable[[Notification], Any]] = []

    def add_observer(self, observer: Callable[[Notification], Any]) -> None:
        self._observers.append(observer)

    def publish(
        self,
        title: str,
        description: str,
        variant: Literal["default", "destructive"] = "default",
    ) -> Notification:
        notification = Notification(title=title, description=description, variant=variant)
        logger.info(f"Notification: {title} - {description}")

        for observer in self._observers:
            try:
                observer(notification)
            except Exception:
                # Don't let observer errors break the publisher
                logger.exception("Notification observer failed")

        return notification
