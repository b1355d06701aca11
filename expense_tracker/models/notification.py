"""
User-facing notifications.

Every failure path in a user action ends in one of these. The presentation
layer decides how to show them (a toast in the Streamlit app).
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Callable

from pydantic import BaseModel, Field


class NotificationVariant(str, Enum):
    DEFAULT = "default"
    DESTRUCTIVE = "destructive"


class Notification(BaseModel):
    """A transient message shown to the user."""

    title: str
    description: str
    variant: NotificationVariant = NotificationVariant.DEFAULT
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @classmethod
    def error(cls, description: str, title: str = "Error") -> "Notification":
        return cls(
            title=title,
            description=description,
            variant=NotificationVariant.DESTRUCTIVE,
        )

    @classmethod
    def info(cls, title: str, description: str) -> "Notification":
        return cls(title=title, description=description)


Notifier = Callable[[Notification], None]


class NotificationInbox:
    """Collects notifications until the presentation layer drains them."""

    def __init__(self):
        self._items: list[Notification] = []

    def __call__(self, notification: Notification) -> None:
        self._items.append(notification)

    @property
    def items(self) -> list[Notification]:
        return list(self._items)

    def drain(self) -> list[Notification]:
        items, self._items = self._items, []
        return items
