"""Outcome events and the synchronous dispatcher that delivers them."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

from pydantic import BaseModel, Field

from tenant_mailer.logs import utc_now_iso


class MailEvent(BaseModel):
    occurred_at: str = Field(default_factory=utc_now_iso)


class MailSuccess(MailEvent):
    """A message was accepted by the SMTP server."""

    message_id: str | None = None


class MailFailed(MailEvent):
    """A delivery attempt failed or no recipient was accepted."""

    error_message: str | None = None
    error_type: str | None = None


class NotificationFailed(MailEvent):
    notifiable: Any = None
    notification: Any = None
    channel: str


E = TypeVar("E", bound=MailEvent)
Listener = Callable[[Any], None]


class EventDispatcher:
    """Fire-and-forget event sink.

    Listeners run synchronously in registration order and are matched with
    ``isinstance``, so a listener on ``MailEvent`` sees every outcome. With
    ``record=True`` dispatched events are also kept in ``dispatched``; leave it
    off for a dispatcher shared by a long-running process.
    """

    def __init__(self, *, record: bool = False) -> None:
        self._listeners: list[tuple[type[MailEvent], Listener]] = []
        self.record = record
        self.dispatched: list[MailEvent] = []

    def listen(self, event_type: type[E], listener: Callable[[E], None]) -> None:
        self._listeners.append((event_type, listener))

    def dispatch(self, event: MailEvent) -> None:
        if self.record:
            self.dispatched.append(event)
        for event_type, listener in list(self._listeners):
            if isinstance(event, event_type):
                listener(event)

    def of_type(self, event_type: type[E]) -> list[E]:
        return [e for e in self.dispatched if isinstance(e, event_type)]
