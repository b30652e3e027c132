from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol

from tenant_mailer.events import EventDispatcher, NotificationFailed
from tenant_mailer.models import CHANNEL_NAME, Notification


class Channel(Protocol):
    def send(self, notifiable: Any, notification: Notification) -> int | None: ...


class TenantMailerChannel:
    """Delivers a notification through the builder returned by ``to_tenant_mailer``."""

    def __init__(self, events: EventDispatcher) -> None:
        self.events = events

    def send(self, notifiable: Any, notification: Notification) -> int | None:
        message = notification.to_tenant_mailer(notifiable)
        try:
            return message.send()
        except Exception:
            self.events.dispatch(
                NotificationFailed(
                    notifiable=notifiable,
                    notification=notification,
                    channel=CHANNEL_NAME,
                )
            )
            raise


class ChannelManager:
    """Named notification channels, created on first use."""

    def __init__(self) -> None:
        self._factories: dict[str, Callable[[], Channel]] = {}
        self._channels: dict[str, Channel] = {}

    def extend(self, name: str, factory: Callable[[], Channel]) -> ChannelManager:
        self._factories[name] = factory
        self._channels.pop(name, None)
        return self

    def driver(self, name: str) -> Channel:
        if name not in self._channels:
            if name not in self._factories:
                raise KeyError(f"notification channel '{name}' is not registered")
            self._channels[name] = self._factories[name]()
        return self._channels[name]

    def send(self, notifiables: Any, notification: Notification) -> list[int | None]:
        if not isinstance(notifiables, (list, tuple)):
            notifiables = [notifiables]
        results: list[int | None] = []
        for notifiable in notifiables:
            for name in notification.via(notifiable):
                results.append(self.driver(name).send(notifiable, notification))
        return results
