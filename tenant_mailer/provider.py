"""Wires the tenant mailer channel into a notification channel manager."""

from __future__ import annotations

from typing import Any

from tenant_mailer import __version__
from tenant_mailer.channel import ChannelManager, TenantMailerChannel
from tenant_mailer.events import EventDispatcher
from tenant_mailer.models import CHANNEL_NAME


def register(manager: ChannelManager, events: EventDispatcher | None = None) -> ChannelManager:
    dispatcher = events or EventDispatcher()
    return manager.extend(CHANNEL_NAME, lambda: TenantMailerChannel(dispatcher))


def about() -> dict[str, Any]:
    return {
        "name": "tenant-mailer",
        "version": __version__,
        "channel": CHANNEL_NAME,
        "transports": ["smtp", "eml"],
    }
