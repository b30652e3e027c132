from __future__ import annotations

"""Shapes a mail body can be built from.

Hierarchy:
- Attachment: a file reference attached by path
- Mailable: a self-rendering document (subject, envelope, headers, render)
- Notification: produces a MailMessage for a given recipient
- MailMessage: structured notification content (subject, template, data bag)
- AnonymousNotifiable: an ad-hoc recipient carrying per-channel routes
"""

from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field, field_validator

from tenant_mailer.rendering import NOTIFICATION_TEMPLATE, TemplateRenderer

if TYPE_CHECKING:
    from tenant_mailer.mailer import TenantMailer


CHANNEL_NAME = "tenant_mailer"


class Attachment(BaseModel):
    file: Path
    name: str | None = None
    mime: str | None = None

    @classmethod
    def coerce(cls, value: Any) -> Attachment:
        """Accept an Attachment, a path, or a mapping with a ``file`` key."""
        if isinstance(value, Attachment):
            return value
        if isinstance(value, (str, Path)):
            return cls(file=Path(value))
        if isinstance(value, Mapping):
            return cls.model_validate(dict(value))
        raise TypeError(f"unsupported attachment: {value!r}")


class Envelope(BaseModel):
    subject: str | None = None


class Headers(BaseModel):
    message_id: str | None = None
    references: list[str] | dict[str, str] = Field(default_factory=list)
    text: dict[str, str] = Field(default_factory=dict)

    def as_mapping(self) -> dict[str, str]:
        merged: dict[str, str] = {}
        if self.message_id:
            merged["Message-Id"] = self.message_id
        if isinstance(self.references, dict):
            merged.update(self.references)
        elif self.references:
            merged["References"] = " ".join(self.references)
        merged.update(self.text)
        return merged


class Mailable:
    """A document that knows how to render itself into a mail body.

    Subclasses override ``render`` and any of ``get_subject``, ``envelope`` or
    ``headers``; a plain ``subject`` attribute also works.
    """

    subject: str | None = None

    def get_subject(self) -> str | None:
        return None

    def envelope(self) -> Envelope | None:
        return None

    def headers(self) -> Headers | None:
        return None

    def render(self) -> str:
        raise NotImplementedError


class MailMessage(BaseModel):
    """Structured notification content, rendered with the built-in layout unless ``markdown`` names a template."""

    subject: str | None = None
    markdown: str | None = None
    view_data: dict[str, Any] = Field(default_factory=dict)
    attachments: list[Attachment] = Field(default_factory=list)
    greeting: str | None = None
    intro_lines: list[str] = Field(default_factory=list)
    action_text: str | None = None
    action_url: str | None = None
    outro_lines: list[str] = Field(default_factory=list)
    salutation: str | None = None

    @field_validator("attachments", mode="before")
    @classmethod
    def _coerce_attachments(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return [Attachment.coerce(item) for item in value]
        return value

    def line(self, text: str) -> MailMessage:
        if self.action_text is None:
            self.intro_lines.append(text)
        else:
            self.outro_lines.append(text)
        return self

    def action(self, text: str, url: str) -> MailMessage:
        self.action_text = text
        self.action_url = url
        return self

    def attach(self, file: str | Path, *, name: str | None = None, mime: str | None = None) -> MailMessage:
        self.attachments.append(Attachment(file=Path(file), name=name, mime=mime))
        return self

    def data(self) -> dict[str, Any]:
        return {
            "greeting": self.greeting,
            "intro_lines": list(self.intro_lines),
            "action_text": self.action_text,
            "action_url": self.action_url,
            "outro_lines": list(self.outro_lines),
            "salutation": self.salutation,
            **self.view_data,
        }

    def render(self, renderer: TemplateRenderer | None = None) -> str:
        return (renderer or TemplateRenderer()).render(NOTIFICATION_TEMPLATE, self.data())


class Notification:
    """Base class for notifications delivered over the tenant mailer channel."""

    def via(self, notifiable: Any) -> list[str]:
        return [CHANNEL_NAME]

    def to_mail(self, notifiable: Any) -> MailMessage:
        raise NotImplementedError

    def to_tenant_mailer(self, notifiable: Any) -> TenantMailer:
        raise NotImplementedError


class AnonymousNotifiable:
    """A recipient that is not a stored entity, addressed through explicit routes."""

    def __init__(self) -> None:
        self.routes: dict[str, Any] = {}

    def route(self, channel: str, route: Any) -> AnonymousNotifiable:
        self.routes[channel] = route
        return self

    def notify(self, notification: Notification, manager: Any) -> list[int | None]:
        return manager.send(self, notification)
