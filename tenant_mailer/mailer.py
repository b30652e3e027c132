from __future__ import annotations

"""Per-message mail builder with tenant-specific SMTP credentials.

A ``TenantMailer`` is a draft for one message: connection details, sender,
recipients, body and dispatch flags are set with chained setters and consumed
by ``send``.

Key behavior:
- Unset connection/sender fields resolve against ``MailConfig`` only when
  fallback mode is on; otherwise they raise ``ConfigurationMissing``.
- The transport and mail client are built on first use and reused by later
  sends on the same builder.
- Synchronous delivery errors never reach the caller: they become a
  ``MailFailed`` event, a log line, and a ``0`` return value.
"""

import importlib
from collections.abc import Callable, Mapping, Sequence
from email.message import EmailMessage
from enum import Enum
from typing import Any

from tenant_mailer.config import MailConfig, load_config
from tenant_mailer.errors import ConfigurationMissing, QueueDispatchFailure
from tenant_mailer.events import EventDispatcher, MailFailed, MailSuccess
from tenant_mailer.logs import StructuredLogger
from tenant_mailer.message import attach_file, build_message, merge_headers, message_id
from tenant_mailer.models import CHANNEL_NAME, Attachment, Mailable, Notification
from tenant_mailer.queue import InMemoryJobQueue, JobDispatcher, queue_name
from tenant_mailer.rendering import TemplateRenderer
from tenant_mailer.settings import MailerSettings
from tenant_mailer.transport import Mailer, SmtpTransport, Transport

TransportFactory = Callable[..., Transport]


class TenantMailer:
    def __init__(
        self,
        *,
        config: MailConfig | None = None,
        events: EventDispatcher | None = None,
        jobs: JobDispatcher | None = None,
        renderer: TemplateRenderer | None = None,
        logger: StructuredLogger | None = None,
        transport_factory: TransportFactory | None = None,
    ) -> None:
        self._config = config
        self._renderer = renderer
        self.events = events or EventDispatcher()
        self.jobs = jobs or InMemoryJobQueue()
        self.logger = logger or StructuredLogger()
        self._transport_factory = transport_factory or SmtpTransport

        self._mailer: Mailer | None = None
        self._transport: Transport | None = None

        self._fallback_config = False
        self._host: str | None = None
        self._port: int | None = None
        self._username: str | None = None
        self._password: str | None = None
        self._encryption: str | None = None
        self._stream_options: dict[str, Any] | None = None
        self._from_addresses: Any = None
        self._from_name: str | None = None
        self._to_addresses: Any = None
        self._to_name: str | None = None
        self._cc: list[str] = []
        self._bcc: list[str] = []
        self._subject: str | None = None
        self._content_type = "text/html"
        self._body: str | None = None
        self._body_part = ""
        self._attachments: list[Attachment] = []
        self._headers: dict[str, str] = {}
        self._should_queue = False
        self._queue: str | Enum | None = None
        self._should_stop_transport = True

    @property
    def config(self) -> MailConfig:
        if self._config is None:
            self._config = load_config()
        return self._config

    @property
    def renderer(self) -> TemplateRenderer:
        if self._renderer is None:
            self._renderer = TemplateRenderer(templates_path=self.config.tenant_mailer.templates_path)
        return self._renderer

    # Connection

    def init(self, host: str, port: int, username: str, password: str, encryption: str) -> TenantMailer:
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._encryption = encryption
        return self

    def use_fallback_config(self, fallback_config: bool = True) -> TenantMailer:
        self._fallback_config = fallback_config
        return self

    def with_settings(self, settings: MailerSettings) -> TenantMailer:
        self._host = settings.get_host()
        self._port = settings.get_port()
        self._username = settings.get_username()
        self._password = settings.get_password()
        self._encryption = settings.get_encryption()
        self._from_addresses = settings.get_from_address()
        self._from_name = settings.get_from_name()
        return self

    def set_host(self, host: str) -> TenantMailer:
        self._host = host
        return self

    def get_host(self) -> str:
        return self._resolve(self._host, "host", "mail.mailers.smtp.host")

    def set_port(self, port: int) -> TenantMailer:
        self._port = port
        return self

    def get_port(self) -> int:
        return int(self._resolve(self._port, "port", "mail.mailers.smtp.port"))

    def set_username(self, username: str) -> TenantMailer:
        self._username = username
        return self

    def get_username(self) -> str:
        return self._resolve(self._username, "username", "mail.mailers.smtp.username")

    def set_password(self, password: str) -> TenantMailer:
        self._password = password
        return self

    def get_password(self) -> str:
        return self._resolve(self._password, "password", "mail.mailers.smtp.password")

    def set_encryption(self, encryption: str) -> TenantMailer:
        self._encryption = encryption
        return self

    def get_encryption(self) -> str:
        return self._resolve(self._encryption, "encryption", "mail.mailers.smtp.encryption")

    def set_stream_options(self, stream_options: Mapping[str, Any] | None) -> TenantMailer:
        self._stream_options = dict(stream_options) if stream_options is not None else None
        return self

    def get_stream_options(self) -> dict[str, Any] | None:
        return self._stream_options

    # Addressing

    def set_to(self, addresses: Any, name: str | None = None) -> TenantMailer:
        """Set the recipient(s); objects carrying ``routes`` use their tenant_mailer route."""
        routes = getattr(addresses, "routes", None)
        if isinstance(routes, Mapping):
            addresses = routes.get(CHANNEL_NAME, addresses)
        self._to_addresses = addresses
        self._to_name = name
        return self

    def get_to_addresses(self) -> Any:
        if self._to_addresses is None:
            raise ConfigurationMissing("to", "To addresses are not set")
        return self._to_addresses

    def get_to_name(self) -> str | None:
        return self._to_name

    def set_cc(self, addresses: Sequence[str]) -> TenantMailer:
        self._cc = list(addresses)
        return self

    def get_cc(self) -> list[str]:
        return self._cc

    def set_bcc(self, addresses: Sequence[str]) -> TenantMailer:
        self._bcc = list(addresses)
        return self

    def get_bcc(self) -> list[str]:
        return self._bcc

    def set_from(self, addresses: Any, name: str | None = None) -> TenantMailer:
        self._from_addresses = addresses
        self._from_name = name
        return self

    def get_from_addresses(self) -> Any:
        return self._resolve(self._from_addresses, "from", "mail.from.address")

    def get_from_name(self) -> str | None:
        """Explicit sender name, else the configured SMTP host.

        Without an injected config the fallback loads it (and ``.env``) on first
        use, so this can raise on a malformed ``MAIL_*`` variable.
        """
        if self._from_name is not None:
            return self._from_name
        # Reads the SMTP host key, not mail.from.name; kept for compatibility
        return self.config.get("mail.mailers.smtp.host")

    # Content

    def set_subject(self, subject: str) -> TenantMailer:
        self._subject = subject
        return self

    def get_subject(self) -> str:
        if self._subject is None:
            raise ConfigurationMissing("subject", "Subject is not set")
        return self._subject

    def set_content_type(self, content_type: str = "text/html") -> TenantMailer:
        self._content_type = content_type
        return self

    def get_content_type(self) -> str:
        return self._content_type

    def set_body(self, body: Mailable | Notification | str) -> TenantMailer:
        """Set the body from a raw string, a ``Mailable`` or a ``Notification``.

        A mailable contributes its subject and headers; a notification is
        rendered for the current recipient and contributes its subject and
        attachments when it has them.
        """
        match body:
            case Mailable():
                self._ingest_mailable(body)
            case Notification():
                self._ingest_notification(body)
            case str():
                self._body = body
            case _:
                raise TypeError(f"unsupported mail body: {type(body).__name__}")
        return self

    def get_body(self) -> str:
        if self._body is None:
            raise ConfigurationMissing("body", "Body must not be empty")
        return self._body

    def set_body_part(self, body_part: str) -> TenantMailer:
        self._body_part = body_part
        return self

    def get_body_part(self) -> str:
        return self._body_part

    def set_attachments(self, attachments: Sequence[Any]) -> TenantMailer:
        self._attachments = [Attachment.coerce(a) for a in attachments]
        return self

    def get_attachments(self) -> list[Attachment]:
        return self._attachments

    def set_headers(self, headers: Mapping[str, str]) -> TenantMailer:
        self._headers = dict(headers)
        return self

    def merge_headers(self, headers: Mapping[str, str]) -> TenantMailer:
        self._headers.update(headers)
        return self

    def get_headers(self) -> dict[str, str]:
        return self._headers

    # Dispatch

    def should_queue(self) -> TenantMailer:
        self._should_queue = True
        return self

    def is_should_queue(self) -> bool:
        return self._should_queue

    def on_queue(self, queue: str | Enum | None = "default") -> TenantMailer:
        self._queue = queue
        return self

    def get_queue(self) -> str | Enum | None:
        return self._queue

    def resolved_queue(self) -> str:
        return queue_name(self._queue)

    def stop_transport(self, stop: bool = True) -> TenantMailer:
        self._should_stop_transport = stop
        return self

    def should_stop_transport(self) -> bool:
        return self._should_stop_transport

    def reset_transport(self) -> TenantMailer:
        """Stop any live session and drop the memoized transport and client."""
        if self._transport is not None:
            self._transport.stop()
        self._transport = None
        self._mailer = None
        return self

    def get_queue_job_class(self) -> type:
        path = self.config.get("tenant_mailer.queue_class")
        if not path:
            raise ConfigurationMissing("queue_class", "Queue class not defined")
        module_name, _, attr = str(path).rpartition(".")
        try:
            return getattr(importlib.import_module(module_name), attr)
        except (ImportError, AttributeError, ValueError) as exc:
            raise ConfigurationMissing("queue_class", f"Queue class {path} cannot be imported") from exc

    def send(self) -> int:
        """Send the message, or hand it to the job dispatcher when queued.

        Returns the number of accepted recipients; ``1`` for a queued handoff.
        """
        self.get_subject()
        self.get_body()

        response = 0
        try:
            message = self._build_message()
            merge_headers(message, self.get_headers())
            for attachment in self.get_attachments():
                attach_file(message, attachment)

            if self.is_should_queue():
                return self._enqueue(message)

            response = self._get_mailer().send(message)
            if response > 0:
                self.events.dispatch(MailSuccess(message_id=message_id(message)))
                self.logger.info(
                    "mail_sent",
                    stage="send",
                    url=self._transport_url(),
                    message_id=message_id(message),
                    accepted=response,
                )
            else:
                self.events.dispatch(MailFailed(error_message="no recipients accepted"))
                self.logger.warning(
                    "mail_not_accepted",
                    stage="send",
                    status="failed",
                    url=self._transport_url(),
                    message_id=message_id(message),
                )
        except (ConfigurationMissing, QueueDispatchFailure):
            raise
        except Exception as exc:  # noqa: BLE001
            self.events.dispatch(MailFailed(error_message=str(exc), error_type=exc.__class__.__name__))
            self.logger.error(
                "mail_send_failed",
                stage="send",
                url=self._transport_url(),
                error_type=exc.__class__.__name__,
                error_message=f"Mail sending failed: {exc}",
            )
            response = 0
        finally:
            if self.should_stop_transport() and self._transport is not None:
                self._transport.stop()

        return response

    def _resolve(self, value: Any, field: str, key: str) -> Any:
        if value is not None:
            return value
        if self._fallback_config:
            fallback = self.config.get(key)
            if fallback is not None:
                return fallback
        raise ConfigurationMissing(field)

    def _ingest_mailable(self, mailable: Mailable) -> None:
        envelope = mailable.envelope()
        subject = (
            mailable.get_subject()
            or (envelope.subject if envelope is not None else None)
            or mailable.subject
        )
        if subject:
            self._subject = subject

        headers = mailable.headers()
        if headers is not None:
            self.merge_headers(headers.as_mapping())

        self._body = mailable.render()

    def _ingest_notification(self, notification: Notification) -> None:
        message = notification.to_mail(self.get_to_addresses())
        if message.subject:
            self._subject = message.subject
        if message.attachments:
            self._attachments = list(message.attachments)
        if message.markdown is not None:
            self._body = self.renderer.render(message.markdown, message.data())
        else:
            self._body = message.render(self.renderer)

    def _build_message(self) -> EmailMessage:
        return build_message(
            subject=self.get_subject(),
            from_addresses=self.get_from_addresses(),
            from_name=self.get_from_name(),
            to_addresses=self.get_to_addresses(),
            to_name=self.get_to_name(),
            cc=self.get_cc(),
            bcc=self.get_bcc(),
            content_type=self.get_content_type(),
            body=self.get_body(),
            body_part=self.get_body_part(),
        )

    def _enqueue(self, message: EmailMessage) -> int:
        job_class = self.get_queue_job_class()
        job = job_class(self._get_mailer(), message).on_queue(self.resolved_queue())
        try:
            self.jobs.dispatch(job)
        except Exception as exc:  # noqa: BLE001
            raise QueueDispatchFailure(
                f"Queue dispatch failed: {exc}",
                stage="queue",
                url=self.resolved_queue(),
            ) from exc
        self.logger.info(
            "mail_queued",
            stage="queue",
            queue=self.resolved_queue(),
            message_id=message_id(message),
        )
        return 1

    def _get_transport(self) -> Transport:
        if self._transport is None:
            self._transport = self._transport_factory(
                host=self.get_host(),
                port=self.get_port(),
                username=self.get_username(),
                password=self.get_password(),
                encryption=self.get_encryption(),
                stream_options=self.get_stream_options(),
                timeout=self.config.get("mail.mailers.smtp.timeout", 30.0),
                logger=self.logger,
            )
        return self._transport

    def _get_mailer(self) -> Mailer:
        if self._mailer is None:
            self._mailer = Mailer(self._get_transport())
        return self._mailer

    def _transport_url(self) -> str | None:
        return getattr(self._transport, "url", None)
