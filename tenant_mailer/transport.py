from __future__ import annotations

import smtplib
import ssl
from collections.abc import Mapping
from email.message import EmailMessage
from pathlib import Path
from typing import Any, Protocol

from tenant_mailer.errors import DeliveryFailure
from tenant_mailer.logs import StructuredLogger
from tenant_mailer.message import message_id, recipients, write_eml_file


class Transport(Protocol):
    def send(self, message: EmailMessage) -> int:
        """Deliver a message; return the number of accepted recipients."""

    def stop(self) -> None:
        """Close the underlying session, if any."""


class SmtpTransport:
    """Per-tenant SMTP session; connects on first send and reconnects after ``stop``."""

    def __init__(
        self,
        *,
        host: str,
        port: int,
        username: str,
        password: str,
        encryption: str,
        stream_options: Mapping[str, Any] | None = None,
        timeout: float = 30.0,
        logger: StructuredLogger | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.encryption = (encryption or "").lower()
        self.stream_options = dict(stream_options) if stream_options else None
        self.timeout = timeout
        self.logger = logger or StructuredLogger()
        self._server: smtplib.SMTP | None = None

    @property
    def url(self) -> str:
        scheme = "smtps" if self.encryption == "ssl" else "smtp"
        return f"{scheme}://{self.host}:{self.port}"

    def is_started(self) -> bool:
        return self._server is not None

    def start(self) -> smtplib.SMTP:
        if self._server is not None:
            return self._server
        server: smtplib.SMTP | None = None
        try:
            if self.encryption == "ssl":
                server = smtplib.SMTP_SSL(
                    self.host,
                    self.port,
                    timeout=self.timeout,
                    context=self._ssl_context(),
                )
            else:
                server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
                if self.encryption == "tls":
                    server.ehlo()
                    server.starttls(context=self._ssl_context())
                server.ehlo()
            if self.username:
                server.login(self.username, self.password)
        except (smtplib.SMTPException, OSError) as exc:
            if server is not None:
                server.close()
            raise DeliveryFailure(
                f"SMTP connection failed: {exc}",
                stage="transport",
                url=self.url,
            ) from exc
        self._server = server
        self.logger.debug("transport_started", stage="transport", url=self.url)
        return server

    def send(self, message: EmailMessage) -> int:
        server = self.start()
        targets = recipients(message)
        try:
            refused = server.send_message(message)
        except smtplib.SMTPRecipientsRefused as exc:
            self.logger.warning(
                "recipients_refused",
                stage="transport",
                url=self.url,
                refused=sorted(exc.recipients),
            )
            return 0
        except (smtplib.SMTPException, OSError) as exc:
            # the session is unusable; the next send reconnects
            self._server = None
            try:
                server.close()
            except OSError:
                pass
            raise DeliveryFailure(
                f"SMTP send failed: {exc}",
                stage="transport",
                url=self.url,
            ) from exc
        return len(targets) - len(refused or {})

    def stop(self) -> None:
        server, self._server = self._server, None
        if server is None:
            return
        try:
            server.quit()
        except (smtplib.SMTPException, OSError) as exc:
            self.logger.warning(
                "transport_stop_failed",
                stage="transport",
                url=self.url,
                error_type=exc.__class__.__name__,
                error_message=str(exc),
            )
            server.close()
            return
        self.logger.debug("transport_stopped", stage="transport", url=self.url)

    def _ssl_context(self) -> ssl.SSLContext:
        options = (self.stream_options or {}).get("ssl", {})
        context = ssl.create_default_context(cafile=options.get("cafile"))
        if options.get("verify_peer_name") is False or options.get("allow_self_signed"):
            context.check_hostname = False
        if options.get("verify_peer") is False or options.get("allow_self_signed"):
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context


class EmlTransport:
    """Writes every message to ``<out_dir>/<message-id>.eml`` instead of sending it."""

    def __init__(self, *, out_dir: Path, logger: StructuredLogger | None = None) -> None:
        self.out_dir = out_dir
        self.logger = logger or StructuredLogger()
        self.written: list[Path] = []

    def send(self, message: EmailMessage) -> int:
        name = (message_id(message) or f"message-{len(self.written) + 1}").replace("/", "_")
        out_path = self.out_dir / f"{name}.eml"
        write_eml_file(message=message, out_path=out_path)
        self.written.append(out_path)
        self.logger.info("eml_written", stage="transport", path=str(out_path))
        return len(recipients(message))

    def stop(self) -> None:
        return None


class Mailer:
    """Mail client bound to one transport."""

    def __init__(self, transport: Transport) -> None:
        self.transport = transport

    def send(self, message: EmailMessage) -> int:
        return self.transport.send(message)
