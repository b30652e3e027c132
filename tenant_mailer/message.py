from __future__ import annotations

import mimetypes
from collections.abc import Mapping, Sequence
from email.message import EmailMessage
from email.policy import SMTP
from email.utils import formataddr, getaddresses, make_msgid
from pathlib import Path

from tenant_mailer.models import Attachment

Addresses = str | Sequence[str] | Mapping[str, str | None]


def build_message(
    *,
    subject: str,
    from_addresses: Addresses,
    from_name: str | None,
    to_addresses: Addresses,
    to_name: str | None,
    cc: Addresses,
    bcc: Addresses,
    content_type: str,
    body: str,
    body_part: str = "",
) -> EmailMessage:
    maintype, _, subtype = content_type.partition("/")
    if maintype != "text" or not subtype:
        raise ValueError(f"unsupported content type: {content_type}")

    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = format_addresses(from_addresses, from_name)
    msg["To"] = format_addresses(to_addresses, to_name)
    if cc:
        msg["Cc"] = format_addresses(cc)
    if bcc:
        msg["Bcc"] = format_addresses(bcc)
    msg["Message-ID"] = make_msgid(domain=_sender_domain(msg["From"]))

    if body_part:
        msg.set_content(body_part)
        msg.add_alternative(body, subtype=subtype)
    else:
        msg.set_content(body, subtype=subtype)
    return msg


def format_addresses(addresses: Addresses, name: str | None = None) -> str:
    """Render one address, a list, or an address->name mapping as a header value.

    ``name`` only applies when a single address string is given.
    """
    if isinstance(addresses, str):
        return formataddr((name or "", addresses))
    if isinstance(addresses, Mapping):
        return ", ".join(formataddr((n or "", a)) for a, n in addresses.items())
    return ", ".join(formataddr(("", str(a))) for a in addresses)


def merge_headers(message: EmailMessage, headers: Mapping[str, str]) -> EmailMessage:
    # Header names are case-insensitive; an existing header is replaced, never duplicated
    for key, value in headers.items():
        if key in message:
            del message[key]
        message[key] = value
    return message


def attach_file(message: EmailMessage, attachment: Attachment) -> EmailMessage:
    path = attachment.file
    mime = attachment.mime or mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    maintype, _, subtype = mime.partition("/")
    message.add_attachment(
        path.read_bytes(),
        maintype=maintype,
        subtype=subtype or "octet-stream",
        filename=attachment.name or path.name,
    )
    return message


def message_id(message: EmailMessage) -> str | None:
    value = message.get("Message-ID")
    if value is None:
        return None
    return str(value).strip().strip("<>")


def recipients(message: EmailMessage) -> list[str]:
    fields = [str(v) for h in ("To", "Cc", "Bcc") for v in message.get_all(h, [])]
    return [addr for _, addr in getaddresses(fields) if addr]


def write_eml_file(*, message: EmailMessage, out_path: Path) -> None:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with out_path.open("wb") as f:
        f.write(message.as_bytes(policy=SMTP))


def _sender_domain(from_header: str | None) -> str | None:
    parsed = getaddresses([str(from_header or "")])
    if not parsed:
        return None
    _, addr = parsed[0]
    if "@" not in addr:
        return None
    return addr.rsplit("@", 1)[1]
