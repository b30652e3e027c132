from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from tenant_mailer.config import load_config
from tenant_mailer.errors import ConfigurationMissing, TenantMailerError
from tenant_mailer.events import EventDispatcher
from tenant_mailer.logs import StructuredLogger
from tenant_mailer.mailer import TenantMailer
from tenant_mailer.provider import about
from tenant_mailer.settings import load_tenant_settings
from tenant_mailer.transport import EmlTransport


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tenant-mailer", description="Send mail with per-tenant SMTP settings")
    subparsers = parser.add_subparsers(dest="command")

    send_parser = subparsers.add_parser("send", help="send one message")
    send_parser.add_argument("--to", required=True, help="recipient address")
    send_parser.add_argument("--to-name", default=None)
    send_parser.add_argument("--from", dest="from_address", default=None, help="sender address")
    send_parser.add_argument("--from-name", default=None)
    send_parser.add_argument("--cc", action="append", default=[])
    send_parser.add_argument("--bcc", action="append", default=[])
    send_parser.add_argument("--subject", required=True)
    body = send_parser.add_mutually_exclusive_group(required=True)
    body.add_argument("--body", default=None, help="message body")
    body.add_argument("--body-file", default=None, help="path to a file holding the message body")
    send_parser.add_argument("--content-type", default="text/html")
    send_parser.add_argument("--settings", default=None, help="tenant settings YAML/JSON")
    send_parser.add_argument("--tenant", default=None, help="tenant id inside the settings file")
    send_parser.add_argument("--fallback", action="store_true", help="fill unset SMTP fields from MAIL_* config")
    send_parser.add_argument("--attach", action="append", default=[], help="file to attach (repeatable)")
    send_parser.add_argument("--header", action="append", default=[], help="extra header as KEY=VALUE")
    send_parser.add_argument("--eml-dir", default=None, help="write .eml files here instead of using SMTP")
    send_parser.add_argument("--log-file", default=None, help="append JSON log lines to this file")

    subparsers.add_parser("about", help="show package information")
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint.

    ``send`` prints ``{"accepted": n, "events": [...]}`` and exits 0 when at
    least one recipient was accepted, 1 otherwise, 2 on missing configuration.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "about":
        print(json.dumps(about(), indent=2, ensure_ascii=True))
        return 0
    if args.command != "send":
        parser.print_help()
        return 1

    cfg = load_config()
    events = EventDispatcher(record=True)
    logger = StructuredLogger(
        path=Path(args.log_file) if args.log_file else None,
        tenant=args.tenant,
        log_level=cfg.log_level,
    )
    factory = None
    if args.eml_dir:
        out_dir = Path(args.eml_dir)
        factory = lambda **kwargs: EmlTransport(out_dir=out_dir, logger=kwargs.get("logger"))  # noqa: E731

    mailer = TenantMailer(config=cfg, events=events, logger=logger, transport_factory=factory)
    try:
        if args.settings:
            mailer.with_settings(load_tenant_settings(args.settings, tenant=args.tenant))
        mailer.use_fallback_config(bool(args.fallback))
        if args.from_address:
            mailer.set_from(args.from_address, args.from_name)
        body = args.body if args.body is not None else Path(args.body_file).read_text(encoding="utf-8")
        mailer.set_to(args.to, args.to_name)
        mailer.set_cc(args.cc).set_bcc(args.bcc)
        mailer.set_subject(args.subject).set_content_type(args.content_type).set_body(body)
        mailer.set_attachments(args.attach).set_headers(_parse_headers(args.header))
        accepted = mailer.send()
    except ConfigurationMissing as exc:
        print(f"[tenant-mailer] {exc}", file=sys.stderr)
        return 2
    except (TenantMailerError, ValueError, OSError) as exc:
        print(f"[tenant-mailer] {exc}", file=sys.stderr)
        return 1

    payload = {
        "accepted": accepted,
        "events": [{"type": e.__class__.__name__, **e.model_dump()} for e in events.dispatched],
    }
    print(json.dumps(payload, indent=2, ensure_ascii=True, default=str))
    return 0 if accepted > 0 else 1


def _parse_headers(values: list[str]) -> dict[str, str]:
    headers: dict[str, str] = {}
    for raw in values:
        key, sep, value = raw.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"header must be KEY=VALUE: {raw}")
        headers[key.strip()] = value.strip()
    return headers


if __name__ == "__main__":
    sys.exit(main())
