from __future__ import annotations

import json
from pathlib import Path

import pytest

from tenant_mailer.config import MailConfig


def _settings_file(tmp_path: Path) -> Path:
    path = tmp_path / "tenants.yaml"
    path.write_text(
        "acme:\n"
        "  host: smtp.acme.test\n"
        "  port: 587\n"
        "  username: acme\n"
        "  password: secret\n"
        "  encryption: tls\n"
        "  from_address: hello@acme.test\n"
        "  from_name: Acme\n",
        encoding="utf-8",
    )
    return path


def test_cli_send_writes_eml_and_prints_events(tmp_path: Path, monkeypatch, capsys) -> None:
    import tenant_mailer.cli as cli

    monkeypatch.setattr(cli, "load_config", lambda: MailConfig())
    outbox = tmp_path / "outbox"

    exit_code = cli.main(
        [
            "send",
            "--to",
            "b@y.com",
            "--subject",
            "Welcome",
            "--body",
            "<p>Hello</p>",
            "--settings",
            str(_settings_file(tmp_path)),
            "--tenant",
            "acme",
            "--header",
            "X-Tenant=acme",
            "--eml-dir",
            str(outbox),
            "--log-file",
            str(tmp_path / "cli.log"),
        ]
    )

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["accepted"] == 1
    assert [e["type"] for e in payload["events"]] == ["MailSuccess"]

    written = list(outbox.glob("*.eml"))
    assert len(written) == 1
    eml = written[0].read_text(encoding="utf-8")
    assert "From: Acme <hello@acme.test>" in eml
    assert "X-Tenant: acme" in eml


def test_cli_reports_missing_configuration(tmp_path: Path, monkeypatch, capsys) -> None:
    import tenant_mailer.cli as cli

    monkeypatch.setattr(cli, "load_config", lambda: MailConfig())

    exit_code = cli.main(
        [
            "send",
            "--to",
            "b@y.com",
            "--from",
            "a@x.com",
            "--subject",
            "Welcome",
            "--body",
            "hi",
            "--eml-dir",
            str(tmp_path / "outbox"),
        ]
    )

    assert exit_code == 2
    assert "host is not set" in capsys.readouterr().err


def test_cli_rejects_malformed_header(tmp_path: Path, monkeypatch) -> None:
    import tenant_mailer.cli as cli

    monkeypatch.setattr(cli, "load_config", lambda: MailConfig())

    exit_code = cli.main(
        [
            "send",
            "--to",
            "b@y.com",
            "--subject",
            "Welcome",
            "--body",
            "hi",
            "--header",
            "no-separator",
        ]
    )

    assert exit_code == 1


def test_cli_about_and_help(capsys) -> None:
    import tenant_mailer.cli as cli

    assert cli.main(["about"]) == 0
    assert json.loads(capsys.readouterr().out)["name"] == "tenant-mailer"
    assert cli.main([]) == 1


def test_cli_requires_a_body(monkeypatch) -> None:
    import tenant_mailer.cli as cli

    with pytest.raises(SystemExit):
        cli.main(["send", "--to", "b@y.com", "--subject", "x"])
