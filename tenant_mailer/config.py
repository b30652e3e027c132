from __future__ import annotations

"""Application-wide mail configuration (environment variables + .env).

This is the fallback source a builder consults when fallback mode is on.

Design:
- Values are addressed with dotted keys (``mail.mailers.smtp.host``).
- Every SMTP value is optional; an absent key resolves to ``None`` and the
  caller decides whether that is an error.
- Environment variables always override .env file values.
"""

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator


DEFAULT_QUEUE_CLASS = "tenant_mailer.queue.QueuedMail"


class SmtpMailerConfig(BaseModel):
    host: str | None = None
    port: int | None = None
    username: str | None = None
    password: str | None = None
    encryption: str | None = None
    timeout: float = 30.0

    @field_validator("port")
    @classmethod
    def _valid_port(cls, value: int | None) -> int | None:
        if value is not None and (value < 1 or value > 65535):
            raise ValueError("port must be in 1..65535")
        return value

    @field_validator("timeout")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeout must be positive")
        return value


class MailersConfig(BaseModel):
    smtp: SmtpMailerConfig = Field(default_factory=SmtpMailerConfig)


class FromConfig(BaseModel):
    address: str | None = None
    name: str | None = None


class MailSection(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    mailers: MailersConfig = Field(default_factory=MailersConfig)
    from_: FromConfig = Field(default_factory=FromConfig, alias="from")


class PackageSection(BaseModel):
    queue_class: str | None = DEFAULT_QUEUE_CLASS
    templates_path: Path | None = None


class MailConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    mail: MailSection = Field(default_factory=MailSection)
    tenant_mailer: PackageSection = Field(default_factory=PackageSection)
    log_level: str = "INFO"

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a dotted key such as ``mail.from.address``."""
        node: Any = self.model_dump(by_alias=True)
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return default if node is None else node


def load_config(env_file: str | None = ".env") -> MailConfig:
    if env_file:
        # Shell environment wins over .env values
        load_dotenv(env_file, override=False)
    port = _getenv_opt("MAIL_PORT")
    templates = _getenv_opt("TENANT_MAILER_TEMPLATES")
    return MailConfig(
        mail=MailSection(
            mailers=MailersConfig(
                smtp=SmtpMailerConfig(
                    host=_getenv_opt("MAIL_HOST"),
                    port=int(port) if port is not None else None,
                    username=_getenv_opt("MAIL_USERNAME"),
                    password=_getenv_opt("MAIL_PASSWORD"),
                    encryption=_getenv_opt("MAIL_ENCRYPTION"),
                    timeout=float(_getenv_str("MAIL_TIMEOUT", "30")),
                )
            ),
            from_=FromConfig(
                address=_getenv_opt("MAIL_FROM_ADDRESS"),
                name=_getenv_opt("MAIL_FROM_NAME"),
            ),
        ),
        tenant_mailer=PackageSection(
            queue_class=_getenv_str("TENANT_MAILER_QUEUE_CLASS", DEFAULT_QUEUE_CLASS),
            templates_path=Path(templates) if templates else None,
        ),
        log_level=_getenv_str("LOG_LEVEL", "INFO"),
    )


def _getenv_opt(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or value == "":
        return None
    return value


def _getenv_str(name: str, default: str) -> str:
    value = _getenv_opt(name)
    return value if value is not None else default
