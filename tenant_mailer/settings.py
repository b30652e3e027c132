from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from tenant_mailer.errors import ConfigurationMissing, SettingsError


class MailerSettings(BaseModel):
    """SMTP credentials and sender identity for one tenant.

    Feeds ``TenantMailer.with_settings``. Connection getters raise
    ``ConfigurationMissing`` when the value was never set; the sender and
    encryption getters return ``None`` instead.
    """

    model_config = ConfigDict(validate_assignment=True)

    host: str | None = None
    port: int | None = None
    username: str | None = None
    password: str | None = None
    encryption: str | None = None
    from_address: str | None = None
    from_name: str | None = None

    @field_validator("port")
    @classmethod
    def _valid_port(cls, value: int | None) -> int | None:
        if value is not None and (value < 1 or value > 65535):
            raise ValueError("port must be in 1..65535")
        return value

    def set_host(self, host: str) -> MailerSettings:
        self.host = host
        return self

    def get_host(self) -> str:
        return _required(self.host, "host")

    def set_port(self, port: int) -> MailerSettings:
        self.port = port
        return self

    def get_port(self) -> int:
        return _required(self.port, "port")

    def set_username(self, username: str) -> MailerSettings:
        self.username = username
        return self

    def get_username(self) -> str:
        return _required(self.username, "username")

    def set_password(self, password: str) -> MailerSettings:
        self.password = password
        return self

    def get_password(self) -> str:
        return _required(self.password, "password")

    def set_encryption(self, encryption: str) -> MailerSettings:
        self.encryption = encryption
        return self

    def get_encryption(self) -> str | None:
        return self.encryption

    def set_from_name(self, name: str | None = None) -> MailerSettings:
        self.from_name = name
        return self

    def get_from_name(self) -> str | None:
        return self.from_name

    def set_from_address(self, address: str, name: str | None = None) -> MailerSettings:
        self.from_address = address
        self.from_name = name
        return self

    def get_from_address(self) -> str | None:
        return self.from_address


def load_tenant_settings(path: str | Path, *, tenant: str | None = None) -> MailerSettings:
    """Read tenant SMTP settings from a YAML or JSON file.

    The file holds either one settings object or, when ``tenant`` is given, an
    object keyed by tenant id (optionally nested under ``tenants``).
    """
    path = Path(path)
    if not path.exists():
        raise SettingsError(f"settings file not found: {path}", path=str(path))

    if path.suffix.lower() in {".yaml", ".yml"}:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    elif path.suffix.lower() == ".json":
        raw = json.loads(path.read_text(encoding="utf-8"))
    else:
        raise SettingsError("settings must be yaml/yml/json", path=str(path))

    if not isinstance(raw, dict):
        raise SettingsError("settings content must be an object", path=str(path))

    if tenant is not None:
        tenants: Any = raw.get("tenants", raw)
        if not isinstance(tenants, dict) or not isinstance(tenants.get(tenant), dict):
            raise SettingsError(f"tenant '{tenant}' not found", path=str(path))
        raw = tenants[tenant]

    try:
        return MailerSettings.model_validate(raw)
    except ValidationError as exc:
        raise SettingsError(f"invalid settings: {exc}", path=str(path)) from exc


def _required(value: Any, field: str) -> Any:
    if value is None:
        raise ConfigurationMissing(field)
    return value
