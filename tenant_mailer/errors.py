from __future__ import annotations


class TenantMailerError(Exception):
    """Base error type for tenant mailer exceptions."""


class ConfigurationMissing(TenantMailerError):
    """A required field is unset and no fallback value is available."""

    def __init__(self, field: str, message: str | None = None):
        super().__init__(message or f"{field} is not set")
        self.field = field


class SettingsError(TenantMailerError):
    """Tenant settings file could not be loaded."""

    def __init__(self, message: str, *, path: str | None = None):
        super().__init__(message)
        self.path = path


class ExternalCallError(TenantMailerError):
    """Raised for external collaborator failures."""

    def __init__(self, message: str, *, stage: str, url: str | None = None):
        super().__init__(message)
        self.stage = stage
        self.url = url


class DeliveryFailure(ExternalCallError):
    """Transport failed to deliver a message."""


class QueueDispatchFailure(ExternalCallError):
    """Job dispatcher rejected a queued message."""
