"""Send mail through tenant-specific SMTP credentials chosen at call time."""

__version__ = "1.0.0"

from tenant_mailer.errors import (  # noqa: E402
    ConfigurationMissing,
    DeliveryFailure,
    QueueDispatchFailure,
    SettingsError,
    TenantMailerError,
)
from tenant_mailer.events import EventDispatcher, MailFailed, MailSuccess, NotificationFailed  # noqa: E402
from tenant_mailer.mailer import TenantMailer  # noqa: E402
from tenant_mailer.models import (  # noqa: E402
    AnonymousNotifiable,
    Attachment,
    Envelope,
    Headers,
    Mailable,
    MailMessage,
    Notification,
)
from tenant_mailer.settings import MailerSettings, load_tenant_settings  # noqa: E402

__all__ = [
    "AnonymousNotifiable",
    "Attachment",
    "ConfigurationMissing",
    "DeliveryFailure",
    "Envelope",
    "EventDispatcher",
    "Headers",
    "MailFailed",
    "MailMessage",
    "MailSuccess",
    "Mailable",
    "MailerSettings",
    "Notification",
    "NotificationFailed",
    "QueueDispatchFailure",
    "SettingsError",
    "TenantMailer",
    "TenantMailerError",
    "load_tenant_settings",
    "__version__",
]
