from dataclasses import dataclass, field
from typing import List

from django.conf import settings

# Which audiences each event type reaches.
EVENT_AUDIENCES = {
    'request.submitted': ('customer', 'admin'),
    'quote.provided': ('customer',),
    'status.changed': ('customer',),
    'payment.confirmed': ('customer', 'admin'),
    'admin.alert': ('admin',),
}


@dataclass(frozen=True)
class Recipient:
    channel: str  # "sms" or "email"
    target: str
    audience: str  # "customer" or "admin"


@dataclass
class RecipientSet:
    customer_email: str = ''
    customer_phone: str = ''
    admin_emails: List[str] = field(default_factory=list)
    admin_phones: List[str] = field(default_factory=list)

    def expand(self) -> List[Recipient]:
        """One Recipient per (channel, target), customer first, duplicates dropped."""
        candidates = [
            Recipient('sms', self.customer_phone, 'customer'),
            Recipient('email', self.customer_email, 'customer'),
        ]
        candidates += [Recipient('email', addr, 'admin') for addr in self.admin_emails]
        candidates += [Recipient('sms', phone, 'admin') for phone in self.admin_phones]

        seen = set()
        unique = []
        for recipient in candidates:
            key = (recipient.channel, recipient.target)
            if not recipient.target or key in seen:
                continue
            seen.add(key)
            unique.append(recipient)
        return unique


def resolve_recipients(event, fallback_phone=None) -> RecipientSet:
    """Build the recipient set for an event from settings, read at call time.

    The request's stored contact phone always wins; ``fallback_phone`` (such as
    the number a payer typed at checkout) is used only when none is stored.
    """
    audiences = EVENT_AUDIENCES.get(event.event_type, ('customer',))
    recipients = RecipientSet()
    if 'customer' in audiences:
        recipients.customer_email = event.customer_email
        recipients.customer_phone = event.customer_phone or fallback_phone or ''
    if 'admin' in audiences:
        recipients.admin_emails = list(getattr(settings, 'ADMIN_NOTIFICATION_EMAILS', []))
        recipients.admin_phones = list(getattr(settings, 'ADMIN_NOTIFICATION_PHONES', []))
    return recipients
