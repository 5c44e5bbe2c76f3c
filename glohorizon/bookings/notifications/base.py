from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from typing import Optional


@dataclass
class NotificationEvent:
    """Snapshot of a booking/quote taken on the calling thread.

    Dispatch workers only ever see this snapshot, never the model instance,
    so no ORM access happens off the request/task thread.
    """

    event_type: str  # "request.submitted", "quote.provided", "status.changed", "payment.confirmed", "admin.alert"
    kind: str  # "booking" or "quote"
    reference_number: str
    service_type: str  # display label, e.g. "Complete Package"
    status: str  # display label
    customer_name: str
    customer_email: str = ''
    customer_phone: str = ''
    urgency: str = 'Standard'
    extra: dict = field(default_factory=dict)

    @classmethod
    def for_request(cls, entity, event_type, **extra):
        return cls(
            event_type=event_type,
            kind=entity.KIND,
            reference_number=entity.reference_number,
            service_type=entity.get_service_type_display(),
            status=entity.get_status_display(),
            customer_name=entity.customer_name,
            customer_email=entity.contact_email,
            customer_phone=entity.contact_phone,
            urgency=entity.get_urgency_display(),
            extra=extra,
        )

    def to_payload(self) -> dict:
        """JSON-safe dict for Celery."""
        return asdict(self)

    @classmethod
    def from_payload(cls, payload: dict) -> 'NotificationEvent':
        return cls(**payload)


@dataclass
class RenderedMessage:
    subject: str
    text: str
    html: str = ''


@dataclass
class DeliveryResult:
    channel: str  # "sms" or "email"
    target: str
    success: bool
    audience: str = 'customer'
    error: Optional[str] = None


class ChannelAdapter(ABC):
    """Base class for outbound delivery channels."""

    name = ''

    @abstractmethod
    def is_enabled(self) -> bool:
        """Check the provider credentials are configured."""

    @abstractmethod
    def send(self, target: str, message: RenderedMessage):
        """Deliver one message to one target.

        Raises NotificationDeliveryError (permanent) or
        TransientUpstreamError (timeout, 5xx)."""
