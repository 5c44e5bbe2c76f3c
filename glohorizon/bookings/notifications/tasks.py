import logging

from celery import shared_task

from .base import NotificationEvent
from .dispatcher import dispatch_notification

logger = logging.getLogger(__name__)


def _load_request(kind, request_id):
    from bookings.models import BookingRequest, QuoteRequest

    model = BookingRequest if kind == BookingRequest.KIND else QuoteRequest
    try:
        return model.objects.get(id=request_id)
    except model.DoesNotExist:
        return None


@shared_task
def dispatch_request_notification(kind, request_id, event_type, extra=None):
    """Fan out a booking/quote event. Queued via transaction.on_commit.

    Not retried as a whole: a retry would resend to every recipient that
    already got the message. Per-recipient failures are in the logged report.
    """
    entity = _load_request(kind, request_id)
    if entity is None:
        logger.warning('%s %s vanished before %s could be sent', kind, request_id, event_type)
        return None

    event = NotificationEvent.for_request(entity, event_type, **(extra or {}))
    report = dispatch_notification(event)
    return {
        'reference_number': report.reference_number,
        'delivered': len(report.delivered),
        'failed': len(report.failed),
    }
