import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task
def process_payment_completed_task(reference, amount=None, phone='', source=''):
    """Run the payment-completion handler off the webhook request.

    Never retried by Celery: Paystack redelivers failed webhooks, and the
    handler releases its claim on failure so redelivery reprocesses.
    """
    from .handlers import handle_payment_completed
    outcome = handle_payment_completed(reference, amount=amount, phone=phone, source=source)
    return outcome.value
