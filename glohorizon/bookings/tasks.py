import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task
def expire_stale_quotes_task():
    """Runs hourly. Expires QUOTE_PROVIDED / PAYMENT_PENDING quotes past quote_expires_at."""
    from .services import expire_stale_quotes
    return expire_stale_quotes()
