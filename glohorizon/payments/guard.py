"""Durable at-most-once guard for payment references."""
import logging

from django.db import IntegrityError, transaction

from bookings.exceptions import DuplicateProcessingError

from .models import ProcessedPayment

logger = logging.getLogger(__name__)


def is_processed(reference):
    return ProcessedPayment.objects.filter(reference=reference).exists()


def claim(reference, amount=None, source=''):
    """Insert the claim row; raise DuplicateProcessingError if it already exists.

    The savepoint keeps a lost race from poisoning an enclosing transaction.
    """
    try:
        with transaction.atomic():
            return ProcessedPayment.objects.create(reference=reference, amount=amount, source=source[:50])
    except IntegrityError:
        raise DuplicateProcessingError(reference)


def release(reference):
    """Drop the claim so a later delivery of the same payment is processed from scratch."""
    deleted, _ = ProcessedPayment.objects.filter(reference=reference).delete()
    if deleted:
        logger.info('Released payment claim %s', reference)
    return bool(deleted)
