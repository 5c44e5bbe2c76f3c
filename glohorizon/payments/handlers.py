"""Payment-completion handling.

Paystack retries webhooks and admins can re-verify by hand, so the same
payment reference routinely arrives more than once. ``handle_payment_completed``
claims the reference in ``ProcessedPayment`` before doing any work; whoever
loses the claim does nothing. A failure after the claim releases it so the
next delivery is processed from scratch.
"""
import enum
import logging

from bookings import services
from bookings.exceptions import DuplicateProcessingError, InvalidPhoneNumberError
from bookings.notifications.base import NotificationEvent
from bookings.notifications.dispatcher import start_dispatch
from bookings.notifications.messages import format_amount
from bookings.notifications.phone import normalize_phone
from bookings.notifications.recipients import resolve_recipients

from . import guard

logger = logging.getLogger(__name__)

PAYMENT_ACTOR = 'PaymentHandler'


class PaymentOutcome(str, enum.Enum):
    PROCESSED = 'processed'
    DUPLICATE = 'duplicate'
    NOT_FOUND = 'not_found'
    FAILED = 'failed'


def handle_payment_completed(reference, amount=None, phone='', source=''):
    logger.info('Payment completion received for %s (%s)', reference, source or 'unknown source')

    if guard.is_processed(reference):
        logger.info('Payment %s already processed; skipping to avoid duplicate notifications', reference)
        return PaymentOutcome.DUPLICATE

    try:
        entity = services.find_by_reference(reference)
    except Exception:
        logger.exception('Lookup failed for payment %s', reference)
        return PaymentOutcome.FAILED
    if entity is None:
        logger.warning('No booking or quote found for payment reference %s', reference)
        return PaymentOutcome.NOT_FOUND

    try:
        guard.claim(reference, amount=amount, source=source)
    except DuplicateProcessingError:
        logger.info('Payment %s claimed by another worker; skipping', reference)
        return PaymentOutcome.DUPLICATE

    try:
        report = _process(entity, reference, amount, phone)
    except Exception:
        guard.release(reference)
        logger.exception('Error processing payment %s; claim released for retry', reference)
        return PaymentOutcome.FAILED

    logger.info(
        'Processed payment %s for %s %s (%d/%d notifications delivered)',
        reference, entity.KIND, entity.reference_number,
        len(report.delivered), len(report.results),
    )
    return PaymentOutcome.PROCESSED


def _process(entity, reference, amount, phone):
    workflow = entity.workflow
    if amount is None:
        amount = entity.payable_amount

    if workflow.is_awaiting_payment(entity.status):
        services.transition_status(
            entity, workflow.paid,
            changed_by=PAYMENT_ACTOR,
            notes=f'Payment confirmed for {reference}',
            notify=False,
        )
    else:
        logger.info(
            '%s %s is %s; payment recorded without a status change',
            entity.KIND.title(), entity.reference_number, entity.status,
        )

    event = NotificationEvent.for_request(
        entity, 'payment.confirmed',
        amount='' if amount is None else str(amount),
        currency=entity.currency,
    )
    recipients = resolve_recipients(event, fallback_phone=_payer_phone(phone, reference))
    pending = start_dispatch(event, recipients)
    try:
        # Audit row is written on this thread while the sends run.
        services.record_audit(
            entity,
            changed_by=PAYMENT_ACTOR,
            notes=f'Payment of {format_amount(amount, entity.currency)} received ({reference})',
        )
    finally:
        report = pending.wait()
    return report


def _payer_phone(phone, reference):
    """The checkout phone in E.164, or '' when it is missing or unusable."""
    if not phone:
        return ''
    try:
        return normalize_phone(phone)
    except InvalidPhoneNumberError:
        logger.warning('Ignoring invalid payer phone %r for payment %s', phone, reference)
        return ''
