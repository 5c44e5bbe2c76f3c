"""Paystack webhook event routing."""
import logging

from bookings.services import find_by_reference, notify_async, transition_status

from .paystack import from_minor_units

logger = logging.getLogger(__name__)

WEBHOOK_ACTOR = 'Paystack Webhook'


def handle_paystack_event(event_type, data):
    reference = data.get('reference')
    if event_type == 'charge.success':
        handle_charge_success(reference, data)
    elif event_type == 'charge.failed':
        handle_charge_failed(reference)
    else:
        logger.info('Ignoring Paystack event %s for %s', event_type, reference)


def handle_charge_success(reference, data):
    from .tasks import process_payment_completed_task

    amount = data.get('amount')
    customer = data.get('customer') or {}
    process_payment_completed_task.delay(
        reference,
        None if amount is None else str(from_minor_units(amount)),
        customer.get('phone') or '',
        'paystack_webhook',
    )


def handle_charge_failed(reference):
    entity = find_by_reference(reference)
    if entity is None:
        logger.warning('charge.failed for unknown reference %s', reference)
        return
    if entity.status == entity.Status.PAYMENT_PENDING:
        transition_status(
            entity, entity.workflow.cancelled,
            changed_by=WEBHOOK_ACTOR,
            notes='Payment failed via Paystack webhook',
        )
        outcome = f'{entity.KIND.title()} cancelled.'
    else:
        logger.info(
            'charge.failed for %s ignored; status is %s', reference, entity.status,
        )
        outcome = f'Status left at {entity.get_status_display()}.'
    notify_async(
        entity, 'admin.alert',
        subject=f'Payment Failed - {reference}',
        message=f'Paystack reported a failed charge. {outcome}',
    )
