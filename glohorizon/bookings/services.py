import logging
import re
from datetime import timedelta
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email
from django.db import IntegrityError, transaction
from django.utils import timezone

from . import ledger
from .exceptions import (
    InvalidPhoneNumberError,
    InvalidTransitionError,
    RequestNotFoundError,
    RequestValidationError,
)
from .models import BookingRequest, QuoteRequest, ServiceType, Urgency
from .notifications.messages import format_amount
from .notifications.phone import normalize_phone
from .references import generate_reference_number

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = ledger.SYSTEM_ACTOR
REFERENCE_ATTEMPTS = 5
_CURRENCY_RE = re.compile(r'^[A-Z]{3}$')


def actor_name(user):
    """Name recorded in ``changed_by`` for a request user (or the system)."""
    if user is None or not getattr(user, 'is_authenticated', False):
        return SYSTEM_ACTOR
    return user.display_name


def notify_async(entity, event_type, **extra):
    """Queue a fan-out for after the surrounding transaction commits.

    A rolled-back mutation never notifies anyone.
    """
    from .notifications.tasks import dispatch_request_notification

    kind, request_id = entity.KIND, entity.pk
    transaction.on_commit(
        lambda: dispatch_request_notification.delay(kind, request_id, event_type, extra)
    )


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

def get_by_reference(model, reference):
    try:
        return model.objects.get(reference_number=reference)
    except model.DoesNotExist:
        raise RequestNotFoundError(reference)


def find_by_reference(reference):
    """Booking or quote carrying ``reference``; None if neither exists."""
    for model in (BookingRequest, QuoteRequest):
        entity = model.objects.filter(reference_number=reference).first()
        if entity is not None:
            return entity
    return None


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------

def _validate_contact(contact_email, contact_phone):
    errors = {}
    email = (contact_email or '').strip()
    phone = ''
    if not email:
        errors['contact_email'] = ['Contact email is required.']
    else:
        try:
            validate_email(email)
        except DjangoValidationError:
            errors['contact_email'] = ['Enter a valid email address.']

    if not (contact_phone or '').strip():
        errors['contact_phone'] = ['Contact phone is required.']
    else:
        try:
            phone = normalize_phone(contact_phone)
        except InvalidPhoneNumberError:
            errors['contact_phone'] = ['Enter a valid phone number.']

    if errors:
        raise RequestValidationError(errors)
    return email, phone


def submit_request(
    model,
    *,
    service_type,
    contact_email,
    contact_phone,
    contact_name='',
    urgency=Urgency.STANDARD,
    destination='',
    travel_date=None,
    special_requests='',
    service_details=None,
    currency=None,
    user=None,
):
    """Create a booking or quote in its initial status with its first history row."""
    if service_type not in ServiceType.values:
        raise RequestValidationError({'service_type': [f'Unknown service type: {service_type}']})
    if urgency not in Urgency.values:
        raise RequestValidationError({'urgency': [f'Unknown urgency: {urgency}']})
    email, phone = _validate_contact(contact_email, contact_phone)
    currency = _clean_currency(currency or settings.DEFAULT_CURRENCY)
    if not contact_name and user is not None and user.is_authenticated:
        contact_name = user.get_full_name()

    initial = model.workflow.initial
    service_label = ServiceType(service_type).label
    for attempt in range(1, REFERENCE_ATTEMPTS + 1):
        reference = generate_reference_number(model.REFERENCE_PREFIX, service_type)
        try:
            with transaction.atomic():
                entity = model.objects.create(
                    reference_number=reference,
                    status=initial,
                    service_type=service_type,
                    urgency=urgency,
                    contact_name=contact_name,
                    contact_email=email,
                    contact_phone=phone,
                    destination=destination,
                    travel_date=travel_date,
                    special_requests=special_requests,
                    service_details=service_details or {},
                    currency=currency,
                    user=user if user is not None and user.is_authenticated else None,
                )
                ledger.record_transition(
                    entity, initial, initial,
                    changed_by=SYSTEM_ACTOR,
                    notes=f'{service_label} {model.KIND} request submitted',
                )
                notify_async(entity, 'request.submitted')
        except IntegrityError:
            if attempt == REFERENCE_ATTEMPTS:
                raise
            logger.warning('Reference %s already taken, regenerating', reference)
            continue
        break

    logger.info('%s %s submitted (%s)', model.KIND.title(), entity.reference_number, service_type)
    return entity


# ---------------------------------------------------------------------------
# Status transitions
# ---------------------------------------------------------------------------

def _lock(entity):
    return type(entity).objects.select_for_update().get(pk=entity.pk)


def _apply_transition(locked, new_status, changed_by, notes=''):
    """Write status + history on a row already locked by the caller."""
    workflow = type(locked).workflow
    old_status = locked.status
    workflow.validate_transition(old_status, new_status)

    locked.status = new_status
    update_fields = ['status', 'updated_at']
    stamp_field = type(locked).STATUS_TIMESTAMPS.get(new_status)
    if stamp_field:
        setattr(locked, stamp_field, timezone.now())
        update_fields.append(stamp_field)
    locked.save(update_fields=update_fields)
    ledger.record_transition(locked, old_status, new_status, changed_by=changed_by, notes=notes)
    logger.info(
        '%s %s: %s -> %s by %s',
        type(locked).KIND.title(), locked.reference_number, old_status, new_status, changed_by,
    )


def transition_status(entity, new_status, *, changed_by=SYSTEM_ACTOR, notes='', notify=True):
    """Move ``entity`` to ``new_status``.

    Raises InvalidTransitionError when the workflow does not allow the move.
    The caller's instance is refreshed afterwards.
    """
    with transaction.atomic():
        locked = _lock(entity)
        _apply_transition(locked, new_status, changed_by, notes)
        if notify:
            notify_async(locked, 'status.changed', notes=notes)
    entity.refresh_from_db()
    return entity


# ---------------------------------------------------------------------------
# Pricing and notes
# ---------------------------------------------------------------------------

def _to_amount(value, field_name):
    try:
        amount = Decimal(str(value)).quantize(Decimal('0.01'))
    except (InvalidOperation, TypeError, ValueError):
        raise RequestValidationError({field_name: ['Enter a valid amount.']})
    if amount < 0:
        raise RequestValidationError({field_name: ['Amount cannot be negative.']})
    return amount


def _clean_currency(currency):
    currency = (currency or '').strip().upper()
    if not _CURRENCY_RE.match(currency):
        raise RequestValidationError({'currency': ['Currency must be a 3-letter ISO code.']})
    return currency


def _fmt(amount, currency):
    return 'none' if amount is None else format_amount(amount, currency)


def _apply_pricing(locked, quoted_amount=None, final_amount=None, currency=None):
    """Set prices on a locked row. Returns (change descriptions, changed fields)."""
    if final_amount is not None and not hasattr(locked, 'final_amount'):
        # Quotes carry a single price.
        if quoted_amount is None:
            quoted_amount = final_amount
        final_amount = None

    old_currency = locked.currency
    new_currency = _clean_currency(currency) if currency else old_currency

    changes, fields = [], []
    for field_name, label, value in (
        ('quoted_amount', 'Quoted', quoted_amount),
        ('final_amount', 'Final', final_amount),
    ):
        if value is None:
            continue
        value = _to_amount(value, field_name)
        old = getattr(locked, field_name)
        setattr(locked, field_name, value)
        fields.append(field_name)
        changes.append(f'{label}: {_fmt(old, old_currency)} -> {_fmt(value, new_currency)}')

    if new_currency != old_currency:
        locked.currency = new_currency
        fields.append('currency')
        changes.append(f'Currency: {old_currency} -> {new_currency}')
    return changes, fields


def update_request(
    entity,
    *,
    changed_by,
    status=None,
    quoted_amount=None,
    final_amount=None,
    currency=None,
    notes='',
    notify=True,
):
    """Admin update: optional status change, pricing and notes, as ONE history row."""
    notes = (notes or '').strip()
    with transaction.atomic():
        locked = _lock(entity)
        changes, fields = _apply_pricing(locked, quoted_amount, final_amount, currency)
        pricing_note = f"Pricing updated: {', '.join(changes)}" if changes else ''
        status_change = status is not None and status != locked.status

        if not (status_change or changes or notes):
            raise RequestValidationError('Nothing to update.')

        if fields:
            locked.save(update_fields=fields + ['updated_at'])

        if status_change:
            combined = '. '.join(part for part in (notes, pricing_note) if part)
            _apply_transition(locked, status, changed_by, combined)
            if notify:
                notify_async(locked, 'status.changed', notes=notes)
        else:
            if pricing_note:
                combined = f'{pricing_note}. Reason: {notes}' if notes else pricing_note
            else:
                combined = notes
            ledger.record_transition(
                locked, locked.status, locked.status, changed_by=changed_by, notes=combined,
            )
    entity.refresh_from_db()
    return entity


def update_pricing(entity, *, changed_by, quoted_amount=None, final_amount=None, currency=None, reason=''):
    """Change prices without changing status; recorded as a same-status history row."""
    if quoted_amount is None and final_amount is None and not currency:
        raise RequestValidationError('Supply an amount or currency to update.')
    return update_request(
        entity,
        changed_by=changed_by,
        quoted_amount=quoted_amount,
        final_amount=final_amount,
        currency=currency,
        notes=reason,
    )


def record_audit(entity, *, changed_by, notes):
    """Same-status history row for events that do not move the status."""
    with transaction.atomic():
        locked = _lock(entity)
        return ledger.record_transition(
            locked, locked.status, locked.status, changed_by=changed_by, notes=notes,
        )


def append_note(entity, *, author, note):
    """Append ``[timestamp UTC] author: note`` to admin_notes and log it in history."""
    note = (note or '').strip()
    if not note:
        raise RequestValidationError({'note': ['Note cannot be empty.']})

    with transaction.atomic():
        locked = _lock(entity)
        line = f'[{timezone.now():%Y-%m-%d %H:%M:%S} UTC] {author}: {note}'
        locked.admin_notes = f'{locked.admin_notes}\n{line}' if locked.admin_notes else line
        locked.save(update_fields=['admin_notes', 'updated_at'])
        ledger.record_transition(
            locked, locked.status, locked.status,
            changed_by=author, notes=f'Admin note added: {note}',
        )
    entity.refresh_from_db()
    return entity


# ---------------------------------------------------------------------------
# Quotes and payment links
# ---------------------------------------------------------------------------

def _payment_client(client):
    if client is not None:
        return client
    from payments.paystack import PaystackClient
    return PaystackClient()


def provide_quote(
    quote,
    *,
    amount,
    changed_by,
    currency=None,
    notes='',
    expires_in_hours=None,
    paystack=None,
):
    """Price a quote, attach a Paystack link and move it to QUOTE_PROVIDED."""
    Status = QuoteRequest.Status
    if quote.status not in (Status.SUBMITTED, Status.UNDER_REVIEW):
        raise InvalidTransitionError('Quote', quote.status, Status.QUOTE_PROVIDED)
    amount = _to_amount(amount, 'amount')
    if amount <= 0:
        raise RequestValidationError({'amount': ['Quote amount must be greater than zero.']})
    currency = _clean_currency(currency or quote.currency)
    hours = expires_in_hours or settings.QUOTE_VALIDITY_HOURS

    # Network call stays outside the row lock.
    link = _payment_client(paystack).create_payment_link(
        quote.reference_number, amount, quote.contact_email, currency,
    )

    with transaction.atomic():
        locked = _lock(quote)
        if locked.status == Status.SUBMITTED:
            _apply_transition(locked, Status.UNDER_REVIEW, changed_by, 'Quote under review')
        locked.quoted_amount = amount
        locked.currency = currency
        locked.payment_link_url = link
        locked.quote_expires_at = timezone.now() + timedelta(hours=hours)
        locked.save(update_fields=[
            'quoted_amount', 'currency', 'payment_link_url', 'quote_expires_at', 'updated_at',
        ])
        summary = f'Quote provided: {format_amount(amount, currency)}'
        _apply_transition(
            locked, Status.QUOTE_PROVIDED, changed_by,
            f'{summary}. {notes}' if notes else summary,
        )
        notify_async(
            locked, 'quote.provided',
            amount=str(amount),
            currency=currency,
            payment_link=link,
            expires_at=f'{locked.quote_expires_at:%Y-%m-%d %H:%M} UTC',
            notes=notes,
        )
    quote.refresh_from_db()
    return quote


def request_payment(booking, *, changed_by, paystack=None):
    """Issue a Paystack link for a priced booking and move it to PAYMENT_PENDING."""
    Status = BookingRequest.Status
    if not booking.workflow.can_transition(booking.status, Status.PAYMENT_PENDING):
        raise InvalidTransitionError('Booking', booking.status, Status.PAYMENT_PENDING)
    amount = booking.payable_amount
    if amount is None or amount <= 0:
        raise RequestValidationError('Set a price on the booking before requesting payment.')

    link = _payment_client(paystack).create_payment_link(
        booking.reference_number, amount, booking.contact_email, booking.currency,
    )

    with transaction.atomic():
        locked = _lock(booking)
        locked.payment_link_url = link
        locked.save(update_fields=['payment_link_url', 'updated_at'])
        _apply_transition(
            locked, Status.PAYMENT_PENDING, changed_by,
            f'Payment link issued for {format_amount(amount, locked.currency)}',
        )
        notify_async(
            locked, 'quote.provided',
            amount=str(amount),
            currency=locked.currency,
            payment_link=link,
        )
    booking.refresh_from_db()
    return booking


def expire_stale_quotes(now=None):
    """Expire unpaid quotes whose validity window has passed. Returns the count."""
    now = now or timezone.now()
    Status = QuoteRequest.Status
    open_statuses = [Status.QUOTE_PROVIDED, Status.PAYMENT_PENDING]
    stale_ids = list(
        QuoteRequest.objects.filter(
            status__in=open_statuses, quote_expires_at__lt=now,
        ).values_list('id', flat=True)
    )

    expired = 0
    for quote_id in stale_ids:
        with transaction.atomic():
            locked = QuoteRequest.objects.select_for_update().get(pk=quote_id)
            # Paid or re-priced while we were iterating
            if locked.status not in open_statuses or locked.quote_expires_at >= now:
                continue
            _apply_transition(locked, Status.EXPIRED, SYSTEM_ACTOR, 'Quote expired without payment')
            notify_async(locked, 'status.changed')
            expired += 1

    if expired:
        logger.info('Expired %d stale quotes', expired)
    return expired
