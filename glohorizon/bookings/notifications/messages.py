"""Message templates per event type and audience.

Every message carries the reference number. ``quote.provided`` also carries
the amount, currency and payment link taken from ``event.extra``.
"""
from decimal import Decimal, InvalidOperation
from html import escape as esc

from django.conf import settings

from .base import RenderedMessage

BRAND = 'Global Horizons Travel & Tour'
ADMIN_SMS_PREFIX = '[ADMIN ALERT]'
ADMIN_SMS_SUFFIX = '- Global Horizons Travel System'


def format_amount(amount, currency):
    if amount is None or amount == '':
        return f'unknown amount ({currency})'
    try:
        return f'{Decimal(str(amount)):,.2f} {currency}'
    except (InvalidOperation, TypeError, ValueError):
        return f'{amount} {currency}'


def _tracking_url(event):
    return f'{settings.FRONTEND_ORIGIN}/track/{event.kind}s/{event.reference_number}'


# ---------------------------------------------------------------------------
# Customer
# ---------------------------------------------------------------------------

def _customer_lines(event):
    """Return (subject, headline, detail lines, sms text, call-to-action)."""
    kind = event.kind
    ref = event.reference_number
    name = event.customer_name
    service = event.service_type
    extra = event.extra

    if event.event_type == 'request.submitted':
        return (
            f'{service} {kind.title()} Request Received - {ref}',
            f'We received your {service} {kind} request',
            [
                f'Reference: {ref}',
                f'Service: {service}',
                "Our team will review it and respond within 24 hours.",
            ],
            f'Hello {name}! Your {service} {kind} request ({ref}) has been received. '
            f"We'll respond within 24hrs. Thank you for choosing {BRAND}!",
            (_tracking_url(event), 'Track your request'),
        )

    if event.event_type == 'quote.provided':
        money = format_amount(extra.get('amount'), extra.get('currency', ''))
        link = extra.get('payment_link', '')
        lines = [
            f'Reference: {ref}',
            f'Quote Amount: {money}',
            f'Secure Payment Link: {link}',
        ]
        if extra.get('expires_at'):
            lines.append(f"Quote Expires: {extra['expires_at']}")
        if extra.get('notes'):
            lines.append(f"Notes: {extra['notes']}")
        return (
            f'{name}, your {service} quote is ready - {ref}',
            f'Your {service} quote is ready',
            lines,
            f'Hello {name}! Your quote {ref} is ready: {money}. Pay securely here: {link}',
            (link, 'Pay now') if link else None,
        )

    if event.event_type == 'payment.confirmed':
        money = format_amount(extra.get('amount'), extra.get('currency', ''))
        return (
            f'Payment Confirmed - {service} {kind.title()} {ref}',
            'Payment confirmed',
            [
                f'Reference: {ref}',
                f'Amount: {money}',
                f'Service: {service}',
                "We're now processing your request and will keep you updated.",
            ],
            f'Payment confirmed for your {service} {kind} {ref}. '
            "We're now processing your request. You'll receive updates via SMS and email.",
            (_tracking_url(event), 'Track your request'),
        )

    # status.changed and anything unrecognised
    lines = [f'Reference: {ref}', f'New status: {event.status}']
    if extra.get('notes'):
        lines.append(f"Notes: {extra['notes']}")
    return (
        f'Your {kind} {ref} is now {event.status}',
        f'Your {kind} status has changed',
        lines,
        f'Hello {name}! Your {kind} {ref} status: {event.status}. {BRAND} is here for you!',
        (_tracking_url(event), 'Track your request'),
    )


def render_customer_message(event) -> RenderedMessage:
    subject, headline, lines, sms_text, cta = _customer_lines(event)
    greeting = f'Dear {event.customer_name},'
    return RenderedMessage(
        subject=subject,
        text=sms_text,
        html=_build_email_html(headline, [greeting] + lines, cta),
    )


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------

def _admin_lines(event):
    ref = event.reference_number
    service = event.service_type
    kind = event.kind
    extra = event.extra
    urgency_flag = '' if event.urgency == 'Standard' else f'[{event.urgency.upper()}] '

    if event.event_type == 'admin.alert':
        return (
            extra.get('subject', f'Alert for {ref}'),
            [f'Reference: {ref}', extra.get('message', '')],
            f"{extra.get('message', '')} ({ref})",
        )

    if event.event_type == 'payment.confirmed':
        money = format_amount(extra.get('amount'), extra.get('currency', ''))
        return (
            f'Payment Received - {service} {kind.title()} {ref}',
            [
                f'Payment confirmed for {kind} {ref}',
                f'Customer: {event.customer_name}',
                f'Email: {event.customer_email}',
                f'Phone: {event.customer_phone}',
                f'Service: {service}',
                f'Amount: {money}',
                f'Urgency: {event.urgency}',
                f'Status: {event.status}',
            ],
            f'Payment of {money} received for {kind} {ref} from {event.customer_name}.',
        )

    return (
        f'{urgency_flag}New {service} {kind.title()} Request - {event.customer_name} | {ref}',
        [
            f'Reference: {ref}',
            f'Service: {service}',
            f'Customer: {event.customer_name}',
            f'Email: {event.customer_email}',
            f'Phone: {event.customer_phone}',
            f'Urgency: {event.urgency}',
            'Please review and respond within 24 hours.',
        ],
        f'{urgency_flag}New {service} {kind}: {event.customer_name} ({ref}). Urgency: {event.urgency}.',
    )


def render_admin_message(event) -> RenderedMessage:
    subject, lines, sms_text = _admin_lines(event)
    return RenderedMessage(
        subject=subject,
        text=f'{ADMIN_SMS_PREFIX} {sms_text} {ADMIN_SMS_SUFFIX}',
        html=_build_email_html(subject, lines, None),
    )


def render(event, audience) -> RenderedMessage:
    if audience == 'admin':
        return render_admin_message(event)
    return render_customer_message(event)


# ---------------------------------------------------------------------------
# HTML
# ---------------------------------------------------------------------------

def _build_email_html(title, lines, cta):
    body = '<br/>'.join(esc(line) for line in lines if line)
    button = ''
    if cta:
        url, label = cta
        button = f"""
      <a href="{esc(url)}"
         style="display: inline-block; background: #0b5394; color: #ffffff; text-decoration: none;
                padding: 12px 28px; border-radius: 6px; font-size: 15px; font-weight: 500;">
        {esc(label)}
      </a>"""

    return f"""
    <div style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; max-width: 560px; margin: 0 auto; padding: 40px 24px;">
      <h2 style="color: #0b5394; font-size: 20px; margin-bottom: 8px;">{esc(title)}</h2>
      <p style="color: #555; font-size: 15px; line-height: 1.6; margin-bottom: 20px;">
        {body}
      </p>{button}
      <hr style="border: none; border-top: 1px solid #eee; margin: 28px 0 16px;" />
      <p style="color: #aaa; font-size: 12px;">{esc(BRAND)}</p>
    </div>
    """
