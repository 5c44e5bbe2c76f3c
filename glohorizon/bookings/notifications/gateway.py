import logging

from bookings.exceptions import NotificationDeliveryError, RequestValidationError, TransientUpstreamError

from .base import DeliveryResult, RenderedMessage
from .email import ResendEmailAdapter
from .sms import MnotifySmsAdapter

logger = logging.getLogger(__name__)


class NotificationGateway:
    """Single entry point for outbound SMS and email.

    Every send returns a DeliveryResult; provider errors are logged and
    folded into the result instead of propagating to the caller.
    """

    def __init__(self, sms=None, email=None):
        self.sms = sms or MnotifySmsAdapter()
        self.email = email or ResendEmailAdapter()

    def send_sms(self, phone, text, audience='customer') -> DeliveryResult:
        return self._deliver(self.sms, phone, RenderedMessage(subject='', text=text), audience)

    def send_email(self, to, subject, body, is_html=True, audience='customer') -> DeliveryResult:
        message = RenderedMessage(
            subject=subject,
            text='' if is_html else body,
            html=body if is_html else '',
        )
        return self._deliver(self.email, to, message, audience)

    def broadcast_sms(self, phones, text, audience='admin'):
        return [self.send_sms(phone, text, audience=audience) for phone in phones]

    def broadcast_email(self, addresses, subject, body, is_html=True, audience='admin'):
        return [
            self.send_email(address, subject, body, is_html=is_html, audience=audience)
            for address in addresses
        ]

    def deliver(self, channel_name, target, message, audience='customer') -> DeliveryResult:
        """Send an already-rendered message on the named channel ("sms" or "email")."""
        channel = self.sms if channel_name == self.sms.name else self.email
        return self._deliver(channel, target, message, audience)

    def _deliver(self, channel, target, message, audience):
        if not target:
            return DeliveryResult(channel.name, '', False, audience, 'No recipient address')
        if not channel.is_enabled():
            logger.warning('%s channel not configured; skipping %s', channel.name, target)
            return DeliveryResult(channel.name, target, False, audience, f'{channel.name} channel not configured')
        try:
            channel.send(target, message)
        except (NotificationDeliveryError, TransientUpstreamError, RequestValidationError) as exc:
            logger.warning('%s delivery to %s failed: %s', channel.name, target, exc)
            return DeliveryResult(channel.name, target, False, audience, str(exc)[:500])
        except Exception as exc:
            logger.exception('%s delivery to %s raised unexpectedly', channel.name, target)
            return DeliveryResult(channel.name, target, False, audience, str(exc)[:500])
        return DeliveryResult(channel.name, target, True, audience)
