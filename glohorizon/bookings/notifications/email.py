import logging

import resend
from django.conf import settings
from resend.exceptions import (
    InvalidApiKeyError,
    MissingApiKeyError,
    MissingRequiredFieldsError,
    ValidationError,
)

from bookings.exceptions import NotificationDeliveryError, TransientUpstreamError

from .base import ChannelAdapter

logger = logging.getLogger(__name__)

# Known-permanent Resend errors; anything else (rate limit, 5xx, network) is transient.
_PERMANENT = (ValidationError, MissingRequiredFieldsError, MissingApiKeyError, InvalidApiKeyError)


class ResendEmailAdapter(ChannelAdapter):
    """Email via the Resend API."""

    name = 'email'

    def is_enabled(self):
        return bool(getattr(settings, 'RESEND_API_KEY', None))

    def send(self, target, message):
        if message.html:
            return self.send_email(target, message.subject, message.html, is_html=True)
        return self.send_email(target, message.subject, message.text, is_html=False)

    def send_email(self, to, subject, body, is_html=True):
        resend.api_key = settings.RESEND_API_KEY
        params = {
            'from': settings.RESEND_FROM_EMAIL,
            'to': [to],
            'subject': subject,
        }
        params['html' if is_html else 'text'] = body

        try:
            response = resend.Emails.send(params)
        except _PERMANENT as exc:
            raise NotificationDeliveryError(f'Resend rejected email to {to}: {exc}') from exc
        except Exception as exc:
            raise TransientUpstreamError(f'Resend failed for {to}: {exc}') from exc

        message_id = response.get('id', '') if isinstance(response, dict) else ''
        logger.info('Email "%s" sent to %s (%s)', subject, to, message_id)
        return message_id
