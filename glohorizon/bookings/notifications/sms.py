import logging

import requests as http_requests
from django.conf import settings

from bookings.exceptions import NotificationDeliveryError, TransientUpstreamError

from .base import ChannelAdapter
from .phone import normalize_phone

logger = logging.getLogger(__name__)

MNOTIFY_SUCCESS_CODE = '1000'


class MnotifySmsAdapter(ChannelAdapter):
    """SMS via the mNotify quick-SMS API."""

    name = 'sms'

    def is_enabled(self):
        return bool(getattr(settings, 'MNOTIFY_API_KEY', None))

    def send(self, target, message):
        return self.send_text(target, message.text)

    def send_text(self, phone, text):
        """POST one SMS. Returns the provider's message id (may be empty)."""
        to = normalize_phone(phone)
        try:
            response = http_requests.post(
                settings.MNOTIFY_API_URL,
                json={
                    'key': settings.MNOTIFY_API_KEY,
                    'to': to,
                    'msg': text,
                    'sender_id': settings.MNOTIFY_SENDER_ID,
                },
                timeout=settings.NOTIFICATION_TIMEOUT_SECONDS,
            )
        except (http_requests.exceptions.ConnectionError, http_requests.exceptions.Timeout) as exc:
            raise TransientUpstreamError(f'mNotify unreachable: {exc}') from exc

        # Branch by HTTP status first
        status_code = response.status_code
        if status_code >= 500 or status_code == 429:
            raise TransientUpstreamError(f'mNotify server error {status_code}')
        if status_code >= 400:
            raise NotificationDeliveryError(f'mNotify client error {status_code}: {response.text[:200]}')

        # 2xx: the provider reports business errors in the body
        try:
            data = response.json()
        except ValueError:
            raise NotificationDeliveryError(f'mNotify returned non-JSON body: {response.text[:200]}')

        if str(data.get('code')) != MNOTIFY_SUCCESS_CODE:
            raise NotificationDeliveryError(
                f"mNotify rejected SMS to {to}: {data.get('message', 'Unknown error')}"
            )
        logger.info('SMS sent to %s (%s)', to, data.get('message_id', ''))
        return data.get('message_id', '')
