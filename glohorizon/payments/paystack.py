import hashlib
import hmac
import logging
from decimal import Decimal

import requests as http_requests
from django.conf import settings

from bookings.exceptions import PaymentGatewayError, TransientUpstreamError

logger = logging.getLogger(__name__)

# Paystack amounts are in the currency's minor unit (pesewas for GHS).
MINOR_UNITS = 100


def to_minor_units(amount):
    return int((Decimal(str(amount)) * MINOR_UNITS).quantize(Decimal('1')))


def from_minor_units(value):
    return (Decimal(str(value)) / MINOR_UNITS).quantize(Decimal('0.01'))


def verify_signature(raw_body, signature, secret=None):
    """Check ``X-Paystack-Signature`` (hex HMAC-SHA512 of the raw request body)."""
    secret = secret or settings.PAYSTACK_SECRET_KEY
    if not secret or not signature:
        return False
    expected = hmac.new(secret.encode(), raw_body, hashlib.sha512).hexdigest()
    return hmac.compare_digest(expected, signature)


class PaystackClient:
    def __init__(self, secret_key=None, base_url=None):
        self.secret_key = secret_key or settings.PAYSTACK_SECRET_KEY
        self.base_url = (base_url or settings.PAYSTACK_BASE_URL).rstrip('/')

    def _request(self, method, path, **kwargs):
        try:
            response = http_requests.request(
                method,
                f'{self.base_url}{path}',
                headers={'Authorization': f'Bearer {self.secret_key}'},
                timeout=settings.NOTIFICATION_TIMEOUT_SECONDS,
                **kwargs,
            )
        except (http_requests.exceptions.ConnectionError, http_requests.exceptions.Timeout) as exc:
            raise TransientUpstreamError(f'Paystack unreachable: {exc}') from exc

        if response.status_code >= 500 or response.status_code == 429:
            raise TransientUpstreamError(f'Paystack server error {response.status_code}')
        try:
            data = response.json()
        except ValueError:
            raise PaymentGatewayError(f'Paystack returned non-JSON body ({response.status_code})')
        if response.status_code >= 400 or not data.get('status'):
            raise PaymentGatewayError(data.get('message') or f'Paystack error {response.status_code}')
        return data.get('data') or {}

    def create_payment_link(self, reference, amount, email, currency=None):
        """Initialize a transaction keyed by our reference and return its checkout URL."""
        payload = {
            'reference': reference,
            'amount': to_minor_units(amount),
            'email': email,
            'currency': currency or settings.DEFAULT_CURRENCY,
            'channels': settings.PAYSTACK_CHANNELS,
        }
        if settings.PAYSTACK_CALLBACK_URL:
            payload['callback_url'] = settings.PAYSTACK_CALLBACK_URL

        data = self._request('POST', '/transaction/initialize', json=payload)
        url = data.get('authorization_url')
        if not url:
            raise PaymentGatewayError(f'Paystack did not return a checkout URL for {reference}')
        logger.info('Created Paystack payment link for %s', reference)
        return url

    def verify_transaction(self, reference):
        """Return Paystack's transaction record (``status``, ``amount``, ``currency``...)."""
        return self._request('GET', f'/transaction/verify/{reference}')
