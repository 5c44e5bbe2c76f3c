import re

from django.conf import settings

from bookings.exceptions import InvalidPhoneNumberError

_SEPARATORS = re.compile(r'[\s\-().]')
_E164 = re.compile(r'^\+[1-9]\d{7,14}$')


def normalize_phone(phone, country_code=None):
    """Rewrite a customer-entered number to E.164 (``+233241234567``).

    Local numbers with a trunk ``0`` and bare subscriber numbers get the
    country code. When that is the default country code, the subscriber part
    must be exactly ``PHONE_SUBSCRIBER_DIGITS`` long (9 for Ghana), so short
    fragments such as ``12345`` are rejected rather than padded into a
    plausible-looking number. Raises InvalidPhoneNumberError when the result
    is not a plausible E.164 number.
    """
    default_code = settings.DEFAULT_COUNTRY_CODE
    country_code = country_code or default_code
    cleaned = _SEPARATORS.sub('', phone or '')

    subscriber = None
    if cleaned.startswith('+'):
        candidate = cleaned
    elif cleaned.startswith('00'):
        candidate = '+' + cleaned[2:]
    elif cleaned.startswith('0'):
        subscriber = cleaned[1:]
    elif cleaned.startswith(country_code) and len(cleaned) > len(country_code) + 7:
        candidate = '+' + cleaned
    else:
        subscriber = cleaned

    if subscriber is not None:
        if country_code == default_code and len(subscriber) != settings.PHONE_SUBSCRIBER_DIGITS:
            raise InvalidPhoneNumberError(phone)
        candidate = f'+{country_code}{subscriber}'

    if not _E164.match(candidate):
        raise InvalidPhoneNumberError(phone)
    return candidate
