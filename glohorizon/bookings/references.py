import secrets

from django.conf import settings
from django.utils import timezone

from .exceptions import RequestValidationError
from .models import ServiceType

SERVICE_CODES = {
    ServiceType.FLIGHT: 'FL',
    ServiceType.HOTEL: 'HT',
    ServiceType.TOUR: 'TR',
    ServiceType.VISA: 'VS',
    ServiceType.COMPLETE_PACKAGE: 'CP',
}

RANDOM_DIGITS = 12


def generate_reference_number(kind_prefix, service_type, now=None):
    """Build ``<kind><service><yymmddHHMMSSmmm><random>``.

    ``kind_prefix`` is '' for bookings and 'Q' for quotes, so a hotel quote
    starts with ``QHT``. The timestamp keeps references roughly sortable by
    creation time; the random tail separates references minted in the same
    millisecond.
    """
    try:
        code = SERVICE_CODES[service_type]
    except KeyError:
        raise RequestValidationError(f'Unknown service type: {service_type!r}')

    now = now or timezone.now()
    stamp = now.strftime('%y%m%d%H%M%S') + f'{now.microsecond // 1000:03d}'
    suffix = f'{secrets.randbelow(10 ** RANDOM_DIGITS):0{RANDOM_DIGITS}d}'

    reference = f'{kind_prefix}{code}{stamp}{suffix}'
    if len(reference) > settings.REFERENCE_NUMBER_MAX_LENGTH:
        raise ValueError(
            f'Reference {reference} exceeds {settings.REFERENCE_NUMBER_MAX_LENGTH} characters'
        )
    return reference
