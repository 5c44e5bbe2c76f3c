from django.core.exceptions import ValidationError


class RequestValidationError(ValidationError):
    """Input or state rejected before anything was written."""


class InvalidTransitionError(RequestValidationError):
    def __init__(self, entity_label, from_status, to_status):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f'{entity_label} cannot move from {from_status} to {to_status}.',
            code='invalid_transition',
        )


class InvalidPhoneNumberError(RequestValidationError):
    def __init__(self, phone):
        self.phone = phone
        super().__init__(f'Invalid phone number: {phone!r}', code='invalid_phone')


class RequestNotFoundError(Exception):
    def __init__(self, reference):
        self.reference = reference
        super().__init__(f'No booking or quote with reference {reference}')


class DuplicateProcessingError(Exception):
    """A payment reference was already claimed by another worker."""

    def __init__(self, reference):
        self.reference = reference
        super().__init__(f'Payment {reference} is already being processed')


class NotificationDeliveryError(Exception):
    """The provider refused a message. Retrying will not help."""


class TransientUpstreamError(Exception):
    """Timeout, connection failure or 5xx from a provider."""


class PaymentGatewayError(Exception):
    """Paystack answered but rejected the call."""
