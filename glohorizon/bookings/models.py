from django.conf import settings
from django.db import models
from django.utils import timezone

from .workflow import StatusWorkflow


class ServiceType(models.TextChoices):
    FLIGHT = 'FLIGHT', 'Flight'
    HOTEL = 'HOTEL', 'Hotel'
    TOUR = 'TOUR', 'Tour'
    VISA = 'VISA', 'Visa'
    COMPLETE_PACKAGE = 'COMPLETE_PACKAGE', 'Complete Package'


class Urgency(models.TextChoices):
    STANDARD = 'STANDARD', 'Standard'
    URGENT = 'URGENT', 'Urgent'
    EMERGENCY = 'EMERGENCY', 'Emergency'


class TravelRequest(models.Model):
    """Fields shared by bookings and quotes.

    Subclasses provide ``Status``, ``workflow``, ``KIND`` (used in messages and
    history notes), ``REFERENCE_PREFIX`` and ``STATUS_TIMESTAMPS`` (status ->
    the datetime field stamped when that status is entered).
    """

    KIND = ''
    REFERENCE_PREFIX = ''
    STATUS_TIMESTAMPS = {}

    reference_number = models.CharField(max_length=50, unique=True, editable=False)
    service_type = models.CharField(max_length=20, choices=ServiceType.choices)
    urgency = models.CharField(
        max_length=10, choices=Urgency.choices, default=Urgency.STANDARD,
    )
    contact_name = models.CharField(max_length=200, blank=True)
    contact_email = models.EmailField()
    contact_phone = models.CharField(max_length=20)
    destination = models.CharField(max_length=200, blank=True)
    travel_date = models.DateField(null=True, blank=True)
    special_requests = models.TextField(blank=True)
    service_details = models.JSONField(
        default=dict, blank=True,
        help_text='Flight/hotel/tour/visa/package details as submitted',
    )
    quoted_amount = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True,
    )
    currency = models.CharField(max_length=3, default='GHS')
    payment_link_url = models.URLField(max_length=500, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    admin_notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
        ordering = ['-created_at']

    def __str__(self):
        return f'{self.reference_number} ({self.status})'

    @property
    def customer_name(self):
        return self.contact_name or 'Valued Customer'

    @property
    def payable_amount(self):
        return self.quoted_amount


class BookingRequest(TravelRequest):
    class Status(models.TextChoices):
        SUBMITTED = 'SUBMITTED', 'Submitted'
        UNDER_REVIEW = 'UNDER_REVIEW', 'Under Review'
        QUOTE_PROVIDED = 'QUOTE_PROVIDED', 'Quote Provided'
        PAYMENT_PENDING = 'PAYMENT_PENDING', 'Payment Pending'
        PROCESSING = 'PROCESSING', 'Processing'
        CONFIRMED = 'CONFIRMED', 'Confirmed'
        COMPLETED = 'COMPLETED', 'Completed'
        CANCELLED = 'CANCELLED', 'Cancelled'

    # CANCELLED is added to every non-terminal status by the workflow.
    VALID_TRANSITIONS = {
        'SUBMITTED': ['UNDER_REVIEW'],
        'UNDER_REVIEW': ['QUOTE_PROVIDED'],
        'QUOTE_PROVIDED': ['PAYMENT_PENDING'],
        'PAYMENT_PENDING': ['PROCESSING', 'QUOTE_PROVIDED'],
        'PROCESSING': ['CONFIRMED'],
        'CONFIRMED': ['COMPLETED'],
    }

    TERMINAL_STATUSES = {'COMPLETED', 'CANCELLED'}

    workflow = StatusWorkflow(
        'Booking',
        Status,
        initial=Status.SUBMITTED,
        transitions=VALID_TRANSITIONS,
        terminal=TERMINAL_STATUSES,
        cancelled=Status.CANCELLED,
        awaiting_payment={Status.PAYMENT_PENDING},
        paid=Status.PROCESSING,
    )

    KIND = 'booking'
    REFERENCE_PREFIX = ''
    STATUS_TIMESTAMPS = {
        'PROCESSING': 'paid_at',
        'COMPLETED': 'completed_at',
    }

    status = models.CharField(
        max_length=25, choices=Status.choices, default=Status.SUBMITTED,
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL,
        null=True, blank=True, related_name='bookings',
    )
    final_amount = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True,
    )
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta(TravelRequest.Meta):
        indexes = [
            models.Index(fields=['status', 'created_at'], name='booking_status_created_idx'),
            models.Index(fields=['user', 'created_at'], name='booking_user_created_idx'),
        ]

    @property
    def payable_amount(self):
        return self.final_amount if self.final_amount is not None else self.quoted_amount


class QuoteRequest(TravelRequest):
    class Status(models.TextChoices):
        SUBMITTED = 'SUBMITTED', 'Submitted'
        UNDER_REVIEW = 'UNDER_REVIEW', 'Under Review'
        QUOTE_PROVIDED = 'QUOTE_PROVIDED', 'Quote Provided'
        PAYMENT_PENDING = 'PAYMENT_PENDING', 'Payment Pending'
        PAID = 'PAID', 'Paid'
        BOOKING_CONFIRMED = 'BOOKING_CONFIRMED', 'Booking Confirmed'
        EXPIRED = 'EXPIRED', 'Expired'
        CANCELLED = 'CANCELLED', 'Cancelled'

    # Customers may pay straight from the emailed link, hence QUOTE_PROVIDED -> PAID.
    VALID_TRANSITIONS = {
        'SUBMITTED': ['UNDER_REVIEW', 'EXPIRED'],
        'UNDER_REVIEW': ['QUOTE_PROVIDED', 'EXPIRED'],
        'QUOTE_PROVIDED': ['PAYMENT_PENDING', 'PAID', 'EXPIRED'],
        'PAYMENT_PENDING': ['PAID', 'EXPIRED'],
        'PAID': ['BOOKING_CONFIRMED'],
    }

    TERMINAL_STATUSES = {'BOOKING_CONFIRMED', 'EXPIRED', 'CANCELLED'}

    workflow = StatusWorkflow(
        'Quote',
        Status,
        initial=Status.SUBMITTED,
        transitions=VALID_TRANSITIONS,
        terminal=TERMINAL_STATUSES,
        cancelled=Status.CANCELLED,
        awaiting_payment={Status.QUOTE_PROVIDED, Status.PAYMENT_PENDING},
        paid=Status.PAID,
    )

    KIND = 'quote'
    REFERENCE_PREFIX = 'Q'
    STATUS_TIMESTAMPS = {
        'QUOTE_PROVIDED': 'quote_provided_at',
        'PAID': 'paid_at',
    }

    status = models.CharField(
        max_length=25, choices=Status.choices, default=Status.SUBMITTED,
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL,
        null=True, blank=True, related_name='quotes',
    )
    quote_provided_at = models.DateTimeField(null=True, blank=True)
    quote_expires_at = models.DateTimeField(null=True, blank=True)

    class Meta(TravelRequest.Meta):
        indexes = [
            models.Index(fields=['status', 'created_at'], name='quote_status_created_idx'),
            models.Index(fields=['status', 'quote_expires_at'], name='quote_status_expires_idx'),
        ]


class StatusHistory(models.Model):
    """One row per status mutation. Rows are never updated or deleted.

    Pricing changes and admin notes are recorded as rows whose
    ``from_status`` equals ``to_status``.
    """

    from_status = models.CharField(max_length=25)
    to_status = models.CharField(max_length=25)
    notes = models.TextField(blank=True)
    changed_by = models.CharField(max_length=100)
    changed_at = models.DateTimeField(default=timezone.now)

    class Meta:
        abstract = True
        ordering = ['changed_at', 'id']

    def __str__(self):
        return f'{self.from_status} -> {self.to_status} by {self.changed_by}'

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError('Status history rows are append-only')
        super().save(*args, **kwargs)


class BookingStatusHistory(StatusHistory):
    booking = models.ForeignKey(
        BookingRequest, on_delete=models.CASCADE, related_name='status_history',
    )

    class Meta(StatusHistory.Meta):
        verbose_name_plural = 'booking status history'


class QuoteStatusHistory(StatusHistory):
    quote = models.ForeignKey(
        QuoteRequest, on_delete=models.CASCADE, related_name='status_history',
    )

    class Meta(StatusHistory.Meta):
        verbose_name_plural = 'quote status history'
