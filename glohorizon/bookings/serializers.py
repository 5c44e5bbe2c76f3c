from decimal import Decimal

from rest_framework import serializers

from .models import (
    BookingRequest,
    BookingStatusHistory,
    QuoteRequest,
    QuoteStatusHistory,
    ServiceType,
    Urgency,
)


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------

class TravelRequestSubmitSerializer(serializers.Serializer):
    """Input for a new booking or quote. Contact validation happens in services."""

    service_type = serializers.ChoiceField(choices=ServiceType.choices)
    urgency = serializers.ChoiceField(choices=Urgency.choices, default=Urgency.STANDARD)
    contact_name = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')
    contact_email = serializers.CharField(max_length=254)
    contact_phone = serializers.CharField(max_length=30)
    destination = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')
    travel_date = serializers.DateField(required=False, allow_null=True, default=None)
    special_requests = serializers.CharField(required=False, allow_blank=True, default='')
    service_details = serializers.DictField(required=False, default=dict)
    currency = serializers.CharField(max_length=3, required=False, allow_blank=True, default='')


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------

class BookingStatusHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = BookingStatusHistory
        fields = ['from_status', 'to_status', 'notes', 'changed_by', 'changed_at']


class QuoteStatusHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = QuoteStatusHistory
        fields = ['from_status', 'to_status', 'notes', 'changed_by', 'changed_at']


_REQUEST_FIELDS = [
    'id', 'reference_number', 'service_type', 'status', 'urgency',
    'contact_name', 'contact_email', 'contact_phone',
    'destination', 'travel_date', 'special_requests', 'service_details',
    'quoted_amount', 'currency', 'payment_link_url', 'paid_at',
    'created_at', 'updated_at',
]


class BookingRequestSerializer(serializers.ModelSerializer):
    status_history = BookingStatusHistorySerializer(many=True, read_only=True)

    class Meta:
        model = BookingRequest
        fields = _REQUEST_FIELDS + ['final_amount', 'completed_at', 'status_history']
        read_only_fields = fields


class QuoteRequestSerializer(serializers.ModelSerializer):
    status_history = QuoteStatusHistorySerializer(many=True, read_only=True)

    class Meta:
        model = QuoteRequest
        fields = _REQUEST_FIELDS + ['quote_provided_at', 'quote_expires_at', 'status_history']
        read_only_fields = fields


class AdminBookingRequestSerializer(BookingRequestSerializer):
    class Meta(BookingRequestSerializer.Meta):
        fields = BookingRequestSerializer.Meta.fields + ['admin_notes', 'user']
        read_only_fields = fields


class AdminQuoteRequestSerializer(QuoteRequestSerializer):
    class Meta(QuoteRequestSerializer.Meta):
        fields = QuoteRequestSerializer.Meta.fields + ['admin_notes', 'user']
        read_only_fields = fields


# ---------------------------------------------------------------------------
# Admin actions
# ---------------------------------------------------------------------------

class _AmountFields(serializers.Serializer):
    quoted_amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=0, required=False, allow_null=True,
    )
    final_amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=0, required=False, allow_null=True,
    )
    currency = serializers.CharField(max_length=3, required=False, allow_blank=True)


class StatusUpdateSerializer(_AmountFields):
    status = serializers.CharField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_status(self, value):
        instance = self.context['instance']
        if value == instance.status:
            return value
        allowed = sorted(str(s) for s in instance.workflow.allowed_targets(instance.status))
        if value not in allowed:
            raise serializers.ValidationError(
                f'Cannot transition from {instance.status} to {value}. '
                f'Valid transitions: {allowed}'
            )
        return value


class PricingUpdateSerializer(_AmountFields):
    reason = serializers.CharField(required=False, allow_blank=True, default='')

    def validate(self, data):
        if data.get('quoted_amount') is None and data.get('final_amount') is None and not data.get('currency'):
            raise serializers.ValidationError('Supply quoted_amount, final_amount or currency.')
        return data


class NoteSerializer(serializers.Serializer):
    note = serializers.CharField(max_length=2000)


class ProvideQuoteSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'))
    currency = serializers.CharField(max_length=3, required=False, allow_blank=True, default='')
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    expires_in_hours = serializers.IntegerField(required=False, min_value=1, max_value=24 * 30)
