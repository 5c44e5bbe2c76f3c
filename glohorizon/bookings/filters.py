import django_filters

from .models import BookingRequest, QuoteRequest, ServiceType, Urgency


class BookingRequestFilter(django_filters.FilterSet):
    status = django_filters.MultipleChoiceFilter(choices=BookingRequest.Status.choices)
    service_type = django_filters.ChoiceFilter(choices=ServiceType.choices)
    urgency = django_filters.ChoiceFilter(choices=Urgency.choices)
    created_after = django_filters.DateTimeFilter(field_name='created_at', lookup_expr='gte')
    created_before = django_filters.DateTimeFilter(field_name='created_at', lookup_expr='lte')

    class Meta:
        model = BookingRequest
        fields = ['status', 'service_type', 'urgency']


class QuoteRequestFilter(django_filters.FilterSet):
    status = django_filters.MultipleChoiceFilter(choices=QuoteRequest.Status.choices)
    service_type = django_filters.ChoiceFilter(choices=ServiceType.choices)
    urgency = django_filters.ChoiceFilter(choices=Urgency.choices)
    created_after = django_filters.DateTimeFilter(field_name='created_at', lookup_expr='gte')
    created_before = django_filters.DateTimeFilter(field_name='created_at', lookup_expr='lte')
    expires_before = django_filters.DateTimeFilter(field_name='quote_expires_at', lookup_expr='lte')

    class Meta:
        model = QuoteRequest
        fields = ['status', 'service_type', 'urgency']
