from django.contrib import admin

from .models import BookingRequest, BookingStatusHistory, QuoteRequest, QuoteStatusHistory


class _HistoryInline(admin.TabularInline):
    extra = 0
    can_delete = False
    fields = ['from_status', 'to_status', 'changed_by', 'notes', 'changed_at']
    readonly_fields = fields
    ordering = ['changed_at', 'id']

    def has_add_permission(self, request, obj=None):
        # Rows are written by the services layer only
        return False


class BookingStatusHistoryInline(_HistoryInline):
    model = BookingStatusHistory


class QuoteStatusHistoryInline(_HistoryInline):
    model = QuoteStatusHistory


class _TravelRequestAdmin(admin.ModelAdmin):
    list_filter = ['status', 'service_type', 'urgency']
    search_fields = ['reference_number', 'contact_email', 'contact_phone', 'contact_name']
    # Status moves go through the API so they land in the history ledger.
    readonly_fields = ['reference_number', 'status', 'paid_at', 'created_at', 'updated_at']


@admin.register(BookingRequest)
class BookingRequestAdmin(_TravelRequestAdmin):
    list_display = ['reference_number', 'service_type', 'status', 'urgency', 'contact_email', 'created_at']
    readonly_fields = _TravelRequestAdmin.readonly_fields + ['completed_at']
    inlines = [BookingStatusHistoryInline]


@admin.register(QuoteRequest)
class QuoteRequestAdmin(_TravelRequestAdmin):
    list_display = [
        'reference_number', 'service_type', 'status', 'quoted_amount', 'currency',
        'quote_expires_at', 'created_at',
    ]
    readonly_fields = _TravelRequestAdmin.readonly_fields + ['quote_provided_at']
    inlines = [QuoteStatusHistoryInline]
