from django.contrib import admin

from .models import ProcessedPayment


@admin.register(ProcessedPayment)
class ProcessedPaymentAdmin(admin.ModelAdmin):
    list_display = ['reference', 'amount', 'source', 'processed_at']
    search_fields = ['reference']
    readonly_fields = ['reference', 'amount', 'source', 'processed_at']
