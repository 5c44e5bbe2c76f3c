import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


def _request_fields():
    return [
        ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
        ('reference_number', models.CharField(editable=False, max_length=50, unique=True)),
        ('service_type', models.CharField(choices=[('FLIGHT', 'Flight'), ('HOTEL', 'Hotel'), ('TOUR', 'Tour'), ('VISA', 'Visa'), ('COMPLETE_PACKAGE', 'Complete Package')], max_length=20)),
        ('urgency', models.CharField(choices=[('STANDARD', 'Standard'), ('URGENT', 'Urgent'), ('EMERGENCY', 'Emergency')], default='STANDARD', max_length=10)),
        ('contact_name', models.CharField(blank=True, max_length=200)),
        ('contact_email', models.EmailField(max_length=254)),
        ('contact_phone', models.CharField(max_length=20)),
        ('destination', models.CharField(blank=True, max_length=200)),
        ('travel_date', models.DateField(blank=True, null=True)),
        ('special_requests', models.TextField(blank=True)),
        ('service_details', models.JSONField(blank=True, default=dict, help_text='Flight/hotel/tour/visa/package details as submitted')),
        ('quoted_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
        ('currency', models.CharField(default='GHS', max_length=3)),
        ('payment_link_url', models.URLField(blank=True, max_length=500)),
        ('paid_at', models.DateTimeField(blank=True, null=True)),
        ('admin_notes', models.TextField(blank=True)),
        ('created_at', models.DateTimeField(auto_now_add=True)),
        ('updated_at', models.DateTimeField(auto_now=True)),
    ]


def _history_fields():
    return [
        ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
        ('from_status', models.CharField(max_length=25)),
        ('to_status', models.CharField(max_length=25)),
        ('notes', models.TextField(blank=True)),
        ('changed_by', models.CharField(max_length=100)),
        ('changed_at', models.DateTimeField(default=django.utils.timezone.now)),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='BookingRequest',
            fields=_request_fields() + [
                ('status', models.CharField(choices=[('SUBMITTED', 'Submitted'), ('UNDER_REVIEW', 'Under Review'), ('QUOTE_PROVIDED', 'Quote Provided'), ('PAYMENT_PENDING', 'Payment Pending'), ('PROCESSING', 'Processing'), ('CONFIRMED', 'Confirmed'), ('COMPLETED', 'Completed'), ('CANCELLED', 'Cancelled')], default='SUBMITTED', max_length=25)),
                ('final_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='bookings', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at'],
                'abstract': False,
                'indexes': [
                    models.Index(fields=['status', 'created_at'], name='booking_status_created_idx'),
                    models.Index(fields=['user', 'created_at'], name='booking_user_created_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='QuoteRequest',
            fields=_request_fields() + [
                ('status', models.CharField(choices=[('SUBMITTED', 'Submitted'), ('UNDER_REVIEW', 'Under Review'), ('QUOTE_PROVIDED', 'Quote Provided'), ('PAYMENT_PENDING', 'Payment Pending'), ('PAID', 'Paid'), ('BOOKING_CONFIRMED', 'Booking Confirmed'), ('EXPIRED', 'Expired'), ('CANCELLED', 'Cancelled')], default='SUBMITTED', max_length=25)),
                ('quote_provided_at', models.DateTimeField(blank=True, null=True)),
                ('quote_expires_at', models.DateTimeField(blank=True, null=True)),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='quotes', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at'],
                'abstract': False,
                'indexes': [
                    models.Index(fields=['status', 'created_at'], name='quote_status_created_idx'),
                    models.Index(fields=['status', 'quote_expires_at'], name='quote_status_expires_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='BookingStatusHistory',
            fields=_history_fields() + [
                ('booking', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='status_history', to='bookings.bookingrequest')),
            ],
            options={
                'ordering': ['changed_at', 'id'],
                'abstract': False,
                'verbose_name_plural': 'booking status history',
            },
        ),
        migrations.CreateModel(
            name='QuoteStatusHistory',
            fields=_history_fields() + [
                ('quote', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='status_history', to='bookings.quoterequest')),
            ],
            options={
                'ordering': ['changed_at', 'id'],
                'abstract': False,
                'verbose_name_plural': 'quote status history',
            },
        ),
    ]
