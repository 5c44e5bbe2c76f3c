from django.urls import path

from . import views
from .models import BookingRequest, QuoteRequest

urlpatterns = [
    # Customer
    path('quotes/', views.QuoteSubmit.as_view(), name='quote-submit'),
    path('quotes/mine/', views.MyQuoteList.as_view(), name='quote-mine'),
    path('quotes/track/<str:reference>/', views.QuoteTrack.as_view(), name='quote-track'),
    path('bookings/', views.BookingSubmit.as_view(), name='booking-submit'),
    path('bookings/mine/', views.MyBookingList.as_view(), name='booking-mine'),
    path('bookings/track/<str:reference>/', views.BookingTrack.as_view(), name='booking-track'),

    # Admin
    path('admin/bookings/', views.AdminBookingList.as_view(), name='admin-booking-list'),
    path(
        'admin/bookings/<int:pk>/status/',
        views.AdminStatusUpdate.as_view(model=BookingRequest),
        name='admin-booking-status',
    ),
    path(
        'admin/bookings/<int:pk>/pricing/',
        views.AdminPricingUpdate.as_view(model=BookingRequest),
        name='admin-booking-pricing',
    ),
    path(
        'admin/bookings/<int:pk>/notes/',
        views.AdminAddNote.as_view(model=BookingRequest),
        name='admin-booking-notes',
    ),
    path(
        'admin/bookings/<int:pk>/payment-link/',
        views.AdminRequestPayment.as_view(),
        name='admin-booking-payment-link',
    ),
    path('admin/quotes/', views.AdminQuoteList.as_view(), name='admin-quote-list'),
    path(
        'admin/quotes/<int:pk>/status/',
        views.AdminStatusUpdate.as_view(model=QuoteRequest),
        name='admin-quote-status',
    ),
    path(
        'admin/quotes/<int:pk>/pricing/',
        views.AdminPricingUpdate.as_view(model=QuoteRequest),
        name='admin-quote-pricing',
    ),
    path(
        'admin/quotes/<int:pk>/notes/',
        views.AdminAddNote.as_view(model=QuoteRequest),
        name='admin-quote-notes',
    ),
    path(
        'admin/quotes/<int:pk>/provide-quote/',
        views.AdminProvideQuote.as_view(),
        name='admin-quote-provide',
    ),
]
