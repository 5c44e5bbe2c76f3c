from django.urls import path

from . import views

urlpatterns = [
    path('webhook/', views.PaystackWebhookView.as_view(), name='paystack-webhook'),
    path('verify/<str:reference>/', views.PaymentVerifyView.as_view(), name='payment-verify'),
]
