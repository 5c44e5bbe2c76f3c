import logging

from django.conf import settings
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAdminUser
from rest_framework.response import Response
from rest_framework.views import APIView

from bookings.exceptions import PaymentGatewayError, TransientUpstreamError
from bookings.services import find_by_reference

from .handlers import handle_payment_completed
from .paystack import PaystackClient, from_minor_units, verify_signature
from .webhook import handle_paystack_event

logger = logging.getLogger(__name__)


class PaystackWebhookView(APIView):
    """POST /payments/webhook/

    Always answers 200 once the signature checks out, whatever happens
    inside, so Paystack does not keep redelivering into a failing path.
    """

    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        secret = settings.PAYSTACK_SECRET_KEY
        if not secret:
            logger.error('PAYSTACK_SECRET_KEY not configured; rejecting webhook')
            return Response(status=status.HTTP_403_FORBIDDEN)

        signature = request.headers.get('X-Paystack-Signature', '')
        if not verify_signature(request.body, signature, secret):
            logger.warning('Invalid Paystack webhook signature')
            return Response(status=status.HTTP_403_FORBIDDEN)

        payload = request.data
        event_type = payload.get('event', '')
        data = payload.get('data') or {}
        if not data.get('reference'):
            logger.warning('Paystack webhook %s carried no reference', event_type)
            return Response(status=status.HTTP_200_OK)

        try:
            handle_paystack_event(event_type, data)
        except Exception:
            logger.exception('Error processing Paystack webhook %s for %s', event_type, data.get('reference'))

        return Response(status=status.HTTP_200_OK)


class PaymentVerifyView(APIView):
    """POST /payments/verify/<reference>/ (admin): re-check a payment with Paystack."""

    permission_classes = [IsAdminUser]

    def post(self, request, reference):
        entity = find_by_reference(reference)
        if entity is None:
            return Response({'detail': 'Not found.'}, status=status.HTTP_404_NOT_FOUND)

        try:
            data = PaystackClient().verify_transaction(reference)
        except (TransientUpstreamError, PaymentGatewayError) as exc:
            logger.warning('Paystack verification failed for %s: %s', reference, exc)
            return Response({'detail': str(exc)}, status=status.HTTP_502_BAD_GATEWAY)

        if data.get('status') != 'success':
            return Response(
                {'detail': 'Payment has not completed.', 'gateway_status': data.get('status')},
                status=status.HTTP_400_BAD_REQUEST,
            )

        amount = data.get('amount')
        outcome = handle_payment_completed(
            reference,
            amount=None if amount is None else from_minor_units(amount),
            phone=entity.contact_phone,
            source='manual_verification',
        )
        entity.refresh_from_db()
        return Response({
            'reference_number': reference,
            'outcome': outcome.value,
            'status': entity.status,
        })
