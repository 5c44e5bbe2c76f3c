import logging

from django.shortcuts import get_object_or_404
from rest_framework import generics, status
from rest_framework.permissions import AllowAny, IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from . import services
from .exceptions import (
    PaymentGatewayError,
    RequestNotFoundError,
    RequestValidationError,
    TransientUpstreamError,
)
from .filters import BookingRequestFilter, QuoteRequestFilter
from .models import BookingRequest, QuoteRequest
from .serializers import (
    AdminBookingRequestSerializer,
    AdminQuoteRequestSerializer,
    BookingRequestSerializer,
    NoteSerializer,
    PricingUpdateSerializer,
    ProvideQuoteSerializer,
    QuoteRequestSerializer,
    StatusUpdateSerializer,
    TravelRequestSubmitSerializer,
)

logger = logging.getLogger(__name__)


class ServiceErrorMixin:
    """Map service-layer errors to HTTP responses."""

    def handle_exception(self, exc):
        if isinstance(exc, RequestValidationError):
            detail = exc.message_dict if hasattr(exc, 'error_dict') else {'detail': exc.messages}
            return Response(detail, status=status.HTTP_400_BAD_REQUEST)
        if isinstance(exc, RequestNotFoundError):
            return Response({'detail': 'Not found.'}, status=status.HTTP_404_NOT_FOUND)
        if isinstance(exc, (PaymentGatewayError, TransientUpstreamError)):
            logger.warning('Upstream failure in %s: %s', self.__class__.__name__, exc)
            return Response({'detail': str(exc)}, status=status.HTTP_502_BAD_GATEWAY)
        return super().handle_exception(exc)


# ---------------------------------------------------------------------------
# Customer-facing
# ---------------------------------------------------------------------------

class _SubmitView(ServiceErrorMixin, APIView):
    model = None
    read_serializer_class = None

    def post(self, request):
        serializer = TravelRequestSubmitSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        entity = services.submit_request(self.model, user=request.user, **serializer.validated_data)
        return Response(self.read_serializer_class(entity).data, status=status.HTTP_201_CREATED)


class QuoteSubmit(_SubmitView):
    """POST /quotes/ (guests welcome)."""
    permission_classes = [AllowAny]
    model = QuoteRequest
    read_serializer_class = QuoteRequestSerializer


class BookingSubmit(_SubmitView):
    """POST /bookings/"""
    permission_classes = [IsAuthenticated]
    model = BookingRequest
    read_serializer_class = BookingRequestSerializer


class QuoteTrack(ServiceErrorMixin, APIView):
    permission_classes = [AllowAny]

    def get(self, request, reference):
        quote = services.get_by_reference(QuoteRequest, reference)
        return Response(QuoteRequestSerializer(quote).data)


class BookingTrack(ServiceErrorMixin, APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, reference):
        booking = services.get_by_reference(BookingRequest, reference)
        # 404 rather than 403 so references cannot be probed
        if not request.user.is_staff and booking.user_id != request.user.id:
            raise RequestNotFoundError(reference)
        return Response(BookingRequestSerializer(booking).data)


class _MyRequestList(generics.ListAPIView):
    """Requests submitted by the signed-in customer."""
    permission_classes = [IsAuthenticated]
    model = None

    def get_queryset(self):
        return self.model.objects.filter(user=self.request.user).prefetch_related('status_history')


class MyBookingList(_MyRequestList):
    model = BookingRequest
    serializer_class = BookingRequestSerializer


class MyQuoteList(_MyRequestList):
    model = QuoteRequest
    serializer_class = QuoteRequestSerializer


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------

class AdminBookingList(generics.ListAPIView):
    queryset = BookingRequest.objects.prefetch_related('status_history')
    permission_classes = [IsAdminUser]
    serializer_class = AdminBookingRequestSerializer
    filterset_class = BookingRequestFilter
    ordering_fields = ['created_at', 'updated_at', 'status']


class AdminQuoteList(generics.ListAPIView):
    queryset = QuoteRequest.objects.prefetch_related('status_history')
    permission_classes = [IsAdminUser]
    serializer_class = AdminQuoteRequestSerializer
    filterset_class = QuoteRequestFilter
    ordering_fields = ['created_at', 'updated_at', 'status', 'quote_expires_at']


class _AdminRequestView(ServiceErrorMixin, APIView):
    permission_classes = [IsAdminUser]
    model = None

    def get_object(self, pk):
        return get_object_or_404(self.model, pk=pk)

    def respond(self, entity):
        serializer_class = (
            AdminBookingRequestSerializer if self.model is BookingRequest else AdminQuoteRequestSerializer
        )
        return Response(serializer_class(entity).data)


class AdminStatusUpdate(_AdminRequestView):
    """POST admin/<kind>/<pk>/status/: status, optional pricing and notes, one history row."""

    def post(self, request, pk):
        entity = self.get_object(pk)
        serializer = StatusUpdateSerializer(data=request.data, context={'instance': entity})
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        services.update_request(
            entity,
            changed_by=services.actor_name(request.user),
            status=data.get('status'),
            quoted_amount=data.get('quoted_amount'),
            final_amount=data.get('final_amount'),
            currency=data.get('currency') or None,
            notes=data.get('notes', ''),
        )
        return self.respond(entity)


class AdminPricingUpdate(_AdminRequestView):
    def post(self, request, pk):
        entity = self.get_object(pk)
        serializer = PricingUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        services.update_pricing(
            entity,
            changed_by=services.actor_name(request.user),
            quoted_amount=data.get('quoted_amount'),
            final_amount=data.get('final_amount'),
            currency=data.get('currency') or None,
            reason=data.get('reason', ''),
        )
        return self.respond(entity)


class AdminAddNote(_AdminRequestView):
    def post(self, request, pk):
        entity = self.get_object(pk)
        serializer = NoteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        services.append_note(
            entity,
            author=services.actor_name(request.user),
            note=serializer.validated_data['note'],
        )
        return self.respond(entity)


class AdminProvideQuote(_AdminRequestView):
    model = QuoteRequest

    def post(self, request, pk):
        quote = self.get_object(pk)
        serializer = ProvideQuoteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        services.provide_quote(
            quote,
            amount=data['amount'],
            currency=data.get('currency') or None,
            notes=data.get('notes', ''),
            expires_in_hours=data.get('expires_in_hours'),
            changed_by=services.actor_name(request.user),
        )
        return self.respond(quote)


class AdminRequestPayment(_AdminRequestView):
    model = BookingRequest

    def post(self, request, pk):
        booking = self.get_object(pk)
        services.request_payment(booking, changed_by=services.actor_name(request.user))
        return self.respond(booking)
