from decimal import Decimal

from django.conf import settings
from django.http import Http404
from django.shortcuts import get_object_or_404
from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from bookings.models import Booking
from bookings.serializers import BookingPaymentRequestSerializer, BookingPaymentSummarySerializer
from bookings.services.checkout import create_checkout_session
from bookings.services.notifications import notify_booking_paid
from bookings.services.payments import (
    BookingNotPayable,
    InsufficientPayment,
    PaymentNotAuthorized,
    quote_booking_payment,
    reconcile_booking_payment,
)
from core.throttling import BookingCheckoutThrottle, BookingPaymentThrottle


class BookingBaseView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get_booking(self, pk) -> Booking:
        booking = get_object_or_404(Booking.objects.select_related("sitter", "host"), pk=pk)
        if not booking.is_participant(self.request.user):
            raise Http404
        return booking

    def summary(self, booking: Booking, **extra):
        data = BookingPaymentSummarySerializer(booking).data
        data.update(extra)
        return data


class BookingDetailView(BookingBaseView):
    def get(self, request, pk, *args, **kwargs):
        return Response(self.summary(self.get_booking(pk)))


class BookingPaymentView(BookingBaseView):
    """
    Settle a booking without the card flow: points-only, or cash collected
    outside the platform where manual payments are enabled.
    """

    throttle_classes = [BookingPaymentThrottle]

    def post(self, request, pk, *args, **kwargs):
        booking = self.get_booking(pk)
        serializer = BookingPaymentRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        cash_paid = None if settings.ALLOW_MANUAL_BOOKING_PAYMENTS else Decimal("0")
        try:
            result = reconcile_booking_payment(
                booking.id,
                request.user.pk,
                serializer.validated_data["requested_points"],
                cash_paid=cash_paid,
                payment_method=Booking.METHOD_MANUAL,
            )
        except PaymentNotAuthorized:
            return Response(
                {"detail": "Only the sitter can pay for this booking."},
                status=status.HTTP_403_FORBIDDEN,
            )
        except InsufficientPayment:
            return Response(
                {"detail": "Manual payments are disabled. Use card checkout for the cash due."},
                status=status.HTTP_400_BAD_REQUEST,
            )
        except BookingNotPayable as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        booking.refresh_from_db()
        if result.updated:
            notify_booking_paid(booking)
        return Response(self.summary(booking, already_paid=result.already_paid))


class BookingCheckoutView(BookingBaseView):
    throttle_classes = [BookingCheckoutThrottle]

    def post(self, request, pk, *args, **kwargs):
        booking = self.get_booking(pk)
        if request.user.pk != booking.sitter_id:
            return Response(
                {"detail": "Only the sitter can pay for this booking."},
                status=status.HTTP_403_FORBIDDEN,
            )
        if booking.payment_status != Booking.UNPAID:
            return Response(
                {"detail": f"Booking is already {booking.payment_status}."},
                status=status.HTTP_400_BAD_REQUEST,
            )
        if booking.status not in Booking.PAYABLE_STATUSES:
            return Response(
                {"detail": f"Booking is {booking.status} and cannot be paid."},
                status=status.HTTP_400_BAD_REQUEST,
            )

        serializer = BookingPaymentRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        quote = quote_booking_payment(booking, request.user, serializer.validated_data["requested_points"])
        if quote.cash_due <= 0:
            return Response(
                {"detail": "Nothing is due in cash. Complete the booking with points instead."},
                status=status.HTTP_400_BAD_REQUEST,
            )

        session = create_checkout_session(booking=booking, amount=quote.cash_due, points=quote.points)
        return Response(
            {
                "session_id": session.id,
                "url": session.url,
                "amount": str(quote.cash_due),
                "points": quote.points,
                "currency": settings.PAYMENT_CURRENCY,
            }
        )
