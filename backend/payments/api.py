import json
import logging

import stripe
from django.conf import settings
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from payments.processor import IngestStatus, ingest

logger = logging.getLogger(__name__)


class StripeWebhookView(APIView):
    """Receive Stripe payment events for booking fees."""

    permission_classes: list = []
    authentication_classes: list = []

    def post(self, request, *args, **kwargs):
        payload = request.body
        sig_header = request.META.get("HTTP_STRIPE_SIGNATURE")
        if not settings.STRIPE_WEBHOOK_SECRET:
            logger.error("Stripe webhook secret not configured.")
            return Response(
                {"error": "webhook_not_configured"},
                status=status.HTTP_503_SERVICE_UNAVAILABLE,
            )

        try:
            stripe.Webhook.construct_event(payload, sig_header, settings.STRIPE_WEBHOOK_SECRET)
        except ValueError:
            logger.warning("Invalid payload received on Stripe webhook.")
            return Response({"error": "invalid_payload"}, status=status.HTTP_400_BAD_REQUEST)
        except stripe.SignatureVerificationError:
            logger.warning("Invalid Stripe signature.")
            return Response({"error": "invalid_signature"}, status=status.HTTP_400_BAD_REQUEST)

        # construct_event has already validated the JSON; keep plain dicts for storage.
        result = ingest(json.loads(payload))
        if result.status == IngestStatus.ERROR:
            return Response(
                {"error": "webhook_processing_failed"},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        return Response(
            {
                "received": True,
                "status": result.status.value,
                "changed": result.changed,
            },
            status=status.HTTP_200_OK,
        )
