import json

import pytest
from django.core import mail
from rest_framework.test import APIClient

from bookings.models import Booking
from jobs.queue import process_due_jobs


@pytest.mark.django_db
def test_end_to_end_card_payment_flow(settings, monkeypatch, booking, sitter, give_points):
    settings.STRIPE_USE_STUB = True
    settings.STRIPE_WEBHOOK_SECRET = "whsec_test"
    settings.EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"
    monkeypatch.setattr("payments.api.stripe.Webhook.construct_event", lambda payload, sig, secret: {})
    give_points(sitter, 2)

    client = APIClient()
    login = client.post(
        "/api/auth/login/",
        {"email": "sitter@example.com", "password": "examplepass"},
        format="json",
    )
    assert login.status_code == 200
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {login.json()['access']}")

    # Ask for a card checkout using both points
    checkout = client.post(f"/api/bookings/{booking.id}/checkout/", {"requested_points": 2}, format="json")
    assert checkout.status_code == 200
    assert checkout.json()["amount"] == "250.00"

    # Provider confirms the payment, twice
    event = {
        "id": "evt_e2e",
        "type": "payment_intent.succeeded",
        "created": 1700000000,
        "data": {
            "object": {
                "id": "pi_e2e",
                "amount_received": 25000,
                "currency": "usd",
                "metadata": {
                    "flow": "booking_fee_payment",
                    "booking_id": str(booking.id),
                    "sitter_id": str(sitter.id),
                    "requested_points": "2",
                },
            }
        },
    }
    webhook = APIClient()
    for _ in range(2):
        response = webhook.post(
            "/api/webhooks/stripe/",
            data=json.dumps(event),
            content_type="application/json",
            HTTP_STRIPE_SIGNATURE="t=1,v1=sig",
        )
        assert response.status_code == 200

    summary = client.get(f"/api/bookings/{booking.id}/").json()
    assert summary["payment_status"] == Booking.PAID
    assert summary["points_applied"] == 2
    assert summary["cash_paid"] == "250.00"
    assert client.get("/api/points/balance/").json()["balance"] == 0

    # The worker delivers one email per participant
    assert process_due_jobs("e2e-worker") == 2
    assert sorted(message.to[0] for message in mail.outbox) == ["host@example.com", "sitter@example.com"]
