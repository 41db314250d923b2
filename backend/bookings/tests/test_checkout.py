import types
from decimal import Decimal

import pytest
import stripe
from django.urls import reverse

from bookings.services import checkout
from core.models import CacheEntry


@pytest.mark.django_db
def test_checkout_stub_returns_preview_url(settings, booking, sitter_client):
    settings.STRIPE_USE_STUB = True
    settings.FRONTEND_URL = "https://app.test"

    response = sitter_client.post(reverse("booking-checkout", args=[booking.id]), {}, format="json")

    assert response.status_code == 200
    data = response.json()
    assert data["session_id"].startswith("cs_test_")
    assert data["url"].startswith("https://app.test/payments/preview?")
    assert f"booking={booking.id}" in data["url"]
    assert data["amount"] == "350.00"
    assert data["currency"] == "usd"


@pytest.mark.django_db
def test_repeated_checkout_reuses_cached_session(settings, booking, sitter_client):
    settings.STRIPE_USE_STUB = True
    url = reverse("booking-checkout", args=[booking.id])

    first = sitter_client.post(url, {}, format="json").json()
    second = sitter_client.post(url, {}, format="json").json()

    assert first["session_id"] == second["session_id"]
    assert CacheEntry.objects.filter(key=f"booking-checkout:{booking.id}:35000:0").exists()


@pytest.mark.django_db
def test_points_reduce_checkout_amount(settings, booking, sitter, give_points, sitter_client):
    settings.STRIPE_USE_STUB = True
    give_points(sitter, 2)

    response = sitter_client.post(
        reverse("booking-checkout", args=[booking.id]), {"requested_points": 2}, format="json"
    )

    assert response.json()["amount"] == "250.00"
    assert response.json()["points"] == 2


@pytest.mark.django_db
def test_checkout_refused_when_nothing_due_in_cash(settings, make_booking, sitter, give_points, sitter_client):
    settings.STRIPE_USE_STUB = True
    booking = make_booking(cleaning_fee=Decimal("0"))
    give_points(sitter, 3)

    response = sitter_client.post(
        reverse("booking-checkout", args=[booking.id]), {"requested_points": 3}, format="json"
    )

    assert response.status_code == 400


@pytest.mark.django_db
def test_checkout_refused_for_host(booking, host_client):
    assert host_client.post(reverse("booking-checkout", args=[booking.id]), {}, format="json").status_code == 403


@pytest.mark.django_db
def test_checkout_uses_stripe_when_configured(monkeypatch, settings, booking):
    settings.STRIPE_USE_STUB = False
    settings.STRIPE_SECRET_KEY = "sk_test_123"
    settings.FRONTEND_URL = "https://app.test"

    captured = {}
    original_api_key = stripe.api_key

    def fake_create(**kwargs):
        captured["kwargs"] = kwargs
        return types.SimpleNamespace(
            id="cs_real_123",
            payment_intent=None,
            payment_status="unpaid",
            url="https://checkout.stripe.test/session",
        )

    monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)

    try:
        session = checkout.create_checkout_session(booking=booking, amount=Decimal("250"), points=2)
    finally:
        stripe.api_key = original_api_key

    assert session.id == "cs_real_123"
    assert session.payment_intent == ""
    kwargs = captured["kwargs"]
    assert kwargs["line_items"][0]["price_data"]["unit_amount"] == 25000
    assert kwargs["metadata"] == {
        "flow": "booking_fee_payment",
        "booking_id": str(booking.id),
        "sitter_id": str(booking.sitter_id),
        "requested_points": "2",
    }
    assert kwargs["idempotency_key"] == f"booking-checkout:{booking.id}:25000:2"


def test_amount_to_cents_rounds_half_up():
    assert checkout.to_cents(Decimal("10.005")) == 1001
    assert checkout.to_cents(Decimal("350")) == 35000
