from datetime import date

import pytest
from rest_framework.test import APIClient

from accounts.models import User
from bookings.models import Booking
from points.models import PointsLedgerEntry


@pytest.fixture
def sitter(db):
    return User.objects.create_user(
        username="sitter@example.com",
        email="sitter@example.com",
        password="examplepass",
        display_name="Sam Sitter",
    )


@pytest.fixture
def host(db):
    return User.objects.create_user(
        username="host@example.com",
        email="host@example.com",
        password="examplepass",
        display_name="Hana Host",
    )


@pytest.fixture
def make_booking(sitter, host):
    def _make(**overrides):
        fields = {
            "sitter": sitter,
            "host": host,
            "title": "Cat sit in Lisbon",
            "start_date": date(2024, 1, 1),
            "end_date": date(2024, 1, 4),
            "status": Booking.STATUS_CONFIRMED,
        }
        fields.update(overrides)
        return Booking.objects.create(**fields)

    return _make


@pytest.fixture
def booking(make_booking):
    return make_booking()


@pytest.fixture
def give_points():
    def _give(user, points):
        return PointsLedgerEntry.objects.create(
            user=user,
            points_delta=points,
            reason=PointsLedgerEntry.ADJUSTMENT,
        )

    return _give


@pytest.fixture
def sitter_client(sitter):
    client = APIClient()
    client.force_authenticate(sitter)
    return client


@pytest.fixture
def host_client(host):
    client = APIClient()
    client.force_authenticate(host)
    return client
