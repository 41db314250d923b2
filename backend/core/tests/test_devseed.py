import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from accounts.models import User
from bookings.models import Booking
from points.services import points_balance


@pytest.mark.django_db
def test_devseed_refuses_outside_debug(settings):
    settings.DEBUG = False

    with pytest.raises(CommandError):
        call_command("devseed")


@pytest.mark.django_db
def test_devseed_is_idempotent(settings):
    settings.DEBUG = True

    call_command("devseed")
    call_command("devseed")

    sitter = User.objects.get(email="sitter@sitswap.test")
    assert User.objects.filter(is_superuser=True).count() == 1
    assert Booking.objects.count() == 3
    assert points_balance(sitter) == 5
