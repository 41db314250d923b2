from datetime import timedelta

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.utils import timezone

from accounts.models import User
from bookings.models import Booking
from points.models import PointsLedgerEntry
from points.services import award_points, points_balance


SEED_PASSWORD = "SitSwap123!"
SUPERUSER_EMAIL = "admin@sitswap.test"
SUPERUSER_PASSWORD = "AdminSitSwap123!"
STARTER_POINTS = 5


class Command(BaseCommand):
    help = "Populate the local development database with sample data."

    def handle(self, *args, **options):
        if not settings.DEBUG:
            raise CommandError("Refusing to seed data while DEBUG is False.")

        with transaction.atomic():
            self.stdout.write(self.style.MIGRATE_HEADING("Creating users"))
            host = self._ensure_user(
                email="host@sitswap.test",
                first_name="Hana",
                last_name="Host",
                display_name="Hana Host",
            )
            sitter = self._ensure_user(
                email="sitter@sitswap.test",
                first_name="Sam",
                last_name="Sitter",
                display_name="Sam Sitter",
            )
            admin = self._ensure_superuser()

            self.stdout.write(self.style.MIGRATE_HEADING("Granting starter points"))
            if not PointsLedgerEntry.objects.filter(user=sitter, reason=PointsLedgerEntry.ADJUSTMENT).exists():
                award_points(user=sitter, points=STARTER_POINTS)

            self.stdout.write(self.style.MIGRATE_HEADING("Creating bookings"))
            today = timezone.localdate()
            seeded = [
                self._ensure_booking(
                    title="Cat sit in Lisbon",
                    host=host,
                    sitter=sitter,
                    start_date=today + timedelta(days=14),
                    end_date=today + timedelta(days=17),
                    status=Booking.STATUS_CONFIRMED,
                ),
                self._ensure_booking(
                    title="Dog sit in Porto",
                    host=host,
                    sitter=sitter,
                    start_date=today + timedelta(days=30),
                    end_date=today + timedelta(days=37),
                    status=Booking.STATUS_ACCEPTED,
                ),
                self._ensure_booking(
                    title="Weekend with the rabbits",
                    host=host,
                    sitter=sitter,
                    start_date=today + timedelta(days=60),
                    end_date=today + timedelta(days=62),
                    status=Booking.STATUS_PENDING,
                ),
            ]

        self.stdout.write(self.style.SUCCESS("Development data ready."))
        self.stdout.write("")
        self.stdout.write(self.style.NOTICE("Login credentials"))
        self.stdout.write(f"  Host:   {host.email} / {SEED_PASSWORD}")
        self.stdout.write(f"  Sitter: {sitter.email} / {SEED_PASSWORD} ({points_balance(sitter)} points)")
        self.stdout.write(f"  Admin:  {admin.email} / {SUPERUSER_PASSWORD}")
        self.stdout.write("")
        for booking in seeded:
            self.stdout.write(f"  Booking #{booking.id}: {booking} [{booking.status}, {booking.payment_status}]")

    def _ensure_user(
        self,
        email: str,
        first_name: str,
        last_name: str,
        display_name: str,
    ) -> User:
        user, created = User.objects.get_or_create(
            email=email,
            defaults={
                "username": email,
                "first_name": first_name,
                "last_name": last_name,
                "display_name": display_name,
            },
        )
        if created:
            user.set_password(SEED_PASSWORD)
            user.save()
        elif user.display_name != display_name:
            user.display_name = display_name
            user.save(update_fields=["display_name"])
        return user

    def _ensure_superuser(self) -> User:
        user, created = User.objects.get_or_create(
            email=SUPERUSER_EMAIL,
            defaults={
                "username": SUPERUSER_EMAIL,
                "display_name": "Admin User",
                "is_staff": True,
                "is_superuser": True,
            },
        )
        if created or not user.has_usable_password():
            user.set_password(SUPERUSER_PASSWORD)
            user.save(update_fields=["password"])
        return user

    def _ensure_booking(self, *, title: str, host: User, sitter: User, **fields) -> Booking:
        booking, _ = Booking.objects.get_or_create(
            title=title,
            host=host,
            sitter=sitter,
            defaults=fields,
        )
        return booking
