from django.contrib import admin
from django.urls import include, path
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenRefreshView

from accounts.api import EmailTokenObtainPairView, MeView
from bookings.api import BookingCheckoutView, BookingDetailView, BookingPaymentView
from jobs.api import JobViewSet
from payments.api import StripeWebhookView
from points.api import PointsBalanceView

router = DefaultRouter()
router.register(r"jobs", JobViewSet, basename="job")

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/auth/login/", EmailTokenObtainPairView.as_view(), name="auth-login"),
    path("api/auth/refresh/", TokenRefreshView.as_view(), name="auth-refresh"),
    path("api/auth/me/", MeView.as_view(), name="auth-me"),
    path("api/bookings/<int:pk>/", BookingDetailView.as_view(), name="booking-detail"),
    path("api/bookings/<int:pk>/pay/", BookingPaymentView.as_view(), name="booking-pay"),
    path(
        "api/bookings/<int:pk>/checkout/",
        BookingCheckoutView.as_view(),
        name="booking-checkout",
    ),
    path("api/points/balance/", PointsBalanceView.as_view(), name="points-balance"),
    path("api/", include(router.urls)),
    path("api/webhooks/stripe/", StripeWebhookView.as_view(), name="stripe-webhook"),
]
