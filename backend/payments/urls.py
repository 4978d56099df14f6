# backend/payments/urls.py
from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import EscrowTransactionViewSet

app_name = "payments"

router = DefaultRouter()
router.register(r"escrow-transactions", EscrowTransactionViewSet, basename="escrow-transaction")

urlpatterns = [
    path("", include(router.urls)),
]
