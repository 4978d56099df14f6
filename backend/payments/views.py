# backend/payments/views.py
from __future__ import annotations

from django.db.models import Q
from rest_framework import permissions, viewsets

from contracts.services.parties import is_admin

from .models import EscrowTransaction
from .serializers import EscrowTransactionSerializer


class EscrowTransactionViewSet(viewsets.ReadOnlyModelViewSet):
    """Escrow ledger for the caller's contracts. Admins see every contract."""
    serializer_class = EscrowTransactionSerializer
    permission_classes = [permissions.IsAuthenticated]
    filterset_fields = ["contract", "kind", "party"]

    def get_queryset(self):
        qs = EscrowTransaction.objects.select_related("contract")
        user = self.request.user
        if is_admin(user):
            return qs
        return qs.filter(Q(contract__client=user) | Q(contract__artist=user))
