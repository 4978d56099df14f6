# backend/contracts/views/resolution.py
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import action

from ..models import ResolutionTicket
from ..permissions import IsPlatformAdmin
from ..serializers import CounterproofSerializer, EscalateSerializer, ResolutionTicketSerializer, ResolveSerializer
from ..services import resolution
from .base import PartyScopedViewSet


class ResolutionTicketViewSet(PartyScopedViewSet):
    """
    Routes (via router):
      - POST /api/resolution-tickets/                    -> escalate a ticket or upload
      - POST /api/resolution-tickets/{id}/counterproof/  -> counterparty's answer
      - POST /api/resolution-tickets/{id}/resolve/       -> admin decision
      - POST /api/resolution-tickets/{id}/cancel/        -> withdraw (submitter or admin)
    """
    queryset = ResolutionTicket.objects.select_related("contract")
    serializer_class = ResolutionTicketSerializer
    filterset_fields = ["contract", "status", "target_type"]

    def create(self, request, *args, **kwargs):
        data = self.input(EscalateSerializer)
        ticket = resolution.escalate(
            data["contract"],
            request.user,
            target_type=data["target_type"],
            target_id=data["target_id"],
            description=data["description"],
            proof_images=data["proof_images"],
        )
        return self.output(ticket, status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], url_path="counterproof")
    def counterproof(self, request, pk=None):
        data = self.input(CounterproofSerializer)
        ticket = resolution.submit_counterproof(
            pk, request.user, description=data["description"], images=data["images"]
        )
        return self.output(ticket)

    @action(detail=True, methods=["post"], url_path="resolve", permission_classes=[IsPlatformAdmin])
    def resolve(self, request, pk=None):
        data = self.input(ResolveSerializer)
        ticket = resolution.resolve(
            pk, request.user, decision=data["decision"], resolution_note=data["resolution_note"]
        )
        return self.output(ticket)

    @action(detail=True, methods=["post"], url_path="cancel")
    def cancel(self, request, pk=None):
        return self.output(resolution.cancel_resolution(pk, request.user))
