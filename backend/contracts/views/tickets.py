# backend/contracts/views/tickets.py
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import action

from ..models import CancelTicket, ChangeTicket, RevisionTicket
from ..serializers import (
    CancelTicketCreateSerializer,
    CancelTicketSerializer,
    ChangeTicketCreateSerializer,
    ChangeTicketSerializer,
    PaySerializer,
    RespondSerializer,
    RevisionTicketCreateSerializer,
    RevisionTicketSerializer,
)
from ..services import tickets
from .base import PartyScopedViewSet


class CancelTicketViewSet(PartyScopedViewSet):
    queryset = CancelTicket.objects.select_related("contract")
    serializer_class = CancelTicketSerializer

    def create(self, request, *args, **kwargs):
        data = self.input(CancelTicketCreateSerializer)
        ticket = tickets.create_cancel_ticket(data["contract"], request.user, reason=data["reason"])
        return self.output(ticket, status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], url_path="respond")
    def respond(self, request, pk=None):
        data = self.input(RespondSerializer)
        ticket = tickets.respond_cancel_ticket(pk, request.user, decision=data["decision"], reason=data["reason"])
        return self.output(ticket)


class RevisionTicketViewSet(PartyScopedViewSet):
    queryset = RevisionTicket.objects.select_related("contract")
    serializer_class = RevisionTicketSerializer
    filterset_fields = ["contract", "status", "resolved"]

    def create(self, request, *args, **kwargs):
        data = self.input(RevisionTicketCreateSerializer)
        ticket = tickets.create_revision_ticket(
            data["contract"],
            request.user,
            description=data["description"],
            milestone_index=data.get("milestone_index"),
            reference_images=data["reference_images"],
        )
        return self.output(ticket, status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], url_path="respond")
    def respond(self, request, pk=None):
        data = self.input(RespondSerializer)
        ticket = tickets.respond_revision_ticket(pk, request.user, decision=data["decision"], reason=data["reason"])
        return self.output(ticket)

    @action(detail=True, methods=["post"], url_path="pay")
    def pay(self, request, pk=None):
        data = self.input(PaySerializer)
        return self.output(tickets.pay_revision_fee(pk, request.user, amount_cents=data["amount_cents"]))

    @action(detail=True, methods=["post"], url_path="cancel")
    def cancel(self, request, pk=None):
        return self.output(tickets.cancel_revision_ticket(pk, request.user))


class ChangeTicketViewSet(PartyScopedViewSet):
    queryset = ChangeTicket.objects.select_related("contract")
    serializer_class = ChangeTicketSerializer

    def create(self, request, *args, **kwargs):
        data = self.input(ChangeTicketCreateSerializer)
        ticket = tickets.create_change_ticket(
            data["contract"], request.user, reason=data["reason"], change_set=data["change_set"]
        )
        return self.output(ticket, status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], url_path="respond")
    def respond(self, request, pk=None):
        data = self.input(RespondSerializer)
        ticket = tickets.respond_change_ticket(
            pk, request.user, decision=data["decision"], fee_cents=data["fee_cents"], reason=data["reason"]
        )
        return self.output(ticket)

    @action(detail=True, methods=["post"], url_path="pay")
    def pay(self, request, pk=None):
        data = self.input(PaySerializer)
        return self.output(tickets.pay_change_fee(pk, request.user, amount_cents=data["amount_cents"]))

    @action(detail=True, methods=["post"], url_path="cancel")
    def cancel(self, request, pk=None):
        return self.output(tickets.cancel_change_ticket(pk, request.user))
