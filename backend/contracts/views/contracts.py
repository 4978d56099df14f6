# backend/contracts/views/contracts.py
from __future__ import annotations

from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.response import Response

from ..errors import Unauthorized
from ..models import Contract
from ..permissions import IsContractParty
from ..serializers import ContractCreateSerializer, ContractSerializer, PayoutPreviewQuerySerializer
from ..services import contracts as contract_service
from .base import PartyScopedViewSet


class ContractViewSet(PartyScopedViewSet):
    """
    Routes (via router):
      - GET  /api/contracts/                        -> list (own contracts; admins: all)
      - POST /api/contracts/                        -> create (proposal finalization)
      - GET  /api/contracts/{id}/                   -> retrieve
      - GET  /api/contracts/{id}/payout-preview/    -> cancellation payout right now
    """
    queryset = Contract.objects.select_related("client", "artist").prefetch_related("milestones")
    serializer_class = ContractSerializer
    permission_classes = [IsContractParty]
    filterset_fields = ["status", "flow"]
    contract_lookup = ""

    def create(self, request, *args, **kwargs):
        serializer = ContractCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        kwargs = serializer.to_service_kwargs()
        if request.user not in (kwargs["client"], kwargs["artist"]):
            raise Unauthorized("You can only finalize contracts you are a party to.")
        contract = contract_service.create_contract(**kwargs)
        return self.output(contract, status.HTTP_201_CREATED)

    @action(detail=True, methods=["get"], url_path="payout-preview")
    def payout_preview(self, request, pk=None):
        contract = self.get_object()
        query = PayoutPreviewQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        preview = contract_service.payout_preview(
            contract,
            initiated_by=query.validated_data["initiated_by"],
            work_progress=query.validated_data.get("work_progress"),
            as_of=timezone.now(),
        )
        return Response(preview, status=status.HTTP_200_OK)
