# backend/contracts/views/base.py
from __future__ import annotations

from django.db.models import Q
from rest_framework import mixins, status, viewsets
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from contracts.services.parties import is_admin


class PartyScopedViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """
    Read side for lifecycle entities: callers see rows of contracts they are a
    party to, admins see everything. Writes go through service functions in
    ``create`` and the ``@action`` endpoints, never through serializer.save().
    """
    permission_classes = [IsAuthenticated]
    filterset_fields = ["contract", "status"]
    contract_lookup = "contract__"

    def get_queryset(self):
        qs = super().get_queryset()
        user = self.request.user
        if is_admin(user):
            return qs
        return qs.filter(
            Q(**{f"{self.contract_lookup}client": user}) | Q(**{f"{self.contract_lookup}artist": user})
        )

    def input(self, serializer_class):
        serializer = serializer_class(data=self.request.data, context=self.get_serializer_context())
        serializer.is_valid(raise_exception=True)
        return serializer.validated_data

    def output(self, instance, status_code=status.HTTP_200_OK):
        return Response(self.get_serializer(instance).data, status=status_code)
