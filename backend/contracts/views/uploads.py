# backend/contracts/views/uploads.py
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import action

from ..models import FinalUpload, ProgressUploadMilestone, ProgressUploadStandard, RevisionUpload
from ..serializers import (
    FinalUploadCreateSerializer,
    FinalUploadSerializer,
    MilestoneUploadCreateSerializer,
    ProgressUploadCreateSerializer,
    ProgressUploadMilestoneSerializer,
    ProgressUploadStandardSerializer,
    ReviewSerializer,
    RevisionUploadCreateSerializer,
    RevisionUploadSerializer,
)
from ..services import uploads
from .base import PartyScopedViewSet


class ProgressUploadViewSet(PartyScopedViewSet):
    queryset = ProgressUploadStandard.objects.select_related("contract")
    serializer_class = ProgressUploadStandardSerializer
    filterset_fields = ["contract"]

    def create(self, request, *args, **kwargs):
        data = self.input(ProgressUploadCreateSerializer)
        upload = uploads.create_progress_upload(
            data["contract"], request.user, images=data["images"], description=data["description"]
        )
        return self.output(upload, status.HTTP_201_CREATED)


class ReviewableUploadViewSet(PartyScopedViewSet):
    upload_kind: str = ""

    @action(detail=True, methods=["post"], url_path="review")
    def review(self, request, pk=None):
        data = self.input(ReviewSerializer)
        upload = uploads.review_upload(
            self.upload_kind, pk, request.user, decision=data["decision"], reason=data["reason"]
        )
        return self.output(upload)


class MilestoneUploadViewSet(ReviewableUploadViewSet):
    upload_kind = "milestone"
    queryset = ProgressUploadMilestone.objects.select_related("contract", "milestone")
    serializer_class = ProgressUploadMilestoneSerializer
    filterset_fields = ["contract", "status", "milestone", "is_final"]

    def create(self, request, *args, **kwargs):
        data = self.input(MilestoneUploadCreateSerializer)
        upload = uploads.create_milestone_upload(
            data["contract"],
            request.user,
            images=data["images"],
            description=data["description"],
            is_final=data["is_final"],
            milestone_index=data.get("milestone_index"),
        )
        return self.output(upload, status.HTTP_201_CREATED)


class RevisionUploadViewSet(ReviewableUploadViewSet):
    upload_kind = "revision"
    queryset = RevisionUpload.objects.select_related("contract", "revision_ticket")
    serializer_class = RevisionUploadSerializer
    filterset_fields = ["contract", "status", "revision_ticket"]

    def create(self, request, *args, **kwargs):
        data = self.input(RevisionUploadCreateSerializer)
        upload = uploads.create_revision_upload(
            data["revision_ticket"], request.user, images=data["images"], description=data["description"]
        )
        return self.output(upload, status.HTTP_201_CREATED)


class FinalUploadViewSet(ReviewableUploadViewSet):
    upload_kind = "final"
    queryset = FinalUpload.objects.select_related("contract", "cancel_ticket")
    serializer_class = FinalUploadSerializer

    def create(self, request, *args, **kwargs):
        data = self.input(FinalUploadCreateSerializer)
        upload = uploads.create_final_upload(
            data["contract"],
            request.user,
            images=data["images"],
            description=data["description"],
            work_progress=data["work_progress"],
            cancel_ticket_id=data.get("cancel_ticket"),
        )
        return self.output(upload, status.HTTP_201_CREATED)
