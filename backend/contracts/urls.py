# backend/contracts/urls.py
from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import (
    CancelTicketViewSet,
    ChangeTicketViewSet,
    ContractViewSet,
    FinalUploadViewSet,
    MilestoneUploadViewSet,
    ProgressUploadViewSet,
    ResolutionTicketViewSet,
    RevisionTicketViewSet,
    RevisionUploadViewSet,
)

app_name = "contracts"

router = DefaultRouter()
router.register(r"contracts", ContractViewSet, basename="contract")
router.register(r"cancel-tickets", CancelTicketViewSet, basename="cancel-ticket")
router.register(r"revision-tickets", RevisionTicketViewSet, basename="revision-ticket")
router.register(r"change-tickets", ChangeTicketViewSet, basename="change-ticket")
router.register(r"progress-uploads", ProgressUploadViewSet, basename="progress-upload")
router.register(r"milestone-uploads", MilestoneUploadViewSet, basename="milestone-upload")
router.register(r"revision-uploads", RevisionUploadViewSet, basename="revision-upload")
router.register(r"final-uploads", FinalUploadViewSet, basename="final-upload")
router.register(r"resolution-tickets", ResolutionTicketViewSet, basename="resolution-ticket")

urlpatterns = [
    path("", include(router.urls)),
]
