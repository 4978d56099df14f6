# backend/core/exceptions.py
import logging

from django.db import DatabaseError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from contracts.errors import LifecycleError

logger = logging.getLogger(__name__)


def lifecycle_exception_handler(exc, context):
    """
    DRF exception handler: lifecycle errors become ``{"error", "detail",
    "context"}`` bodies with their own status code; database failures are
    logged and reported as a generic 500.
    """
    if isinstance(exc, LifecycleError):
        return Response(exc.as_dict(), status=exc.status_code)

    if isinstance(exc, DatabaseError):
        view = context.get("view")
        logger.exception(f"Database error in {type(view).__name__ if view else 'unknown view'}: {exc}")
        return Response(
            {"error": "internal_error", "detail": "The request could not be completed."},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    return exception_handler(exc, context)
