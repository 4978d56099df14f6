# contracts/signals.py

import logging
from functools import partial

from django.db import transaction
from django.db.models.signals import post_save, pre_save

from .models import (
    CancelTicket,
    ChangeTicket,
    Contract,
    FinalUpload,
    ProgressUploadMilestone,
    ResolutionTicket,
    RevisionTicket,
    RevisionUpload,
)
from .tasks import task_send_lifecycle_notification

logger = logging.getLogger(__name__)

NOTIFYING_MODELS = (
    Contract,
    CancelTicket,
    RevisionTicket,
    ChangeTicket,
    ProgressUploadMilestone,
    RevisionUpload,
    FinalUpload,
    ResolutionTicket,
)


def cache_previous_status(sender, instance, **kwargs):
    """
    On an existing row, remember the stored status so post_save can tell
    whether this save was a transition.
    """
    instance._previous_status = None
    if instance.pk:
        instance._previous_status = sender.objects.filter(pk=instance.pk).values_list("status", flat=True).first()


def _dispatch(label, pk):
    try:
        task_send_lifecycle_notification.delay(label, pk)
        logger.info(f"Lifecycle notification dispatched for {label} #{pk}.")
    except Exception as e:
        logger.error(f"Error dispatching lifecycle notification for {label} #{pk}: {e}")


def notify_on_transition(sender, instance, created, **kwargs):
    """
    After a row is created or its status changes, queue a notification once
    the surrounding transaction commits.
    """
    if instance.status is None:
        return
    if not created and instance.status == getattr(instance, "_previous_status", None):
        return
    transaction.on_commit(partial(_dispatch, sender._meta.label, instance.pk))


def connect():
    for model in NOTIFYING_MODELS:
        pre_save.connect(cache_previous_status, sender=model, dispatch_uid=f"lifecycle-pre-{model._meta.label}")
        post_save.connect(notify_on_transition, sender=model, dispatch_uid=f"lifecycle-post-{model._meta.label}")
