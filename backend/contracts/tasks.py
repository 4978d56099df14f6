# contracts/tasks.py

import logging

from celery import shared_task  # type: ignore
from django.apps import apps
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from contracts.notifications import notify_lifecycle_change
from contracts.services import contracts as contract_service
from contracts.services import resolution, tickets, uploads

logger = logging.getLogger(__name__)


def _as_of(value):
    """Scheduler sends nothing (use now) or an ISO timestamp for replays."""
    if not value:
        return timezone.now()
    parsed = parse_datetime(value)
    if parsed is None:
        raise ValueError(f"as_of must be an ISO-8601 datetime, got {value!r}")
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


# --- NOTIFICATION TASKS ---

@shared_task(name="send_lifecycle_notification")
def task_send_lifecycle_notification(model_label: str, pk: int):
    """
    Fire-and-forget notification for a lifecycle status change. Dispatched
    from ``contracts.signals`` after the transition has committed.
    """
    model = apps.get_model(model_label)
    try:
        instance = model.objects.get(pk=pk)
    except model.DoesNotExist:
        logger.warning(f"{model_label} #{pk} not found for notification task.")
        return
    try:
        notify_lifecycle_change(instance)
        logger.info(f"Lifecycle notification sent for {model_label} #{pk} ({instance.status}).")
    except Exception as e:
        logger.error(f"Error in task_send_lifecycle_notification for {model_label} #{pk}: {e}")


# --- SCHEDULED SWEEPS (via CELERY_BEAT_SCHEDULE) ---

@shared_task(name="auto_resolve_expired_tickets")
def task_auto_resolve_expired_tickets(as_of=None):
    """Cancel → forced_accepted, revision → forced_accepted_artist, change → cancelled."""
    counts = tickets.auto_resolve_tickets(_as_of(as_of))
    logger.info(f"Ticket sweep finished: {counts}")
    return counts


@shared_task(name="auto_resolve_expired_uploads")
def task_auto_resolve_expired_uploads(as_of=None):
    """Unreviewed uploads past their review window are accepted."""
    counts = uploads.auto_resolve_uploads(_as_of(as_of))
    logger.info(f"Upload sweep finished: {counts}")
    return counts


@shared_task(name="expire_counterproof_windows")
def task_expire_counterproof_windows(as_of=None):
    moved = resolution.expire_counter_windows(_as_of(as_of))
    logger.info(f"Counterproof sweep finished: {moved} moved to review")
    return {"resolution": moved}


@shared_task(name="mark_overdue_contracts_not_completed")
def task_mark_overdue_contracts_not_completed(as_of=None):
    moved = contract_service.expire_overdue_contracts(_as_of(as_of))
    logger.info(f"Overdue contract sweep finished: {moved} not completed")
    return {"contract": moved}
