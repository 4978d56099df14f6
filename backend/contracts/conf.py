# backend/contracts/conf.py
from __future__ import annotations

from datetime import timedelta

from django.conf import settings

DEFAULTS = {
    "TICKET_RESPONSE_WINDOW_HOURS": 48,
    "UPLOAD_REVIEW_WINDOW_HOURS": 24,
    "COUNTERPROOF_WINDOW_HOURS": 24,
    "DEFAULT_GRACE_DAYS": 7,
    "DEFAULT_LATE_PENALTY_PERCENT": 10,
    "RESOLUTION_MIN_DESCRIPTION_LENGTH": 10,
}


def lifecycle_setting(name: str) -> int:
    configured = getattr(settings, "CONTRACT_LIFECYCLE", None) or {}
    return int(configured.get(name, DEFAULTS[name]))


def ticket_response_window() -> timedelta:
    return timedelta(hours=lifecycle_setting("TICKET_RESPONSE_WINDOW_HOURS"))


def upload_review_window() -> timedelta:
    return timedelta(hours=lifecycle_setting("UPLOAD_REVIEW_WINDOW_HOURS"))


def counterproof_window() -> timedelta:
    return timedelta(hours=lifecycle_setting("COUNTERPROOF_WINDOW_HOURS"))


def default_grace_days() -> int:
    return lifecycle_setting("DEFAULT_GRACE_DAYS")


def default_late_penalty_percent() -> int:
    return lifecycle_setting("DEFAULT_LATE_PENALTY_PERCENT")


def resolution_min_description_length() -> int:
    return lifecycle_setting("RESOLUTION_MIN_DESCRIPTION_LENGTH")
