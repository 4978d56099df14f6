# backend/contracts/models/base.py
from __future__ import annotations

from django.db import models
from django.utils import timezone

from contracts.errors import InvalidState


class PartyRole(models.TextChoices):
    CLIENT = "client", "Client"
    ARTIST = "artist", "Artist"

    @classmethod
    def opposite(cls, role: str) -> "PartyRole":
        return cls.ARTIST if role == cls.CLIENT else cls.CLIENT


class ResponseDecision(models.TextChoices):
    ACCEPT = "accept", "Accept"
    REJECT = "reject", "Reject"


class LifecycleQuerySet(models.QuerySet):
    def awaiting(self):
        return self.filter(status__in=self.model.AWAITING_STATUSES)

    def expired(self, as_of):
        return self.awaiting().filter(expires_at__isnull=False, expires_at__lt=as_of)


class LifecycleModel(models.Model):
    """
    Abstract base for tickets, uploads and resolution tickets.

    Subclasses declare:
      - ``TRANSITIONS``: current status -> statuses it may move to
      - ``TERMINAL_STATUSES``: statuses that stamp ``closing_field``
      - ``AWAITING_STATUSES``: statuses waiting on the other party (subject to expiry)
      - ``DISPUTABLE_STATUSES`` / ``RESOLUTION_TARGET_TYPE`` when the entity can
        be escalated to a resolution ticket
    """
    TRANSITIONS: dict = {}
    TERMINAL_STATUSES: frozenset = frozenset()
    AWAITING_STATUSES: frozenset = frozenset()
    DISPUTABLE_STATUSES: frozenset = frozenset()
    RESOLUTION_TARGET_TYPE: str | None = None
    closing_field = "resolved_at"

    expires_at = models.DateTimeField(null=True, blank=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = LifecycleQuerySet.as_manager()

    class Meta:
        abstract = True

    def can_transition(self, new_status: str) -> bool:
        return new_status in self.TRANSITIONS.get(self.status, ())

    def transition(self, new_status: str, *, at=None):
        if not self.can_transition(new_status):
            raise InvalidState(
                f"{self._meta.verbose_name.capitalize()} cannot move from '{self.status}' to '{new_status}'.",
                current=self.status,
                requested=new_status,
            )
        self.status = new_status
        if new_status in self.TERMINAL_STATUSES:
            setattr(self, self.closing_field, at or timezone.now())
        else:
            setattr(self, self.closing_field, None)
        return self

    def is_awaiting(self) -> bool:
        return self.status in self.AWAITING_STATUSES

    def is_expired(self, as_of) -> bool:
        return self.is_awaiting() and self.expires_at is not None and self.expires_at < as_of

    def lifecycle_fields(self) -> list[str]:
        return ["status", self.closing_field, "updated_at"]
