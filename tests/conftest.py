"""
Shared fixtures for the contract lifecycle tests.

- factory_boy factories for users
- contracts created through ``create_contract`` (so escrow is funded the same
  way production does it)
- a fixed ``now`` that every service call receives explicitly, so expiry is
  driven by the test rather than the wall clock

RUNNING TESTS:
    pytest
    pytest tests/test_resolution.py -v
"""

from datetime import timedelta

import factory
import pytest
from django.utils import timezone
from factory.django import DjangoModelFactory
from rest_framework.test import APIClient

from contracts.models import CancellationFeeKind, ContractFlow, RevisionType
from contracts.policies import RevisionPolicy
from contracts.services.contracts import create_contract

PASSWORD = "testpass123"
TOTAL = 1_000_000


# ============================================================================
# USER FACTORIES
# ============================================================================

class UserFactory(DjangoModelFactory):
    """Factory for accounts.User (email login)."""

    class Meta:
        model = "accounts.User"
        django_get_or_create = ("email",)

    email = factory.Sequence(lambda n: f"user{n}@example.com")
    first_name = factory.Faker("first_name")
    last_name = factory.Faker("last_name")
    password = factory.django.Password(PASSWORD)
    is_active = True
    is_verified = True


class AdminFactory(UserFactory):
    """Platform admin: arbitrates resolution tickets."""

    is_staff = True
    is_superuser = True


# ============================================================================
# USERS
# ============================================================================

@pytest.fixture
def client_user(db):
    return UserFactory(display_name="Client")


@pytest.fixture
def artist_user(db):
    return UserFactory(display_name="Artist")


@pytest.fixture
def outsider(db):
    return UserFactory(display_name="Outsider")


@pytest.fixture
def admin_user(db):
    return AdminFactory(display_name="Admin")


# ============================================================================
# TIME
# ============================================================================

@pytest.fixture
def now():
    return timezone.now().replace(microsecond=0)


@pytest.fixture
def later(now):
    """Returns ``now`` shifted by the given number of hours."""
    def _later(hours):
        return now + timedelta(hours=hours)
    return _later


# ============================================================================
# CONTRACTS
# ============================================================================

@pytest.fixture
def make_contract(client_user, artist_user, now):
    """
    Build an active contract. Defaults: standard flow, 10,000.00 total, flat
    500.00 cancellation fee, 10% late penalty, deadline in 30 days.
    """
    def _make(**overrides):
        params = {
            "client": client_user,
            "artist": artist_user,
            "deadline_at": now + timedelta(days=30),
            "base_price_cents": TOTAL,
            "cancellation_fee_kind": CancellationFeeKind.FLAT,
            "cancellation_fee_amount": 50_000,
            "late_penalty_percent": 10,
            "grace_days": 7,
            "now": now,
        }
        params.update(overrides)
        return create_contract(**params)
    return _make


@pytest.fixture
def contract(make_contract):
    return make_contract()


@pytest.fixture
def revision_contract(make_contract):
    """One free revision, then extra revisions at 50.00 each."""
    return make_contract(
        revision_type=RevisionType.STANDARD,
        revision_policy=RevisionPolicy(free=1, limited=True, extra_allowed=True, fee_cents=5_000),
    )


@pytest.fixture
def change_contract(make_contract):
    return make_contract(
        allow_contract_change=True,
        changeable_fields=["deadline_at", "description"],
        description="Portrait, bust, flat colours",
    )


@pytest.fixture
def milestone_contract(make_contract):
    return make_contract(
        flow=ContractFlow.MILESTONE,
        milestones=[
            {"title": "Sketch", "percent": 30},
            {"title": "Line art", "percent": 30},
            {"title": "Colour", "percent": 40},
        ],
    )


# ============================================================================
# API
# ============================================================================

@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def auth_client():
    """Returns an APIClient authenticated as the given user."""
    def _client(user):
        client = APIClient()
        client.force_authenticate(user=user)
        return client
    return _client
