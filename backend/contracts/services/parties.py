# backend/contracts/services/parties.py
"""Authorization checks shared by every lifecycle operation."""
from __future__ import annotations

from contracts.errors import Unauthorized
from contracts.models import PartyRole


def is_admin(user) -> bool:
    if user is None or not getattr(user, "is_authenticated", False):
        return False
    return bool(getattr(user, "is_staff", False) or getattr(user, "is_superuser", False))


def require_party(contract, user, role: str | None = None) -> str:
    """Return the caller's role on ``contract``; raise ``Unauthorized`` otherwise."""
    actual = contract.role_of(user)
    if actual is None:
        raise Unauthorized("You are not a party to this contract.", contract=contract.pk)
    if role is not None and actual != role:
        raise Unauthorized(
            f"Only the {PartyRole(role).label.lower()} can do this.",
            contract=contract.pk,
            required_role=role,
        )
    return actual


def require_admin(user) -> None:
    if not is_admin(user):
        raise Unauthorized("Only a platform admin can do this.")
