# backend/contracts/policies.py
from __future__ import annotations

from dataclasses import dataclass

from contracts.errors import PolicyViolation


@dataclass(frozen=True)
class RevisionPolicy:
    """
    Revision allowance agreed in the listing snapshot.

    ``free`` revisions are included; once used up, extra revisions are either
    refused or charged ``fee_cents`` each. An unlimited policy never charges.
    """
    free: int
    limited: bool = True
    extra_allowed: bool = False
    fee_cents: int = 0


@dataclass(frozen=True)
class RevisionQuote:
    is_paid: bool
    fee_cents: int = 0


def quote_revision(policy: RevisionPolicy | None, revisions_done: int) -> RevisionQuote:
    if policy is None:
        raise PolicyViolation("No revision policy is configured for this contract.")

    if not policy.limited or revisions_done < policy.free:
        return RevisionQuote(is_paid=False)

    if not policy.extra_allowed:
        raise PolicyViolation(
            f"Revision limit reached ({policy.free}).",
            free=policy.free,
            used=revisions_done,
        )
    return RevisionQuote(is_paid=policy.fee_cents > 0, fee_cents=policy.fee_cents)
