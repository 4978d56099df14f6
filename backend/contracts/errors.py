# backend/contracts/errors.py
"""
Expected failures raised by the contract lifecycle services.

Every error carries a stable ``code`` that API clients can switch on, a human
readable ``message`` and the HTTP status the API layer answers with. Anything
that is *not* a ``LifecycleError`` is treated as an unexpected backend failure.
"""
from __future__ import annotations


class LifecycleError(Exception):
    code = "lifecycle_error"
    status_code = 400

    def __init__(self, message: str = "", **details):
        super().__init__(message)
        self.message = message or self.__class__.__name__
        self.details = details

    def as_dict(self) -> dict:
        payload = {"error": self.code, "detail": self.message}
        if self.details:
            payload["context"] = self.details
        return payload

    def __str__(self) -> str:
        return self.message


class NotFound(LifecycleError):
    """Contract, ticket, upload or resolution ticket does not exist."""
    code = "not_found"
    status_code = 404


class Unauthorized(LifecycleError):
    """Caller is not the party (or admin) the operation requires."""
    code = "unauthorized"
    status_code = 403


class InvalidState(LifecycleError):
    """Operation attempted from a status that does not permit it."""
    code = "invalid_state"
    status_code = 400


class PolicyViolation(LifecycleError):
    """The contract's terms disallow the requested operation."""
    code = "policy_violation"
    status_code = 400


class Conflict(LifecycleError):
    """A blocking unresolved ticket, upload or dispute already exists."""
    code = "conflict"
    status_code = 409


class WindowClosed(LifecycleError):
    """Acted after an expiry deadline; the timeout transition has been applied."""
    code = "window_closed"
    status_code = 410


class InvalidRequest(LifecycleError):
    """Malformed input: missing reason, no images, out-of-range percentages."""
    code = "invalid_request"
    status_code = 400
