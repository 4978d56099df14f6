# backend/contracts/permissions.py
from rest_framework.permissions import BasePermission

from contracts.services.parties import is_admin


class IsContractParty(BasePermission):
    """
    Allows access only to authenticated users who are either:
      - the client or the artist of the contract, or
      - a platform admin (staff/superuser).
    Works with contracts and with anything exposing ``.contract``.
    """

    message = "You are not a party to this contract."

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            self.message = "Authentication required."
            return False
        return True

    def has_object_permission(self, request, view, obj):
        if is_admin(request.user):
            return True
        contract = getattr(obj, "contract", obj)
        return contract.role_of(request.user) is not None


class IsPlatformAdmin(BasePermission):
    message = "Only a platform admin can do this."

    def has_permission(self, request, view):
        return is_admin(request.user)
