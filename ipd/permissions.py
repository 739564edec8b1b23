"""
Role based permission classes for the ward staff.
"""
from rest_framework.permissions import BasePermission, SAFE_METHODS

ADMIN_ROLES = {"admin", "super"}


def _role(request):
    user = getattr(request, "user", None)
    if not (user and user.is_authenticated):
        return None
    return getattr(user, "role", None)


class HasRole(BasePermission):
    """Allow users whose role is in ``roles``; admin roles always pass."""
    roles: frozenset = frozenset()

    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        role = _role(request)
        return bool(role and (role in ADMIN_ROLES or role in self.roles))


class IsAdminRole(HasRole):
    """Administrators only."""


class CanAdmit(HasRole):
    """Front desk admits patients."""
    roles = frozenset({"reception"})


class CanBill(HasRole):
    """Billing staff record ledger entries and discharge."""
    roles = frozenset({"billing"})


class IsWardStaff(HasRole):
    roles = frozenset({"reception", "nurse", "billing"})


class CanBillOrWardRead(HasRole):
    """Ward staff read; billing writes."""

    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        role = _role(request)
        if not role:
            return False
        if role in ADMIN_ROLES:
            return True
        if request.method in SAFE_METHODS:
            return role in IsWardStaff.roles
        return role in CanBill.roles
