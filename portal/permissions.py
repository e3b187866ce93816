"""
Role based permission classes for the API.

Roles live on the user's :class:`~portal.models.Profile`.  Unlike the
page guard in :mod:`portal.guards` these never sign the caller out; they
only refuse the request.
"""
from typing import Optional

from rest_framework.permissions import BasePermission

from portal.models import Profile


def get_profile(user) -> Optional[Profile]:
    if not (user and getattr(user, 'is_authenticated', False)):
        return None
    try:
        return user.profile
    except Profile.DoesNotExist:
        return None


class HasRole(BasePermission):
    roles: frozenset = frozenset()
    message = 'Your role does not have permission to access this area.'

    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        profile = get_profile(getattr(request, 'user', None))
        return bool(profile and profile.role in self.roles)


class IsAdminRole(HasRole):
    """Administrators only."""
    roles = frozenset({Profile.ROLE_ADMIN})


class IsDepartmentRole(HasRole):
    """Department staff only."""
    roles = frozenset({Profile.ROLE_DEPARTMENT})


class IsDoctorRole(HasRole):
    roles = frozenset({Profile.ROLE_DOCTOR})


class IsDepartmentOrAdmin(HasRole):
    roles = frozenset({Profile.ROLE_DEPARTMENT, Profile.ROLE_ADMIN})


class IsRegistrationStaff(HasRole):
    """Department or registration staff."""
    roles = frozenset({Profile.ROLE_DEPARTMENT, Profile.ROLE_REGISTRATION})


class IsDepartmentOrDoctor(HasRole):
    roles = frozenset({Profile.ROLE_DEPARTMENT, Profile.ROLE_DOCTOR})
