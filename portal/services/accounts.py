from __future__ import annotations

from typing import Optional

import structlog
from django.contrib.auth import authenticate, get_user_model
from django.db import transaction
from rest_framework.exceptions import NotFound, ValidationError

from portal.exceptions import AccessDenied, InvalidCredentials
from portal.models import DoctorRecord, Profile
from portal.services.audit import log_action
from portal.services.identity import AuthContext, IdentityError, SessionStore, identity_key
from portal.services.provisioning import AccountProvisioner
from portal.services.results import AuthResult

logger = structlog.get_logger(__name__)

User = get_user_model()

_UNSET = object()


def list_users():
    return Profile.objects.select_related('department').order_by('-created_at')


def get_profile(user_id: int) -> Profile:
    profile = Profile.objects.select_related('department').filter(pk=user_id).first()
    if profile is None:
        raise NotFound('User not found')
    return profile


def create_user(actor, *, email: str, password: str, username: str, role: str,
                department_id: Optional[int] = None) -> AuthResult:
    result = AccountProvisioner().sign_up(email, password, username, role, department_id=department_id)
    if result.ok:
        log_action(user=actor, action='user_create', object_type='profile', object_id=result.user.id,
                   detail={'role': role, 'department_id': department_id})
    return result


def update_user(actor, profile: Profile, *, username: Optional[str] = None, role: Optional[str] = None,
                department_id=_UNSET) -> Profile:
    fields = []
    if username is not None:
        profile.username = username
        fields.append('username')
    if role is not None:
        profile.role = role
        fields.append('role')
    if department_id is not _UNSET:
        profile.department_id = department_id
        fields.append('department')
    if fields:
        profile.save(update_fields=fields + ['updated_at'])
        log_action(user=actor, action='user_update', object_type='profile', object_id=profile.pk,
                   detail={'fields': fields})
    return profile


def delete_account(actor, user_id: int) -> bool:
    """Remove a user's doctor record, profile and principal.

    Returns False when there was nothing left to delete.
    """
    if actor is not None and actor.pk == user_id:
        raise ValidationError('You cannot delete your own account')
    with transaction.atomic():
        DoctorRecord.objects.filter(profile_id=user_id).delete()
        removed_profile, _ = Profile.objects.filter(pk=user_id).delete()
        try:
            removed_principal = SessionStore().admin_delete_user(user_id)
        except IdentityError as exc:
            raise ValidationError(str(exc)) from exc
    existed = bool(removed_profile or removed_principal)
    if existed:
        log_action(user=actor, action='user_delete', object_type='profile', object_id=user_id)
    logger.info('account_deleted', user_id=user_id, existed=existed)
    return existed


def change_own_password(context: AuthContext, current_password: str, new_password: str) -> None:
    principal = context.principal
    if principal is None:
        raise InvalidCredentials('Not authenticated')
    if authenticate(None, username=identity_key(principal.email), password=current_password) is None:
        raise InvalidCredentials('Current password is incorrect')
    _update_password(principal.id, new_password)
    log_action(user=User.objects.filter(pk=principal.id).first(), action='password_change',
               object_type='profile', object_id=principal.id)


def set_user_password(actor, actor_profile: Profile, user_id: int, new_password: str) -> None:
    """Administrative password reset.  Department staff may only reset their own doctors."""
    target = get_profile(user_id)
    if actor_profile.role == Profile.ROLE_DEPARTMENT and not (
        target.role == Profile.ROLE_DOCTOR and target.department_id == actor_profile.department_id
    ):
        raise AccessDenied('You can only change passwords of doctors in your department')
    _update_password(target.pk, new_password)
    log_action(user=actor, action='password_reset', object_type='profile', object_id=target.pk)


def _update_password(user_id: int, new_password: str) -> None:
    try:
        SessionStore().admin_update_password(user_id, new_password)
    except IdentityError as exc:
        raise ValidationError({'password': [str(exc)]}) from exc
