from typing import Optional, Tuple

import structlog
from django.db import DEFAULT_DB_ALIAS, transaction
from django.db.models import Q
from rest_framework.exceptions import ValidationError

from portal.exceptions import DoctorProfileError
from portal.models import DoctorRecord, Profile
from portal.services.accounts import delete_account
from portal.services.audit import log_action
from portal.services.identity import Principal
from portal.services.provisioning import AccountProvisioner
from portal.services.results import AuthResult

logger = structlog.get_logger(__name__)


@transaction.atomic
def ensure_doctor_record(principal: Principal) -> Tuple[DoctorRecord, bool]:
    """Return the principal's doctor record, creating it on first use.

    Calling it again for a doctor that already has a record is a no-op.
    Reads the primary database so a just-written profile is visible.
    """
    profile = Profile.objects.using(DEFAULT_DB_ALIAS).filter(pk=principal.id).first()
    if profile is None:
        raise DoctorProfileError('User profile not found')
    if profile.role != Profile.ROLE_DOCTOR:
        raise DoctorProfileError('User is not a doctor')

    pending = (principal.metadata or {}).get('pending_doctor_info') or {}
    record, created = DoctorRecord.objects.using(DEFAULT_DB_ALIAS).get_or_create(
        profile=profile,
        defaults={
            'name': pending.get('name') or profile.username,
            'email': profile.email,
            'department_id': pending.get('department_id') or profile.department_id,
        },
    )
    if created:
        logger.info('doctor_record_created', principal_id=principal.id, doctor_id=record.pk)
    return record, created


def doctor_for_user(user) -> Optional[DoctorRecord]:
    if user is None:
        return None
    return DoctorRecord.objects.filter(profile_id=user.pk).first()


def list_doctors(department_id: Optional[int], *, search: Optional[str] = None):
    qs = DoctorRecord.objects.filter(department_id=department_id).select_related('profile', 'department')
    term = (search or '').strip()
    if term:
        qs = qs.filter(Q(name__icontains=term) | Q(email__icontains=term) | Q(phone_number__icontains=term))
    return qs.order_by('-created_at')


def create_doctor(actor, department_id: Optional[int], *, name: str, email: str, username: str, password: str,
                  phone_number: str = '', specialization: str = '',
                  qualifications: str = '') -> Tuple[AuthResult, Optional[DoctorRecord]]:
    """Create a doctor account in ``department_id`` and its doctor record."""
    if not department_id:
        raise ValidationError('Failed to get department information')
    pending = {'name': name, 'department_id': department_id}
    result = AccountProvisioner().sign_up(
        email, password, username, Profile.ROLE_DOCTOR,
        department_id=department_id,
        metadata={'pending_doctor_info': pending},
    )
    if not result.ok:
        return result, None

    principal = Principal(id=result.user.id, email=result.user.email, metadata={'pending_doctor_info': pending})
    record, _ = ensure_doctor_record(principal)
    extra = {'phone_number': phone_number, 'specialization': specialization, 'qualifications': qualifications}
    changed = [k for k, v in extra.items() if v]
    if changed:
        for k in changed:
            setattr(record, k, extra[k])
        record.save(update_fields=changed + ['updated_at'])

    log_action(user=actor, action='doctor_create', object_type='doctor', object_id=record.pk,
               detail={'department_id': department_id})
    return result, record


@transaction.atomic
def delete_doctor(actor, record: DoctorRecord) -> None:
    if record.patients.exists():
        raise ValidationError('Cannot delete doctor with active patients')
    user_id = record.profile_id
    doctor_id = record.pk
    record.delete()
    delete_account(actor, user_id)
    log_action(user=actor, action='doctor_delete', object_type='doctor', object_id=doctor_id)
