from datetime import date
from typing import Iterable, Optional

import structlog
from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone
from rest_framework.exceptions import NotFound, ValidationError

from portal.exceptions import AlreadyExists
from portal.models import DoctorRecord, Patient, PatientTest, Profile, TestSubtype, TestType
from portal.services.audit import log_action

logger = structlog.get_logger(__name__)

DUPLICATE_REGISTRATION = 'A patient with this registration number already exists'


def _with_tests(qs):
    return qs.select_related('department', 'assigned_doctor').prefetch_related(
        'tests__test_type', 'tests__test_subtype',
    )


@transaction.atomic
def register_patient(actor, actor_profile: Profile, *, name: str, age: int, sex: str,
                     general_registration_number: str, tests: Iterable[dict],
                     registration_date: Optional[date] = None, contact_info: str = '',
                     assigned_doctor_id: Optional[int] = None) -> Patient:
    department_id = actor_profile.department_id
    if not department_id:
        raise ValidationError('User not associated with a department')
    tests = list(tests or [])
    if not tests:
        raise ValidationError({'tests': ['Please select at least one test']})

    test_types = {t.pk: t for t in TestType.objects.filter(
        department_id=department_id, pk__in=[t['test_type_id'] for t in tests])}
    subtype_ids = [t['test_subtype_id'] for t in tests if t.get('test_subtype_id')]
    subtypes = {s.pk: s for s in TestSubtype.objects.filter(pk__in=subtype_ids)}
    for item in tests:
        if item['test_type_id'] not in test_types:
            raise ValidationError({'tests': [f"Unknown test type {item['test_type_id']}"]})
        sub_id = item.get('test_subtype_id')
        if sub_id and (sub_id not in subtypes or subtypes[sub_id].test_type_id != item['test_type_id']):
            raise ValidationError({'tests': [f'Unknown subtype {sub_id}']})

    if assigned_doctor_id and not DoctorRecord.objects.filter(
            pk=assigned_doctor_id, department_id=department_id).exists():
        raise ValidationError({'assigned_doctor': ['Doctor not found in your department']})

    if Patient.objects.filter(general_registration_number=general_registration_number).exists():
        raise AlreadyExists(DUPLICATE_REGISTRATION)
    try:
        with transaction.atomic():
            patient = Patient.objects.create(
                name=name,
                age=age,
                sex=sex,
                general_registration_number=general_registration_number,
                registration_date=registration_date or timezone.localdate(),
                contact_info=contact_info or '',
                department_id=department_id,
                assigned_doctor_id=assigned_doctor_id,
            )
    except IntegrityError as exc:
        raise AlreadyExists(DUPLICATE_REGISTRATION) from exc

    PatientTest.objects.bulk_create([
        PatientTest(
            patient=patient,
            test_type_id=item['test_type_id'],
            test_subtype_id=item.get('test_subtype_id') or None,
            department_id=department_id,
            status=PatientTest.STATUS_ASSIGNED,
        )
        for item in tests
    ])
    log_action(user=actor, action='patient_register', object_type='patient', object_id=patient.pk,
               detail={'tests': len(tests), 'assigned_doctor_id': assigned_doctor_id})
    logger.info('patient_registered', patient_id=patient.pk, department_id=department_id)
    return patient


def search_patients(department_id: Optional[int], *, search: Optional[str] = None,
                    date_from: Optional[date] = None, date_to: Optional[date] = None):
    qs = Patient.objects.filter(department_id=department_id)
    if date_from:
        qs = qs.filter(registration_date__gte=date_from)
    if date_to:
        qs = qs.filter(registration_date__lte=date_to)
    term = (search or '').strip()
    if term:
        qs = qs.filter(Q(name__icontains=term) | Q(general_registration_number__icontains=term))
    return _with_tests(qs).order_by('-registration_date', '-created_at')


def doctor_patients(doctor: DoctorRecord):
    return _with_tests(Patient.objects.filter(assigned_doctor=doctor)).order_by('-created_at')


def doctor_patient(doctor: DoctorRecord, patient_id: int) -> Patient:
    patient = _with_tests(Patient.objects.filter(pk=patient_id, assigned_doctor=doctor)).first()
    if patient is None:
        raise NotFound('Patient not found or not assigned to you')
    return patient
