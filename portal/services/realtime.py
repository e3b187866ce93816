from typing import Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

from portal.models import Patient, Profile

EVENT_INSERT = 'INSERT'
EVENT_UPDATE = 'UPDATE'


def report_group(patient_id: int) -> str:
    return f"reports.patient.{patient_id}"


def broadcast_report_change(patient_id: int, report_id: int, event: str) -> None:
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    payload = {
        "type": "report.changed",
        "event": event,
        "patientId": patient_id,
        "reportId": report_id,
    }
    async_to_sync(channel_layer.group_send)(report_group(patient_id), payload)


def can_access_patient(profile: Optional[Profile], patient: Patient) -> bool:
    """Department staff of the patient's department, or the assigned doctor."""
    if profile is None:
        return False
    if profile.role == Profile.ROLE_DEPARTMENT:
        return bool(profile.department_id) and profile.department_id == patient.department_id
    if profile.role == Profile.ROLE_DOCTOR:
        doctor = patient.assigned_doctor
        return doctor is not None and doctor.profile_id == profile.pk
    return False
