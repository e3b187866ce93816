"""
Patient reports.

Saving a report may upload a file, replaces (and removes) the previous
file, notifies the assigned doctor of urgent published reports and
broadcasts a change event to the patient's realtime group.
"""
from typing import Optional

import structlog
from django.db import DatabaseError, transaction
from rest_framework.exceptions import NotFound

from portal.models import Notification, Patient, PatientReport
from portal.services.audit import log_action
from portal.services.notifications import create_notification
from portal.services.realtime import EVENT_INSERT, EVENT_UPDATE, broadcast_report_change
from portal.services.storage import ReportStorage, report_file_path, validate_upload

logger = structlog.get_logger(__name__)

UNKNOWN_AUTHOR = 'Unknown'


def list_reports(patient: Patient, *, include_drafts: bool = False):
    qs = PatientReport.objects.filter(patient=patient).select_related('created_by__profile')
    if not include_drafts:
        qs = qs.filter(status=PatientReport.STATUS_PUBLISHED)
    return qs.order_by('-created_at')


def author_name(report: PatientReport) -> str:
    user = report.created_by
    profile = getattr(user, 'profile', None) if user else None
    return (profile.username if profile else None) or UNKNOWN_AUTHOR


def get_report(report_id: int) -> PatientReport:
    report = PatientReport.objects.select_related('patient', 'patient__assigned_doctor').filter(pk=report_id).first()
    if report is None:
        raise NotFound('Report not found')
    return report


def save_report(actor, patient: Patient, *, title: str, content: str = '',
                priority: str = PatientReport.PRIORITY_NORMAL, status: str = PatientReport.STATUS_DRAFT,
                file=None, report: Optional[PatientReport] = None,
                storage: Optional[ReportStorage] = None) -> PatientReport:
    storage = storage or ReportStorage()
    new_path = None
    if file is not None:
        validate_upload(file)
        new_path = storage.upload(report_file_path(file.name), file)
    old_path = report.file_path if (report is not None and new_path) else None
    event = EVENT_INSERT if report is None else EVENT_UPDATE

    try:
        with transaction.atomic():
            if report is None:
                report = PatientReport.objects.create(
                    patient=patient, title=title, content=content or '', priority=priority, status=status,
                    file_path=new_path, created_by=actor,
                )
            else:
                report.title = title
                report.content = content or ''
                report.priority = priority
                report.status = status
                if new_path:
                    report.file_path = new_path
                report.save()
    except DatabaseError:
        if new_path:
            storage.remove(new_path)
        raise

    if old_path:
        try:
            storage.remove(old_path)
        except OSError as exc:
            logger.warning('report_file_remove_failed', report_id=report.pk, path=old_path, error=str(exc))

    if report.priority == PatientReport.PRIORITY_URGENT and report.status == PatientReport.STATUS_PUBLISHED:
        notify_assigned_doctor(patient, report)

    log_action(user=actor, action='report_save', object_type='report', object_id=report.pk,
               detail={'event': event, 'priority': report.priority, 'status': report.status,
                       'file': bool(new_path)})
    try:
        broadcast_report_change(patient.pk, report.pk, event)
    except Exception as exc:
        # the report is already committed
        logger.warning('report_broadcast_failed', report_id=report.pk, patient_id=patient.pk, error=str(exc))
    return report


def notify_assigned_doctor(patient: Patient, report: PatientReport) -> Optional[Notification]:
    """Notify the patient's doctor about an urgent report.  Failures are logged only."""
    doctor = patient.assigned_doctor
    if doctor is None:
        return None
    try:
        with transaction.atomic():
            return create_notification(
                user_id=doctor.profile_id,
                title='Urgent Report',
                message=f'New urgent report for patient {patient.name}: {report.title}',
                type=Notification.TYPE_URGENT_REPORT,
                metadata={'report_id': report.pk, 'patient_id': patient.pk},
            )
    except DatabaseError as exc:
        logger.warning('urgent_notification_failed', report_id=report.pk, doctor_id=doctor.pk, error=str(exc))
        return None


def open_report_file(report: PatientReport, *, storage: Optional[ReportStorage] = None):
    if not report.file_path:
        raise NotFound('Report has no attached file')
    return (storage or ReportStorage()).download(report.file_path)
