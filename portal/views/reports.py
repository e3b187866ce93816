"""
Patient report endpoints.

Department staff of the patient's department and the patient's assigned
doctor may read reports; doctors only ever see published ones.
"""
from __future__ import annotations

import os

from django.http import FileResponse
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from portal.exceptions import AccessDenied
from portal.models import Patient, PatientReport, Profile
from portal.permissions import IsDepartmentOrDoctor, IsDepartmentRole
from portal.serializers.reports import PatientReportSerializer, PatientReportWriteSerializer
from portal.services import reports as svc
from portal.services.realtime import can_access_patient

from .base import caller_profile, get_or_404


def _checked_patient(profile: Profile, patient: Patient) -> Patient:
    if not can_access_patient(profile, patient):
        raise AccessDenied('You do not have access to this patient')
    return patient


def _truthy(value) -> bool:
    return str(value or '').lower() in {'1', 'true', 'yes'}


@api_view(['GET', 'POST'])
@permission_classes([IsDepartmentOrDoctor])
def patient_reports(request, patient_id: int):
    profile = caller_profile(request)
    patient = _checked_patient(profile, get_or_404(
        Patient.objects.select_related('assigned_doctor'), 'Patient not found', pk=patient_id))

    if request.method == 'GET':
        include_drafts = profile.role == Profile.ROLE_DEPARTMENT and _truthy(request.query_params.get('include_drafts'))
        qs = svc.list_reports(patient, include_drafts=include_drafts)
        return Response({'ok': True, 'data': PatientReportSerializer(qs, many=True).data})

    s = PatientReportWriteSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    report = svc.save_report(request.user, patient, **s.validated_data)
    return Response({'ok': True, 'data': PatientReportSerializer(report).data}, status=201)


@api_view(['PUT'])
@permission_classes([IsDepartmentRole])
def report_detail(request, report_id: int):
    profile = caller_profile(request)
    report = svc.get_report(report_id)
    patient = _checked_patient(profile, report.patient)

    s = PatientReportWriteSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    report = svc.save_report(request.user, patient, report=report, **s.validated_data)
    return Response({'ok': True, 'data': PatientReportSerializer(report).data})


@api_view(['GET'])
@permission_classes([IsDepartmentOrDoctor])
def report_download(request, report_id: int):
    profile = caller_profile(request)
    report = svc.get_report(report_id)
    _checked_patient(profile, report.patient)
    if profile.role == Profile.ROLE_DOCTOR and report.status != PatientReport.STATUS_PUBLISHED:
        raise AccessDenied('Report is not published')
    fh = svc.open_report_file(report)
    return FileResponse(fh, as_attachment=True, filename=os.path.basename(report.file_path) or 'report')
