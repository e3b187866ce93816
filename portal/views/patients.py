from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound
from rest_framework.response import Response

from portal.permissions import IsDoctorRole, IsRegistrationStaff
from portal.serializers.patients import PatientRegisterSerializer, PatientSearchQuerySerializer, PatientSerializer
from portal.services import patients as svc
from portal.services.doctors import doctor_for_user

from .base import caller_profile


@api_view(['GET', 'POST'])
@permission_classes([IsRegistrationStaff])
def patients(request):
    """``GET`` searches the caller's department; ``POST`` registers a patient with tests."""
    profile = caller_profile(request)
    if request.method == 'GET':
        q = PatientSearchQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        qs = svc.search_patients(
            profile.department_id,
            search=q.validated_data.get('q'),
            date_from=q.validated_data.get('date_from'),
            date_to=q.validated_data.get('date_to'),
        )
        return Response({'ok': True, 'data': PatientSerializer(qs, many=True).data})

    s = PatientRegisterSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    patient = svc.register_patient(request.user, profile, **s.validated_data)
    patient = svc.search_patients(profile.department_id).get(pk=patient.pk)
    return Response({'ok': True, 'data': PatientSerializer(patient).data}, status=201)


def _doctor(request):
    doctor = doctor_for_user(request.user)
    if doctor is None:
        raise NotFound('Doctor profile not found')
    return doctor


@api_view(['GET'])
@permission_classes([IsDoctorRole])
def doctor_patients(request):
    qs = svc.doctor_patients(_doctor(request))
    return Response({'ok': True, 'data': PatientSerializer(qs, many=True).data})


@api_view(['GET'])
@permission_classes([IsDoctorRole])
def doctor_patient_detail(request, patient_id: int):
    patient = svc.doctor_patient(_doctor(request), patient_id)
    return Response({'ok': True, 'data': PatientSerializer(patient).data})
