from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response

from portal.exceptions import AccessDenied
from portal.models import DoctorRecord, Profile
from portal.permissions import IsDepartmentOrAdmin
from portal.serializers.doctors import DoctorCreateSerializer, DoctorListQuerySerializer, DoctorSerializer
from portal.services import doctors as svc

from .base import caller_profile, error_response, get_or_404


def _department_scope(profile: Profile, requested) -> int | None:
    """Department staff act on their own department; admins pick one."""
    if profile.role == Profile.ROLE_DEPARTMENT:
        if not profile.department_id:
            raise ValidationError('User not associated with a department')
        return profile.department_id
    return requested


@api_view(['GET', 'POST'])
@permission_classes([IsDepartmentOrAdmin])
def doctors(request):
    profile = caller_profile(request)
    if request.method == 'GET':
        q = DoctorListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        dept_id = _department_scope(profile, q.validated_data.get('department_id'))
        qs = svc.list_doctors(dept_id, search=q.validated_data.get('q'))
        return Response({'ok': True, 'data': DoctorSerializer(qs, many=True).data})

    s = DoctorCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = dict(s.validated_data)
    dept_id = _department_scope(profile, vd.pop('department_id', None))
    result, record = svc.create_doctor(request.user, dept_id, **vd)
    if not result.ok:
        return error_response(result.error)
    return Response({'ok': True, 'data': DoctorSerializer(record).data}, status=201)


@api_view(['DELETE'])
@permission_classes([IsDepartmentOrAdmin])
def doctor_detail(request, doctor_id: int):
    profile = caller_profile(request)
    record = get_or_404(DoctorRecord.objects, 'Doctor not found', pk=doctor_id)
    if profile.role == Profile.ROLE_DEPARTMENT and record.department_id != profile.department_id:
        raise AccessDenied('Doctor belongs to another department')
    svc.delete_doctor(request.user, record)
    return Response({'ok': True})
