"""
Department management (administrators only).
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from portal.models import Department
from portal.permissions import IsAdminRole
from portal.serializers.departments import DepartmentSerializer
from portal.services import departments as svc

from .base import get_or_404


@api_view(['GET', 'POST'])
@permission_classes([IsAdminRole])
def departments(request):
    """``GET`` lists departments by name with user counts; ``POST`` creates one."""
    if request.method == 'GET':
        return Response({'ok': True, 'data': DepartmentSerializer(svc.list_departments(), many=True).data})

    s = DepartmentSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    dept = svc.create_department(request.user, **s.validated_data)
    return Response({'ok': True, 'data': DepartmentSerializer(dept).data}, status=201)


@api_view(['PUT', 'DELETE'])
@permission_classes([IsAdminRole])
def department_detail(request, dept_id: int):
    dept = get_or_404(Department.objects, 'Department not found', pk=dept_id)
    if request.method == 'DELETE':
        svc.delete_department(request.user, dept)
        return Response({'ok': True})

    s = DepartmentSerializer(dept, data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    dept = svc.update_department(request.user, dept, **s.validated_data)
    return Response({'ok': True, 'data': DepartmentSerializer(dept).data})
