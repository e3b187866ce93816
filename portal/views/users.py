"""
User account management.

Administrators list, create, edit and delete accounts.  Creating an
account goes through the same provisioning flow as self sign-up; deleting
one removes doctor record, profile and principal together.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from portal.permissions import IsAdminRole, IsDepartmentOrAdmin
from portal.serializers.auth import SetPasswordSerializer
from portal.serializers.users import ProfileSerializer, UserCreateSerializer, UserUpdateSerializer
from portal.services import accounts

from .base import caller_profile, error_response


@api_view(['GET', 'POST'])
@permission_classes([IsAdminRole])
def users(request):
    if request.method == 'GET':
        return Response({'ok': True, 'data': ProfileSerializer(accounts.list_users(), many=True).data})

    s = UserCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    department = vd.get('department')
    result = accounts.create_user(
        request.user,
        email=vd['email'],
        password=vd['password'],
        username=vd['username'],
        role=vd['role'],
        department_id=department.pk if department else None,
    )
    if not result.ok:
        return error_response(result.error)
    profile = accounts.get_profile(result.user.id)
    return Response({'ok': True, 'data': ProfileSerializer(profile).data}, status=201)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAdminRole])
def user_detail(request, user_id: int):
    if request.method == 'DELETE':
        accounts.get_profile(user_id)
        accounts.delete_account(request.user, user_id)
        return Response({'ok': True})

    profile = accounts.get_profile(user_id)
    if request.method == 'GET':
        return Response({'ok': True, 'data': ProfileSerializer(profile).data})

    s = UserUpdateSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    changes = {k: vd[k] for k in ('username', 'role') if k in vd}
    if 'department' in vd:
        changes['department_id'] = vd['department'].pk if vd['department'] else None
    profile = accounts.update_user(request.user, profile, **changes)
    return Response({'ok': True, 'data': ProfileSerializer(accounts.get_profile(profile.pk)).data})


@api_view(['POST'])
@permission_classes([IsDepartmentOrAdmin])
def user_password(request, user_id: int):
    s = SetPasswordSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    accounts.set_user_password(request.user, caller_profile(request), user_id, s.validated_data['password'])
    return Response({'ok': True})
