"""
Authentication endpoints.

Sign-up and sign-in run the provisioning and session resolution flows and
translate their :class:`~portal.services.results.AuthResult` into the API
envelope.  ``/api/auth/guard`` lets the client ask, before rendering a
page, whether the current session may enter it.
"""
from __future__ import annotations

import structlog
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.views import TokenRefreshView

from portal.guards import dashboard_for, evaluate_path
from portal.serializers.auth import ChangePasswordSerializer, GuardQuerySerializer, SignInSerializer, SignUpSerializer
from portal.services.accounts import change_own_password
from portal.services.audit import log_action
from portal.services.identity import AuthContext, SessionStore
from portal.services.provisioning import AccountProvisioner
from portal.services.sessions import SessionResolver

from .base import error_response

logger = structlog.get_logger(__name__)


@api_view(['POST'])
@permission_classes([AllowAny])
def sign_up_view(request):
    s = SignUpSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data

    result = AccountProvisioner().sign_up(vd['email'], vd['password'], vd['username'], vd['role'])
    if not result.ok:
        return error_response(result.error)

    log_action(user=None, action='sign_up', object_type='profile', object_id=result.user.id,
               detail={'role': result.user.role, 'ip': request.META.get('REMOTE_ADDR')})
    return Response({'ok': True, **result.as_dict()}, status=201)


sign_up_view.cls.throttle_scope = 'sign_up'


@api_view(['POST'])
@permission_classes([AllowAny])
def sign_in_view(request):
    s = SignInSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data

    context = AuthContext()
    result = SessionResolver().sign_in(context, vd['email'], vd['password'])
    if not result.ok:
        log_action(user=None, action='sign_in', object_type='profile',
                   detail={'result': result.error.code, 'email': vd['email'],
                           'ip': request.META.get('REMOTE_ADDR')})
        return error_response(result.error)

    log_action(user=None, action='sign_in', object_type='profile', object_id=result.user.id,
               detail={'result': 'ok', 'ip': request.META.get('REMOTE_ADDR')})
    payload = {
        'ok': True,
        **result.as_dict(),
        **result.session.credentials(),
        'redirectTo': dashboard_for(result.user.role),
    }
    return Response(payload, status=200)


sign_in_view.cls.throttle_scope = 'sign_in'


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def sign_out_view(request):
    refresh = request.data.get('refresh')
    if refresh:
        try:
            RefreshToken(refresh).blacklist()
        except TokenError as exc:
            logger.info('refresh_blacklist_skipped', error=str(exc))
    SessionStore().sign_out(AuthContext.from_request(request))
    return Response({'ok': True})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def session_view(request):
    """Restore the caller's session to ``{id, email, role, username}``."""
    result = SessionResolver().restore(AuthContext.from_request(request))
    if not result.ok:
        return error_response(result.error)
    if result.user is None:
        return Response({'ok': False, 'error': {'code': 'no_session', 'message': 'No active session'}}, status=401)
    return Response({'ok': True, **result.as_dict(), 'redirectTo': dashboard_for(result.user.role)})


@api_view(['GET'])
@permission_classes([AllowAny])
def guard_view(request):
    s = GuardQuerySerializer(data=request.query_params)
    s.is_valid(raise_exception=True)
    decision = evaluate_path(AuthContext.from_request(request), s.validated_data['path'])
    return Response({'ok': True, 'decision': decision.as_dict()})


@api_view(['POST'])
@permission_classes([AllowAny])
def refresh_view(request):
    """Return a new access token from a refresh token."""
    resp = TokenRefreshView.as_view()(request._request)
    if resp.status_code != 200:
        # already wrapped by api_exception_handler
        return Response(resp.data, status=resp.status_code)
    data = dict(resp.data)
    data['jwt_access'] = data.pop('access', None)
    return Response({'ok': True, **data})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def change_password_view(request):
    s = ChangePasswordSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    change_own_password(AuthContext.from_request(request), s.validated_data['current_password'],
                        s.validated_data['new_password'])
    return Response({'ok': True})
