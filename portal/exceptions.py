"""
Error taxonomy for the portal and the unified API exception handler.

The auth flows never raise these: they return them inside an
:class:`~portal.services.results.AuthResult`.  Feature services may raise
them directly; the handler below turns them into the standard envelope
``{'ok': False, 'error': {'code': ..., 'message': ...}}``.
"""
from __future__ import annotations

import structlog
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = structlog.get_logger(__name__)


class PortalError(Exception):
    code = 'unexpected_error'
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = 'An unexpected error occurred'

    def __init__(self, message: str | None = None, *, cause: BaseException | None = None, **context):
        self.message = message or self.default_message
        self.cause = cause
        self.context = context
        super().__init__(self.message)

    def as_dict(self) -> dict:
        data = {'code': self.code, 'message': self.message}
        if self.context:
            data['context'] = self.context
        return data


class AlreadyExists(PortalError):
    code = 'already_exists'
    status_code = status.HTTP_409_CONFLICT
    default_message = 'User already exists'


class ProvisioningFailed(PortalError):
    code = 'provisioning_failed'
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Failed to create user'


class ProfileCreationFailed(PortalError):
    code = 'profile_creation_failed'
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = 'Failed to create user profile'


class InvalidCredentials(PortalError):
    code = 'invalid_credentials'
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = 'Invalid email or password'


class AuthProviderError(PortalError):
    code = 'auth_provider_error'
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = 'Authentication provider error'


class ProfileNotFound(PortalError):
    code = 'profile_not_found'
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = 'User profile not found'


class DoctorProfileError(PortalError):
    code = 'doctor_profile_error'
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = 'Failed to verify doctor profile'


class AccessDenied(PortalError):
    code = 'access_denied'
    status_code = status.HTTP_403_FORBIDDEN
    default_message = 'Access denied'


class UnexpectedError(PortalError):
    pass


def api_exception_handler(exc, context):
    if isinstance(exc, PortalError):
        return Response({'ok': False, 'error': exc.as_dict()}, status=exc.status_code)
    resp = drf_exception_handler(exc, context)
    if resp is None:
        # detail goes to the log only
        logger.error('unhandled_api_error', view=_view_name(context), exc_info=exc)
        return Response({'ok': False, 'error': {'code': 'server_error', 'message': UnexpectedError.default_message}},
                        status=500)
    # normalize response
    detail = None
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = resp.data
    return Response(
        {'ok': False, 'error': {'code': getattr(exc, 'default_code', 'api_error'), 'message': detail}},
        status=resp.status_code,
        headers={k: v for k, v in resp.items()},
    )


def _view_name(context) -> str | None:
    view = (context or {}).get('view')
    return type(view).__name__ if view is not None else None
