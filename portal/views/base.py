from rest_framework.exceptions import NotFound, PermissionDenied
from rest_framework.response import Response

from portal.exceptions import PortalError
from portal.models import Profile
from portal.permissions import get_profile


def error_response(error: PortalError) -> Response:
    return Response({'ok': False, 'error': error.as_dict()}, status=error.status_code)


def caller_profile(request) -> Profile:
    profile = get_profile(getattr(request, 'user', None))
    if profile is None:
        raise PermissionDenied('User profile not found')
    return profile


def get_or_404(qs, message='Not found', **lookup):
    obj = qs.filter(**lookup).first()
    if obj is None:
        raise NotFound(message)
    return obj
