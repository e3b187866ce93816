"""
Route protection.

:class:`RouteGuard` decides whether the current session may enter a
protected route.  It starts in ``UNKNOWN``, moves to ``RESOLVING`` while the
session is resolved to a role, and ends in ``AUTHORIZED`` or ``DENIED``.
Any sign-in or sign-out of the same principal seen through
:meth:`SessionStore.subscribe` puts it back into ``RESOLVING`` until the
next evaluation.

A denied guard that found a session signs it out, so a user with the
wrong role cannot keep using the session elsewhere.

:class:`AuthRouteGuard` is the companion for ``/login`` and ``/signup``:
an already signed-in user is sent to the dashboard of their role.
"""
from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Iterable, Optional

import structlog
from django.conf import settings

from portal.exceptions import AccessDenied, DoctorProfileError
from portal.models import Profile
from portal.services.identity import AuthContext, Principal, SessionStore
from portal.services.results import AuthUser
from portal.services.sessions import SessionResolver

logger = structlog.get_logger(__name__)

LOAD_FAILED_MESSAGE = 'Failed to load user data. Please try logging in again.'
DOCTOR_PROFILE_MESSAGE = 'Failed to create doctor profile. Please contact your administrator.'

AUTH_ROUTES = ('/login', '/signup')

# (pattern, allowed roles); first match wins
ROUTE_TABLE = [
    (re.compile(r'^/admin(/.*)?$'), frozenset({Profile.ROLE_ADMIN})),
    (re.compile(r'^/department(/.*)?$'), frozenset({Profile.ROLE_DEPARTMENT})),
    (re.compile(r'^/doctor/?$'), frozenset({Profile.ROLE_DOCTOR})),
    (re.compile(r'^/doctor/patient/[^/]+/?$'), frozenset({Profile.ROLE_DOCTOR})),
]


class GuardState(str, enum.Enum):
    UNKNOWN = 'unknown'
    RESOLVING = 'resolving'
    AUTHORIZED = 'authorized'
    DENIED = 'denied'


@dataclass
class GuardDecision:
    state: GuardState
    user: Optional[AuthUser] = None
    redirect_to: Optional[str] = None
    next: Optional[str] = None
    message: Optional[str] = None
    error_code: Optional[str] = None

    @property
    def role(self) -> Optional[str]:
        return self.user.role if self.user else None

    def as_dict(self) -> dict:
        return {
            'state': self.state.value,
            'role': self.role,
            'user': self.user.as_dict() if self.user else None,
            'redirectTo': self.redirect_to,
            'next': self.next,
            'message': self.message,
            'code': self.error_code,
        }


def allowed_roles_for(path: str) -> Optional[frozenset]:
    """Allow-list for a route, or None when the route is not protected."""
    for pattern, roles in ROUTE_TABLE:
        if pattern.match(path or ''):
            return roles
    return None


def is_auth_route(path: str) -> bool:
    return (path or '').rstrip('/') in AUTH_ROUTES


def dashboard_for(role: Optional[str]) -> str:
    return settings.ROLE_DASHBOARDS.get(role, settings.LOGIN_ROUTE)


def access_denied_message(role: str) -> str:
    return f'Access denied. Your role ({role}) does not have permission to access this area.'


class _SubscribedGuard:
    def __init__(self, *, store: Optional[SessionStore] = None, resolver: Optional[SessionResolver] = None):
        self.store = store or SessionStore()
        self.resolver = resolver or SessionResolver(store=self.store)
        self.state = GuardState.UNKNOWN
        self.decision: Optional[GuardDecision] = None
        self._principal: Optional[Principal] = None
        self._evaluating = False
        self._unsubscribe = self.store.subscribe(self._on_auth_event)

    def _on_auth_event(self, event, principal, context) -> None:
        if self._evaluating or principal is None or self._principal is None:
            return
        if principal.id == self._principal.id:
            logger.debug('guard_invalidated', auth_event=event, principal_id=principal.id)
            self.state = GuardState.RESOLVING
            self.decision = None

    def _finish(self, decision: GuardDecision) -> GuardDecision:
        self.state = decision.state
        self.decision = decision
        return decision

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()
        return False


class RouteGuard(_SubscribedGuard):
    def __init__(self, allowed_roles: Iterable[str], **kwargs):
        super().__init__(**kwargs)
        self.allowed_roles = frozenset(allowed_roles)

    def evaluate(self, context: AuthContext, path: str) -> GuardDecision:
        self.state = GuardState.RESOLVING
        self._evaluating = True
        try:
            return self._finish(self._evaluate(context, path))
        finally:
            self._evaluating = False

    def _evaluate(self, context: AuthContext, path: str) -> GuardDecision:
        login = settings.LOGIN_ROUTE
        session = self.store.get_session(context)
        if session is None:
            return GuardDecision(GuardState.DENIED, redirect_to=login, next=path)
        self._principal = session.principal

        result = self.resolver.restore(context)
        if result.error is not None:
            # resolution already signed out on lookup / doctor failures
            self.store.sign_out(context)
            message = DOCTOR_PROFILE_MESSAGE if isinstance(result.error, DoctorProfileError) else LOAD_FAILED_MESSAGE
            logger.info('guard_denied_resolution', path=path, error=result.error.code)
            return GuardDecision(GuardState.DENIED, redirect_to=login, next=path,
                                 message=message, error_code=result.error.code)
        if result.user is None:
            return GuardDecision(GuardState.DENIED, redirect_to=login, next=path)

        if result.user.role not in self.allowed_roles:
            self.store.sign_out(context)
            logger.info('guard_denied_role', path=path, role=result.user.role)
            return GuardDecision(GuardState.DENIED, user=result.user, redirect_to=login,
                                 message=access_denied_message(result.user.role),
                                 error_code=AccessDenied.code)

        return GuardDecision(GuardState.AUTHORIZED, user=result.user)


class AuthRouteGuard(_SubscribedGuard):
    """Guard for the sign-in / sign-up pages.

    ``AUTHORIZED`` with ``redirect_to`` set means the user is already signed
    in and should go to their dashboard; ``DENIED`` means the page should
    render.  A signed-in user whose role has no dashboard is also
    ``DENIED``, with the user attached and the session left open, since
    redirecting them to their dashboard would land back on ``/login``.
    """

    def evaluate(self, context: AuthContext, path: str = '') -> GuardDecision:
        self.state = GuardState.RESOLVING
        self._evaluating = True
        try:
            if self.store.get_session(context) is None:
                return self._finish(GuardDecision(GuardState.DENIED))
            self._principal = context.principal
            result = self.resolver.restore(context)
            if result.user is None:
                return self._finish(GuardDecision(
                    GuardState.DENIED,
                    error_code=result.error.code if result.error else None,
                ))
            dashboard = dashboard_for(result.user.role)
            if is_auth_route(dashboard):
                logger.info('auth_route_no_dashboard', role=result.user.role)
                return self._finish(GuardDecision(GuardState.DENIED, user=result.user))
            return self._finish(GuardDecision(GuardState.AUTHORIZED, user=result.user, redirect_to=dashboard))
        finally:
            self._evaluating = False


def evaluate_path(context: AuthContext, path: str, **kwargs) -> GuardDecision:
    """Pick the guard for ``path`` and evaluate it once.

    Routes that are neither protected nor auth routes are always authorized.
    """
    if is_auth_route(path):
        with AuthRouteGuard(**kwargs) as guard:
            return guard.evaluate(context, path)
    roles = allowed_roles_for(path)
    if roles is None:
        return GuardDecision(GuardState.AUTHORIZED)
    with RouteGuard(roles, **kwargs) as guard:
        return guard.evaluate(context, path)
