"""
Session resolution (sign-in and session restore).

Maps an authenticated principal to ``{id, email, role, username}``.  The
profile row may lag behind the principal, so the lookup is polled.  A
principal whose profile never shows up is signed out again; so is a doctor
whose doctor record cannot be ensured.
"""
from __future__ import annotations

import time
from typing import Callable, Optional

import structlog
from django.conf import settings

from portal.exceptions import (
    AuthProviderError,
    DoctorProfileError,
    InvalidCredentials,
    ProfileNotFound,
    UnexpectedError,
)
from portal.models import Profile
from portal.services.doctors import ensure_doctor_record
from portal.services.identity import AuthContext, IdentityError, InvalidLogin, Principal, SessionStore
from portal.services.profiles import ProfileRepository
from portal.services.results import AuthResult, AuthUser
from portal.services.retry import RetryExhausted, RetryPolicy

logger = structlog.get_logger(__name__)


class SessionResolver:
    def __init__(self, store: Optional[SessionStore] = None, profiles: Optional[ProfileRepository] = None,
                 *, ensure_doctor: Optional[Callable[[Principal], object]] = None,
                 sleep: Optional[Callable[[float], None]] = None):
        self.store = store or SessionStore()
        self.profiles = profiles or ProfileRepository()
        self.ensure_doctor = ensure_doctor or ensure_doctor_record
        self.sleep = sleep or time.sleep

    def sign_in(self, context: AuthContext, email: str, password: str) -> AuthResult:
        try:
            try:
                session = self.store.sign_in_with_password(context, email, password)
            except InvalidLogin as exc:
                logger.info('sign_in_rejected', email=email)
                return AuthResult.failure(InvalidCredentials(cause=exc))
            except IdentityError as exc:
                logger.warning('sign_in_provider_error', email=email, error=str(exc))
                return AuthResult.failure(AuthProviderError(str(exc), cause=exc))
            return self._resolve(context, session.principal)
        except Exception as exc:
            logger.exception('sign_in_unexpected_error', email=email)
            return AuthResult.failure(UnexpectedError(cause=exc))

    def restore(self, context: AuthContext) -> AuthResult:
        """Resolve the context's existing session.  No session gives an empty, error-free result."""
        try:
            session = self.store.get_session(context)
            if session is None:
                return AuthResult()
            return self._resolve(context, session.principal)
        except Exception as exc:
            logger.exception('session_restore_unexpected_error')
            return AuthResult.failure(UnexpectedError(cause=exc))

    def _resolve(self, context: AuthContext, principal: Principal) -> AuthResult:
        log = logger.bind(principal_id=principal.id)
        lookup = RetryPolicy(
            attempts=settings.AUTH_PROFILE_LOOKUP_ATTEMPTS, delay=settings.AUTH_RETRY_DELAY, sleep=self.sleep,
        )
        try:
            row = lookup.call(
                lambda: self.profiles.get_role_row(principal.id),
                operation='profile_lookup',
                accept=lambda found: found is not None,
            )
        except RetryExhausted as exc:
            log.warning('profile_not_found', attempts=exc.attempts)
            self.store.sign_out(context)
            return AuthResult.failure(ProfileNotFound(cause=exc.last_error))

        if row['role'] == Profile.ROLE_DOCTOR:
            try:
                self.ensure_doctor(principal)
            except Exception as exc:
                log.error('doctor_record_unavailable', error=str(exc))
                self.store.sign_out(context)
                return AuthResult.failure(DoctorProfileError(cause=exc))

        user = AuthUser(id=principal.id, email=principal.email, role=row['role'], username=row['username'])
        return AuthResult(user=user, session=context.session)


def sign_in(context: AuthContext, email: str, password: str) -> AuthResult:
    return SessionResolver().sign_in(context, email, password)


def restore(context: AuthContext) -> AuthResult:
    return SessionResolver().restore(context)
