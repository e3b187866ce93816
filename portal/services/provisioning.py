"""
Account provisioning (sign-up).

Creates a principal in the session store and its profile row as one
logical unit.  The two stores do not share a transaction, so the flow is
a two-step saga:

1. refuse if a profile with the e-mail already exists;
2. create the principal (role and username go into its metadata);
3. wait for the principal to propagate;
4. insert the profile, retrying a bounded number of times;
5. if the insert never succeeds, delete the principal again.

If that last delete fails too the principal is orphaned.  The error then
carries ``orphaned_principal_id`` and the failure is logged at error level.
"""
from __future__ import annotations

import time
from typing import Callable, Optional

import structlog
from django.conf import settings

from portal.exceptions import AlreadyExists, ProfileCreationFailed, ProvisioningFailed, UnexpectedError
from portal.services.identity import IdentityError, SessionStore
from portal.services.profiles import ProfileRepository
from portal.services.results import AuthResult, AuthUser
from portal.services.retry import RetryExhausted, RetryPolicy
from portal.services.saga import Saga

logger = structlog.get_logger(__name__)


class AccountProvisioner:
    def __init__(self, store: Optional[SessionStore] = None, profiles: Optional[ProfileRepository] = None,
                 *, sleep: Optional[Callable[[float], None]] = None):
        self.store = store or SessionStore()
        self.profiles = profiles or ProfileRepository()
        self.sleep = sleep or time.sleep

    def sign_up(self, email: str, password: str, username: str, role: str, *,
                department_id: Optional[int] = None, metadata: Optional[dict] = None) -> AuthResult:
        log = logger.bind(email=email, role=role)
        try:
            return self._sign_up(log, email, password, username, role, department_id, metadata)
        except Exception as exc:
            log.exception('sign_up_unexpected_error')
            return AuthResult.failure(UnexpectedError(cause=exc))

    def _sign_up(self, log, email, password, username, role, department_id, metadata) -> AuthResult:
        if self.profiles.find_by_email(email) is not None:
            log.info('sign_up_rejected_existing_profile')
            return AuthResult.failure(AlreadyExists())

        identity_metadata = dict(metadata or {})
        identity_metadata.update({'role': role, 'username': username})
        try:
            principal = self.store.sign_up(email, password, identity_metadata)
        except IdentityError as exc:
            log.info('principal_rejected', error=str(exc))
            return AuthResult.failure(ProvisioningFailed(str(exc), cause=exc))

        saga = Saga('sign_up', undo_policy=RetryPolicy(
            attempts=settings.AUTH_COMPENSATION_ATTEMPTS, delay=settings.AUTH_RETRY_DELAY, sleep=self.sleep,
        ))
        saga.on_undo('delete_principal', lambda: self.store.admin_delete_user(principal.id),
                     principal_id=principal.id)

        self.sleep(settings.AUTH_PROPAGATION_DELAY)

        insert = RetryPolicy(
            attempts=settings.AUTH_PROFILE_INSERT_ATTEMPTS, delay=settings.AUTH_RETRY_DELAY, sleep=self.sleep,
        )
        try:
            insert.call(
                lambda: self.profiles.insert(
                    principal_id=principal.id,
                    email=principal.email,
                    username=username,
                    role=role,
                    department_id=department_id,
                ),
                operation='profile_insert',
            )
        except RetryExhausted as exc:
            context = {}
            if saga.compensate():
                context['orphaned_principal_id'] = principal.id
                log.error('principal_orphaned', principal_id=principal.id)
            return AuthResult.failure(ProfileCreationFailed(cause=exc.last_error, **context))

        saga.commit()
        log.info('sign_up_completed', principal_id=principal.id)
        return AuthResult(user=AuthUser(id=principal.id, email=principal.email, role=role, username=username))


def sign_up(email: str, password: str, username: str, role: str, **kwargs) -> AuthResult:
    return AccountProvisioner().sign_up(email, password, username, role, **kwargs)
