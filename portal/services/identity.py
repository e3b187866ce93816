"""
Session store gateway.

Principals are ``django.contrib.auth`` users keyed by their e-mail
address; sessions are DRF tokens plus a simplejwt pair.  Nothing in here
knows about profiles or roles beyond the metadata blob attached at
sign-up, so the flows above it can be tested against a fake store.

There is no process-wide "current session": every call takes an
:class:`AuthContext` that carries the session explicitly.  Changes are
announced through :data:`portal.signals.auth_state_changed` and can be
observed with :meth:`SessionStore.subscribe`.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import structlog
from django.contrib.auth import authenticate, get_user_model
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError
from django.core.validators import validate_email
from django.db import DEFAULT_DB_ALIAS, DatabaseError, IntegrityError, transaction
from django.db.models import F
from rest_framework.authtoken.models import Token
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework_simplejwt.tokens import RefreshToken

from portal.models import PrincipalMetadata
from portal.signals import SIGNED_IN, SIGNED_OUT, auth_state_changed

logger = structlog.get_logger(__name__)

User = get_user_model()

SESSION_TOKEN = 'token'
SESSION_JWT = 'jwt'
SESSION_COOKIE = 'cookie'

# JWT claim holding the principal's session epoch at issue time
EPOCH_CLAIM = 'session_epoch'


class IdentityError(Exception):
    """The session store rejected or failed an operation."""


class InvalidLogin(IdentityError):
    pass


def identity_key(email: str) -> str:
    """Login name for an e-mail address; principals are looked up case-insensitively."""
    return (email or '').strip().lower()


def session_epoch(principal_id: int) -> int:
    """Current session epoch of a principal.  Read from the primary; sign-out must be seen at once."""
    epoch = (PrincipalMetadata.objects.using(DEFAULT_DB_ALIAS)
             .filter(user_id=principal_id).values_list('session_epoch', flat=True).first())
    return epoch or 0


@dataclass(frozen=True)
class Principal:
    id: int
    email: str
    metadata: dict = field(default_factory=dict)

    @classmethod
    def from_user(cls, user) -> 'Principal':
        meta = PrincipalMetadata.objects.filter(user_id=user.pk).values_list('data', flat=True).first()
        return cls(id=user.pk, email=user.email, metadata=dict(meta or {}))


@dataclass
class Session:
    principal: Principal
    token: Optional[str]
    kind: str = SESSION_TOKEN
    jwt_access: Optional[str] = None
    jwt_refresh: Optional[str] = None
    epoch: Optional[int] = None

    def credentials(self) -> dict:
        return {
            'token': self.token if self.kind == SESSION_TOKEN else None,
            'jwt_access': self.jwt_access,
            'jwt_refresh': self.jwt_refresh,
        }


@dataclass
class AuthContext:
    """The session a request (or a test) is acting under."""
    session: Optional[Session] = None

    @property
    def principal(self) -> Optional[Principal]:
        return self.session.principal if self.session else None

    @classmethod
    def from_request(cls, request) -> 'AuthContext':
        user = getattr(request, 'user', None)
        if not (user and getattr(user, 'is_authenticated', False)):
            return cls()
        principal = Principal.from_user(user)
        auth = getattr(request, 'auth', None)
        if isinstance(auth, Token):
            return cls(Session(principal, token=auth.key, kind=SESSION_TOKEN))
        if auth is not None:
            return cls(Session(principal, token=str(auth), kind=SESSION_JWT, jwt_access=str(auth),
                               epoch=auth.get(EPOCH_CLAIM, 0)))
        return cls(Session(principal, token=None, kind=SESSION_COOKIE))


class SessionStore:
    """Identity and session operations consumed by the auth flows."""

    # -----------------------------------------------------------------
    # Identities
    # -----------------------------------------------------------------
    def sign_up(self, email: str, password: str, metadata: Optional[dict] = None) -> Principal:
        """Create a principal with ``metadata`` attached.  Does not open a session."""
        email = User.objects.normalize_email((email or '').strip())
        try:
            validate_email(email)
        except ValidationError as exc:
            raise IdentityError('Invalid email address') from exc
        try:
            validate_password(password)
        except ValidationError as exc:
            raise IdentityError(' '.join(exc.messages)) from exc

        try:
            with transaction.atomic():
                user = User.objects.create_user(username=identity_key(email), email=email, password=password)
                PrincipalMetadata.objects.create(user=user, data=dict(metadata or {}))
        except IntegrityError as exc:
            raise IdentityError('User already registered') from exc
        except DatabaseError as exc:
            raise IdentityError(str(exc)) from exc

        logger.info('principal_created', principal_id=user.pk)
        return Principal(id=user.pk, email=user.email, metadata=dict(metadata or {}))

    def admin_update_password(self, principal_id: int, password: str) -> None:
        user = User.objects.filter(pk=principal_id).first()
        if user is None:
            raise IdentityError('User not found')
        try:
            validate_password(password, user=user)
        except ValidationError as exc:
            raise IdentityError(' '.join(exc.messages)) from exc
        user.set_password(password)
        user.save(update_fields=['password'])
        logger.info('principal_password_updated', principal_id=principal_id)

    def admin_delete_user(self, principal_id: int) -> bool:
        """Delete a principal.  Deleting one that is already gone succeeds and returns False."""
        try:
            with transaction.atomic():
                deleted, _ = User.objects.filter(pk=principal_id).delete()
        except DatabaseError as exc:
            raise IdentityError(str(exc)) from exc
        logger.info('principal_deleted', principal_id=principal_id, existed=bool(deleted))
        return bool(deleted)

    # -----------------------------------------------------------------
    # Sessions
    # -----------------------------------------------------------------
    def sign_in_with_password(self, context: AuthContext, email: str, password: str) -> Session:
        try:
            user = authenticate(None, username=identity_key(email), password=password)
        except DatabaseError as exc:
            raise IdentityError(str(exc)) from exc
        if user is None:
            raise InvalidLogin('Invalid login credentials')

        token, _ = Token.objects.get_or_create(user=user)
        epoch = session_epoch(user.pk)
        refresh = RefreshToken.for_user(user)
        refresh[EPOCH_CLAIM] = epoch
        session = Session(
            principal=Principal.from_user(user),
            token=token.key,
            kind=SESSION_TOKEN,
            jwt_access=str(refresh.access_token),
            jwt_refresh=str(refresh),
            epoch=epoch,
        )
        context.session = session
        self._emit(SIGNED_IN, session.principal, context)
        return session

    def sign_out(self, context: AuthContext) -> None:
        session = context.session
        if session is None:
            return
        principal_id = session.principal.id
        Token.objects.filter(user_id=principal_id).delete()
        for outstanding in OutstandingToken.objects.filter(user_id=principal_id):
            BlacklistedToken.objects.get_or_create(token=outstanding)
        # access tokens cannot be blacklisted; moving the epoch retires them
        meta, _ = PrincipalMetadata.objects.get_or_create(user_id=principal_id)
        PrincipalMetadata.objects.filter(pk=meta.pk).update(session_epoch=F('session_epoch') + 1)
        context.session = None
        logger.info('session_closed', principal_id=principal_id)
        self._emit(SIGNED_OUT, session.principal, context)

    def get_session(self, context: AuthContext) -> Optional[Session]:
        """Return the context's session if it is still valid, clearing it otherwise."""
        session = context.session
        if session is None:
            return None
        principal_id = session.principal.id
        if session.kind == SESSION_TOKEN and not Token.objects.filter(key=session.token, user_id=principal_id).exists():
            context.session = None
            return None
        if session.kind == SESSION_JWT and (session.epoch or 0) != session_epoch(principal_id):
            context.session = None
            return None
        if not User.objects.filter(pk=principal_id, is_active=True).exists():
            context.session = None
            return None
        return session

    def get_user(self, context: AuthContext) -> Optional[Principal]:
        session = self.get_session(context)
        if session is None:
            return None
        user = User.objects.filter(pk=session.principal.id).first()
        return Principal.from_user(user) if user else None

    def subscribe(self, callback: Callable[[str, Optional[Principal], Optional[AuthContext]], Any]) -> Callable[[], None]:
        """Call ``callback(event, principal, context)`` on every sign-in / sign-out.

        Returns a function that removes the subscription.
        """
        def receiver(sender, event=None, principal=None, context=None, **kwargs):
            callback(event, principal, context)

        auth_state_changed.connect(receiver, weak=False)

        def unsubscribe() -> None:
            auth_state_changed.disconnect(receiver)

        return unsubscribe

    def _emit(self, event: str, principal: Principal, context: AuthContext) -> None:
        auth_state_changed.send(sender=type(self), event=event, principal=principal, context=context)
