"""
Authentication classes for the portal API.

Kept in their own module so settings can reference a stable import path
without pulling in any views.  Tokens are issued and revoked by
:class:`portal.services.identity.SessionStore`; deleting a token is how a
session is signed out.  Access JWTs cannot be revoked one by one, so they
carry the principal's session epoch and stop authenticating once a
sign-out has moved it on.
"""
from __future__ import annotations

from rest_framework import authentication
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.authentication import JWTAuthentication

from portal.services.identity import EPOCH_CLAIM, session_epoch


class TokenAuthentication(authentication.TokenAuthentication):
    """Token authentication using the ``Token`` keyword."""

    keyword = 'Token'


class SessionJWTAuthentication(JWTAuthentication):
    """Bearer JWT authentication that rejects tokens issued before the last sign-out."""

    def get_user(self, validated_token):
        user = super().get_user(validated_token)
        if validated_token.get(EPOCH_CLAIM, 0) != session_epoch(user.pk):
            raise AuthenticationFailed('Session has ended', code='session_ended')
        return user
