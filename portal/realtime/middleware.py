"""
Token authentication for websocket connections.

Browsers cannot set an ``Authorization`` header on a websocket handshake,
so the DRF token is passed as ``?token=<key>``.  When present it replaces
whatever user the session middleware put into the scope.
"""
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth.models import AnonymousUser
from rest_framework.authtoken.models import Token


@database_sync_to_async
def user_for_token(key: str):
    token = Token.objects.select_related('user').filter(key=key).first()
    if token is None or not token.user.is_active:
        return AnonymousUser()
    return token.user


class TokenAuthMiddleware(BaseMiddleware):
    async def __call__(self, scope, receive, send):
        params = parse_qs((scope.get('query_string') or b'').decode())
        key = (params.get('token') or [None])[0]
        if key:
            scope = dict(scope, user=await user_for_token(key))
        return await super().__call__(scope, receive, send)
