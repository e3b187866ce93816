"""
Liveness check.

Checks every configured database alias, so a lagging or unreachable read
replica shows up here before the auth flows start retrying against it.
"""
import structlog
from django.db import DatabaseError, connections
from django.http import JsonResponse

logger = structlog.get_logger(__name__)


def _ping(alias: str) -> bool:
    with connections[alias].cursor() as c:
        c.execute('SELECT 1')
        row = c.fetchone()
    return bool(row and row[0] == 1)


def healthz(request):
    checks = {}
    for alias in connections:
        try:
            checks[alias] = _ping(alias)
        except DatabaseError as e:
            logger.error('healthcheck_failed', alias=alias, error=str(e))
            return JsonResponse({'ok': False, 'db': {**checks, alias: False}, 'error': str(e)}, status=500)
    return JsonResponse({'ok': all(checks.values()), 'db': checks})
