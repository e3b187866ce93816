import pytest

from portal.db_routers import ReadReplicaRouter
from portal.exceptions import UnexpectedError, api_exception_handler
from portal.models import Profile


def test_replica_router_splits_reads_and_writes():
    router = ReadReplicaRouter()
    assert router.db_for_read(Profile) == 'replica'
    assert router.db_for_write(Profile) == 'default'
    assert router.allow_migrate('default', 'portal') is True
    assert router.allow_migrate('replica', 'portal') is False


@pytest.mark.django_db
def test_request_id_is_echoed(client):
    resp = client.get('/healthz', HTTP_X_REQUEST_ID='abc123')
    assert resp['X-Request-ID'] == 'abc123'


@pytest.mark.django_db
def test_request_id_is_generated(client):
    assert len(client.get('/healthz')['X-Request-ID']) == 32


@pytest.mark.django_db
def test_api_errors_use_envelope(client):
    resp = client.get('/api/departments')
    assert resp.status_code == 401
    assert resp.json()['ok'] is False
    assert 'code' in resp.json()['error']


def test_unhandled_error_message_is_generic():
    resp = api_exception_handler(RuntimeError('password authentication failed for user "portal"'), {})

    assert resp.status_code == 500
    assert resp.data == {'ok': False, 'error': {'code': 'server_error', 'message': UnexpectedError.default_message}}
