import pytest
from django.contrib.auth import get_user_model
from rest_framework.authtoken.models import Token
from rest_framework.test import APIClient

from portal.models import AuditEvent, DoctorRecord, Profile

from .conftest import PASSWORD

pytestmark = pytest.mark.django_db

User = get_user_model()


@pytest.fixture
def api():
    return APIClient()


def test_sign_up_creates_principal_and_profile(api):
    resp = api.post('/api/auth/sign-up', {
        'email': 'a@x.com', 'password': 'secret1', 'username': 'alice', 'role': 'admin',
    }, format='json')

    assert resp.status_code == 201
    assert resp.data['ok'] is True
    assert resp.data['user']['email'] == 'a@x.com'
    assert resp.data['user']['role'] == 'admin'
    assert resp.data['error'] is None
    assert Profile.objects.filter(email='a@x.com', username='alice').exists()
    assert AuditEvent.objects.filter(action='sign_up').exists()


def test_sign_up_existing_email_conflicts(api, make_account):
    make_account('a@x.com', Profile.ROLE_ADMIN)

    resp = api.post('/api/auth/sign-up', {
        'email': 'a@x.com', 'password': 'secret1', 'username': 'again', 'role': 'admin',
    }, format='json')

    assert resp.status_code == 409
    assert resp.data == {'ok': False, 'error': {'code': 'already_exists', 'message': 'User already exists'}}


def test_sign_up_short_password_is_rejected(api):
    resp = api.post('/api/auth/sign-up', {
        'email': 'short@x.com', 'password': '12345', 'username': 's', 'role': 'admin',
    }, format='json')

    assert resp.status_code == 400
    assert resp.data['ok'] is False
    assert not User.objects.filter(email='short@x.com').exists()


def test_sign_in_returns_credentials_and_dashboard(api, make_account, department):
    make_account('doc@x.com', Profile.ROLE_DOCTOR, department=department, username='house')

    resp = api.post('/api/auth/sign-in', {'email': 'doc@x.com', 'password': PASSWORD}, format='json')

    assert resp.status_code == 200
    assert resp.data['user']['role'] == 'doctor'
    assert resp.data['redirectTo'] == '/doctor'
    assert resp.data['token']
    assert resp.data['jwt_access'] and resp.data['jwt_refresh']
    assert DoctorRecord.objects.filter(profile__email='doc@x.com').count() == 1


def test_sign_in_wrong_password(api, make_account):
    make_account('a@x.com', Profile.ROLE_ADMIN)

    resp = api.post('/api/auth/sign-in', {'email': 'a@x.com', 'password': 'nope-nope'}, format='json')

    assert resp.status_code == 401
    assert resp.data['error'] == {'code': 'invalid_credentials', 'message': 'Invalid email or password'}


def test_session_and_sign_out(api, make_account):
    make_account('a@x.com', Profile.ROLE_ADMIN, username='alice')
    token = api.post('/api/auth/sign-in', {'email': 'a@x.com', 'password': PASSWORD}, format='json').data['token']
    api.credentials(HTTP_AUTHORIZATION=f'Token {token}')

    resp = api.get('/api/auth/session')
    assert resp.status_code == 200
    assert resp.data['user']['username'] == 'alice'
    assert resp.data['redirectTo'] == '/admin'

    assert api.post('/api/auth/sign-out').status_code == 200
    assert not Token.objects.filter(key=token).exists()
    assert api.get('/api/auth/session').status_code == 401


def test_session_requires_authentication(api):
    resp = api.get('/api/auth/session')
    assert resp.status_code == 401
    assert resp.data['ok'] is False


def test_jwt_refresh(api, make_account):
    make_account('a@x.com', Profile.ROLE_ADMIN)
    refresh = api.post('/api/auth/sign-in', {'email': 'a@x.com', 'password': PASSWORD},
                       format='json').data['jwt_refresh']

    resp = api.post('/api/auth/refresh', {'refresh': refresh}, format='json')

    assert resp.status_code == 200
    assert resp.data['ok'] is True
    assert resp.data['jwt_access']


def test_jwt_access_token_authenticates(api, make_account):
    make_account('a@x.com', Profile.ROLE_ADMIN)
    access = api.post('/api/auth/sign-in', {'email': 'a@x.com', 'password': PASSWORD},
                      format='json').data['jwt_access']
    api.credentials(HTTP_AUTHORIZATION=f'Bearer {access}')

    assert api.get('/api/departments').status_code == 200


def test_jwt_is_rejected_after_guard_signs_out_wrong_role(api, make_account):
    make_account('reg@x.com', Profile.ROLE_REGISTRATION)
    access = api.post('/api/auth/sign-in', {'email': 'reg@x.com', 'password': PASSWORD},
                      format='json').data['jwt_access']
    api.credentials(HTTP_AUTHORIZATION=f'Bearer {access}')

    decision = api.get('/api/auth/guard', {'path': '/admin'}).data['decision']
    assert decision['state'] == 'denied'
    assert decision['code'] == 'access_denied'

    resp = api.get('/api/auth/session')
    assert resp.status_code == 401
    assert resp.data['ok'] is False


def test_jwt_is_rejected_after_sign_out(api, make_account):
    make_account('a@x.com', Profile.ROLE_ADMIN)
    access = api.post('/api/auth/sign-in', {'email': 'a@x.com', 'password': PASSWORD},
                      format='json').data['jwt_access']
    api.credentials(HTTP_AUTHORIZATION=f'Bearer {access}')

    assert api.post('/api/auth/sign-out', {}, format='json').status_code == 200
    assert api.get('/api/departments').status_code == 401

    fresh = APIClient().post('/api/auth/sign-in', {'email': 'a@x.com', 'password': PASSWORD},
                             format='json').data['jwt_access']
    api.credentials(HTTP_AUTHORIZATION=f'Bearer {fresh}')
    assert api.get('/api/departments').status_code == 200


def test_change_password(make_account, client_for):
    user = make_account('a@x.com', Profile.ROLE_ADMIN)
    client = client_for(user)

    wrong = client.post('/api/auth/change-password',
                        {'current_password': 'not-it', 'new_password': 'newpass1'}, format='json')
    assert wrong.status_code == 401
    assert wrong.data['error']['message'] == 'Current password is incorrect'

    ok = client.post('/api/auth/change-password',
                     {'current_password': PASSWORD, 'new_password': 'newpass1',
                      'confirm_password': 'newpass1'}, format='json')
    assert ok.status_code == 200
    user.refresh_from_db()
    assert user.check_password('newpass1')


def test_change_password_confirmation_mismatch(make_account, client_for):
    client = client_for(make_account('a@x.com', Profile.ROLE_ADMIN))
    resp = client.post('/api/auth/change-password',
                       {'current_password': PASSWORD, 'new_password': 'newpass1',
                        'confirm_password': 'newpass2'}, format='json')
    assert resp.status_code == 400


def test_healthz(client):
    resp = client.get('/healthz')
    assert resp.status_code == 200
    assert resp.json() == {'ok': True, 'db': {'default': True}}
