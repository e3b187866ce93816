import pytest
from django.contrib.auth import get_user_model
from django.core.cache import cache
from rest_framework.authtoken.models import Token
from rest_framework.test import APIClient

from portal.models import Department, PrincipalMetadata, Profile
from portal.services.identity import identity_key

User = get_user_model()

PASSWORD = 'secret1'


@pytest.fixture(autouse=True)
def fast_auth_flows(settings, tmp_path):
    """No real waiting in the retry loops; throttles and uploads isolated per test."""
    settings.AUTH_PROPAGATION_DELAY = 0
    settings.AUTH_RETRY_DELAY = 0
    settings.MEDIA_ROOT = tmp_path / 'media'
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def department(db):
    return Department.objects.create(name='Radiology', code='RAD')


@pytest.fixture
def other_department(db):
    return Department.objects.create(name='Cardiology', code='CAR')


@pytest.fixture
def make_account(db):
    """Create a principal with a matching profile, bypassing the sign-up flow."""
    def _make(email, role, *, department=None, username=None, password=PASSWORD):
        username = username or email.split('@')[0]
        user = User.objects.create_user(username=identity_key(email), email=email, password=password)
        PrincipalMetadata.objects.create(user=user, data={'role': role, 'username': username})
        Profile.objects.create(user=user, email=email, username=username, role=role, department=department)
        return user
    return _make


@pytest.fixture
def client_for():
    def _client(user):
        client = APIClient()
        token, _ = Token.objects.get_or_create(user=user)
        client.credentials(HTTP_AUTHORIZATION=f'Token {token.key}')
        return client
    return _client


@pytest.fixture
def admin_user(make_account):
    return make_account('admin@example.com', Profile.ROLE_ADMIN)


@pytest.fixture
def staff_user(make_account, department):
    return make_account('staff@example.com', Profile.ROLE_DEPARTMENT, department=department)
