import pytest
from rest_framework.authtoken.models import Token
from rest_framework.test import APIClient

from portal.guards import (
    DOCTOR_PROFILE_MESSAGE,
    LOAD_FAILED_MESSAGE,
    AuthRouteGuard,
    GuardState,
    RouteGuard,
    allowed_roles_for,
    evaluate_path,
)
from portal.models import Profile
from portal.services.identity import AuthContext, SessionStore
from portal.services.sessions import SessionResolver

from .conftest import PASSWORD

pytestmark = pytest.mark.django_db


def signed_in(email):
    context = AuthContext()
    result = SessionResolver().sign_in(context, email, PASSWORD)
    assert result.ok, result.error
    return context


def test_route_table():
    assert allowed_roles_for('/admin') == {'admin'}
    assert allowed_roles_for('/admin/users') == {'admin'}
    assert allowed_roles_for('/department/patients') == {'department'}
    assert allowed_roles_for('/doctor') == {'doctor'}
    assert allowed_roles_for('/doctor/patient/12') == {'doctor'}
    assert allowed_roles_for('/doctor/patient/12/reports') is None
    assert allowed_roles_for('/') is None


def test_no_session_redirects_to_login_with_next():
    with RouteGuard({'admin'}) as guard:
        decision = guard.evaluate(AuthContext(), '/admin/users')

    assert decision.state == GuardState.DENIED
    assert decision.redirect_to == '/login'
    assert decision.next == '/admin/users'
    assert decision.message is None


def test_wrong_role_is_denied_and_signed_out(make_account):
    user = make_account('reg@x.com', Profile.ROLE_REGISTRATION)
    context = signed_in('reg@x.com')

    with RouteGuard({'admin'}) as guard:
        decision = guard.evaluate(context, '/admin')

    assert decision.state == GuardState.DENIED
    assert decision.redirect_to == '/login'
    assert decision.error_code == 'access_denied'
    assert '(registration)' in decision.message
    assert SessionStore().get_session(context) is None
    assert not Token.objects.filter(user=user).exists()


def test_matching_role_is_authorized(make_account):
    make_account('admin@x.com', Profile.ROLE_ADMIN, username='root')
    context = signed_in('admin@x.com')

    with RouteGuard({'admin'}) as guard:
        decision = guard.evaluate(context, '/admin')
        assert guard.state == GuardState.AUTHORIZED

    assert decision.role == 'admin'
    assert decision.user.username == 'root'
    assert SessionStore().get_session(context) is not None


def test_unresolvable_profile_is_denied_with_message(make_account):
    user = make_account('ghost@x.com', Profile.ROLE_ADMIN)
    context = signed_in('ghost@x.com')
    Profile.objects.filter(pk=user.pk).delete()

    decision = evaluate_path(context, '/admin', resolver=SessionResolver(sleep=lambda s: None))

    assert decision.state == GuardState.DENIED
    assert decision.message == LOAD_FAILED_MESSAGE
    assert decision.error_code == 'profile_not_found'
    assert context.session is None


def test_doctor_record_failure_uses_doctor_message(make_account):
    make_account('doc@x.com', Profile.ROLE_DOCTOR)
    context = signed_in('doc@x.com')

    def broken(principal):
        raise RuntimeError('doctors table unavailable')

    decision = evaluate_path(context, '/doctor', resolver=SessionResolver(ensure_doctor=broken))

    assert decision.state == GuardState.DENIED
    assert decision.message == DOCTOR_PROFILE_MESSAGE


def test_guard_goes_back_to_resolving_on_sign_out_elsewhere(make_account):
    make_account('admin@x.com', Profile.ROLE_ADMIN)
    context = signed_in('admin@x.com')

    with RouteGuard({'admin'}) as guard:
        assert guard.evaluate(context, '/admin').state == GuardState.AUTHORIZED

        SessionStore().sign_out(AuthContext(session=context.session))

        assert guard.state == GuardState.RESOLVING
        assert guard.decision is None
        assert guard.evaluate(context, '/admin').state == GuardState.DENIED


def test_other_principals_do_not_invalidate_guard(make_account):
    make_account('admin@x.com', Profile.ROLE_ADMIN)
    make_account('other@x.com', Profile.ROLE_ADMIN)
    context = signed_in('admin@x.com')

    with RouteGuard({'admin'}) as guard:
        guard.evaluate(context, '/admin')
        signed_in('other@x.com')
        assert guard.state == GuardState.AUTHORIZED


def test_auth_route_sends_signed_in_user_to_dashboard(make_account, department):
    make_account('doc@x.com', Profile.ROLE_DOCTOR, department=department)
    context = signed_in('doc@x.com')

    with AuthRouteGuard() as guard:
        decision = guard.evaluate(context, '/login')

    assert decision.state == GuardState.AUTHORIZED
    assert decision.redirect_to == '/doctor'


@pytest.mark.parametrize('role', [Profile.ROLE_REGISTRATION, Profile.ROLE_PATIENT])
def test_auth_route_role_without_dashboard_renders(make_account, role):
    make_account('nodash@x.com', role)
    context = signed_in('nodash@x.com')

    with AuthRouteGuard() as guard:
        decision = guard.evaluate(context, '/login')

    assert decision.state == GuardState.DENIED
    assert decision.redirect_to is None
    assert decision.role == role
    assert SessionStore().get_session(context) is not None


def test_auth_route_without_session_renders():
    decision = evaluate_path(AuthContext(), '/signup')
    assert decision.state == GuardState.DENIED
    assert decision.redirect_to is None


def test_unprotected_route_is_authorized():
    assert evaluate_path(AuthContext(), '/about').state == GuardState.AUTHORIZED


def test_guard_endpoint_denies_wrong_role(make_account, client_for):
    user = make_account('reg@x.com', Profile.ROLE_REGISTRATION)
    client = client_for(user)

    resp = client.get('/api/auth/guard', {'path': '/admin'})

    assert resp.status_code == 200
    decision = resp.data['decision']
    assert decision['state'] == 'denied'
    assert decision['role'] == 'registration'
    assert decision['redirectTo'] == '/login'
    assert not Token.objects.filter(user=user).exists()


def test_guard_endpoint_anonymous_gets_next():
    resp = APIClient().get('/api/auth/guard', {'path': '/department/patients'})

    assert resp.data['decision'] == {
        'state': 'denied', 'role': None, 'user': None, 'redirectTo': '/login',
        'next': '/department/patients', 'message': None, 'code': None,
    }
