import pytest
from django.contrib.auth import get_user_model
from django.urls import reverse

from portal.models import AuditEvent, Department, DoctorRecord, Patient, Profile

pytestmark = pytest.mark.django_db

User = get_user_model()


@pytest.fixture
def admin_client(admin_user, client_for):
    return client_for(admin_user)


def test_departments_crud(admin_client, make_account, department):
    make_account('staff@x.com', Profile.ROLE_DEPARTMENT, department=department)

    created = admin_client.post(reverse('departments'), {'name': ' <b>Oncology</b> ', 'code': 'ONC'}, format='json')
    assert created.status_code == 201
    assert created.data['data']['name'] == 'Oncology'
    dept_id = created.data['data']['id']

    listed = admin_client.get(reverse('departments'))
    names = [(d['name'], d['user_count']) for d in listed.data['data']]
    assert names == [('Oncology', 0), ('Radiology', 1)]

    updated = admin_client.put(reverse('department_detail', args=[dept_id]), {'description': 'Cancer care'},
                               format='json')
    assert updated.data['data']['description'] == 'Cancer care'
    assert updated.data['data']['name'] == 'Oncology'

    assert admin_client.delete(reverse('department_detail', args=[dept_id])).status_code == 200
    assert not Department.objects.filter(pk=dept_id).exists()
    assert AuditEvent.objects.filter(action='department_delete', object_id=str(dept_id)).exists()


def test_department_with_patients_cannot_be_deleted(admin_client, department):
    Patient.objects.create(name='P', age=30, sex='Male', general_registration_number='G-1',
                           department=department, registration_date='2024-01-01')

    resp = admin_client.delete(reverse('department_detail', args=[department.pk]))

    assert resp.status_code == 400
    assert Department.objects.filter(pk=department.pk).exists()


def test_department_name_is_required(admin_client):
    resp = admin_client.post(reverse('departments'), {'name': '   '}, format='json')
    assert resp.status_code == 400


@pytest.mark.parametrize('role', [Profile.ROLE_DEPARTMENT, Profile.ROLE_DOCTOR, Profile.ROLE_REGISTRATION])
def test_admin_endpoints_refuse_other_roles(role, make_account, client_for, department):
    user = make_account(f'{role}@x.com', role, department=department)
    client = client_for(user)

    assert client.get(reverse('departments')).status_code == 403
    assert client.get(reverse('users')).status_code == 403
    # refusing an API call does not end the session
    assert client.get(reverse('session')).status_code == 200


def test_create_user_with_department(admin_client, department):
    resp = admin_client.post(reverse('users'), {
        'email': 'new@x.com', 'password': 'secret1', 'username': 'newbie',
        'role': 'department', 'department_id': department.pk,
    }, format='json')

    assert resp.status_code == 201
    data = resp.data['data']
    assert data['email'] == 'new@x.com'
    assert data['department'] == {'id': department.pk, 'name': 'Radiology'}
    assert User.objects.get(pk=data['id']).check_password('secret1')


def test_create_user_duplicate_email(admin_client, make_account):
    make_account('dup@x.com', Profile.ROLE_DOCTOR)
    resp = admin_client.post(reverse('users'), {
        'email': 'dup@x.com', 'password': 'secret1', 'username': 'dup', 'role': 'doctor',
    }, format='json')
    assert resp.status_code == 409


def test_list_and_update_user(admin_client, make_account, department):
    user = make_account('reg@x.com', Profile.ROLE_REGISTRATION)

    listed = admin_client.get(reverse('users'))
    assert {u['email'] for u in listed.data['data']} == {'admin@example.com', 'reg@x.com'}

    resp = admin_client.put(reverse('user_detail', args=[user.pk]),
                            {'username': 'front-desk', 'department_id': department.pk}, format='json')
    assert resp.status_code == 200
    profile = Profile.objects.get(pk=user.pk)
    assert profile.username == 'front-desk'
    assert profile.department == department
    assert profile.role == Profile.ROLE_REGISTRATION

    cleared = admin_client.put(reverse('user_detail', args=[user.pk]), {'department_id': None}, format='json')
    assert cleared.data['data']['department_id'] is None


def test_delete_user_removes_doctor_record_profile_and_principal(admin_client, make_account, department):
    user = make_account('doc@x.com', Profile.ROLE_DOCTOR, department=department)
    DoctorRecord.objects.create(profile_id=user.pk, name='Doc', department=department)

    resp = admin_client.delete(reverse('user_detail', args=[user.pk]))

    assert resp.status_code == 200
    assert not DoctorRecord.objects.filter(profile_id=user.pk).exists()
    assert not Profile.objects.filter(pk=user.pk).exists()
    assert not User.objects.filter(pk=user.pk).exists()
    assert admin_client.delete(reverse('user_detail', args=[user.pk])).status_code == 404


def test_admin_cannot_delete_self(admin_client, admin_user):
    resp = admin_client.delete(reverse('user_detail', args=[admin_user.pk]))
    assert resp.status_code == 400
    assert User.objects.filter(pk=admin_user.pk).exists()


def test_admin_resets_any_password(admin_client, make_account):
    user = make_account('reg@x.com', Profile.ROLE_REGISTRATION)

    resp = admin_client.post(reverse('user_password', args=[user.pk]), {'password': 'fresh-pass'}, format='json')

    assert resp.status_code == 200
    user.refresh_from_db()
    assert user.check_password('fresh-pass')


def test_department_staff_resets_only_own_doctors(staff_user, client_for, make_account, department,
                                                  other_department):
    own = make_account('own@x.com', Profile.ROLE_DOCTOR, department=department)
    foreign = make_account('foreign@x.com', Profile.ROLE_DOCTOR, department=other_department)
    client = client_for(staff_user)

    ok = client.post(reverse('user_password', args=[own.pk]), {'password': 'fresh-pass'}, format='json')
    denied = client.post(reverse('user_password', args=[foreign.pk]), {'password': 'fresh-pass'}, format='json')

    assert ok.status_code == 200
    assert denied.status_code == 403
    assert denied.data['error']['code'] == 'access_denied'
    foreign.refresh_from_db()
    assert not foreign.check_password('fresh-pass')
