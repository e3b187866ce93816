import json

import pytest
from asgiref.sync import async_to_sync, sync_to_async
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator
from rest_framework.authtoken.models import Token

from portal.models import DoctorRecord, Patient, Profile
from portal.realtime.middleware import TokenAuthMiddleware
from portal.realtime.routing import websocket_urlpatterns
from portal.services.realtime import EVENT_INSERT, broadcast_report_change, can_access_patient, report_group

pytestmark = pytest.mark.django_db(transaction=True)

application = TokenAuthMiddleware(URLRouter(websocket_urlpatterns))


@pytest.fixture
def patient(department):
    return Patient.objects.create(name='Jane Roe', age=41, sex='Female', general_registration_number='GR-1',
                                  department=department, registration_date='2024-01-01')


def token_for(user):
    return Token.objects.create(user=user).key


def try_connect(path):
    async def run():
        communicator = WebsocketCommunicator(application, path)
        connected, code = await communicator.connect()
        if connected:
            await communicator.disconnect()
        return connected, code
    return async_to_sync(run)()


def test_department_staff_receives_report_changes(staff_user, patient):
    path = f'/ws/reports/{patient.pk}/?token={token_for(staff_user)}'

    async def run():
        communicator = WebsocketCommunicator(application, path)
        connected, _ = await communicator.connect()
        assert connected
        await sync_to_async(broadcast_report_change)(patient.pk, 42, EVENT_INSERT)
        message = json.loads(await communicator.receive_from(timeout=2))
        await communicator.disconnect()
        return message

    assert async_to_sync(run)() == {
        'type': 'report.changed', 'event': 'INSERT', 'patientId': patient.pk, 'reportId': 42,
    }


def test_assigned_doctor_may_subscribe(make_account, department, patient):
    user = make_account('house@x.com', Profile.ROLE_DOCTOR, department=department)
    patient.assigned_doctor = DoctorRecord.objects.create(profile_id=user.pk, name='House', department=department)
    patient.save()

    connected, _ = try_connect(f'/ws/reports/{patient.pk}/?token={token_for(user)}')

    assert connected


def test_anonymous_is_closed(patient):
    assert try_connect(f'/ws/reports/{patient.pk}/') == (False, 4401)


def test_unknown_token_is_closed(patient):
    assert try_connect(f'/ws/reports/{patient.pk}/?token=not-a-token') == (False, 4401)


def test_other_department_is_closed(make_account, other_department, patient):
    outsider = make_account('out@x.com', Profile.ROLE_DEPARTMENT, department=other_department)
    assert try_connect(f'/ws/reports/{patient.pk}/?token={token_for(outsider)}') == (False, 4003)


def test_missing_patient_is_closed(staff_user):
    assert try_connect(f'/ws/reports/999999/?token={token_for(staff_user)}') == (False, 4004)


def test_access_rules(make_account, department, patient):
    assert report_group(patient.pk) == f'reports.patient.{patient.pk}'
    admin = make_account('root@x.com', Profile.ROLE_ADMIN)
    assert can_access_patient(admin.profile, patient) is False
    assert can_access_patient(None, patient) is False
