import json

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer
from django.contrib.auth.models import AnonymousUser

from portal.models import Patient
from portal.permissions import get_profile
from portal.services.realtime import can_access_patient, report_group


@database_sync_to_async
def _may_subscribe(user, patient_id: int):
    """None when the patient does not exist, else whether ``user`` may watch its reports."""
    patient = Patient.objects.select_related('assigned_doctor').filter(pk=patient_id).first()
    if patient is None:
        return None
    return can_access_patient(get_profile(user), patient)


class PatientReportsConsumer(AsyncWebsocketConsumer):
    """Pushes ``report.changed`` events for one patient to department staff and the assigned doctor."""

    async def connect(self):
        try:
            self.patient_id = int(self.scope["url_route"]["kwargs"].get("patient_id"))
        except (TypeError, ValueError):
            await self.close(code=4001)
            return

        user = self.scope.get("user") or AnonymousUser()
        if not user.is_authenticated:
            await self.close(code=4401)
            return

        allowed = await _may_subscribe(user, self.patient_id)
        if allowed is None:
            await self.close(code=4004)
            return
        if not allowed:
            await self.close(code=4003)
            return

        self.group_name = report_group(self.patient_id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()

    async def disconnect(self, close_code):
        if hasattr(self, "group_name"):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def report_changed(self, event):
        # event: {"type": "report.changed", "event": "INSERT"|"UPDATE", "patientId": int, "reportId": int}
        await self.send(json.dumps(event))
